import numpy as np
import pytest
from scipy.spatial.distance import pdist

from aoa.config import RANDOM_STATE
from aoa.errors import InsufficientTrainingData
from aoa.scale import _blockwise_mean_pairwise, mean_pairwise_distance


def test_triangle_mean_pairwise_distance():
    points = np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]])
    assert mean_pairwise_distance(points) == pytest.approx((2 + np.sqrt(2)) / 3)


def test_blockwise_accumulation_matches_pdist():
    points = np.random.default_rng(RANDOM_STATE).normal(size=(57, 3))
    expected = pdist(points).mean()
    for block_size in (1, 5, 16, 100):
        assert _blockwise_mean_pairwise(points, block_size) == pytest.approx(expected)


def test_fewer_than_two_points_is_insufficient():
    with pytest.raises(InsufficientTrainingData) as exc:
        mean_pairwise_distance(np.zeros((1, 3)))
    assert exc.value.stage == "normalization scale"
