import numpy as np
import pytest

from aoa.config import RANDOM_STATE
from aoa.di import DICalculator
from aoa.distance import DistanceEngine
from aoa.scale import mean_pairwise_distance

TRIANGLE = np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]])


def test_di_is_nearest_distance_over_scale():
    calc = DICalculator(DistanceEngine(TRIANGLE), mean_pairwise_distance(TRIANGLE))
    di = calc.di([[0.5, 0.5]])[0]
    assert di == pytest.approx(np.sqrt(0.5) / ((2 + np.sqrt(2)) / 3))
    assert di == pytest.approx(0.6213, abs=1e-4)


def test_training_points_have_zero_di_without_exclusion():
    calc = DICalculator(DistanceEngine(TRIANGLE, folds=[1, 2, 3]), 1.0)
    np.testing.assert_array_equal(calc.di(TRIANGLE), [0.0, 0.0, 0.0])


def test_training_di_excludes_own_fold():
    calc = DICalculator(DistanceEngine(TRIANGLE, folds=[1, 2, 3]), 1.0)
    tdi = calc.training_di()
    assert np.all(tdi.values > 0)
    np.testing.assert_allclose(tdi.values, [1.0, 1.0, 1.0])
    assert tdi.n_omitted == 0


def test_training_di_without_folds_excludes_self():
    calc = DICalculator(DistanceEngine(TRIANGLE), 2.0)
    tdi = calc.training_di()
    np.testing.assert_allclose(tdi.values, [0.5, 0.5, 0.5])
    assert not np.any(tdi.nearest == np.arange(3))


def test_single_fold_omits_every_point():
    calc = DICalculator(DistanceEngine(TRIANGLE, folds=['a', 'a', 'a']), 1.0)
    with pytest.warns(UserWarning, match="omitted"):
        tdi = calc.training_di()
    assert tdi.n_omitted == 3
    assert tdi.distribution.size == 0
    assert list(tdi.nearest) == [-1, -1, -1]


def test_shared_fold_changes_nearest_neighbour():
    points = np.array([[0.0, 0.0], [0.1, 0.0], [2.0, 0.0], [0.0, 3.0]])
    independent = DICalculator(DistanceEngine(points, folds=[1, 2, 3, 4]), 1.0).training_di()
    grouped = DICalculator(DistanceEngine(points, folds=[1, 1, 3, 4]), 1.0).training_di()
    np.testing.assert_allclose(independent.values[:2], [0.1, 0.1])
    np.testing.assert_allclose(grouped.values[:2], [2.0, 1.9])
    assert list(grouped.nearest[:2]) == [2, 2]
    np.testing.assert_allclose(grouped.values[2:], independent.values[2:])


def test_parallel_map_matches_serial():
    rng = np.random.default_rng(RANDOM_STATE)
    reference = rng.normal(size=(300, 3))
    queries = rng.normal(size=(1000, 3))
    calc = DICalculator(DistanceEngine(reference), mean_pairwise_distance(reference))
    serial = calc.map(queries, n_jobs=1, chunk_size=128)
    parallel = calc.map(queries, n_jobs=2, chunk_size=128)
    np.testing.assert_array_equal(serial, parallel)
    np.testing.assert_allclose(serial, calc.di(queries))


def test_local_point_density_counts_training_within_threshold():
    calc = DICalculator(DistanceEngine(TRIANGLE), 1.0)
    counts = calc.local_point_density(np.array([[0.5, 0.5], [0.0, 0.0], [9.0, 9.0]]), threshold=0.75)
    assert list(counts) == [3, 1, 0]


def test_scale_must_be_positive():
    with pytest.raises(ValueError):
        DICalculator(DistanceEngine(TRIANGLE), 0.0)


def test_map_transforms_each_chunk():
    rng = np.random.default_rng(RANDOM_STATE)
    reference = rng.normal(size=(50, 2))
    raw = rng.normal(size=(40, 2))
    calc = DICalculator(DistanceEngine(reference), mean_pairwise_distance(reference))
    seen = []

    def transform(chunk):
        seen.append(len(chunk))
        return chunk * 2.0 - 1.0

    di = calc.map(raw, chunk_size=16, transform=transform)
    np.testing.assert_allclose(di, calc.di(raw * 2.0 - 1.0))
    assert seen == [16, 16, 8]
    counts = calc.local_point_density(raw, 0.5, chunk_size=16, transform=transform)
    np.testing.assert_array_equal(counts, calc.local_point_density(raw * 2.0 - 1.0, 0.5))
