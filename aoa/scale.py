"""
Normalization Scale Calculator
==============================
The DI is divided by the mean Euclidean distance over all distinct pairs of
training points in weighted space (full training set, folds ignored). This
estimator is fixed: it calibrates the DI scale and therefore the threshold.
"""

from __future__ import annotations

import numpy as np
from scipy.spatial.distance import cdist, pdist

from .config import BRUTE_BLOCK_SIZE, MIN_TRAINING_POINTS, PDIST_MAX_POINTS
from .errors import InsufficientTrainingData


def _blockwise_mean_pairwise(points: np.ndarray, block_size: int) -> float:
    # Upper triangle only, one block of rows at a time
    n = len(points)
    total = 0.0
    for start in range(0, n - 1, block_size):
        stop = min(start + block_size, n)
        d = cdist(points[start:stop], points[start + 1:])
        # Row i of the block pairs with columns j > i
        rows = np.arange(stop - start)[:, None]
        cols = np.arange(d.shape[1])[None, :]
        total += d[cols >= rows].sum()
    return total / (n * (n - 1) / 2)


def mean_pairwise_distance(points: np.ndarray, block_size: int = BRUTE_BLOCK_SIZE) -> float:
    """
    Mean Euclidean distance between all distinct pairs of training points.

    Parameters
    ----------
    points : np.ndarray
        Weighted training points, shape (n, n_variables)
    block_size : int, optional
        Rows per block when the training set exceeds ``PDIST_MAX_POINTS``

    Returns
    -------
    float
        Normalization scale of the DI

    Raises
    ------
    InsufficientTrainingData
        If fewer than 2 training points are given
    """
    points = np.asarray(points, dtype=float)
    n = points.shape[0]
    if n < MIN_TRAINING_POINTS:
        raise InsufficientTrainingData(n, stage="normalization scale", required=MIN_TRAINING_POINTS)
    if n <= PDIST_MAX_POINTS:
        return float(pdist(points).mean())
    return float(_blockwise_mean_pairwise(points, block_size))
