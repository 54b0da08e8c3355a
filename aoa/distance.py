"""
Distance Engine
===============
Nearest-neighbour distances from query points to the weighted training
points. Leave-fold-out queries run against a complement index holding only
the reference points outside the excluded fold, so excluded points are never
visited. Indices are built lazily and read concurrently; complement indices
are cached unless the caller visits each fold only once.
"""

from __future__ import annotations

import threading

import numpy as np
from scipy.spatial.distance import cdist
from sklearn.neighbors import KDTree

from .config import ALGORITHMS, BRUTE_BLOCK_SIZE, INDEX_MIN_POINTS, LEAF_SIZE
from .errors import NoEligibleReference


class BruteForceIndex:
    """
    Exhaustive Euclidean scan with the ``KDTree`` query interface.

    Ties are broken towards the lowest reference position.
    """

    def __init__(self, points: np.ndarray, block_size: int = BRUTE_BLOCK_SIZE):
        self.points = points
        self.block_size = block_size

    def query(self, X: np.ndarray, k: int = 1) -> tuple:
        dist_blocks, ind_blocks = [], []
        for start in range(0, len(X), self.block_size):
            d = cdist(X[start:start + self.block_size], self.points)
            rows = np.arange(len(d))
            dist = np.empty((len(d), k))
            ind = np.empty((len(d), k), dtype=np.intp)
            for j in range(k):
                # argmin returns the first minimum, i.e. the lowest position
                ind[:, j] = np.argmin(d, axis=1)
                dist[:, j] = d[rows, ind[:, j]]
                d[rows, ind[:, j]] = np.inf
            dist_blocks.append(dist)
            ind_blocks.append(ind)
        return np.vstack(dist_blocks), np.vstack(ind_blocks)

    def query_radius(self, X: np.ndarray, r: float, count_only: bool = True) -> np.ndarray:
        if not count_only:
            raise ValueError("Brute force index only counts neighbours (count_only=True)")
        counts = [
            (cdist(X[start:start + self.block_size], self.points) <= r).sum(axis=1)
            for start in range(0, len(X), self.block_size)
        ]
        return np.concatenate(counts)


def resolve_algorithm(algorithm: str, n_points: int) -> str:
    """Pick the nearest-neighbour backend for a reference set of ``n_points``."""
    if algorithm not in ALGORITHMS:
        raise ValueError(f"Unknown algorithm '{algorithm}' - expected one of {ALGORITHMS}")
    if algorithm == 'auto':
        return 'kd_tree' if n_points >= INDEX_MIN_POINTS else 'brute'
    return algorithm


class DistanceEngine:
    """
    Minimum Euclidean distance from query points to a reference set.

    Parameters
    ----------
    reference : np.ndarray
        Reference points in weighted space, shape (n, n_variables)
    folds : array-like, optional
        Fold label of each reference point, required for fold exclusion
    algorithm : str, optional
        'auto', 'brute' or 'kd_tree' (default: 'auto')
    leaf_size : int, optional
        KD tree leaf size (default: 40)
    """

    def __init__(self, reference: np.ndarray, folds=None, algorithm: str = 'auto', leaf_size: int = LEAF_SIZE):
        reference = np.array(reference, dtype=float)
        if reference.ndim != 2 or reference.shape[0] == 0:
            raise ValueError(f"Reference points must be a non-empty 2-D array, got shape {reference.shape}")
        reference.setflags(write=False)
        self.reference = reference

        if folds is not None:
            folds = np.array(folds)
            if folds.shape != (reference.shape[0],):
                raise ValueError(f"Expected {reference.shape[0]} fold labels, got shape {folds.shape}")
            folds.setflags(write=False)
        self.folds = folds

        self.algorithm = resolve_algorithm(algorithm, reference.shape[0])
        self.leaf_size = leaf_size
        self._index = self._build(reference)
        self._complement = {}
        self._lock = threading.Lock()

    @property
    def n_reference(self) -> int:
        return self.reference.shape[0]

    @property
    def n_variables(self) -> int:
        return self.reference.shape[1]

    def _build(self, points: np.ndarray):
        if self.algorithm == 'kd_tree':
            return KDTree(np.array(points), leaf_size=self.leaf_size)
        return BruteForceIndex(points)

    def _complement_index(self, fold, cache: bool = True) -> tuple:
        """
        Index over the reference points outside ``fold`` and their positions.

        With ``cache=False`` a missing index is built for this call only and
        not kept on the engine.
        """
        if self.folds is None:
            raise ValueError("Fold exclusion requested but reference points carry no fold labels")
        with self._lock:
            if fold in self._complement:
                return self._complement[fold]
        eligible = np.flatnonzero(self.folds != fold)
        if eligible.size == 0:
            raise NoEligibleReference(fold)
        if eligible.size == self.n_reference:
            return self._index, None
        entry = (self._build(self.reference[eligible]), eligible)
        if cache:
            with self._lock:
                entry = self._complement.setdefault(fold, entry)
        return entry

    def _as_points(self, points) -> np.ndarray:
        points = np.atleast_2d(np.asarray(points, dtype=float))
        if points.ndim != 2 or points.shape[1] != self.n_variables:
            raise ValueError(f"Query points must have {self.n_variables} coordinates, got shape {points.shape}")
        return points

    @staticmethod
    def _query(index, points: np.ndarray, k: int) -> tuple:
        if len(points) == 0:
            return np.empty((0, k)), np.empty((0, k), dtype=np.intp)
        if not points.flags.writeable:
            points = points.copy()
        return index.query(points, k=k)

    def query(self, points, exclude_fold=None, cache: bool = True) -> tuple:
        """
        Nearest eligible reference point for each query point.

        Parameters
        ----------
        points : array-like
            Query points in weighted space, shape (n, n_variables)
        exclude_fold : optional
            Fold label whose reference points are skipped
        cache : bool, optional
            Keep the complement index of ``exclude_fold`` for later queries
            (default: True)

        Returns
        -------
        tuple
            (minimum distances, positions of the nearest reference points)

        Raises
        ------
        NoEligibleReference
            If ``exclude_fold`` covers every reference point
        """
        points = self._as_points(points)
        if exclude_fold is None:
            index, members = self._index, None
        else:
            index, members = self._complement_index(exclude_fold, cache=cache)
        dist, ind = self._query(index, points, k=1)
        ind = ind[:, 0]
        if members is not None:
            ind = members[ind]
        return dist[:, 0], ind

    def min_distance(self, point, exclude_fold=None) -> float:
        """Minimum distance from a single query point to the eligible reference set."""
        dist, _ = self.query(point, exclude_fold=exclude_fold)
        return float(dist[0])

    def query_excluding_self(self) -> tuple:
        """
        Nearest other reference point for every reference point.

        Returns
        -------
        tuple
            (distances, positions of the nearest other reference points)

        Raises
        ------
        NoEligibleReference
            If the reference set has a single point
        """
        n = self.n_reference
        if n < 2:
            raise NoEligibleReference()
        dist, ind = self._query(self._index, self.reference, k=2)
        rows = np.arange(n)
        # Self may rank second when duplicates sit at distance 0
        pick = np.where(ind[:, 0] == rows, 1, 0)
        return dist[rows, pick], ind[rows, pick]

    def count_within(self, points, radius: float) -> np.ndarray:
        """Number of reference points within ``radius`` of each query point."""
        points = self._as_points(points)
        if len(points) == 0:
            return np.empty(0, dtype=np.intp)
        if not points.flags.writeable:
            points = points.copy()
        return np.asarray(self._index.query_radius(points, r=radius, count_only=True))
