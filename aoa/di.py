"""
DI Calculator
=============
Dissimilarity index = distance to the nearest eligible training point divided
by the mean pairwise training distance. Training points are evaluated
leave-own-fold-out (or leave-self-out without folds); new query locations are
evaluated against the full training set, in parallel chunks.
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from tqdm import tqdm

from .config import CHUNK_SIZE, N_JOBS
from .distance import DistanceEngine
from .errors import NoEligibleReference


@dataclass(frozen=True)
class TrainingDI:
    """Leave-fold-out DI of every training point; NaN where the point had to be omitted."""
    values: np.ndarray
    nearest: np.ndarray
    omitted: np.ndarray

    @property
    def n_omitted(self) -> int:
        return int(self.omitted.sum())

    @property
    def distribution(self) -> np.ndarray:
        return self.values[~self.omitted]


def _run_chunked(func, points: np.ndarray, n_jobs: int, chunk_size: int, progress: bool, desc: str) -> list:
    chunks = [points[start:start + chunk_size] for start in range(0, len(points), chunk_size)]
    iterator = tqdm(chunks, desc=desc, disable=not progress)
    if n_jobs == 1 or len(chunks) <= 1:
        return [func(chunk) for chunk in iterator]
    # Threads share the read-only index without copying it
    return Parallel(n_jobs=n_jobs, prefer='threads')(delayed(func)(chunk) for chunk in iterator)


class DICalculator:
    """
    Dissimilarity index over a Distance Engine.

    Parameters
    ----------
    engine : DistanceEngine
        Engine over the weighted training points
    scale : float
        Normalization scale (mean pairwise training distance)
    """

    def __init__(self, engine: DistanceEngine, scale: float):
        if not np.isfinite(scale) or scale <= 0:
            raise ValueError(f"Normalization scale must be positive and finite, got {scale}")
        self.engine = engine
        self.scale = float(scale)

    def di(self, points, exclude_fold=None) -> np.ndarray:
        """DI of weighted points, optionally excluding one fold of training points."""
        dist, _ = self.engine.query(points, exclude_fold=exclude_fold)
        return dist / self.scale

    def training_di(self) -> TrainingDI:
        """
        DI of each training point against independent training data.

        Each point is compared with the training points outside its own fold;
        without fold labels only the point itself is excluded. Points whose fold
        holds every training point are omitted and counted.

        Returns
        -------
        TrainingDI
            Per-point DI, nearest eligible training position and omission mask
        """
        engine = self.engine
        n = engine.n_reference
        values = np.full(n, np.nan)
        nearest = np.full(n, -1, dtype=np.intp)

        if engine.folds is None:
            dist, ind = engine.query_excluding_self()
            values[:] = dist / self.scale
            nearest[:] = ind
        else:
            for fold in pd.unique(engine.folds):
                members = np.flatnonzero(engine.folds == fold)
                try:
                    dist, ind = engine.query(engine.reference[members], exclude_fold=fold, cache=False)
                except NoEligibleReference:
                    warnings.warn(
                        f"Fold {fold!r} contains all {n} training points - "
                        f"its {len(members)} point(s) are omitted from the threshold"
                    )
                    continue
                values[members] = dist / self.scale
                nearest[members] = ind

        omitted = np.isnan(values)
        for array in (values, nearest, omitted):
            array.setflags(write=False)
        return TrainingDI(values=values, nearest=nearest, omitted=omitted)

    def map(self, points: np.ndarray, n_jobs: int = N_JOBS, chunk_size: int = CHUNK_SIZE,
            progress: bool = False, transform=None) -> np.ndarray:
        """
        DI of many new locations, computed chunk by chunk.

        Parameters
        ----------
        points : np.ndarray
            Query points, shape (n, n_variables); weighted unless ``transform`` is given
        n_jobs : int, optional
            joblib workers (default: 1)
        chunk_size : int, optional
            Query points per task
        progress : bool, optional
            Show a tqdm progress bar
        transform : callable, optional
            Maps raw predictor rows into weighted space, applied per chunk

        Returns
        -------
        np.ndarray
            DI per query point, in input order
        """
        if len(points) == 0:
            return np.empty(0)

        def chunk_di(chunk):
            return self.di(chunk if transform is None else transform(chunk))

        results = _run_chunked(chunk_di, points, n_jobs, chunk_size, progress, "DI chunks")
        return np.concatenate(results)

    def local_point_density(self, points: np.ndarray, threshold: float, n_jobs: int = N_JOBS,
                            chunk_size: int = CHUNK_SIZE, progress: bool = False, transform=None) -> np.ndarray:
        """Number of training points within a DI of ``threshold`` around each query point."""
        if len(points) == 0:
            return np.empty(0, dtype=np.intp)
        radius = threshold * self.scale

        def count(chunk):
            return self.engine.count_within(chunk if transform is None else transform(chunk), radius)

        results = _run_chunked(count, points, n_jobs, chunk_size, progress, "LPD chunks")
        return np.concatenate(results)
