"""
AOA Classifier
==============
Applies the threshold to DI values (inside iff DI <= threshold) and gathers
the run statistics: threshold settings, training DI summary, data exclusions
and the share of the query domain inside the AOA.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass

import numpy as np
import pandas as pd

from .threshold import ThresholdEstimate


def classify(di: np.ndarray, threshold: float) -> tuple:
    """
    Classify DI values against the AOA threshold.

    Parameters
    ----------
    di : np.ndarray
        DI values; NaN marks "no data" locations
    threshold : float
        AOA threshold (non-negative)

    Returns
    -------
    tuple
        (inside mask, valid mask), both boolean arrays shaped like ``di``
    """
    if not np.isfinite(threshold) or threshold < 0:
        raise ValueError(f"Threshold must be a non-negative finite number, got {threshold}")
    di = np.asarray(di, dtype=float)
    valid = ~np.isnan(di)
    inside = np.zeros(di.shape, dtype=bool)
    inside[valid] = di[valid] <= threshold
    return inside, valid


@dataclass(frozen=True)
class AOAStatistics:
    """Threshold, training DI summary and query coverage of one AOA run."""
    threshold: float
    quantile: float
    method: str
    normalization_scale: float
    training_di_count: int
    training_di_mean: float
    training_di_std: float
    training_di_min: float
    training_di_median: float
    training_di_max: float
    training_di_quantile: float
    n_training: int
    n_training_excluded: int
    n_no_eligible_reference: int
    n_query: int
    n_no_data: int
    n_inside: int
    n_outside: int
    fraction_inside: float

    def to_dict(self) -> dict:
        return asdict(self)

    def to_frame(self) -> pd.DataFrame:
        """Two-column table (statistic, value) for export."""
        return pd.DataFrame({'statistic': list(self.to_dict()), 'value': list(self.to_dict().values())})


def summarize(estimate: ThresholdEstimate, inside: np.ndarray, valid: np.ndarray, scale: float,
              n_training: int, n_training_excluded: int = 0) -> AOAStatistics:
    """
    Build the statistics of an AOA run.

    Parameters
    ----------
    estimate : ThresholdEstimate
        Threshold and training DI distribution
    inside, valid : np.ndarray
        Output of ``classify``
    scale : float
        Normalization scale of the DI
    n_training : int
        Number of usable training points
    n_training_excluded : int, optional
        Training rows excluded for non-finite predictors

    Returns
    -------
    AOAStatistics
        Summary of the run
    """
    dist = estimate.distribution
    n_valid = int(valid.sum())
    n_inside = int(inside[valid].sum())
    return AOAStatistics(
        threshold=estimate.threshold,
        quantile=estimate.quantile,
        method=estimate.method,
        normalization_scale=float(scale),
        training_di_count=int(dist.size),
        training_di_mean=float(dist.mean()),
        training_di_std=float(dist.std()),
        training_di_min=float(dist.min()),
        training_di_median=float(np.median(dist)),
        training_di_max=float(dist.max()),
        training_di_quantile=float(np.quantile(dist, estimate.quantile)),
        n_training=int(n_training),
        n_training_excluded=int(n_training_excluded),
        n_no_eligible_reference=int(estimate.n_omitted),
        n_query=int(valid.size),
        n_no_data=int(valid.size - n_valid),
        n_inside=n_inside,
        n_outside=n_valid - n_inside,
        fraction_inside=n_inside / n_valid if n_valid else float('nan'),
    )
