"""
Threshold Estimator: reduces the leave-fold-out training DI distribution to
the single DI value beyond which predictions count as extrapolation.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .config import DEFAULT_QUANTILE, THRESHOLD_METHODS, WHISKER_IQR_FACTOR
from .di import TrainingDI
from .errors import InsufficientTrainingData


@dataclass(frozen=True)
class ThresholdEstimate:
    threshold: float
    quantile: float
    method: str
    distribution: np.ndarray
    n_omitted: int = 0


def upper_whisker(values: np.ndarray, factor: float = WHISKER_IQR_FACTOR) -> float:
    """Largest value not above Q3 + factor * IQR (boxplot upper whisker)."""
    q1, q3 = np.quantile(values, [0.25, 0.75])
    limit = q3 + factor * (q3 - q1)
    return float(values[values <= limit].max())


def estimate_threshold(training_di, quantile: float = DEFAULT_QUANTILE, method: str = 'quantile') -> ThresholdEstimate:
    """
    Derive the AOA threshold from training DI values.

    Parameters
    ----------
    training_di : TrainingDI or array-like
        Leave-fold-out DI of the training points (NaN entries are ignored)
    quantile : float, optional
        Quantile of the training DI used as threshold (default: 0.95)
    method : str, optional
        'quantile' (linear interpolation) or 'whisker' (default: 'quantile')

    Returns
    -------
    ThresholdEstimate
        Threshold, settings used and the training DI distribution

    Raises
    ------
    ValueError
        If the quantile lies outside [0, 1] or the method is unknown
    InsufficientTrainingData
        If no training DI value is available
    """
    if not 0.0 <= quantile <= 1.0:
        raise ValueError(f"Quantile must lie in [0, 1], got {quantile}")
    if method not in THRESHOLD_METHODS:
        raise ValueError(f"Unknown threshold method '{method}' - expected one of {THRESHOLD_METHODS}")

    if isinstance(training_di, TrainingDI):
        values = training_di.distribution
        n_omitted = training_di.n_omitted
    else:
        values = np.asarray(training_di, dtype=float)
        n_omitted = int(np.isnan(values).sum())
        values = values[~np.isnan(values)]

    if values.size == 0:
        raise InsufficientTrainingData(0, stage="threshold", required=1)

    if method == 'whisker':
        threshold = upper_whisker(values)
    else:
        threshold = float(np.quantile(values, quantile))

    values = np.array(values)
    values.setflags(write=False)
    return ThresholdEstimate(
        threshold=threshold,
        quantile=float(quantile),
        method=method,
        distribution=values,
        n_omitted=n_omitted,
    )
