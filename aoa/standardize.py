"""
Standardizer: per-variable mean / standard deviation of the training data
and z-scoring of predictor vectors against them.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from sklearn.preprocessing import StandardScaler

from .config import MIN_TRAINING_POINTS
from .errors import DegenerateVariable, InsufficientTrainingData


@dataclass(frozen=True)
class VariableStatistics:
    """Training mean and standard deviation per predictor variable (read-only)."""
    variables: tuple
    mean: np.ndarray
    sd: np.ndarray

    def standardize(self, X: np.ndarray) -> np.ndarray:
        """
        Z-score a predictor matrix against the training statistics.

        Parameters
        ----------
        X : np.ndarray
            Matrix of shape (n, n_variables), columns ordered as ``variables``

        Returns
        -------
        np.ndarray
            Standardized matrix of the same shape
        """
        X = np.asarray(X, dtype=float)
        if X.ndim != 2 or X.shape[1] != len(self.variables):
            raise ValueError(f"Expected {len(self.variables)} predictor columns, got shape {X.shape}")
        return (X - self.mean) / self.sd

    def to_dict(self) -> dict:
        return {v: (float(m), float(s)) for v, m, s in zip(self.variables, self.mean, self.sd)}


def compute_variable_statistics(X: np.ndarray, variables: tuple) -> VariableStatistics:
    """
    Compute per-variable mean and standard deviation of training predictors.

    Parameters
    ----------
    X : np.ndarray
        Training predictor matrix (usable rows only), shape (n, n_variables)
    variables : tuple
        Variable name of each column

    Returns
    -------
    VariableStatistics
        Fitted statistics

    Raises
    ------
    InsufficientTrainingData
        If fewer than 2 training rows are given
    DegenerateVariable
        If a variable is constant or has undefined variance
    """
    X = np.asarray(X, dtype=float)
    if X.shape[0] < MIN_TRAINING_POINTS:
        raise InsufficientTrainingData(X.shape[0], stage="standardize", required=MIN_TRAINING_POINTS)

    # Constant columns first: StandardScaler leaves their scale at 1
    for j, var in enumerate(variables):
        column = X[:, j]
        if not np.isfinite(column).all():
            raise DegenerateVariable(var, stage="standardize", detail="non-finite training values")
        if np.ptp(column) == 0:
            raise DegenerateVariable(var, stage="standardize", detail=f"constant value {column[0]}")

    scaler = StandardScaler().fit(X)
    sd = np.sqrt(scaler.var_)
    for var, s in zip(variables, sd):
        if not np.isfinite(s) or s <= 0:
            raise DegenerateVariable(var, stage="standardize", detail=f"standard deviation {s}")

    mean = scaler.mean_.copy()
    mean.setflags(write=False)
    sd.setflags(write=False)
    return VariableStatistics(variables=tuple(variables), mean=mean, sd=sd)
