"""
Weighted Space Builder: standardization followed by importance weighting,
``((raw - mean) / sd) * weight`` per variable.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .data import TrainingSet
from .standardize import VariableStatistics, compute_variable_statistics
from .weights import resolve_weights


@dataclass(frozen=True)
class WeightedSpace:
    """Read-only mapping from raw predictor vectors into the weighted predictor space."""
    statistics: VariableStatistics
    weights: np.ndarray

    def __post_init__(self):
        if len(self.weights) != len(self.statistics.variables):
            raise ValueError(
                f"{len(self.weights)} weights for {len(self.statistics.variables)} variables"
            )

    @classmethod
    def from_training(cls, training: TrainingSet, importance=None) -> "WeightedSpace":
        """
        Fit the weighted space on the usable training points.

        Parameters
        ----------
        training : TrainingSet
            Usable training observations
        importance : optional
            Importance input accepted by ``resolve_weights``

        Returns
        -------
        WeightedSpace
            Space with fixed statistics and normalized weights
        """
        statistics = compute_variable_statistics(training.X, training.variables)
        weights = resolve_weights(training.variables, importance)
        weights.setflags(write=False)
        return cls(statistics=statistics, weights=weights)

    @property
    def variables(self) -> tuple:
        return self.statistics.variables

    def transform(self, X: np.ndarray) -> np.ndarray:
        """Map raw predictors (columns ordered as ``variables``) into weighted space."""
        return self.statistics.standardize(X) * self.weights

    def weight_table(self) -> dict:
        return dict(zip(self.variables, self.weights.tolist()))
