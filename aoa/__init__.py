"""
Area of Applicability (AOA) of spatial prediction models
========================================================
Dissimilarity index (DI) of prediction locations in the standardized,
importance-weighted predictor space of the training data, and the
cross-validation aware threshold separating the area where the model's
cross-validated error applies from unsupported extrapolation.
"""

from .classify import AOAStatistics, classify, summarize
from .config import DEFAULT_QUANTILE, AOASettings
from .data import QueryDomain, TrainingSet
from .di import DICalculator, TrainingDI
from .distance import DistanceEngine
from .errors import (
    AOAError,
    DegenerateVariable,
    InsufficientTrainingData,
    NoEligibleReference,
    WeightVariableMismatch,
)
from .pipeline import AOAModel, AOAResult, estimate_aoa, fit_aoa
from .scale import mean_pairwise_distance
from .space import WeightedSpace
from .standardize import VariableStatistics, compute_variable_statistics
from .threshold import ThresholdEstimate, estimate_threshold
from .weights import (
    ImportanceProvider,
    ModelImportance,
    PermutationImportance,
    ShapImportance,
    TableImportance,
    resolve_weights,
)

__version__ = "0.1.0"

__all__ = [
    "AOAError", "AOAModel", "AOAResult", "AOASettings", "AOAStatistics", "DEFAULT_QUANTILE",
    "DICalculator", "DegenerateVariable", "DistanceEngine", "ImportanceProvider",
    "InsufficientTrainingData", "ModelImportance", "NoEligibleReference", "PermutationImportance",
    "QueryDomain", "ShapImportance", "TableImportance", "ThresholdEstimate", "TrainingDI",
    "TrainingSet", "VariableStatistics", "WeightVariableMismatch", "WeightedSpace", "classify",
    "compute_variable_statistics", "estimate_aoa", "estimate_threshold", "fit_aoa",
    "mean_pairwise_distance", "resolve_weights", "summarize",
]
