"""
Weighter
========
Turns variable-importance scores into per-variable multiplicative weights for
the standardized predictor space. Importance can come from a user table, a
fitted model (native importances, SHAP or permutation importance) or be
omitted, in which case every variable gets weight 1.

Normalization policy: weights are divided by their mean, so the mean weight
is always 1 and uniform importance is identical to no weighting.
"""

from __future__ import annotations

import warnings
from collections.abc import Mapping
from typing import Protocol, runtime_checkable

import numpy as np
import pandas as pd

from .config import RANDOM_STATE
from .errors import WeightVariableMismatch


@runtime_checkable
class ImportanceProvider(Protocol):
    """Anything that provides per-variable importance scores."""

    def importance(self) -> Mapping:
        ...


def _clip_negative(scores: dict, source: str) -> dict:
    negative = [var for var, value in scores.items() if value < 0]
    if negative:
        warnings.warn(f"Negative {source} importance set to 0 for variables: {negative}")
    return {var: max(float(value), 0.0) for var, value in scores.items()}


class TableImportance:
    """
    Importance scores from a user-supplied table.

    Accepts a mapping, a ``pd.Series`` indexed by variable name, or a
    long-format ``pd.DataFrame`` such as a SHAP importance ranking with
    columns ``rank, feature, shap_importance``.
    """

    def __init__(self, table, name_column: str = 'feature', value_column: str = None):
        self.table = table
        self.name_column = name_column
        self.value_column = value_column

    def importance(self) -> dict:
        table = self.table
        if isinstance(table, pd.DataFrame):
            if self.name_column not in table.columns:
                raise ValueError(f"Importance table must contain a '{self.name_column}' column")
            value_column = self.value_column
            if value_column is None:
                candidates = [
                    c for c in table.select_dtypes(include='number').columns
                    if c not in (self.name_column, 'rank')
                ]
                if not candidates:
                    raise ValueError("Importance table has no numeric importance column")
                value_column = candidates[0]
            names = table[self.name_column].astype(str)
            if names.duplicated().any():
                raise ValueError(f"Duplicate variables in importance table: {names[names.duplicated()].tolist()}")
            return dict(zip(names, table[value_column].astype(float)))
        if isinstance(table, pd.Series):
            if table.index.duplicated().any():
                raise ValueError("Duplicate variables in importance series")
            return {str(k): float(v) for k, v in table.items()}
        if isinstance(table, Mapping):
            return {str(k): float(v) for k, v in table.items()}
        raise TypeError(f"Unsupported importance table type: {type(table).__name__}")


class ModelImportance:
    """Native importance of a fitted model (``feature_importances_`` or ``|coef_|``)."""

    def __init__(self, model, variables: list = None):
        self.model = model
        self.variables = variables

    def _names(self, n: int) -> list:
        names = self.variables
        if names is None:
            names = getattr(self.model, 'feature_names_in_', None)
        if names is None:
            raise ValueError("Variable names required: model was fitted without feature names")
        names = [str(v) for v in names]
        if len(names) != n:
            raise ValueError(f"Model provides {n} importance values for {len(names)} variables")
        return names

    def importance(self) -> dict:
        if hasattr(self.model, 'feature_importances_'):
            scores = np.asarray(self.model.feature_importances_, dtype=float)
        elif hasattr(self.model, 'coef_'):
            coef = np.abs(np.asarray(self.model.coef_, dtype=float))
            scores = coef.mean(axis=0) if coef.ndim == 2 else coef
        else:
            raise AttributeError(
                f"{type(self.model).__name__} exposes neither feature_importances_ nor coef_"
            )
        return _clip_negative(dict(zip(self._names(len(scores)), scores)), "model")


class ShapImportance:
    """Mean absolute SHAP value per variable of a fitted tree model."""

    def __init__(self, model, X: pd.DataFrame):
        self.model = model
        self.X = X

    def importance(self) -> dict:
        import shap

        explainer = shap.TreeExplainer(self.model)
        shap_values = explainer.shap_values(self.X)
        if isinstance(shap_values, list):
            # One array per class
            scores = np.mean([np.abs(v).mean(axis=0) for v in shap_values], axis=0)
        else:
            shap_values = np.abs(np.asarray(shap_values))
            scores = shap_values.mean(axis=(0, 2)) if shap_values.ndim == 3 else shap_values.mean(axis=0)
        names = list(self.X.columns) if hasattr(self.X, 'columns') else None
        if names is None:
            raise ValueError("SHAP importance requires X as a DataFrame with variable names")
        return {str(v): float(s) for v, s in zip(names, scores)}


class PermutationImportance:
    """Permutation importance of a fitted model on a reference dataset."""

    def __init__(self, model, X: pd.DataFrame, y, **kwargs):
        self.model = model
        self.X = X
        self.y = y
        self.kwargs = kwargs

    def importance(self) -> dict:
        from sklearn.inspection import permutation_importance

        kwargs = dict(self.kwargs)
        kwargs.setdefault('n_repeats', 10)
        kwargs.setdefault('random_state', RANDOM_STATE)
        result = permutation_importance(self.model, self.X, self.y, **kwargs)
        names = [str(v) for v in self.X.columns]
        return _clip_negative(dict(zip(names, result.importances_mean)), "permutation")


def normalize_weights(raw: np.ndarray) -> np.ndarray:
    """Scale non-negative weights so that their mean is 1."""
    raw = np.asarray(raw, dtype=float)
    if raw.size == 0:
        raise ValueError("No weights to normalize")
    if not np.isfinite(raw).all() or (raw < 0).any():
        raise ValueError(f"Importance weights must be finite and non-negative, got {raw.tolist()}")
    mean = raw.mean()
    if mean <= 0:
        raise ValueError("Importance weights are all zero")
    return raw / mean


def resolve_weights(variables: tuple, importance=None) -> np.ndarray:
    """
    Resolve importance input into normalized weights ordered as ``variables``.

    Parameters
    ----------
    variables : tuple
        Predictor variables of the weighted space
    importance : None, mapping, pd.Series, pd.DataFrame or ImportanceProvider
        Importance scores; None gives equal weights

    Returns
    -------
    np.ndarray
        Weights with mean 1, one per variable

    Raises
    ------
    WeightVariableMismatch
        If the importance variables differ from ``variables``
    ValueError
        If a weight is negative or non-finite, or all weights are zero
    """
    if importance is None:
        return np.ones(len(variables))

    if isinstance(importance, (Mapping, pd.Series, pd.DataFrame)):
        scores = TableImportance(importance).importance()
    elif isinstance(importance, ImportanceProvider):
        scores = importance.importance()
    else:
        raise TypeError(f"Unsupported importance input: {type(importance).__name__}")

    missing = set(variables) - set(scores)
    unexpected = set(scores) - set(variables)
    if missing or unexpected:
        raise WeightVariableMismatch(missing=missing, unexpected=unexpected)

    return normalize_weights([scores[v] for v in variables])
