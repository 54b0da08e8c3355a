"""
Input containers for AOA estimation
===================================
``TrainingSet`` holds the usable training observations (predictors, fold and
cluster labels) and ``QueryDomain`` holds the locations a DI is computed for,
flattened to one row per location together with a "no data" mask, in the
same way raster bands are flattened for pixel-wise prediction.
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass

import numpy as np
import pandas as pd

from .config import CLUSTER_LABEL, FOLD_LABEL


def _read_only(array: np.ndarray) -> np.ndarray:
    array = np.array(array, copy=True)
    array.setflags(write=False)
    return array


def _numeric_block(df: pd.DataFrame, variables: list) -> np.ndarray:
    """Coerce predictor columns to float; unparsable entries become NaN."""
    block = df[variables].apply(pd.to_numeric, errors='coerce')
    return np.asarray(block.values, dtype=float)


def check_columns(df: pd.DataFrame, columns: list, desc: str = "dataset") -> None:
    """
    Raise a ValueError listing the required columns missing from a table.

    Parameters
    ----------
    df : pd.DataFrame
        Table to check
    columns : list
        Required column names
    desc : str, optional
        Description of the table for the error message (default: "dataset")
    """
    missing_cols = [col for col in columns if col not in df.columns]
    if missing_cols:
        raise ValueError(f"Missing required columns in {desc}: {missing_cols}")


def _labels(df: pd.DataFrame, labels, name: str):
    """Resolve a label argument given as column name or as row-aligned sequence."""
    if labels is None:
        return None, None
    if isinstance(labels, str):
        check_columns(df, [labels], "training table")
        return labels, df[labels].to_numpy()
    values = np.asarray(labels)
    if values.ndim != 1 or len(values) != len(df):
        raise ValueError(f"{name} labels must be one value per training row ({len(df)}), got shape {values.shape}")
    return None, values


@dataclass(frozen=True)
class TrainingSet:
    """
    Usable training observations.

    Rows with a non-finite predictor value are excluded when the set is built
    and only counted in ``n_excluded``; the arrays are read-only afterwards.
    """
    variables: tuple
    X: np.ndarray
    index: pd.Index
    folds: np.ndarray | None = None
    clusters: np.ndarray | None = None
    n_excluded: int = 0

    @classmethod
    def from_frame(cls, df: pd.DataFrame, variables: list = None, folds=None, clusters=None) -> "TrainingSet":
        """
        Build a training set from a table of observations.

        Parameters
        ----------
        df : pd.DataFrame
            Training table, one row per observation
        variables : list, optional
            Predictor columns (default: all numeric columns except fold/cluster columns)
        folds : str or array-like, optional
            Fold column name, or fold label per row
        clusters : str or array-like, optional
            Cluster/unit column name, or cluster label per row

        Returns
        -------
        TrainingSet
            Training points with complete predictors

        Raises
        ------
        ValueError
            If predictor columns are missing or usable rows lack a fold label
        """
        fold_col, fold_values = _labels(df, folds, FOLD_LABEL)
        cluster_col, cluster_values = _labels(df, clusters, CLUSTER_LABEL)

        if variables is None:
            label_cols = {fold_col, cluster_col}
            variables = [c for c in df.select_dtypes(include='number').columns if c not in label_cols]
            warnings.warn(
                f"No predictor variables given - using all numeric training columns: {variables}"
            )
        variables = list(variables)
        if not variables:
            raise ValueError("No predictor variables given for the training table")
        if len(set(variables)) != len(variables):
            raise ValueError(f"Duplicate predictor variables: {variables}")
        check_columns(df, variables, "training table")

        X = _numeric_block(df, variables)
        usable = np.isfinite(X).all(axis=1)
        n_excluded = int((~usable).sum())
        if n_excluded:
            warnings.warn(
                f"Excluding {n_excluded} of {len(df)} training rows with non-finite predictor values"
            )

        if fold_values is not None:
            fold_values = fold_values[usable]
            if pd.isna(fold_values).any():
                raise ValueError(
                    f"Fold labels missing for {int(pd.isna(fold_values).sum())} usable training rows"
                )
        if cluster_values is not None:
            cluster_values = cluster_values[usable]

        return cls(
            variables=tuple(variables),
            X=_read_only(X[usable]),
            index=df.index[usable],
            folds=None if fold_values is None else _read_only(fold_values),
            clusters=None if cluster_values is None else _read_only(cluster_values),
            n_excluded=n_excluded,
        )

    @property
    def n_points(self) -> int:
        return self.X.shape[0]

    def frame(self) -> pd.DataFrame:
        """Usable training rows as a DataFrame (original index)."""
        return pd.DataFrame(self.X, columns=list(self.variables), index=self.index)


@dataclass(frozen=True)
class QueryDomain:
    """
    Locations a DI is computed for, flattened to one row per location.

    ``shape`` is the shape of output fields (rows of a table, or the
    ``(height, width)`` of a raster); ``valid`` marks locations with a
    complete predictor vector, all others are reported as "no data".
    """
    variables: tuple
    X: np.ndarray
    valid: np.ndarray
    shape: tuple
    index: pd.Index | None = None

    @classmethod
    def from_frame(cls, df: pd.DataFrame, variables: list) -> "QueryDomain":
        """Query locations from a table; columns other than ``variables`` are ignored."""
        variables = list(variables)
        check_columns(df, variables, "query domain")
        X = _numeric_block(df, variables)
        return cls(
            variables=tuple(variables),
            X=_read_only(X),
            valid=_read_only(np.isfinite(X).all(axis=1)),
            shape=(len(df),),
            index=df.index,
        )

    @classmethod
    def from_array(cls, X: np.ndarray, variables: list) -> "QueryDomain":
        """Query locations from a ``(n_locations, n_variables)`` matrix."""
        X = np.asarray(X, dtype=float)
        if X.ndim != 2 or X.shape[1] != len(variables):
            raise ValueError(
                f"Query matrix must have shape (n, {len(variables)}), got {X.shape}"
            )
        return cls(
            variables=tuple(variables),
            X=_read_only(X),
            valid=_read_only(np.isfinite(X).all(axis=1)),
            shape=(X.shape[0],),
        )

    @classmethod
    def from_stack(cls, stack: np.ndarray, variables: list) -> "QueryDomain":
        """
        Query locations from a raster stack.

        Parameters
        ----------
        stack : np.ndarray
            Array of shape (n_variables, height, width), one band per variable
        variables : list
            Variable name of each band

        Returns
        -------
        QueryDomain
            One location per pixel, fields shaped (height, width)
        """
        stack = np.asarray(stack, dtype=float)
        if stack.ndim != 3 or stack.shape[0] != len(variables):
            raise ValueError(
                f"Raster stack must have shape ({len(variables)}, height, width), got {stack.shape}"
            )
        X = stack.reshape(stack.shape[0], -1).T
        return cls(
            variables=tuple(variables),
            X=_read_only(X),
            valid=_read_only(np.isfinite(X).all(axis=1)),
            shape=stack.shape[1:],
        )

    @property
    def n_locations(self) -> int:
        return self.X.shape[0]

    @property
    def n_no_data(self) -> int:
        return int((~self.valid).sum())

    def valid_points(self, variables: tuple) -> np.ndarray:
        """Predictor matrix of the valid locations, columns ordered as ``variables``."""
        missing = [v for v in variables if v not in self.variables]
        if missing:
            raise ValueError(f"Missing required columns in query domain: {missing}")
        order = [self.variables.index(v) for v in variables]
        return self.X[np.ix_(self.valid, order)]

    def to_field(self, values: np.ndarray, fill=np.nan, dtype=float) -> np.ndarray:
        """
        Scatter per-valid-location values back into the shape of the domain.

        Parameters
        ----------
        values : np.ndarray
            One value per valid location
        fill : scalar, optional
            Value at "no data" locations (default: NaN)
        dtype : type, optional
            Output dtype (default: float)

        Raises
        ------
        ValueError
            If the number of values does not match the number of valid locations
        """
        values = np.asarray(values)
        n_valid = int(self.valid.sum())
        if len(values) != n_valid:
            raise ValueError(f"Data length mismatch: {len(values)} vs {n_valid} valid locations")
        out = np.full(self.n_locations, fill, dtype=dtype)
        out[self.valid] = values
        return out.reshape(self.shape)
