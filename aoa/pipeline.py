"""
AOA estimation workflow
=======================
``fit_aoa`` builds the weighted predictor space from the training table,
computes the leave-fold-out training DI and the threshold. The threshold is
final once ``fit_aoa`` returns; ``AOAModel.apply`` then maps any number of
query domains to DI, AOA and (optionally) local point density fields.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import pandas as pd

from .classify import AOAStatistics, classify, summarize
from .config import AOA_NODATA, AOASettings, CLUSTER_LABEL, FOLD_LABEL
from .data import QueryDomain, TrainingSet
from .di import DICalculator, TrainingDI
from .distance import DistanceEngine
from .scale import mean_pairwise_distance
from .space import WeightedSpace
from .threshold import ThresholdEstimate, estimate_threshold


@dataclass(frozen=True)
class AOAResult:
    """DI, AOA and local point density fields shaped like the query domain."""
    di: np.ndarray
    aoa: np.ndarray
    valid: np.ndarray
    statistics: AOAStatistics
    lpd: np.ndarray | None = None
    index: pd.Index | None = None

    def aoa_codes(self) -> np.ndarray:
        """AOA as uint8: 1 inside, 0 outside, ``AOA_NODATA`` where predictors were incomplete."""
        codes = self.aoa.astype(np.uint8)
        codes[~self.valid] = AOA_NODATA
        return codes

    def to_frame(self) -> pd.DataFrame:
        """Tabular view (one row per location) with a nullable boolean AOA column."""
        if self.di.ndim != 1:
            raise ValueError(f"Tabular view needs a 1-D query domain, got field shape {self.di.shape}")
        aoa = pd.array(self.aoa, dtype='boolean')
        aoa[~self.valid] = pd.NA
        out = pd.DataFrame({'DI': self.di, 'AOA': aoa}, index=self.index)
        if self.lpd is not None:
            out['LPD'] = self.lpd
        return out


@dataclass(frozen=True)
class AOAModel:
    """Fitted weighted space, training DI and threshold; read-only."""
    training: TrainingSet
    space: WeightedSpace
    calculator: DICalculator
    training_di: TrainingDI
    estimate: ThresholdEstimate
    settings: AOASettings

    @property
    def threshold(self) -> float:
        return self.estimate.threshold

    @property
    def scale(self) -> float:
        return self.calculator.scale

    @property
    def variables(self) -> tuple:
        return self.space.variables

    def training_di_frame(self) -> pd.DataFrame:
        """
        Leave-fold-out DI per usable training row.

        Returns
        -------
        pd.DataFrame
            Indexed like the training table, with fold / cluster labels when
            given, the DI, the row label of the nearest independent training
            point and whether the row was omitted from the threshold
        """
        tdi = self.training_di
        out = pd.DataFrame(index=self.training.index)
        if self.training.folds is not None:
            out[FOLD_LABEL] = self.training.folds
        if self.training.clusters is not None:
            out[CLUSTER_LABEL] = self.training.clusters
        out['DI'] = tdi.values
        nearest = pd.Series(pd.NA, index=out.index, dtype=object)
        found = ~tdi.omitted
        nearest[found] = self.training.index[tdi.nearest[found]].to_numpy()
        out['nearest'] = nearest
        out['omitted'] = tdi.omitted
        return out

    def _domain(self, query) -> QueryDomain:
        if isinstance(query, QueryDomain):
            return query
        if isinstance(query, pd.DataFrame):
            return QueryDomain.from_frame(query, list(self.variables))
        query = np.asarray(query, dtype=float)
        if query.ndim == 3:
            return QueryDomain.from_stack(query, list(self.variables))
        return QueryDomain.from_array(query, list(self.variables))

    def apply(self, query) -> AOAResult:
        """
        Compute DI and AOA for a query domain.

        Parameters
        ----------
        query : QueryDomain, pd.DataFrame or np.ndarray
            Locations with the training predictors; arrays are (n, n_variables)
            matrices or (n_variables, height, width) raster stacks ordered as
            ``variables``

        Returns
        -------
        AOAResult
            DI (NaN = no data), AOA, validity and optional LPD fields
        """
        domain = self._domain(query)
        settings = self.settings
        # Raw rows; each chunk is moved into weighted space on its own
        points = domain.valid_points(self.variables)

        di_valid = self.calculator.map(
            points, n_jobs=settings.n_jobs, chunk_size=settings.chunk_size, progress=settings.progress,
            transform=self.space.transform
        )
        di = domain.to_field(di_valid)
        inside, valid = classify(di, self.threshold)

        lpd = None
        if settings.compute_lpd:
            lpd_valid = self.calculator.local_point_density(
                points, self.threshold, n_jobs=settings.n_jobs,
                chunk_size=settings.chunk_size, progress=settings.progress, transform=self.space.transform
            )
            lpd = domain.to_field(lpd_valid.astype(float))

        statistics = summarize(
            self.estimate, inside, valid, self.scale,
            n_training=self.training.n_points, n_training_excluded=self.training.n_excluded
        )
        return AOAResult(di=di, aoa=inside, valid=valid, statistics=statistics, lpd=lpd, index=domain.index)


def fit_aoa(training, variables: list = None, folds=None, clusters=None, importance=None,
            settings: AOASettings = None) -> AOAModel:
    """
    Fit the weighted predictor space and the AOA threshold on training data.

    Parameters
    ----------
    training : pd.DataFrame or TrainingSet
        Training observations
    variables : list, optional
        Predictor columns (default: numeric columns except fold/cluster columns)
    folds : str or array-like, optional
        Cross-validation fold column or labels; without folds each training
        point only excludes itself
    clusters : str or array-like, optional
        Cluster/unit column or labels, carried into the training DI table
    importance : optional
        Variable importance (mapping, Series, table or ImportanceProvider);
        None gives equal weights
    settings : AOASettings, optional
        Run options (default: AOASettings())

    Returns
    -------
    AOAModel
        Fitted model with training DI and threshold

    Raises
    ------
    DegenerateVariable
        If a predictor is constant in the training data
    WeightVariableMismatch
        If importance variables differ from the predictors
    InsufficientTrainingData
        If fewer than 2 usable training points remain
    """
    settings = settings or AOASettings()
    if isinstance(training, TrainingSet):
        if folds is not None or clusters is not None:
            raise ValueError("Fold and cluster labels are part of an existing TrainingSet")
        training_set = training
    else:
        training_set = TrainingSet.from_frame(training, variables, folds=folds, clusters=clusters)

    space = WeightedSpace.from_training(training_set, importance)
    points = space.transform(training_set.X)
    scale = mean_pairwise_distance(points)

    engine = DistanceEngine(
        points, folds=training_set.folds, algorithm=settings.algorithm, leaf_size=settings.leaf_size
    )
    calculator = DICalculator(engine, scale)
    training_di = calculator.training_di()
    estimate = estimate_threshold(training_di, quantile=settings.quantile, method=settings.threshold_method)

    return AOAModel(
        training=training_set,
        space=space,
        calculator=calculator,
        training_di=training_di,
        estimate=estimate,
        settings=settings,
    )


def estimate_aoa(training, query, variables: list = None, folds=None, clusters=None, importance=None,
                 settings: AOASettings = None, **options) -> AOAResult:
    """
    Fit on ``training`` and apply to ``query`` in one call.

    Extra keyword ``options`` build the ``AOASettings`` when ``settings`` is
    not given (e.g. ``quantile=0.9, n_jobs=-1``).
    """
    if settings is None:
        settings = AOASettings(**options)
    elif options:
        raise ValueError("Pass either settings or keyword options, not both")
    model = fit_aoa(training, variables, folds=folds, clusters=clusters, importance=importance, settings=settings)
    return model.apply(query)
