"""
AOA mapping workflow
====================
Command-line workflow: training table (+ fold labels) and predictor rasters
or a query table -> weighted predictor space -> training DI and threshold ->
DI / AOA maps, statistics and diagnostic plots.

Example
-------
    python -m aoa --training sites.xlsx --fold-column Site \\
        --raster TA_GS=TA.tif --raster P_GS=P.tif \\
        --importance shap_importance_ranking.csv --output-dir results/
"""

from __future__ import annotations

import argparse
from pathlib import Path

import joblib
import pandas as pd

from .config import DEFAULT_QUANTILE, N_JOBS, OUTPUT_PREFIX, THRESHOLD_METHODS, AOASettings
from .io import check_file_exists, load_feature_raster, read_table, save_aoa_outputs
from .pipeline import fit_aoa
from .plotting import plot_aoa_map, plot_importance_weights, plot_training_di
from .weights import ModelImportance, TableImportance


def print_separator(msg: str, length: int = 80) -> None:
    """
    Print a formatted separator line for log readability.

    Parameters
    ----------
    msg : str
        Message to display in the separator
    length : int, optional
        Total length of the separator line (default: 80)
    """
    print(f"\n{'=' * length}\n{msg}\n{'=' * length}")


def load_importance(importance_path: Path | str = None, model_path: Path | str = None, variables: list = None):
    """Importance from a CSV table or from a joblib-saved fitted model; None if neither is given."""
    if importance_path and model_path:
        raise ValueError("Give either an importance table or a fitted model, not both")
    if importance_path:
        check_file_exists(importance_path, "Importance table")
        return TableImportance(pd.read_csv(importance_path))
    if model_path:
        check_file_exists(model_path, "Fitted model")
        return ModelImportance(joblib.load(model_path), variables)
    return None


def run_workflow(training_path: Path | str, output_dir: Path | str, variables: list = None,
                 raster_paths: dict = None, query_path: Path | str = None, fold_column: str = None,
                 cluster_column: str = None, importance_path: Path | str = None,
                 model_path: Path | str = None, settings: AOASettings = None,
                 prefix: str = OUTPUT_PREFIX, plots: bool = True) -> tuple:
    """
    Run the AOA workflow end to end and write all outputs.

    Parameters
    ----------
    training_path : Path or str
        Training table (CSV or Excel)
    output_dir : Path or str
        Directory for rasters, tables and plots
    variables : list, optional
        Predictor variables (default: raster variables); required with ``query_path``
    raster_paths : dict, optional
        Variable -> predictor raster path of the prediction domain
    query_path : Path or str, optional
        Query table instead of rasters
    fold_column, cluster_column : str, optional
        Fold and cluster columns of the training table
    importance_path, model_path : Path or str, optional
        Importance table (CSV) or joblib-saved fitted model
    settings : AOASettings, optional
        Run options
    prefix : str, optional
        Output file prefix
    plots : bool, optional
        Write diagnostic PNG plots (default: True)

    Returns
    -------
    tuple
        (AOAModel, AOAResult, dict of written outputs)
    """
    if bool(raster_paths) == bool(query_path):
        raise ValueError("Give exactly one prediction domain: predictor rasters or a query table")
    if query_path and not variables:
        raise ValueError("Predictor variables are required with a query table (--variables)")
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    settings = settings or AOASettings()
    if variables is None and raster_paths:
        variables = list(raster_paths)

    print_separator(f"Starting AOA workflow - Results saved to: {output_dir}")
    df = read_table(training_path)
    print(f"Training table shape: {df.shape}")

    importance = load_importance(importance_path, model_path, variables)

    print_separator("Fitting weighted predictor space and training DI")
    model = fit_aoa(df, variables, folds=fold_column, clusters=cluster_column,
                    importance=importance, settings=settings)
    est = model.estimate
    print(f"Usable training points: {model.training.n_points} (excluded: {model.training.n_excluded})")
    print(f"Normalization scale: {model.scale:.4f}")
    print(f"Threshold ({est.method}, q = {est.quantile}): {est.threshold:.4f} "
          f"- training points omitted: {est.n_omitted}")

    print_separator("Computing DI and AOA over the prediction domain")
    meta = None
    if raster_paths:
        domain, meta = load_feature_raster(raster_paths, list(model.variables))
    else:
        domain = read_table(query_path, "Query table")
    result = model.apply(domain)
    stats = result.statistics
    print(f"Locations: {stats.n_query} (no data: {stats.n_no_data}) - "
          f"inside AOA: {stats.n_inside} ({stats.fraction_inside:.1%})")

    written = save_aoa_outputs(result, output_dir, meta=meta, model=model, prefix=prefix)
    if plots:
        written['training_DI_plot'] = plot_training_di(model, output_dir / f'{prefix}_training_DI.png')
        written['weights_plot'] = plot_importance_weights(model.space.weight_table(),
                                                          output_dir / f'{prefix}_weights.png')
        if result.di.ndim == 2:
            written['map_plot'] = plot_aoa_map(result, output_dir / f'{prefix}_map.png')

    print_separator("Workflow completed successfully! All results saved to the specified directory.")
    return model, result, written


def _parse_raster(item: str) -> tuple:
    name, sep, path = item.partition('=')
    if not sep or not name or not path:
        raise argparse.ArgumentTypeError(f"Raster must be given as VARIABLE=PATH, got '{item}'")
    return name, path


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='aoa', description="Area of applicability of spatial prediction models")
    parser.add_argument('--training', required=True, help="Training table (CSV or Excel)")
    parser.add_argument('--raster', action='append', type=_parse_raster, default=[],
                        metavar='VARIABLE=PATH', help="Predictor raster of the prediction domain (repeatable)")
    parser.add_argument('--query', help="Query table instead of rasters")
    parser.add_argument('--variables', nargs='+', help="Predictor variables")
    parser.add_argument('--fold-column', help="Cross-validation fold column of the training table")
    parser.add_argument('--cluster-column', help="Cluster/unit column of the training table")
    parser.add_argument('--importance', help="Variable importance table (CSV with a 'feature' column)")
    parser.add_argument('--model', help="joblib-saved fitted model providing variable importance")
    parser.add_argument('--quantile', type=float, default=DEFAULT_QUANTILE, help="Threshold quantile")
    parser.add_argument('--threshold-method', choices=THRESHOLD_METHODS, default='quantile')
    parser.add_argument('--lpd', action='store_true', help="Also compute local point density")
    parser.add_argument('--n-jobs', type=int, default=N_JOBS)
    parser.add_argument('--output-dir', required=True)
    parser.add_argument('--prefix', default=OUTPUT_PREFIX)
    parser.add_argument('--no-plots', action='store_true')
    return parser


def main(argv: list = None) -> int:
    """Main workflow: training table -> threshold -> DI / AOA outputs"""
    args = build_parser().parse_args(argv)
    settings = AOASettings(
        quantile=args.quantile,
        threshold_method=args.threshold_method,
        n_jobs=args.n_jobs,
        compute_lpd=args.lpd,
        progress=True,
    )
    run_workflow(
        training_path=args.training,
        output_dir=args.output_dir,
        variables=args.variables,
        raster_paths=dict(args.raster) or None,
        query_path=args.query,
        fold_column=args.fold_column,
        cluster_column=args.cluster_column,
        importance_path=args.importance,
        model_path=args.model,
        settings=settings,
        prefix=args.prefix,
        plots=not args.no_plots,
    )
    return 0
