"""
Raster and table I/O around the AOA core
========================================
Reads the training table and the predictor rasters of the prediction domain,
and writes DI / AOA / LPD GeoTIFFs plus the statistics tables.
"""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pandas as pd
import rasterio

from .config import AOA_NODATA, OUTPUT_PREFIX
from .data import QueryDomain


def check_file_exists(file_path: Path | str, desc: str = "File") -> None:
    """
    Check if a file exists and raise FileNotFoundError if not.

    Parameters
    ----------
    file_path : Path or str
        Path to the target file
    desc : str, optional
        Description of the file for error message (default: "File")

    Raises
    ------
    FileNotFoundError
        If the file does not exist at the specified path
    """
    path = Path(file_path)
    if not path.exists():
        raise FileNotFoundError(f"{desc} not found: {path.absolute()}")


def read_table(path: Path | str, desc: str = "Training table") -> pd.DataFrame:
    """Read a training or query table from CSV or Excel."""
    check_file_exists(path, desc)
    path = Path(path)
    if path.suffix.lower() == '.csv':
        return pd.read_csv(path)
    return pd.read_excel(path)


def validate_raster_size(raster_paths: dict, reference_var: str = None) -> tuple:
    """
    Validate all predictor rasters have the same dimensions.

    Parameters
    ----------
    raster_paths : dict
        Mapping of variable names to raster file paths
    reference_var : str, optional
        Variable whose raster is the reference (default: first in dict)

    Returns
    -------
    tuple
        (reference height/width, reference raster metadata)

    Raises
    ------
    ValueError
        If raster dimensions mismatch across variables
    FileNotFoundError
        If a raster file is missing
    """
    if not raster_paths:
        raise ValueError("No predictor rasters given")
    if not reference_var:
        reference_var = list(raster_paths.keys())[0]
    check_file_exists(raster_paths[reference_var], f"Reference raster ({reference_var})")

    with rasterio.open(raster_paths[reference_var]) as src:
        ref_dims = src.shape
        ref_meta = src.meta.copy()

    for var, path in raster_paths.items():
        check_file_exists(path, f"Predictor raster ({var})")
        with rasterio.open(path) as src:
            if src.shape != ref_dims:
                raise ValueError(
                    f"Raster dimension mismatch: {var} ({src.shape}) vs reference {reference_var} ({ref_dims})"
                )
    return ref_dims, ref_meta


def load_feature_raster(raster_paths: dict, variables: list) -> tuple:
    """
    Load predictor rasters as a query domain.

    NaN and nodata pixels of any band make the pixel "no data".

    Parameters
    ----------
    raster_paths : dict
        Mapping of variable names to raster file paths
    variables : list
        Variables to load, in predictor order

    Returns
    -------
    tuple
        (QueryDomain with one location per pixel, reference raster metadata)

    Raises
    ------
    ValueError
        If some variables lack a raster file or raster sizes differ
    """
    missing_vars = [v for v in variables if v not in raster_paths]
    if missing_vars:
        raise ValueError(f"No raster files found for variables: {missing_vars}")

    paths = {v: raster_paths[v] for v in variables}
    ref_dims, ref_meta = validate_raster_size(paths, variables[0])

    stack = np.empty((len(variables),) + tuple(ref_dims), dtype=np.float64)
    for i, var in enumerate(variables):
        with rasterio.open(paths[var]) as src:
            band_data = src.read(1).astype(np.float64)
            nodata_mask = np.isnan(band_data)
            if src.nodata is not None and not np.isnan(src.nodata):
                nodata_mask |= band_data == src.nodata
            band_data[nodata_mask] = np.nan
            stack[i] = band_data

    return QueryDomain.from_stack(stack, variables), ref_meta


def save_tif(output_path: Path, data: np.ndarray, meta: dict, dtype: str = 'float32', nodata=np.nan) -> Path:
    """
    Save a 2-D field to a single-band GeoTIFF with the reference georeferencing.

    Parameters
    ----------
    output_path : Path
        Output file path
    data : np.ndarray
        Field of shape (height, width)
    meta : dict
        Reference raster metadata
    dtype : str, optional
        Output data type (default: 'float32')
    nodata : scalar, optional
        Nodata value written to the metadata (default: NaN)

    Raises
    ------
    ValueError
        If the field shape does not match the reference raster
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(exist_ok=True, parents=True)
    if data.shape != (meta['height'], meta['width']):
        raise ValueError(f"Field shape {data.shape} does not match raster ({meta['height']}, {meta['width']})")

    out_meta = meta.copy()
    out_meta.update({
        'driver': 'GTiff',
        'dtype': dtype,
        'count': 1,
        'nodata': nodata,
        'compress': 'lzw'
    })
    with rasterio.open(output_path, 'w', **out_meta) as dst:
        dst.write(data.astype(dtype), 1)
    return output_path


def save_aoa_outputs(result, output_dir: Path, meta: dict = None, model=None, prefix: str = OUTPUT_PREFIX) -> dict:
    """
    Write the outputs of an AOA run.

    Raster results (with ``meta``) are written as DI / AOA / LPD GeoTIFFs,
    tabular results as one CSV. Statistics, and the training DI of ``model``
    when given, are written as CSV tables.

    Parameters
    ----------
    result : AOAResult
        Result of ``AOAModel.apply``
    output_dir : Path
        Directory for all outputs (created if missing)
    meta : dict, optional
        Reference raster metadata; required for raster results
    model : AOAModel, optional
        Fitted model whose training DI is exported
    prefix : str, optional
        File name prefix (default: 'AOA')

    Returns
    -------
    dict
        Output name -> written path
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(exist_ok=True, parents=True)
    written = {}

    if result.di.ndim == 2:
        if meta is None:
            raise ValueError("Raster metadata required to write raster outputs")
        written['DI'] = save_tif(output_dir / f'{prefix}_DI.tif', result.di, meta)
        written['AOA'] = save_tif(output_dir / f'{prefix}_AOA.tif', result.aoa_codes(), meta,
                                  dtype='uint8', nodata=AOA_NODATA)
        if result.lpd is not None:
            written['LPD'] = save_tif(output_dir / f'{prefix}_LPD.tif', result.lpd, meta)
    else:
        written['table'] = output_dir / f'{prefix}_DI_AOA.csv'
        result.to_frame().to_csv(written['table'])

    written['statistics'] = output_dir / f'{prefix}_statistics.csv'
    result.statistics.to_frame().to_csv(written['statistics'], index=False)

    if model is not None:
        written['training_DI'] = output_dir / f'{prefix}_training_DI.csv'
        model.training_di_frame().to_csv(written['training_DI'])
    return written
