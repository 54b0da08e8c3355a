import numpy as np
import pandas as pd
import pytest
import rasterio
from rasterio.transform import from_origin

from aoa.config import RANDOM_STATE

FEATURES = ['TA_GS', 'P_GS', 'LAI_GS']


@pytest.fixture
def triangle_training() -> pd.DataFrame:
    """Three training sites at (0,0), (1,0), (0,1), each its own fold."""
    return pd.DataFrame({
        'x': [0.0, 1.0, 0.0],
        'y': [0.0, 0.0, 1.0],
        'Site': ['s1', 's2', 's3'],
    })


@pytest.fixture
def site_training() -> pd.DataFrame:
    """60 observations at 12 sites with site-level offsets."""
    rng = np.random.default_rng(RANDOM_STATE)
    sites = np.repeat([f'site_{i:02d}' for i in range(12)], 5)
    offsets = rng.normal(0, 3, size=(12, len(FEATURES))).repeat(5, axis=0)
    values = offsets + rng.normal(0, 0.5, size=(60, len(FEATURES)))
    df = pd.DataFrame(values, columns=FEATURES)
    df['Site'] = sites
    df['Cluster'] = np.repeat(np.arange(4), 15)
    df['LUEmax'] = values @ np.array([0.5, -0.2, 0.1]) + rng.normal(0, 0.1, 60)
    return df


def write_raster(path, array: np.ndarray, nodata=None) -> None:
    height, width = array.shape
    meta = {
        'driver': 'GTiff',
        'height': height,
        'width': width,
        'count': 1,
        'dtype': 'float32',
        'crs': 'EPSG:4326',
        'transform': from_origin(100.0, 40.0, 0.5, 0.5),
        'nodata': nodata,
    }
    with rasterio.open(path, 'w', **meta) as dst:
        dst.write(array.astype('float32'), 1)


@pytest.fixture
def raster_paths(tmp_path, site_training) -> dict:
    """Predictor rasters (6 x 8) spanning and exceeding the training range."""
    paths = {}
    grid = np.linspace(-1.0, 1.0, 48).reshape(6, 8)
    for i, feat in enumerate(FEATURES):
        lo, hi = site_training[feat].min(), site_training[feat].max()
        band = (lo + hi) / 2 + grid * (hi - lo) * (0.6 + 0.4 * i)
        if feat == 'P_GS':
            band[0, 0] = -9999.0
        path = tmp_path / f'{feat}.tif'
        write_raster(path, band, nodata=-9999.0)
        paths[feat] = path
    return paths
