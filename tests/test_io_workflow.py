import joblib
import numpy as np
import pandas as pd
import pytest
import rasterio
from sklearn.ensemble import RandomForestRegressor

from aoa import fit_aoa
from aoa.config import AOA_NODATA, RANDOM_STATE
from aoa.io import check_file_exists, load_feature_raster, read_table, save_aoa_outputs, validate_raster_size
from aoa.plotting import plot_aoa_map, plot_importance_weights, plot_training_di
from aoa.workflow import load_importance, main, run_workflow
from tests.conftest import FEATURES, write_raster


def test_check_file_exists(tmp_path):
    with pytest.raises(FileNotFoundError, match="Training table"):
        check_file_exists(tmp_path / 'missing.xlsx', "Training table")


def test_read_table_csv_and_excel(tmp_path, site_training):
    site_training.to_csv(tmp_path / 'train.csv', index=False)
    site_training.to_excel(tmp_path / 'train.xlsx', index=False)
    pd.testing.assert_frame_equal(read_table(tmp_path / 'train.csv'), site_training)
    assert read_table(tmp_path / 'train.xlsx').shape == site_training.shape


def test_raster_size_mismatch(tmp_path, raster_paths):
    odd = tmp_path / 'odd.tif'
    write_raster(odd, np.zeros((3, 3)))
    with pytest.raises(ValueError, match="dimension mismatch"):
        validate_raster_size({**raster_paths, 'odd': odd})


def test_load_feature_raster_marks_nodata(raster_paths):
    domain, meta = load_feature_raster(raster_paths, FEATURES)
    assert domain.shape == (6, 8)
    assert domain.n_no_data == 1
    assert not domain.valid[0]
    assert meta['width'] == 8
    with pytest.raises(ValueError, match="No raster files"):
        load_feature_raster(raster_paths, FEATURES + ['SOC'])


def test_save_aoa_outputs_rasters(tmp_path, site_training, raster_paths):
    model = fit_aoa(site_training, FEATURES, folds='Site', clusters='Cluster')
    domain, meta = load_feature_raster(raster_paths, FEATURES)
    result = model.apply(domain)
    written = save_aoa_outputs(result, tmp_path / 'out', meta=meta, model=model)

    with rasterio.open(written['AOA']) as src:
        codes = src.read(1)
        assert src.nodata == AOA_NODATA
    assert codes[0, 0] == AOA_NODATA
    np.testing.assert_array_equal(codes[result.valid], result.aoa[result.valid].astype(np.uint8))

    with rasterio.open(written['DI']) as src:
        di = src.read(1)
    assert np.isnan(di[0, 0])
    np.testing.assert_allclose(di[result.valid], result.di[result.valid], rtol=1e-6)

    stats = pd.read_csv(written['statistics'])
    assert 'threshold' in set(stats['statistic'])
    training_di = pd.read_csv(written['training_DI'], index_col=0)
    assert len(training_di) == 60
    assert {'fold', 'cluster', 'DI'} <= set(training_di.columns)


def test_save_aoa_outputs_table(tmp_path, site_training):
    model = fit_aoa(site_training, FEATURES, folds='Site')
    result = model.apply(site_training[FEATURES].head(5))
    written = save_aoa_outputs(result, tmp_path)
    table = pd.read_csv(written['table'], index_col=0)
    assert list(table.columns) == ['DI', 'AOA']
    with pytest.raises(ValueError, match="metadata"):
        save_aoa_outputs(model.apply(np.zeros((3, 2, 2))), tmp_path)


def test_plots(tmp_path, site_training):
    model = fit_aoa(site_training, FEATURES, folds='Site')
    stack = np.stack([np.linspace(-5, 5, 20).reshape(4, 5)] * 3)
    result = model.apply(stack)
    assert plot_training_di(model, tmp_path / 'di.png').exists()
    assert plot_importance_weights(model.space.weight_table(), tmp_path / 'w.png').exists()
    assert plot_aoa_map(result, tmp_path / 'map.png').exists()
    with pytest.raises(ValueError):
        plot_aoa_map(model.apply(site_training[FEATURES]), tmp_path / 'bad.png')


def test_load_importance_from_saved_model(tmp_path, site_training):
    model = RandomForestRegressor(n_estimators=10, random_state=RANDOM_STATE)
    model.fit(site_training[FEATURES], site_training['LUEmax'])
    joblib.dump(model, tmp_path / 'rf.joblib')
    provider = load_importance(model_path=tmp_path / 'rf.joblib')
    assert set(provider.importance()) == set(FEATURES)
    assert load_importance() is None
    with pytest.raises(ValueError):
        load_importance(tmp_path / 'a.csv', tmp_path / 'rf.joblib')


def test_run_workflow_with_rasters(tmp_path, site_training, raster_paths):
    site_training.to_csv(tmp_path / 'train.csv', index=False)
    pd.DataFrame({'feature': FEATURES, 'shap_importance': [0.5, 0.3, 0.2]}).to_csv(
        tmp_path / 'importance.csv', index=False)
    model, result, written = run_workflow(
        training_path=tmp_path / 'train.csv',
        output_dir=tmp_path / 'results',
        raster_paths=raster_paths,
        fold_column='Site',
        importance_path=tmp_path / 'importance.csv',
    )
    assert model.variables == tuple(FEATURES)
    np.testing.assert_allclose(model.space.weights, [1.5, 0.9, 0.6])
    assert result.di.shape == (6, 8)
    for key in ('DI', 'AOA', 'statistics', 'training_DI', 'training_DI_plot', 'weights_plot', 'map_plot'):
        assert written[key].exists()


def test_main_with_query_table(tmp_path, site_training):
    site_training.to_csv(tmp_path / 'train.csv', index=False)
    query = pd.DataFrame(np.random.default_rng(3).normal(0, 3, size=(25, 3)), columns=FEATURES)
    query.to_csv(tmp_path / 'query.csv', index=False)
    code = main([
        '--training', str(tmp_path / 'train.csv'),
        '--query', str(tmp_path / 'query.csv'),
        '--variables', *FEATURES,
        '--fold-column', 'Site',
        '--quantile', '0.9',
        '--lpd',
        '--output-dir', str(tmp_path / 'cli'),
        '--no-plots',
    ])
    assert code == 0
    table = pd.read_csv(tmp_path / 'cli' / 'AOA_DI_AOA.csv', index_col=0)
    assert len(table) == 25
    assert list(table.columns) == ['DI', 'AOA', 'LPD']
    stats = pd.read_csv(tmp_path / 'cli' / 'AOA_statistics.csv').set_index('statistic')['value']
    assert float(stats['quantile']) == 0.9


def test_workflow_requires_one_domain(tmp_path):
    with pytest.raises(ValueError, match="exactly one"):
        run_workflow(tmp_path / 'train.csv', tmp_path)


def test_query_table_requires_variables(tmp_path, site_training):
    site_training.to_csv(tmp_path / 'train.csv', index=False)
    site_training[FEATURES].to_csv(tmp_path / 'query.csv', index=False)
    with pytest.raises(ValueError, match="--variables"):
        main(['--training', str(tmp_path / 'train.csv'), '--query', str(tmp_path / 'query.csv'),
              '--output-dir', str(tmp_path / 'cli')])
