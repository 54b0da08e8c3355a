import numpy as np
import pandas as pd
import pytest

from aoa.data import QueryDomain, TrainingSet
from aoa.errors import DegenerateVariable, InsufficientTrainingData
from aoa.standardize import compute_variable_statistics


def test_statistics_match_population_moments():
    X = np.array([[1.0, 10.0], [2.0, 20.0], [3.0, 60.0]])
    stats = compute_variable_statistics(X, ('a', 'b'))
    np.testing.assert_allclose(stats.mean, [2.0, 30.0])
    np.testing.assert_allclose(stats.sd, X.std(axis=0))
    z = stats.standardize(X)
    np.testing.assert_allclose(z.mean(axis=0), 0.0, atol=1e-12)
    np.testing.assert_allclose(z.std(axis=0), 1.0)


def test_statistics_are_read_only():
    stats = compute_variable_statistics(np.array([[0.0], [1.0]]), ('a',))
    with pytest.raises(ValueError):
        stats.mean[0] = 5.0


def test_constant_variable_is_degenerate():
    X = np.array([[1.0, 4.0], [2.0, 4.0], [3.0, 4.0]])
    with pytest.raises(DegenerateVariable) as exc:
        compute_variable_statistics(X, ('a', 'b'))
    assert exc.value.variable == 'b'
    assert exc.value.stage == 'standardize'


def test_single_row_is_insufficient():
    with pytest.raises(InsufficientTrainingData):
        compute_variable_statistics(np.array([[1.0, 2.0]]), ('a', 'b'))


def test_standardize_rejects_wrong_column_count():
    stats = compute_variable_statistics(np.array([[0.0, 1.0], [1.0, 0.0]]), ('a', 'b'))
    with pytest.raises(ValueError):
        stats.standardize(np.zeros((2, 3)))


def test_training_set_excludes_non_finite_rows():
    df = pd.DataFrame({
        'a': [1.0, np.nan, 3.0, 4.0],
        'b': [1.0, 2.0, np.inf, 0.5],
        'fold': [1, 1, 2, 2],
    })
    with pytest.warns(UserWarning, match="Excluding 2"):
        ts = TrainingSet.from_frame(df, ['a', 'b'], folds='fold')
    assert ts.n_points == 2
    assert ts.n_excluded == 2
    assert list(ts.index) == [0, 3]
    assert list(ts.folds) == [1, 2]


def test_training_set_default_variables_skip_label_columns():
    df = pd.DataFrame({'a': [1.0, 2.0], 'b': [3.0, 1.0], 'fold': [1, 2], 'unit': [7, 8]})
    with pytest.warns(UserWarning, match=r"numeric training columns: \['a', 'b'\]"):
        ts = TrainingSet.from_frame(df, folds='fold', clusters='unit')
    assert ts.variables == ('a', 'b')
    assert list(ts.clusters) == [7, 8]


def test_training_set_requires_complete_fold_labels():
    df = pd.DataFrame({'a': [1.0, 2.0, 3.0], 'fold': ['f1', None, 'f2']})
    with pytest.raises(ValueError, match="Fold labels missing"):
        TrainingSet.from_frame(df, ['a'], folds='fold')


def test_training_set_reports_missing_columns():
    df = pd.DataFrame({'a': [1.0, 2.0]})
    with pytest.raises(ValueError, match="Missing required columns"):
        TrainingSet.from_frame(df, ['a', 'b'])


def test_query_domain_from_stack_marks_no_data():
    stack = np.arange(12, dtype=float).reshape(2, 2, 3)
    stack[1, 0, 2] = np.nan
    domain = QueryDomain.from_stack(stack, ['a', 'b'])
    assert domain.shape == (2, 3)
    assert domain.n_no_data == 1
    assert not domain.valid[2]
    field = domain.to_field(np.arange(5, dtype=float))
    assert field.shape == (2, 3)
    assert np.isnan(field[0, 2])
    assert field[1, 2] == 4.0


def test_query_domain_reorders_variables():
    df = pd.DataFrame({'b': [10.0, 20.0], 'a': [1.0, 2.0], 'extra': ['x', 'y']})
    domain = QueryDomain.from_frame(df, ['b', 'a'])
    np.testing.assert_array_equal(domain.valid_points(('a', 'b')), [[1.0, 10.0], [2.0, 20.0]])
