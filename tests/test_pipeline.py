"""
Unit Tests for the transcp Pipeline
===================================

Test suite for ConformalClassifier including:
- Initialization
- Data validation
- Fit/predict workflow
- Evaluation
"""

import warnings

import numpy as np
import pandas as pd
import pytest

from transcp import (
    ConformalClassifier,
    KNNScorer,
    NotTrainedError,
    __version__,
)


# ============================================================================
# Test Fixtures
# ============================================================================

@pytest.fixture
def blob_data():
    """Two well separated Gaussian blobs, 30 objects each."""
    rng = np.random.default_rng(42)

    X = np.vstack([
        rng.normal(loc=0.0, scale=1.0, size=(30, 2)),
        rng.normal(loc=10.0, scale=1.0, size=(30, 2)),
    ])
    y = np.array(['cat'] * 30 + ['dog'] * 30)

    return pd.DataFrame(X, columns=['x1', 'x2']), y


@pytest.fixture
def fitted_classifier(blob_data):
    X, y = blob_data
    return ConformalClassifier(epsilon=0.1).fit(X, y)


# ============================================================================
# Test 1: Initialization
# ============================================================================

def test_classifier_defaults():
    clf = ConformalClassifier()

    assert clf.epsilon == 0.1
    assert clf.smooth is False
    assert clf.random_seed == 42
    assert isinstance(clf.scorer, KNNScorer)
    assert clf.predictor is None


def test_classifier_custom_scorer():
    scorer = KNNScorer(k=3)
    clf = ConformalClassifier(scorer=scorer)

    assert clf.scorer is scorer


@pytest.mark.parametrize("epsilon", [0.0, 1.0, -0.2])
def test_classifier_invalid_epsilon(epsilon):
    with pytest.raises(ValueError):
        ConformalClassifier(epsilon=epsilon)


def test_version_available():
    assert isinstance(__version__, str)
    assert len(__version__) > 0


# ============================================================================
# Test 2: Data Validation
# ============================================================================

def test_fit_with_empty_data():
    with pytest.raises(ValueError):
        ConformalClassifier().fit([], [])


def test_fit_length_mismatch():
    with pytest.raises(ValueError):
        ConformalClassifier().fit([[0., 0.], [1., 1.]], ['a'])


def test_fit_small_label_warns():
    with pytest.warns(UserWarning):
        ConformalClassifier().fit([[0.], [1.], [5.]], ['a', 'a', 'b'])


def test_predict_without_fit_raises_error():
    clf = ConformalClassifier()

    with pytest.raises(NotTrainedError):
        clf.predict_pvalues([[0., 0.]])
    with pytest.raises(RuntimeError):
        clf.predict([[0., 0.]])


def test_predict_with_missing_feature(fitted_classifier):
    with pytest.raises(ValueError):
        fitted_classifier.predict(pd.DataFrame({'x1': [0.0]}))


def test_failed_refit_keeps_fitted_state(fitted_classifier, blob_data):
    """A rejected refit must not change column order or the trained model."""
    X, y = blob_data
    X_test = pd.DataFrame({'x1': [1.0, 9.0, 0.0], 'x2': [8.0, 2.0, 10.0]})
    predictor = fitted_classifier.predictor
    before = fitted_classifier.predict_pvalues(X_test)

    with pytest.raises(ValueError):
        fitted_classifier.fit(X[['x2', 'x1']], y[:-1])
    with pytest.raises(ValueError):
        fitted_classifier.fit(X.values, y[:-1])

    assert fitted_classifier.feature_names == ['x1', 'x2']
    assert fitted_classifier.predictor is predictor
    pd.testing.assert_frame_equal(fitted_classifier.predict_pvalues(X_test), before)
    with pytest.raises(ValueError):
        fitted_classifier.predict(pd.DataFrame({'x1': [0.0]}))


@pytest.mark.parametrize("epsilon", [0.0, 1.0, 1.5, -0.1])
def test_epsilon_override_validated(fitted_classifier, epsilon):
    X_test = pd.DataFrame({'x1': [0.0], 'x2': [0.0]})

    with pytest.raises(ValueError):
        fitted_classifier.predict_set(X_test, epsilon=epsilon)
    with pytest.raises(ValueError):
        fitted_classifier.evaluate(X_test, ['cat'], epsilon=epsilon)


# ============================================================================
# Test 3: Fit/Predict
# ============================================================================

def test_fit_returns_self(blob_data):
    X, y = blob_data
    clf = ConformalClassifier()

    assert clf.fit(X, y) is clf
    assert list(clf.classes_) == ['cat', 'dog']
    assert clf.feature_names == ['x1', 'x2']
    assert clf.predictor.partition_sizes == [30, 30]


def test_predict_pvalues_columns(fitted_classifier):
    X_test = pd.DataFrame({'x1': [0.0, 10.0], 'x2': [0.0, 10.0]},
                          index=['p', 'q'])

    pvalues = fitted_classifier.predict_pvalues(X_test)

    assert list(pvalues.columns) == ['cat', 'dog']
    assert list(pvalues.index) == ['p', 'q']
    assert ((pvalues >= 0) & (pvalues <= 1)).all().all()


def test_predict_set_separates_blobs(fitted_classifier):
    X_test = pd.DataFrame({'x1': [0.0, 10.0], 'x2': [0.0, 10.0]})

    sets = fitted_classifier.predict_set(X_test)

    assert sets == [['cat'], ['dog']]


def test_predict_set_with_tiny_epsilon_keeps_all_labels(fitted_classifier):
    """Below 1/(n+1) no label can be excluded."""
    X_test = pd.DataFrame({'x1': [0.0], 'x2': [0.0]})

    sets = fitted_classifier.predict_set(X_test, epsilon=0.01)

    assert sets == [['cat', 'dog']]


def test_predict_returns_dataframe(fitted_classifier):
    X_test = pd.DataFrame({'x2': [0.0, 10.0], 'x1': [0.0, 10.0]})

    predictions = fitted_classifier.predict(X_test)

    expected_cols = {'prediction', 'credibility', 'confidence',
                     'prediction_set', 'set_size'}
    assert set(predictions.columns) >= expected_cols
    assert list(predictions['prediction']) == ['cat', 'dog']
    assert list(predictions['set_size']) == [1, 1]
    assert (predictions['confidence'] > 0.9).all()


def test_predict_accepts_arrays(blob_data):
    X, y = blob_data
    clf = ConformalClassifier().fit(X.values, y)

    predictions = clf.predict(np.array([[0.0, 0.0]]))

    assert clf.feature_names is None
    assert predictions['prediction'].iloc[0] == 'cat'


# ============================================================================
# Test 4: Evaluate
# ============================================================================

def test_evaluate_returns_metrics(fitted_classifier):
    rng = np.random.default_rng(7)
    X_test = pd.DataFrame(
        np.vstack([rng.normal(0.0, 1.0, size=(10, 2)),
                   rng.normal(10.0, 1.0, size=(10, 2))]),
        columns=['x1', 'x2']
    )
    y_test = ['cat'] * 10 + ['dog'] * 10

    metrics = fitted_classifier.evaluate(X_test, y_test)

    expected_metrics = {'accuracy', 'coverage', 'error_rate', 'avg_set_size',
                        'singleton_fraction', 'empty_fraction', 'epsilon'}
    assert set(metrics.keys()) >= expected_metrics
    assert metrics['accuracy'] >= 0.8
    assert 0 <= metrics['coverage'] <= 1
    assert metrics['error_rate'] == pytest.approx(1 - metrics['coverage'])
    assert 0 <= metrics['avg_set_size'] <= 2
    assert metrics['epsilon'] == 0.1


def test_smoothed_classifier_reproducible(blob_data):
    X, y = blob_data
    X_test = pd.DataFrame({'x1': [0.5, 9.5], 'x2': [0.5, 9.5]})

    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        p1 = ConformalClassifier(smooth=True, random_seed=3).fit(X, y).predict_pvalues(X_test)
        p2 = ConformalClassifier(smooth=True, random_seed=3).fit(X, y).predict_pvalues(X_test)

    pd.testing.assert_frame_equal(p1, p2)


# ============================================================================
# Run Tests
# ============================================================================

if __name__ == "__main__":
    pytest.main([__file__, "-v", "--tb=short"])
