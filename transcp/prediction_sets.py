"""
Prediction Set Analysis Helpers

Utility functions for turning p-value matrices into prediction sets and
summarising collections of prediction sets.

"""

from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd


def predict_region(
    pvalues: np.ndarray,
    epsilon: float
) -> np.ndarray:
    """
    Threshold a p-value matrix at significance level epsilon.

    Parameters
    ----------
    pvalues : np.ndarray, shape (n_test, n_labels)
        P-values from ``ConformalPredictor.predict_confidence``
    epsilon : float
        Significance level

    Returns
    -------
    region : np.ndarray of bool, shape (n_test, n_labels)
        True where the p-value is strictly greater than epsilon
    """
    return np.asarray(pvalues, dtype=float) > epsilon


def region_to_sets(
    region: np.ndarray,
    labels: Optional[Sequence] = None
) -> List[list]:
    """
    Convert a boolean region matrix into one label list per test object.

    Parameters
    ----------
    region : np.ndarray of bool, shape (n_test, n_labels)
        Region prediction
    labels : sequence, optional
        Label value for each column. Defaults to the column indices.

    Returns
    -------
    prediction_sets : list of lists

    Examples
    --------
    >>> region_to_sets(np.array([[True, False], [True, True]]), labels=['a', 'b'])
    [['a'], ['a', 'b']]
    """
    region = np.asarray(region, dtype=bool)
    if labels is None:
        labels = list(range(region.shape[1]))
    elif len(labels) != region.shape[1]:
        raise ValueError(
            f"Length mismatch: labels ({len(labels)}) vs "
            f"region columns ({region.shape[1]})"
        )

    return [
        [labels[y] for y in np.flatnonzero(row)]
        for row in region
    ]


def forced_prediction(
    pvalues: np.ndarray,
    labels: Optional[Sequence] = None
) -> pd.DataFrame:
    """
    Single-label prediction with confidence and credibility.

    Parameters
    ----------
    pvalues : np.ndarray, shape (n_test, n_labels)
        P-value matrix
    labels : sequence, optional
        Label value for each column. Defaults to the column indices.

    Returns
    -------
    forced : pd.DataFrame
        Columns:
        - 'prediction': label with the largest p-value
        - 'credibility': largest p-value
        - 'confidence': 1 - second largest p-value (1.0 with one label)

    Notes
    -----
    Low credibility means no label fits the object well; low confidence
    means at least two labels fit it comparably.
    """
    pvalues = np.asarray(pvalues, dtype=float)
    n_test, n_labels = pvalues.shape
    if n_labels == 0:
        raise ValueError("pvalues must have at least one label column")
    if labels is None:
        labels = list(range(n_labels))

    best = np.argmax(pvalues, axis=1)
    sorted_p = np.sort(pvalues, axis=1)
    credibility = sorted_p[:, -1]
    if n_labels > 1:
        confidence = 1.0 - sorted_p[:, -2]
    else:
        confidence = np.ones(n_test)

    return pd.DataFrame({
        'prediction': [labels[y] for y in best],
        'credibility': credibility,
        'confidence': confidence,
    })


def classify_set_type(
    prediction_set: Sequence
) -> Tuple[str, str, str]:
    """
    Classify prediction set by size and provide interpretation.

    Parameters
    ----------
    prediction_set : sequence
        Prediction set, e.g., [0], [0, 2], or []

    Returns
    -------
    set_type : str
        'empty', 'singleton', or 'multiple'
    confidence_level : str
        'invalid', 'high', or 'uncertain'
    interpretation : str

    Examples
    --------
    >>> classify_set_type([1])
    ('singleton', 'high', 'High confidence: label 1')
    """
    if len(prediction_set) == 0:
        return (
            'empty',
            'invalid',
            'No label conforms at this significance level'
        )
    elif len(prediction_set) == 1:
        return (
            'singleton',
            'high',
            f'High confidence: label {prediction_set[0]}'
        )
    else:
        return (
            'multiple',
            'uncertain',
            f'Uncertain: {len(prediction_set)} labels plausible'
        )


def compute_set_metrics(
    prediction_sets: List[list],
    y_true: Optional[Sequence] = None
) -> Dict[str, float]:
    """
    Compute aggregate metrics for collection of prediction sets.

    Parameters
    ----------
    prediction_sets : list of lists
        Collection of prediction sets
    y_true : sequence, optional
        True labels for coverage calculation

    Returns
    -------
    metrics : dict
        Dictionary with keys:
        - 'avg_size': Average set size
        - 'singleton_fraction': Fraction of singleton sets
        - 'multiple_fraction': Fraction of sets with 2+ labels
        - 'empty_fraction': Fraction of empty sets
        - 'coverage': Empirical coverage (if y_true provided)
        - 'error_rate': 1 - coverage (if y_true provided)

    Examples
    --------
    >>> sets = [[0], [1], [0, 1], [], [1]]
    >>> compute_set_metrics(sets)['avg_size']
    1.0
    """
    n = len(prediction_sets)
    if n == 0:
        raise ValueError("prediction_sets is empty")

    set_sizes = np.array([len(s) for s in prediction_sets])

    metrics = {
        'avg_size': float(set_sizes.mean()),
        'singleton_fraction': float(np.mean(set_sizes == 1)),
        'multiple_fraction': float(np.mean(set_sizes >= 2)),
        'empty_fraction': float(np.mean(set_sizes == 0)),
    }

    # Compute coverage if labels provided
    if y_true is not None:
        if len(y_true) != n:
            raise ValueError(
                f"Length mismatch: y_true ({len(y_true)}) vs "
                f"prediction_sets ({n})"
            )
        coverage = float(np.mean([
            y in s for y, s in zip(y_true, prediction_sets)
        ]))
        metrics['coverage'] = coverage
        metrics['error_rate'] = 1.0 - coverage

    return metrics
