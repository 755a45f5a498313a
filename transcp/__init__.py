"""
transcp: Transductive Conformal Prediction

Set-valued classification with p-values for every candidate label and a
user-chosen bound on the probability of excluding the true label.
"""

from .version import __version__, __author__, __description__
from .exceptions import (
    ConformalError,
    InvalidInputError,
    NotTrainedError,
    EpsilonNotSetError,
    ScoringError,
)
from .nonconformity import NonconformityScorer, KNNScorer
from .conformal_predictor import ConformalPredictor, pvalue, smoothed_pvalue
from .prediction_sets import (
    predict_region,
    region_to_sets,
    forced_prediction,
    classify_set_type,
    compute_set_metrics,
)
from .pipeline import ConformalClassifier

__all__ = [
    'ConformalPredictor',
    'ConformalClassifier',
    'NonconformityScorer',
    'KNNScorer',
    'pvalue',
    'smoothed_pvalue',
    'predict_region',
    'region_to_sets',
    'forced_prediction',
    'classify_set_type',
    'compute_set_metrics',
    'ConformalError',
    'InvalidInputError',
    'NotTrainedError',
    'EpsilonNotSetError',
    'ScoringError',
    '__version__',
    '__author__',
    '__description__',
]
