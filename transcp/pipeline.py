"""transcp Pipeline - Main User Interface"""

import warnings
from typing import Dict, List, Optional

import numpy as np
import pandas as pd
from sklearn.metrics import accuracy_score
from sklearn.preprocessing import LabelEncoder

from .conformal_predictor import ConformalPredictor
from .exceptions import NotTrainedError
from .nonconformity import KNNScorer, NonconformityScorer
from .prediction_sets import (
    compute_set_metrics,
    forced_prediction,
    predict_region,
    region_to_sets,
)


class ConformalClassifier:
    """
    Transductive conformal classifier over arbitrary label values.

    Wraps ``ConformalPredictor`` with a label encoding layer so that
    targets can be strings or any other hashable values, and returns
    results as pandas objects keyed by the original labels.

    Parameters
    ----------
    scorer : NonconformityScorer, optional
        Nonconformity measure. Defaults to ``KNNScorer(k=1)``.

    epsilon : float, default=0.1
        Significance level. Prediction sets miss the true label with
        probability at most epsilon.

    smooth : bool, default=False
        If True, compute smoothed p-values.

    random_seed : int, default=42
        Random seed for smoothed p-values.

    Examples
    --------
    >>> from transcp import ConformalClassifier
    >>>
    >>> clf = ConformalClassifier(epsilon=0.1)
    >>> clf.fit(X_train, y_train)          # y_train like ['cat', 'dog', ...]
    >>>
    >>> pvalues = clf.predict_pvalues(X_test)   # one column per label
    >>> sets = clf.predict_set(X_test)          # e.g. [['cat'], ['cat', 'dog']]
    >>> metrics = clf.evaluate(X_test, y_test)
    """

    def __init__(
        self,
        scorer: Optional[NonconformityScorer] = None,
        epsilon: float = 0.1,
        smooth: bool = False,
        random_seed: int = 42
    ):
        self._check_epsilon(epsilon)

        self.scorer = scorer if scorer is not None else KNNScorer(k=1)
        self.epsilon = epsilon
        self.smooth = smooth
        self.random_seed = random_seed

        # Will be initialized during fit()
        self.predictor = None
        self.label_encoder = None
        self.feature_names = None

    @property
    def classes_(self) -> np.ndarray:
        self._check_fitted()
        return self.label_encoder.classes_

    def fit(
        self,
        X,
        y,
        verbose: bool = False
    ) -> 'ConformalClassifier':
        """
        Fit the classifier on labeled data.

        Parameters
        ----------
        X : array-like or pd.DataFrame, shape (n, d)
            Training objects, one row per object.

        y : array-like, shape (n,)
            Labels of any hashable type.

        verbose : bool, default=False
            Print a summary of the training partition.

        Returns
        -------
        self : ConformalClassifier
            Fitted classifier.
        """
        # Fitted state is only replaced once training succeeds
        objects = self._to_objects(X, feature_names=None)
        feature_names = list(X.columns) if isinstance(X, pd.DataFrame) else None
        y = np.asarray(y)

        if len(objects) == 0:
            raise ValueError("Cannot fit on empty data")
        if len(objects) != len(y):
            raise ValueError(
                f"Length mismatch: X ({len(objects)}) vs y ({len(y)})"
            )

        label_encoder = LabelEncoder()
        targets = label_encoder.fit_transform(y)

        predictor = ConformalPredictor(
            self.scorer,
            epsilon=self.epsilon,
            smooth=self.smooth,
            random_seed=self.random_seed
        )
        predictor.train(objects, targets, verbose=verbose)

        self.feature_names = feature_names
        self.label_encoder = label_encoder
        self.predictor = predictor

        for label, size in zip(self.label_encoder.classes_,
                               self.predictor.partition_sizes):
            if size < 10:
                warnings.warn(
                    f"Label '{label}' has only {size} training objects. "
                    "P-values cannot fall below 1/(n+1); "
                    f"at epsilon={self.epsilon} this label may never be excluded."
                )

        if verbose:
            print(f"  ✓ Fitted on {len(objects)} objects, "
                  f"{len(self.label_encoder.classes_)} labels")

        return self

    def predict_pvalues(self, X) -> pd.DataFrame:
        """
        P-value of every label for every object.

        Returns
        -------
        pvalues : pd.DataFrame, shape (n_test, n_labels)
            Columns are the original label values.
        """
        self._check_fitted()
        objects = self._to_objects(X, feature_names=self.feature_names)
        pvalues = self.predictor.predict_confidence(objects)

        return pd.DataFrame(
            pvalues,
            columns=list(self.label_encoder.classes_),
            index=self._index_of(X)
        )

    def predict_set(
        self,
        X,
        epsilon: Optional[float] = None
    ) -> List[list]:
        """
        Conformal prediction sets.

        Parameters
        ----------
        X : array-like or pd.DataFrame
            Test objects.

        epsilon : float, optional
            Significance level. Defaults to the one given at construction.

        Returns
        -------
        prediction_sets : list of lists
            Original label values included in each object's set.
        """
        epsilon = self.epsilon if epsilon is None else self._check_epsilon(epsilon)
        pvalues = self.predict_pvalues(X)

        region = predict_region(pvalues.values, epsilon)
        return region_to_sets(region, labels=list(pvalues.columns))

    def predict(self, X) -> pd.DataFrame:
        """
        Make predictions with conformal uncertainty.

        Returns
        -------
        predictions : pd.DataFrame
            DataFrame with columns:
            - prediction: Label with the largest p-value
            - credibility: Largest p-value
            - confidence: 1 - second largest p-value
            - prediction_set: Labels with p-value > epsilon
            - set_size: Number of labels in the set
        """
        pvalues = self.predict_pvalues(X)
        labels = list(pvalues.columns)

        predictions = forced_prediction(pvalues.values, labels=labels)
        predictions.index = pvalues.index

        sets = region_to_sets(
            predict_region(pvalues.values, self.epsilon),
            labels=labels
        )
        predictions['prediction_set'] = sets
        predictions['set_size'] = [len(s) for s in sets]

        return predictions

    def evaluate(
        self,
        X_test,
        y_test,
        epsilon: Optional[float] = None,
        verbose: bool = False
    ) -> Dict[str, float]:
        """
        Evaluate on labeled test data.

        Returns
        -------
        metrics : dict
            Dictionary with keys:
            - accuracy: Accuracy of the forced (single-label) predictions
            - coverage: Fraction of objects whose set contains the true label
            - error_rate: 1 - coverage (should not exceed epsilon on average)
            - avg_set_size, singleton_fraction, empty_fraction
            - epsilon: Significance level used
        """
        epsilon = self.epsilon if epsilon is None else self._check_epsilon(epsilon)
        y_test = np.asarray(y_test)

        pvalues = self.predict_pvalues(X_test)
        labels = list(pvalues.columns)

        forced = forced_prediction(pvalues.values, labels=labels)
        sets = region_to_sets(predict_region(pvalues.values, epsilon), labels=labels)
        set_metrics = compute_set_metrics(sets, y_true=list(y_test))

        metrics = {
            'accuracy': accuracy_score(y_test, forced['prediction'].values),
            'coverage': set_metrics['coverage'],
            'error_rate': set_metrics['error_rate'],
            'avg_set_size': set_metrics['avg_size'],
            'singleton_fraction': set_metrics['singleton_fraction'],
            'empty_fraction': set_metrics['empty_fraction'],
            'epsilon': epsilon,
        }

        if verbose:
            print(f"\n{'='*60}")
            print("COVERAGE VALIDATION")
            print(f"{'='*60}")
            print(f"Test samples: {len(y_test)}")
            print(f"  Error rate:       {metrics['error_rate']:.3f} "
                  f"(bound: {epsilon:.3f})")
            print(f"  Forced accuracy:  {metrics['accuracy']:.3f}")
            print(f"  Average set size: {metrics['avg_set_size']:.2f}")
            print(f"  Singleton sets:   {metrics['singleton_fraction']:.1%}")
            print(f"  Empty sets:       {metrics['empty_fraction']:.1%}")

            if metrics['error_rate'] > epsilon:
                print(f"\n⚠ NOTE: Error rate above epsilon on this sample "
                      f"(the bound holds in expectation)")

        return metrics

    # ---- Private methods ----

    def _check_fitted(self):
        if self.predictor is None:
            raise NotTrainedError("Classifier not fitted. Call .fit() first.")

    @staticmethod
    def _check_epsilon(epsilon: float) -> float:
        if not 0 < epsilon < 1:
            raise ValueError(f"epsilon must be in (0,1), got {epsilon}")
        return epsilon

    @staticmethod
    def _to_objects(X, feature_names: Optional[List[str]] = None) -> List[np.ndarray]:
        """
        Convert a 2-D array-like or DataFrame into a list of row vectors.

        DataFrame columns are reordered to ``feature_names`` when given.
        """
        if isinstance(X, pd.DataFrame):
            if feature_names is not None:
                missing = set(feature_names) - set(X.columns)
                if missing:
                    raise ValueError(f"Missing features: {sorted(missing)}")
                X = X[feature_names]
            values = X.to_numpy(dtype=float)
        else:
            values = np.asarray(X, dtype=float)
            if values.ndim == 1:
                values = values.reshape(-1, 1)

        if values.ndim != 2:
            raise ValueError(f"X must be 2-D, got shape {values.shape}")

        return [row for row in values]

    @staticmethod
    def _index_of(X) -> pd.Index:
        if isinstance(X, pd.DataFrame):
            return X.index
        return pd.RangeIndex(len(X))
