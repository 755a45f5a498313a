"""
Transductive Conformal Predictor

For every test object and every candidate label, the object is temporarily
added to that label's training pool, nonconformity scores are recomputed for
the whole augmented pool, and the p-value is the rank of the candidate's
score among them. Region predictions keep the labels whose p-value exceeds
the significance level epsilon.

"""

import warnings
from typing import List, Optional, Sequence

import numpy as np

from .exceptions import (
    EpsilonNotSetError,
    InvalidInputError,
    NotTrainedError,
    ScoringError,
)
from .nonconformity import NonconformityScorer


def pvalue(scores: np.ndarray) -> float:
    """
    Conformal p-value of the last score in ``scores``.

    p = #{k : scores[k] >= scores[-1]} / n

    Ties count fully towards the numerator, which makes the p-value
    conservative.

    Parameters
    ----------
    scores : np.ndarray, shape (n,)
        Nonconformity scores of the augmented pool; the last entry belongs
        to the candidate object

    Returns
    -------
    p : float
        P-value in (0, 1]
    """
    scores = np.asarray(scores, dtype=float)
    return float(np.count_nonzero(scores >= scores[-1])) / scores.shape[0]


def smoothed_pvalue(scores: np.ndarray, r: float) -> float:
    """
    Smoothed conformal p-value of the last score in ``scores``.

    p = (#{k : scores[k] > scores[-1]} + r * #{k : scores[k] == scores[-1]}) / n

    Parameters
    ----------
    scores : np.ndarray, shape (n,)
        Nonconformity scores of the augmented pool; the last entry belongs
        to the candidate object
    r : float
        Tie-breaking draw from Uniform(0, 1)

    Returns
    -------
    p : float
        P-value in [0, 1]
    """
    scores = np.asarray(scores, dtype=float)
    candidate = scores[-1]
    greater = np.count_nonzero(scores > candidate)
    equal = np.count_nonzero(scores == candidate)
    return (greater + r * equal) / scores.shape[0]


class ConformalPredictor:
    """
    Transductive conformal predictor for classification.

    Produces a p-value for every (test object, label) pair and set-valued
    predictions whose error rate is bounded by epsilon under
    exchangeability.

    Parameters
    ----------
    scorer : NonconformityScorer
        Nonconformity measure used to score augmented label pools
    epsilon : float, optional (default=None)
        Significance level used by ``predict``. Conventionally in (0, 1).
    smooth : bool, optional (default=False)
        If True, compute smoothed p-values (ties broken by a uniform draw)
    random_seed : int, optional (default=None)
        Seed for the generator used by smoothing. Ignored if ``rng`` is given.
    rng : np.random.Generator, optional (default=None)
        Random generator used by smoothing

    Attributes
    ----------
    train_inputs_ : list of lists
        Training objects grouped by label: ``train_inputs_[y]`` holds the
        objects with label ``y`` in their original order. None before
        ``train``.

    Examples
    --------
    >>> cp = ConformalPredictor(KNNScorer(k=2), epsilon=0.1)
    >>> cp.train(X_train, y_train)
    >>> pvalues = cp.predict_confidence(X_test)   # shape (n_test, n_labels)
    >>> region = cp.predict(X_test)               # boolean, pvalues > 0.1
    """

    def __init__(
        self,
        scorer: NonconformityScorer,
        epsilon: Optional[float] = None,
        smooth: bool = False,
        random_seed: Optional[int] = None,
        rng: Optional[np.random.Generator] = None
    ):
        if not isinstance(scorer, NonconformityScorer):
            raise TypeError(
                f"scorer must be a NonconformityScorer, got {type(scorer).__name__}"
            )

        self.scorer = scorer
        self.smooth = bool(smooth)
        self.random_seed = random_seed
        self.rng = rng if rng is not None else np.random.default_rng(random_seed)

        self._epsilon = None
        if epsilon is not None:
            self.set_epsilon(epsilon)

        # Set during train()
        self.train_inputs_ = None

    # ---- Configuration ----

    @property
    def epsilon(self) -> Optional[float]:
        return self._epsilon

    def set_epsilon(self, epsilon: float) -> None:
        """
        Set the significance level used by ``predict``.

        Any value is accepted; values outside (0, 1) make every region
        trivially full or empty and trigger a warning.
        """
        epsilon = float(epsilon)
        if not 0 < epsilon < 1:
            warnings.warn(
                f"epsilon={epsilon} is outside (0, 1); "
                "region predictions will be trivial."
            )
        self._epsilon = epsilon

    # ---- Training state ----

    @property
    def is_trained(self) -> bool:
        return self.train_inputs_ is not None

    @property
    def n_labels(self) -> int:
        self._check_trained()
        return len(self.train_inputs_)

    @property
    def n_train(self) -> int:
        self._check_trained()
        return sum(len(pool) for pool in self.train_inputs_)

    @property
    def partition_sizes(self) -> List[int]:
        self._check_trained()
        return [len(pool) for pool in self.train_inputs_]

    def train(
        self,
        inputs: Sequence,
        targets: Sequence[int],
        verbose: bool = False
    ) -> 'ConformalPredictor':
        """
        Group training objects by label, replacing any previous training.

        Parameters
        ----------
        inputs : sequence
            Training objects
        targets : sequence of int
            Zero-based dense label indices, one per object. With ``L``
            distinct values every target must lie in ``0..L-1``.
        verbose : bool, optional (default=False)
            Print a summary of the partition

        Returns
        -------
        self : ConformalPredictor
        """
        inputs = list(inputs)
        targets = self._validate_targets(inputs, targets)
        n_labels = len(set(targets))

        for y in targets:
            if y >= n_labels:
                raise InvalidInputError(
                    f"Label index {y} out of range: {n_labels} distinct labels "
                    f"require indices 0..{n_labels - 1}"
                )

        train_inputs = [[] for _ in range(n_labels)]
        for x, y in zip(inputs, targets):
            train_inputs[y].append(x)
        self.train_inputs_ = train_inputs

        if n_labels < 2:
            warnings.warn(
                f"Training data contains {n_labels} label(s); "
                "region predictions are uninformative with fewer than 2."
            )

        if verbose:
            print(f"\n{'='*60}")
            print("TRANSDUCTIVE CP: TRAINING")
            print(f"{'='*60}")
            print(f"Training objects: {len(inputs)}")
            print(f"Labels: {n_labels}")
            for y, pool in enumerate(train_inputs):
                print(f"  Label {y}: {len(pool)} objects")

        return self

    def update(
        self,
        inputs: Sequence,
        targets: Sequence[int]
    ) -> 'ConformalPredictor':
        """
        Add labeled objects to an already trained predictor.

        New objects are appended after the existing objects of their label.
        Targets must be existing label indices.

        Parameters
        ----------
        inputs : sequence
            New training objects
        targets : sequence of int
            Label indices in ``0..n_labels-1``

        Returns
        -------
        self : ConformalPredictor
        """
        self._check_trained()
        inputs = list(inputs)
        targets = self._validate_targets(inputs, targets)
        n_labels = len(self.train_inputs_)

        for y in targets:
            if y >= n_labels:
                raise InvalidInputError(
                    f"Label index {y} out of range for a predictor trained "
                    f"on {n_labels} labels"
                )

        for x, y in zip(inputs, targets):
            self.train_inputs_[y].append(x)

        return self

    # ---- Prediction ----

    def predict_confidence(
        self,
        inputs: Sequence,
        verbose: bool = False
    ) -> np.ndarray:
        """
        Compute p-values for every test object and every label.

        Parameters
        ----------
        inputs : sequence
            Test objects
        verbose : bool, optional (default=False)
            Print p-value statistics

        Returns
        -------
        pvalues : np.ndarray, shape (n_test, n_labels)
            ``pvalues[i, y]`` is the p-value of label ``y`` for object ``i``
        """
        self._check_trained()
        inputs = list(inputs)

        n_labels = len(self.train_inputs_)
        n_test = len(inputs)
        pvalues = np.zeros((n_test, n_labels))

        # Labels first, then objects: each pool holds at most one foreign
        # object at any time.
        for y in range(n_labels):
            for i, x in enumerate(inputs):
                scores = self._score_augmented_pool(y, x)
                if self.smooth:
                    pvalues[i, y] = smoothed_pvalue(scores, self.rng.uniform())
                else:
                    pvalues[i, y] = pvalue(scores)

        if verbose:
            print(f"\n{'='*60}")
            print("TRANSDUCTIVE CP: P-VALUES")
            print(f"{'='*60}")
            print(f"Test objects: {n_test}")
            print(f"Labels: {n_labels}")
            print(f"Smoothed: {self.smooth}")
            if pvalues.size > 0:
                print(f"  Min:    {pvalues.min():.4f}")
                print(f"  Median: {np.median(pvalues):.4f}")
                print(f"  Max:    {pvalues.max():.4f}")

        return pvalues

    def predict(self, inputs: Sequence) -> np.ndarray:
        """
        Region prediction at significance level epsilon.

        Parameters
        ----------
        inputs : sequence
            Test objects

        Returns
        -------
        region : np.ndarray of bool, shape (n_test, n_labels)
            True where label ``y`` is in the prediction set of object ``i``,
            i.e. where its p-value is strictly greater than epsilon
        """
        if self._epsilon is None:
            raise EpsilonNotSetError(
                "Epsilon not set. Call .set_epsilon() before .predict()."
            )

        pvalues = self.predict_confidence(inputs)
        return pvalues > self._epsilon

    # ---- Private methods ----

    def _check_trained(self):
        if self.train_inputs_ is None:
            raise NotTrainedError("Predictor not trained. Call .train() first.")

    def _validate_targets(self, inputs, targets) -> List[int]:
        """Check that targets are non-negative integers matching inputs."""
        targets = list(targets)
        if len(inputs) != len(targets):
            raise InvalidInputError(
                f"Length mismatch: inputs ({len(inputs)}) vs "
                f"targets ({len(targets)})"
            )

        validated = []
        for y in targets:
            if isinstance(y, (bool, np.bool_)) or not isinstance(y, (int, np.integer)):
                raise InvalidInputError(
                    f"Targets must be integer label indices, got {y!r}"
                )
            if y < 0:
                raise InvalidInputError(f"Label index must be >= 0, got {y}")
            validated.append(int(y))

        return validated

    def _score_augmented_pool(self, y: int, x) -> np.ndarray:
        """Score label y's pool with x appended as its last object."""
        pool = self.train_inputs_[y]
        n_tmp = len(pool) + 1

        pool.append(x)
        try:
            try:
                scores = np.asarray(self.scorer.score_all(pool), dtype=float)
            except Exception as exc:
                raise ScoringError(
                    f"Scorer {self.scorer!r} failed on pool of label {y} "
                    f"(size {n_tmp}): {exc}"
                ) from exc
        finally:
            pool.pop()

        if scores.shape != (n_tmp,):
            raise ScoringError(
                f"Scorer returned {scores.shape} scores for a pool of size {n_tmp}"
            )
        if not np.all(np.isfinite(scores)):
            bad = int(np.flatnonzero(~np.isfinite(scores))[0])
            raise ScoringError(
                f"Scorer returned non-finite score {scores[bad]} at position "
                f"{bad} of label {y}'s pool"
            )

        return scores
