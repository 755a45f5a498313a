"""
Nonconformity Measures for Transductive Conformal Prediction

A nonconformity measure assigns a real-valued score to one object of a pool,
expressing how atypical it is relative to the other objects of that pool.
Higher scores = stranger objects = lower p-values.

"""

from abc import ABC, abstractmethod
from typing import Sequence

import numpy as np
from scipy.spatial.distance import cdist


class NonconformityScorer(ABC):
    """
    Abstract base class for nonconformity measures.

    The conformal predictor only relies on this interface: given an ordered
    pool of objects and a position within it, return the score of the
    object at that position. Implementations must be deterministic for a
    fixed pool and must not modify the pool.
    """

    @abstractmethod
    def score(self, position: int, pool: Sequence) -> float:
        """
        Compute the nonconformity score of ``pool[position]``.

        Parameters
        ----------
        position : int
            Index of the object to score within ``pool``
        pool : sequence
            Ordered pool of objects (read-only)

        Returns
        -------
        score : float
            Nonconformity score (higher = less conforming)
        """
        pass

    def score_all(self, pool: Sequence) -> np.ndarray:
        """
        Score every position of the pool, in order.

        Subclasses may override this with a vectorised version as long as
        ``score_all(pool)[j] == score(j, pool)`` for every position ``j``.

        Parameters
        ----------
        pool : sequence
            Ordered pool of objects (read-only)

        Returns
        -------
        scores : np.ndarray, shape (len(pool),)
        """
        return np.array(
            [self.score(j, pool) for j in range(len(pool))],
            dtype=float
        )

    def __call__(self, position: int, pool: Sequence) -> float:
        return self.score(position, pool)


def _as_matrix(pool: Sequence) -> np.ndarray:
    """Stack a pool of objects into an (n, d) float array."""
    X = np.asarray(pool, dtype=float)
    if X.ndim == 1:
        X = X.reshape(-1, 1)
    if X.ndim != 2:
        raise ValueError(
            f"Objects must be scalars or 1-D vectors, got pool of shape {X.shape}"
        )
    return X


class KNNScorer(NonconformityScorer):
    """
    k-nearest-neighbour nonconformity measure.

    The score of an object is the sum of its distances to the ``k`` nearest
    other objects of the pool. If the pool holds fewer than ``k`` other
    objects, all of them are used; an object alone in its pool scores 0.

    Parameters
    ----------
    k : int, optional (default=1)
        Number of nearest neighbours
    metric : str, optional (default='euclidean')
        Any metric accepted by ``scipy.spatial.distance.cdist``

    Examples
    --------
    >>> scorer = KNNScorer(k=1)
    >>> scorer.score(2, [[0., 0.], [1., 0.], [3., 0.]])
    2.0
    """

    def __init__(self, k: int = 1, metric: str = 'euclidean'):
        if isinstance(k, bool) or not isinstance(k, (int, np.integer)) or k < 1:
            raise ValueError(f"k must be a positive integer, got {k!r}")
        self.k = int(k)
        self.metric = metric

    def score(self, position: int, pool: Sequence) -> float:
        X = _as_matrix(pool)
        n = X.shape[0]
        if not 0 <= position < n:
            raise IndexError(f"position {position} out of range for pool of size {n}")

        distances = cdist(X[position:position + 1], X, metric=self.metric)[0]
        distances = np.delete(distances, position)

        k = min(self.k, distances.shape[0])
        if k == 0:
            return 0.0
        return float(np.sort(distances)[:k].sum())

    def score_all(self, pool: Sequence) -> np.ndarray:
        """Score every position of the pool with a single distance matrix."""
        X = _as_matrix(pool)
        n = X.shape[0]
        k = min(self.k, n - 1)
        if k <= 0:
            return np.zeros(n)

        distances = cdist(X, X, metric=self.metric)
        # Exclude each object from its own neighbourhood
        np.fill_diagonal(distances, np.inf)
        return np.sort(distances, axis=1)[:, :k].sum(axis=1)

    def __repr__(self) -> str:
        return f"KNNScorer(k={self.k}, metric={self.metric!r})"
