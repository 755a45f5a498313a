"""
Unit Tests for Nonconformity Measures
=====================================
"""

import numpy as np
import pytest

from transcp import KNNScorer, NonconformityScorer


# ============================================================================
# Test 1: Scorer Interface
# ============================================================================

def test_scorer_is_abstract():
    with pytest.raises(TypeError):
        NonconformityScorer()


def test_default_score_all_scores_in_order():
    class IndexScorer(NonconformityScorer):
        def score(self, position, pool):
            return pool[position] * 10.0

    scores = IndexScorer().score_all([1, 2, 3])

    np.testing.assert_array_equal(scores, [10., 20., 30.])


def test_scorer_is_callable():
    scorer = KNNScorer(k=1)
    pool = [[0., 0.], [1., 0.], [3., 0.]]

    assert scorer(2, pool) == scorer.score(2, pool)


# ============================================================================
# Test 2: KNN Scores
# ============================================================================

def test_knn_single_neighbour():
    pool = [[0., 0.], [1., 0.], [3., 0.]]

    assert KNNScorer(k=1).score(2, pool) == pytest.approx(2.0)
    assert KNNScorer(k=1).score(0, pool) == pytest.approx(1.0)


def test_knn_sums_k_distances():
    pool = [[0., 0.], [1., 0.], [3., 0.]]

    assert KNNScorer(k=2).score(2, pool) == pytest.approx(5.0)


def test_knn_uses_all_neighbours_when_pool_is_small():
    pool = [[0., 0.], [1., 0.], [3., 0.]]

    assert KNNScorer(k=5).score(0, pool) == pytest.approx(4.0)


def test_knn_alone_in_pool_scores_zero():
    assert KNNScorer(k=3).score(0, [[4., 2.]]) == 0.0
    np.testing.assert_array_equal(KNNScorer(k=3).score_all([[4., 2.]]), [0.])


def test_knn_scalar_objects():
    assert KNNScorer(k=1).score(1, [0., 4., 5.]) == pytest.approx(1.0)


def test_knn_custom_metric():
    pool = [[0., 0.], [1., 1.]]

    assert KNNScorer(k=1, metric='cityblock').score(0, pool) == pytest.approx(2.0)


def test_knn_score_all_matches_score():
    rng = np.random.default_rng(1)
    pool = list(rng.normal(size=(12, 3)))
    scorer = KNNScorer(k=3)

    expected = [scorer.score(j, pool) for j in range(len(pool))]

    np.testing.assert_allclose(scorer.score_all(pool), expected)


def test_knn_does_not_modify_pool():
    pool = [[0., 0.], [1., 0.], [3., 0.]]
    snapshot = [list(x) for x in pool]

    KNNScorer(k=2).score_all(pool)
    KNNScorer(k=2).score(1, pool)

    assert pool == snapshot


# ============================================================================
# Test 3: Validation
# ============================================================================

@pytest.mark.parametrize("k", [0, -1, 1.5, True])
def test_knn_invalid_k(k):
    with pytest.raises(ValueError):
        KNNScorer(k=k)


def test_knn_position_out_of_range():
    with pytest.raises(IndexError):
        KNNScorer(k=1).score(3, [[0.], [1.]])


def test_knn_rejects_nested_objects():
    with pytest.raises(ValueError):
        KNNScorer(k=1).score(0, np.zeros((2, 2, 2)))
