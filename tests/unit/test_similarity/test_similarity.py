"""
Tests for embedding comparison, top_k validation and ranking.
"""

import math

import numpy as np
import pytest

from face_search.exceptions import EmbeddingDimensionError, ValidationError
from face_search.similarity import (
    SearchHit,
    cosine_distance,
    cosine_similarity,
    euclidean_distance,
    rank_by_cosine_distance,
    validate_top_k,
)


class TestCosineSimilarity:
    def test_identical_vectors(self):
        v = np.random.default_rng(0).normal(size=512).astype(np.float32)
        assert cosine_similarity(v, v) == pytest.approx(1.0)

    def test_opposite_vectors(self):
        v = np.array([1.0, 2.0, 3.0])
        assert cosine_similarity(v, -v) == pytest.approx(-1.0)

    def test_orthogonal_vectors(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)

    def test_scale_invariant(self):
        a = np.array([0.3, -1.2, 4.0])
        assert cosine_similarity(a, 7.5 * a) == pytest.approx(1.0)

    def test_zero_vector_gives_nan_without_warning(self):
        with np.errstate(all="raise"):
            result = cosine_similarity(np.zeros(4), np.ones(4))
        assert math.isnan(result)

    def test_dimension_mismatch_raises(self):
        with pytest.raises(EmbeddingDimensionError):
            cosine_similarity(np.ones(512), np.ones(128))

    def test_returns_python_float(self):
        assert type(cosine_similarity([1.0, 2.0], [2.0, 1.0])) is float


class TestEuclideanDistance:
    def test_zero_for_identical(self):
        v = np.random.default_rng(1).normal(size=64)
        assert euclidean_distance(v, v) == 0.0

    def test_symmetric(self):
        rng = np.random.default_rng(2)
        a, b = rng.normal(size=32), rng.normal(size=32)
        assert euclidean_distance(a, b) == pytest.approx(euclidean_distance(b, a))

    def test_known_value(self):
        assert euclidean_distance([0.0, 0.0], [3.0, 4.0]) == pytest.approx(5.0)

    def test_dimension_mismatch_raises(self):
        with pytest.raises(EmbeddingDimensionError):
            euclidean_distance([1.0], [1.0, 2.0])


class TestCosineDistance:
    def test_complement_of_similarity(self):
        a, b = [1.0, 2.0, 0.5], [0.1, 2.2, -1.0]
        assert cosine_distance(a, b) == pytest.approx(1.0 - cosine_similarity(a, b))


class TestValidateTopK:
    @pytest.mark.parametrize(
        "value,expected",
        [(1, 1), (3, 3), ("5", 5), (" 2 ", 2), (2.9, 2), ("4.5", 4), (10.0, 10)],
    )
    def test_accepted_values(self, value, expected):
        assert validate_top_k(value) == expected

    @pytest.mark.parametrize(
        "value",
        [
            0, -1, -0.5, "0", "abc", "", float("nan"), float("inf"), "inf",
            10**400, "1e400", True, False, [3], {"k": 1},
        ],
    )
    def test_rejected_values(self, value):
        with pytest.raises(ValidationError, match="Invalid top_k"):
            validate_top_k(value)

    def test_missing_value(self):
        with pytest.raises(ValidationError, match="Missing params"):
            validate_top_k(None)


class TestRankByCosineDistance:
    def test_orders_by_ascending_distance(self):
        query = np.array([1.0, 0.0])
        candidates = [
            ("far", np.array([0.0, 1.0])),
            ("near", np.array([1.0, 0.1])),
            ("mid", np.array([1.0, 1.0])),
        ]
        hits = rank_by_cosine_distance(query, candidates, top_k=3)

        assert [h.id for h in hits] == ["near", "mid", "far"]
        assert hits[0].cosine == pytest.approx(cosine_similarity(query, [1.0, 0.1]))

    def test_respects_top_k(self):
        rng = np.random.default_rng(3)
        candidates = [(str(i), rng.normal(size=8)) for i in range(10)]
        hits = rank_by_cosine_distance(rng.normal(size=8), candidates, top_k=3)

        assert len(hits) == 3
        distances = [1.0 - h.cosine for h in hits]
        assert distances == sorted(distances)

    def test_fewer_candidates_than_top_k(self):
        hits = rank_by_cosine_distance([1.0, 0.0], [("a", [1.0, 0.0])], top_k=5)
        assert hits == [SearchHit(id="a", cosine=pytest.approx(1.0))]

    def test_ties_keep_candidate_order(self):
        candidates = [("first", [2.0, 0.0]), ("second", [1.0, 0.0])]
        hits = rank_by_cosine_distance([1.0, 0.0], candidates, top_k=2)
        assert [h.id for h in hits] == ["first", "second"]

    def test_nan_sorted_last(self):
        candidates = [("zero", [0.0, 0.0]), ("ok", [0.0, 1.0])]
        hits = rank_by_cosine_distance([1.0, 0.0], candidates, top_k=2)

        assert [h.id for h in hits] == ["ok", "zero"]
        assert math.isnan(hits[1].cosine)

    def test_non_positive_top_k_returns_nothing(self):
        assert rank_by_cosine_distance([1.0], [("a", [1.0])], top_k=0) == []

    def test_search_hit_as_dict(self):
        assert SearchHit(id="x", cosine=0.5).as_dict() == {"id": "x", "cosine": 0.5}
