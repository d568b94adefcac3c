"""Tests for hybrid result ranking."""

import pytest
from hypothesis import given, settings, strategies as st

from docsearch.search.ranking import HybridRanker, normalize_scores


def results(*pairs):
    return [{"id": doc_id, "score": score, "title": doc_id} for doc_id, score in pairs]


scored_lists = st.lists(
    st.tuples(
        st.sampled_from([f"doc_{i}" for i in range(8)]),
        st.floats(min_value=0.0, max_value=1.0, allow_nan=False),
    ),
    max_size=8,
    unique_by=lambda pair: pair[0],
)


class TestNormalizeScores:
    def test_divides_by_maximum(self):
        assert normalize_scores(results(("a", 0.5), ("b", 0.25))) == {"a": 1.0, "b": 0.5}

    def test_all_zero_scores_do_not_divide_by_zero(self):
        assert normalize_scores(results(("a", 0.0))) == {"a": 0.0}

    def test_empty(self):
        assert normalize_scores([]) == {}


class TestHybridRanker:
    """Tests for the linear hybrid ranker."""

    def test_documents_in_both_lists_rank_first(self):
        ranker = HybridRanker(alpha=0.5)

        merged = ranker.merge(
            results(("doc_a", 0.9), ("doc_b", 0.8)),
            results(("doc_b", 1.2), ("doc_c", 1.0)),
            limit=10,
        )

        assert merged[0]["id"] == "doc_b"
        assert {r["id"] for r in merged} == {"doc_a", "doc_b", "doc_c"}

    def test_hybrid_score_formula(self):
        ranker = HybridRanker(alpha=0.7)

        merged = ranker.merge(
            results(("a", 0.8), ("b", 0.4)),
            results(("b", 2.0), ("c", 1.0)),
            limit=10,
        )
        scores = {r["id"]: r["score"] for r in merged}

        assert scores["a"] == pytest.approx(0.7 * 1.0)
        assert scores["b"] == pytest.approx(0.7 * 0.5 + 0.3 * 1.0)
        assert scores["c"] == pytest.approx(0.3 * 0.5)

    def test_prefers_vector_side_metadata(self):
        ranker = HybridRanker()
        vector = [{"id": "a", "score": 1.0, "snippet": "from vector"}]
        keyword = [{"id": "a", "score": 1.0, "snippet": "from keyword"}]

        merged = ranker.merge(vector, keyword, limit=5)

        assert merged[0]["snippet"] == "from vector"

    def test_does_not_mutate_inputs(self):
        vector = results(("a", 0.5))

        HybridRanker().merge(vector, [], limit=5)

        assert vector[0]["score"] == 0.5

    def test_respects_limit(self):
        merged = HybridRanker().merge(
            results(*[(f"v{i}", 1.0 - i / 10) for i in range(5)]),
            results(*[(f"k{i}", 1.0 - i / 10) for i in range(5)]),
            limit=3,
        )

        assert len(merged) == 3

    def test_handles_empty_lists(self):
        ranker = HybridRanker()

        assert ranker.merge([], [], limit=5) == []
        assert len(ranker.merge([], results(("a", 1.0)), limit=5)) == 1

    def test_rejects_alpha_outside_unit_interval(self):
        with pytest.raises(ValueError):
            HybridRanker(alpha=1.5)
        with pytest.raises(ValueError):
            HybridRanker().merge([], [], limit=5, alpha=-0.1)

    def test_per_call_alpha_overrides_default(self):
        ranker = HybridRanker(alpha=0.5)

        merged = ranker.merge(results(("a", 1.0)), results(("b", 1.0)), limit=5, alpha=0.0)

        assert [r["id"] for r in merged] == ["b"]

    @settings(max_examples=100)
    @given(vector=scored_lists, keyword=scored_lists)
    def test_alpha_one_is_pure_vector_ranking(self, vector, keyword):
        merged = HybridRanker().merge(results(*vector), results(*keyword), limit=20, alpha=1.0)
        raw = dict(vector)

        assert {r["id"] for r in merged} == set(raw)
        ranked = [raw[r["id"]] for r in merged]
        assert ranked == sorted(ranked, reverse=True)

    @settings(max_examples=100)
    @given(vector=scored_lists, keyword=scored_lists)
    def test_alpha_zero_is_pure_keyword_ranking(self, vector, keyword):
        merged = HybridRanker().merge(results(*vector), results(*keyword), limit=20, alpha=0.0)
        raw = dict(keyword)

        assert {r["id"] for r in merged} == set(raw)
        ranked = [raw[r["id"]] for r in merged]
        assert ranked == sorted(ranked, reverse=True)

    @settings(max_examples=100)
    @given(
        vector=scored_lists,
        keyword=scored_lists,
        alpha=st.floats(min_value=0.0, max_value=1.0, allow_nan=False),
    )
    def test_scores_sorted_and_bounded(self, vector, keyword, alpha):
        merged = HybridRanker().merge(results(*vector), results(*keyword), limit=20, alpha=alpha)
        scores = [r["score"] for r in merged]

        assert scores == sorted(scores, reverse=True)
        assert all(0.0 <= s <= 1.0 + 1e-9 for s in scores)
