"""Hybrid ranking of vector and keyword results."""

from typing import Any

from docsearch.constants import SCORE_EPSILON


def normalize_scores(results: list[dict[str, Any]]) -> dict[str, float]:
    """Divide every score by the largest score in the set.

    The maximum is floored at SCORE_EPSILON so an all-zero set does not
    divide by zero.

    Returns:
        Mapping of document ID to normalized score.
    """
    if not results:
        return {}
    max_score = max(max(r["score"] for r in results), SCORE_EPSILON)
    normalized: dict[str, float] = {}
    for r in results:
        doc_id = r.get("id", "")
        if doc_id and doc_id not in normalized:
            normalized[doc_id] = r["score"] / max_score
    return normalized


class HybridRanker:
    """Blends vector and keyword results with a linear weight.

    Each result set is normalized against its own maximum, then

        hybrid_score(doc) = alpha * vector(doc) + (1 - alpha) * keyword(doc)

    with a missing side contributing 0. At alpha 1.0 the ranking is exactly
    the vector ranking and at alpha 0.0 exactly the keyword ranking.
    """

    def __init__(self, alpha: float = 0.5) -> None:
        """Initialize hybrid ranker.

        Args:
            alpha: Default weight of the vector side, between 0 and 1.
        """
        if not 0.0 <= alpha <= 1.0:
            raise ValueError(f"alpha must be between 0 and 1, got {alpha}")
        self._alpha = alpha

    @property
    def alpha(self) -> float:
        return self._alpha

    def merge(
        self,
        vector_results: list[dict[str, Any]],
        keyword_results: list[dict[str, Any]],
        limit: int,
        alpha: float | None = None,
    ) -> list[dict[str, Any]]:
        """Merge vector and keyword results.

        Args:
            vector_results: Results from vector search, each with ``id`` and ``score``.
            keyword_results: Results from keyword search, each with ``id`` and ``score``.
            limit: Maximum number of results to return.
            alpha: Vector weight for this call; defaults to the ranker's alpha.

        Returns:
            Merged results sorted by hybrid score (highest first). Each result
            is a copy of the vector-side result when one exists, otherwise of
            the keyword-side result, with ``score`` replaced by the hybrid
            score.
        """
        if alpha is None:
            alpha = self._alpha
        if not 0.0 <= alpha <= 1.0:
            raise ValueError(f"alpha must be between 0 and 1, got {alpha}")

        # A side with zero weight contributes no candidates either
        if alpha == 1.0:
            keyword_results = []
        elif alpha == 0.0:
            vector_results = []

        vector_scores = normalize_scores(vector_results)
        keyword_scores = normalize_scores(keyword_results)

        # Prefer vector-side metadata and snippets; fall back to keyword results
        docs_by_id: dict[str, dict[str, Any]] = {}
        order: list[str] = []
        for doc in [*vector_results, *keyword_results]:
            doc_id = doc.get("id", "")
            if doc_id and doc_id not in docs_by_id:
                docs_by_id[doc_id] = doc
                order.append(doc_id)

        merged: list[dict[str, Any]] = []
        for doc_id in order:
            hybrid_score = alpha * vector_scores.get(doc_id, 0.0) + (
                1 - alpha
            ) * keyword_scores.get(doc_id, 0.0)
            result = dict(docs_by_id[doc_id])
            result["score"] = hybrid_score
            merged.append(result)

        # Stable sort keeps the vector-then-keyword order among equal scores
        merged.sort(key=lambda r: r["score"], reverse=True)
        return merged[:limit]
