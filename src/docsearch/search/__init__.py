"""Hybrid keyword and vector search."""

from docsearch.search.keyword import KeywordHit, KeywordIndex
from docsearch.search.ranking import HybridRanker
from docsearch.search.schemas import (
    DocumentCreate,
    SearchMode,
    SearchRequest,
    SearchResponse,
    SearchResult,
)
from docsearch.search.service import SearchService

__all__ = [
    "DocumentCreate",
    "HybridRanker",
    "KeywordHit",
    "KeywordIndex",
    "SearchMode",
    "SearchRequest",
    "SearchResponse",
    "SearchResult",
    "SearchService",
]
