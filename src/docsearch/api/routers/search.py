"""Search endpoints."""

import logging

from fastapi import APIRouter, Depends

from docsearch.api.deps import get_search_service
from docsearch.search.schemas import (
    SearchFilters,
    SearchRequest,
    SearchResponse,
    StatsResponse,
)
from docsearch.search.service import SearchService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/search", tags=["search"])


@router.post("", response_model=SearchResponse)
async def search(
    request: SearchRequest,
    service: SearchService = Depends(get_search_service),
) -> SearchResponse:
    """Search indexed documentation.

    A failure of both the requested mode and the keyword fallback surfaces
    as a 500 with ``success: false``.
    """
    logger.debug(f"Search request: {request.query!r} mode={request.mode.value}")
    results = await service.search(
        request.query,
        framework=request.framework,
        version=request.version,
        limit=request.limit,
        mode=request.mode,
        hybrid_alpha=request.hybrid_alpha,
    )
    return SearchResponse(
        query=request.query,
        filters=SearchFilters(framework=request.framework, version=request.version),
        results=results,
        result_count=len(results),
    )


@router.get("/stats", response_model=StatsResponse)
async def stats(service: SearchService = Depends(get_search_service)) -> StatsResponse:
    """Document counts per framework and version."""
    index_stats = await service.get_stats()
    return StatsResponse(
        total_documents=index_stats.total_documents,
        frameworks=index_stats.frameworks,
        versions=index_stats.versions,
        last_updated=index_stats.last_updated,
    )
