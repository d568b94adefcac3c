"""FastAPI dependency injection functions."""

from fastapi import HTTPException, Request, status

from docsearch.registry import FrameworkRegistry
from docsearch.search.service import SearchService


def get_search_service(request: Request) -> SearchService:
    """Get the search service owned by the application lifespan."""
    service = getattr(request.app.state, "search_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Search service is not available",
        )
    return service


def get_registry(request: Request) -> FrameworkRegistry:
    """Get the framework registry loaded at startup."""
    registry = getattr(request.app.state, "registry", None)
    if registry is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Framework registry is not available",
        )
    return registry
