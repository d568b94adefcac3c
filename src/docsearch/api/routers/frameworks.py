"""Framework registry endpoints."""

from fastapi import APIRouter, Depends, HTTPException

from docsearch.api.deps import get_registry
from docsearch.api.schemas import FrameworkInfo
from docsearch.registry import (
    FrameworkRegistry,
    FrameworkSource,
    describe_source,
    latest_version_url,
)

router = APIRouter(prefix="/api/frameworks", tags=["frameworks"])


def _to_info(name: str, source: FrameworkSource) -> FrameworkInfo:
    return FrameworkInfo(
        name=name,
        type=source.type,
        source=describe_source(source),
        docs_url=source.docs_url,
        latest_version_url=latest_version_url(source),
    )


@router.get("", response_model=list[FrameworkInfo])
async def list_frameworks(
    registry: FrameworkRegistry = Depends(get_registry),
) -> list[FrameworkInfo]:
    """List registered frameworks, sorted by name."""
    return [_to_info(name, source) for name, source in registry.items()]


@router.get("/{name}", response_model=FrameworkInfo)
async def get_framework(
    name: str,
    registry: FrameworkRegistry = Depends(get_registry),
) -> FrameworkInfo:
    source = registry.get(name)
    if source is None:
        raise HTTPException(status_code=404, detail="Framework not found")
    return _to_info(name.lower(), source)
