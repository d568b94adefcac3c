"""Document ingestion and deletion endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Query, status

from docsearch.api.deps import get_search_service
from docsearch.search.schemas import (
    ClearResult,
    DocumentCreate,
    DocumentCreated,
    DocumentsCreated,
    RebuildResult,
)
from docsearch.search.service import SearchService

router = APIRouter(prefix="/api/documents", tags=["documents"])


@router.post("", response_model=DocumentCreated, status_code=status.HTTP_201_CREATED)
async def add_document(
    data: DocumentCreate,
    service: SearchService = Depends(get_search_service),
) -> DocumentCreated:
    """Index one document.

    The document is stored even when its embedding fails; it is then found
    by keyword search only.
    """
    document_id = await service.add_document(data)
    return DocumentCreated(id=document_id)


@router.post("/batch", response_model=DocumentsCreated, status_code=status.HTTP_201_CREATED)
async def add_documents(
    data: list[DocumentCreate],
    service: SearchService = Depends(get_search_service),
) -> DocumentsCreated:
    ids = await service.add_documents(data)
    return DocumentsCreated(ids=ids, count=len(ids))


@router.post("/rebuild", response_model=RebuildResult)
async def rebuild(service: SearchService = Depends(get_search_service)) -> RebuildResult:
    """Recreate the vector index, reclaiming slots left by deletions."""
    indexed = await service.rebuild_index()
    stats = await service.get_stats()
    return RebuildResult(indexed=indexed, total_documents=stats.total_documents)


@router.delete("/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_document(
    document_id: str,
    service: SearchService = Depends(get_search_service),
) -> None:
    if not await service.delete_document(document_id):
        raise HTTPException(status_code=404, detail="Document not found")


@router.delete("", response_model=ClearResult)
async def clear_framework_version(
    framework: str = Query(..., min_length=1),
    version: str = Query(..., min_length=1),
    service: SearchService = Depends(get_search_service),
) -> ClearResult:
    """Delete every document of one framework version."""
    deleted = await service.clear_framework_version(framework, version)
    return ClearResult(framework=framework, version=version, deleted=deleted)
