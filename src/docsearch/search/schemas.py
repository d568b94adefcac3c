"""Search request and response schemas."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from docsearch.constants import (
    DEFAULT_HYBRID_ALPHA,
    DEFAULT_SEARCH_LIMIT,
    MAX_QUERY_LENGTH,
    MAX_SEARCH_LIMIT,
)


class SearchMode(str, Enum):
    """How a query is answered."""

    SEMANTIC = "semantic"
    KEYWORD = "keyword"
    HYBRID = "hybrid"


class SearchRequest(BaseModel):
    """Request for the search endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    query: str = Field(..., min_length=1, max_length=MAX_QUERY_LENGTH, description="Search text")
    framework: str | None = Field(None, description="Only return documents of this framework")
    version: str | None = Field(None, description="Only return documents of this version")
    limit: int = Field(
        DEFAULT_SEARCH_LIMIT,
        ge=1,
        le=MAX_SEARCH_LIMIT,
        description="Maximum number of results",
    )
    mode: SearchMode = Field(SearchMode.HYBRID, description="semantic, keyword or hybrid")
    hybrid_alpha: float = Field(
        DEFAULT_HYBRID_ALPHA,
        alias="hybridAlpha",
        ge=0.0,
        le=1.0,
        description="Weight of vector similarity in hybrid mode (0.0-1.0)",
    )


class SearchResult(BaseModel):
    """Individual search result."""

    id: str
    framework: str
    version: str
    path: str
    title: str
    url: str | None = None
    snippet: str
    score: float = 0.0


class SearchFilters(BaseModel):
    framework: str | None = None
    version: str | None = None


class SearchResponse(BaseModel):
    """Search response with results."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    query: str
    filters: SearchFilters
    results: list[SearchResult]
    result_count: int = Field(..., alias="resultCount")


class StatsResponse(BaseModel):
    """Aggregate index statistics."""

    model_config = ConfigDict(populate_by_name=True)

    total_documents: int = Field(..., alias="totalDocuments")
    frameworks: list[str]
    versions: dict[str, list[str]]
    last_updated: int = Field(..., alias="lastUpdated", description="Epoch milliseconds")


class DocumentCreate(BaseModel):
    """A document supplied by content ingestion."""

    framework: str = Field(..., min_length=1)
    version: str = Field(..., min_length=1)
    path: str = Field(..., description="Storage location of the source page")
    title: str
    content: str = Field(..., description="Plain text extracted from the page")
    url: str | None = None


class DocumentCreated(BaseModel):
    id: str


class DocumentsCreated(BaseModel):
    ids: list[str]
    count: int


class ClearResult(BaseModel):
    framework: str
    version: str
    deleted: int


class RebuildResult(BaseModel):
    indexed: int
    total_documents: int = Field(..., alias="totalDocuments")

    model_config = ConfigDict(populate_by_name=True)
