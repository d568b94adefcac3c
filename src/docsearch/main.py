"""FastAPI application entry point."""

import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Logging constants defined here (not in constants/) because logging.basicConfig()
# must run before any module imports that might create loggers.
LOG_FORMAT = "%(asctime)s %(levelname)-8s %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

logging.basicConfig(
    format=LOG_FORMAT,
    datefmt=DATE_FORMAT,
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
)

# Unify uvicorn loggers with app format
for uvicorn_logger_name in ("uvicorn", "uvicorn.access", "uvicorn.error"):
    uvicorn_logger = logging.getLogger(uvicorn_logger_name)
    uvicorn_logger.handlers.clear()
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    uvicorn_logger.addHandler(handler)

from docsearch.api.routers import documents, frameworks, search  # noqa: E402
from docsearch.api.schemas import ErrorResponse  # noqa: E402
from docsearch.config import load_settings  # noqa: E402
from docsearch.embeddings.client import create_embedding_provider  # noqa: E402
from docsearch.errors import DocSearchError, IndexNotInitializedError  # noqa: E402
from docsearch.registry import FrameworkRegistry  # noqa: E402
from docsearch.search.service import SearchService  # noqa: E402

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Lifespan handler for startup and shutdown events.

    On startup:
    - Loads settings and the framework registry
    - Builds the search service and waits for its initialization, so no
      request races a cold index

    On shutdown:
    - Flushes and closes the search service
    """
    settings = load_settings()
    logger.info(f"Documentation storage: {settings.data_dir}")

    registry = FrameworkRegistry(settings.registry_path)
    registry.load()
    app.state.registry = registry

    service = SearchService.from_settings(settings, create_embedding_provider(settings))
    await service.initialize()
    app.state.search_service = service

    logger.info("docsearch started")

    yield

    await service.close()
    app.state.search_service = None


app = FastAPI(
    title="docsearch",
    description="Hybrid vector and keyword search over framework documentation",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(DocSearchError)
async def search_error_handler(request: Request, exc: DocSearchError) -> JSONResponse:
    """Render search core failures as ``{success: false, error, message}``."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    if isinstance(exc, IndexNotInitializedError):
        status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    logger.error(f"{request.method} {request.url.path} failed: {exc}")
    body = ErrorResponse(error=type(exc).__name__, message=str(exc))
    return JSONResponse(status_code=status_code, content=body.model_dump())


@app.get("/health")
async def health_check(request: Request) -> dict[str, str]:
    """Health check endpoint."""
    service = getattr(request.app.state, "search_service", None)
    return {"status": "healthy" if service is not None and service.ready else "starting"}


# Include routers
app.include_router(search.router)
app.include_router(documents.router)
app.include_router(frameworks.router)
