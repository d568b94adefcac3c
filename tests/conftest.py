"""Shared pytest fixtures for all tests.

Embedding providers here are deterministic stand-ins: texts sharing words
get similar vectors, which is all the search tests rely on.
"""

import asyncio
import gc
import math
import re
import zlib

import pytest

from docsearch.constants import EMBEDDING_MAX_CHARS
from docsearch.embeddings.client import prepare_text
from docsearch.errors import EmbeddingError
from docsearch.search.schemas import DocumentCreate
from docsearch.search.service import SearchService

TEST_DIMENSIONS = 32

_WORD = re.compile(r"\w+")


def bag_of_words_vector(text: str, dimensions: int = TEST_DIMENSIONS) -> list[float]:
    """Hash words into buckets; the last component is a constant bias."""
    vector = [0.0] * dimensions
    for word in _WORD.findall(text.lower()):
        vector[zlib.crc32(word.encode()) % (dimensions - 1)] += 1.0
    vector[-1] = 0.5
    norm = math.sqrt(sum(x * x for x in vector))
    return [x / norm for x in vector]


class FakeEmbedder:
    """Deterministic hashed bag-of-words embeddings."""

    def __init__(self, dimensions: int = TEST_DIMENSIONS):
        self.dimensions = dimensions
        self.calls = 0

    async def embed(self, text: str) -> list[float]:
        prepared = prepare_text(text, EMBEDDING_MAX_CHARS)
        self.calls += 1
        return bag_of_words_vector(prepared, self.dimensions)


class FailingEmbedder:
    """Provider that is always down."""

    def __init__(self, dimensions: int = TEST_DIMENSIONS):
        self.dimensions = dimensions

    async def embed(self, text: str) -> list[float]:
        raise EmbeddingError("embedding provider unavailable")


class SwitchableEmbedder(FakeEmbedder):
    """FakeEmbedder that can be taken offline, or refuse texts with a marker."""

    def __init__(self, dimensions: int = TEST_DIMENSIONS, refuse: str | None = None):
        super().__init__(dimensions)
        self.online = True
        self.refuse = refuse

    async def embed(self, text: str) -> list[float]:
        if not self.online:
            raise EmbeddingError("embedding provider unavailable")
        if self.refuse and self.refuse in text:
            raise EmbeddingError(f"refusing text containing {self.refuse!r}")
        return await super().embed(text)


class SlowEmbedder(SwitchableEmbedder):
    """SwitchableEmbedder that yields to the event loop before every embedding."""

    def __init__(self, dimensions: int = TEST_DIMENSIONS, delay: float = 0.05):
        super().__init__(dimensions)
        self.delay = delay

    async def embed(self, text: str) -> list[float]:
        await asyncio.sleep(self.delay)
        return await super().embed(text)


def make_record(
    title: str,
    content: str,
    framework: str = "react",
    version: str = "18.0.0",
    path: str | None = None,
    url: str | None = None,
) -> DocumentCreate:
    return DocumentCreate(
        framework=framework,
        version=version,
        path=path or f"docs/{framework}/{version}/{title.lower().replace(' ', '-')}.md",
        title=title,
        content=content,
        url=url,
    )


def make_service(store_path, embedder, **kwargs) -> SearchService:
    kwargs.setdefault("dimensions", embedder.dimensions)
    kwargs.setdefault("max_elements", 64)
    return SearchService(store_path, embedder, **kwargs)


@pytest.fixture(autouse=True)
def cleanup_after_test():
    """Release hnswlib indexes left behind by a test."""
    yield
    gc.collect()


@pytest.fixture
def store_path(tmp_path):
    """Directory for metadata.json, vector-index.bin and id-mapping.json."""
    return tmp_path / "vector-store"


@pytest.fixture
def embedder():
    return SwitchableEmbedder()


@pytest.fixture
async def service(store_path, embedder):
    """Initialized search service over an empty store."""
    service = make_service(store_path, embedder)
    await service.initialize()
    yield service
    await service.close()
