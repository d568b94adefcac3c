"""Hybrid documentation search service.

Owns the document store, the vector index and the keyword index, keeps them
in sync on ingestion and deletion, and answers queries by merging vector and
keyword results.

All mutations (add, delete, clear, rebuild) are serialized by one
``asyncio.Lock``. Searches do not take the lock: every index and mapping
read in a search happens between awaits, so a search never sees a
half-applied insert. A rebuild fills a separate index and replaces the
live one only when it is complete.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Iterable
from uuid import uuid4

from docsearch.config import Config
from docsearch.constants import (
    ANN_FILTER_HEADROOM,
    BATCH_SAVE_SIZE,
    DEFAULT_HYBRID_ALPHA,
    DEFAULT_SEARCH_LIMIT,
    EMBEDDING_DIMENSIONS,
    HNSW_EF_CONSTRUCTION,
    HNSW_EF_SEARCH,
    HNSW_M,
    INDEX_FILE,
    KEYWORD_TOP_N,
    MAPPING_FILE,
    MAX_ELEMENTS,
    METADATA_FILE,
    OVERFETCH_FACTOR,
    SNIPPET_LENGTH,
)
from docsearch.embeddings.client import EmbeddingProvider
from docsearch.errors import (
    DimensionMismatchError,
    DocSearchError,
    EmbeddingError,
    IndexNotInitializedError,
    SearchError,
    StorageError,
)
from docsearch.search.keyword import (
    KeywordIndex,
    generate_snippet,
    matches_filters,
    tokenize_query,
)
from docsearch.search.ranking import HybridRanker
from docsearch.search.schemas import DocumentCreate, SearchMode, SearchResult
from docsearch.store.documents import Document, DocumentStore, IndexStats
from docsearch.vectorstore.index import VectorIndex

logger = logging.getLogger(__name__)


def _to_result(document: Document, score: float, snippet: str) -> dict[str, Any]:
    return {
        "id": document.id,
        "framework": document.framework,
        "version": document.version,
        "path": document.path,
        "title": document.title,
        "url": document.url,
        "snippet": snippet,
        "score": score,
    }


class SearchService:
    """Service for hybrid search over indexed documentation."""

    def __init__(
        self,
        store_path: Path,
        embedder: EmbeddingProvider,
        dimensions: int = EMBEDDING_DIMENSIONS,
        max_elements: int = MAX_ELEMENTS,
        m: int = HNSW_M,
        ef_construction: int = HNSW_EF_CONSTRUCTION,
        ef_search: int = HNSW_EF_SEARCH,
        default_limit: int = DEFAULT_SEARCH_LIMIT,
        hybrid_alpha: float = DEFAULT_HYBRID_ALPHA,
        overfetch_factor: int = OVERFETCH_FACTOR,
        snippet_length: int = SNIPPET_LENGTH,
        keyword_top_n: int = KEYWORD_TOP_N,
        save_embeddings: bool = False,
        batch_save_size: int = BATCH_SAVE_SIZE,
    ) -> None:
        """Initialize search service.

        Nothing is read from disk until ``initialize()``.

        Args:
            store_path: Directory holding metadata.json, vector-index.bin
                and id-mapping.json.
            embedder: Embedding provider used for documents and queries.
            dimensions: Vector dimensionality; must match the embedder.
            max_elements: Initial vector index capacity.
            m: HNSW neighbour count.
            ef_construction: HNSW construction-time search breadth.
            ef_search: HNSW query-time search breadth.
            default_limit: Result count when a search passes no limit.
            hybrid_alpha: Default vector weight in hybrid mode.
            overfetch_factor: Candidates fetched per side, as a multiple of limit.
            snippet_length: Snippet window width in characters.
            keyword_top_n: Keywords extracted per document.
            save_embeddings: Whether metadata.json includes embeddings.
            batch_save_size: Documents ingested between saves in batch ingestion.
        """
        embedder_dims = getattr(embedder, "dimensions", dimensions)
        if embedder_dims != dimensions:
            raise ValueError(
                f"Embedding provider produces {embedder_dims}-dimensional vectors, "
                f"index is configured for {dimensions}"
            )

        self._store_path = Path(store_path)
        self._embedder = embedder
        self._documents = DocumentStore(self._store_path / METADATA_FILE)
        self._vector_options = {
            "dimensions": dimensions,
            "max_elements": max_elements,
            "m": m,
            "ef_construction": ef_construction,
            "ef_search": ef_search,
        }
        self._vectors = self._new_vector_index()
        self._keyword = KeywordIndex(
            self._documents, snippet_length=snippet_length, top_n=keyword_top_n
        )
        self._ranker = HybridRanker(alpha=hybrid_alpha)
        self._default_limit = default_limit
        self._overfetch_factor = overfetch_factor
        self._snippet_length = snippet_length
        self._save_embeddings = save_embeddings
        self._batch_save_size = batch_save_size

        self._lock = asyncio.Lock()
        self._ready = False

    @classmethod
    def from_settings(cls, settings: Config, embedder: EmbeddingProvider) -> SearchService:
        """Build a service from application settings."""
        return cls(
            store_path=settings.store_path,
            embedder=embedder,
            dimensions=settings.vector.dimensions,
            max_elements=settings.vector.max_elements,
            m=settings.vector.m,
            ef_construction=settings.vector.ef_construction,
            ef_search=settings.vector.ef_search,
            default_limit=settings.search.result_limit,
            hybrid_alpha=settings.search.hybrid_alpha,
            overfetch_factor=settings.search.overfetch_factor,
            snippet_length=settings.search.snippet_length,
            keyword_top_n=settings.search.keyword_top_n,
            save_embeddings=settings.storage.save_embeddings,
            batch_save_size=settings.embedding.batch_save_size,
        )

    def _new_vector_index(self) -> VectorIndex:
        return VectorIndex(
            self._store_path / INDEX_FILE,
            self._store_path / MAPPING_FILE,
            **self._vector_options,
        )

    @property
    def ready(self) -> bool:
        """True once initialize() has completed."""
        return self._ready

    @property
    def documents(self) -> DocumentStore:
        return self._documents

    @property
    def vectors(self) -> VectorIndex:
        return self._vectors

    @property
    def keyword_index(self) -> KeywordIndex:
        return self._keyword

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def initialize(self) -> None:
        """Load persisted state, rebuilding the vector index when needed.

        Safe to call repeatedly and concurrently; only the first call does
        any work.

        Raises:
            IndexNotInitializedError: If initialization fails.
        """
        async with self._lock:
            if self._ready:
                return

            logger.info(f"Initializing search service at {self._store_path}")
            try:
                await asyncio.to_thread(self._store_path.mkdir, parents=True, exist_ok=True)
                await asyncio.to_thread(self._documents.load)
                needs_rebuild = await asyncio.to_thread(self._load_vectors)

                if needs_rebuild:
                    if len(self._documents) > 0:
                        logger.info("Rebuilding vector index with existing documents...")
                        try:
                            await self._rebuild()
                        except StorageError as e:
                            logger.warning(
                                f"Serving the rebuilt vector index from memory until the "
                                f"next successful save: {e}"
                            )
                    else:
                        self._vectors.create()
            except DocSearchError as e:
                logger.error(f"Failed to initialize search service: {e}")
                raise IndexNotInitializedError(f"Search service initialization failed: {e}") from e
            except OSError as e:
                logger.error(f"Failed to initialize search service: {e}")
                raise IndexNotInitializedError(f"Search service initialization failed: {e}") from e

            self._ready = True
            logger.info(
                f"Search service initialized with {len(self._documents)} documents "
                f"and {self._vectors.element_count} vectors"
            )

    def _load_vectors(self) -> bool:
        """Load or create the vector index.

        Returns:
            True if the index has to be rebuilt from the document store.
        """
        if not self._vectors.exists_on_disk():
            self._vectors.create()
            return True

        try:
            consistent = self._vectors.load()
        except DimensionMismatchError as e:
            logger.warning(f"Discarding persisted vector index: {e}")
            self._vectors.create()
            return True
        except StorageError as e:
            logger.warning(f"Persisted vector index is unreadable, creating a new one: {e}")
            self._vectors.create()
            return True

        if not consistent:
            return True

        if self._vectors.element_count == 0 and len(self._documents) > 0:
            logger.warning(
                f"Vector index is empty but {len(self._documents)} documents exist, "
                "regenerating embeddings"
            )
            return True
        return False

    async def _ensure_ready(self) -> None:
        if not self._ready:
            await self.initialize()

    async def close(self) -> None:
        """Flush state to disk and release the vector index."""
        async with self._lock:
            if not self._ready:
                return
            try:
                await self._persist()
            except StorageError as e:
                logger.error(f"Failed to save search index on close: {e}")
            self._vectors.close()
            self._ready = False
            logger.info("Search service closed")

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def _save_sync(self) -> None:
        self._vectors.save()
        self._documents.save(include_embeddings=self._save_embeddings)

    async def _persist(self) -> None:
        """Write the vector index, the ID mapping and metadata.json.

        Raises:
            StorageError: If any of the files cannot be written.
        """
        await asyncio.to_thread(self._save_sync)

    async def _persist_or_raise(self) -> None:
        try:
            await self._persist()
        except StorageError as e:
            logger.error(f"Failed to save search index: {e}")
            raise

    # -------------------------------------------------------------------------
    # Ingestion and deletion
    # -------------------------------------------------------------------------

    async def _ingest(self, record: DocumentCreate) -> str:
        document_id = str(uuid4())
        document = Document(
            id=document_id,
            framework=record.framework,
            version=record.version,
            path=record.path,
            title=record.title,
            content=record.content,
            url=record.url,
        )

        try:
            document.embedding = await self._embedder.embed(document.embedding_text)
        except EmbeddingError as e:
            logger.warning(
                f"Embedding failed for document {document_id} ({record.title!r}), "
                f"it is keyword-searchable only until the next rebuild: {e}"
            )

        self._documents.add(document)

        if document.embedding is not None:
            try:
                self._vectors.insert(document_id, document.embedding)
            except DimensionMismatchError as e:
                logger.error(f"Rejected embedding for document {document_id}: {e}")
                document.embedding = None
            except RuntimeError as e:
                logger.error(f"Failed to add document {document_id} to vector index: {e}")

        logger.debug(f"Added document {document_id} to search index")
        return document_id

    async def add_document(self, record: DocumentCreate) -> str:
        """Store, embed, index and persist one document.

        Returns:
            The new document ID.

        Raises:
            StorageError: If persisting fails. The document stays in memory
                and is written by the next successful save.
        """
        await self._ensure_ready()
        async with self._lock:
            document_id = await self._ingest(record)
            await self._persist_or_raise()
        return document_id

    async def add_documents(self, records: Iterable[DocumentCreate]) -> list[str]:
        """Ingest documents in order, saving every batch_save_size documents."""
        await self._ensure_ready()
        ids: list[str] = []
        async with self._lock:
            pending = 0
            for record in records:
                ids.append(await self._ingest(record))
                pending += 1
                if pending >= self._batch_save_size:
                    await self._persist_or_raise()
                    pending = 0
            if pending:
                await self._persist_or_raise()
        logger.info(f"Added {len(ids)} documents to search index")
        return ids

    async def delete_document(self, document_id: str) -> bool:
        """Delete one document. Returns False if the ID is unknown.

        The document's vector stays in the index as a dead slot.
        """
        await self._ensure_ready()
        async with self._lock:
            if not self._documents.remove(document_id):
                return False
            self._vectors.remove(document_id)
            await self._persist_or_raise()
        logger.debug(f"Deleted document {document_id}")
        return True

    async def clear_framework_version(self, framework: str, version: str) -> int:
        """Delete every document tagged (framework, version).

        Returns:
            Number of documents removed.
        """
        await self._ensure_ready()
        async with self._lock:
            removed = self._documents.remove_framework_version(framework, version)
            for document_id in removed:
                self._vectors.remove(document_id)
            if removed:
                await self._persist_or_raise()
        logger.info(f"Cleared {len(removed)} documents for {framework} {version}")
        return len(removed)

    # -------------------------------------------------------------------------
    # Rebuild
    # -------------------------------------------------------------------------

    async def _rebuild(self) -> int:
        """Build a new vector index and swap it in once it is complete.

        Searches keep reading the previous index while embeddings are
        regenerated.
        """
        logger.info("Rebuilding vector index from scratch...")
        fresh = self._new_vector_index()
        fresh.create()

        indexed = 0
        regenerated = 0
        for document in list(self._documents):
            try:
                embedding = document.embedding
                if embedding is None or len(embedding) != fresh.dimensions:
                    logger.debug(f"Regenerating embedding for document {document.id}")
                    embedding = await self._embedder.embed(document.embedding_text)
                    document.embedding = embedding
                    regenerated += 1
                fresh.insert(document.id, embedding)
                indexed += 1
            except (DocSearchError, RuntimeError, ValueError) as e:
                logger.error(
                    f"Failed to process document {document.id} ({document.title!r}) "
                    f"during rebuild: {e}"
                )

        self._vectors = fresh
        await self._persist_or_raise()
        logger.info(
            f"Vector index rebuilt with {indexed} of {len(self._documents)} documents "
            f"(regenerated {regenerated} embeddings)"
        )
        return indexed

    async def rebuild_index(self) -> int:
        """Recreate the vector index from every live document.

        Reclaims dead slots left by deletions and regenerates missing
        embeddings. A document whose embedding fails is skipped.

        Returns:
            Number of documents now in the vector index.
        """
        await self._ensure_ready()
        async with self._lock:
            return await self._rebuild()

    # -------------------------------------------------------------------------
    # Stats
    # -------------------------------------------------------------------------

    async def get_stats(self) -> IndexStats:
        """Recompute statistics from the document store."""
        await self._ensure_ready()
        stats = self._documents.compute_stats()

        element_count = self._vectors.element_count
        dead_slots = element_count - self._vectors.live_count
        if dead_slots > 0:
            logger.info(
                f"Vector index holds {dead_slots} dead slots out of {element_count}; "
                "rebuild_index() reclaims them"
            )
        if element_count > 0 and self._vectors.live_count != stats.total_documents:
            logger.warning(
                f"Vector count ({self._vectors.live_count}) doesn't match "
                f"document count ({stats.total_documents})"
            )
        return stats

    # -------------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------------

    def _vector_unavailable_reason(self) -> str | None:
        if not self._vectors.is_ready:
            return "vector index is not initialized"
        if self._vectors.live_count == 0:
            return "vector index is empty"
        return None

    def _vector_hits(
        self,
        query_vector: list[float],
        query: str,
        framework: str | None,
        version: str | None,
        limit: int,
    ) -> list[dict[str, Any]]:
        neighbours = self._vectors.query(query_vector, limit * ANN_FILTER_HEADROOM)
        terms = tokenize_query(query)

        results: list[dict[str, Any]] = []
        for document_id, similarity in neighbours:
            document = self._documents.get(document_id)
            if document is None:
                logger.debug(f"Document with ID {document_id} not found in document store")
                continue
            if not matches_filters(document, framework, version):
                continue
            snippet = generate_snippet(document.content, terms, self._snippet_length)
            results.append(_to_result(document, similarity, snippet))
            if len(results) >= limit:
                break
        return results

    def _keyword_hits(
        self,
        query: str,
        framework: str | None,
        version: str | None,
        limit: int,
    ) -> list[dict[str, Any]]:
        results: list[dict[str, Any]] = []
        for hit in self._keyword.search(query, framework=framework, version=version, limit=limit):
            document = self._documents.get(hit.id)
            if document is not None:
                results.append(_to_result(document, hit.score, hit.snippet))
        return results

    def keyword_search(
        self,
        query: str,
        framework: str | None = None,
        version: str | None = None,
        limit: int = DEFAULT_SEARCH_LIMIT,
    ) -> list[SearchResult]:
        """Pure keyword search with raw keyword scores."""
        return [
            SearchResult(**r) for r in self._keyword_hits(query, framework, version, limit)
        ]

    async def vector_search(
        self,
        query: str,
        framework: str | None = None,
        version: str | None = None,
        limit: int = DEFAULT_SEARCH_LIMIT,
    ) -> list[SearchResult]:
        """Pure vector search with raw cosine similarity scores.

        Raises:
            EmbeddingError: If the query cannot be embedded.
        """
        await self._ensure_ready()
        query_vector = await self._embedder.embed(query)
        return [
            SearchResult(**r)
            for r in self._vector_hits(query_vector, query, framework, version, limit)
        ]

    async def _hybrid(
        self,
        query: str,
        framework: str | None,
        version: str | None,
        limit: int,
        alpha: float,
    ) -> list[SearchResult]:
        query_vector = await self._embedder.embed(query)
        candidates = limit * self._overfetch_factor

        vector_results = self._vector_hits(query_vector, query, framework, version, candidates)
        keyword_results = self._keyword_hits(query, framework, version, candidates)

        merged = self._ranker.merge(vector_results, keyword_results, limit, alpha=alpha)
        return [SearchResult(**r) for r in merged]

    async def search(
        self,
        query: str,
        framework: str | None = None,
        version: str | None = None,
        limit: int | None = None,
        mode: SearchMode | str = SearchMode.HYBRID,
        hybrid_alpha: float | None = None,
    ) -> list[SearchResult]:
        """Search documents.

        ``semantic`` mode ranks by vector similarity alone (alpha 1.0),
        ``keyword`` mode never touches the vector index, and ``hybrid`` blends
        both with ``hybrid_alpha``. When the vector index is unavailable or
        the chosen mode fails, the query is answered by keyword search.

        Raises:
            SearchError: If keyword search fails as well.
        """
        await self._ensure_ready()

        mode = SearchMode(mode)
        limit = limit or self._default_limit
        alpha = self._ranker.alpha if hybrid_alpha is None else hybrid_alpha
        if mode is SearchMode.SEMANTIC:
            alpha = 1.0

        if mode is SearchMode.KEYWORD:
            return self._keyword_or_raise(query, framework, version, limit)

        reason = self._vector_unavailable_reason()
        if reason is not None:
            logger.warning(f"Falling back to keyword search for {mode.value} query: {reason}")
            return self._keyword_or_raise(query, framework, version, limit)

        try:
            return await self._hybrid(query, framework, version, limit, alpha)
        except Exception as e:
            logger.warning(
                f"{mode.value} search failed, retrying with keyword search: {e}",
                exc_info=True,
            )
            return self._keyword_or_raise(query, framework, version, limit, cause=e)

    def _keyword_or_raise(
        self,
        query: str,
        framework: str | None,
        version: str | None,
        limit: int,
        cause: Exception | None = None,
    ) -> list[SearchResult]:
        try:
            return self.keyword_search(query, framework=framework, version=version, limit=limit)
        except Exception as e:
            logger.error(f"Keyword search failed for query {query!r}: {e}")
            message = f"Search failed: {e}"
            if cause is not None:
                message = f"Search failed: {cause}; keyword fallback failed: {e}"
            raise SearchError(message) from e
