"""Document records and their JSON persistence."""

import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator

from docsearch.errors import StorageError

logger = logging.getLogger(__name__)


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass
class Document:
    """An indexed documentation page."""

    id: str
    framework: str
    version: str
    path: str
    title: str
    content: str
    url: str | None = None
    embedding: list[float] | None = None
    created_at: int = field(default_factory=now_ms)

    @property
    def embedding_text(self) -> str:
        """Text the document is embedded from."""
        return f"{self.title}\n\n{self.content}"

    def to_dict(self, include_embedding: bool = False) -> dict[str, Any]:
        """Serialize to the metadata.json document shape."""
        data: dict[str, Any] = {
            "id": self.id,
            "framework": self.framework,
            "version": self.version,
            "path": self.path,
            "title": self.title,
            "content": self.content,
            "createdAt": self.created_at,
        }
        if self.url is not None:
            data["url"] = self.url
        if include_embedding and self.embedding is not None:
            data["embedding"] = self.embedding
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Document":
        return cls(
            id=data["id"],
            framework=data["framework"],
            version=data["version"],
            path=data.get("path", ""),
            title=data.get("title", ""),
            content=data.get("content", ""),
            url=data.get("url"),
            embedding=data.get("embedding"),
            created_at=data.get("createdAt", 0),
        )


@dataclass
class IndexStats:
    """Aggregate view over the document store."""

    total_documents: int = 0
    frameworks: list[str] = field(default_factory=list)
    versions: dict[str, list[str]] = field(default_factory=dict)
    last_updated: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalDocuments": self.total_documents,
            "frameworks": self.frameworks,
            "versions": self.versions,
            "lastUpdated": self.last_updated,
        }


class DocumentStore:
    """In-memory document map backed by metadata.json.

    The store is the source of truth for document content; the keyword index
    and statistics are derived from it, and the vector index can be rebuilt
    from it.
    """

    def __init__(self, metadata_path: Path) -> None:
        self._metadata_path = Path(metadata_path)
        self._documents: dict[str, Document] = {}
        self._last_updated = 0

    def __len__(self) -> int:
        return len(self._documents)

    def __contains__(self, document_id: object) -> bool:
        return document_id in self._documents

    def __iter__(self) -> Iterator[Document]:
        return iter(list(self._documents.values()))

    @property
    def metadata_path(self) -> Path:
        return self._metadata_path

    def get(self, document_id: str) -> Document | None:
        return self._documents.get(document_id)

    def add(self, document: Document) -> None:
        self._documents[document.id] = document
        self._last_updated = now_ms()

    def remove(self, document_id: str) -> bool:
        """Remove a document. Returns False if the id is unknown."""
        if self._documents.pop(document_id, None) is None:
            return False
        self._last_updated = now_ms()
        return True

    def remove_framework_version(self, framework: str, version: str) -> list[str]:
        """Remove every document tagged (framework, version).

        Returns:
            IDs of the removed documents.
        """
        removed = [
            doc_id
            for doc_id, doc in self._documents.items()
            if doc.framework == framework and doc.version == version
        ]
        for doc_id in removed:
            del self._documents[doc_id]
        if removed:
            self._last_updated = now_ms()
        return removed

    def compute_stats(self) -> IndexStats:
        """Recompute aggregate statistics by scanning every document."""
        versions: dict[str, set[str]] = {}
        for doc in self._documents.values():
            versions.setdefault(doc.framework, set()).add(doc.version)

        return IndexStats(
            total_documents=len(self._documents),
            frameworks=sorted(versions),
            versions={fw: sorted(vs) for fw, vs in sorted(versions.items())},
            last_updated=self._last_updated,
        )

    def load(self) -> int:
        """Load documents from metadata.json.

        A missing file leaves the store empty. An unreadable file is logged,
        renamed to ``metadata.json.corrupt`` so the next save cannot
        overwrite it, and the store starts empty.

        Returns:
            Number of documents loaded.
        """
        self._documents = {}
        if not self._metadata_path.exists():
            return 0

        try:
            with open(self._metadata_path, encoding="utf-8") as f:
                data = json.load(f)
            for raw in data.get("documents", []):
                doc = Document.from_dict(raw)
                self._documents[doc.id] = doc
            self._last_updated = data.get("stats", {}).get("lastUpdated", 0)
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.error(f"Failed to load metadata from {self._metadata_path}, starting empty: {e}")
            self._documents = {}
            self._set_aside_corrupt_file()

        logger.info(f"Loaded metadata with {len(self._documents)} documents")
        return len(self._documents)

    def _set_aside_corrupt_file(self) -> None:
        corrupt_path = self._metadata_path.with_name(self._metadata_path.name + ".corrupt")
        try:
            self._metadata_path.replace(corrupt_path)
        except OSError as e:
            logger.error(f"Failed to move {self._metadata_path} aside: {e}")
            return
        logger.warning(f"Moved unreadable metadata to {corrupt_path}")

    def save(self, include_embeddings: bool = False) -> None:
        """Write metadata.json.

        Raises:
            StorageError: If the file cannot be written.
        """
        payload = {
            "documents": [
                doc.to_dict(include_embedding=include_embeddings)
                for doc in self._documents.values()
            ],
            "stats": self.compute_stats().to_dict(),
            "embeddings_included": include_embeddings,
        }
        try:
            self._metadata_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._metadata_path, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
        except (OSError, TypeError) as e:
            raise StorageError(f"Failed to write {self._metadata_path}: {e}") from e
        logger.debug(f"Metadata saved to {self._metadata_path}")
