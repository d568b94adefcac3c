"""Document store with JSON persistence."""

from docsearch.store.documents import Document, DocumentStore, IndexStats

__all__ = ["Document", "DocumentStore", "IndexStats"]
