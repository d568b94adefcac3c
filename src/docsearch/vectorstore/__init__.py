"""Vector index module for semantic search."""

from docsearch.vectorstore.index import VectorIndex, read_index_dimensions

__all__ = ["VectorIndex", "read_index_dimensions"]
