"""Embedding provider abstraction."""

from docsearch.embeddings.client import (
    EmbeddingAuthenticationError,
    EmbeddingClient,
    EmbeddingConnectionError,
    EmbeddingProvider,
    EmbeddingRateLimitError,
    LocalEmbeddingClient,
    create_embedding_provider,
    prepare_text,
)

__all__ = [
    "EmbeddingAuthenticationError",
    "EmbeddingClient",
    "EmbeddingConnectionError",
    "EmbeddingProvider",
    "EmbeddingRateLimitError",
    "LocalEmbeddingClient",
    "create_embedding_provider",
    "prepare_text",
]
