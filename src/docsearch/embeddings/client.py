# src/docsearch/embeddings/client.py
"""Embedding providers.

Two implementations of the same contract, ``await embed(text) -> list[float]``:

- ``LocalEmbeddingClient`` runs the ONNX all-MiniLM-L6-v2 model bundled with
  chromadb's default embedding function, in a worker thread.
- ``EmbeddingClient`` calls remote embedding models (OpenAI, Ollama, ...)
  through LiteLLM.

Both truncate input to the same ``max_chars`` so that indexing-time and
query-time embeddings are comparable.
"""

import asyncio
import logging
import time
from typing import Any, Protocol, runtime_checkable

from litellm import aembedding
from litellm.exceptions import (
    APIConnectionError,
    APIError,
    AuthenticationError,
    RateLimitError,
)

from docsearch.config import Config
from docsearch.constants import EMBEDDING_DIMENSIONS, EMBEDDING_MAX_CHARS
from docsearch.errors import EmbeddingError

logger = logging.getLogger(__name__)


class EmbeddingConnectionError(EmbeddingError):
    """Raised when unable to connect to the embedding provider."""

    pass


class EmbeddingAuthenticationError(EmbeddingError):
    """Raised when authentication with the embedding provider fails."""

    pass


class EmbeddingRateLimitError(EmbeddingError):
    """Raised when rate limited by the embedding provider."""

    pass


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Anything that turns text into a fixed-length vector."""

    dimensions: int

    async def embed(self, text: str) -> list[float]: ...


def prepare_text(text: str, max_chars: int) -> str:
    """Truncate text for embedding.

    Raises:
        EmbeddingError: If nothing but whitespace remains.
    """
    truncated = text[:max_chars] if len(text) > max_chars else text
    if not truncated.strip():
        raise EmbeddingError("Cannot embed empty text")
    return truncated


class LocalEmbeddingClient:
    """Sentence embeddings computed locally with chromadb's bundled ONNX model."""

    def __init__(
        self,
        dimensions: int = EMBEDDING_DIMENSIONS,
        max_chars: int = EMBEDDING_MAX_CHARS,
    ) -> None:
        self.dimensions = dimensions
        self.max_chars = max_chars
        self._function: Any = None

    def _load(self) -> Any:
        if self._function is None:
            from chromadb.utils import embedding_functions

            logger.info("Loading local embedding model all-MiniLM-L6-v2")
            self._function = embedding_functions.DefaultEmbeddingFunction()
        return self._function

    def _embed_sync(self, text: str) -> list[float]:
        function = self._load()
        vectors = function([text])
        return [float(x) for x in vectors[0]]

    async def embed(self, text: str) -> list[float]:
        """Embed a single text.

        Raises:
            EmbeddingError: If the model cannot be loaded or run.
        """
        prepared = prepare_text(text, self.max_chars)
        try:
            return await asyncio.to_thread(self._embed_sync, prepared)
        except EmbeddingError:
            raise
        except Exception as e:
            logger.error(f"Local embedding failed: {e}")
            raise EmbeddingError(f"Local embedding failed: {e}") from e


class EmbeddingClient:
    """Remote embedding client supporting multiple providers via LiteLLM."""

    def __init__(
        self,
        model: str,
        dimensions: int = EMBEDDING_DIMENSIONS,
        api_key: str | None = None,
        endpoint: str | None = None,
        max_chars: int = EMBEDDING_MAX_CHARS,
    ) -> None:
        """Initialize embedding client.

        Args:
            model: LiteLLM model string (e.g. ``text-embedding-3-small`` or
                ``ollama/nomic-embed-text``).
            dimensions: Expected vector length.
            api_key: Optional API key (uses env var if not provided).
            endpoint: Optional custom endpoint (for Ollama).
            max_chars: Truncation limit applied before embedding.
        """
        self.model = model
        self.dimensions = dimensions
        self.api_key = api_key
        self.endpoint = endpoint
        self.max_chars = max_chars

    async def embed(self, text: str) -> list[float]:
        """Embed a single text.

        Provider failures are mapped onto ``EmbeddingError`` subclasses and
        are not retried here. The requested dimensionality is passed to the
        provider; providers that cannot shorten vectors drop the parameter,
        and a vector of any other length is rejected.
        """
        prepared = prepare_text(text, self.max_chars)

        kwargs: dict[str, Any] = {
            "model": self.model,
            "input": [prepared],
            "dimensions": self.dimensions,
            "drop_params": True,
        }
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.endpoint:
            kwargs["api_base"] = self.endpoint

        start_time = time.perf_counter()
        try:
            response = await aembedding(**kwargs)
        except AuthenticationError as e:
            raise EmbeddingAuthenticationError(f"Authentication failed: {e}") from e
        except RateLimitError as e:
            raise EmbeddingRateLimitError(f"Rate limit exceeded: {e}") from e
        except APIConnectionError as e:
            raise EmbeddingConnectionError(f"Connection failed: {e}") from e
        except APIError as e:
            raise EmbeddingError(f"Embedding API error: {e}") from e
        except Exception as e:
            # Timeout, BadRequestError, ServiceUnavailableError and friends
            # share no base class with the cases above.
            raise EmbeddingError(f"Embedding failed: {e}") from e

        duration_ms = int((time.perf_counter() - start_time) * 1000)
        logger.debug(f"Embedded {len(prepared)} chars with {self.model} in {duration_ms}ms")

        item = response.data[0]
        vector = item["embedding"] if isinstance(item, dict) else item.embedding
        if len(vector) != self.dimensions:
            raise EmbeddingError(
                f"{self.model} returned a {len(vector)}-dimensional vector, "
                f"expected {self.dimensions}"
            )
        return [float(x) for x in vector]


def create_embedding_provider(settings: Config) -> EmbeddingProvider:
    """Build the embedding provider selected by configuration."""
    if settings.embedding_provider == "litellm":
        return EmbeddingClient(
            model=settings.embedding_model,
            dimensions=settings.vector.dimensions,
            api_key=settings.embedding_api_key,
            endpoint=settings.embedding_endpoint,
            max_chars=settings.embedding.max_chars,
        )
    return LocalEmbeddingClient(
        dimensions=settings.vector.dimensions,
        max_chars=settings.embedding.max_chars,
    )
