"""Embedding provider tests."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from litellm.exceptions import APIConnectionError, AuthenticationError, RateLimitError, Timeout

from docsearch.config import Config
from docsearch.embeddings import (
    EmbeddingAuthenticationError,
    EmbeddingClient,
    EmbeddingConnectionError,
    EmbeddingProvider,
    EmbeddingRateLimitError,
    LocalEmbeddingClient,
    create_embedding_provider,
    prepare_text,
)
from docsearch.errors import EmbeddingError


@pytest.fixture
def mock_aembedding():
    """Mock litellm aembedding response."""
    with patch("docsearch.embeddings.client.aembedding", new_callable=AsyncMock) as mock:
        mock.return_value = MagicMock(data=[{"embedding": [0.1, 0.2, 0.3]}])
        yield mock


def test_prepare_text_truncates():
    assert prepare_text("abcdefgh", 4) == "abcd"
    assert prepare_text("abc", 4) == "abc"


def test_prepare_text_rejects_blank():
    with pytest.raises(EmbeddingError):
        prepare_text("   \n", 100)


async def test_client_returns_vector(mock_aembedding):
    client = EmbeddingClient(model="text-embedding-3-small", dimensions=3)

    vector = await client.embed("How do hooks work?")

    assert vector == [0.1, 0.2, 0.3]
    mock_aembedding.assert_called_once()


async def test_client_passes_model_and_endpoint(mock_aembedding):
    client = EmbeddingClient(
        model="ollama/nomic-embed-text",
        dimensions=3,
        api_key="secret",
        endpoint="http://localhost:11434",
    )

    await client.embed("text")

    kwargs = mock_aembedding.call_args.kwargs
    assert kwargs["model"] == "ollama/nomic-embed-text"
    assert kwargs["input"] == ["text"]
    assert kwargs["api_key"] == "secret"
    assert kwargs["api_base"] == "http://localhost:11434"


async def test_client_truncates_input(mock_aembedding):
    client = EmbeddingClient(model="text-embedding-3-small", dimensions=3, max_chars=5)

    await client.embed("abcdefghij")

    assert mock_aembedding.call_args.kwargs["input"] == ["abcde"]


async def test_client_reads_object_responses(mock_aembedding):
    mock_aembedding.return_value = MagicMock(data=[MagicMock(embedding=[1, 2])])
    client = EmbeddingClient(model="m", dimensions=2)

    assert await client.embed("text") == [1.0, 2.0]


async def test_client_empty_text_never_calls_provider(mock_aembedding):
    client = EmbeddingClient(model="m", dimensions=3)

    with pytest.raises(EmbeddingError):
        await client.embed("")

    mock_aembedding.assert_not_called()


async def test_client_maps_authentication_error():
    with patch("docsearch.embeddings.client.aembedding", new_callable=AsyncMock) as mock:
        mock.side_effect = AuthenticationError(
            message="Invalid API key",
            llm_provider="openai",
            model="text-embedding-3-small",
        )
        client = EmbeddingClient(model="text-embedding-3-small")

        with pytest.raises(EmbeddingAuthenticationError):
            await client.embed("text")


async def test_client_maps_rate_limit_error():
    with patch("docsearch.embeddings.client.aembedding", new_callable=AsyncMock) as mock:
        mock.side_effect = RateLimitError(
            message="Rate limit exceeded",
            llm_provider="openai",
            model="text-embedding-3-small",
        )
        client = EmbeddingClient(model="text-embedding-3-small")

        with pytest.raises(EmbeddingRateLimitError):
            await client.embed("text")


async def test_client_maps_connection_error():
    with patch("docsearch.embeddings.client.aembedding", new_callable=AsyncMock) as mock:
        mock.side_effect = APIConnectionError(
            message="Connection refused",
            llm_provider="ollama",
            model="nomic-embed-text",
        )
        client = EmbeddingClient(model="ollama/nomic-embed-text")

        with pytest.raises(EmbeddingConnectionError) as exc_info:
            await client.embed("text")

    assert isinstance(exc_info.value, EmbeddingError)


async def test_client_requests_configured_dimensions(mock_aembedding):
    client = EmbeddingClient(model="text-embedding-3-small", dimensions=3)

    await client.embed("text")

    assert mock_aembedding.call_args.kwargs["dimensions"] == 3


async def test_client_rejects_wrong_vector_length(mock_aembedding):
    mock_aembedding.return_value = MagicMock(data=[{"embedding": [0.1] * 1536}])
    client = EmbeddingClient(model="text-embedding-3-small", dimensions=384)

    with pytest.raises(EmbeddingError, match="1536-dimensional"):
        await client.embed("text")


async def test_client_maps_timeout():
    with patch("docsearch.embeddings.client.aembedding", new_callable=AsyncMock) as mock:
        mock.side_effect = Timeout(
            message="Request timed out",
            model="text-embedding-3-small",
            llm_provider="openai",
        )
        client = EmbeddingClient(model="text-embedding-3-small")

        with pytest.raises(EmbeddingError, match="timed out"):
            await client.embed("text")


async def test_local_client_runs_default_function():
    client = LocalEmbeddingClient(dimensions=3)
    client._function = MagicMock(return_value=[[0.5, 0.25, 0.125]])

    vector = await client.embed("useEffect cleanup")

    assert vector == [0.5, 0.25, 0.125]
    client._function.assert_called_once_with(["useEffect cleanup"])


async def test_local_client_wraps_model_failures():
    client = LocalEmbeddingClient(dimensions=3)
    client._function = MagicMock(side_effect=RuntimeError("onnx runtime missing"))

    with pytest.raises(EmbeddingError, match="onnx runtime missing"):
        await client.embed("text")


def test_factory_picks_provider(tmp_path):
    local = create_embedding_provider(Config(data_dir=tmp_path))
    remote = create_embedding_provider(
        Config(data_dir=tmp_path, embedding_provider="litellm", embedding_model="m")
    )

    assert isinstance(local, LocalEmbeddingClient)
    assert isinstance(remote, EmbeddingClient)
    assert isinstance(local, EmbeddingProvider)
    assert remote.dimensions == local.dimensions
