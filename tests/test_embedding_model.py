"""Unit tests for EmbeddingModel class."""
import sys
import asyncio
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import pytest
from unittest.mock import Mock, patch, MagicMock, AsyncMock
import httpx
from services.embedding_model import EmbeddingModel, ContextLengthExceededError


def mock_response(status_code, payload=None, text=""):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = payload
    response.text = text
    return response


def mock_async_client(mock_client_class, **post_kwargs):
    """Wire a patched httpx.AsyncClient so `async with` yields a client with an async post."""
    mock_client = MagicMock()
    mock_client.__aenter__.return_value.post = AsyncMock(**post_kwargs)
    mock_client_class.return_value = mock_client
    return mock_client.__aenter__.return_value.post


class TestEmbeddingModel:
    """Test suite for EmbeddingModel."""

    def test_initialization_success(self):
        """Test successful initialization with API key."""
        model = EmbeddingModel(api_key="test_key")
        assert model.api_key == "test_key"
        assert model.model_name == "sentence-transformers/all-mpnet-base-v2"
        assert model.max_retries == 5

    def test_initialization_without_api_key(self):
        """Test initialization fails without API key."""
        with pytest.raises(ValueError, match="HUGGINGFACE_API_KEY"):
            EmbeddingModel(api_key=None)

    def test_embed_text_empty_string(self):
        """Test embed_text raises error for empty string."""
        model = EmbeddingModel(api_key="test_key")

        with pytest.raises(ValueError, match="Text cannot be empty"):
            asyncio.run(model.embed_text(""))

        with pytest.raises(ValueError, match="Text cannot be empty"):
            asyncio.run(model.embed_text("   "))

    @patch('httpx.AsyncClient')
    def test_embed_text_success(self, mock_client_class):
        """Test successful single text embedding."""
        post = mock_async_client(mock_client_class, return_value=mock_response(200, [[0.1, 0.2, 0.3]]))

        model = EmbeddingModel(api_key="test_key")
        result = asyncio.run(model.embed_text("test text"))

        assert result == [0.1, 0.2, 0.3]
        assert post.await_count == 1
        assert post.call_args.kwargs["json"]["inputs"] == ["test text"]

    @patch('httpx.AsyncClient')
    @patch('asyncio.sleep', new_callable=AsyncMock)
    def test_retry_on_503_success(self, mock_sleep, mock_client_class):
        """Test retry logic succeeds after 503 error."""
        post = mock_async_client(mock_client_class, side_effect=[
            mock_response(503, {"estimated_time": 10}, '{"estimated_time": 10}'),
            mock_response(200, [[0.1, 0.2, 0.3]]),
        ])

        model = EmbeddingModel(api_key="test_key", initial_delay=1.0)
        result = asyncio.run(model.embed_text("test text"))

        assert result == [0.1, 0.2, 0.3]
        mock_sleep.assert_awaited_once_with(1.0)
        assert post.await_count == 2

    @patch('httpx.AsyncClient')
    @patch('asyncio.sleep', new_callable=AsyncMock)
    def test_retry_exhausted_on_503(self, mock_sleep, mock_client_class):
        post = mock_async_client(mock_client_class, return_value=mock_response(503, text="loading"))

        model = EmbeddingModel(api_key="test_key", max_retries=3, initial_delay=1.0)
        with pytest.raises(RuntimeError, match="Failed to generate embeddings after 3 attempts"):
            asyncio.run(model.embed_text("test text"))

        assert post.await_count == 3
        assert [c.args[0] for c in mock_sleep.await_args_list] == [1.0, 2.0]

    @patch('httpx.AsyncClient')
    def test_context_length_error(self, mock_client_class):
        """Over-long input is reported distinctly so callers can split it."""
        post = mock_async_client(mock_client_class, return_value=mock_response(
            400, text='{"error": "Input validation error: inputs must have less than 512 tokens"}'
        ))

        model = EmbeddingModel(api_key="test_key")
        with pytest.raises(ContextLengthExceededError):
            asyncio.run(model.embed_text("very long text"))

        assert post.await_count == 1

    @patch('httpx.AsyncClient')
    def test_other_400_is_runtime_error(self, mock_client_class):
        mock_async_client(mock_client_class, return_value=mock_response(400, text="malformed payload"))

        model = EmbeddingModel(api_key="test_key")
        with pytest.raises(RuntimeError) as exc_info:
            asyncio.run(model.embed_text("text"))

        assert not isinstance(exc_info.value, ContextLengthExceededError)

    @patch('httpx.AsyncClient')
    def test_rate_limit_error(self, mock_client_class):
        mock_async_client(mock_client_class, return_value=mock_response(429))

        model = EmbeddingModel(api_key="test_key")
        with pytest.raises(RuntimeError, match="Rate limit exceeded"):
            asyncio.run(model.embed_text("test text"))

    @patch('httpx.AsyncClient')
    def test_authentication_error(self, mock_client_class):
        mock_async_client(mock_client_class, return_value=mock_response(401))

        model = EmbeddingModel(api_key="invalid_key")
        with pytest.raises(RuntimeError, match="Invalid API key"):
            asyncio.run(model.embed_text("test text"))

    @patch('httpx.AsyncClient')
    @patch('asyncio.sleep', new_callable=AsyncMock)
    def test_timeout_with_retry(self, mock_sleep, mock_client_class):
        post = mock_async_client(mock_client_class, side_effect=[
            httpx.TimeoutException("Request timeout"),
            mock_response(200, [[0.1, 0.2, 0.3]]),
        ])

        model = EmbeddingModel(api_key="test_key", initial_delay=1.0)
        result = asyncio.run(model.embed_text("test text"))

        assert result == [0.1, 0.2, 0.3]
        assert post.await_count == 2
        assert mock_sleep.await_count == 1

    @patch('httpx.AsyncClient')
    @patch('asyncio.sleep', new_callable=AsyncMock)
    def test_network_error_with_retry(self, mock_sleep, mock_client_class):
        mock_async_client(mock_client_class, side_effect=[
            httpx.RequestError("Network error"),
            mock_response(200, [[0.1, 0.2, 0.3]]),
        ])

        model = EmbeddingModel(api_key="test_key", initial_delay=1.0)
        assert asyncio.run(model.embed_text("test text")) == [0.1, 0.2, 0.3]

    @patch('httpx.AsyncClient')
    def test_warmup_success(self, mock_client_class):
        mock_async_client(mock_client_class, return_value=mock_response(200, [[0.1]]))

        model = EmbeddingModel(api_key="test_key")
        assert asyncio.run(model.warmup()) is True

    @patch('httpx.AsyncClient')
    def test_warmup_failure(self, mock_client_class):
        mock_async_client(mock_client_class, return_value=mock_response(401))

        model = EmbeddingModel(api_key="test_key")
        assert asyncio.run(model.warmup()) is False
