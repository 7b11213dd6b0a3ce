"""Unit tests for LLMClient."""
import sys
import asyncio
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import pytest
from unittest.mock import Mock, MagicMock, AsyncMock, patch
from groq import RateLimitError, AuthenticationError, APIError, APITimeoutError
from models.api import RelevantSection
from services.llm_client import LLMClient, LLMResponse, LLMClientError


def completion(text="Answer [Section 2.1](https://viewer)", prompt_tokens=120, completion_tokens=30):
    response = Mock()
    response.choices = [Mock(message=Mock(content=text))]
    response.usage = Mock(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens)
    return response


def generate(client):
    return asyncio.run(client.generate(
        system_message="system",
        citation_instructions="cite",
        context_block="Document: manual",
        query="How do I reset the pump?",
    ))


class TestLLMClient:
    """Test suite for LLMClient class."""

    def test_initialization_with_api_key(self):
        client = LLMClient(api_key="test_key")
        assert client.api_key == "test_key"

    def test_initialization_without_api_key_raises_error(self):
        with patch('services.llm_client.GROQ_API_KEY', None):
            with pytest.raises(ValueError, match="GROQ_API_KEY must be provided"):
                LLMClient()

    @patch('services.llm_client.AsyncGroq')
    def test_generate_success(self, mock_groq_class):
        mock_client = MagicMock()
        mock_client.chat.completions.create = AsyncMock(return_value=completion())
        mock_groq_class.return_value = mock_client

        response = generate(LLMClient(api_key="test_key", model="llama-3.3-70b-versatile"))

        assert isinstance(response, LLMResponse)
        assert response.text.startswith("Answer")
        assert response.tokens_input == 120
        assert response.tokens_output == 30
        assert response.model_used == "llama-3.3-70b-versatile"

        messages = mock_client.chat.completions.create.await_args.kwargs["messages"]
        assert [m["role"] for m in messages] == ["system", "system", "user"]
        assert messages[0]["content"] == "system"
        assert messages[1]["content"] == "cite"
        assert "Document: manual" in messages[2]["content"]
        assert messages[2]["content"].endswith("How do I reset the pump?")

    @patch('services.llm_client.AsyncGroq')
    def test_rate_limit_error(self, mock_groq_class):
        mock_client = MagicMock()
        mock_client.chat.completions.create = AsyncMock(side_effect=RateLimitError(
            message="Rate limit exceeded",
            response=Mock(status_code=429),
            body=None
        ))
        mock_groq_class.return_value = mock_client

        with pytest.raises(LLMClientError) as exc_info:
            generate(LLMClient(api_key="test_key"))

        assert exc_info.value.error.code == "RATE_LIMIT_ERROR"
        assert exc_info.value.error.details["retry_after"] == 60

    @patch('services.llm_client.AsyncGroq')
    def test_authentication_error(self, mock_groq_class):
        mock_client = MagicMock()
        mock_client.chat.completions.create = AsyncMock(side_effect=AuthenticationError(
            message="Invalid API key",
            response=Mock(status_code=401),
            body=None
        ))
        mock_groq_class.return_value = mock_client

        with pytest.raises(LLMClientError) as exc_info:
            generate(LLMClient(api_key="test_key"))

        assert exc_info.value.error.code == "AUTHENTICATION_ERROR"

    @patch('services.llm_client.AsyncGroq')
    def test_timeout_error(self, mock_groq_class):
        mock_client = MagicMock()
        mock_client.chat.completions.create = AsyncMock(side_effect=APITimeoutError(request=Mock()))
        mock_groq_class.return_value = mock_client

        with pytest.raises(LLMClientError) as exc_info:
            generate(LLMClient(api_key="test_key"))

        assert exc_info.value.error.code == "TIMEOUT_ERROR"

    @patch('services.llm_client.AsyncGroq')
    def test_api_error(self, mock_groq_class):
        mock_client = MagicMock()
        mock_client.chat.completions.create = AsyncMock(side_effect=APIError(
            message="Service unavailable",
            request=Mock(),
            body=None
        ))
        mock_groq_class.return_value = mock_client

        with pytest.raises(LLMClientError) as exc_info:
            generate(LLMClient(api_key="test_key"))

        assert exc_info.value.error.code == "API_ERROR"

    @patch('services.llm_client.AsyncGroq')
    def test_unknown_error(self, mock_groq_class):
        mock_client = MagicMock()
        mock_client.chat.completions.create = AsyncMock(side_effect=KeyError("choices"))
        mock_groq_class.return_value = mock_client

        with pytest.raises(LLMClientError) as exc_info:
            generate(LLMClient(api_key="test_key"))

        assert exc_info.value.error.code == "UNKNOWN_ERROR"
        assert exc_info.value.error.details["error_type"] == "KeyError"


class TestContextBlock:
    """Context block and citation instruction formatting."""

    def test_structured_entry(self):
        section = RelevantSection(
            document_title="manual",
            section_title="Overview",
            section_number="2.1",
            subsection_title="Limits",
            subsection_number="2.1.3",
            content="Pump limits are listed here.",
            page_number=4,
            viewer_url="https://viewer?doc=manual.pdf&page=4",
        )
        entry = LLMClient.build_context_entry(section, is_table=True)

        assert entry.split("\n")[:6] == [
            "Document: manual",
            "Section 2.1: Overview",
            "Subsection 2.1.3: Limits",
            "Content Type: Table",
            "Page: 4",
            "ViewerUrl: https://viewer?doc=manual.pdf&page=4",
        ]
        assert "Pump limits are listed here." in entry
        assert "\n---\n" in entry

    def test_unstructured_entry_uses_context_header(self):
        section = RelevantSection(document_title="notes", contextual_header="Field Notes", content="text", page_number=2)
        entry = LLMClient.build_context_entry(section)

        assert "Context: Field Notes" in entry
        assert "Section" not in entry
        assert "Content Type: Table" not in entry

    def test_citation_instructions(self):
        structured = LLMClient.build_citation_instructions("reset pump", structured=True)
        assert "[Section X.X](ViewerUrl)" in structured
        assert '"reset pump"' in structured

        unstructured = LLMClient.build_citation_instructions("reset pump", structured=False)
        assert "[Page X](ViewerUrl)" in unstructured
        assert "[Section X.X]" not in unstructured

    def test_context_block_joins_entries(self):
        assert LLMClient.build_context_block(["a\n", "b\n"]) == "a\nb\n"
