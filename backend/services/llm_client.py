"""LLM Client for Groq API integration."""
import time
from dataclasses import dataclass
from typing import List, Optional, Dict, Any
from groq import AsyncGroq
from groq import RateLimitError, AuthenticationError, APIError, APITimeoutError
import logging

from config import GROQ_API_KEY, CHAT_MODEL
from models.api import RelevantSection

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_MESSAGE = (
    "You are a helpful assistant that provides accurate and concise answers based on the "
    "provided document content. Always reference specific sections when providing information. "
    "If the information is not clear or complete in the provided content, acknowledge this in "
    "your response."
)

CONTEXT_SEPARATOR = "\n---\n"


@dataclass
class LLMResponse:
    """Response from LLM generation."""
    text: str
    tokens_input: int
    tokens_output: int
    latency_ms: int
    model_used: str


@dataclass
class LLMError:
    """Structured error response from LLM operations."""
    code: str
    message: str
    details: Dict[str, Any]


class LLMClientError(Exception):
    """Custom exception for LLM client errors with structured error information."""

    def __init__(self, error: LLMError):
        self.error = error
        super().__init__(error.message)


class LLMClient:
    """Client for interfacing with Groq API for grounded, cited answers."""

    def __init__(self, api_key: Optional[str] = None, model: str = CHAT_MODEL):
        """
        Initialize LLM client with Groq API key.

        Args:
            api_key: Groq API key (defaults to GROQ_API_KEY from environment)
            model: Chat model name
        """
        self.api_key = api_key or GROQ_API_KEY
        if not self.api_key:
            raise ValueError("GROQ_API_KEY must be provided or set in environment")

        self.model = model
        self.client = AsyncGroq(api_key=self.api_key)
        logger.info("LLMClient initialized successfully")

    async def generate(
        self,
        system_message: str,
        citation_instructions: str,
        context_block: str,
        query: str,
        max_tokens: int = 1000
    ) -> LLMResponse:
        """
        Generate an answer from retrieved context.

        Args:
            system_message: Caller's system prompt
            citation_instructions: Citation format the answer must follow
            context_block: Aggregated context of the retrieved passages
            query: User question
            max_tokens: Maximum tokens to generate

        Returns:
            LLMResponse with text, token counts, and latency

        Raises:
            LLMClientError: Structured error with code, message, and details
        """
        model = self.model
        start_time = time.time()

        try:
            logger.debug(f"Generating response with model: {model}")

            response = await self.client.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": system_message},
                    {"role": "system", "content": citation_instructions},
                    {"role": "user", "content": f"{context_block}\n\n{query}"},
                ],
                max_tokens=max_tokens,
                temperature=0.3
            )

            latency_ms = int((time.time() - start_time) * 1000)
            text = response.choices[0].message.content
            tokens_input = response.usage.prompt_tokens
            tokens_output = response.usage.completion_tokens

            logger.info(
                f"Generated response: model={model}, "
                f"input_tokens={tokens_input}, output_tokens={tokens_output}, "
                f"latency={latency_ms}ms"
            )

            return LLMResponse(
                text=text,
                tokens_input=tokens_input,
                tokens_output=tokens_output,
                latency_ms=latency_ms,
                model_used=model
            )

        except RateLimitError as e:
            raise self._error("RATE_LIMIT_ERROR", "Rate limit exceeded. Please try again in a few moments.",
                              model, start_time, e, retry_after=60)

        except AuthenticationError as e:
            raise self._error("AUTHENTICATION_ERROR", "Authentication failed. Please check your API key.",
                              model, start_time, e)

        except APITimeoutError as e:
            raise self._error("TIMEOUT_ERROR", "Request timed out. Please try again.",
                              model, start_time, e)

        except APIError as e:
            raise self._error("API_ERROR", f"Groq API error: {str(e)}", model, start_time, e)

        except Exception as e:
            raise self._error("UNKNOWN_ERROR", f"Unexpected error during generation: {str(e)}",
                              model, start_time, e, error_type=type(e).__name__)

    @staticmethod
    def _error(code: str, message: str, model: str, start_time: float, cause: Exception, **extra) -> LLMClientError:
        latency_ms = int((time.time() - start_time) * 1000)
        details = {"model": model, "latency_ms": latency_ms, "original_error": str(cause), **extra}
        error = LLMError(code=code, message=message, details=details)
        logger.error(
            f"{code}: model={model}, latency={latency_ms}ms, error={cause}",
            exc_info=True,
            extra={"error_code": error.code, "error_details": error.details}
        )
        return LLMClientError(error)

    @staticmethod
    def build_context_entry(section: RelevantSection, is_table: bool = False) -> str:
        """
        Format one retrieved passage for the context block.

        Structured passages name their section and subsection; others fall
        back to the page header.
        """
        lines = [f"Document: {section.document_title}"]

        if section.section_number:
            lines.append(f"Section {section.section_number}: {section.section_title}")
            if section.subsection_number:
                lines.append(f"Subsection {section.subsection_number}: {section.subsection_title}")
        elif section.contextual_header:
            lines.append(f"Context: {section.contextual_header}")

        if is_table:
            lines.append("Content Type: Table")

        lines.append(f"Page: {section.page_number}")
        lines.append(f"ViewerUrl: {section.viewer_url}")

        if section.content:
            lines.append(section.content)

        lines.append(CONTEXT_SEPARATOR)
        return "\n".join(lines) + "\n"

    @staticmethod
    def build_context_block(entries: List[str]) -> str:
        return "".join(entries)

    @staticmethod
    def build_citation_instructions(query: str, structured: bool) -> str:
        """
        Build the citation instruction for the answer.

        Args:
            query: User question
            structured: Whether the retrieved documents carry numbered sections

        Returns:
            Instruction text asking for section- or page-anchored links
        """
        if structured:
            citation_format = """use the following format for structured sections:
[Section X.X](ViewerUrl)
Example: [Section 6.8.1](https://viewer-url?doc=doc.pdf&page=25&section=6.8.1)

Each citation should include:
1. The section number and title
2. A clickable link to the specific section
3. The page number when relevant"""
        else:
            citation_format = """use the following format:
[Page X](ViewerUrl)
Example: [Page 25](https://viewer-url?doc=doc.pdf&page=25)

Each citation should include:
1. The page number
2. A clickable link to the specific page
3. Any relevant context or headers"""

        return f"""The user asked: "{query}".
When referencing information, {citation_format}

The following relevant information was found in the documents:"""
