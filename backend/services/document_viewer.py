"""Document and viewer URLs embedded in citations."""
import logging
from typing import Any, Mapping, Optional, Tuple
from urllib.parse import quote

from config import BLOB_STORAGE_BASE_URL, VIEWER_ENDPOINT

logger = logging.getLogger(__name__)


def normalize_document_name(name: str) -> str:
    """Collapse a doubled ``.pdf.pdf`` extension and make sure one ``.pdf`` is present."""
    if name.lower().endswith(".pdf.pdf"):
        return name[:-4]
    if not name.lower().endswith(".pdf"):
        return name + ".pdf"
    return name


def _escape(value: Any) -> str:
    return quote("" if value is None else str(value), safe="")


def _text(record: Mapping[str, Any], name: str) -> str:
    value = record.get(name)
    return "" if value is None else str(value)


def choose_highlight(record: Mapping[str, Any]) -> Tuple[Optional[str], Optional[str]]:
    """
    Pick the text the viewer should highlight and where it came from.

    The section title overrides the effective title. The page header overrides
    both unless it already contains the chosen text.
    """
    text, source = None, None

    if _text(record, "effective_title"):
        text, source = _text(record, "effective_title"), "title"
    if _text(record, "section_title"):
        text, source = _text(record, "section_title"), "section"

    header = _text(record, "contextual_header")
    if header and (text is None or text not in header):
        text, source = header, "header"

    return text, source


class DocumentViewer:
    """Builds links to stored documents and to the page-highlighting viewer."""

    def __init__(self, blob_storage_url: str = BLOB_STORAGE_BASE_URL, viewer_endpoint: str = VIEWER_ENDPOINT):
        self.blob_storage_url = blob_storage_url.rstrip("/")
        self.viewer_endpoint = viewer_endpoint

    def get_document_url(self, document_name: str) -> str:
        return f"{self.blob_storage_url}/{normalize_document_name(document_name)}"

    def get_viewer_url(self, document_name: str, page_number: int, record: Mapping[str, Any]) -> str:
        """
        Build the viewer link for one search result.

        Args:
            document_name: Stored document name
            page_number: Page to open
            record: Index record of the result

        Returns:
            Viewer endpoint with escaped query parameters
        """
        highlight, highlight_source = choose_highlight(record)
        has_structured = record.get("has_structured_sections", False)
        if isinstance(has_structured, str):
            has_structured = has_structured.strip().lower() == "true"

        params = [
            f"doc={_escape(normalize_document_name(document_name))}",
            f"page={page_number}",
            f"contentType={_escape(_text(record, 'content_type'))}",
            f"hasStructured={str(bool(has_structured)).lower()}",
            f"effectiveTitle={_escape(_text(record, 'effective_title'))}",
            f"highlight={_escape(highlight or '')}",
            f"highlightSource={_escape(highlight_source or '')}",
        ]

        section_number = _text(record, "section_number")
        if section_number:
            params.append(f"section={_escape(section_number)}")

        header = _text(record, "contextual_header")
        if header and header != highlight:
            params.append(f"header={_escape(header)}")

        params.append(f"titleSource={_escape(_text(record, 'title_source'))}")

        url = f"{self.viewer_endpoint}?{'&'.join(params)}"
        logger.debug(f"Built viewer URL for {document_name} page {page_number}")
        return url
