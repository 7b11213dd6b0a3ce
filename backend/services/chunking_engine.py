"""Structural segmentation of layout-analyzed documents into chunks."""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from config import MAX_TOKENS_PER_CHUNK, OVERLAP_TOKENS, CONTEXT_WINDOW_LINES
from models.chunk import Chunk, Section, SectionType, NO_SECTION
from models.document import AnalyzedDocument, Line, Page, Table, COLUMN_HEADER
from services.structure_classifier import (
    LayoutThresholds,
    DEFAULT_THRESHOLDS,
    classify_header,
    clean_content,
    clean_header_text,
    estimate_token_count,
    extract_section_number,
    is_page_header_line,
    render_delimited_table,
    should_skip_line,
    table_run_length,
)

logger = logging.getLogger(__name__)


@dataclass
class SegmenterState:
    """Running context threaded through the line loop of one document."""
    buffer: List[str] = field(default_factory=list)
    token_count: int = 0
    section: Section = NO_SECTION
    subsection: Section = NO_SECTION
    chunk_start_page: int = 1
    is_table: bool = False
    page_headers: Dict[int, List[str]] = field(default_factory=dict)
    page_heights: Dict[int, float] = field(default_factory=dict)
    chunks: List[Chunk] = field(default_factory=list)


@dataclass
class SegmentedDocument:
    """Chunks of one document plus the page facts the enricher needs."""
    name: str
    chunks: List[Chunk]
    page_headers: Dict[int, List[str]]
    page_heights: Dict[int, float]


class ChunkingEngine:
    """Segments analyzed documents into token-bounded, section-aware chunks."""

    def __init__(
        self,
        max_tokens: int = MAX_TOKENS_PER_CHUNK,
        overlap_tokens: int = OVERLAP_TOKENS,
        context_lines: int = CONTEXT_WINDOW_LINES,
        thresholds: LayoutThresholds = DEFAULT_THRESHOLDS,
    ):
        """
        Initialize ChunkingEngine.

        Args:
            max_tokens: Estimated token budget per chunk
            overlap_tokens: Estimated tokens carried into the next chunk on a budget flush
            context_lines: Lines captured before and after the flush point
            thresholds: Geometry thresholds for header and heading detection
        """
        self.max_tokens = max_tokens
        self.overlap_tokens = overlap_tokens
        self.context_lines = context_lines
        self.thresholds = thresholds

    def chunk_document(self, document: AnalyzedDocument) -> SegmentedDocument:
        """
        Segment a document page by page.

        Args:
            document: Layout-analyzed document

        Returns:
            SegmentedDocument with ordered chunks, page headers and page heights
        """
        logger.info(f"Chunking document: {document.name}")
        state = SegmenterState()
        all_lines = [line for page in document.pages for line in page.lines]
        line_offset = 0
        current_page = 0

        try:
            for page in document.pages:
                current_page = page.page_number
                self._process_page(state, document, page, all_lines, line_offset)
                line_offset += len(page.lines)

            self._flush(state, all_lines)
        except Exception as e:
            logger.error(f"Error during chunking of {document.name} on page {current_page}: {str(e)}")
            raise

        logger.info(f"Created {len(state.chunks)} chunks from {document.total_pages} pages of {document.name}")
        return SegmentedDocument(
            name=document.name,
            chunks=state.chunks,
            page_headers=state.page_headers,
            page_heights=state.page_heights,
        )

    def _process_page(
        self,
        state: SegmenterState,
        document: AnalyzedDocument,
        page: Page,
        all_lines: List[Line],
        line_offset: int,
    ) -> None:
        page_number = page.page_number
        logger.debug(f"Processing page {page_number} ({len(page.lines)} lines)")
        state.page_heights[page_number] = page.height

        header_lines = [
            line.content.strip() for line in page.lines
            if line.content.strip() and is_page_header_line(line, page.height, self.thresholds)
        ]
        if header_lines:
            state.page_headers[page_number] = header_lines

        for table in document.tables:
            if table.is_on_page(page_number):
                logger.debug(f"Processing formal table on page {page_number}")
                self._emit_table(state, all_lines, render_table(table).split("\n"), page_number)

        texts = [line.content for line in page.lines]
        index = 0
        while index < len(page.lines):
            line = page.lines[index]
            text = line.content.strip()
            global_index = line_offset + index

            if should_skip_line(text):
                index += 1
                continue

            run = table_run_length(texts, index, self.thresholds)
            if run:
                logger.debug(f"Processing table-like content on page {page_number} ({run} lines)")
                span = (global_index, global_index + run - 1)
                self._flush(state, all_lines, span)
                self._emit_table(
                    state, all_lines, render_delimited_table(texts[index:index + run]).split("\n"),
                    page_number, span,
                )
                index += run
                continue

            header_type = classify_header(text, line, page.height, self.thresholds)
            if header_type is not SectionType.NONE:
                self._flush(state, all_lines, (global_index, global_index))
                self._enter_section(state, text, header_type, page_number)

            line_tokens = estimate_token_count(text)
            if state.buffer and state.token_count + line_tokens > self.max_tokens:
                flushed = list(state.buffer)
                self._flush(state, all_lines, (global_index, global_index))
                state.buffer = self._overlap_lines(flushed)
                state.token_count = sum(estimate_token_count(l) for l in state.buffer)
                state.chunk_start_page = page_number

            if not state.buffer:
                state.chunk_start_page = page_number
            state.buffer.append(text)
            state.token_count += line_tokens
            index += 1

    def _enter_section(self, state: SegmenterState, text: str, header_type: SectionType, page_number: int) -> None:
        section = Section(
            title=clean_header_text(text),
            number="" if header_type is SectionType.GENERIC_HEADING else extract_section_number(text),
            type=header_type,
            page_number=page_number,
        )
        if header_type is SectionType.SUBSECTION:
            state.subsection = section
        elif header_type is SectionType.MAIN_SECTION:
            state.section = section
            state.subsection = NO_SECTION
        else:
            state.section = section

    def _emit_table(
        self,
        state: SegmenterState,
        all_lines: List[Line],
        table_lines: List[str],
        page_number: int,
        span: Optional[Tuple[int, int]] = None,
    ) -> None:
        """Flush prose, emit the table as a chunk of its own, and flush again."""
        self._flush(state, all_lines, span)
        state.is_table = True
        state.chunk_start_page = page_number
        state.buffer = table_lines
        try:
            self._flush(state, all_lines, span)
        finally:
            state.is_table = False

    def _overlap_lines(self, lines: List[str]) -> List[str]:
        """Trailing lines of a flushed chunk that fit in the overlap budget."""
        selected: List[str] = []
        total = 0
        for line in reversed(lines):
            tokens = estimate_token_count(line)
            if total + tokens > self.overlap_tokens:
                break
            selected.insert(0, line)
            total += tokens
        return selected

    def _flush(
        self,
        state: SegmenterState,
        all_lines: List[Line],
        span: Optional[Tuple[int, int]] = None,
    ) -> None:
        """
        Turn the buffer into a chunk if it holds real content, then reset it.

        Args:
            state: Segmenter state to read and reset
            all_lines: Every line of the document, in order
            span: First and last global line index that triggered the flush
        """
        if not state.buffer:
            state.token_count = 0
            return

        content = clean_content("\n".join(state.buffer))
        if content:
            start, end = span if span else (-1, -1)
            header_lines = state.page_headers.get(state.chunk_start_page, [])
            state.chunks.append(Chunk(
                content=content,
                page_number=state.chunk_start_page,
                section=state.section,
                subsection=state.subsection,
                is_table=state.is_table,
                contextual_header=" ".join(header_lines),
                preceding_context=self._preceding_context(all_lines, start),
                following_context=self._following_context(all_lines, end),
                trigger_line=all_lines[start] if start >= 0 else None,
            ))
        else:
            logger.debug("Discarding chunk with no content after artifact filtering")

        state.buffer = []
        state.token_count = 0

    def _preceding_context(self, all_lines: List[Line], index: int) -> str:
        if index < 0:
            return ""
        start = max(0, index - self.context_lines)
        return "\n".join(line.content for line in all_lines[start:index]).strip()

    def _following_context(self, all_lines: List[Line], index: int) -> str:
        if index < 0:
            return ""
        end = min(len(all_lines), index + 1 + self.context_lines)
        return "\n".join(line.content for line in all_lines[index + 1:end]).strip()


def render_table(table: Table) -> str:
    """Render a detected table as tagged rows, header cells as <th>."""
    rendered = ["<table>"]
    for row_index in sorted({cell.row_index for cell in table.cells}):
        rendered.append("<tr>")
        row = sorted((c for c in table.cells if c.row_index == row_index), key=lambda c: c.column_index)
        for cell in row:
            cell_type = "th" if cell.kind == COLUMN_HEADER else "td"
            text = " ".join(cell.content.split())
            rendered.append(f"<{cell_type}>{text}</{cell_type}>")
        rendered.append("</tr>")
    rendered.append("</table>")
    return "\n".join(rendered)
