"""Pure line classifiers for structural segmentation.

Everything here is a function of the line text, its geometry and explicit
thresholds, so each rule can be tuned and tested on its own.
"""
import math
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from config import (
    PAGE_HEADER_REGION,
    HEADING_REGION,
    MAX_HEADING_LENGTH,
    TABLE_PROBE_LINES,
)
from models.chunk import (
    SectionType,
    HEADER,
    TABLE,
    NUMBERED_LIST,
    DEFINITION,
    BODY_TEXT,
)
from models.document import Line

SECTION_HEADER_PATTERN = re.compile(r"^\d+(\.\d+)?\s+[A-Z]")
SUBSECTION_HEADER_PATTERN = re.compile(r"^\d+(\.\d+){2,}\s+[A-Z]")
SECTION_NUMBER_PATTERN = re.compile(r"^(\d+(\.\d+)*)")
LEADING_NUMERAL_PATTERN = re.compile(r"^\d+(\.\d+)*\s*")
NUMBERED_LIST_PATTERN = re.compile(r"^\d+\.\s")
DEFINITION_PATTERN = re.compile(r"^[A-Z][\w\s]+:")

TABLE_DELIMITERS = ("|", "\t", ",")
TABLE_SPLIT_PATTERN = re.compile(r"[|\t,]")

ARTIFACT_PREFIXES = ("<!-- PageNumber=", "<!-- PageBreak", "<!-- PageHeader=")


@dataclass(frozen=True)
class LayoutThresholds:
    """Page-height fractions and counts used by the geometric rules."""
    page_header_region: float = PAGE_HEADER_REGION
    heading_region: float = HEADING_REGION
    max_heading_length: int = MAX_HEADING_LENGTH
    table_probe_lines: int = TABLE_PROBE_LINES


DEFAULT_THRESHOLDS = LayoutThresholds()


def estimate_token_count(text: str) -> int:
    """Cheap token estimate: one token per three characters, rounded up."""
    return math.ceil(len(text) / 3)


def should_skip_line(line: Optional[str]) -> bool:
    """True for blank lines and layout artifacts (page numbers, breaks, header echoes)."""
    if line is None or not line.strip():
        return True
    return line.strip().startswith(ARTIFACT_PREFIXES)


def clean_content(content: str) -> str:
    """Drop artifact lines, trim the rest, and join them back with newlines."""
    lines = [line.strip() for line in content.split("\n") if not should_skip_line(line)]
    return "\n".join(line for line in lines if line).strip()


def is_section_header(line: str) -> bool:
    return bool(SECTION_HEADER_PATTERN.match(line.strip()))


def is_subsection_header(line: str) -> bool:
    return bool(SUBSECTION_HEADER_PATTERN.match(line.strip()))


def relative_position(line: Optional[Line], page_height: Optional[float]) -> Optional[float]:
    """Top-Y of the line as a fraction of page height, or None without geometry."""
    if line is None or not page_height:
        return None
    top = line.top
    if top is None:
        return None
    return top / page_height


def is_heading(
    text: str,
    line: Optional[Line],
    page_height: Optional[float],
    thresholds: LayoutThresholds = DEFAULT_THRESHOLDS,
) -> bool:
    """Short, capitalized, unpunctuated line in the upper part of the page."""
    position = relative_position(line, page_height)
    if position is None or not text:
        return False

    is_near_top = position < thresholds.heading_region
    has_heading_format = (
        len(text) < thresholds.max_heading_length
        and not text.endswith(".")
        and "  " not in text
        and text[0].isupper()
    )
    return is_near_top and has_heading_format


def is_page_header_line(
    line: Line,
    page_height: Optional[float],
    thresholds: LayoutThresholds = DEFAULT_THRESHOLDS,
) -> bool:
    position = relative_position(line, page_height)
    return position is not None and position < thresholds.page_header_region


def determine_heading_level(
    line: Optional[Line],
    page_height: Optional[float],
    thresholds: LayoutThresholds = DEFAULT_THRESHOLDS,
) -> int:
    """
    Heading level from vertical position.

    Returns:
        1 for the top of the page or a section header, 2 for the upper third
        or a subsection header, 0 otherwise or when geometry is missing
    """
    position = relative_position(line, page_height)
    if position is None:
        return 0

    if position < thresholds.page_header_region:
        return 1
    if position < thresholds.heading_region:
        return 2
    if is_section_header(line.content):
        return 1
    if is_subsection_header(line.content):
        return 2
    return 0


def delimiter_count(line: str) -> int:
    return sum(line.count(delimiter) for delimiter in TABLE_DELIMITERS)


def is_likely_table_content(
    content,
    thresholds: LayoutThresholds = DEFAULT_THRESHOLDS,
) -> bool:
    """
    Check whether a block of lines looks like delimited tabular text.

    Among the first few non-blank lines, every line must carry the same
    number of delimiters and that number must be greater than one.

    Args:
        content: Multi-line string or sequence of line strings
        thresholds: Probe size comes from ``table_probe_lines``
    """
    lines = content.split("\n") if isinstance(content, str) else list(content)
    probe = [line for line in lines if line and line.strip()][:thresholds.table_probe_lines]
    if len(probe) < 2:
        return False

    counts = {delimiter_count(line) for line in probe}
    return len(counts) == 1 and counts.pop() > 1


def table_run_length(
    lines: Sequence[str],
    start: int,
    thresholds: LayoutThresholds = DEFAULT_THRESHOLDS,
) -> int:
    """
    Number of lines, from ``start``, that form one table-like run.

    The run extends over following lines with the same delimiter count as the
    first one; artifact lines inside it are counted but ignored. Returns 0 when
    the run is not table-like.
    """
    if start >= len(lines) or should_skip_line(lines[start]):
        return 0

    expected = delimiter_count(lines[start])
    if expected <= 1:
        return 0

    end = start
    while end < len(lines):
        line = lines[end]
        if not should_skip_line(line) and delimiter_count(line) != expected:
            break
        end += 1

    while end > start and should_skip_line(lines[end - 1]):
        end -= 1

    rows = [line for line in lines[start:end] if not should_skip_line(line)]
    return end - start if is_likely_table_content(rows, thresholds) else 0


def split_table_cells(line: str) -> List[str]:
    return [cell.strip() for cell in TABLE_SPLIT_PATTERN.split(line) if cell.strip()]


def render_delimited_table(lines: Iterable[str]) -> str:
    """Render delimited text lines as a tagged table; the first row is the header."""
    rendered = ["<table>"]
    is_first_row = True
    for line in lines:
        if should_skip_line(line):
            continue
        cells = split_table_cells(line)
        if cells:
            cell_type = "th" if is_first_row else "td"
            rendered.append("<tr>")
            rendered.extend(f"<{cell_type}>{cell}</{cell_type}>" for cell in cells)
            rendered.append("</tr>")
        is_first_row = False
    rendered.append("</table>")
    return "\n".join(rendered)


def clean_header_text(header: str) -> str:
    """Strip the leading section numeral from a header line."""
    return LEADING_NUMERAL_PATTERN.sub("", header.strip()).strip()


def extract_section_number(header: str) -> str:
    if not header or not header.strip():
        return ""
    match = SECTION_NUMBER_PATTERN.match(header.strip())
    return match.group(1) if match else ""


def classify_header(
    text: str,
    line: Optional[Line],
    page_height: Optional[float],
    thresholds: LayoutThresholds = DEFAULT_THRESHOLDS,
) -> SectionType:
    """Which kind of header a line is, checked in precedence order."""
    if is_section_header(text):
        return SectionType.MAIN_SECTION
    if is_subsection_header(text):
        return SectionType.SUBSECTION
    if is_heading(text, line, page_height, thresholds):
        return SectionType.GENERIC_HEADING
    return SectionType.NONE


def determine_semantic_type(
    text: Optional[str],
    header_lines: Iterable[str] = (),
    is_table: bool = False,
) -> str:
    """
    Coarse content role of a triggering line.

    Args:
        text: Triggering line text (None when the chunk had no trigger)
        header_lines: Known page header texts for the chunk's page
        is_table: Whether the chunk itself is a table
    """
    if text is None:
        return TABLE if is_table else BODY_TEXT

    stripped = text.strip()
    if stripped and stripped in set(header_lines):
        return HEADER
    if is_table or is_likely_table_content(text):
        return TABLE
    if NUMBERED_LIST_PATTERN.match(text):
        return NUMBERED_LIST
    if DEFINITION_PATTERN.match(text):
        return DEFINITION
    return BODY_TEXT
