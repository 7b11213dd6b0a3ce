"""Unit tests for the structural line classifiers."""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import pytest
from models.chunk import SectionType
from models.document import Line
from services.structure_classifier import (
    LayoutThresholds,
    classify_header,
    clean_content,
    clean_header_text,
    determine_heading_level,
    determine_semantic_type,
    estimate_token_count,
    extract_section_number,
    is_heading,
    is_likely_table_content,
    is_section_header,
    is_subsection_header,
    render_delimited_table,
    should_skip_line,
    table_run_length,
)


def line_at(text: str, top: float, page_number: int = 1) -> Line:
    return Line(content=text, page_number=page_number, polygon=[50.0, top, 500.0, top, 500.0, top + 12, 50.0, top + 12])


class TestHeaderPatterns:
    """Section and subsection header recognition."""

    @pytest.mark.parametrize("text", ["6.8 Scope", "1 Introduction", "2.1 Overview", "  3 Results"])
    def test_section_headers(self, text):
        assert is_section_header(text)

    @pytest.mark.parametrize("text", ["6.8.1 Details", "1.2.3.4 Deep Nesting"])
    def test_subsection_headers(self, text):
        assert is_subsection_header(text)
        assert not is_section_header(text)

    @pytest.mark.parametrize("text", ["plain sentence.", "6.8 lower case", "Section 2", "2024"])
    def test_plain_lines_are_not_headers(self, text):
        assert not is_section_header(text)
        assert not is_subsection_header(text)

    def test_extract_section_number(self):
        assert extract_section_number("6.8.1 Details") == "6.8.1"
        assert extract_section_number("2.1 Overview") == "2.1"
        assert extract_section_number("Overview") == ""
        assert extract_section_number("   ") == ""

    def test_clean_header_text_strips_numeral(self):
        assert clean_header_text("2.1 Overview") == "Overview"
        assert clean_header_text("6.8.1   Details") == "Details"
        assert clean_header_text("Overview") == "Overview"


class TestHeadingGeometry:
    """Generic heading and heading-level rules that depend on position."""

    def test_heading_near_top_of_page(self):
        assert is_heading("Getting Started", line_at("Getting Started", 200.0), 1000.0)

    def test_heading_rejected_below_region(self):
        assert not is_heading("Getting Started", line_at("Getting Started", 500.0), 1000.0)

    @pytest.mark.parametrize("text", ["ends with a period.", "lower case start", "Double  spaced", "A" * 120])
    def test_heading_format_rules(self, text):
        assert not is_heading(text, line_at(text, 100.0), 1000.0)

    def test_heading_requires_geometry(self):
        line = Line(content="Getting Started", page_number=1, polygon=[])
        assert not is_heading("Getting Started", line, 1000.0)
        assert not is_heading("Getting Started", line_at("Getting Started", 100.0), None)

    def test_classify_header_precedence(self):
        assert classify_header("2.1 Overview", line_at("2.1 Overview", 100.0), 1000.0) is SectionType.MAIN_SECTION
        assert classify_header("2.1.4 Limits", line_at("2.1.4 Limits", 100.0), 1000.0) is SectionType.SUBSECTION
        assert classify_header("Appendix", line_at("Appendix", 100.0), 1000.0) is SectionType.GENERIC_HEADING
        assert classify_header("Appendix", line_at("Appendix", 800.0), 1000.0) is SectionType.NONE

    def test_heading_levels(self):
        assert determine_heading_level(line_at("Title", 100.0), 1000.0) == 1
        assert determine_heading_level(line_at("Title", 200.0), 1000.0) == 2
        assert determine_heading_level(line_at("3 Results", 600.0), 1000.0) == 1
        assert determine_heading_level(line_at("3.1.2 Results", 600.0), 1000.0) == 2
        assert determine_heading_level(line_at("body text", 600.0), 1000.0) == 0

    def test_heading_level_without_geometry(self):
        assert determine_heading_level(None, 1000.0) == 0
        assert determine_heading_level(line_at("Title", 100.0), None) == 0

    def test_custom_thresholds(self):
        thresholds = LayoutThresholds(page_header_region=0.05, heading_region=0.1)
        assert determine_heading_level(line_at("Title", 100.0), 1000.0, thresholds) == 0


class TestTableDetection:
    """Delimiter-consistency table detection."""

    def test_pipe_rows_are_table_like(self):
        assert is_likely_table_content("a|b|c\n1|2|3\nx|y|z")

    def test_plain_sentences_are_not_table_like(self):
        assert not is_likely_table_content("The first sentence.\nThe second one.\nAnd a third.")

    def test_single_delimiter_is_not_enough(self):
        assert not is_likely_table_content("a|b\n1|2\nx|y")

    def test_single_line_is_not_table_like(self):
        assert not is_likely_table_content("a|b|c")

    def test_inconsistent_counts(self):
        assert not is_likely_table_content("a|b|c\n1|2|3|4")

    def test_table_run_length(self):
        lines = ["Intro text", "a|b|c", "1|2|3", "x|y|z", "After text"]
        assert table_run_length(lines, 0) == 0
        assert table_run_length(lines, 1) == 3

    def test_render_delimited_table(self):
        rendered = render_delimited_table(["Name|Value|Unit", "Speed|10|m/s"])
        assert rendered.startswith("<table>")
        assert "<th>Name</th>" in rendered
        assert "<td>Speed</td>" in rendered
        assert rendered.endswith("</table>")


class TestContentHelpers:
    """Token estimate, artifact filtering and semantic types."""

    def test_estimate_token_count(self):
        assert estimate_token_count("") == 0
        assert estimate_token_count("abc") == 1
        assert estimate_token_count("abcd") == 2

    @pytest.mark.parametrize("text", ["", "   ", "<!-- PageNumber=\"3\" -->", "<!-- PageBreak -->",
                                      "<!-- PageHeader=\"Manual\" -->"])
    def test_should_skip_line(self, text):
        assert should_skip_line(text)

    def test_clean_content_drops_artifacts(self):
        content = "  First line  \n<!-- PageBreak -->\n\nSecond line"
        assert clean_content(content) == "First line\nSecond line"

    def test_semantic_types(self):
        assert determine_semantic_type("User Manual", ["User Manual"]) == "header"
        assert determine_semantic_type("anything", is_table=True) == "table"
        assert determine_semantic_type("1. Install the package") == "numbered-list"
        assert determine_semantic_type("Timeout: the number of seconds") == "definition"
        assert determine_semantic_type("the quick brown fox") == "body-text"
        assert determine_semantic_type(None) == "body-text"
