"""Chunk data models."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from models.document import Line

HEADER = "header"
TABLE = "table"
NUMBERED_LIST = "numbered-list"
DEFINITION = "definition"
BODY_TEXT = "body-text"


def default_semantic_scores() -> Dict[str, float]:
    return {"type_score": 1.0, "heading_score": 1.0, "keyword_score": 0.0}


class SectionType(Enum):
    """Structural role of a section; values are the names stored in the index."""
    NONE = "None"
    MAIN_SECTION = "MainSection"
    SUBSECTION = "Subsection"
    GENERIC_HEADING = "GenericHeading"

    @classmethod
    def parse(cls, value: Optional[str]) -> "SectionType":
        """Case-insensitive lookup that falls back to NONE."""
        if value:
            for member in cls:
                if member.value.lower() == str(value).lower():
                    return member
        return cls.NONE


@dataclass(frozen=True)
class Section:
    """A detected section, subsection or heading."""
    title: str = ""
    number: str = ""
    type: SectionType = SectionType.NONE
    page_number: int = 0


NO_SECTION = Section()


@dataclass
class Chunk:
    """Represents a document chunk for retrieval."""
    content: str
    page_number: int
    section: Section = NO_SECTION
    subsection: Section = NO_SECTION
    sub_chunk_index: int = 0
    is_table: bool = False
    contextual_header: str = ""
    preceding_context: str = ""
    following_context: str = ""
    keywords: List[str] = field(default_factory=list)
    heading_level: int = 0
    semantic_type: str = BODY_TEXT
    semantic_scores: Dict[str, float] = field(default_factory=default_semantic_scores)
    embedding: List[float] = field(default_factory=list)
    # Line that caused the flush; drives semantic type and heading level.
    trigger_line: Optional[Line] = field(default=None, repr=False, compare=False)


@dataclass
class ScoredChunk:
    """Chunk materialized from the search store, with its scores."""
    chunk: Chunk
    base_score: float
    relevance_score: float = 0.0
    record: Dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def document_id(self) -> str:
        return str(self.record.get("document_id") or "")

    @property
    def has_structured_sections(self) -> bool:
        value = self.record.get("has_structured_sections", False)
        if isinstance(value, str):
            return value.strip().lower() == "true"
        return bool(value)
