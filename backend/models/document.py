"""Layout-analyzed document models."""
from dataclasses import dataclass, field
from typing import List, Optional

COLUMN_HEADER = "columnHeader"
CONTENT = "content"


@dataclass
class Line:
    """A single line of text with its bounding polygon.

    The polygon is a flat list of x/y pairs starting at the top-left corner,
    so ``polygon[1]`` is the top-Y coordinate.
    """
    content: str
    page_number: int
    polygon: List[float] = field(default_factory=list)

    @property
    def top(self) -> Optional[float]:
        """Top-Y coordinate, or None when geometry is unavailable."""
        if len(self.polygon) >= 2:
            return self.polygon[1]
        return None


@dataclass
class Page:
    """Represents a single analyzed page."""
    page_number: int
    height: float
    lines: List[Line]


@dataclass
class BoundingRegion:
    """Where a table sits on a page."""
    page_number: int
    polygon: List[float] = field(default_factory=list)


@dataclass
class TableCell:
    """One cell of a detected table."""
    row_index: int
    column_index: int
    content: str
    kind: str = CONTENT


@dataclass
class Table:
    """A table detected by layout analysis."""
    cells: List[TableCell]
    bounding_regions: List[BoundingRegion]

    def is_on_page(self, page_number: int) -> bool:
        return any(region.page_number == page_number for region in self.bounding_regions)


@dataclass
class AnalyzedDocument:
    """Represents a layout-analyzed document."""
    name: str
    pages: List[Page]
    tables: List[Table] = field(default_factory=list)

    @property
    def total_pages(self) -> int:
        return len(self.pages)
