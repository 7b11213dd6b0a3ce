"""Layout analysis of PDF files with PyMuPDF."""
import asyncio
import logging
import os
from typing import List, Optional

import fitz  # PyMuPDF

from models.document import (
    AnalyzedDocument,
    BoundingRegion,
    Line,
    Page,
    Table,
    TableCell,
    COLUMN_HEADER,
    CONTENT,
)

logger = logging.getLogger(__name__)


def _rect_polygon(bbox) -> List[float]:
    """Clockwise polygon from the top-left corner of a bounding box."""
    x0, y0, x1, y1 = bbox
    return [x0, y0, x1, y0, x1, y1, x0, y1]


class DocumentLoader:
    """Turns PDF files into pages, positioned lines and tables."""

    def __init__(self, docs_directory: str = "documents", detect_tables: bool = True):
        """
        Initialize DocumentLoader.

        Args:
            docs_directory: Path to directory containing PDF files
            detect_tables: Run PyMuPDF table detection on every page
        """
        self.docs_directory = docs_directory
        self.detect_tables = detect_tables

    def list_documents(self) -> List[str]:
        """
        List PDF files in the documents directory.

        Returns:
            Sorted full paths of PDF files, empty if the directory is missing
        """
        if not os.path.exists(self.docs_directory):
            logger.error(f"Documents directory not found: {self.docs_directory}")
            return []

        pdf_files = sorted(f for f in os.listdir(self.docs_directory) if f.lower().endswith('.pdf'))
        logger.info(f"Found {len(pdf_files)} PDF files in {self.docs_directory}")
        return [os.path.join(self.docs_directory, f) for f in pdf_files]

    async def analyze(self, filepath: str, name: Optional[str] = None) -> AnalyzedDocument:
        """
        Analyze a PDF file off the event loop.

        Args:
            filepath: Full path to PDF file
            name: Document name to record (defaults to the file name)

        Returns:
            AnalyzedDocument with pages, lines and tables
        """
        return await asyncio.to_thread(self._analyze_pdf, filepath, name or os.path.basename(filepath))

    def _analyze_pdf(self, filepath: str, name: str) -> AnalyzedDocument:
        try:
            pdf_document = fitz.open(filepath)
        except Exception as e:
            logger.error(f"Failed to open PDF {name}: {str(e)}")
            raise

        try:
            pages: List[Page] = []
            tables: List[Table] = []

            for page_index in range(len(pdf_document)):
                pdf_page = pdf_document[page_index]
                page_number = page_index + 1

                page_tables = self._extract_tables(pdf_page, page_number) if self.detect_tables else []
                table_rects = [fitz.Rect(region.polygon[0], region.polygon[1], region.polygon[4], region.polygon[5])
                               for table in page_tables for region in table.bounding_regions]
                tables.extend(page_tables)

                pages.append(Page(
                    page_number=page_number,
                    height=pdf_page.rect.height,
                    lines=self._extract_lines(pdf_page, page_number, table_rects),
                ))

            logger.info(f"Analyzed {name}: {len(pages)} pages, {len(tables)} tables")
            return AnalyzedDocument(name=name, pages=pages, tables=tables)
        finally:
            pdf_document.close()

    def _extract_lines(self, pdf_page, page_number: int, table_rects: List) -> List[Line]:
        """Lines in reading order, leaving out text that belongs to a detected table."""
        lines = []
        blocks = pdf_page.get_text("dict", sort=True)["blocks"]

        for block in blocks:
            if block.get("type") != 0:
                continue

            for line in block["lines"]:
                text = "".join(span["text"] for span in line["spans"]).strip()
                if not text:
                    continue

                bbox = fitz.Rect(line["bbox"])
                center = fitz.Point((bbox.x0 + bbox.x1) / 2, (bbox.y0 + bbox.y1) / 2)
                if any(rect.contains(center) for rect in table_rects):
                    continue

                lines.append(Line(content=text, page_number=page_number, polygon=_rect_polygon(line["bbox"])))

        return lines

    def _extract_tables(self, pdf_page, page_number: int) -> List[Table]:
        tables = []
        try:
            found = pdf_page.find_tables()
        except Exception as e:
            logger.warning(f"Table detection failed on page {page_number}: {str(e)}")
            return tables

        for pdf_table in found.tables:
            cells: List[TableCell] = []
            rows = pdf_table.extract()
            row_offset = 0

            # A header detected outside the table body becomes its own first row.
            header = getattr(pdf_table, "header", None)
            if header is not None and header.external and header.names:
                for column_index, name in enumerate(header.names):
                    cells.append(TableCell(0, column_index, name or "", COLUMN_HEADER))
                row_offset = 1

            for row_index, row in enumerate(rows):
                kind = COLUMN_HEADER if row_index == 0 and row_offset == 0 else CONTENT
                for column_index, value in enumerate(row):
                    cells.append(TableCell(row_index + row_offset, column_index, value or "", kind))

            tables.append(Table(
                cells=cells,
                bounding_regions=[BoundingRegion(page_number, _rect_polygon(pdf_table.bbox))],
            ))

        return tables
