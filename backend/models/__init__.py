"""Data models for the Cited RAG service."""
from .document import AnalyzedDocument, Page, Line, Table, TableCell, BoundingRegion
from .chunk import Chunk, ScoredChunk, Section, SectionType
from .api import SearchRequest, SearchResponse, RelevantSection

__all__ = [
    "AnalyzedDocument",
    "Page",
    "Line",
    "Table",
    "TableCell",
    "BoundingRegion",
    "Chunk",
    "ScoredChunk",
    "Section",
    "SectionType",
    "SearchRequest",
    "SearchResponse",
    "RelevantSection",
]
