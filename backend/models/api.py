"""Request and response models for the search API."""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class SearchRequest(BaseModel):
    """Body of POST /search."""
    query: Optional[str] = None
    system_message: Optional[str] = None
    knn: Optional[int] = Field(default=None, ge=1)
    minimum_relevance_score: Optional[float] = Field(default=None, ge=0.0)


class RelevantSection(BaseModel):
    """A cited passage returned alongside the answer."""
    document_title: str = ""
    section_title: str = ""
    section_number: str = ""
    subsection_title: str = ""
    subsection_number: str = ""
    content: str = ""
    page_number: int = 1
    relevance_score: float = 0.0
    document_url: str = ""
    viewer_url: str = ""
    content_type: str = ""
    effective_title: str = ""
    contextual_header: str = ""
    preceding_context: str = ""
    following_context: str = ""
    keywords: List[str] = Field(default_factory=list)
    semantic_type: str = ""
    semantic_scores: Dict[str, float] = Field(default_factory=dict)
    heading_level: int = 0


class SearchResponse(BaseModel):
    """Answer plus the passages it cites."""
    answer: str
    relevant_sections: List[RelevantSection] = Field(default_factory=list)
    search_metrics: Dict[str, Any] = Field(default_factory=dict)
