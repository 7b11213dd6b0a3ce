"""Query orchestration: retrieval, citations and the grounded answer."""
import logging
import time
from typing import List, Optional

from config import DEFAULT_KNN, DEFAULT_MINIMUM_RELEVANCE
from models.api import RelevantSection, SearchResponse
from models.chunk import ScoredChunk
from services.document_viewer import DocumentViewer
from services.llm_client import LLMClient, DEFAULT_SYSTEM_MESSAGE
from services.retrieval_engine import RetrievalEngine

logger = logging.getLogger(__name__)

NO_RESULTS_ANSWER = "No relevant results found."


class SearchService:
    """Answers a question from the indexed documents with clickable citations."""

    def __init__(self, retrieval_engine: RetrievalEngine, llm_client: LLMClient, document_viewer: DocumentViewer):
        self.retrieval_engine = retrieval_engine
        self.llm_client = llm_client
        self.document_viewer = document_viewer

    async def search(
        self,
        query: str,
        system_message: Optional[str] = None,
        knn: int = DEFAULT_KNN,
        minimum_relevance: float = DEFAULT_MINIMUM_RELEVANCE,
    ) -> SearchResponse:
        """
        Retrieve, cite and answer.

        Args:
            query: User question
            system_message: Overrides the default system prompt
            knn: Number of passages to keep
            minimum_relevance: Fraction of the best base score a passage must exceed

        Returns:
            SearchResponse; "No relevant results found." with no sections when
            nothing survives reranking

        Raises:
            RuntimeError: If embedding or search fails
            LLMClientError: If the chat completion fails
        """
        start_time = time.time()
        logger.info(f"Processing search: {query[:100]}...")

        retrieval = await self.retrieval_engine.retrieve(query, knn=knn, minimum_relevance=minimum_relevance)

        metrics = {
            "candidate_count": retrieval.candidate_count,
            "returned_count": 0,
            "top_base_score": retrieval.top_base_score,
            "threshold": retrieval.threshold,
            "ranking_profile": retrieval.ranking_profile,
        }

        sections: List[RelevantSection] = []
        entries: List[str] = []
        for result in retrieval.results:
            section = self._to_section(result)
            if section is None:
                continue
            sections.append(section)
            entries.append(LLMClient.build_context_entry(section, result.chunk.is_table))

        if not sections:
            logger.info("No relevant results found for query")
            metrics["latency_ms"] = int((time.time() - start_time) * 1000)
            return SearchResponse(answer=NO_RESULTS_ANSWER, relevant_sections=[], search_metrics=metrics)

        llm_response = await self.llm_client.generate(
            system_message=system_message or DEFAULT_SYSTEM_MESSAGE,
            citation_instructions=LLMClient.build_citation_instructions(query, retrieval.has_structured_docs),
            context_block=LLMClient.build_context_block(entries),
            query=query,
        )

        metrics["returned_count"] = len(sections)
        metrics["latency_ms"] = int((time.time() - start_time) * 1000)
        logger.info(f"Search answered with {len(sections)} sections in {metrics['latency_ms']}ms")

        return SearchResponse(answer=llm_response.text, relevant_sections=sections, search_metrics=metrics)

    def _to_section(self, result: ScoredChunk) -> Optional[RelevantSection]:
        document_id = result.document_id
        if not document_id:
            logger.warning("Missing required document property: document_id")
            return None

        chunk = result.chunk
        record = result.record
        return RelevantSection(
            document_title=record.get("document_title") or "",
            section_title=chunk.section.title,
            section_number=chunk.section.number,
            subsection_title=chunk.subsection.title,
            subsection_number=chunk.subsection.number,
            content=chunk.content,
            page_number=chunk.page_number,
            relevance_score=result.relevance_score,
            document_url=self.document_viewer.get_document_url(document_id),
            viewer_url=self.document_viewer.get_viewer_url(document_id, chunk.page_number, record),
            content_type=record.get("content_type") or "",
            effective_title=record.get("effective_title") or "",
            contextual_header=chunk.contextual_header,
            preceding_context=chunk.preceding_context,
            following_context=chunk.following_context,
            keywords=chunk.keywords,
            semantic_type=chunk.semantic_type,
            semantic_scores=chunk.semantic_scores,
            heading_level=chunk.heading_level,
        )
