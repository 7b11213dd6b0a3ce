"""Retrieval engine for orchestrating query embedding, hybrid search and reranking."""
import logging
from dataclasses import dataclass, field
from typing import List

from config import DEFAULT_KNN, DEFAULT_MINIMUM_RELEVANCE
from models.chunk import ScoredChunk
from services.vector_store import VectorStore
from services.embedding_model import EmbeddingModel
from services.reranker import rerank

logger = logging.getLogger(__name__)

STRUCTURED_PROFILE = "structured"
UNSTRUCTURED_PROFILE = "unstructured"


@dataclass
class RetrievalResult:
    """Survivors of one query plus what the caller reports about the ranking."""
    results: List[ScoredChunk] = field(default_factory=list)
    has_structured_docs: bool = False
    ranking_profile: str = UNSTRUCTURED_PROFILE
    candidate_count: int = 0
    top_base_score: float = 0.0
    threshold: float = 0.0


class RetrievalEngine:
    """Orchestrate query embedding, hybrid retrieval and composite reranking."""

    def __init__(self, vector_store: VectorStore, embedding_model: EmbeddingModel):
        """
        Initialize the retrieval engine.

        Args:
            vector_store: VectorStore instance for hybrid search
            embedding_model: EmbeddingModel instance for query embedding
        """
        self.vector_store = vector_store
        self.embedding_model = embedding_model
        logger.info("Initialized RetrievalEngine")

    async def retrieve(
        self,
        query: str,
        knn: int = DEFAULT_KNN,
        minimum_relevance: float = DEFAULT_MINIMUM_RELEVANCE,
    ) -> RetrievalResult:
        """
        Retrieve relevant chunks for a query.

        1. Embed the query
        2. Fetch 2 x knn hybrid candidates
        3. Detect whether any candidate comes from a structured document
        4. Rerank by composite score and apply the relative threshold

        Embedding and search errors propagate to the caller.

        Args:
            query: User question
            knn: Number of results wanted
            minimum_relevance: Fraction of the best base score a result must exceed

        Returns:
            RetrievalResult, with no results for an empty query or no candidates
        """
        if not query or not query.strip():
            logger.warning("Empty query string provided, returning empty results")
            return RetrievalResult()

        logger.debug(f"Embedding query: {query[:100]}...")
        query_embedding = await self.embedding_model.embed_text(query)

        logger.debug(f"Searching for top {knn * 2} candidates")
        candidates = await self.vector_store.hybrid_search(
            query, query_embedding, top_k=knn * 2, ranking_profile=UNSTRUCTURED_PROFILE
        )

        if not candidates:
            logger.info("No candidates found for query")
            return RetrievalResult()

        has_structured = any(c.has_structured_sections for c in candidates)
        top_base_score = candidates[0].base_score
        results = rerank(candidates, query, knn=knn, minimum_relevance=minimum_relevance)

        return RetrievalResult(
            results=results,
            has_structured_docs=has_structured,
            ranking_profile=STRUCTURED_PROFILE if has_structured else UNSTRUCTURED_PROFILE,
            candidate_count=len(candidates),
            top_base_score=top_base_score,
            threshold=minimum_relevance * top_base_score,
        )
