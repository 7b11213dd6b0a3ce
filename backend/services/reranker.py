"""Composite relevance scoring and threshold filtering of search candidates."""
import logging
from typing import List

from config import CONTEXT_TERM_BOOST, DEFAULT_KNN, DEFAULT_MINIMUM_RELEVANCE
from models.chunk import ScoredChunk, SectionType

logger = logging.getLogger(__name__)

STRUCTURAL_BOOSTS = {
    SectionType.MAIN_SECTION: 1.3,
    SectionType.SUBSECTION: 1.2,
    SectionType.GENERIC_HEADING: 1.1,
    SectionType.NONE: 1.0,
}


def query_terms(query: str) -> List[str]:
    """Lower-cased query words longer than three characters."""
    return [term for term in query.lower().split(" ") if len(term) > 3]


def calculate_context_boost(candidate: ScoredChunk, terms: List[str], boost: float = CONTEXT_TERM_BOOST) -> float:
    """Add ``boost`` per term found in the preceding and again in the following context."""
    preceding = candidate.chunk.preceding_context.lower()
    following = candidate.chunk.following_context.lower()
    total = 0.0
    if preceding:
        total += boost * sum(1 for term in terms if term in preceding)
    if following:
        total += boost * sum(1 for term in terms if term in following)
    return total


def calculate_structural_boost(section_type: SectionType) -> float:
    return STRUCTURAL_BOOSTS[section_type]


def calculate_relevance_score(candidate: ScoredChunk, query: str) -> float:
    """
    Composite score of one candidate.

    base x type x heading x (1 + keyword) x (1 + context boost) x structural boost.
    There is no ceiling. Any error falls back to the base score.
    """
    try:
        scores = candidate.chunk.semantic_scores
        score = candidate.base_score
        score *= scores.get("type_score", 1.0)
        score *= scores.get("heading_score", 1.0)
        score *= 1.0 + scores.get("keyword_score", 0.0)
        score *= 1.0 + calculate_context_boost(candidate, query_terms(query))
        score *= calculate_structural_boost(candidate.chunk.section.type)
        return score
    except Exception as e:
        logger.error(f"Error calculating relevance score: {str(e)}")
        return candidate.base_score


def rerank(
    candidates: List[ScoredChunk],
    query: str,
    knn: int = DEFAULT_KNN,
    minimum_relevance: float = DEFAULT_MINIMUM_RELEVANCE,
) -> List[ScoredChunk]:
    """
    Order candidates by composite score, keep the top ``knn`` and drop weak ones.

    A candidate survives only if its composite score is strictly greater than
    ``minimum_relevance`` times the base score of the first candidate in store
    order.

    Args:
        candidates: Candidates in the order the store returned them
        query: User query
        knn: Number of results to keep before thresholding
        minimum_relevance: Fraction of the top base score a result must exceed

    Returns:
        Surviving candidates, composite score descending, relevance_score set
    """
    if not candidates:
        return []

    for candidate in candidates:
        candidate.relevance_score = calculate_relevance_score(candidate, query)

    threshold = minimum_relevance * candidates[0].base_score
    ranked = sorted(candidates, key=lambda c: c.relevance_score, reverse=True)[:knn]
    survivors = [c for c in ranked if c.relevance_score > threshold]

    logger.info(
        f"Reranked {len(candidates)} candidates: kept {len(survivors)} of top {len(ranked)} "
        f"(threshold: {threshold:.3f})"
    )
    return survivors
