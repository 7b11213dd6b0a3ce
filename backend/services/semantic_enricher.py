"""Semantic enrichment of chunks: keywords, roles, embeddings and heuristic scores."""
import logging
from dataclasses import replace
from typing import Dict, List, Optional, Sequence

import numpy as np

from config import EMBEDDING_SUBCHUNK_TOKENS, MAX_EMBEDDING_SPLIT_DEPTH, MAX_KEYWORDS
from models.chunk import (
    Chunk,
    default_semantic_scores,
    HEADER,
    DEFINITION,
    TABLE,
    NUMBERED_LIST,
)
from services.chunking_engine import SegmentedDocument
from services.embedding_model import EmbeddingModel, ContextLengthExceededError
from services.keyword_extractor import extract_keywords
from services.structure_classifier import (
    LayoutThresholds,
    DEFAULT_THRESHOLDS,
    determine_heading_level,
    determine_semantic_type,
    estimate_token_count,
)

logger = logging.getLogger(__name__)

TYPE_SCORES = {
    HEADER: 1.5,
    DEFINITION: 1.3,
    TABLE: 1.2,
    NUMBERED_LIST: 1.1,
}

HEADING_SCORES = {
    1: 1.5,  # Main heading
    2: 1.3,  # Subheading
}


class EmbeddingSplitError(RuntimeError):
    """A chunk could not be embedded even after splitting."""


def split_for_embedding(chunk: Chunk, max_tokens: int = EMBEDDING_SUBCHUNK_TOKENS) -> List[Chunk]:
    """
    Split a chunk's words into sub-chunks bounded by an estimated token budget.

    Each sub-chunk keeps the parent's section, page, table flag and header and
    gets its own sub-chunk index.
    """
    parts: List[Chunk] = []
    current: List[str] = []
    current_tokens = 0

    def emit() -> None:
        text = " ".join(current).strip()
        if text:
            parts.append(replace(chunk, content=text, sub_chunk_index=len(parts), keywords=[], embedding=[]))

    for word in chunk.content.split():
        word_tokens = estimate_token_count(word)
        if current and current_tokens + word_tokens > max_tokens:
            emit()
            current = []
            current_tokens = 0
        current.append(word)
        current_tokens += word_tokens

    emit()
    return parts


def average_embeddings(vectors: Sequence[Sequence[float]]) -> List[float]:
    """Element-wise arithmetic mean of equally sized vectors."""
    if not vectors:
        raise ValueError("Cannot average an empty list of embeddings")

    dimensions = {len(vector) for vector in vectors}
    if len(dimensions) != 1:
        raise ValueError(f"Embeddings have mismatched dimensions: {sorted(dimensions)}")

    return np.mean(np.asarray(vectors, dtype=float), axis=0).tolist()


def calculate_semantic_scores(chunk: Chunk, max_keywords: int = MAX_KEYWORDS) -> Dict[str, float]:
    return {
        "type_score": TYPE_SCORES.get(chunk.semantic_type, 1.0),
        "heading_score": HEADING_SCORES.get(chunk.heading_level, 1.0),
        "keyword_score": len(chunk.keywords) / float(max_keywords) if chunk.keywords else 0.0,
    }


class SemanticEnricher:
    """Annotates and embeds chunks one at a time."""

    def __init__(
        self,
        embedding_model: EmbeddingModel,
        subchunk_tokens: int = EMBEDDING_SUBCHUNK_TOKENS,
        max_split_depth: int = MAX_EMBEDDING_SPLIT_DEPTH,
        thresholds: LayoutThresholds = DEFAULT_THRESHOLDS,
    ):
        """
        Initialize the enricher.

        Args:
            embedding_model: Client used for every embedding request
            subchunk_tokens: Token budget of the first split after a context-length error
            max_split_depth: How many times a piece may be split again before giving up
            thresholds: Geometry thresholds for heading levels
        """
        self.embedding_model = embedding_model
        self.subchunk_tokens = subchunk_tokens
        self.max_split_depth = max_split_depth
        self.thresholds = thresholds

    async def enrich(self, document: SegmentedDocument) -> List[Chunk]:
        """
        Enrich every chunk of a segmented document in order.

        A chunk that fails keeps an empty embedding and default scores;
        the rest of the document is still processed.
        """
        for position, chunk in enumerate(document.chunks):
            try:
                self.annotate(chunk, document)
                logger.info(f"Generating embeddings for chunk {position + 1}/{len(document.chunks)} "
                            f"of length {len(chunk.content)}")
                chunk.embedding = await self.embed_chunk(chunk)
                chunk.semantic_scores = calculate_semantic_scores(chunk)
                logger.debug(
                    "Semantic scores calculated: type=%s, heading=%s, keyword=%s",
                    chunk.semantic_scores["type_score"],
                    chunk.semantic_scores["heading_score"],
                    chunk.semantic_scores["keyword_score"],
                )
            except Exception as e:
                logger.error(f"Error enriching chunk {position} of {document.name}: {str(e)}",
                             extra={"document": document.name, "chunk_index": position})
                chunk.embedding = []
                chunk.semantic_scores = default_semantic_scores()

        return document.chunks

    def annotate(self, chunk: Chunk, document: SegmentedDocument) -> None:
        """Keywords, semantic type and heading level; no I/O."""
        line = chunk.trigger_line
        chunk.keywords = extract_keywords(chunk.content)
        chunk.semantic_type = determine_semantic_type(
            line.content if line is not None else None,
            self._header_lines(chunk, document),
            chunk.is_table,
        )
        page_height: Optional[float] = document.page_heights.get(line.page_number) if line is not None else None
        chunk.heading_level = determine_heading_level(line, page_height, self.thresholds)

    @staticmethod
    def _header_lines(chunk: Chunk, document: SegmentedDocument) -> List[str]:
        header_lines = list(document.page_headers.get(chunk.page_number, []))
        if chunk.trigger_line is not None:
            header_lines.extend(document.page_headers.get(chunk.trigger_line.page_number, []))
        if chunk.contextual_header:
            header_lines.append(chunk.contextual_header)
        return header_lines

    async def embed_chunk(self, chunk: Chunk) -> List[float]:
        """
        Embed a chunk, splitting it when the service rejects it as too long.

        Pieces are processed from a worklist in document order. A rejected
        piece is replaced by its own sub-chunks with half the previous budget.

        Raises:
            EmbeddingSplitError: If splitting goes deeper than allowed or nothing was embeddable
        """
        worklist = [(chunk, 0)]
        vectors: List[List[float]] = []

        while worklist:
            piece, depth = worklist.pop(0)
            if not piece.content.strip():
                continue

            try:
                vectors.append(await self.embedding_model.embed_text(piece.content))
            except ContextLengthExceededError:
                if depth >= self.max_split_depth:
                    raise EmbeddingSplitError(
                        f"Chunk on page {chunk.page_number} still exceeds the embedding limit "
                        f"after {depth} splits"
                    )
                budget = max(1, self.subchunk_tokens // (2 ** depth))
                parts = split_for_embedding(piece, budget)
                logger.info(f"Split oversized chunk into {len(parts)} sub-chunks of <= {budget} tokens")
                worklist[0:0] = [(part, depth + 1) for part in parts]

        if not vectors:
            raise EmbeddingSplitError("No valid content to generate embeddings.")

        if len(vectors) == 1:
            return vectors[0]
        return average_embeddings(vectors)
