"""Search store implementation using Supabase pgvector with hybrid ranking."""
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from supabase import acreate_client, AsyncClient

from config import (
    SUPABASE_URL,
    SUPABASE_KEY,
    SEARCH_TABLE_NAME,
    HYBRID_SEARCH_FUNCTION,
    INDEX_BATCH_SIZE,
    MAX_HEADING_LENGTH,
)
from models.chunk import Chunk, ScoredChunk, Section, SectionType, BODY_TEXT

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("id", "content", "document_id", "document_title")


def determine_content_type(chunk: Chunk) -> str:
    if chunk.is_table:
        return "Table"
    if chunk.section.number:
        return f"Section_{chunk.section.type.value}"
    if chunk.contextual_header:
        return "HeaderedContent"
    return "UnstructuredContent"


def _first_line(content: str) -> str:
    return content.split("\n", 1)[0].strip() if content else ""


def _is_title_like(line: str) -> bool:
    return bool(line) and len(line) < MAX_HEADING_LENGTH and line[0].isupper()


def effective_title(chunk: Chunk) -> str:
    """Best available title: section, then page header, then a title-like first line."""
    if chunk.section.title:
        return chunk.section.title
    if chunk.contextual_header:
        return chunk.contextual_header
    line = _first_line(chunk.content)
    return line if _is_title_like(line) else ""


def title_source(chunk: Chunk) -> str:
    if chunk.section.title:
        return "Section"
    if chunk.contextual_header:
        return "Header"
    if _is_title_like(_first_line(chunk.content)):
        return "Content"
    return "None"


def build_record(
    document_name: str,
    chunk: Chunk,
    index: int,
    last_modified: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Flatten an enriched chunk into an index record.

    Args:
        document_name: File name of the source document, e.g. ``manual.pdf``
        chunk: Enriched chunk
        index: Position of the chunk within the document
        last_modified: ISO timestamp (defaults to now, UTC)

    Returns:
        Dict keyed by the column names of the search table
    """
    stem, extension = os.path.splitext(document_name)
    scores = chunk.semantic_scores or {}
    return {
        "id": f"{stem}-chunk-{index}",
        "content": chunk.content,
        "document_id": document_name,
        "document_title": stem,
        "section_title": chunk.section.title,
        "section_number": chunk.section.number,
        "section_type": chunk.section.type.value,
        "subsection_title": chunk.subsection.title,
        "subsection_number": chunk.subsection.number,
        "chunk_index": index,
        "page_number": chunk.page_number,
        "contextual_header": chunk.contextual_header,
        "is_table": chunk.is_table,
        "file_type": extension,
        "last_modified": last_modified or datetime.now(timezone.utc).isoformat(),
        "embedding": chunk.embedding,
        "has_structured_sections": bool(chunk.section.number),
        "content_type": determine_content_type(chunk),
        "effective_title": effective_title(chunk),
        "title_source": title_source(chunk),
        "preceding_context": chunk.preceding_context,
        "following_context": chunk.following_context,
        "keywords": list(chunk.keywords),
        "semantic_type": chunk.semantic_type or BODY_TEXT,
        "heading_level": chunk.heading_level,
        "type_score": scores.get("type_score", 1.0),
        "heading_score": scores.get("heading_score", 1.0),
        "keyword_score": scores.get("keyword_score", 0.0),
    }


def validate_record(record: Dict[str, Any]) -> bool:
    for name in REQUIRED_FIELDS:
        value = record.get(name)
        if value is None or not str(value).strip():
            logger.error(f"Missing required field: {name}")
            return False

    if not record.get("embedding"):
        logger.error("Missing embedding")
        return False

    return True


def _score(row: Dict[str, Any], name: str, default: float) -> float:
    value = row.get(name)
    return default if value is None else float(value)


def chunk_from_record(row: Dict[str, Any]) -> Chunk:
    """Rebuild a chunk from a search-store row; missing fields take defaults."""
    return Chunk(
        content=row.get("content") or "",
        page_number=int(row.get("page_number") or 1),
        section=Section(
            title=row.get("section_title") or "",
            number=row.get("section_number") or "",
            type=SectionType.parse(row.get("section_type")),
        ),
        subsection=Section(
            title=row.get("subsection_title") or "",
            number=row.get("subsection_number") or "",
            type=SectionType.SUBSECTION if row.get("subsection_number") else SectionType.NONE,
        ),
        is_table=bool(row.get("is_table", False)),
        contextual_header=row.get("contextual_header") or "",
        preceding_context=row.get("preceding_context") or "",
        following_context=row.get("following_context") or "",
        keywords=list(row.get("keywords") or []),
        heading_level=int(row.get("heading_level") or 0),
        semantic_type=row.get("semantic_type") or BODY_TEXT,
        semantic_scores={
            "type_score": _score(row, "type_score", 1.0),
            "heading_score": _score(row, "heading_score", 1.0),
            "keyword_score": _score(row, "keyword_score", 0.0),
        },
    )


class VectorStore:
    """Store enriched chunks and run hybrid vector + full-text search in Supabase."""

    def __init__(
        self,
        supabase_url: str = SUPABASE_URL,
        supabase_key: str = SUPABASE_KEY,
        table_name: str = SEARCH_TABLE_NAME,
        search_function: str = HYBRID_SEARCH_FUNCTION,
        batch_size: int = INDEX_BATCH_SIZE,
        client: Optional[AsyncClient] = None,
    ):
        """
        Initialize the vector store.

        Args:
            supabase_url: Supabase project URL
            supabase_key: Supabase API key
            table_name: Name of the table holding index records
            search_function: Name of the hybrid search RPC
            batch_size: Maximum records per upsert
            client: Already connected async client (created lazily otherwise)

        Raises:
            ValueError: If Supabase credentials are missing and no client is given
        """
        if client is None and (not supabase_url or not supabase_key):
            raise ValueError("SUPABASE_URL and SUPABASE_KEY environment variables are required")

        self.supabase_url = supabase_url
        self.supabase_key = supabase_key
        self.table_name = table_name
        self.search_function = search_function
        self.batch_size = batch_size
        self._client = client

        logger.info(f"Initialized VectorStore with table: {table_name}")

    async def _get_client(self) -> AsyncClient:
        if self._client is None:
            self._client = await acreate_client(self.supabase_url, self.supabase_key)
        return self._client

    async def add_chunks(self, document_name: str, chunks: List[Chunk]) -> int:
        """
        Index a document's enriched chunks.

        Chunks with empty content or failing validation are skipped with a
        warning. Records are upserted in batches of at most ``batch_size``.

        Args:
            document_name: File name of the source document
            chunks: Enriched chunks in document order

        Returns:
            Number of records written

        Raises:
            RuntimeError: If an upsert fails or no chunk is indexable
        """
        logger.info(f"Starting indexing for document: {document_name} with {len(chunks)} chunks")
        client = await self._get_client()
        batch: List[Dict[str, Any]] = []
        indexed = 0

        for i, chunk in enumerate(chunks):
            if not chunk.content or not chunk.content.strip():
                logger.warning(f"Skipping chunk {i} due to empty content")
                continue

            record = build_record(document_name, chunk, i)
            if not validate_record(record):
                logger.warning(f"Skipping invalid record for chunk {i}")
                continue

            batch.append(record)
            if len(batch) >= self.batch_size:
                indexed += await self._flush(client, document_name, batch)
                batch = []

        if batch:
            indexed += await self._flush(client, document_name, batch)

        if indexed == 0:
            raise RuntimeError(f"No embeddable content in document {document_name}")

        logger.info(f"Completed indexing {indexed}/{len(chunks)} chunks for document: {document_name}")
        return indexed

    async def _flush(self, client: AsyncClient, document_name: str, batch: List[Dict[str, Any]]) -> int:
        logger.info(f"Indexing batch of {len(batch)} records")
        try:
            await client.table(self.table_name).upsert(batch).execute()
        except Exception as e:
            error_msg = f"Failed to index batch for {document_name}: {str(e)}"
            logger.error(error_msg)
            raise RuntimeError(error_msg) from e
        return len(batch)

    async def hybrid_search(
        self,
        query_text: str,
        query_embedding: List[float],
        top_k: int = 6,
        ranking_profile: str = "unstructured",
    ) -> List[ScoredChunk]:
        """
        Run the hybrid vector + full-text query.

        The RPC returns every record column plus a ``score`` column and is
        expected to order rows by that score descending.

        Args:
            query_text: Raw query for the full-text half
            query_embedding: Query vector for the similarity half
            top_k: Number of candidates to fetch
            ranking_profile: Ranking profile name passed to the RPC

        Returns:
            Candidates in store order, relevance score preset to the base score

        Raises:
            ValueError: If query_embedding is empty or top_k is invalid
            RuntimeError: If the database call fails
        """
        if not query_embedding:
            raise ValueError("Query embedding cannot be empty")

        if top_k <= 0:
            raise ValueError("top_k must be positive")

        client = await self._get_client()
        try:
            response = await client.rpc(
                self.search_function,
                {
                    "query_text": query_text,
                    "query_embedding": query_embedding,
                    "match_count": top_k,
                    "ranking_profile": ranking_profile,
                },
            ).execute()
        except Exception as e:
            error_msg = f"Failed to search vector store: {str(e)}"
            logger.error(error_msg)
            raise RuntimeError(error_msg) from e

        candidates = []
        for row in response.data or []:
            base_score = float(row.get("score") or 0.0)
            candidates.append(ScoredChunk(
                chunk=chunk_from_record(row),
                base_score=base_score,
                relevance_score=base_score,
                record=row,
            ))

        logger.debug(f"Found {len(candidates)} candidates for query")
        return candidates

    async def delete_stale_chunks(self, document_id: str, chunk_count: int) -> None:
        """Remove a document's records left over from a longer previous ingest."""
        client = await self._get_client()
        try:
            await (
                client.table(self.table_name)
                .delete()
                .eq("document_id", document_id)
                .gte("chunk_index", chunk_count)
                .execute()
            )
            logger.info(f"Deleted stale records for {document_id} from chunk {chunk_count}")
        except Exception as e:
            error_msg = f"Failed to delete stale records for {document_id}: {str(e)}"
            logger.error(error_msg)
            raise RuntimeError(error_msg) from e

    async def count(self) -> int:
        """
        Get the total number of records in the search table.

        Raises:
            RuntimeError: If database operation fails
        """
        client = await self._get_client()
        try:
            response = await client.table(self.table_name).select("id", count="exact").execute()
            return response.count if response.count is not None else 0
        except Exception as e:
            error_msg = f"Failed to count chunks in vector store: {str(e)}"
            logger.error(error_msg)
            raise RuntimeError(error_msg) from e
