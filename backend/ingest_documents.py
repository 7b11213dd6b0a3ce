"""
Document Ingestion Script for the Cited RAG service.

This script:
1. Finds every PDF in the documents directory
2. Analyzes page layout and tables with PyMuPDF
3. Segments each document into section-aware chunks
4. Enriches chunks with keywords, semantic roles and embeddings
5. Replaces the document's records in Supabase

Usage:
    python ingest_documents.py [documents_directory]
"""
import argparse
import asyncio
import sys
import logging
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent))

from services.document_loader import DocumentLoader
from services.chunking_engine import ChunkingEngine
from services.embedding_model import EmbeddingModel
from services.semantic_enricher import SemanticEnricher
from services.vector_store import VectorStore
from services.ingestion_pipeline import IngestionPipeline, IngestionError
from config import HUGGINGFACE_API_KEY, SUPABASE_URL, SUPABASE_KEY, LOG_LEVEL, LOG_FORMAT
from logger import setup_logging

logger = logging.getLogger(__name__)


async def ingest_directory(docs_directory: str) -> int:
    """
    Ingest every PDF of a directory, one document at a time.

    Args:
        docs_directory: Directory holding the PDF files

    Returns:
        Number of documents that failed
    """
    logger.info("=" * 60)
    logger.info("Starting Document Ingestion")
    logger.info("=" * 60)

    logger.info("[1/3] Initializing services...")
    embedding_model = EmbeddingModel(api_key=HUGGINGFACE_API_KEY)
    vector_store = VectorStore(supabase_url=SUPABASE_URL, supabase_key=SUPABASE_KEY)
    document_loader = DocumentLoader(docs_directory=docs_directory)
    pipeline = IngestionPipeline(
        document_loader=document_loader,
        chunking_engine=ChunkingEngine(),
        enricher=SemanticEnricher(embedding_model),
        vector_store=vector_store,
    )

    logger.info("[2/3] Warming up embedding model...")
    logger.info("This may take 15-20 seconds on first run (HuggingFace free tier)...")
    await embedding_model.warmup()

    filepaths = document_loader.list_documents()
    if not filepaths:
        logger.error(f"No documents found! Check that {docs_directory} exists and contains PDFs")
        return 1

    logger.info(f"[3/3] Ingesting {len(filepaths)} documents...")
    failures = 0
    total_records = 0
    for filepath in filepaths:
        try:
            total_records += await pipeline.ingest(filepath)
        except IngestionError as e:
            failures += 1
            logger.error(f"Skipping {e.document} (failed during {e.stage})")

    final_count = await vector_store.count()

    logger.info("=" * 60)
    logger.info("INGESTION COMPLETE!")
    logger.info("=" * 60)
    logger.info(f"Documents processed: {len(filepaths) - failures}/{len(filepaths)}")
    logger.info(f"Records written: {total_records}")
    logger.info(f"Records in database: {final_count}")
    logger.info("=" * 60)
    return failures


def main():
    """Main ingestion process."""
    setup_logging(LOG_LEVEL, LOG_FORMAT)

    parser = argparse.ArgumentParser(description="Ingest PDF documents into the search store")
    parser.add_argument(
        "docs_directory",
        nargs="?",
        default=str(Path(__file__).parent.parent / "documents"),
        help="Directory containing PDF files",
    )
    args = parser.parse_args()

    try:
        failures = asyncio.run(ingest_directory(args.docs_directory))
    except KeyboardInterrupt:
        logger.warning("Ingestion interrupted by user")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Ingestion failed: {str(e)}", exc_info=True)
        sys.exit(1)

    sys.exit(1 if failures else 0)


if __name__ == "__main__":
    main()
