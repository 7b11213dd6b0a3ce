"""Index-time pipeline: analyze, segment, enrich and index one document."""
import logging
import os

from services.chunking_engine import ChunkingEngine
from services.document_loader import DocumentLoader
from services.semantic_enricher import SemanticEnricher
from services.vector_store import VectorStore

logger = logging.getLogger(__name__)


class IngestionError(RuntimeError):
    """A document failed at one pipeline stage."""

    def __init__(self, document: str, stage: str, cause: Exception):
        self.document = document
        self.stage = stage
        super().__init__(f"Ingestion of {document} failed during {stage}: {cause}")


class IngestionPipeline:
    """Runs the index-time stages for one document at a time."""

    def __init__(
        self,
        document_loader: DocumentLoader,
        chunking_engine: ChunkingEngine,
        enricher: SemanticEnricher,
        vector_store: VectorStore,
    ):
        self.document_loader = document_loader
        self.chunking_engine = chunking_engine
        self.enricher = enricher
        self.vector_store = vector_store

    async def ingest(self, filepath: str) -> int:
        """
        Ingest one document, overwriting any records it already has.

        Args:
            filepath: Path to the PDF file

        Returns:
            Number of records written

        Raises:
            IngestionError: Naming the document and the stage that failed
        """
        name = os.path.basename(filepath)
        stage = "analyze"
        try:
            logger.info(f"Analyzing {name}", extra={"document": name, "stage": stage})
            document = await self.document_loader.analyze(filepath, name)

            stage = "segment"
            logger.info(f"Segmenting {name}", extra={"document": name, "stage": stage})
            segmented = self.chunking_engine.chunk_document(document)

            stage = "enrich"
            logger.info(f"Enriching {len(segmented.chunks)} chunks of {name}", extra={"document": name, "stage": stage})
            chunks = await self.enricher.enrich(segmented)

            stage = "index"
            logger.info(f"Indexing {name}", extra={"document": name, "stage": stage})
            indexed = await self.vector_store.add_chunks(name, chunks)
            # ids are positional, so rows past the new chunk count are left from a longer previous version
            await self.vector_store.delete_stale_chunks(name, len(chunks))
        except Exception as e:
            logger.error(f"Ingestion of {name} failed during {stage}: {str(e)}", exc_info=True,
                         extra={"document": name, "stage": stage})
            raise IngestionError(name, stage, e) from e

        logger.info(f"Ingested {name}: {indexed} records")
        return indexed
