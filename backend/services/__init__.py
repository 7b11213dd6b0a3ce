"""Services for the Cited RAG service."""
from .document_loader import DocumentLoader
from .chunking_engine import ChunkingEngine, SegmentedDocument
from .embedding_model import EmbeddingModel, ContextLengthExceededError
from .semantic_enricher import SemanticEnricher, EmbeddingSplitError
from .vector_store import VectorStore
from .reranker import rerank
from .retrieval_engine import RetrievalEngine, RetrievalResult
from .document_viewer import DocumentViewer
from .llm_client import LLMClient, LLMResponse, LLMError, LLMClientError
from .search_service import SearchService
from .ingestion_pipeline import IngestionPipeline, IngestionError

__all__ = [
    'DocumentLoader', 'ChunkingEngine', 'SegmentedDocument', 'EmbeddingModel', 'ContextLengthExceededError',
    'SemanticEnricher', 'EmbeddingSplitError', 'VectorStore', 'rerank', 'RetrievalEngine', 'RetrievalResult',
    'DocumentViewer', 'LLMClient', 'LLMResponse', 'LLMError', 'LLMClientError', 'SearchService',
    'IngestionPipeline', 'IngestionError',
]
