"""Main entry point for the Cited RAG API."""
import logging
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from config import PORT, LOG_LEVEL, LOG_FORMAT, DEFAULT_KNN, DEFAULT_MINIMUM_RELEVANCE
from logger import setup_logging
from models.api import SearchRequest, SearchResponse
from services.document_viewer import DocumentViewer
from services.embedding_model import EmbeddingModel
from services.llm_client import LLMClient, LLMClientError
from services.retrieval_engine import RetrievalEngine
from services.search_service import SearchService
from services.vector_store import VectorStore

# Initialize logging
setup_logging(LOG_LEVEL, LOG_FORMAT)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Cited RAG",
    description="Question answering over structured documents with section-level citations",
    version="1.0.0"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:3001"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Initialize services (will be done on startup)
search_service: SearchService = None


@app.on_event("startup")
async def startup_event():
    """Initialize services on startup."""
    global search_service

    logger.info("Initializing Cited RAG services...")

    try:
        embedding_model = EmbeddingModel()
        vector_store = VectorStore()
        retrieval_engine = RetrievalEngine(vector_store, embedding_model)
        logger.info("Initialized RetrievalEngine")

        llm_client = LLMClient()
        logger.info("Initialized LLMClient")

        search_service = SearchService(retrieval_engine, llm_client, DocumentViewer())
        logger.info("All services initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize services: {e}", exc_info=True)
        raise


@app.get("/health")
async def health():
    """Health check."""
    return {
        "status": "healthy",
        "service": "cited-rag",
        "version": "1.0.0"
    }


@app.post("/search", response_model=SearchResponse)
async def search_endpoint(request: SearchRequest) -> SearchResponse:
    """
    Answer a question from the indexed documents.

    Args:
        request: SearchRequest with the query and optional overrides

    Returns:
        SearchResponse with the answer, cited sections and search metrics

    Raises:
        HTTPException: 400 for an empty query, 500 for any processing failure
    """
    if not request.query or not request.query.strip():
        raise HTTPException(status_code=400, detail="Query cannot be empty")

    try:
        return await search_service.search(
            request.query,
            system_message=request.system_message,
            knn=request.knn or DEFAULT_KNN,
            minimum_relevance=(
                request.minimum_relevance_score
                if request.minimum_relevance_score is not None
                else DEFAULT_MINIMUM_RELEVANCE
            ),
        )
    except LLMClientError as e:
        logger.error(f"LLM client error: {e.error.message}", extra={"error_code": e.error.code})
        raise HTTPException(status_code=500, detail="Internal server error")
    except Exception as e:
        logger.error(f"Error in search endpoint: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")


if __name__ == "__main__":
    import uvicorn
    logger.info(f"Starting Cited RAG API on port {PORT}")
    uvicorn.run(app, host="0.0.0.0", port=PORT)
