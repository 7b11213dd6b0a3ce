"""Configuration management for the Cited RAG service."""
import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# API Keys
HUGGINGFACE_API_KEY = os.getenv("HUGGINGFACE_API_KEY")
GROQ_API_KEY = os.getenv("GROQ_API_KEY")
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_KEY = os.getenv("SUPABASE_KEY")

# Server Configuration
PORT = int(os.getenv("PORT", "8000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "text")  # "text" or "json"

# Model Configuration
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "sentence-transformers/all-mpnet-base-v2")
CHAT_MODEL = os.getenv("CHAT_MODEL", "llama-3.3-70b-versatile")

# Search store
SEARCH_TABLE_NAME = os.getenv("SEARCH_TABLE_NAME", "document_chunks")
HYBRID_SEARCH_FUNCTION = os.getenv("HYBRID_SEARCH_FUNCTION", "hybrid_match_chunks")
INDEX_BATCH_SIZE = 1000

# Document viewer
VIEWER_ENDPOINT = os.getenv("VIEWER_ENDPOINT", f"http://localhost:{PORT}/api/ViewDocument")
BLOB_STORAGE_BASE_URL = os.getenv("BLOB_STORAGE_BASE_URL", "")

# Segmentation Configuration
MAX_TOKENS_PER_CHUNK = 4000  # estimated tokens
OVERLAP_TOKENS = 400
CONTEXT_WINDOW_LINES = 5

# Layout thresholds (fractions of page height)
PAGE_HEADER_REGION = 0.15
HEADING_REGION = 0.30
MAX_HEADING_LENGTH = 100
TABLE_PROBE_LINES = 5

# Enrichment Configuration
MAX_KEYWORDS = 5
EMBEDDING_SUBCHUNK_TOKENS = 2000
MAX_EMBEDDING_SPLIT_DEPTH = 4

# Retrieval Configuration
DEFAULT_KNN = 3
DEFAULT_MINIMUM_RELEVANCE = 0.7
CONTEXT_TERM_BOOST = 0.05
