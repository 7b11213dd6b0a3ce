"""Integration tests for EmbeddingModel with real API (optional)."""
import sys
import asyncio
from pathlib import Path
import pytest

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

from services.embedding_model import EmbeddingModel
from services.semantic_enricher import SemanticEnricher
from models.chunk import Chunk
from config import HUGGINGFACE_API_KEY


@pytest.mark.skipif(
    not HUGGINGFACE_API_KEY,
    reason="HUGGINGFACE_API_KEY not set"
)
class TestEmbeddingIntegration:
    """Integration tests with real Hugging Face API."""

    def test_real_embed_text(self):
        model = EmbeddingModel()

        result = asyncio.run(model.embed_text("This is a test sentence."))

        # all-mpnet-base-v2 produces 768-dimensional embeddings
        assert len(result) == 768
        assert all(isinstance(x, float) for x in result)

    def test_real_embed_long_chunk(self):
        """A chunk beyond the model limit still yields one vector of the model's size."""
        enricher = SemanticEnricher(EmbeddingModel())
        chunk = Chunk(content=" ".join(f"maintenance{i}" for i in range(3000)), page_number=1)

        result = asyncio.run(enricher.embed_chunk(chunk))

        assert len(result) == 768
