"""
Local sentence embeddings.
"""

import logging
from typing import Optional, Protocol, Sequence

from ..config import settings

logger = logging.getLogger(__name__)


class TextEmbedder(Protocol):
    def embed(self, texts: Sequence[str]) -> list[list[float]]: ...


class SentenceTransformerEmbedder:
    """Embeds text with a sentence-transformers model (runs locally)."""

    def __init__(self, model_name: Optional[str] = None):
        # Lazy import: pulls in torch
        from sentence_transformers import SentenceTransformer

        self.model_name = model_name or settings.embedding_model
        logger.info(f"Loading embedding model: {self.model_name}...")
        self.model = SentenceTransformer(self.model_name)
        logger.info(f"Model loaded. Embedding dimension: {self.model.get_sentence_embedding_dimension()}")

    def embed(self, texts: Sequence[str]) -> list[list[float]]:
        return self.model.encode(list(texts), show_progress_bar=False).tolist()
