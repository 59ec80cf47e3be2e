"""
Vector side of docgraph.

Components:
- embedder: sentence-transformers embeddings
- vector_index: ChromaDB chunk index (upsert, search, delete)
"""

from .embedder import SentenceTransformerEmbedder, TextEmbedder
from .vector_index import VectorIndex

__all__ = [
    "SentenceTransformerEmbedder",
    "TextEmbedder",
    "VectorIndex",
]
