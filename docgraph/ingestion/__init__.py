"""
Document ingestion for docgraph.

Components:
- loader: PDF and text file loading
- chunker: Recursive character chunking with metadata preservation
"""

from .chunker import Chunk, Chunker, chunk_documents, validate_chunking
from .loader import Document, load_document

__all__ = [
    "Chunk",
    "Chunker",
    "chunk_documents",
    "validate_chunking",
    "Document",
    "load_document",
]
