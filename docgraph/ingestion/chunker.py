"""
Document chunking with metadata preservation.

Splits text recursively on paragraph, line, word and finally character
boundaries so each chunk stays within `chunk_size` characters, carrying up to
`chunk_overlap` characters of context from one chunk into the next.
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional

from langchain_text_splitters import RecursiveCharacterTextSplitter

from ..errors import RequestValidationError
from .loader import Document

DEFAULT_SEPARATORS = ("\n\n", "\n", " ", "")


@dataclass
class Chunk:
    """A bounded slice of one document's text, the unit of extraction work."""
    text: str
    source_id: str
    sequence: int
    metadata: dict = field(default_factory=dict)


def validate_chunking(chunk_size: int, chunk_overlap: int) -> None:
    if chunk_size <= 0:
        raise RequestValidationError(f"chunk_size must be positive, got {chunk_size}")
    if chunk_overlap < 0:
        raise RequestValidationError(f"chunk_overlap must not be negative, got {chunk_overlap}")
    if chunk_overlap >= chunk_size:
        raise RequestValidationError(
            f"chunk_overlap ({chunk_overlap}) must be smaller than chunk_size ({chunk_size})"
        )


class Chunker:
    """Recursive character splitter producing numbered Chunks."""

    def __init__(
        self,
        chunk_size: int = 1000,
        chunk_overlap: int = 200,
        separators: Iterable[str] = DEFAULT_SEPARATORS,
    ):
        validate_chunking(chunk_size, chunk_overlap)
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.separators = list(separators)
        # Separators are dropped at split points, so a chunk never starts with one
        self.splitter = RecursiveCharacterTextSplitter(
            chunk_size=chunk_size,
            chunk_overlap=chunk_overlap,
            separators=self.separators,
            keep_separator=False,
            length_function=len,
        )

    def split_text(self, text: str) -> list[str]:
        return self.splitter.split_text(text)

    def chunk_documents(
        self,
        documents: Iterable[Document],
        max_chunks: Optional[int] = None,
    ) -> list[Chunk]:
        """
        Split documents into chunks numbered contiguously from 0.

        Args:
            documents: Documents (e.g. the pages of one PDF) in reading order
            max_chunks: Optional cap on the number of chunks returned
        """
        chunks: list[Chunk] = []
        for document in documents:
            for text in self.split_text(document.text):
                if max_chunks is not None and len(chunks) >= max_chunks:
                    return chunks
                chunks.append(Chunk(
                    text=text,
                    source_id=document.source_id,
                    sequence=len(chunks),
                    metadata=dict(document.metadata),
                ))
        return chunks


def chunk_documents(
    documents: Iterable[Document],
    chunk_size: int = 1000,
    chunk_overlap: int = 200,
    max_chunks: Optional[int] = None,
) -> list[Chunk]:
    """One-liner to chunk a list of documents."""
    return Chunker(chunk_size, chunk_overlap).chunk_documents(documents, max_chunks=max_chunks)
