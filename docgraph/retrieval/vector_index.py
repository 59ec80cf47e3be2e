"""
Chunk embeddings in ChromaDB for semantic search.

Usage:
    from docgraph.retrieval.vector_index import VectorIndex

    index = VectorIndex()
    index.index_chunks(chunks, collection_name="papers")

    # Search
    results = index.search("Who designed the analytical engine?", "papers", top_k=5)
"""

import hashlib
import logging
from typing import Optional, Sequence

import chromadb

from ..config import settings
from ..errors import ServiceConnectionError
from ..ingestion.chunker import Chunk
from .embedder import SentenceTransformerEmbedder, TextEmbedder

logger = logging.getLogger(__name__)

METADATA_TYPES = (str, int, float, bool)


class VectorIndex:
    """Embeds chunks into ChromaDB collections."""

    def __init__(
        self,
        chroma_host: Optional[str] = None,
        chroma_port: Optional[int] = None,
        embedder: Optional[TextEmbedder] = None,
        client=None,
        batch_size: Optional[int] = None,
    ):
        if client is None:
            host = chroma_host or settings.chroma_host
            port = chroma_port or settings.chroma_port
            try:
                client = chromadb.HttpClient(host=host, port=port)
            except Exception as e:
                raise ServiceConnectionError(f"Cannot connect to ChromaDB at {host}:{port}: {e}") from e
        self.chroma_client = client
        self._embedder = embedder
        self.batch_size = batch_size or settings.embedding_batch_size

    @property
    def embedder(self) -> TextEmbedder:
        if self._embedder is None:
            self._embedder = SentenceTransformerEmbedder()
        return self._embedder

    @staticmethod
    def _generate_id(chunk: Chunk) -> str:
        """Stable id so re-ingesting a document overwrites its chunks."""
        return hashlib.md5(f"{chunk.source_id}:{chunk.sequence}".encode()).hexdigest()[:16]

    @staticmethod
    def _chunk_metadata(chunk: Chunk) -> dict:
        metadata = {
            key: value
            for key, value in chunk.metadata.items()
            if isinstance(value, METADATA_TYPES)
        }
        metadata["source"] = chunk.source_id
        metadata["sequence"] = chunk.sequence
        return metadata

    def index_chunks(self, chunks: Sequence[Chunk], collection_name: str) -> dict:
        """
        Embed and upsert chunks into a collection, creating it if needed.

        Args:
            chunks: Chunks to index
            collection_name: Target ChromaDB collection

        Returns:
            Dict with 'status', 'collection' and 'added'

        Raises:
            ServiceConnectionError: if ChromaDB or the embedding model fails
        """
        total_indexed = 0
        try:
            collection = self.chroma_client.get_or_create_collection(name=collection_name)

            for i in range(0, len(chunks), self.batch_size):
                batch = chunks[i:i + self.batch_size]
                texts = [chunk.text for chunk in batch]

                embeddings = self.embedder.embed(texts)

                collection.upsert(
                    ids=[self._generate_id(chunk) for chunk in batch],
                    embeddings=embeddings,
                    documents=texts,
                    metadatas=[self._chunk_metadata(chunk) for chunk in batch],
                )
                total_indexed += len(batch)
                logger.info(f"  Embedded {total_indexed}/{len(chunks)} chunks into '{collection_name}'")
        except Exception as e:
            raise ServiceConnectionError(
                f"ChromaDB indexing into '{collection_name}' failed after "
                f"{total_indexed}/{len(chunks)} chunks: {e}"
            ) from e

        return {"status": "ok", "collection": collection_name, "added": total_indexed}

    def search(
        self,
        query: str,
        collection_name: str,
        top_k: int = 10,
        min_score: Optional[float] = None,
    ) -> list[dict]:
        """
        Search for chunks similar to the query.

        Returns:
            List of dicts with 'text', 'source', 'sequence', 'score'
        """
        collection = self.chroma_client.get_collection(collection_name)
        query_embedding = self.embedder.embed([query])[0]

        results = collection.query(
            query_embeddings=[query_embedding],
            n_results=top_k,
            include=["metadatas", "distances", "documents"],
        )

        formatted = []
        for meta, distance, doc in zip(
            results["metadatas"][0],
            results["distances"][0],
            results["documents"][0],
        ):
            # ChromaDB returns L2 distance by default; lower is more similar
            score = 1 / (1 + distance)
            if min_score and score < min_score:
                continue
            formatted.append({
                "text": doc,
                "source": meta.get("source"),
                "sequence": meta.get("sequence"),
                "score": round(score, 4),
            })
        return formatted

    def collection_names(self) -> list[str]:
        # Depending on the chromadb version this is a list of names or of Collections
        return [c if isinstance(c, str) else c.name for c in self.chroma_client.list_collections()]

    def count(self, collection_name: str) -> int:
        return self.chroma_client.get_collection(collection_name).count()

    def delete_collection(self, collection_name: str) -> dict:
        """
        Delete a collection.

        Returns:
            {'status': 'ok'|'warning'|'error', 'message': ...}; a missing
            collection is a warning, not an error
        """
        try:
            if collection_name not in self.collection_names():
                return {
                    "status": "warning",
                    "message": f'Collection "{collection_name}" does not exist',
                }
            self.chroma_client.delete_collection(collection_name)
        except Exception as e:
            logger.error(f"ChromaDB deletion error: {e}")
            return {"status": "error", "message": f"Failed to delete collection: {e}"}

        logger.info(f'ChromaDB: deleted collection "{collection_name}"')
        return {"status": "ok", "message": f'Collection "{collection_name}" deleted successfully'}
