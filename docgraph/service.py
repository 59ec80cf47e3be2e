"""
docgraph entry points: ingest, project, delete, stats.

Requests are pydantic models so malformed input is rejected before any store
or service is touched.

Usage:
    from docgraph.service import DocGraphService, IngestRequest, build_request

    service = DocGraphService()
    request = build_request(IngestRequest, document="paper.pdf", collection="papers")
    result = service.ingest(request)
    service.close()
"""

import logging
from dataclasses import dataclass
from typing import Literal, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from .config import settings
from .errors import RequestValidationError, ServiceConnectionError
from .graph.builder import GraphBuilder
from .graph.extract import GraphExtractor, LLMGraphExtractor
from .graph.models import GraphProjection
from .graph.projection import GraphProjector
from .graph.store import GraphStore, Neo4jGraphStore
from .ingestion.chunker import Chunk, Chunker, validate_chunking
from .ingestion.loader import load_document
from .retrieval.vector_index import VectorIndex

logger = logging.getLogger(__name__)

RequestT = TypeVar("RequestT", bound=BaseModel)


# =============================================================================
# Requests
# =============================================================================

class IngestRequest(BaseModel):
    document: str
    collection: str
    chunk_size: int = Field(default_factory=lambda: settings.chunk_size)
    chunk_overlap: int = Field(default_factory=lambda: settings.chunk_overlap)
    max_chunks: Optional[int] = Field(default=None, gt=0)
    concurrency: int = Field(default_factory=lambda: settings.extraction_concurrency, gt=0)
    clear_graph: bool = Field(default_factory=lambda: settings.neo4j_clear)

    @field_validator("collection")
    @classmethod
    def collection_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("collection name is required")
        return value

    @model_validator(mode="after")
    def chunking_is_consistent(self):
        validate_chunking(self.chunk_size, self.chunk_overlap)
        return self


class ProjectionRequest(BaseModel):
    collection: Optional[str] = "all"
    limit: int = Field(default_factory=lambda: settings.graph_limit, gt=0)


class DeleteRequest(BaseModel):
    target: Literal["vector", "graph", "both"]
    collection: Optional[str] = None

    @model_validator(mode="after")
    def collection_required_for_vector(self):
        if self.target in ("vector", "both") and not (self.collection or "").strip():
            raise ValueError("collection name is required for vector deletion")
        return self


def build_request(model: Type[RequestT], **fields) -> RequestT:
    """Validate request fields, raising RequestValidationError on bad input."""
    try:
        return model(**fields)
    except ValidationError as e:
        raise RequestValidationError(str(e)) from e


# =============================================================================
# Results
# =============================================================================

@dataclass
class IngestResult:
    """Outcome of one ingestion; each store reports its own status."""
    status: Literal["ok", "error"]
    nodes_added: int = 0
    relationships_added: int = 0
    chunks_indexed: int = 0
    chunks_failed: int = 0
    message: Optional[str] = None
    vector_error: Optional[str] = None
    graph_error: Optional[str] = None

    @staticmethod
    def _store_status(error: Optional[str]) -> dict:
        if error:
            return {"status": "error", "message": error}
        return {"status": "ok"}

    def to_dict(self) -> dict:
        result = {
            "status": self.status,
            "nodesAdded": self.nodes_added,
            "relationshipsAdded": self.relationships_added,
            "chunksIndexed": self.chunks_indexed,
            "chunksFailed": self.chunks_failed,
            "vector": self._store_status(self.vector_error),
            "graph": self._store_status(self.graph_error),
        }
        if self.message:
            result["message"] = self.message
        return result


# =============================================================================
# Service
# =============================================================================

class DocGraphService:
    """Wires the loader, chunker, vector index and graph pipeline together.

    Collaborators are created on first use, so a deletion that only touches
    ChromaDB never needs Neo4j credentials, and vice versa.
    """

    def __init__(
        self,
        graph_store: Optional[GraphStore] = None,
        vector_index: Optional[VectorIndex] = None,
        extractor: Optional[GraphExtractor] = None,
    ):
        self._graph_store = graph_store
        self._vector_index = vector_index
        self._extractor = extractor

    @property
    def graph_store(self) -> GraphStore:
        if self._graph_store is None:
            self._graph_store = Neo4jGraphStore()
        return self._graph_store

    @property
    def vector_index(self) -> VectorIndex:
        if self._vector_index is None:
            self._vector_index = VectorIndex()
        return self._vector_index

    @property
    def extractor(self) -> GraphExtractor:
        if self._extractor is None:
            self._extractor = LLMGraphExtractor()
        return self._extractor

    def ingest(self, request: IngestRequest) -> IngestResult:
        """Load, chunk and index one document into ChromaDB and Neo4j."""
        documents = load_document(request.document)
        if not documents:
            raise RequestValidationError(f"No extractable text in {request.document}")

        chunker = Chunker(request.chunk_size, request.chunk_overlap)
        chunks = chunker.chunk_documents(documents, max_chunks=request.max_chunks)
        logger.info(f"Split {request.document} into {len(chunks)} chunks")
        return self.ingest_chunks(chunks, request)

    def ingest_chunks(self, chunks: Sequence[Chunk], request: IngestRequest) -> IngestResult:
        """Index chunks into both stores.

        A failing vector store does not stop the graph build; the result then
        has status "error" and names the store that failed.
        """
        result = IngestResult(status="ok")

        try:
            vector_result = self.vector_index.index_chunks(chunks, request.collection)
            result.chunks_indexed = vector_result["added"]
        except ServiceConnectionError as e:
            logger.error(f"ChromaDB indexing failed, continuing with the graph: {e}")
            result.vector_error = str(e)

        try:
            builder = GraphBuilder(self.extractor, self.graph_store, concurrency=request.concurrency)
            build = builder.build(
                chunks,
                collection=request.collection,
                clear_store=request.clear_graph,
            )
            result.nodes_added = build.nodes_added
            result.relationships_added = build.relationships_added
            result.chunks_failed = build.chunks_failed
        except ServiceConnectionError as e:
            logger.error(f"Graph build failed: {e}")
            result.graph_error = str(e)

        errors = [e for e in (result.vector_error, result.graph_error) if e]
        if errors:
            result.status = "error"
            result.message = "; ".join(errors)
        return result

    def project(self, request: ProjectionRequest) -> GraphProjection:
        """Reconstruct a renderable graph. Connection errors propagate."""
        projector = GraphProjector(self.graph_store)
        return projector.project(limit=request.limit, collection=request.collection)

    def delete(self, request: DeleteRequest) -> dict:
        """Delete the vector collection, the graph, or both.

        Returns:
            Per-target {'status': 'ok'|'warning'|'error', 'message': ...}
        """
        results = {}
        if request.target in ("vector", "both"):
            results["vector"] = self._delete_vector(request.collection.strip())
        if request.target in ("graph", "both"):
            results["graph"] = self._delete_graph()
        return results

    def _delete_vector(self, collection: str) -> dict:
        try:
            index = self.vector_index
        except ServiceConnectionError as e:
            return {"status": "error", "message": str(e)}
        return index.delete_collection(collection)

    def _delete_graph(self) -> dict:
        try:
            store = self.graph_store
            store.verify()
            node_count = store.count()["nodes"]
            if node_count == 0:
                return {"status": "warning", "message": "No nodes found in Neo4j database"}
            store.clear()
        except Exception as e:
            logger.error(f"Neo4j deletion error: {e}")
            return {"status": "error", "message": f"Failed to delete Neo4j data: {e}"}

        logger.info(f"Neo4j: deleted {node_count} nodes and their relationships")
        return {"status": "ok", "message": f"Deleted {node_count} nodes and their relationships"}

    def stats(self) -> dict:
        """Node and relationship counts of the graph store."""
        self.graph_store.verify()
        return {"graph": self.graph_store.count()}

    def close(self):
        """Close all connections."""
        if self._graph_store is not None and hasattr(self._graph_store, "close"):
            self._graph_store.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
