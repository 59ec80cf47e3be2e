"""Pytest configuration and shared fakes.

Nothing here talks to a network: the extraction service, Neo4j, ChromaDB and
the embedding model are all replaced with small in-memory stand-ins.
"""

import threading
import time
from typing import Optional

import pytest

from docgraph.graph.models import (
    GraphDocument,
    GraphTriple,
    RawGraphRecord,
    StoredGraphNode,
    StoredGraphRelationship,
    StoreId,
    WriteCounts,
)
from docgraph.errors import ServiceConnectionError
from docgraph.ingestion.chunker import Chunk


class FakeExtractor:
    """Returns canned records per chunk sequence and tracks concurrency."""

    def __init__(self, records=None, failing=(), delay: float = 0.0, default=None):
        self.records = records or {}
        self.failing = set(failing)
        self.delay = delay
        self.default = default
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def extract(self, chunk: Chunk) -> RawGraphRecord:
        with self._lock:
            self.calls.append(chunk.sequence)
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                time.sleep(self.delay)
            if chunk.sequence in self.failing:
                raise RuntimeError(f"extraction failed for chunk {chunk.sequence}")
            if chunk.sequence in self.records:
                return self.records[chunk.sequence]
            if self.default is not None:
                return self.default()
            return RawGraphRecord()
        finally:
            with self._lock:
                self.in_flight -= 1


class InMemoryGraphStore:
    """GraphStore with Neo4j-like MERGE semantics keyed on (label, id)."""

    def __init__(self, fail_verify=False, fail_clear=False, fail_triples=False, fail_nodes=False):
        self.fail_verify = fail_verify
        self.fail_clear = fail_clear
        self.fail_triples = fail_triples
        self.fail_nodes = fail_nodes
        self.nodes = {}          # (label, id) -> {"store_id", "properties", "collections"}
        self.relationships = {}  # (source key, type, target key) -> properties
        self.clear_calls = 0
        self.write_calls = 0
        self.closed = False
        self._next_id = 0
        self._lock = threading.Lock()

    def verify(self) -> None:
        if self.fail_verify:
            raise ServiceConnectionError("Cannot connect to Neo4j: connection refused")

    def write(self, document: GraphDocument, collection: Optional[str] = None) -> WriteCounts:
        with self._lock:
            self.write_calls += 1
            for node in document.nodes:
                key = (node.type, node.id)
                if key not in self.nodes:
                    self._next_id += 1
                    self.nodes[key] = {
                        "store_id": f"4:5f1c2d3e-aaaa-bbbb-cccc-0123456789ab:{self._next_id}",
                        "properties": {"id": node.id},
                        "collections": [],
                    }
                entry = self.nodes[key]
                entry["properties"].update(node.properties)
                if collection and collection not in entry["collections"]:
                    entry["collections"].append(collection)
            for rel in document.relationships:
                key = ((rel.source_type, rel.source_id), rel.type, (rel.target_type, rel.target_id))
                self.relationships.setdefault(key, {}).update(rel.properties)
        return WriteCounts(nodes=len(document.nodes), relationships=len(document.relationships))

    def _stored(self, key) -> StoredGraphNode:
        entry = self.nodes[key]
        return StoredGraphNode(
            id=StoreId(entry["store_id"]),
            labels=[key[0]],
            properties=dict(entry["properties"]),
        )

    def _in_scope(self, key, collection) -> bool:
        return collection is None or collection in self.nodes[key]["collections"]

    def fetch_nodes(self, limit: int, collection: Optional[str] = None) -> list[StoredGraphNode]:
        if self.fail_nodes:
            raise RuntimeError("node query failed")
        keys = [k for k in self.nodes if self._in_scope(k, collection)]
        return [self._stored(k) for k in keys[:limit]]

    def fetch_triples(self, limit: int, collection: Optional[str] = None) -> list[GraphTriple]:
        if self.fail_triples:
            raise RuntimeError("relationship query failed")
        triples = []
        for (source_key, rel_type, target_key), properties in self.relationships.items():
            if not (self._in_scope(source_key, collection) and self._in_scope(target_key, collection)):
                continue
            source, target = self._stored(source_key), self._stored(target_key)
            triples.append(GraphTriple(
                source=source,
                relationship=StoredGraphRelationship(
                    source_id=source.id,
                    target_id=target.id,
                    type=rel_type,
                    label=properties.get("type"),
                    properties=dict(properties),
                ),
                target=target,
            ))
        return triples[:limit]

    def clear(self) -> None:
        self.clear_calls += 1
        if self.fail_clear:
            raise RuntimeError("wipe failed")
        self.nodes.clear()
        self.relationships.clear()

    def count(self) -> dict:
        return {"nodes": len(self.nodes), "relationships": len(self.relationships)}

    def close(self):
        self.closed = True


class FakeEmbedder:
    def __init__(self):
        self.calls = []

    def embed(self, texts):
        self.calls.append(list(texts))
        return [[float(len(t)), 1.0] for t in texts]


class FakeCollection:
    def __init__(self, name):
        self.name = name
        self.records = {}

    def upsert(self, ids, embeddings, documents, metadatas):
        for i, embedding, doc, meta in zip(ids, embeddings, documents, metadatas):
            self.records[i] = {"embedding": embedding, "document": doc, "metadata": meta}

    def count(self):
        return len(self.records)

    def query(self, query_embeddings, n_results, include):
        items = list(self.records.values())[:n_results]
        return {
            "metadatas": [[item["metadata"] for item in items]],
            "distances": [[0.0 for _ in items]],
            "documents": [[item["document"] for item in items]],
        }


class FakeChromaClient:
    def __init__(self):
        self.collections = {}

    def get_or_create_collection(self, name, metadata=None):
        return self.collections.setdefault(name, FakeCollection(name))

    def get_collection(self, name):
        return self.collections[name]

    def list_collections(self):
        return list(self.collections.values())

    def delete_collection(self, name):
        del self.collections[name]


@pytest.fixture
def graph_store() -> InMemoryGraphStore:
    return InMemoryGraphStore()


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def chroma_client() -> FakeChromaClient:
    return FakeChromaClient()


def make_chunks(count: int, source_id: str = "doc.txt") -> list[Chunk]:
    return [Chunk(text=f"chunk {i} text", source_id=source_id, sequence=i) for i in range(count)]
