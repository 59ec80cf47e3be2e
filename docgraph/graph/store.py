"""
Neo4j graph store.

Writes normalized GraphDocuments with MERGE-by-identity, and serves the two
read shapes the projection needs (all nodes, all connected triples), plus a
full wipe and a node/relationship count.

The driver is shared and thread safe; sessions are not, so every operation
opens its own session in a `with` block and closes it on the way out.

Usage:
    from docgraph.graph.store import Neo4jGraphStore

    store = Neo4jGraphStore()
    store.verify()
    counts = store.write(document, collection="papers")
"""

import logging
import re
from collections import defaultdict
from typing import Optional, Protocol

from neo4j import GraphDatabase
from neo4j.exceptions import DriverError, Neo4jError

from ..config import settings
from ..errors import ServiceConnectionError
from .models import (
    GraphDocument,
    GraphTriple,
    StoredGraphNode,
    StoredGraphRelationship,
    StoreId,
    WriteCounts,
)

logger = logging.getLogger(__name__)

_SAFE_LABEL = re.compile(r"^[A-Z0-9_]+$")


class GraphStore(Protocol):
    """The graph store capabilities the builder and projector rely on."""

    def verify(self) -> None: ...

    def write(self, document: GraphDocument, collection: Optional[str] = None) -> WriteCounts: ...

    def fetch_nodes(self, limit: int, collection: Optional[str] = None) -> list[StoredGraphNode]: ...

    def fetch_triples(self, limit: int, collection: Optional[str] = None) -> list[GraphTriple]: ...

    def clear(self) -> None: ...

    def count(self) -> dict: ...


def _label(value: str) -> str:
    """Quote a normalized type for interpolation into Cypher."""
    if not _SAFE_LABEL.match(value):
        raise ValueError(f"Refusing to use unsanitized label in Cypher: {value!r}")
    return f"`{value}`"


MERGE_NODES = """
    UNWIND $nodes AS node
    MERGE (n:{label} {{id: node.id}})
    SET n += node.properties
    WITH n
    SET n.collections = CASE
        WHEN $collection IS NULL OR $collection IN coalesce(n.collections, [])
            THEN n.collections
        ELSE coalesce(n.collections, []) + $collection
    END
"""

MERGE_RELATIONSHIPS = """
    UNWIND $relationships AS rel
    MATCH (s:{source_label} {{id: rel.source}})
    MATCH (t:{target_label} {{id: rel.target}})
    MERGE (s)-[r:{rel_type}]->(t)
    SET r += rel.properties
"""

NODES_QUERY = """
    MATCH (n)
    WHERE $collection IS NULL OR $collection IN coalesce(n.collections, [])
    RETURN elementId(n) AS id,
           labels(n) AS labels,
           properties(n) AS properties
    LIMIT $limit
"""

TRIPLES_QUERY = """
    MATCH (n)-[r]->(m)
    WHERE $collection IS NULL
       OR ($collection IN coalesce(n.collections, [])
           AND $collection IN coalesce(m.collections, []))
    RETURN elementId(n) AS source_id,
           labels(n) AS source_labels,
           properties(n) AS source_properties,
           type(r) AS relationship_type,
           r.type AS relationship_label,
           properties(r) AS relationship_properties,
           elementId(m) AS target_id,
           labels(m) AS target_labels,
           properties(m) AS target_properties
    LIMIT $limit
"""


class Neo4jGraphStore:
    """Neo4j-backed GraphStore."""

    def __init__(
        self,
        neo4j_uri: Optional[str] = None,
        neo4j_user: Optional[str] = None,
        neo4j_password: Optional[str] = None,
        driver=None,
    ):
        if driver is not None:
            self.driver = driver
            return

        uri = neo4j_uri or settings.neo4j_uri
        try:
            self.driver = GraphDatabase.driver(
                uri,
                auth=(neo4j_user or settings.neo4j_user, neo4j_password or settings.neo4j_password),
            )
        except (DriverError, ValueError) as e:
            raise ServiceConnectionError(f"Invalid Neo4j configuration for {uri}: {e}") from e

    def verify(self) -> None:
        """Fail fast if Neo4j cannot be reached or rejects our credentials."""
        try:
            self.driver.verify_connectivity()
        except (DriverError, Neo4jError) as e:
            raise ServiceConnectionError(f"Cannot connect to Neo4j: {e}") from e

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def write(self, document: GraphDocument, collection: Optional[str] = None) -> WriteCounts:
        """
        Merge one normalized batch in a single write transaction.

        Nodes are grouped by label and relationships by
        (source label, type, target label), since labels and relationship
        types cannot be query parameters.

        Returns:
            Counts of the nodes and relationships submitted in this batch,
            not of those newly created: a MERGE that matches an existing
            node or relationship still counts. Summed over chunks these are
            not distinct-entity counts.
        """
        nodes_by_label = defaultdict(list)
        for node in document.nodes:
            # `id` is the merge key and must not be overwritten by SET +=
            properties = {k: v for k, v in node.properties.items() if k != "id"}
            nodes_by_label[node.type].append({"id": node.id, "properties": properties})

        rels_by_shape = defaultdict(list)
        for rel in document.relationships:
            shape = (rel.source_type, rel.type, rel.target_type)
            rels_by_shape[shape].append({
                "source": rel.source_id,
                "target": rel.target_id,
                "properties": rel.properties,
            })

        def merge_batch(tx):
            for label, rows in nodes_by_label.items():
                tx.run(MERGE_NODES.format(label=_label(label)), nodes=rows, collection=collection)
            for (source_label, rel_type, target_label), rows in rels_by_shape.items():
                tx.run(
                    MERGE_RELATIONSHIPS.format(
                        source_label=_label(source_label),
                        rel_type=_label(rel_type),
                        target_label=_label(target_label),
                    ),
                    relationships=rows,
                )

        with self.driver.session() as session:
            session.execute_write(merge_batch)

        return WriteCounts(nodes=len(document.nodes), relationships=len(document.relationships))

    def clear(self) -> None:
        """Delete every node and relationship."""
        with self.driver.session() as session:
            session.run("MATCH (n) DETACH DELETE n").consume()

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def fetch_nodes(self, limit: int, collection: Optional[str] = None) -> list[StoredGraphNode]:
        with self.driver.session() as session:
            result = session.run(NODES_QUERY, limit=limit, collection=collection)
            return [
                StoredGraphNode(
                    id=StoreId(record["id"]),
                    labels=list(record["labels"] or []),
                    properties=dict(record["properties"] or {}),
                )
                for record in result
            ]

    def fetch_triples(self, limit: int, collection: Optional[str] = None) -> list[GraphTriple]:
        with self.driver.session() as session:
            result = session.run(TRIPLES_QUERY, limit=limit, collection=collection)
            return [self._to_triple(record) for record in result]

    @staticmethod
    def _to_triple(record) -> GraphTriple:
        source = StoredGraphNode(
            id=StoreId(record["source_id"]),
            labels=list(record["source_labels"] or []),
            properties=dict(record["source_properties"] or {}),
        )
        target = StoredGraphNode(
            id=StoreId(record["target_id"]),
            labels=list(record["target_labels"] or []),
            properties=dict(record["target_properties"] or {}),
        )
        relationship = StoredGraphRelationship(
            source_id=source.id,
            target_id=target.id,
            type=record["relationship_type"],
            label=record["relationship_label"],
            properties=dict(record["relationship_properties"] or {}),
        )
        return GraphTriple(source=source, relationship=relationship, target=target)

    def count(self) -> dict:
        """Count nodes and relationships."""
        with self.driver.session() as session:
            nodes = session.run("MATCH (n) RETURN count(n) AS count").single()
            relationships = session.run("MATCH ()-[r]->() RETURN count(r) AS count").single()
        return {
            "nodes": nodes["count"] if nodes else 0,
            "relationships": relationships["count"] if relationships else 0,
        }

    def close(self):
        """Close the Neo4j driver."""
        self.driver.close()
