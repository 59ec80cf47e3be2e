"""
Graph projection: stored Neo4j records -> renderable nodes and edges.

Two reads are issued in parallel (every node, every connected triple), both
are buffered, then merged in a fixed order: all plain nodes first, then the
endpoints of each triple. The first record seen for a store id wins, so the
outcome does not depend on which query happened to return first.

Usage:
    from docgraph.graph.projection import GraphProjector

    projector = GraphProjector(store)
    graph = projector.project(limit=100)
    payload = graph.to_dict()
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Iterable, Optional

from .models import (
    DEFAULT_RELATIONSHIP_TYPE,
    GENERIC_CATEGORY,
    GraphProjection,
    GraphTriple,
    RenderEdge,
    RenderNode,
    StoredGraphNode,
    StoredGraphRelationship,
    StoreId,
)
from .store import GraphStore

logger = logging.getLogger(__name__)

UNKNOWN_LABEL = "Unknown"
DEFAULT_COLOR = "#95a5a6"

# Keys are compared case-insensitively: the normalizer writes uppercase labels
CATEGORY_COLORS = {
    "document": "#3498db",      # blue
    "person": "#e74c3c",        # red
    "organization": "#2ecc71",  # green
    "concept": "#f39c12",       # orange
    "location": "#9b59b6",      # purple
    "entity": DEFAULT_COLOR,    # gray
}


def category_color(category: Optional[str]) -> str:
    if not category:
        return DEFAULT_COLOR
    return CATEGORY_COLORS.get(category.lower(), DEFAULT_COLOR)


def is_generic_category(category: Optional[str]) -> bool:
    return not category or category.lower() == GENERIC_CATEGORY.lower()


# =============================================================================
# Label inference
# =============================================================================

def looks_like_display_text(value: Any) -> bool:
    """True for a non-blank string that is not shaped like an elementId."""
    if not isinstance(value, str) or value.strip() == "":
        return False
    # Store-internal ids ("4:1b2c...:17") contain a colon and run long
    if ":" in value and len(value) > 20:
        return False
    return True


def _property(key: str) -> Callable[[StoredGraphNode], Iterable[Any]]:
    def candidates(node: StoredGraphNode) -> Iterable[Any]:
        return [node.properties.get(key)]
    candidates.__name__ = f"property_{key}"
    return candidates


def _any_property(node: StoredGraphNode) -> Iterable[Any]:
    return node.properties.values()


# Tried in order; the first candidate passing looks_like_display_text wins
LABEL_SOURCES: list[Callable[[StoredGraphNode], Iterable[Any]]] = [
    _property("name"),
    _property("title"),
    _property("caption"),
    _property("label"),
    _property("text"),
    _property("content"),
    _property("value"),
    _any_property,
]


def infer_label(node: StoredGraphNode) -> str:
    for source in LABEL_SOURCES:
        for candidate in source(node):
            if looks_like_display_text(candidate):
                return candidate

    category = node.labels[0] if node.labels else None
    if not is_generic_category(category):
        return category
    return UNKNOWN_LABEL


def edge_label(relationship: StoredGraphRelationship) -> str:
    if relationship.type:
        return relationship.type
    if relationship.label:
        return str(relationship.label)
    return DEFAULT_RELATIONSHIP_TYPE


def render_node(node: StoredGraphNode) -> RenderNode:
    label = infer_label(node)
    return RenderNode(
        id=node.id,
        label=label,
        title=label,
        group=node.category,
        color=category_color(node.category),
    )


def merge_projection(
    nodes: list[StoredGraphNode],
    triples: list[GraphTriple],
) -> GraphProjection:
    """Deduplicate nodes by store id and synthesize one edge per triple."""
    rendered: dict[StoreId, RenderNode] = {}

    for node in nodes:
        if node.id not in rendered:
            rendered[node.id] = render_node(node)

    edges = []
    for index, triple in enumerate(triples):
        for endpoint in (triple.source, triple.target):
            if endpoint.id not in rendered:
                rendered[endpoint.id] = render_node(endpoint)
        edges.append(RenderEdge(
            id=f"edge-{index}",
            source=triple.source.id,
            target=triple.target.id,
            label=edge_label(triple.relationship),
        ))

    return GraphProjection(nodes=list(rendered.values()), edges=edges)


class GraphProjector:
    """Builds a GraphProjection from whatever is in the graph store."""

    def __init__(self, store: GraphStore):
        self.store = store

    def project(self, limit: int = 100, collection: Optional[str] = None) -> GraphProjection:
        """
        Read and merge the stored graph.

        Args:
            limit: Row limit applied to each of the two queries
            collection: Restrict to nodes tagged with this collection
                ("all" or None means no restriction)

        Returns:
            GraphProjection; nodes-only if the relationship query failed
        """
        if collection == "all":
            collection = None

        self.store.verify()

        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="projection") as pool:
            nodes_future = pool.submit(self.store.fetch_nodes, limit, collection)
            triples_future = pool.submit(self.store.fetch_triples, limit, collection)

            nodes = nodes_future.result()
            try:
                triples = triples_future.result()
            except Exception as e:
                logger.warning(f"Relationship query failed, returning nodes only: {e}")
                triples = []

        projection = merge_projection(nodes, triples)
        logger.info(
            f"Projected graph: {len(projection.nodes)} nodes, {len(projection.edges)} edges "
            f"(limit={limit}, collection={collection or 'all'})"
        )
        return projection
