"""
Data model for the graph construction and projection paths.

Three id namespaces are kept apart on purpose:
- LocalId: whatever the extraction service called a node inside one chunk
- EntityKey: the merge identity written to Neo4j as the `id` property
- StoreId: the Neo4j elementId, the only id that reaches a rendered graph
"""

from dataclasses import dataclass, field
from typing import Any, NewType, Optional

LocalId = NewType("LocalId", str)
EntityKey = NewType("EntityKey", str)
StoreId = NewType("StoreId", str)

GENERIC_CATEGORY = "Entity"
DEFAULT_RELATIONSHIP_TYPE = "RELATES_TO"


# =============================================================================
# Extraction output (per chunk, never persisted as-is)
# =============================================================================

@dataclass
class RawNode:
    """A node as returned by the extraction service."""
    local_id: LocalId
    type: str
    properties: dict[str, Any] = field(default_factory=dict)


@dataclass
class RawRelationship:
    """A relationship between two chunk-local node ids."""
    source_local_id: LocalId
    target_local_id: LocalId
    type: str
    properties: dict[str, Any] = field(default_factory=dict)


@dataclass
class RawGraphRecord:
    """Everything the extraction service found in one chunk."""
    nodes: list[RawNode] = field(default_factory=list)
    relationships: list[RawRelationship] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.nodes and not self.relationships


# =============================================================================
# Normalized batch (what the writer merges into Neo4j)
# =============================================================================

@dataclass(frozen=True)
class NormalizedNode:
    id: EntityKey
    type: str  # uppercase [A-Z0-9_]+
    properties: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class NormalizedRelationship:
    source_id: EntityKey
    source_type: str
    target_id: EntityKey
    target_type: str
    type: str
    properties: dict[str, Any] = field(default_factory=dict)


@dataclass
class GraphDocument:
    """One normalized batch, usually the output of a single chunk."""
    nodes: list[NormalizedNode] = field(default_factory=list)
    relationships: list[NormalizedRelationship] = field(default_factory=list)
    source_id: Optional[str] = None


@dataclass(frozen=True)
class WriteCounts:
    nodes: int = 0
    relationships: int = 0

    def __add__(self, other: "WriteCounts") -> "WriteCounts":
        return WriteCounts(
            nodes=self.nodes + other.nodes,
            relationships=self.relationships + other.relationships,
        )


# =============================================================================
# Read side (records coming back from Neo4j)
# =============================================================================

@dataclass
class StoredGraphNode:
    id: StoreId
    labels: list[str] = field(default_factory=list)
    properties: dict[str, Any] = field(default_factory=dict)

    @property
    def category(self) -> str:
        return self.labels[0] if self.labels else GENERIC_CATEGORY


@dataclass
class StoredGraphRelationship:
    source_id: StoreId
    target_id: StoreId
    type: Optional[str] = None
    label: Optional[str] = None  # the relationship's own `type` property, if any
    properties: dict[str, Any] = field(default_factory=dict)


@dataclass
class GraphTriple:
    """One (source)-[relationship]->(target) row."""
    source: StoredGraphNode
    relationship: StoredGraphRelationship
    target: StoredGraphNode


# =============================================================================
# Projection output
# =============================================================================

@dataclass
class RenderNode:
    id: StoreId
    label: str
    title: str  # tooltip, same text as label
    group: str
    color: str

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "label": self.label,
            "title": self.title,
            "group": self.group,
            "color": self.color,
        }


@dataclass
class RenderEdge:
    id: str
    source: StoreId
    target: StoreId
    label: str

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "from": self.source,
            "to": self.target,
            "label": self.label,
        }


@dataclass
class GraphProjection:
    """A renderable graph: deduplicated nodes plus synthesized edges."""
    nodes: list[RenderNode]
    edges: list[RenderEdge]

    @property
    def stats(self) -> dict:
        return {"nodeCount": len(self.nodes), "edgeCount": len(self.edges)}

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
            "stats": self.stats,
        }
