"""
Entity normalization.

Turns one chunk's RawGraphRecord into a GraphDocument that can be merged into
Neo4j: display names are resolved and copied to every property a renderer
might read, node and relationship types become safe Cypher labels, and
chunk-local ids are mapped to entity keys.

Everything here is pure, so it is safe to call from any worker thread.
"""

import re
from typing import Any, Optional

from .models import (
    DEFAULT_RELATIONSHIP_TYPE,
    EntityKey,
    GraphDocument,
    LocalId,
    NormalizedNode,
    NormalizedRelationship,
    RawGraphRecord,
    RawNode,
)

DISPLAY_NAME_PROPERTIES = ("name", "title", "label", "caption")
DEFAULT_NODE_TYPE = "ENTITY"
UNKNOWN_NAME = "Unknown"

_INVALID_TYPE_CHARS = re.compile(r"[^A-Za-z0-9_]")


def sanitize_type(value: Optional[str], fallback: str = DEFAULT_NODE_TYPE) -> str:
    """Reduce a free-form type to an uppercase [A-Z0-9_]+ label.

    Blank input, and input that strips down to nothing (e.g. a type written
    entirely in non-latin script), both yield the fallback.
    """
    raw = "" if value is None else str(value)
    cleaned = _INVALID_TYPE_CHARS.sub("", raw).upper()
    return cleaned or fallback


def resolve_display_name(node: RawNode) -> str:
    name = node.properties.get("name")
    if name is not None and str(name) != "":
        return str(name)
    if node.local_id:
        return str(node.local_id)
    return UNKNOWN_NAME


def normalize_node(node: RawNode) -> NormalizedNode:
    display_name = resolve_display_name(node)

    properties: dict[str, Any] = dict(node.properties)
    for key in DISPLAY_NAME_PROPERTIES:
        properties[key] = display_name

    return NormalizedNode(
        id=EntityKey(display_name),
        type=sanitize_type(node.type),
        properties=properties,
    )


def normalize_record(record: RawGraphRecord, source_id: Optional[str] = None) -> GraphDocument:
    """Normalize one extraction result.

    Relationship endpoints are rewritten from local ids to entity keys. An
    endpoint the record refers to but never lists becomes a plain ENTITY node
    named after its local id.
    """
    by_local_id: dict[LocalId, NormalizedNode] = {}
    nodes: dict[tuple[str, EntityKey], NormalizedNode] = {}

    def add(raw: RawNode) -> NormalizedNode:
        normalized = normalize_node(raw)
        normalized = nodes.setdefault((normalized.type, normalized.id), normalized)
        by_local_id.setdefault(raw.local_id, normalized)
        return normalized

    for raw_node in record.nodes:
        add(raw_node)

    relationships = []
    for rel in record.relationships:
        source = by_local_id.get(rel.source_local_id) or add(RawNode(rel.source_local_id, ""))
        target = by_local_id.get(rel.target_local_id) or add(RawNode(rel.target_local_id, ""))
        relationships.append(NormalizedRelationship(
            source_id=source.id,
            source_type=source.type,
            target_id=target.id,
            target_type=target.type,
            type=sanitize_type(rel.type, fallback=DEFAULT_RELATIONSHIP_TYPE),
            properties=dict(rel.properties),
        ))

    return GraphDocument(
        nodes=list(nodes.values()),
        relationships=relationships,
        source_id=source_id,
    )
