# graph module
"""
Knowledge graph construction and projection.

Modules:
- extract: LLM-based entity/relationship extraction for one chunk
- normalize: Canonical node/relationship shapes for storage
- builder: Bounded-concurrency extraction with per-chunk failure isolation
- store: Neo4j writes, reads, wipe and counts
- projection: Stored records -> deduplicated, labeled, colored graph
"""

from .builder import BuildResult, ChunkOutcome, GraphBuilder
from .extract import GraphExtractor, LLMGraphExtractor, parse_extraction
from .normalize import normalize_node, normalize_record, sanitize_type
from .projection import GraphProjector, infer_label, merge_projection
from .store import GraphStore, Neo4jGraphStore

__all__ = [
    "BuildResult",
    "ChunkOutcome",
    "GraphBuilder",
    "GraphExtractor",
    "LLMGraphExtractor",
    "parse_extraction",
    "normalize_node",
    "normalize_record",
    "sanitize_type",
    "GraphProjector",
    "infer_label",
    "merge_projection",
    "GraphStore",
    "Neo4jGraphStore",
]
