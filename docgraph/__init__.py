"""
docgraph: document ingestion into a vector index and a knowledge graph,
plus a renderable projection of that graph.
"""

__version__ = "0.1.0"
