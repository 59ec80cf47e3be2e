#!/usr/bin/env python3
"""
docgraph command line.

Usage:
    docgraph ingest paper.pdf --collection papers
    docgraph ingest notes.md --collection notes --chunk-size 800 --concurrency 5 --clear-graph
    docgraph graph --collection papers --limit 500 --output graph.json
    docgraph delete --target both --collection papers
    docgraph stats
"""

import argparse
import json
import logging
import sys

from .config import settings
from .errors import RequestValidationError, ServiceConnectionError
from .service import (
    DeleteRequest,
    DocGraphService,
    IngestRequest,
    ProjectionRequest,
    build_request,
)

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Build and inspect document knowledge graphs")
    subparsers = parser.add_subparsers(dest="command", required=True)

    ingest = subparsers.add_parser("ingest", help="Index a document into ChromaDB and Neo4j")
    ingest.add_argument("document", help="Path to a PDF, text or markdown file")
    ingest.add_argument("--collection", required=True, help="ChromaDB collection name")
    ingest.add_argument("--chunk-size", type=int, default=settings.chunk_size)
    ingest.add_argument("--chunk-overlap", type=int, default=settings.chunk_overlap)
    ingest.add_argument("--max-chunks", type=int, default=None, help="Limit number of chunks for testing")
    ingest.add_argument("--concurrency", type=int, default=settings.extraction_concurrency,
                        help="Parallel extraction calls")
    ingest.add_argument("--clear-graph", action="store_true", default=settings.neo4j_clear,
                        help="Wipe Neo4j before extracting")

    graph = subparsers.add_parser("graph", help="Print the renderable graph as JSON")
    graph.add_argument("--collection", default="all")
    graph.add_argument("--limit", type=int, default=settings.graph_limit)
    graph.add_argument("--output", default=None, help="Write JSON here instead of stdout")

    delete = subparsers.add_parser("delete", help="Delete vector and/or graph data")
    delete.add_argument("--target", required=True, choices=["vector", "graph", "both"])
    delete.add_argument("--collection", default=None)

    subparsers.add_parser("stats", help="Show Neo4j node and relationship counts")
    return parser


def run(args: argparse.Namespace, service: DocGraphService) -> dict:
    if args.command == "ingest":
        request = build_request(
            IngestRequest,
            document=args.document,
            collection=args.collection,
            chunk_size=args.chunk_size,
            chunk_overlap=args.chunk_overlap,
            max_chunks=args.max_chunks,
            concurrency=args.concurrency,
            clear_graph=args.clear_graph,
        )
        return service.ingest(request).to_dict()

    if args.command == "graph":
        request = build_request(ProjectionRequest, collection=args.collection, limit=args.limit)
        return service.project(request).to_dict()

    if args.command == "delete":
        request = build_request(DeleteRequest, target=args.target, collection=args.collection)
        return {"success": True, "results": service.delete(request)}

    return service.stats()


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=settings.log_level.upper(),
        format='[%(levelname)s] %(message)s'
    )

    try:
        with DocGraphService() as service:
            payload = run(args, service)
    except RequestValidationError as e:
        print(json.dumps({"error": "invalid_request", "details": str(e)}, indent=2), file=sys.stderr)
        return 2
    except ServiceConnectionError as e:
        print(json.dumps({"error": "service_unavailable", "details": str(e)}, indent=2), file=sys.stderr)
        return 1

    output = json.dumps(payload, indent=2, default=str)
    if getattr(args, "output", None):
        with open(args.output, "w") as f:
            f.write(output)
        logger.info(f"Wrote {args.output}")
    else:
        print(output)

    if payload.get("status") == "error":
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
