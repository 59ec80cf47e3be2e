"""Tests for the docgraph command line."""

import json

import pytest

from conftest import FakeChromaClient, FakeEmbedder, InMemoryGraphStore
from docgraph import cli
from docgraph.retrieval.vector_index import VectorIndex
from docgraph.service import DocGraphService


def test_parser_defaults():
    args = cli.build_parser().parse_args(["graph"])
    assert args.collection == "all"
    assert args.limit > 0


def test_parser_rejects_unknown_delete_target():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args(["delete", "--target", "everything"])


def test_run_delete_wraps_results():
    service = DocGraphService(
        graph_store=InMemoryGraphStore(),
        vector_index=VectorIndex(client=FakeChromaClient(), embedder=FakeEmbedder()),
    )
    args = cli.build_parser().parse_args(["delete", "--target", "graph"])

    payload = cli.run(args, service)

    assert payload["success"] is True
    assert payload["results"]["graph"]["status"] == "warning"


def test_run_graph_returns_projection_payload():
    service = DocGraphService(graph_store=InMemoryGraphStore())
    args = cli.build_parser().parse_args(["graph", "--limit", "10"])

    assert cli.run(args, service) == {"nodes": [], "edges": [], "stats": {"nodeCount": 0, "edgeCount": 0}}


def test_invalid_request_exits_with_2(capsys):
    code = cli.main(["delete", "--target", "vector"])

    assert code == 2
    error = json.loads(capsys.readouterr().err)
    assert error["error"] == "invalid_request"


def test_missing_document_exits_with_2(tmp_path, capsys):
    code = cli.main(["ingest", str(tmp_path / "missing.pdf"), "--collection", "c"])

    assert code == 2
    assert "Document not found" in json.loads(capsys.readouterr().err)["details"]
