"""Tests for the concurrent graph builder."""

import pytest

from conftest import FakeExtractor, InMemoryGraphStore, make_chunks
from docgraph.errors import ServiceConnectionError
from docgraph.graph.builder import GraphBuilder
from docgraph.graph.models import RawGraphRecord, RawNode, RawRelationship


def two_node_record():
    return RawGraphRecord(
        nodes=[RawNode("a", "person", {"name": "A"}), RawNode("b", "org", {"name": "B"})],
        relationships=[RawRelationship("a", "b", "works_for")],
    )


def test_failing_chunk_is_isolated():
    extractor = FakeExtractor(failing={4}, delay=0.01, default=two_node_record)
    store = InMemoryGraphStore()

    result = GraphBuilder(extractor, store, concurrency=3).build(make_chunks(10))

    assert result.nodes_added == 9 * 2
    assert result.relationships_added == 9
    assert result.chunks_succeeded == 9
    assert result.chunks_failed == 1
    assert result.failures[0].sequence == 4
    assert "chunk 4" in result.failures[0].error
    assert sorted(extractor.calls) == list(range(10))


def test_concurrency_cap_is_respected():
    extractor = FakeExtractor(delay=0.02, default=two_node_record)

    GraphBuilder(extractor, InMemoryGraphStore(), concurrency=3).build(make_chunks(10))

    assert 1 <= extractor.max_in_flight <= 3


def test_write_failure_is_isolated():
    class FlakyStore(InMemoryGraphStore):
        def write(self, document, collection=None):
            if document.nodes and document.nodes[0].id == "boom":
                raise RuntimeError("write failed")
            return super().write(document, collection)

    records = {1: RawGraphRecord(nodes=[RawNode("x", "t", {"name": "boom"})])}
    extractor = FakeExtractor(records=records, default=two_node_record)

    result = GraphBuilder(extractor, FlakyStore(), concurrency=2).build(make_chunks(3))

    assert result.chunks_failed == 1
    assert result.nodes_added == 4


def test_empty_extraction_counts_as_success_with_zero():
    extractor = FakeExtractor()
    store = InMemoryGraphStore()

    result = GraphBuilder(extractor, store, concurrency=2).build(make_chunks(4))

    assert result.chunks_succeeded == 4
    assert result.nodes_added == 0
    assert store.write_calls == 0


def test_unreachable_store_is_fatal():
    extractor = FakeExtractor(default=two_node_record)
    store = InMemoryGraphStore(fail_verify=True)

    with pytest.raises(ServiceConnectionError):
        GraphBuilder(extractor, store).build(make_chunks(2))
    assert extractor.calls == []


def test_clear_runs_once_before_extraction():
    extractor = FakeExtractor(default=two_node_record)
    store = InMemoryGraphStore()
    store.nodes[("OLD", "stale")] = {"store_id": "s", "properties": {}, "collections": []}

    result = GraphBuilder(extractor, store, concurrency=3).build(make_chunks(5), clear_store=True)

    assert store.clear_calls == 1
    assert ("OLD", "stale") not in store.nodes
    assert result.chunks_succeeded == 5


def test_clear_failure_does_not_abort_run():
    extractor = FakeExtractor(default=two_node_record)
    store = InMemoryGraphStore(fail_clear=True)

    result = GraphBuilder(extractor, store).build(make_chunks(3), clear_store=True)

    assert store.clear_calls == 1
    assert result.chunks_succeeded == 3
    assert result.nodes_added == 6


def test_collection_is_tagged_on_written_nodes():
    extractor = FakeExtractor(default=two_node_record)
    store = InMemoryGraphStore()

    GraphBuilder(extractor, store).build(make_chunks(1), collection="papers")

    assert all(entry["collections"] == ["papers"] for entry in store.nodes.values())


@pytest.mark.parametrize("concurrency", [0, -1])
def test_invalid_concurrency(concurrency):
    with pytest.raises(ValueError):
        GraphBuilder(FakeExtractor(), InMemoryGraphStore(), concurrency=concurrency)
