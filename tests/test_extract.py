"""Tests for extraction response parsing and the LLM adapter."""

import json

import pytest

from docgraph.errors import ExtractionError
from docgraph.graph.extract import LLMGraphExtractor, parse_extraction
from docgraph.ingestion.chunker import Chunk

SAMPLE = {
    "nodes": [
        {"id": "ada", "type": "Person", "properties": {"name": "Ada Lovelace", "born": 1815}},
        {"id": "engine", "type": "Machine", "properties": {"name": "Analytical Engine"}},
    ],
    "relationships": [
        {"source": "ada", "target": "engine", "type": "WROTE_ABOUT"},
    ],
}


class StubLLM:
    def __init__(self, response):
        self.response = response
        self.messages = None

    def chat(self, messages, temperature=0.0, max_tokens=2048, **kwargs):
        self.messages = messages
        return self.response


def test_parse_plain_json():
    record = parse_extraction(json.dumps(SAMPLE))
    assert [n.local_id for n in record.nodes] == ["ada", "engine"]
    assert record.nodes[0].properties == {"name": "Ada Lovelace", "born": 1815}
    assert record.relationships[0].source_local_id == "ada"
    assert record.relationships[0].type == "WROTE_ABOUT"


def test_parse_strips_code_fences_and_prose():
    response = "Here you go:\n```json\n" + json.dumps(SAMPLE) + "\n```\nHope this helps {not json}"
    record = parse_extraction(response)
    assert len(record.nodes) == 2


def test_parse_ignores_braces_inside_strings():
    payload = {"nodes": [{"id": "a", "type": "Concept", "properties": {"name": "set {x}"}}], "relationships": []}
    record = parse_extraction(json.dumps(payload) + " trailing }")
    assert record.nodes[0].properties["name"] == "set {x}"


def test_parse_drops_reasoning_block():
    response = "<think>let me think {</think>" + json.dumps(SAMPLE)
    assert len(parse_extraction(response).relationships) == 1


def test_blank_response_is_empty_record():
    assert parse_extraction("").is_empty()
    assert parse_extraction("   \n").is_empty()


def test_empty_lists_are_empty_record():
    assert parse_extraction('{"nodes": [], "relationships": []}').is_empty()


@pytest.mark.parametrize("response", [
    "I could not find anything",
    '{"nodes": [',
    '{"nodes": "none", "relationships": []}',
    "[1, 2, 3]",
])
def test_malformed_response_raises(response):
    with pytest.raises(ExtractionError):
        parse_extraction(response)


def test_node_without_id_uses_name():
    record = parse_extraction('{"nodes": [{"type": "Person", "properties": {"name": "Grace"}}]}')
    assert record.nodes[0].local_id == "Grace"


def test_relationships_missing_endpoints_are_skipped():
    record = parse_extraction('{"nodes": [], "relationships": [{"source": "a", "type": "X"}]}')
    assert record.relationships == []


def test_nested_property_values_are_serialized():
    record = parse_extraction(
        '{"nodes": [{"id": "a", "type": "T", "properties": {"name": "A", "meta": {"k": 1}, "gone": null}}]}'
    )
    assert record.nodes[0].properties == {"name": "A", "meta": '{"k": 1}'}


def test_extractor_sends_chunk_text_and_parses_reply():
    llm = StubLLM(json.dumps(SAMPLE))
    extractor = LLMGraphExtractor(llm=llm)

    record = extractor.extract(Chunk(text="Ada wrote notes on the engine.", source_id="d", sequence=0))

    assert len(record.nodes) == 2
    assert llm.messages[0]["role"] == "system"
    assert "Ada wrote notes on the engine." in llm.messages[1]["content"]


def test_extractor_sends_large_chunks_whole():
    llm = StubLLM('{"nodes": [], "relationships": []}')
    text = "x" * 9000 + " END-OF-CHUNK"

    LLMGraphExtractor(llm=llm).extract(Chunk(text=text, source_id="d", sequence=0))

    assert llm.messages[1]["content"].endswith(text)
