"""
LLM-based entity and relationship extraction for a single chunk.

The extraction service is treated as best-effort: it may return nothing, or
return JSON wrapped in prose or code fences. Anything we cannot parse is an
ExtractionError, which the builder isolates to the offending chunk.

Usage:
    from docgraph.graph.extract import LLMGraphExtractor

    extractor = LLMGraphExtractor()
    record = extractor.extract(chunk)
"""

import json
import logging
from typing import Any, Optional, Protocol

from ..errors import ExtractionError
from ..ingestion.chunker import Chunk
from ..llm import LLMClient, Message
from .models import LocalId, RawGraphRecord, RawNode, RawRelationship

logger = logging.getLogger(__name__)


class GraphExtractor(Protocol):
    """Anything that turns a chunk into a RawGraphRecord."""

    def extract(self, chunk: Chunk) -> RawGraphRecord:
        ...


# =============================================================================
# Extraction Prompt (System + User)
# =============================================================================

SYSTEM_PROMPT = """You are an expert at building knowledge graphs from documents.
You always respond with valid JSON only, no markdown, no explanations."""

DEFAULT_INSTRUCTIONS = (
    "Extract key entities from this document. For each entity: "
    "1) Give it a clear, descriptive name, "
    "2) Assign it a meaningful type/category (like Person, Organization, Concept, Technology, etc.), "
    "3) Create relationships that show how entities connect. "
    "Make sure every entity has both a readable name and a clear category type."
)

USER_PROMPT_TEMPLATE = """{instructions}

For each NODE, provide:
- id: A short identifier, unique within this answer (the entity name is fine)
- type: The entity category (e.g., "Person", "Organization", "Concept")
- properties: An object with at least "name", plus any short facts as string values

For each RELATIONSHIP, provide:
- source: The id of the source node
- target: The id of the target node
- type: The relationship type in UPPER_SNAKE_CASE (e.g., "WORKS_FOR")

IMPORTANT:
- Only extract entities actually mentioned in the text
- Every relationship source and target must be a node id from your answer
- Return ONLY valid JSON, no markdown code blocks

Return format:
{{"nodes": [{{"id": "...", "type": "...", "properties": {{"name": "..."}}}}], "relationships": [{{"source": "...", "target": "...", "type": "..."}}]}}

If nothing found: {{"nodes": [], "relationships": []}}

TEXT:
{text}"""


class LLMGraphExtractor:
    """Extracts a RawGraphRecord from one chunk by prompting an LLM."""

    def __init__(
        self,
        llm: Optional[LLMClient] = None,
        instructions: str = DEFAULT_INSTRUCTIONS,
        max_tokens: int = 2048,
    ):
        self.llm = llm or LLMClient()
        self.instructions = instructions
        self.max_tokens = max_tokens

    def _build_messages(self, text: str) -> list[dict]:
        # The chunker bounds the text size; it is sent whole
        user_prompt = USER_PROMPT_TEMPLATE.format(instructions=self.instructions, text=text)
        return [
            Message(role="system", content=SYSTEM_PROMPT).model_dump(),
            Message(role="user", content=user_prompt).model_dump(),
        ]

    def extract(self, chunk: Chunk) -> RawGraphRecord:
        response = self.llm.chat(
            self._build_messages(chunk.text),
            temperature=0.0,
            max_tokens=self.max_tokens,
        )
        record = parse_extraction(response)
        logger.debug(
            f"Extracted {len(record.nodes)} nodes, {len(record.relationships)} relationships "
            f"from chunk {chunk.sequence} of {chunk.source_id}"
        )
        return record


# =============================================================================
# Response parsing
# =============================================================================

def _isolate_json(raw_text: str) -> str:
    """Cut the first balanced JSON object out of a model response."""
    raw_text = raw_text.strip()

    # Drop reasoning blocks some models emit before the answer
    if "<think>" in raw_text:
        think_end = raw_text.find("</think>")
        if think_end != -1:
            raw_text = raw_text[think_end + len("</think>"):].strip()

    if raw_text.startswith("```json"):
        raw_text = raw_text[7:]
    if raw_text.startswith("```"):
        raw_text = raw_text[3:]
    if raw_text.endswith("```"):
        raw_text = raw_text[:-3]
    raw_text = raw_text.strip()

    json_start = raw_text.find("{")
    if json_start == -1:
        return raw_text
    raw_text = raw_text[json_start:]

    brace_count = 0
    in_string = False
    escaped = False
    for i, c in enumerate(raw_text):
        if in_string:
            if escaped:
                escaped = False
            elif c == "\\":
                escaped = True
            elif c == '"':
                in_string = False
        elif c == '"':
            in_string = True
        elif c == "{":
            brace_count += 1
        elif c == "}":
            brace_count -= 1
            if brace_count == 0:
                return raw_text[:i + 1]
    return raw_text


def _clean_properties(value: Any) -> dict[str, Any]:
    """Keep only values Neo4j can store as node/relationship properties."""
    if not isinstance(value, dict):
        return {}
    cleaned = {}
    for key, item in value.items():
        if item is None:
            continue
        if isinstance(item, (str, int, float, bool)):
            cleaned[str(key)] = item
        elif isinstance(item, list) and all(isinstance(x, (str, int, float, bool)) for x in item):
            cleaned[str(key)] = item
        else:
            cleaned[str(key)] = json.dumps(item, ensure_ascii=False)
    return cleaned


def parse_extraction(response: str) -> RawGraphRecord:
    """
    Parse an extraction response into a RawGraphRecord.

    Blank responses mean "nothing found". Malformed ones raise ExtractionError.
    """
    if not response or not response.strip():
        return RawGraphRecord()

    raw_text = _isolate_json(response)
    try:
        parsed = json.loads(raw_text)
    except json.JSONDecodeError as e:
        raise ExtractionError(f"JSON parse error: {e}") from e

    if not isinstance(parsed, dict):
        raise ExtractionError("extraction response is not a JSON object")

    raw_nodes = parsed.get("nodes", [])
    raw_relationships = parsed.get("relationships", [])
    if not isinstance(raw_nodes, list):
        raise ExtractionError("nodes is not a list")
    if not isinstance(raw_relationships, list):
        raise ExtractionError("relationships is not a list")

    nodes = []
    for item in raw_nodes:
        if not isinstance(item, dict):
            continue
        properties = _clean_properties(item.get("properties"))
        local_id = item.get("id") or properties.get("name") or ""
        nodes.append(RawNode(
            local_id=LocalId(str(local_id)),
            type=str(item.get("type") or ""),
            properties=properties,
        ))

    relationships = []
    for item in raw_relationships:
        if not isinstance(item, dict):
            continue
        source, target = item.get("source"), item.get("target")
        if source in (None, "") or target in (None, ""):
            continue
        relationships.append(RawRelationship(
            source_local_id=LocalId(str(source)),
            target_local_id=LocalId(str(target)),
            type=str(item.get("type") or ""),
            properties=_clean_properties(item.get("properties")),
        ))

    return RawGraphRecord(nodes=nodes, relationships=relationships)
