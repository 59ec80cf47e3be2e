"""
Concurrent knowledge-graph construction.

Each chunk is extracted, normalized and merged into the graph store inside one
worker task. At most `concurrency` tasks run at once. A task never raises: it
returns a ChunkOutcome that records either its write counts or the error that
stopped it, so one bad chunk costs exactly its own contribution.

Usage:
    from docgraph.graph.builder import GraphBuilder

    builder = GraphBuilder(extractor, store, concurrency=3)
    result = builder.build(chunks, collection="papers")
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Optional, Sequence

from ..config import settings
from ..ingestion.chunker import Chunk
from .extract import GraphExtractor
from .models import WriteCounts
from .normalize import normalize_record
from .store import GraphStore

logger = logging.getLogger(__name__)


@dataclass
class ChunkOutcome:
    """Result of processing one chunk: counts on success, error on failure."""
    sequence: int
    counts: WriteCounts = field(default_factory=WriteCounts)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BuildResult:
    outcomes: list[ChunkOutcome]

    @property
    def counts(self) -> WriteCounts:
        total = WriteCounts()
        for outcome in self.outcomes:
            total += outcome.counts
        return total

    @property
    def nodes_added(self) -> int:
        return self.counts.nodes

    @property
    def relationships_added(self) -> int:
        return self.counts.relationships

    @property
    def chunks_succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.ok)

    @property
    def failures(self) -> list[ChunkOutcome]:
        return sorted((o for o in self.outcomes if not o.ok), key=lambda o: o.sequence)

    @property
    def chunks_failed(self) -> int:
        return len(self.failures)


class GraphBuilder:
    """Runs extraction and graph writes for a batch of chunks."""

    def __init__(
        self,
        extractor: GraphExtractor,
        store: GraphStore,
        concurrency: Optional[int] = None,
    ):
        concurrency = settings.extraction_concurrency if concurrency is None else concurrency
        if concurrency < 1:
            raise ValueError(f"concurrency must be a positive integer, got {concurrency}")
        self.extractor = extractor
        self.store = store
        self.concurrency = concurrency

    def build(
        self,
        chunks: Sequence[Chunk],
        collection: Optional[str] = None,
        clear_store: bool = False,
    ) -> BuildResult:
        """
        Extract and merge every chunk.

        Args:
            chunks: Chunks to process; completion order is not preserved
            collection: Optional collection name tagged onto written nodes
            clear_store: Wipe the graph once before any chunk is dispatched

        Returns:
            BuildResult with one outcome per chunk

        Raises:
            ServiceConnectionError: if the graph store cannot be reached
        """
        self.store.verify()

        if clear_store:
            try:
                self.store.clear()
                logger.info("Neo4j: cleared existing database")
            except Exception as e:
                logger.warning(f"Neo4j: failed to clear database, continuing: {e}")

        total = len(chunks)
        logger.info(f"Extracting graph from {total} chunks (concurrency={self.concurrency})")

        outcomes: list[ChunkOutcome] = []
        with ThreadPoolExecutor(max_workers=self.concurrency, thread_name_prefix="extract") as pool:
            futures = [pool.submit(self._process_chunk, chunk, collection) for chunk in chunks]
            for future in as_completed(futures):
                outcomes.append(future.result())

        result = BuildResult(outcomes=outcomes)
        logger.info(
            f"Graph build complete. Chunks ok: {result.chunks_succeeded}, failed: {result.chunks_failed}, "
            f"nodes: {result.nodes_added}, relationships: {result.relationships_added}"
        )
        return result

    def _process_chunk(self, chunk: Chunk, collection: Optional[str]) -> ChunkOutcome:
        try:
            record = self.extractor.extract(chunk)
            document = normalize_record(record, source_id=chunk.source_id)
            if not document.nodes and not document.relationships:
                logger.info(f"Chunk {chunk.sequence + 1}: nothing extracted")
                return ChunkOutcome(sequence=chunk.sequence)

            counts = self.store.write(document, collection=collection)
            logger.info(
                f"Neo4j: added chunk {chunk.sequence + 1} - "
                f"nodes: {counts.nodes}, relationships: {counts.relationships}"
            )
            return ChunkOutcome(sequence=chunk.sequence, counts=counts)
        except Exception as e:
            logger.error(f"Neo4j: error processing chunk {chunk.sequence + 1}: {e}")
            return ChunkOutcome(sequence=chunk.sequence, error=str(e) or type(e).__name__)
