"""Concurrent vector and lexical retrieval."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Sequence

from medirag.embeddings.store import VectorIndex
from medirag.metrics.observability import PipelineMetrics, TimedSection, get_logger
from medirag.models import SearchResult
from medirag.retrieval.lexical import LexicalIndex


@dataclass(frozen=True)
class RetrievalConfig:
    """Configuration for retrieval."""

    vector_top_k: int = 20
    lexical_top_k: int = 20


@dataclass(frozen=True)
class HybridResults:
    vector: Sequence[SearchResult]
    lexical: Sequence[SearchResult]


class HybridRetriever:
    """Runs the vector and lexical searches as two tasks joined before fusion.

    Both searches must succeed. The first failure cancels the sibling task and
    is re-raised as-is.
    """

    def __init__(self, vector_index: VectorIndex, lexical_index: LexicalIndex, config: RetrievalConfig | None = None) -> None:
        self._vector_index = vector_index
        self._lexical_index = lexical_index
        self._config = config or RetrievalConfig()
        self._logger = get_logger("retrieval")

    async def retrieve(self, query: str, embedding: Sequence[float]) -> HybridResults:
        with TimedSection() as timer:
            try:
                async with asyncio.TaskGroup() as group:
                    vector_task = group.create_task(self._vector_index.search(embedding, self._config.vector_top_k))
                    lexical_task = group.create_task(self._lexical_index.search(query, self._config.lexical_top_k))
            except ExceptionGroup as failures:
                self._logger.error("retrieval.failed", detail=str(failures.exceptions[0]))
                raise failures.exceptions[0] from None
        results = HybridResults(
            vector=list(vector_task.result())[: self._config.vector_top_k],
            lexical=list(lexical_task.result())[: self._config.lexical_top_k],
        )
        PipelineMetrics.observe_retrieval(timer.duration, len(results.vector), len(results.lexical))
        self._logger.info(
            "retrieval.complete",
            vector_count=len(results.vector),
            lexical_count=len(results.lexical),
            duration_seconds=timer.duration,
        )
        return results
