"""Query log sinks recording per-query retrieval statistics."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Protocol

from medirag.metrics.observability import PipelineMetrics, get_logger
from medirag.models import RetrievalStats


@dataclass(frozen=True)
class QueryLogEntry:
    query_text: str
    stats: RetrievalStats
    latency_ms: float
    has_answer: bool
    logged_at: datetime


@dataclass(frozen=True)
class QueryMetrics:
    total_queries: int
    avg_latency_ms: float
    no_answer_rate: float


class QueryLogSink(Protocol):
    """Destination for query logs. Failures are non-fatal for the caller."""

    async def log(self, query_text: str, stats: RetrievalStats, latency_ms: float, has_answer: bool) -> None:
        """Record one answered query."""

    async def metrics(self) -> QueryMetrics:
        """Return aggregate metrics over every logged query."""


class InMemoryQueryLog:
    """Process-local query log that also emits structured log events."""

    def __init__(self, max_entries: int = 10_000) -> None:
        self._entries: list[QueryLogEntry] = []
        self._max_entries = max_entries
        self._lock = asyncio.Lock()
        self._logger = get_logger("query_log")

    async def log(self, query_text: str, stats: RetrievalStats, latency_ms: float, has_answer: bool) -> None:
        entry = QueryLogEntry(
            query_text=query_text,
            stats=stats,
            latency_ms=latency_ms,
            has_answer=has_answer,
            logged_at=datetime.now(timezone.utc),
        )
        async with self._lock:
            self._entries.append(entry)
            if len(self._entries) > self._max_entries:
                del self._entries[: len(self._entries) - self._max_entries]
        PipelineMetrics.observe_query(latency_ms)
        self._logger.info(
            "query.logged",
            vector_results=stats.vector_results,
            lexical_results=stats.lexical_results,
            final_results=stats.final_results,
            latency_ms=latency_ms,
            has_answer=has_answer,
        )

    async def metrics(self) -> QueryMetrics:
        async with self._lock:
            entries = list(self._entries)
        total = len(entries)
        if not total:
            return QueryMetrics(total_queries=0, avg_latency_ms=0.0, no_answer_rate=0.0)
        avg_latency = sum(entry.latency_ms for entry in entries) / total
        no_answer = sum(1 for entry in entries if not entry.has_answer)
        return QueryMetrics(total_queries=total, avg_latency_ms=avg_latency, no_answer_rate=no_answer / total)

    @property
    def entries(self) -> list[QueryLogEntry]:
        return list(self._entries)
