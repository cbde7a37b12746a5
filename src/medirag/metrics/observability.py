"""Observability helpers for medirag."""

from __future__ import annotations

import logging
import time
from contextvars import ContextVar

import structlog
from prometheus_client import Counter, Histogram

_logger_configured = False
_correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="-")


def configure_logging(level: int = logging.INFO) -> None:
    global _logger_configured  # noqa: PLW0603 - module-level guard
    if _logger_configured:
        return
    logging.basicConfig(level=level, format="%(message)s")
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _logger_configured = True


def bind_correlation_id(correlation_id: str) -> None:
    structlog.contextvars.bind_contextvars(correlation_id=correlation_id)
    _correlation_id_var.set(correlation_id)


def clear_correlation_id() -> None:
    structlog.contextvars.clear_contextvars()
    _correlation_id_var.set("-")


def get_correlation_id() -> str:
    return _correlation_id_var.get()


def get_logger(name: str = "medirag") -> structlog.BoundLogger:
    configure_logging()
    return structlog.get_logger(name)


class PipelineMetrics:
    """Prometheus metrics for pipeline stages."""

    embedding_latency = Histogram(
        "medirag_embedding_duration_seconds",
        "Time spent embedding the query, including cache lookup.",
        buckets=(0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 2.5),
    )
    retrieval_latency = Histogram(
        "medirag_retrieval_duration_seconds",
        "Time spent in the concurrent vector and lexical searches.",
        buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0),
    )
    retrieved_chunk_count = Histogram(
        "medirag_retrieved_chunk_count",
        "Number of chunks returned per retrieval source.",
        ["origin"],
        buckets=(0, 1, 2, 5, 10, 20, 50),
    )
    rerank_fallbacks = Counter(
        "medirag_rerank_fallback_total",
        "Reranking calls that failed and used the fused order instead.",
    )
    generation_latency = Histogram(
        "medirag_generation_duration_seconds",
        "Time spent synthesizing answers.",
        buckets=(0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0),
    )
    answer_confidence = Histogram(
        "medirag_answer_confidence",
        "Confidence score of synthesized answers.",
        buckets=(0, 10, 25, 50, 75, 90, 100),
    )
    query_latency = Histogram(
        "medirag_query_duration_seconds",
        "End-to-end query latency.",
        buckets=(0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0),
    )
    response_cache = Counter(
        "medirag_response_cache_total",
        "Response cache lookups by outcome.",
        ["outcome"],
    )

    @classmethod
    def observe_embedding(cls, duration_seconds: float) -> None:
        cls.embedding_latency.observe(duration_seconds)

    @classmethod
    def observe_retrieval(cls, duration_seconds: float, vector_count: int, lexical_count: int) -> None:
        cls.retrieval_latency.observe(duration_seconds)
        cls.retrieved_chunk_count.labels(origin="vector").observe(vector_count)
        cls.retrieved_chunk_count.labels(origin="lexical").observe(lexical_count)

    @classmethod
    def observe_rerank_fallback(cls) -> None:
        cls.rerank_fallbacks.inc()

    @classmethod
    def observe_generation(cls, duration_seconds: float, confidence: float) -> None:
        cls.generation_latency.observe(duration_seconds)
        cls.answer_confidence.observe(confidence)

    @classmethod
    def observe_query(cls, latency_ms: float) -> None:
        cls.query_latency.observe(latency_ms / 1000)

    @classmethod
    def observe_cache(cls, hit: bool) -> None:
        cls.response_cache.labels(outcome="hit" if hit else "miss").inc()


class TimedSection:
    """Context manager capturing elapsed time for metrics."""

    def __init__(self, callback=None) -> None:
        self._callback = callback
        self._start = 0.0
        self.duration = 0.0

    def __enter__(self) -> "TimedSection":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: D401
        self.duration = time.perf_counter() - self._start
        if self._callback is not None and exc_type is None:
            self._callback(self.duration)


__all__ = [
    "PipelineMetrics",
    "TimedSection",
    "bind_correlation_id",
    "clear_correlation_id",
    "configure_logging",
    "get_correlation_id",
    "get_logger",
]
