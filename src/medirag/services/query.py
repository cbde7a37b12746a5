"""Query orchestration: retrieval, fusion, reranking, synthesis and annotation."""

from __future__ import annotations

import time
from dataclasses import replace
from uuid import uuid4

from medirag.cache import ResponseCache, query_fingerprint
from medirag.config import Settings
from medirag.errors import CacheError
from medirag.metrics.observability import PipelineMetrics, get_logger
from medirag.metrics.query_log import QueryMetrics
from medirag.models import FreshnessInfo, GuardrailResult, QueryResponse, RetrievalStats
from medirag.retrieval import deduplicate_results, fuse_results
from medirag.services.container import PipelineServices, build_services


class QueryPipeline:
    """Answers questions against the document corpus.

    The cached response holds the synthesized prose without the guardrail or
    freshness sections; both are appended on every return so a cache hit is
    annotated exactly like a fresh answer.
    """

    def __init__(self, services: PipelineServices) -> None:
        self._services = services
        self._logger = get_logger("query")

    @classmethod
    def from_settings(cls, settings: Settings) -> "QueryPipeline":
        return cls(build_services(settings))

    @property
    def services(self) -> PipelineServices:
        return self._services

    async def answer_query(self, text: str, use_cache: bool = True) -> QueryResponse:
        start = time.perf_counter()
        query_id = uuid4().hex
        services = self._services
        config = services.config
        self._logger.info("query.received", query_id=query_id, use_cache=use_cache)

        guardrail = services.guardrails.check_query(text)
        fingerprint = query_fingerprint(text)

        if use_cache:
            cached = await self._read_cache(fingerprint)
            if cached is not None:
                latency_ms = (time.perf_counter() - start) * 1000
                self._logger.info("query.cache_hit", query_id=query_id, latency_ms=latency_ms)
                return replace(
                    cached,
                    answer=self._annotate(cached.answer, guardrail, cached.freshness_info),
                    query_id=query_id,
                    latency_ms=latency_ms,
                    guardrail=guardrail,
                    cached=True,
                )

        embedding = await services.embedder.embed(text)
        retrieved = await services.retriever.retrieve(text, embedding)
        fused = fuse_results(retrieved.vector, retrieved.lexical, config.rerank_top_n, k=config.rrf_k)
        deduplicated = deduplicate_results(fused, config.dedup_threshold)
        reranked = await services.reranker.rerank(text, deduplicated, config.final_top_c)
        final = reranked[: config.final_top_c]
        synthesized = await services.synthesizer.synthesize(text, final)

        snapshot = await services.documents.get()
        freshness_info = services.freshness.build_info(synthesized.citations, snapshot)
        stats = RetrievalStats(
            vector_results=len(retrieved.vector),
            lexical_results=len(retrieved.lexical),
            fused_results=len(fused),
            deduplicated_results=len(deduplicated),
            reranked_results=len(reranked),
            final_results=len(final),
        )
        latency_ms = (time.perf_counter() - start) * 1000
        base = QueryResponse(
            answer=synthesized.answer,
            citations=synthesized.citations,
            confidence=synthesized.confidence,
            query_id=query_id,
            latency_ms=latency_ms,
            retrieval_stats=stats,
            freshness_info=freshness_info,
            guardrail=guardrail,
        )
        await self._write_cache(fingerprint, base)

        response = replace(base, answer=self._annotate(base.answer, guardrail, freshness_info))
        await self._log_query(text, response)
        self._logger.info(
            "query.complete",
            query_id=query_id,
            latency_ms=latency_ms,
            citation_count=len(response.citations),
            confidence=response.confidence,
            sensitive=guardrail.is_sensitive,
        )
        return response

    @property
    def _response_cache(self) -> ResponseCache | None:
        if not self._services.config.cache_enabled:
            return None
        return self._services.response_cache

    async def query_metrics(self) -> QueryMetrics:
        return await self._services.query_log.metrics()

    def _annotate(self, answer: str, guardrail: GuardrailResult, freshness: FreshnessInfo) -> str:
        annotated = self._services.guardrails.annotate(answer, guardrail)
        return self._services.freshness.annotate(annotated, freshness)

    async def _read_cache(self, fingerprint: str) -> QueryResponse | None:
        cache = self._response_cache
        if cache is None:
            return None
        try:
            cached = await cache.get(fingerprint)
        except CacheError as exc:
            self._logger.warning("query.cache_read_failed", detail=str(exc))
            return None
        PipelineMetrics.observe_cache(hit=cached is not None)
        return cached

    async def _write_cache(self, fingerprint: str, response: QueryResponse) -> None:
        cache = self._response_cache
        if cache is None:
            return
        try:
            await cache.put(fingerprint, response, self._services.config.cache_ttl_seconds)
        except CacheError as exc:
            self._logger.warning("query.cache_write_failed", detail=str(exc))

    async def _log_query(self, text: str, response: QueryResponse) -> None:
        try:
            await self._services.query_log.log(
                text,
                response.retrieval_stats,
                response.latency_ms,
                response.has_answer,
            )
        except Exception as exc:
            self._logger.warning("query.log_failed", detail=repr(exc))
