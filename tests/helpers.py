"""Builders and fakes shared by the test modules."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Mapping, Sequence

from medirag.embeddings import EmbeddingConfig, EmbeddingGateway, HashEmbeddingBackend
from medirag.freshness import DocumentMetadataSnapshot, FreshnessAnnotator, StaticDocumentCatalog
from medirag.guardrails import GuardrailsEngine
from medirag.metrics.query_log import InMemoryQueryLog
from medirag.models import DocumentRecord, FusedResult, Origin, RerankedResult, SearchResult
from medirag.cache import InMemoryEmbeddingCache, InMemoryResponseCache
from medirag.retrieval import HybridRetriever, ListwiseReranker, RankCandidate, RankedId
from medirag.services import AnswerContext, AnswerSynthesizer, ModelAnswer, PipelineConfig, PipelineServices

FIXED_NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


def search_result(
    chunk_id: str,
    score: float = 1.0,
    *,
    origin: Origin = Origin.VECTOR,
    content: str | None = None,
    document_id: str | None = None,
    metadata: Mapping[str, Any] | None = None,
) -> SearchResult:
    return SearchResult(
        chunk_id=chunk_id,
        document_id=document_id or f"doc-{chunk_id}",
        content=content if content is not None else f"content of chunk {chunk_id}",
        chunk_index=0,
        score=score,
        origin=origin,
        metadata=metadata or {},
    )


def fused_result(chunk_id: str, content: str | None = None, rrf_score: float = 0.01) -> FusedResult:
    return FusedResult(
        chunk_id=chunk_id,
        document_id=f"doc-{chunk_id}",
        content=content if content is not None else f"distinct passage number {chunk_id}",
        chunk_index=0,
        rrf_score=rrf_score,
        origins=frozenset({Origin.VECTOR}),
    )


def reranked_result(
    chunk_id: str,
    rerank_score: float,
    *,
    content: str | None = None,
    metadata: Mapping[str, Any] | None = None,
    page_number: int | None = None,
) -> RerankedResult:
    base = FusedResult(
        chunk_id=chunk_id,
        document_id=f"doc-{chunk_id}",
        content=content if content is not None else f"passage {chunk_id}",
        chunk_index=3,
        rrf_score=0.01,
        origins=frozenset({Origin.VECTOR}),
        page_number=page_number,
        metadata=metadata or {},
    )
    return RerankedResult(result=base, rerank_score=rerank_score)


class StaticVectorIndex:
    def __init__(self, results: Sequence[SearchResult] = (), error: Exception | None = None, delay: float = 0.0) -> None:
        self.results = list(results)
        self.error = error
        self.delay = delay
        self.calls = 0

    async def search(self, vector: Sequence[float], top_k: int) -> Sequence[SearchResult]:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.results[:top_k]


class StaticLexicalIndex:
    def __init__(self, results: Sequence[SearchResult] = (), error: Exception | None = None, delay: float = 0.0) -> None:
        self.results = list(results)
        self.error = error
        self.delay = delay
        self.cancelled = False

    async def search(self, query: str, top_k: int) -> Sequence[SearchResult]:
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        if self.error is not None:
            raise self.error
        return self.results[:top_k]


class ScriptedRanker:
    """Ranking model returning a fixed id order, or raising."""

    def __init__(self, ids: Sequence[str] = (), error: Exception | None = None, delay: float = 0.0) -> None:
        self.ids = list(ids)
        self.error = error
        self.delay = delay
        self.calls: list[Sequence[RankCandidate]] = []

    async def rerank(self, query: str, documents: Sequence[RankCandidate], top_n: int) -> Sequence[RankedId]:
        self.calls.append(documents)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return [RankedId(id=chunk_id, score=1 - index / len(self.ids)) for index, chunk_id in enumerate(self.ids)]


@dataclass
class ScriptedAnswerModel:
    answer: str = "Medicare Savings Programs help pay premiums [1]."
    cited_indices: tuple[int, ...] = (1,)
    error: Exception | None = None
    calls: list[Sequence[AnswerContext]] = field(default_factory=list)

    async def synthesize(self, query: str, contexts: Sequence[AnswerContext]) -> ModelAnswer:
        self.calls.append(contexts)
        if self.error is not None:
            raise self.error
        return ModelAnswer(answer=self.answer, cited_indices=self.cited_indices)


def corpus_records() -> list[DocumentRecord]:
    return [
        DocumentRecord(
            document_id="doc-v1",
            document_type="msp_guide",
            effective_date=date(2025, 1, 1),
            ingested_at=datetime(2025, 6, 1, tzinfo=timezone.utc),
        ),
    ]


def build_test_services(
    *,
    vector: StaticVectorIndex | None = None,
    lexical: StaticLexicalIndex | None = None,
    ranker: ScriptedRanker | None = None,
    answer_model: ScriptedAnswerModel | None = None,
    response_cache=None,
    query_log=None,
    catalog=None,
    config: PipelineConfig | None = None,
) -> PipelineServices:
    backend = HashEmbeddingBackend(EmbeddingConfig(dim=16))
    return PipelineServices(
        guardrails=GuardrailsEngine(),
        embedder=EmbeddingGateway(backend, InMemoryEmbeddingCache()),
        retriever=HybridRetriever(vector or StaticVectorIndex(), lexical or StaticLexicalIndex()),
        reranker=ListwiseReranker(ranker or ScriptedRanker(), timeout_seconds=1.0),
        synthesizer=AnswerSynthesizer(answer_model or ScriptedAnswerModel()),
        freshness=FreshnessAnnotator(clock=lambda: FIXED_NOW),
        documents=DocumentMetadataSnapshot(catalog or StaticDocumentCatalog(corpus_records())),
        query_log=query_log or InMemoryQueryLog(),
        response_cache=response_cache if response_cache is not None else InMemoryResponseCache(),
        config=config or PipelineConfig(rerank_top_n=10, final_top_c=5),
    )
