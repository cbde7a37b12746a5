"""Listwise reranking with a deterministic fallback."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Protocol, Sequence

from medirag.metrics.observability import PipelineMetrics, get_logger
from medirag.models import FusedResult, RerankedResult


@dataclass(frozen=True)
class RankCandidate:
    id: str
    content: str


@dataclass(frozen=True)
class RankedId:
    id: str
    score: float


class RankingModel(Protocol):
    """Scores a whole candidate list at once."""

    async def rerank(self, query: str, documents: Sequence[RankCandidate], top_n: int) -> Sequence[RankedId]:
        """Return up to ``top_n`` candidate ids, most relevant first."""


@dataclass(frozen=True)
class RerankOutcome:
    """Result of one ranking-model call: a ranking or the error that prevented it."""

    ranking: tuple[RankedId, ...] = ()
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def linear_scores(results: Sequence[FusedResult], window: int) -> list[RerankedResult]:
    """Keep fused order, scoring rank ``i`` as ``1 - i / window``."""

    return [
        RerankedResult(result=result, rerank_score=1 - index / window)
        for index, result in enumerate(results[:window])
    ]


class ListwiseReranker:
    """Reorders fused candidates with a ranking model.

    Reranking is optional: when the model call fails or times out the first
    ``top_n`` fused candidates are returned in fused order.
    """

    def __init__(self, model: RankingModel, *, timeout_seconds: float | None = None) -> None:
        self._model = model
        self._timeout = timeout_seconds
        self._logger = get_logger("reranker")

    async def rerank(self, query: str, results: Sequence[FusedResult], top_n: int) -> list[RerankedResult]:
        if not results:
            return []
        if len(results) <= top_n:
            return linear_scores(results, len(results))

        outcome = await self._call_model(query, results, top_n)
        if not outcome.ok:
            self._logger.error("rerank.fallback", detail=repr(outcome.error), candidates=len(results), top_n=top_n)
            PipelineMetrics.observe_rerank_fallback()
            return linear_scores(results, top_n)

        by_id = {result.chunk_id: result for result in results}
        reranked: list[RerankedResult] = []
        for ranked in outcome.ranking:
            original = by_id.pop(ranked.id, None)
            if original is None:
                # Unknown or repeated id from the model
                continue
            reranked.append(RerankedResult(result=original, rerank_score=ranked.score))
            if len(reranked) == top_n:
                break
        self._logger.debug("rerank.complete", candidates=len(results), returned=len(reranked))
        return reranked

    async def _call_model(self, query: str, results: Sequence[FusedResult], top_n: int) -> RerankOutcome:
        documents = [RankCandidate(id=result.chunk_id, content=result.content) for result in results]
        try:
            ranking = await asyncio.wait_for(self._model.rerank(query, documents, top_n), timeout=self._timeout)
        except Exception as exc:
            return RerankOutcome(error=exc)
        return RerankOutcome(ranking=tuple(ranking))
