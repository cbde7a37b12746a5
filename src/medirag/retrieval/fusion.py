"""Reciprocal rank fusion and near-duplicate removal."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from medirag.metrics.observability import get_logger
from medirag.models import FusedResult, Origin, SearchResult

RRF_K = 60
DEFAULT_SIMILARITY_THRESHOLD = 0.9

_logger = get_logger("fusion")


def rrf_contribution(rank: int, k: int = RRF_K) -> float:
    """Contribution of a result at zero-based ``rank`` within one source list."""

    return 1.0 / (k + rank + 1)


@dataclass
class _Accumulator:
    first: SearchResult
    rrf_score: float = 0.0
    origins: set[Origin] = field(default_factory=set)
    scores: dict[Origin, float] = field(default_factory=dict)

    def add(self, result: SearchResult, contribution: float) -> None:
        self.rrf_score += contribution
        self.origins.add(result.origin)
        self.scores[result.origin] = result.score

    def freeze(self) -> FusedResult:
        return FusedResult(
            chunk_id=self.first.chunk_id,
            document_id=self.first.document_id,
            content=self.first.content,
            chunk_index=self.first.chunk_index,
            page_number=self.first.page_number,
            metadata=self.first.metadata,
            rrf_score=self.rrf_score,
            origins=frozenset(self.origins),
            vector_score=self.scores.get(Origin.VECTOR),
            lexical_score=self.scores.get(Origin.LEXICAL),
        )


def fuse_results(
    vector_results: Sequence[SearchResult],
    lexical_results: Sequence[SearchResult],
    top_n: int,
    *,
    k: int = RRF_K,
) -> list[FusedResult]:
    """Merge two best-first lists into at most ``top_n`` fused results.

    Ties keep insertion order: every vector entry is inserted before any
    lexical-only entry.
    """

    fused: dict[str, _Accumulator] = {}
    for source in (vector_results, lexical_results):
        for rank, result in enumerate(source):
            accumulator = fused.get(result.chunk_id)
            if accumulator is None:
                accumulator = fused[result.chunk_id] = _Accumulator(first=result)
            accumulator.add(result, rrf_contribution(rank, k))
    ordered = sorted(fused.values(), key=lambda item: item.rrf_score, reverse=True)[: max(top_n, 0)]
    results = [item.freeze() for item in ordered]
    _logger.debug(
        "fusion.complete",
        vector_count=len(vector_results),
        lexical_count=len(lexical_results),
        unique=len(fused),
        returned=len(results),
        both_sources=sum(1 for result in results if len(result.origins) == 2),
    )
    return results


def content_similarity(a: str, b: str) -> float:
    """Jaccard index of the lower-cased whitespace-separated word sets."""

    words_a = set(a.lower().split())
    words_b = set(b.lower().split())
    union = words_a | words_b
    if not union:
        return 1.0
    return len(words_a & words_b) / len(union)


def deduplicate_results(
    results: Sequence[FusedResult],
    similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
) -> list[FusedResult]:
    """Drop results too similar to an earlier, already accepted result."""

    unique: list[FusedResult] = []
    for result in results:
        if any(content_similarity(kept.content, result.content) > similarity_threshold for kept in unique):
            continue
        unique.append(result)
    _logger.debug("dedup.complete", original=len(results), unique=len(unique))
    return unique
