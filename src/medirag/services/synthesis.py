"""Answer synthesis with citation extraction and confidence scoring."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence

from medirag.errors import SynthesisError
from medirag.metrics.observability import PipelineMetrics, TimedSection, get_logger
from medirag.models import Citation, RerankedResult, SynthesizedAnswer

NO_INFORMATION_ANSWER = (
    "I could not find any relevant information in the Medicaid documents to answer your question."
)


@dataclass(frozen=True)
class AnswerContext:
    """Numbered passage handed to the answer model; ``index`` starts at 1."""

    index: int
    content: str
    filename: str
    page_number: int | None = None


@dataclass(frozen=True)
class ModelAnswer:
    answer: str
    cited_indices: tuple[int, ...]


class AnswerModel(Protocol):
    """Produces a cited answer from numbered contexts."""

    async def synthesize(self, query: str, contexts: Sequence[AnswerContext]) -> ModelAnswer:
        """Return answer text and the context indices it cites."""


@dataclass(frozen=True)
class SynthesisConfig:
    excerpt_length: int = 200
    rank_weight: float = 0.6
    citation_weight: float = 0.4


class PromptBuilder:
    """Formats numbered context blocks for the answer model."""

    separator = "\n\n---\n\n"

    def build_context(self, contexts: Sequence[AnswerContext]) -> str:
        return self.separator.join(self.format_block(context) for context in contexts)

    @staticmethod
    def format_block(context: AnswerContext) -> str:
        page = f" (Page {context.page_number})" if context.page_number is not None else ""
        return f"[{context.index}] Source: {context.filename}{page}\n{context.content}"


def build_excerpt(content: str, length: int) -> str:
    if len(content) <= length:
        return content
    return content[:length] + "..."


def compute_confidence(
    results: Sequence[RerankedResult],
    citation_count: int,
    *,
    rank_weight: float = 0.6,
    citation_weight: float = 0.4,
) -> float:
    """Blend mean rerank score with the cited fraction, scaled to [0, 100]."""

    if not results:
        return 0.0
    avg_rerank = sum(result.rerank_score for result in results) / len(results)
    cited_fraction = citation_count / len(results)
    raw = (avg_rerank * rank_weight + cited_fraction * citation_weight) * 100
    return max(0.0, min(raw, 100.0))


class AnswerSynthesizer:
    """Turns the top-ranked passages into an answer with structured citations."""

    def __init__(self, model: AnswerModel, config: SynthesisConfig | None = None) -> None:
        self._model = model
        self._config = config or SynthesisConfig()
        self._logger = get_logger("synthesis")

    async def synthesize(self, query: str, results: Sequence[RerankedResult]) -> SynthesizedAnswer:
        if not results:
            return SynthesizedAnswer(answer=NO_INFORMATION_ANSWER, citations=(), confidence=0.0)

        contexts = [
            AnswerContext(
                index=index,
                content=result.content,
                filename=_metadata_str(result, "filename") or "Unknown document",
                page_number=result.result.page_number,
            )
            for index, result in enumerate(results, start=1)
        ]
        with TimedSection() as timer:
            try:
                reply = await self._model.synthesize(query, contexts)
            except SynthesisError:
                raise
            except Exception as exc:
                raise SynthesisError("Failed to generate answer", cause=exc) from exc

        citations = self._build_citations(reply.cited_indices, results)
        confidence = compute_confidence(
            results,
            len(citations),
            rank_weight=self._config.rank_weight,
            citation_weight=self._config.citation_weight,
        )
        PipelineMetrics.observe_generation(timer.duration, confidence)
        self._logger.info(
            "generation.complete",
            duration_seconds=timer.duration,
            context_count=len(contexts),
            citation_count=len(citations),
            confidence=confidence,
        )
        return SynthesizedAnswer(answer=reply.answer, citations=tuple(citations), confidence=confidence)

    def _build_citations(self, cited_indices: Sequence[int], results: Sequence[RerankedResult]) -> list[Citation]:
        citations: list[Citation] = []
        seen: set[int] = set()
        for index in cited_indices:
            if index < 1 or index > len(results) or index in seen:
                continue
            seen.add(index)
            result = results[index - 1]
            citations.append(
                Citation(
                    chunk_id=result.chunk_id,
                    document_id=result.document_id,
                    filename=_metadata_str(result, "filename") or "Unknown",
                    title=_metadata_str(result, "title"),
                    page_number=result.result.page_number,
                    chunk_index=result.result.chunk_index,
                    excerpt=build_excerpt(result.content, self._config.excerpt_length),
                )
            )
        return citations


def _metadata_str(result: RerankedResult, key: str) -> str | None:
    value = result.result.metadata.get(key)
    return str(value) if value else None
