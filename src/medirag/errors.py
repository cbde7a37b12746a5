"""Exception hierarchy for the query pipeline.

Hard failures (embedding, vector search, lexical search, synthesis) propagate
to the caller of ``QueryPipeline.answer_query``. ``RerankError`` is recovered
inside the reranker and ``CacheError`` is logged and ignored by the pipeline.
"""

from __future__ import annotations


class MediragError(RuntimeError):
    """Base class for pipeline errors."""

    code = "MEDIRAG_ERROR"

    def __init__(self, message: str, *, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class EmbeddingProviderError(MediragError):
    code = "EMBEDDING_ERROR"


class VectorSearchError(MediragError):
    code = "VECTOR_SEARCH_ERROR"


class LexicalSearchError(MediragError):
    code = "LEXICAL_SEARCH_ERROR"


class RerankError(MediragError):
    code = "RERANK_ERROR"


class SynthesisError(MediragError):
    code = "SYNTHESIS_ERROR"


class CacheError(MediragError):
    code = "CACHE_ERROR"


HARD_FAILURES = (EmbeddingProviderError, VectorSearchError, LexicalSearchError, SynthesisError)
