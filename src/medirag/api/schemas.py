"""Pydantic models for the medirag API."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from medirag import models


class QueryRequest(BaseModel):
    question: str = Field(..., min_length=1, description="End-user question to answer")
    use_cache: bool = Field(default=True, description="Serve a cached answer for a repeated question")


class CitationModel(BaseModel):
    chunk_id: str
    document_id: str
    filename: str
    title: Optional[str] = None
    page_number: Optional[int] = None
    chunk_index: int
    excerpt: str

    @classmethod
    def from_citation(cls, citation: models.Citation) -> "CitationModel":
        return cls(
            chunk_id=citation.chunk_id,
            document_id=citation.document_id,
            filename=citation.filename,
            title=citation.title,
            page_number=citation.page_number,
            chunk_index=citation.chunk_index,
            excerpt=citation.excerpt,
        )


class RetrievalStatsModel(BaseModel):
    vector_results: int
    lexical_results: int
    fused_results: int
    deduplicated_results: int
    reranked_results: int
    final_results: int


class FreshnessWarningModel(BaseModel):
    level: str
    message: str
    data_type: Optional[str] = None


class FreshnessInfoModel(BaseModel):
    last_retrieved: datetime
    has_stale_data: bool
    effective_period: Optional[str] = None
    income_limits_effective: Optional[str] = None
    warnings: List[FreshnessWarningModel]


class GuardrailModel(BaseModel):
    is_sensitive: bool
    category: Optional[str] = None
    matched_keywords: List[str] = Field(default_factory=list)
    confidence: float
    disclaimer_required: bool


class QueryResponse(BaseModel):
    query_id: str
    answer: str
    citations: List[CitationModel]
    confidence: float = Field(..., ge=0.0, le=100.0)
    latency_ms: float
    cached: bool = False
    retrieval_stats: RetrievalStatsModel
    freshness: FreshnessInfoModel
    guardrail: GuardrailModel

    @classmethod
    def from_response(cls, response: models.QueryResponse) -> "QueryResponse":
        freshness = response.freshness_info
        guardrail = response.guardrail
        stats = response.retrieval_stats
        return cls(
            query_id=response.query_id,
            answer=response.answer,
            citations=[CitationModel.from_citation(citation) for citation in response.citations],
            confidence=response.confidence,
            latency_ms=response.latency_ms,
            cached=response.cached,
            retrieval_stats=RetrievalStatsModel(
                vector_results=stats.vector_results,
                lexical_results=stats.lexical_results,
                fused_results=stats.fused_results,
                deduplicated_results=stats.deduplicated_results,
                reranked_results=stats.reranked_results,
                final_results=stats.final_results,
            ),
            freshness=FreshnessInfoModel(
                last_retrieved=freshness.last_retrieved,
                has_stale_data=freshness.has_stale_data,
                effective_period=freshness.effective_period,
                income_limits_effective=freshness.income_limits_effective,
                warnings=[
                    FreshnessWarningModel(
                        level=warning.level.value,
                        message=warning.message,
                        data_type=warning.data_type.value if warning.data_type else None,
                    )
                    for warning in freshness.warnings
                ],
            ),
            guardrail=GuardrailModel(
                is_sensitive=guardrail.is_sensitive,
                category=guardrail.category.value if guardrail.category else None,
                matched_keywords=list(guardrail.matched_keywords),
                confidence=guardrail.confidence,
                disclaimer_required=guardrail.disclaimer_required,
            ),
        )


class QueryMetricsResponse(BaseModel):
    total_queries: int
    avg_latency_ms: float
    no_answer_rate: float


class IndexStatsResponse(BaseModel):
    collection: str
    total_chunks: int
    lexical_chunks: int
