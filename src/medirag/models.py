"""Shared domain models used across the medirag pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Mapping


class Origin(str, Enum):
    """Retrieval source that surfaced a chunk."""

    VECTOR = "vector"
    LEXICAL = "lexical"


class SensitiveCategory(str, Enum):
    """Topics that require a disclaimer and a professional referral."""

    ESTATE_PLANNING = "estate_planning"
    SPEND_DOWN = "spend_down"
    ASSET_TRANSFER = "asset_transfer"
    SPOUSAL_COMPLEX = "spousal_complex"
    APPEALS = "appeals"
    LOOK_BACK_PERIOD = "look_back_period"


class DataType(str, Enum):
    """Coarse classification of cited data used for staleness rules."""

    FEDERAL_POVERTY_LEVEL = "federal_poverty_level"
    MSP_INCOME_LIMITS = "msp_income_limits"
    NURSING_HOME_FBR = "nursing_home_fbr"
    SPOUSAL_PROTECTION = "spousal_protection"
    PART_D_COSTS = "part_d_costs"
    PACE_PACENET_LIMITS = "pace_pacenet_limits"
    CHESTER_COUNTY_CONTACTS = "chester_county_contacts"
    OIM_OPS_MEMO = "oim_ops_memo"
    OIM_POLICY_CLARIFICATION = "oim_policy_clarification"
    PA_BULLETIN_DHS = "pa_bulletin_dhs"
    OIM_LTC_HANDBOOK = "oim_ltc_handbook"
    OIM_MA_HANDBOOK = "oim_ma_handbook"
    PA_CODE_CHAPTER_258 = "pa_code_chapter_258"
    CHC_PUBLICATIONS = "chc_publications"
    CHC_HANDBOOK_UPMC = "chc_handbook_upmc"
    CHC_HANDBOOK_AMERIHEALTH = "chc_handbook_amerihealth"
    CHC_HANDBOOK_PHW = "chc_handbook_phw"


class WarningLevel(str, Enum):
    """Staleness levels, ordered from least to most severe."""

    NONE = "none"
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass(frozen=True)
class DocumentChunk:
    """Passage of a corpus document as stored in the vector index."""

    chunk_id: str
    document_id: str
    content: str
    chunk_index: int
    page_number: int | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DocumentRecord:
    """Per-document metadata consumed by the freshness annotator."""

    document_id: str
    document_type: str | None = None
    effective_date: date | None = None
    ingested_at: datetime | None = None


@dataclass(frozen=True)
class SearchResult:
    """Chunk returned by a single retrieval source."""

    chunk_id: str
    document_id: str
    content: str
    chunk_index: int
    score: float
    origin: Origin
    page_number: int | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class FusedResult:
    """Chunk after reciprocal rank fusion of the vector and lexical lists."""

    chunk_id: str
    document_id: str
    content: str
    chunk_index: int
    rrf_score: float
    origins: frozenset[Origin]
    page_number: int | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)
    vector_score: float | None = None
    lexical_score: float | None = None

    @property
    def score(self) -> float:
        return self.rrf_score


@dataclass(frozen=True)
class RerankedResult:
    """Fused chunk with a score comparable only within one reranking call."""

    result: FusedResult
    rerank_score: float

    @property
    def chunk_id(self) -> str:
        return self.result.chunk_id

    @property
    def document_id(self) -> str:
        return self.result.document_id

    @property
    def content(self) -> str:
        return self.result.content


@dataclass(frozen=True)
class Citation:
    """Source passage cited by a synthesized answer."""

    chunk_id: str
    document_id: str
    filename: str
    chunk_index: int
    excerpt: str
    title: str | None = None
    page_number: int | None = None


@dataclass(frozen=True)
class SynthesizedAnswer:
    answer: str
    citations: tuple[Citation, ...]
    confidence: float


@dataclass(frozen=True)
class RetrievalStats:
    vector_results: int = 0
    lexical_results: int = 0
    fused_results: int = 0
    deduplicated_results: int = 0
    reranked_results: int = 0
    final_results: int = 0


@dataclass(frozen=True)
class FreshnessWarning:
    level: WarningLevel
    message: str
    data_type: DataType | None = None


@dataclass(frozen=True)
class FreshnessInfo:
    """Data-freshness summary for the documents cited by an answer."""

    last_retrieved: datetime
    has_stale_data: bool = False
    warnings: tuple[FreshnessWarning, ...] = ()
    effective_period: str | None = None
    income_limits_effective: str | None = None


@dataclass(frozen=True)
class GuardrailResult:
    """Outcome of the sensitive-topic check for one query string."""

    is_sensitive: bool
    confidence: float
    disclaimer_required: bool
    should_proceed: bool = True
    category: SensitiveCategory | None = None
    matched_keywords: tuple[str, ...] = ()
    disclaimer: str | None = None
    referral: str | None = None


@dataclass(frozen=True)
class QueryResponse:
    """Cited answer returned by the query pipeline."""

    answer: str
    citations: tuple[Citation, ...]
    confidence: float
    query_id: str
    latency_ms: float
    retrieval_stats: RetrievalStats
    freshness_info: FreshnessInfo
    guardrail: GuardrailResult
    cached: bool = False

    @property
    def has_answer(self) -> bool:
        return bool(self.citations)
