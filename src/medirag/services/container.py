"""Construction of the collaborators used by the query pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

import chromadb
from chromadb.api import ClientAPI
from redis.asyncio import Redis

from medirag.cache import (
    EmbeddingCache,
    InMemoryEmbeddingCache,
    InMemoryResponseCache,
    RedisEmbeddingCache,
    RedisResponseCache,
    ResponseCache,
)
from medirag.config import Settings
from medirag.embeddings import ChromaVectorIndex, EmbeddingConfig, EmbeddingGateway, HuggingFaceEmbeddingBackend
from medirag.freshness import DocumentMetadataSnapshot, FreshnessAnnotator
from medirag.guardrails import GuardrailsEngine
from medirag.metrics.query_log import InMemoryQueryLog, QueryLogSink
from medirag.models import DocumentChunk
from medirag.retrieval import BM25LexicalIndex, HybridRetriever, ListwiseReranker, RankingModel, RetrievalConfig
from medirag.services.llm import (
    ChatAnswerModel,
    ChatRankingModel,
    LexicalOverlapRanker,
    TemplateAnswerModel,
    build_chat_model,
)
from medirag.services.synthesis import AnswerModel, AnswerSynthesizer, SynthesisConfig


@dataclass(frozen=True)
class PipelineConfig:
    """Stage budgets and cache policy for one pipeline instance."""

    rerank_top_n: int = 10
    final_top_c: int = 5
    rrf_k: int = 60
    dedup_threshold: float = 0.9
    cache_enabled: bool = True
    cache_ttl_seconds: int = 3600

    @classmethod
    def from_settings(cls, settings: Settings) -> "PipelineConfig":
        return cls(
            rerank_top_n=settings.rerank_top_n,
            final_top_c=settings.final_top_c,
            rrf_k=settings.rrf_k,
            dedup_threshold=settings.dedup_threshold,
            cache_enabled=settings.cache_enabled,
            cache_ttl_seconds=settings.cache_ttl_seconds,
        )


@dataclass(frozen=True)
class PipelineServices:
    """Every collaborator the pipeline needs, created once per process.

    Tests construct their own instance with fakes instead of patching globals.
    """

    guardrails: GuardrailsEngine
    embedder: EmbeddingGateway
    retriever: HybridRetriever
    reranker: ListwiseReranker
    synthesizer: AnswerSynthesizer
    freshness: FreshnessAnnotator
    documents: DocumentMetadataSnapshot
    query_log: QueryLogSink
    response_cache: ResponseCache | None = None
    config: PipelineConfig = field(default_factory=PipelineConfig)
    vector_index: ChromaVectorIndex | None = None
    lexical_index: BM25LexicalIndex | None = None

    def index_chunks(self, chunks: Iterable[DocumentChunk]) -> int:
        """Add chunks to the vector index and rebuild the lexical index from it."""

        if self.vector_index is None or self.lexical_index is None:
            raise RuntimeError("Pipeline was built without a managed corpus")
        self.vector_index.upsert(list(chunks))
        self.lexical_index.rebuild(self.vector_index.iter_chunks())
        return len(self.lexical_index)


def build_chroma_client(settings: Settings) -> ClientAPI:
    if settings.chroma_host:
        return chromadb.HttpClient(
            host=settings.chroma_host,
            port=settings.chroma_port or 8000,
            ssl=settings.chroma_ssl,
        )
    return chromadb.PersistentClient(path=str(settings.chroma_persist_dir))


def build_services(settings: Settings, *, chroma_client: ClientAPI | None = None) -> PipelineServices:
    """Assemble a fresh set of collaborators from settings."""

    embedding_backend = HuggingFaceEmbeddingBackend(
        EmbeddingConfig(
            model=settings.embedding_model,
            dim=settings.embedding_dim,
            use_model=settings.use_model_embeddings,
            normalize=True,
        ),
    )
    vector_index = ChromaVectorIndex(
        embedding_backend,
        collection_name=settings.chroma_collection,
        client=chroma_client or build_chroma_client(settings),
    )
    lexical_index = BM25LexicalIndex(vector_index.iter_chunks())

    embedding_cache: EmbeddingCache | None = None
    response_cache: ResponseCache | None = None
    if settings.redis_url:
        redis_client = Redis.from_url(settings.redis_url)
        embedding_cache = RedisEmbeddingCache(redis_client)
        response_cache = RedisResponseCache(redis_client)
    else:
        embedding_cache = InMemoryEmbeddingCache()
        response_cache = InMemoryResponseCache()

    ranking_model: RankingModel
    answer_model: AnswerModel
    if settings.use_llm:
        ranking_model = ChatRankingModel(
            build_chat_model(settings, temperature=0.0, max_tokens=256, timeout=settings.rerank_timeout_seconds)
        )
        answer_model = ChatAnswerModel(
            build_chat_model(settings, temperature=0.1, max_tokens=1024, timeout=settings.synthesis_timeout_seconds)
        )
    else:
        ranking_model = LexicalOverlapRanker()
        answer_model = TemplateAnswerModel()

    return PipelineServices(
        guardrails=GuardrailsEngine(),
        embedder=EmbeddingGateway(embedding_backend, embedding_cache),
        retriever=HybridRetriever(
            vector_index,
            lexical_index,
            RetrievalConfig(vector_top_k=settings.vector_top_k, lexical_top_k=settings.lexical_top_k),
        ),
        reranker=ListwiseReranker(ranking_model, timeout_seconds=settings.rerank_timeout_seconds),
        synthesizer=AnswerSynthesizer(
            answer_model,
            SynthesisConfig(
                excerpt_length=settings.excerpt_length,
                rank_weight=settings.confidence_rank_weight,
                citation_weight=settings.confidence_citation_weight,
            ),
        ),
        freshness=FreshnessAnnotator(),
        documents=DocumentMetadataSnapshot(vector_index),
        query_log=InMemoryQueryLog(),
        response_cache=response_cache if settings.cache_enabled else None,
        config=PipelineConfig.from_settings(settings),
        vector_index=vector_index,
        lexical_index=lexical_index,
    )
