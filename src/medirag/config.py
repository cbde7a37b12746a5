"""Runtime configuration for the medirag query pipeline."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed configuration model."""

    model_config = SettingsConfigDict(env_prefix="medirag_", env_file=".env", case_sensitive=False)

    environment: Literal["dev", "test", "prod"] = "dev"

    chroma_persist_dir: Path = Path("./.chroma")
    chroma_collection: str = "medirag-chunks"
    chroma_host: str | None = None
    chroma_port: int | None = None
    chroma_ssl: bool = False

    embedding_model: str = "nomic-ai/nomic-embed-text-v1.5"
    embedding_dim: int = 384
    use_model_embeddings: bool = False

    # OpenAI-compatible chat endpoint (LM Studio by default)
    llm_base_url: str = "http://localhost:1234/v1"
    llm_model: str = "qwen2.5-7b-instruct"
    llm_api_key: str = "not-needed"
    use_llm: bool = False
    rerank_timeout_seconds: float = 30.0
    synthesis_timeout_seconds: float = 120.0

    vector_top_k: int = Field(default=20, ge=1, le=100)
    lexical_top_k: int = Field(default=20, ge=1, le=100)
    # Also the number of fused candidates kept before reranking
    rerank_top_n: int = Field(default=10, ge=1, le=50)
    final_top_c: int = Field(default=5, ge=1, le=20)
    rrf_k: int = Field(default=60, ge=1)
    dedup_threshold: float = Field(default=0.9, gt=0.0, le=1.0)

    excerpt_length: int = Field(default=200, ge=1)
    confidence_rank_weight: float = Field(default=0.6, ge=0.0, le=1.0)
    confidence_citation_weight: float = Field(default=0.4, ge=0.0, le=1.0)

    cache_enabled: bool = True
    cache_ttl_seconds: int = Field(default=3600, ge=1)
    redis_url: str | None = None

    # API
    api_key: str | None = None  # if set, required in X-API-Key header
    cors_allow_origins: tuple[str, ...] = ()
    cors_allow_credentials: bool = False
    cors_allow_methods: tuple[str, ...] = ("GET", "POST", "OPTIONS")
    cors_allow_headers: tuple[str, ...] = ("*",)

    @property
    def is_test(self) -> bool:
        return self.environment == "test"


@lru_cache(maxsize=1)
def _cached_settings() -> Settings:
    return Settings()


def get_settings(override: Optional[dict[str, object]] = None) -> Settings:
    """Return settings, optionally overriding values without mutating cache."""

    if override:
        return Settings(**override)
    return _cached_settings()
