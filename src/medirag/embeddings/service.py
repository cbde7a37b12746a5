"""Embedding backends and the cached embedding gateway."""

from __future__ import annotations

import hashlib
import logging
import math
from dataclasses import dataclass
from typing import Protocol, Sequence, Tuple

from langchain_community.embeddings import HuggingFaceEmbeddings
from langchain_core.embeddings import Embeddings as LangChainEmbeddings

from medirag.cache.embeddings import EmbeddingCache
from medirag.cache.fingerprint import content_fingerprint
from medirag.errors import CacheError, EmbeddingProviderError
from medirag.metrics.observability import PipelineMetrics, TimedSection, get_logger

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmbeddingConfig:
    """Configuration for embedding backends."""

    model: str = "nomic-ai/nomic-embed-text-v1.5"
    dim: int = 384
    use_model: bool = False
    device: str | None = None
    normalize: bool = True
    cache_folder: str | None = None


@dataclass(frozen=True)
class EmbeddingResult:
    vector: Tuple[float, ...]
    model: str


class EmbeddingBackend(Protocol):
    """Protocol describing embedding behaviour."""

    def embed_texts(self, texts: Sequence[str]) -> Sequence[Tuple[float, ...]]:
        """Return one vector per text, used when seeding the vector index."""

    async def embed(self, text: str) -> EmbeddingResult:
        """Return the embedding of a query string."""


class HashEmbeddingBackend:
    """Deterministic lightweight embedding fallback used for testing."""

    def __init__(self, config: EmbeddingConfig | None = None) -> None:
        self._config = config or EmbeddingConfig()

    @property
    def model_name(self) -> str:
        return f"sha256-{self._config.dim}"

    def _hash_to_vector(self, text: str) -> Tuple[float, ...]:
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        repeat = (self._config.dim + len(digest) - 1) // len(digest)
        raw = (digest * repeat)[: self._config.dim]
        vector = [byte / 255.0 for byte in raw]
        if self._config.normalize:
            norm = math.sqrt(sum(value * value for value in vector)) or 1.0
            vector = [value / norm for value in vector]
        return tuple(vector)

    def embed_texts(self, texts: Sequence[str]) -> Sequence[Tuple[float, ...]]:
        return [self._hash_to_vector(text) for text in texts]

    async def embed(self, text: str) -> EmbeddingResult:
        return EmbeddingResult(vector=self._hash_to_vector(text), model=self.model_name)


class HuggingFaceEmbeddingBackend:
    """Embedding backend that optionally loads a sentence-embedding model via LangChain."""

    def __init__(self, config: EmbeddingConfig | None = None) -> None:
        self._config = config or EmbeddingConfig()
        self._delegate = HashEmbeddingBackend(self._config)
        self._client: LangChainEmbeddings | None = None
        if not self._config.use_model:
            LOGGER.info("HuggingFaceEmbeddingBackend running in hash-only mode.")
            return
        try:
            model_kwargs = {"device": self._config.device} if self._config.device else {}
            if self._config.cache_folder:
                model_kwargs["cache_dir"] = self._config.cache_folder
            self._client = HuggingFaceEmbeddings(
                model_name=self._config.model,
                model_kwargs=model_kwargs,
                encode_kwargs={"normalize_embeddings": self._config.normalize},
            )
            LOGGER.info("Loaded embedding model %s", self._config.model)
        except Exception as exc:  # pragma: no cover - model download or load failure
            LOGGER.warning("Falling back to hash embeddings: %s", exc)
            self._client = None

    @property
    def model_name(self) -> str:
        return self._config.model if self._client is not None else self._delegate.model_name

    def embed_texts(self, texts: Sequence[str]) -> Sequence[Tuple[float, ...]]:
        if not texts:
            return []
        if self._client is None:
            return self._delegate.embed_texts(texts)
        vectors = self._client.embed_documents(list(texts))
        if len(vectors) != len(texts):
            LOGGER.error("Embedding backend returned %d vectors for %d texts", len(vectors), len(texts))
            raise EmbeddingProviderError("Mismatch between number of texts and embedding vectors")
        if vectors and len(vectors[0]) != self._config.dim:
            LOGGER.warning(
                "Embedding dim mismatch: configured=%d, actual=%d",
                self._config.dim,
                len(vectors[0]),
            )
        return [self._normalize(tuple(vector)) for vector in vectors]

    async def embed(self, text: str) -> EmbeddingResult:
        if self._client is None:
            return await self._delegate.embed(text)
        try:
            vector = tuple(await self._client.aembed_query(text))
        except Exception as exc:
            raise EmbeddingProviderError("Failed to generate embedding", cause=exc) from exc
        return EmbeddingResult(vector=self._normalize(vector), model=self._config.model)

    def _normalize(self, vector: Tuple[float, ...]) -> Tuple[float, ...]:
        if not self._config.normalize:
            return vector
        norm = math.sqrt(sum(value * value for value in vector)) or 1.0
        return tuple(value / norm for value in vector)


class EmbeddingGateway:
    """Embeds query text, consulting a fingerprint-keyed cache first.

    Cache failures degrade to an uncached provider call. Provider failures
    are raised as ``EmbeddingProviderError``.
    """

    def __init__(self, backend: EmbeddingBackend, cache: EmbeddingCache | None = None) -> None:
        self._backend = backend
        self._cache = cache
        self._logger = get_logger("embeddings")

    async def embed(self, text: str) -> Tuple[float, ...]:
        with TimedSection(PipelineMetrics.observe_embedding):
            fingerprint = content_fingerprint(text)
            cached = await self._read_cache(fingerprint)
            if cached is not None:
                self._logger.debug("embedding.cache_hit", fingerprint=fingerprint)
                return cached
            try:
                result = await self._backend.embed(text)
            except EmbeddingProviderError:
                raise
            except Exception as exc:
                raise EmbeddingProviderError("Failed to generate embedding", cause=exc) from exc
            await self._write_cache(fingerprint, result)
            return result.vector

    async def _read_cache(self, fingerprint: str) -> Tuple[float, ...] | None:
        if self._cache is None:
            return None
        try:
            return await self._cache.get(fingerprint)
        except CacheError as exc:
            self._logger.warning("embedding.cache_read_failed", detail=str(exc))
            return None

    async def _write_cache(self, fingerprint: str, result: EmbeddingResult) -> None:
        if self._cache is None:
            return
        try:
            await self._cache.put(fingerprint, result.vector, result.model)
        except CacheError as exc:
            self._logger.warning("embedding.cache_write_failed", detail=str(exc))
