"""Embedding and response caches keyed by content fingerprints."""

from .embeddings import EmbeddingCache, InMemoryEmbeddingCache, RedisEmbeddingCache
from .fingerprint import content_fingerprint, query_fingerprint
from .responses import CacheEntry, InMemoryResponseCache, RedisResponseCache, ResponseCache

__all__ = [
    "CacheEntry",
    "EmbeddingCache",
    "InMemoryEmbeddingCache",
    "InMemoryResponseCache",
    "RedisEmbeddingCache",
    "RedisResponseCache",
    "ResponseCache",
    "content_fingerprint",
    "query_fingerprint",
]
