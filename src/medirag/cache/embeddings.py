"""Embedding caches.

Backends raise ``CacheError`` on storage failures; the embedding gateway
treats those as a cache miss.
"""

from __future__ import annotations

import json
from typing import Protocol, Sequence

from redis import RedisError
from redis.asyncio import Redis

from medirag.errors import CacheError


class EmbeddingCache(Protocol):
    async def get(self, fingerprint: str) -> tuple[float, ...] | None:
        """Return the cached vector, or ``None`` on a miss."""

    async def put(self, fingerprint: str, vector: Sequence[float], model: str) -> None:
        """Store a vector computed by ``model``."""


class InMemoryEmbeddingCache:
    """Process-local embedding cache holding at most ``max_entries`` vectors.

    The oldest entry is evicted first once the bound is reached.
    """

    def __init__(self, max_entries: int = 10_000) -> None:
        self._vectors: dict[str, tuple[tuple[float, ...], str]] = {}
        self._max_entries = max_entries

    async def get(self, fingerprint: str) -> tuple[float, ...] | None:
        cached = self._vectors.get(fingerprint)
        return cached[0] if cached else None

    async def put(self, fingerprint: str, vector: Sequence[float], model: str) -> None:
        # First write wins, matching an insert-if-absent store
        if fingerprint in self._vectors:
            return
        self._vectors[fingerprint] = (tuple(vector), model)
        while len(self._vectors) > self._max_entries:
            del self._vectors[next(iter(self._vectors))]

    def __len__(self) -> int:
        return len(self._vectors)


class RedisEmbeddingCache:
    """Embedding cache stored as JSON strings under ``embedding:<fingerprint>``."""

    def __init__(self, client: Redis, *, prefix: str = "embedding") -> None:
        self._client = client
        self._prefix = prefix

    def _key(self, fingerprint: str) -> str:
        return f"{self._prefix}:{fingerprint}"

    async def get(self, fingerprint: str) -> tuple[float, ...] | None:
        try:
            raw = await self._client.get(self._key(fingerprint))
        except RedisError as exc:
            raise CacheError("Failed to read cached embedding", cause=exc) from exc
        if not raw:
            return None
        try:
            payload = json.loads(raw)
            return tuple(float(value) for value in payload["vector"])
        except (ValueError, KeyError, TypeError) as exc:
            raise CacheError("Cached embedding could not be decoded", cause=exc) from exc

    async def put(self, fingerprint: str, vector: Sequence[float], model: str) -> None:
        payload = json.dumps({"vector": list(vector), "model": model})
        try:
            await self._client.set(self._key(fingerprint), payload, nx=True)
        except RedisError as exc:
            raise CacheError("Failed to cache embedding", cause=exc) from exc
