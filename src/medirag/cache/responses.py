"""Response caches storing serialized ``QueryResponse`` blobs with a TTL."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Protocol

from pydantic import TypeAdapter, ValidationError
from redis import RedisError
from redis.asyncio import Redis

from medirag.errors import CacheError
from medirag.models import QueryResponse

_RESPONSE_ADAPTER = TypeAdapter(QueryResponse)


def serialize_response(response: QueryResponse) -> bytes:
    return _RESPONSE_ADAPTER.dump_json(response)


def deserialize_response(blob: bytes | str) -> QueryResponse:
    try:
        return _RESPONSE_ADAPTER.validate_json(blob)
    except ValidationError as exc:
        raise CacheError("Cached response could not be decoded", cause=exc) from exc


@dataclass(frozen=True)
class CacheEntry:
    fingerprint: str
    serialized_response: bytes
    expires_at: float


class ResponseCache(Protocol):
    async def get(self, fingerprint: str) -> QueryResponse | None:
        """Return the cached response if present and not expired."""

    async def put(self, fingerprint: str, response: QueryResponse, ttl_seconds: int) -> None:
        """Store ``response``, replacing any previous entry for the fingerprint."""


class InMemoryResponseCache:
    """Process-local response cache; expiry uses an injectable monotonic clock."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._entries: dict[str, CacheEntry] = {}
        self._clock = clock

    async def get(self, fingerprint: str) -> QueryResponse | None:
        entry = self._entries.get(fingerprint)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            self._entries.pop(fingerprint, None)
            return None
        return deserialize_response(entry.serialized_response)

    async def put(self, fingerprint: str, response: QueryResponse, ttl_seconds: int) -> None:
        now = self._clock()
        self._purge_expired(now)
        self._entries[fingerprint] = CacheEntry(
            fingerprint=fingerprint,
            serialized_response=serialize_response(response),
            expires_at=now + ttl_seconds,
        )

    def _purge_expired(self, now: float) -> None:
        expired = [key for key, entry in self._entries.items() if entry.expires_at <= now]
        for key in expired:
            del self._entries[key]

    def __len__(self) -> int:
        return len(self._entries)


class RedisResponseCache:
    """Response cache backed by Redis keys with server-side expiry."""

    def __init__(self, client: Redis, *, prefix: str = "query") -> None:
        self._client = client
        self._prefix = prefix

    def _key(self, fingerprint: str) -> str:
        return f"{self._prefix}:{fingerprint}"

    async def get(self, fingerprint: str) -> QueryResponse | None:
        try:
            raw = await self._client.get(self._key(fingerprint))
        except RedisError as exc:
            raise CacheError("Failed to read cached response", cause=exc) from exc
        if not raw:
            return None
        return deserialize_response(raw)

    async def put(self, fingerprint: str, response: QueryResponse, ttl_seconds: int) -> None:
        try:
            await self._client.setex(self._key(fingerprint), ttl_seconds, serialize_response(response))
        except RedisError as exc:
            raise CacheError("Failed to cache response", cause=exc) from exc
