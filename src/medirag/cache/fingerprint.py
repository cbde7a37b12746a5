"""Deterministic content hashes used as cache keys."""

from __future__ import annotations

import hashlib


def content_fingerprint(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def query_fingerprint(query: str) -> str:
    """Fingerprint of the normalized (lower-cased, trimmed) query text."""

    return content_fingerprint(query.lower().strip())
