"""Okapi BM25 ranked full-text search over the chunk corpus."""

from __future__ import annotations

import asyncio
import re
from typing import Iterable, Protocol, Sequence

from rank_bm25 import BM25Okapi

from medirag.errors import LexicalSearchError
from medirag.models import DocumentChunk, Origin, SearchResult

_TOKEN_PATTERN = re.compile(r"\w+")


def tokenize(text: str) -> list[str]:
    return _TOKEN_PATTERN.findall(text.lower())


class LexicalIndex(Protocol):
    """Ranked full-text search."""

    async def search(self, query: str, top_k: int) -> Sequence[SearchResult]:
        """Return at most ``top_k`` matching chunks, best first."""


class BM25LexicalIndex:
    """In-memory BM25 index; rebuilt wholesale and read-only between rebuilds."""

    def __init__(self, chunks: Iterable[DocumentChunk] = ()) -> None:
        self._chunks: list[DocumentChunk] = []
        self._bm25: BM25Okapi | None = None
        self.rebuild(chunks)

    def rebuild(self, chunks: Iterable[DocumentChunk]) -> None:
        chunks = list(chunks)
        tokenized = [tokenize(chunk.content) for chunk in chunks]
        # BM25Okapi divides by corpus size, so an empty corpus has no index
        self._bm25 = BM25Okapi(tokenized) if chunks else None
        self._chunks = chunks

    def __len__(self) -> int:
        return len(self._chunks)

    async def search(self, query: str, top_k: int) -> Sequence[SearchResult]:
        try:
            return await asyncio.to_thread(self._search, query, top_k)
        except Exception as exc:
            raise LexicalSearchError("Failed to execute lexical search", cause=exc) from exc

    def _search(self, query: str, top_k: int) -> Sequence[SearchResult]:
        bm25 = self._bm25
        chunks = self._chunks
        tokens = tokenize(query)
        if bm25 is None or not tokens or top_k <= 0:
            return []
        scores = bm25.get_scores(tokens)
        ranked = sorted(
            (index for index in range(len(chunks)) if scores[index] > 0),
            key=lambda index: scores[index],
            reverse=True,
        )[:top_k]
        return [
            SearchResult(
                chunk_id=chunks[index].chunk_id,
                document_id=chunks[index].document_id,
                content=chunks[index].content,
                chunk_index=chunks[index].chunk_index,
                page_number=chunks[index].page_number,
                metadata=chunks[index].metadata,
                score=float(scores[index]),
                origin=Origin.LEXICAL,
            )
            for index in ranked
        ]
