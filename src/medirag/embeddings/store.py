"""Chroma-backed vector index over the chunk corpus."""

from __future__ import annotations

import asyncio
import json
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, MutableMapping, Protocol, Sequence

import chromadb
from chromadb.api import ClientAPI
from chromadb.api.types import Documents, Embeddings as ChromaEmbeddings, IDs, Metadatas

from medirag.embeddings.service import EmbeddingBackend
from medirag.errors import VectorSearchError
from medirag.models import DocumentChunk, DocumentRecord, Origin, SearchResult


class VectorIndex(Protocol):
    """Vector-similarity search over chunk embeddings."""

    async def search(self, vector: Sequence[float], top_k: int) -> Sequence[SearchResult]:
        """Return at most ``top_k`` chunks, best first."""


class ChromaVectorIndex:
    """Vector index stored in a Chroma collection with cosine distance."""

    _PAGE_SIZE = 1000

    def __init__(
        self,
        embedding_backend: EmbeddingBackend,
        collection_name: str = "medirag-chunks",
        *,
        client: ClientAPI | None = None,
        persist_directory: str | Path | None = None,
    ) -> None:
        if client is not None:
            self._client = client
        elif persist_directory is not None:
            self._client = chromadb.PersistentClient(path=str(persist_directory))
        else:
            self._client = chromadb.EphemeralClient()
        self._collection = self._client.get_or_create_collection(
            name=collection_name,
            metadata={"hnsw:space": "cosine"},
        )
        self._backend = embedding_backend

    def upsert(self, chunks: Sequence[DocumentChunk]) -> Sequence[str]:
        if not chunks:
            return []
        vectors = self._backend.embed_texts([chunk.content for chunk in chunks])
        ids: IDs = [chunk.chunk_id for chunk in chunks]
        documents: Documents = [chunk.content for chunk in chunks]
        metadatas: Metadatas = [self._serialize_chunk(chunk) for chunk in chunks]
        embeddings: ChromaEmbeddings = [list(vector) for vector in vectors]
        self._collection.upsert(ids=ids, documents=documents, embeddings=embeddings, metadatas=metadatas)
        return list(ids)

    async def search(self, vector: Sequence[float], top_k: int) -> Sequence[SearchResult]:
        if top_k <= 0:
            return []
        try:
            return await asyncio.to_thread(self._query, list(vector), top_k)
        except Exception as exc:
            raise VectorSearchError("Failed to search vectors", cause=exc) from exc

    def _query(self, vector: list[float], top_k: int) -> Sequence[SearchResult]:
        n_results = min(top_k, self.count())
        if n_results <= 0:
            return []
        results = self._collection.query(query_embeddings=[vector], n_results=n_results)
        return self._deserialize_results(results)

    def count(self) -> int:
        return int(self._collection.count())

    def iter_chunks(self) -> Iterable[DocumentChunk]:
        """Yield every stored chunk, paging through the collection."""

        offset = 0
        while True:
            batch = self._collection.get(
                include=["documents", "metadatas"],
                limit=self._PAGE_SIZE,
                offset=offset,
            )
            ids = batch.get("ids") or []
            if not ids:
                break
            documents = batch.get("documents") or []
            metadatas = batch.get("metadatas") or []
            for chunk_id, document, metadata in zip(ids, documents, metadatas, strict=False):
                yield self._deserialize_chunk(chunk_id, document, metadata or {})
            if len(ids) < self._PAGE_SIZE:
                break
            offset += self._PAGE_SIZE

    async def list_documents(self) -> Sequence[DocumentRecord]:
        """Aggregate per-document freshness metadata from chunk metadata."""

        return await asyncio.to_thread(self._collect_documents)

    def _collect_documents(self) -> Sequence[DocumentRecord]:
        records: dict[str, DocumentRecord] = {}
        for chunk in self.iter_chunks():
            found = DocumentRecord(
                document_id=chunk.document_id,
                document_type=_optional_str(chunk.metadata.get("document_type")),
                effective_date=_parse_date(chunk.metadata.get("effective_date")),
                ingested_at=_parse_datetime(chunk.metadata.get("ingested_at")),
            )
            known = records.get(chunk.document_id)
            if known is None:
                records[chunk.document_id] = found
                continue
            # Chunks of one document may each carry only part of its metadata
            records[chunk.document_id] = DocumentRecord(
                document_id=known.document_id,
                document_type=known.document_type or found.document_type,
                effective_date=known.effective_date or found.effective_date,
                ingested_at=known.ingested_at or found.ingested_at,
            )
        return list(records.values())

    def reset(self) -> None:
        ids = self._collection.get(include=[]).get("ids") or []
        if ids:
            self._collection.delete(ids=ids)

    def _serialize_chunk(self, chunk: DocumentChunk) -> MutableMapping[str, object]:
        metadata: MutableMapping[str, object] = {
            "document_id": chunk.document_id,
            "chunk_index": chunk.chunk_index,
            "chunk_metadata": self._dumps(chunk.metadata),
        }
        # Chroma rejects None metadata values
        if chunk.page_number is not None:
            metadata["page_number"] = chunk.page_number
        return metadata

    def _deserialize_results(self, results: Mapping[str, object]) -> Sequence[SearchResult]:
        ids = self._first(results.get("ids", []))
        documents = self._first(results.get("documents", []))
        metadatas = self._first(results.get("metadatas", []))
        distances = self._first(results.get("distances", []))
        retrieved: list[SearchResult] = []
        if not ids or not documents or not metadatas:
            return retrieved
        for idx, doc, metadata, distance in zip(ids, documents, metadatas, distances or [], strict=False):
            chunk = self._deserialize_chunk(idx, doc, metadata)
            retrieved.append(
                SearchResult(
                    chunk_id=chunk.chunk_id,
                    document_id=chunk.document_id,
                    content=chunk.content,
                    chunk_index=chunk.chunk_index,
                    page_number=chunk.page_number,
                    metadata=chunk.metadata,
                    score=1.0 - float(distance) if distance is not None else 0.0,
                    origin=Origin.VECTOR,
                )
            )
        return retrieved

    def _deserialize_chunk(self, chunk_id: str, document: str, metadata: Mapping[str, object]) -> DocumentChunk:
        page = metadata.get("page_number")
        return DocumentChunk(
            chunk_id=chunk_id,
            document_id=str(metadata.get("document_id", "")),
            content=document or "",
            chunk_index=int(metadata.get("chunk_index", 0)),
            page_number=int(page) if page is not None else None,
            metadata=self._loads_dict(metadata.get("chunk_metadata")),
        )

    @staticmethod
    def _first(value: object) -> list:
        if isinstance(value, list):
            return value[0] if value else []
        return []

    @staticmethod
    def _dumps(value: object) -> str:
        try:
            return json.dumps(value, default=str)
        except TypeError:
            return json.dumps({}, default=str)

    @staticmethod
    def _loads_dict(value: object) -> Dict[str, Any]:
        if isinstance(value, str) and value:
            try:
                loaded = json.loads(value)
                if isinstance(loaded, dict):
                    return loaded
            except json.JSONDecodeError:
                return {}
        if isinstance(value, Mapping):
            return dict(value)
        return {}


def _optional_str(value: object) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def _parse_date(value: object) -> date | None:
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value:
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            return None
    return None


def _parse_datetime(value: object) -> datetime | None:
    parsed: datetime | None = None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            return None
    if parsed is not None and parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
