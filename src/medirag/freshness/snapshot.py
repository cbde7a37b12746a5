"""Process-wide document metadata snapshot, built once on first use."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Mapping, Protocol, Sequence

from medirag.metrics.observability import get_logger
from medirag.models import DocumentRecord


class DocumentMetadataSource(Protocol):
    async def list_documents(self) -> Sequence[DocumentRecord]:
        """Return per-document type and effective date."""


@dataclass(frozen=True)
class DocumentSnapshot:
    documents: Mapping[str, DocumentRecord] = field(default_factory=dict)
    last_ingested_at: datetime | None = None

    def get(self, document_id: str) -> DocumentRecord | None:
        return self.documents.get(document_id)

    @classmethod
    def from_records(cls, records: Iterable[DocumentRecord]) -> "DocumentSnapshot":
        documents = {record.document_id: record for record in records}
        ingested = [_as_utc(record.ingested_at) for record in documents.values() if record.ingested_at is not None]
        return cls(documents=documents, last_ingested_at=max(ingested) if ingested else None)


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps are stored as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class StaticDocumentCatalog:
    """Fixed document list, for tests and callers that load metadata elsewhere."""

    def __init__(self, records: Iterable[DocumentRecord] = ()) -> None:
        self._records = tuple(records)

    async def list_documents(self) -> Sequence[DocumentRecord]:
        return self._records


class DocumentMetadataSnapshot:
    """Lazily loads the document catalogue exactly once.

    Concurrent first callers wait on the same lock; only the winner reads the
    source and the rest observe the completed snapshot. A failed load is
    logged and yields an empty snapshot without being stored, so a later
    call retries.
    """

    def __init__(self, source: DocumentMetadataSource) -> None:
        self._source = source
        self._snapshot: DocumentSnapshot | None = None
        self._lock = asyncio.Lock()
        self._logger = get_logger("freshness.snapshot")

    @property
    def loaded(self) -> bool:
        return self._snapshot is not None

    async def get(self) -> DocumentSnapshot:
        if self._snapshot is not None:
            return self._snapshot
        async with self._lock:
            if self._snapshot is not None:
                return self._snapshot
            try:
                records = await self._source.list_documents()
                snapshot = DocumentSnapshot.from_records(records)
            except Exception as exc:
                self._logger.warning("freshness.snapshot_failed", detail=repr(exc))
                return DocumentSnapshot()
            self._snapshot = snapshot
            self._logger.info("freshness.snapshot_loaded", documents=len(self._snapshot.documents))
            return self._snapshot
