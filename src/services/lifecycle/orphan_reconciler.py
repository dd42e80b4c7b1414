"""Removal of vectors whose ingestion never finished.

Ingestion writes vectors before the asset record, and the two stores share
no transaction.  A run that dies between the upsert and the asset write
leaves searchable vectors for a file the metadata store says was never
indexed.  The reconciler finds those vectors and deletes them.

A vector is an orphan when both hold:

  * no asset record with ``embedded`` set exists for its ``storagePath``,
    or its ``chunkIndex`` is at or past that asset's ``chunk_count`` (left
    behind when a shorter version of the file replaced a longer one);
  * its ``ingestedAt`` is at least ``min_age`` old, so an ingestion still
    in flight is left alone.

Vectors without a parseable ``ingestedAt`` are never treated as orphans.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import structlog

from src.interfaces.event_store import IEventStore
from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.utils.logging import get_logger

logger: structlog.BoundLogger = get_logger(__name__)


def _parse_ingested_at(value: object) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _chunk_index(metadata: dict) -> int:
    try:
        return int(metadata.get("chunkIndex", 0))
    except (TypeError, ValueError):
        return 0


class OrphanReconciler:
    """Deletes stale vectors that have no completed asset record."""

    def __init__(
        self,
        event_store: IEventStore,
        vector_store: IVectorStoreProvider,
        min_age_seconds: float = 3600,
    ) -> None:
        self._event_store = event_store
        self._vector_store = vector_store
        self._min_age = timedelta(seconds=min_age_seconds)

    async def find_orphans(self, event_id: str, now: datetime) -> list[str]:
        """Return the ids of orphaned vectors in *event_id*'s namespace."""
        assets = await self._event_store.list_assets(event_id)
        chunk_counts = {a.storage_path: a.chunk_count for a in assets if a.embedded}
        records = await self._vector_store.list_records(event_id)

        orphans: list[str] = []
        for record in records:
            metadata = record.get("metadata") or {}
            chunk_count = chunk_counts.get(metadata.get("storagePath"))
            if chunk_count is not None and _chunk_index(metadata) < chunk_count:
                continue
            ingested_at = _parse_ingested_at(metadata.get("ingestedAt"))
            if ingested_at is None or now - ingested_at < self._min_age:
                continue
            orphans.append(record["id"])
        return orphans

    async def reconcile(self, event_id: str, now: datetime | None = None) -> int:
        """Delete orphaned vectors for *event_id*; returns how many were removed."""
        now = now or datetime.now(timezone.utc)
        orphans = await self.find_orphans(event_id, now)
        if not orphans:
            return 0

        removed = await self._vector_store.delete_records(event_id, orphans)
        logger.info("orphan_vectors_removed", event_id=event_id, removed=removed)
        return removed
