"""Unit tests for OrphanReconciler."""

from __future__ import annotations

from datetime import timedelta

import pytest

from src.models.event import Asset
from src.models.rag import VectorRecord
from src.services.lifecycle.orphan_reconciler import OrphanReconciler, _parse_ingested_at


def _record(path: str, ingested_at: str | None, index: int = 0) -> VectorRecord:
    metadata = {"storagePath": path, "chunkIndex": index}
    if ingested_at is not None:
        metadata["ingestedAt"] = ingested_at
    return VectorRecord(id=f"{path}#{index}", values=[1.0, 0.0], metadata=metadata)


class TestParseIngestedAt:
    def test_offset_and_zulu(self) -> None:
        a = _parse_ingested_at("2026-03-10T10:00:00+00:00")
        b = _parse_ingested_at("2026-03-10T10:00:00Z")
        assert a == b
        assert a is not None and a.tzinfo is not None

    def test_naive_is_utc(self) -> None:
        parsed = _parse_ingested_at("2026-03-10T10:00:00")
        assert parsed is not None
        assert parsed.utcoffset() == timedelta(0)

    @pytest.mark.parametrize("value", [None, "", "yesterday", 12345])
    def test_unparseable(self, value) -> None:
        assert _parse_ingested_at(value) is None


class TestReconcile:
    @pytest.mark.asyncio()
    async def test_only_stale_unrecorded_vectors_removed(
        self, event_store, mock_vector_store, now
    ) -> None:
        stale = (now - timedelta(hours=2)).isoformat()
        fresh = (now - timedelta(minutes=5)).isoformat()
        await event_store.upsert_asset(
            Asset(storage_path="events/ev1/docs/done.pdf", event_id="ev1", embedded=True,
                  chunk_count=1, updated_at=now)
        )
        await mock_vector_store.upsert(
            "ev1",
            [
                _record("events/ev1/docs/done.pdf", stale),
                _record("events/ev1/docs/crashed.pdf", stale, 0),
                _record("events/ev1/docs/crashed.pdf", stale, 1),
                _record("events/ev1/docs/inflight.pdf", fresh),
                _record("events/ev1/docs/legacy.pdf", None),
            ],
        )
        reconciler = OrphanReconciler(event_store, mock_vector_store, min_age_seconds=3600)

        orphans = await reconciler.find_orphans("ev1", now)
        assert sorted(orphans) == [
            "events/ev1/docs/crashed.pdf#0",
            "events/ev1/docs/crashed.pdf#1",
        ]

        removed = await reconciler.reconcile("ev1", now)

        assert removed == 2
        assert sorted(mock_vector_store.namespaces["ev1"]) == [
            "events/ev1/docs/done.pdf#0",
            "events/ev1/docs/inflight.pdf#0",
            "events/ev1/docs/legacy.pdf#0",
        ]

    @pytest.mark.asyncio()
    async def test_asset_not_embedded_counts_as_missing(
        self, event_store, mock_vector_store, now
    ) -> None:
        stale = (now - timedelta(hours=2)).isoformat()
        await event_store.upsert_asset(
            Asset(storage_path="events/ev1/docs/a.pdf", event_id="ev1", embedded=False,
                  updated_at=now)
        )
        await mock_vector_store.upsert("ev1", [_record("events/ev1/docs/a.pdf", stale)])

        reconciler = OrphanReconciler(event_store, mock_vector_store)
        assert await reconciler.reconcile("ev1", now) == 1

    @pytest.mark.asyncio()
    async def test_empty_namespace(self, event_store, mock_vector_store, now) -> None:
        reconciler = OrphanReconciler(event_store, mock_vector_store)
        assert await reconciler.reconcile("ev1", now) == 0

    @pytest.mark.asyncio()
    async def test_indexes_past_recorded_chunk_count_removed(
        self, event_store, mock_vector_store, now
    ) -> None:
        path = "events/ev1/docs/handbook.pdf"
        stale = (now - timedelta(hours=2)).isoformat()
        await event_store.upsert_asset(
            Asset(storage_path=path, event_id="ev1", embedded=True, chunk_count=1, updated_at=now)
        )
        await mock_vector_store.upsert(
            "ev1", [_record(path, stale, 0), _record(path, stale, 1), _record(path, stale, 2)]
        )

        reconciler = OrphanReconciler(event_store, mock_vector_store, min_age_seconds=3600)

        assert await reconciler.reconcile("ev1", now) == 2
        assert list(mock_vector_store.namespaces["ev1"]) == [f"{path}#0"]
