"""Unit tests for IngestionService orchestration and the upload trigger."""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.interfaces.event_store import IEventStore
from src.interfaces.object_storage import IObjectStorage
from src.interfaces.ocr_provider import IOCRProvider
from src.models.ingestion import IngestionStage
from src.services.ingestion import ContentExtractor, IngestionService, TextChunker
from src.utils.errors import (
    EmptyContentError,
    ExternalServiceError,
    InvalidArgument,
    OperationTimeoutError,
)
from tests.conftest import MockEmbeddingProvider, MockVectorStore, make_pdf_bytes

_FIXED_NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def _build(
    embedding: MockEmbeddingProvider,
    vector_store: MockVectorStore,
    *,
    data: bytes = b"",
    content_type: str | None = "application/pdf",
    ocr_text: str = "",
    chunk_size: int = 3000,
    overlap: int = 300,
    concurrency: int = 1,
    timeout: float = 540.0,
) -> tuple[IngestionService, MagicMock, MagicMock]:
    storage = MagicMock(spec=IObjectStorage)
    storage.read = AsyncMock(return_value=data)
    storage.content_type = AsyncMock(return_value=content_type)

    event_store = MagicMock(spec=IEventStore)
    event_store.upsert_asset = AsyncMock()

    ocr = MagicMock(spec=IOCRProvider)
    ocr.extract_text = AsyncMock(return_value=ocr_text)

    service = IngestionService(
        extractor=ContentExtractor(ocr),
        chunker=TextChunker(chunk_size=chunk_size, overlap=overlap),
        embedding_provider=embedding,
        vector_store=vector_store,
        event_store=event_store,
        object_storage=storage,
        embedding_concurrency=concurrency,
        timeout_seconds=timeout,
        clock=lambda: _FIXED_NOW,
    )
    return service, storage, event_store


class TestTextPath:
    @pytest.mark.asyncio()
    async def test_vectors_carry_deterministic_ids_and_metadata(
        self, mock_embedding: MockEmbeddingProvider, mock_vector_store: MockVectorStore
    ) -> None:
        data = make_pdf_bytes([["x" * 60, "y" * 60]])
        service, _, event_store = _build(
            mock_embedding, mock_vector_store, data=data, chunk_size=50, overlap=10
        )

        result = await service.ingest_document("ev1", "events/ev1/docs/a.pdf")

        namespace = mock_vector_store.namespaces["ev1"]
        assert result.chunks == len(namespace) > 1
        assert result.stage == IngestionStage.DONE
        assert result.success
        for index in range(result.chunks):
            record = namespace[f"events/ev1/docs/a.pdf#{index}"]
            assert record.metadata["eventId"] == "ev1"
            assert record.metadata["storagePath"] == "events/ev1/docs/a.pdf"
            assert record.metadata["chunkIndex"] == index
            assert record.metadata["isImageFallback"] is False
            assert record.metadata["ingestedAt"] == _FIXED_NOW.isoformat()

        asset = event_store.upsert_asset.await_args.args[0]
        assert asset.embedded is True
        assert asset.chunk_count == result.chunks

    @pytest.mark.asyncio()
    async def test_reingestion_overwrites_same_ids(
        self, mock_embedding: MockEmbeddingProvider, mock_vector_store: MockVectorStore
    ) -> None:
        data = make_pdf_bytes([["Doors open at nine"]])
        service, _, _ = _build(mock_embedding, mock_vector_store, data=data)

        await service.ingest_document("ev1", "events/ev1/docs/a.pdf")
        await service.ingest_document("ev1", "events/ev1/docs/a.pdf")

        assert list(mock_vector_store.namespaces["ev1"]) == ["events/ev1/docs/a.pdf#0"]

    @pytest.mark.asyncio()
    async def test_concurrent_embedding_preserves_chunk_order(
        self, mock_embedding: MockEmbeddingProvider, mock_vector_store: MockVectorStore
    ) -> None:
        data = make_pdf_bytes([[f"line {i:03d} " + "z" * 40 for i in range(12)]])
        service, _, _ = _build(
            mock_embedding, mock_vector_store, data=data, chunk_size=100, overlap=20, concurrency=4
        )

        await service.ingest_document("ev1", "events/ev1/docs/a.pdf")

        from tests.conftest import _hash_to_vector

        for record in mock_vector_store.namespaces["ev1"].values():
            assert record.values == _hash_to_vector(record.metadata["text"])

    @pytest.mark.asyncio()
    async def test_content_type_looked_up_when_not_given(
        self, mock_embedding: MockEmbeddingProvider, mock_vector_store: MockVectorStore
    ) -> None:
        data = make_pdf_bytes([["Hello"]])
        service, storage, _ = _build(mock_embedding, mock_vector_store, data=data)

        await service.ingest_document("ev1", "events/ev1/docs/a.pdf")

        storage.content_type.assert_awaited_once_with("events/ev1/docs/a.pdf")


class TestImageFallback:
    @pytest.mark.asyncio()
    async def test_textless_image_embeds_raw_bytes_once(
        self, mock_embedding: MockEmbeddingProvider, mock_vector_store: MockVectorStore
    ) -> None:
        service, _, event_store = _build(
            mock_embedding, mock_vector_store, data=b"\x89PNG-bytes", content_type="image/png"
        )

        result = await service.ingest_document("ev1", "events/ev1/docs/map.png")

        assert result.chunks == 1
        assert result.image_fallback
        assert mock_embedding.binary_calls == [b"\x89PNG-bytes"]
        record = mock_vector_store.namespaces["ev1"]["events/ev1/docs/map.png#0"]
        assert record.metadata["isImageFallback"] is True
        assert record.metadata["text"] == ""
        assert event_store.upsert_asset.await_args.args[0].chunk_count == 1

    @pytest.mark.asyncio()
    async def test_image_with_text_goes_through_chunker(
        self, mock_embedding: MockEmbeddingProvider, mock_vector_store: MockVectorStore
    ) -> None:
        service, _, _ = _build(
            mock_embedding,
            mock_vector_store,
            data=b"img",
            content_type="image/jpeg",
            ocr_text="Main stage schedule",
        )

        result = await service.ingest_document("ev1", "events/ev1/docs/s.jpg")

        assert not result.image_fallback
        assert mock_embedding.calls == ["Main stage schedule"]
        assert mock_embedding.binary_calls == []


class TestFailures:
    @pytest.mark.asyncio()
    async def test_empty_pdf_writes_nothing(
        self, mock_embedding: MockEmbeddingProvider, mock_vector_store: MockVectorStore
    ) -> None:
        service, _, event_store = _build(
            mock_embedding, mock_vector_store, data=make_pdf_bytes([[]])
        )

        with pytest.raises(EmptyContentError):
            await service.ingest_document("ev1", "events/ev1/docs/blank.pdf")

        assert mock_embedding.calls == []
        assert mock_vector_store.namespaces == {}
        event_store.upsert_asset.assert_not_called()

    @pytest.mark.asyncio()
    async def test_upsert_failure_skips_asset_record(
        self, mock_embedding: MockEmbeddingProvider, mock_vector_store: MockVectorStore
    ) -> None:
        service, _, event_store = _build(
            mock_embedding, mock_vector_store, data=make_pdf_bytes([["Hi"]])
        )
        mock_vector_store.upsert = AsyncMock(side_effect=ExternalServiceError("index down"))

        with pytest.raises(ExternalServiceError):
            await service.ingest_document("ev1", "events/ev1/docs/a.pdf")

        event_store.upsert_asset.assert_not_called()

    @pytest.mark.asyncio()
    async def test_stale_chunk_listing_failure_keeps_result(
        self, mock_embedding: MockEmbeddingProvider, mock_vector_store: MockVectorStore
    ) -> None:
        service, _, event_store = _build(
            mock_embedding, mock_vector_store, data=make_pdf_bytes([["Hi"]])
        )
        mock_vector_store.list_records = AsyncMock(side_effect=ExternalServiceError("index down"))

        result = await service.ingest_document("ev1", "events/ev1/docs/a.pdf")

        assert result.stage == IngestionStage.DONE
        assert result.chunks == 1
        event_store.upsert_asset.assert_awaited_once()

    @pytest.mark.asyncio()
    @pytest.mark.parametrize(
        ("event_id", "path"),
        [("", "events/ev1/docs/a.pdf"), ("ev1", ""), ("ev1", "events/ev2/docs/a.pdf")],
    )
    async def test_invalid_arguments(
        self,
        mock_embedding: MockEmbeddingProvider,
        mock_vector_store: MockVectorStore,
        event_id: str,
        path: str,
    ) -> None:
        service, storage, _ = _build(mock_embedding, mock_vector_store)
        with pytest.raises(InvalidArgument):
            await service.ingest_document(event_id, path)
        storage.read.assert_not_called()

    @pytest.mark.asyncio()
    async def test_unsupported_stored_type(
        self, mock_embedding: MockEmbeddingProvider, mock_vector_store: MockVectorStore
    ) -> None:
        service, _, _ = _build(mock_embedding, mock_vector_store, data=b"x", content_type="text/csv")
        with pytest.raises(InvalidArgument):
            await service.ingest_document("ev1", "events/ev1/docs/a.csv")

    @pytest.mark.asyncio()
    async def test_timeout_maps_to_operation_timeout(
        self, mock_embedding: MockEmbeddingProvider, mock_vector_store: MockVectorStore
    ) -> None:
        import asyncio

        service, storage, _ = _build(mock_embedding, mock_vector_store, timeout=0.01)

        async def _slow_read(path: str) -> bytes:
            await asyncio.sleep(1)
            return b""

        storage.read = AsyncMock(side_effect=_slow_read)
        with pytest.raises(OperationTimeoutError):
            await service.ingest_document("ev1", "events/ev1/docs/a.pdf")


class TestStorageTrigger:
    @pytest.mark.asyncio()
    @pytest.mark.parametrize(
        "path",
        ["uploads/ev1/docs/a.pdf", "events/ev1/stories/a.jpg", "events//docs/a.pdf", ""],
    )
    async def test_paths_outside_docs_are_ignored(
        self,
        mock_embedding: MockEmbeddingProvider,
        mock_vector_store: MockVectorStore,
        path: str,
    ) -> None:
        service, storage, _ = _build(mock_embedding, mock_vector_store)
        assert await service.handle_object_finalized(path, "application/pdf") is None
        storage.read.assert_not_called()

    @pytest.mark.asyncio()
    async def test_other_content_types_are_noops(
        self, mock_embedding: MockEmbeddingProvider, mock_vector_store: MockVectorStore
    ) -> None:
        service, storage, _ = _build(mock_embedding, mock_vector_store)
        result = await service.handle_object_finalized("events/ev1/docs/notes.txt", "text/plain")
        assert result is None
        storage.read.assert_not_called()

    @pytest.mark.asyncio()
    async def test_pdf_is_dispatched_with_event_from_path(
        self, mock_embedding: MockEmbeddingProvider, mock_vector_store: MockVectorStore
    ) -> None:
        service, _, _ = _build(mock_embedding, mock_vector_store, data=make_pdf_bytes([["Hi"]]))
        result = await service.handle_object_finalized("events/ev9/docs/a.pdf", "application/pdf")

        assert result is not None
        assert result.event_id == "ev9"
        assert "ev9" in mock_vector_store.namespaces

    @pytest.mark.asyncio()
    async def test_pipeline_errors_are_reraised(
        self, mock_embedding: MockEmbeddingProvider, mock_vector_store: MockVectorStore
    ) -> None:
        service, _, _ = _build(mock_embedding, mock_vector_store, data=make_pdf_bytes([[]]))
        with pytest.raises(EmptyContentError):
            await service.handle_object_finalized("events/ev1/docs/a.pdf", "application/pdf")
