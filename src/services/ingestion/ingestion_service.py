"""Orchestrator for per-asset document ingestion.

Pipeline stages: **extract -> chunk -> embed -> upsert -> record**.

The :class:`IngestionService` coordinates the content extractor, chunker,
embedding provider, vector index and event store without any of them
knowing about each other.  For one storage path:

    1. ObjectStorage        -- read the uploaded bytes
    2. ContentExtractor     -- PDF text / OCR text / image fallback
    3. TextChunker          -- 3000-char windows with 300-char overlap
    4. IEmbeddingProvider   -- one vector per chunk, in chunk order
    5. IVectorStoreProvider -- upsert into namespace = event id
    6. IEventStore          -- asset record ``{embedded: true, chunks: N}``

Any failure aborts the run; the asset record is only written after step 5
succeeds.  Vector IDs are ``{storagePath}#{chunkIndex}`` so a re-run
overwrites the previous vectors; once the asset is recorded, vectors of
the same path with an index at or past the new chunk count are pruned.  A
run that dies between steps 5 and 6 leaves vectors with no asset record;
:class:`OrphanReconciler` removes those later.

All dependencies are injected via constructor.
"""

from __future__ import annotations

import re
import time
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable

import structlog

from src.models.event import Asset
from src.models.ingestion import ExtractedContent, IngestionResult, IngestionStage
from src.models.rag import VectorRecord, make_vector_id
from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.content_extractor import ContentExtractor, is_image, is_pdf
from src.utils.concurrency import run_with_timeout, throttled_gather
from src.utils.errors import InvalidArgument
from src.utils.logging import bind_event_context

if TYPE_CHECKING:
    from src.interfaces.embedding_provider import IEmbeddingProvider
    from src.interfaces.event_store import IEventStore
    from src.interfaces.object_storage import IObjectStorage
    from src.interfaces.vector_store_provider import IVectorStoreProvider

logger = structlog.get_logger(logger_name=__name__)

# Uploaded event documents live under events/{eventId}/docs/.
DOCUMENT_PATH_PATTERN = re.compile(r"^events/([^/]+)/docs/")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IngestionService:
    """Ingests one uploaded file into its event's knowledge base.

    Parameters
    ----------
    extractor:
        PDF/OCR text extraction with the image fallback.
    chunker:
        Fixed-window splitter.
    embedding_provider:
        Produces one vector per chunk (or per fallback image).
    vector_store:
        Namespace-scoped vector index.
    event_store:
        Receives the asset status record on success.
    object_storage:
        Source of the uploaded bytes and their content type.
    embedding_concurrency:
        Chunk embeddings in flight at once.  ``1`` embeds sequentially.
    upsert_batch_size:
        Records per upsert call (capped at 100 by the vector store).
    timeout_seconds:
        Wall-clock budget for one :meth:`ingest_document` call.
    """

    def __init__(
        self,
        extractor: ContentExtractor,
        chunker: TextChunker,
        embedding_provider: IEmbeddingProvider,
        vector_store: IVectorStoreProvider,
        event_store: IEventStore,
        object_storage: IObjectStorage,
        embedding_concurrency: int = 1,
        upsert_batch_size: int = 100,
        timeout_seconds: float = 540.0,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._extractor = extractor
        self._chunker = chunker
        self._embedding_provider = embedding_provider
        self._vector_store = vector_store
        self._event_store = event_store
        self._storage = object_storage
        self._embedding_concurrency = max(1, embedding_concurrency)
        self._upsert_batch_size = upsert_batch_size
        self._timeout_seconds = timeout_seconds
        self._clock = clock

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def ingest_document(
        self,
        event_id: str,
        storage_path: str,
        content_type: str | None = None,
    ) -> IngestionResult:
        """Run the full pipeline for one stored file.

        Parameters
        ----------
        event_id:
            Owning event; also the vector namespace.
        storage_path:
            Must live under ``events/{event_id}/``.
        content_type:
            Declared type; looked up from storage when omitted.

        Raises
        ------
        InvalidArgument
            Missing ids, a path outside the event's prefix, or an
            unsupported content type.
        ExtractionError, EmptyContentError, ExternalServiceError
            Propagated from the failing stage; nothing is recorded.
        OperationTimeoutError
            If the run exceeds ``timeout_seconds``.
        """
        if not event_id or not storage_path:
            raise InvalidArgument("Missing required parameters: eventId and storagePath")
        if not storage_path.startswith(f"events/{event_id}/"):
            raise InvalidArgument(
                f"Storage path {storage_path!r} does not belong to event {event_id!r}"
            )

        return await run_with_timeout(
            self._run(event_id, storage_path, content_type),
            timeout=self._timeout_seconds,
            operation="ingest_document",
        )

    async def handle_object_finalized(
        self,
        storage_path: str,
        content_type: str | None,
    ) -> IngestionResult | None:
        """Upload trigger: ingest files under ``events/{id}/docs/``.

        Returns ``None`` when the object is not an event document or its
        type is neither PDF nor image.  Pipeline errors are logged and
        re-raised so the trigger infrastructure sees the failure.
        """
        match = DOCUMENT_PATH_PATTERN.match(storage_path or "")
        if match is None:
            logger.debug("storage_trigger_ignored_path", storage_path=storage_path)
            return None

        event_id = match.group(1)
        if not (is_pdf(content_type) or is_image(content_type)):
            logger.info(
                "storage_trigger_unsupported_type",
                storage_path=storage_path,
                content_type=content_type,
            )
            return None

        try:
            return await self.ingest_document(event_id, storage_path, content_type)
        except Exception as exc:
            logger.error(
                "storage_trigger_ingestion_failed",
                event_id=event_id,
                storage_path=storage_path,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _run(
        self,
        event_id: str,
        storage_path: str,
        content_type: str | None,
    ) -> IngestionResult:
        bind_event_context(event_id, storage_path=storage_path)
        start = time.monotonic()
        stage = IngestionStage.UPLOADED

        try:
            data = await self._storage.read(storage_path)
            content_type = content_type or await self._storage.content_type(storage_path)
            if not (is_pdf(content_type) or is_image(content_type)):
                raise InvalidArgument(f"Unsupported content type: {content_type!r}")

            extracted = await self._extractor.extract(data, content_type)
            stage = IngestionStage.EXTRACTED

            ingested_at = self._clock().isoformat()
            if extracted.is_fallback:
                records = await self._fallback_records(event_id, storage_path, extracted, ingested_at)
                stage = IngestionStage.EMBEDDED
            else:
                chunks = self._chunker.chunk(extracted.text)
                stage = IngestionStage.CHUNKED
                vectors = await self._embed_chunks(chunks)
                stage = IngestionStage.EMBEDDED
                records = [
                    VectorRecord(
                        id=make_vector_id(storage_path, index),
                        values=vector,
                        metadata={
                            "eventId": event_id,
                            "storagePath": storage_path,
                            "chunkIndex": index,
                            "text": chunk,
                            "ingestedAt": ingested_at,
                            "isImageFallback": False,
                        },
                    )
                    for index, (chunk, vector) in enumerate(zip(chunks, vectors, strict=True))
                ]

            await self._vector_store.upsert(event_id, records, batch_size=self._upsert_batch_size)
            stage = IngestionStage.UPSERTED

            await self._event_store.upsert_asset(
                Asset(
                    storage_path=storage_path,
                    event_id=event_id,
                    embedded=True,
                    chunk_count=len(records),
                    updated_at=self._clock(),
                )
            )
            stage = IngestionStage.DONE
        except Exception as exc:
            logger.error(
                "ingestion_failed",
                event_id=event_id,
                storage_path=storage_path,
                stage_reached=stage.value,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise

        stale = await self._prune_stale_chunks(event_id, storage_path, len(records))

        elapsed = round(time.monotonic() - start, 3)
        logger.info(
            "ingestion_complete",
            event_id=event_id,
            storage_path=storage_path,
            chunks=len(records),
            stale_chunks_removed=stale,
            image_fallback=extracted.is_fallback,
            elapsed_seconds=elapsed,
        )
        return IngestionResult(
            event_id=event_id,
            storage_path=storage_path,
            chunks=len(records),
            stage=stage,
            image_fallback=extracted.is_fallback,
            elapsed_seconds=elapsed,
        )

    async def _prune_stale_chunks(self, event_id: str, storage_path: str, chunk_count: int) -> int:
        """Delete vectors left by an earlier, longer version of *storage_path*.

        Runs after the asset is recorded.  A failure is logged only; the
        orphan reconciler removes indexes at or past the asset's chunk count.
        """
        try:
            records = await self._vector_store.list_records(event_id)
            stale = [
                record["id"]
                for record in records
                if (record.get("metadata") or {}).get("storagePath") == storage_path
                and int((record.get("metadata") or {}).get("chunkIndex", 0)) >= chunk_count
            ]
            if not stale:
                return 0
            return await self._vector_store.delete_records(event_id, stale)
        except Exception as exc:
            logger.warning(
                "stale_chunk_prune_failed",
                event_id=event_id,
                storage_path=storage_path,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return 0

    async def _embed_chunks(self, chunks: list[str]) -> list[list[float]]:
        """Embed chunks in order, sequentially or with bounded concurrency."""
        if self._embedding_concurrency == 1:
            vectors: list[list[float]] = []
            for chunk in chunks:
                vectors.append(await self._embedding_provider.embed_single(chunk))
            return vectors

        return await throttled_gather(
            [self._embedding_provider.embed_single(chunk) for chunk in chunks],
            limit=self._embedding_concurrency,
        )

    async def _fallback_records(
        self,
        event_id: str,
        storage_path: str,
        extracted: ExtractedContent,
        ingested_at: str,
    ) -> list[VectorRecord]:
        """Single record embedding the raw image when OCR found no text."""
        vector = await self._embedding_provider.embed_binary(extracted.raw_bytes or b"")
        return [
            VectorRecord(
                id=make_vector_id(storage_path, 0),
                values=vector,
                metadata={
                    "eventId": event_id,
                    "storagePath": storage_path,
                    "chunkIndex": 0,
                    "text": "",
                    "ingestedAt": ingested_at,
                    "isImageFallback": True,
                },
            )
        ]
