"""Ordered, best-effort deletion of everything an event owns.

The event's state lives in three independent stores (metadata store,
vector index, object storage) with no shared transaction, so teardown is a
saga without compensation.  Steps run in a fixed order:

  1. PARTICIPANTS -- clear each user's ``active_event_id``/``event_role``,
                     then delete the membership rows, one batch at a time.
  2. DOCUMENTS    -- delete document and asset records, then their files.
  3. STORIES      -- delete story and snap records, then their images.
  4. VECTORS      -- drop the event's vector namespace.
  5. STORAGE      -- sweep whatever is still under ``events/{eventId}/``.
  6. EVENT        -- delete the event record itself.

A failing step is logged, recorded in the report and skipped; the next step
still runs.  Per-file delete failures are recorded one by one and do not
end their step.  Step 6 is the exception: if the event record cannot be
deleted the saga raises :class:`EventRecordDeletionError`, so the event
stays visible and a later run can finish the job.

Running the saga twice is harmless.  Every listing of an already-empty
collection yields zero-size batches.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Awaitable, Callable

import structlog

from src.interfaces.cache_provider import ICacheProvider
from src.interfaces.event_store import IEventStore
from src.interfaces.object_storage import IObjectStorage
from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.event import StoryKind
from src.models.teardown import StepError, TeardownReport
from src.utils.concurrency import batched
from src.utils.errors import EventRecordDeletionError
from src.utils.logging import get_logger

logger: structlog.BoundLogger = get_logger(__name__)

DEFAULT_BATCH_SIZE = 100


def event_storage_prefix(event_id: str) -> str:
    """Storage prefix shared by every file of *event_id*."""
    return f"events/{event_id}/"


@dataclass
class _Tally:
    """Mutable counters filled in while the steps run."""

    participants: int = 0
    documents: int = 0
    assets: int = 0
    stories: int = 0
    snaps: int = 0
    storage_files: int = 0
    vectors_deleted: bool = False
    event_deleted: bool = False
    errors: list[StepError] = field(default_factory=list)

    def to_report(self, event_id: str) -> TeardownReport:
        return TeardownReport(
            event_id=event_id,
            participants=self.participants,
            documents=self.documents,
            assets=self.assets,
            stories=self.stories,
            snaps=self.snaps,
            storage_files=self.storage_files,
            vectors_deleted=self.vectors_deleted,
            event_deleted=self.event_deleted,
            errors=list(self.errors),
        )


class TeardownSaga:
    """Runs the six teardown steps for one event.

    Parameters
    ----------
    event_store:
        Participants, users, documents, assets, stories and the event.
    vector_store:
        Holds the namespace named after the event id.
    object_storage:
        Backing files under ``events/{eventId}/`` plus story images.
    cache:
        Optional; the event's cached document names are dropped with the
        document records.
    batch_size:
        Maximum ids per store mutation.
    """

    def __init__(
        self,
        event_store: IEventStore,
        vector_store: IVectorStoreProvider,
        object_storage: IObjectStorage,
        cache: ICacheProvider | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        if batch_size <= 0 or batch_size > DEFAULT_BATCH_SIZE:
            raise ValueError(f"batch_size must be in 1..{DEFAULT_BATCH_SIZE}, got {batch_size}")
        self._event_store = event_store
        self._vector_store = vector_store
        self._object_storage = object_storage
        self._cache = cache
        self._batch_size = batch_size

    async def run(self, event_id: str) -> TeardownReport:
        """Tear down *event_id* and return what was removed.

        Raises
        ------
        EventRecordDeletionError
            If the final step fails.  The partial report is attached.
        """
        tally = _Tally()
        steps: list[tuple[str, Callable[[str, _Tally], Awaitable[None]]]] = [
            ("participants", self._delete_participants),
            ("documents", self._delete_documents),
            ("stories", self._delete_stories),
            ("vectors", self._delete_vectors),
            ("storage", self._sweep_storage),
        ]

        for name, step in steps:
            try:
                await step(event_id, tally)
            except Exception as exc:  # noqa: BLE001
                logger.error("teardown_step_failed", event_id=event_id, step=name, error=str(exc))
                tally.errors.append(StepError(step=name, message=str(exc)))

        try:
            tally.event_deleted = await self._event_store.delete_event(event_id)
        except Exception as exc:
            tally.errors.append(StepError(step="event", message=str(exc)))
            report = tally.to_report(event_id)
            logger.error("teardown_event_record_failed", event_id=event_id, error=str(exc))
            raise EventRecordDeletionError(report) from exc

        report = tally.to_report(event_id)
        logger.info(
            "teardown_complete",
            event_id=event_id,
            participants=report.participants,
            documents=report.documents,
            assets=report.assets,
            stories=report.stories,
            snaps=report.snaps,
            storage_files=report.storage_files,
            vectors_deleted=report.vectors_deleted,
            event_deleted=report.event_deleted,
            errors=len(report.errors),
        )
        return report

    # -- Steps ---------------------------------------------------------------

    async def _delete_participants(self, event_id: str, tally: _Tally) -> None:
        participants = await self._event_store.list_participants(event_id)
        user_ids = [p.user_id for p in participants]
        for batch in batched(user_ids, self._batch_size):
            # Mirrors before rows: a retry must still find the participant.
            await self._event_store.clear_user_event_fields(event_id, list(batch))
            tally.participants += await self._event_store.delete_participants(
                event_id, list(batch)
            )

    async def _delete_documents(self, event_id: str, tally: _Tally) -> None:
        documents = await self._event_store.list_documents(event_id)
        assets = await self._event_store.list_assets(event_id)

        document_ids = [d.document_id for d in documents]
        for batch in batched(document_ids, self._batch_size):
            tally.documents += await self._event_store.delete_documents(event_id, list(batch))

        asset_paths = [a.storage_path for a in assets]
        for batch in batched(asset_paths, self._batch_size):
            tally.assets += await self._event_store.delete_assets(list(batch))

        if self._cache is not None:
            await self._cache.delete_prefix(f"docname:{event_id}:")

        paths = dict.fromkeys([d.storage_path for d in documents] + asset_paths)
        await self._delete_files("documents", list(paths), tally)

    async def _delete_stories(self, event_id: str, tally: _Tally) -> None:
        stories = await self._event_store.list_stories(event_id)
        story_ids = [s.story_id for s in stories]
        for batch in batched(story_ids, self._batch_size):
            await self._event_store.delete_stories(list(batch))

        tally.stories += sum(1 for s in stories if s.kind == StoryKind.STORY)
        tally.snaps += sum(1 for s in stories if s.kind == StoryKind.SNAP)

        image_paths = [s.image_path for s in stories if s.image_path]
        await self._delete_files("stories", image_paths, tally)

    async def _delete_vectors(self, event_id: str, tally: _Tally) -> None:
        await self._vector_store.delete_namespace(event_id)
        tally.vectors_deleted = True

    async def _sweep_storage(self, event_id: str, tally: _Tally) -> None:
        remaining = await self._object_storage.list_prefix(event_storage_prefix(event_id))
        await self._delete_files("storage", remaining, tally)

    async def _delete_files(self, step: str, paths: list[str], tally: _Tally) -> None:
        for path in paths:
            try:
                removed = await self._object_storage.delete(path)
            except Exception as exc:  # noqa: BLE001
                logger.warning("teardown_file_delete_failed", step=step, path=path, error=str(exc))
                tally.errors.append(StepError(step=step, message=str(exc), target=path))
                continue
            if removed:
                tally.storage_files += 1
