"""Event end-of-life: authorisation and triggering of the teardown saga.

Three entry points lead to the same :class:`TeardownSaga`:

* :meth:`EventLifecycleService.end_event` -- the host ends their event.
* :meth:`EventLifecycleService.delete_expired_content` -- anyone may clean
  up an event once it is expired (24 h after ``end_time``); the host may do
  so at any time; ``force_delete`` skips the check.
* :meth:`EventLifecycleService.sweep_expired_events` -- the daily scheduled
  job, acting as ``"system"`` in forced mode.

Before the saga runs the event is marked ``ended`` (host) or ``expired``
(cleanup and sweep).  If its record survives a failed teardown, the sweep
picks it up again whatever its end time.

An event whose record is already gone raises ``NotFound``, which is what a
second teardown of the same event sees.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable

import structlog

from src.interfaces.event_store import IEventStore
from src.models.event import Event, EventStatus
from src.models.teardown import SweepSummary, TeardownReport
from src.services.lifecycle.orphan_reconciler import OrphanReconciler
from src.services.lifecycle.teardown_saga import TeardownSaga
from src.utils.concurrency import run_with_timeout
from src.utils.errors import (
    AuthenticationRequired,
    InvalidArgument,
    NotFound,
    PermissionDenied,
)
from src.utils.logging import bind_event_context, clear_event_context, get_logger

logger: structlog.BoundLogger = get_logger(__name__)

SYSTEM_CALLER = "system"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_cleanup_allowed(event: Event, caller_id: str, force_delete: bool, now: datetime,
                       grace: timedelta) -> bool:
    """``force_delete or caller is host or event is expired``."""
    return force_delete or caller_id == event.host_id or event.is_expired(now, grace)


class EventLifecycleService:
    """Authorises teardown requests and runs the saga under a time budget.

    Parameters
    ----------
    event_store:
        Looked up for the event before any deletion happens.
    saga:
        Performs the deletion.
    reconciler:
        When given, the sweep also removes orphaned vectors from events
        that are still within their lifetime.
    grace_period:
        Time after ``end_time`` at which an event counts as expired.
    timeout_seconds:
        Budget for one event's teardown.
    """

    def __init__(
        self,
        event_store: IEventStore,
        saga: TeardownSaga,
        reconciler: OrphanReconciler | None = None,
        grace_period: timedelta = timedelta(hours=24),
        timeout_seconds: float = 300.0,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._event_store = event_store
        self._saga = saga
        self._reconciler = reconciler
        self._grace = grace_period
        self._timeout_seconds = timeout_seconds
        self._clock = clock

    @property
    def grace_period(self) -> timedelta:
        return self._grace

    async def end_event(self, caller_id: str | None, event_id: str, user_id: str) -> TeardownReport:
        """Host-initiated teardown.

        Raises
        ------
        AuthenticationRequired
            No caller identity.
        InvalidArgument
            Missing event id or user id.
        PermissionDenied
            Caller is not *user_id*, or *user_id* is not the host.
        NotFound
            The event does not exist (or was already torn down).
        EventRecordDeletionError
            The event record itself could not be deleted.
        """
        if not caller_id:
            raise AuthenticationRequired("User must be authenticated")
        if not event_id or not user_id:
            raise InvalidArgument("eventId and userId are required")
        if caller_id != user_id:
            raise PermissionDenied("User can only end events on their own behalf")

        event = await self._require_event(event_id)
        if event.host_id != user_id:
            raise PermissionDenied("Only the event host can end the event")

        return await self._teardown(event, trigger="end_event", caller_id=caller_id)

    async def delete_expired_content(
        self,
        caller_id: str | None,
        event_id: str,
        force_delete: bool = False,
    ) -> TeardownReport:
        """Teardown by host, by anyone once expired, or unconditionally when forced.

        Raises
        ------
        AuthenticationRequired, InvalidArgument, NotFound
            As for :meth:`end_event`.
        PermissionDenied
            Not forced, caller is not the host, and the event has not expired.
        """
        if not caller_id:
            raise AuthenticationRequired("User must be authenticated")
        if not event_id:
            raise InvalidArgument("eventId is required")

        event = await self._require_event(event_id)
        if not is_cleanup_allowed(event, caller_id, force_delete, self._clock(), self._grace):
            raise PermissionDenied(
                "Only the host can manually end an event, "
                "or content expires 24h after event end"
            )

        if force_delete and caller_id != event.host_id:
            logger.warning("forced_cleanup", event_id=event_id, caller_id=caller_id)
        return await self._teardown(event, trigger="cleanup", caller_id=caller_id)

    async def sweep_expired_events(self, now: datetime | None = None) -> SweepSummary:
        """Tear down every event that ended more than the grace period ago.

        A failure on one event is logged and the sweep moves on.  Events
        whose record survived a failure are selected again next cycle.
        """
        now = now or self._clock()
        cutoff = now - self._grace
        expired = await self._event_store.list_events_ended_before(cutoff)
        logger.info("sweep_started", cutoff=cutoff.isoformat(), candidates=len(expired))

        swept = 0
        partial = 0
        failed: list[str] = []
        for event in expired:
            try:
                report = await self._teardown(event, trigger="sweep", caller_id=SYSTEM_CALLER)
            except Exception as exc:  # noqa: BLE001
                logger.error("sweep_event_failed", event_id=event.event_id, error=str(exc))
                failed.append(event.event_id)
                continue
            swept += 1
            if not report.ok:
                partial += 1
                logger.warning(
                    "sweep_event_partial",
                    event_id=event.event_id,
                    errors=[str(e) for e in report.errors],
                )

        orphans_removed = await self._reconcile_live_events(cutoff, now)

        summary = SweepSummary(
            cutoff=cutoff,
            events_swept=swept,
            events_partial=partial,
            events_failed=failed,
            orphans_removed=orphans_removed,
        )
        logger.info(
            "sweep_complete",
            swept=summary.events_swept,
            partial=summary.events_partial,
            failed=len(summary.events_failed),
            orphans_removed=summary.orphans_removed,
        )
        return summary

    async def reconcile_event(self, event_id: str) -> int:
        """Remove orphaned vectors from one event; ``0`` without a reconciler."""
        if self._reconciler is None:
            return 0
        await self._require_event(event_id)
        return await self._reconciler.reconcile(event_id, self._clock())

    # -- Internals -----------------------------------------------------------

    async def _require_event(self, event_id: str) -> Event:
        event = await self._event_store.get_event(event_id)
        if event is None:
            raise NotFound("Event not found")
        return event

    async def _teardown(self, event: Event, trigger: str, caller_id: str) -> TeardownReport:
        bind_event_context(event.event_id, trigger=trigger, caller_id=caller_id)
        try:
            logger.info("teardown_started", event_id=event.event_id, trigger=trigger)
            # A record that survives a failed teardown stays due for the sweep.
            status = EventStatus.ENDED if trigger == "end_event" else EventStatus.EXPIRED
            if event.status is not status:
                await self._event_store.save_event(event.model_copy(update={"status": status}))
            return await run_with_timeout(
                self._saga.run(event.event_id),
                timeout=self._timeout_seconds,
                operation="teardown",
            )
        finally:
            clear_event_context()

    async def _reconcile_live_events(self, cutoff: datetime, now: datetime) -> int:
        if self._reconciler is None:
            return 0

        removed = 0
        for event in await self._event_store.list_events_ended_after(cutoff):
            try:
                removed += await self._reconciler.reconcile(event.event_id, now)
            except Exception as exc:  # noqa: BLE001
                logger.error("reconcile_event_failed", event_id=event.event_id, error=str(exc))
        return removed
