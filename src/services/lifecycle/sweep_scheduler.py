"""Daily expired-event sweep on an in-process APScheduler.

The job fires at ``sweep_hour:sweep_minute`` UTC (02:00 by default) and
calls :meth:`EventLifecycleService.sweep_expired_events`.  Runs never
overlap, and a run missed while the process was down is executed once on
start-up if it is less than ``misfire_grace_time`` late.
"""

from __future__ import annotations

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_MISSED, JobExecutionEvent
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
import structlog

from src.services.lifecycle.lifecycle_service import EventLifecycleService
from src.utils.logging import get_logger

logger: structlog.BoundLogger = get_logger(__name__)

SWEEP_JOB_ID = "expired_event_sweep"


class SweepScheduler:
    """Owns the scheduler and the single sweep job."""

    def __init__(
        self,
        lifecycle: EventLifecycleService,
        hour: int = 2,
        minute: int = 0,
        misfire_grace_time: int = 3600,
        scheduler: AsyncIOScheduler | None = None,
    ) -> None:
        self._lifecycle = lifecycle
        self._trigger = CronTrigger(hour=hour, minute=minute, timezone="UTC")
        self._misfire_grace_time = misfire_grace_time
        self._scheduler = scheduler or AsyncIOScheduler(timezone="UTC")

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def start(self) -> None:
        """Register the job and start the scheduler on the running event loop."""
        if self._scheduler.running:
            return
        self._scheduler.add_job(
            self.run_once,
            trigger=self._trigger,
            id=SWEEP_JOB_ID,
            name="Expired event sweep",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=self._misfire_grace_time,
        )
        self._scheduler.add_listener(self._on_job_error, EVENT_JOB_ERROR)
        self._scheduler.add_listener(self._on_job_missed, EVENT_JOB_MISSED)
        self._scheduler.start()

        job = self._scheduler.get_job(SWEEP_JOB_ID)
        logger.info(
            "sweep_scheduler_started",
            next_run=job.next_run_time.isoformat() if job and job.next_run_time else None,
        )

    def shutdown(self, wait: bool = False) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=wait)
            logger.info("sweep_scheduler_stopped")

    async def run_once(self) -> None:
        """Job body; also callable directly for a manual sweep."""
        await self._lifecycle.sweep_expired_events()

    def _on_job_error(self, event: JobExecutionEvent) -> None:
        logger.error("sweep_job_error", job_id=event.job_id, error=str(event.exception))

    def _on_job_missed(self, event: JobExecutionEvent) -> None:
        logger.warning("sweep_job_missed", job_id=event.job_id,
                       scheduled=event.scheduled_run_time.isoformat())
