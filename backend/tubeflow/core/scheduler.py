"""APScheduler wrapper running interval jobs on the application event loop.

Features:
- AsyncIOScheduler so coroutine jobs share the FastAPI event loop
- In-memory job store; jobs are registered at startup, nothing to persist
- Logging for scheduler lifecycle and every job execution
- Health checking

ERROR LOGGING REQUIREMENTS:
- Log job execution errors with full context
- Log slow job executions (>1 second) at WARNING level
- Log missed job executions at WARNING level
- Log scheduler lifecycle events at INFO level
"""

import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from apscheduler.events import (
    EVENT_JOB_ERROR,
    EVENT_JOB_EXECUTED,
    EVENT_JOB_MAX_INSTANCES,
    EVENT_JOB_MISSED,
    EVENT_JOB_SUBMITTED,
    EVENT_SCHEDULER_SHUTDOWN,
    EVENT_SCHEDULER_STARTED,
    JobExecutionEvent,
    JobSubmissionEvent,
    SchedulerEvent,
)
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from tubeflow.core.config import get_settings
from tubeflow.core.logging import get_logger, scheduler_logger

logger = get_logger(__name__)

# Slow job threshold in milliseconds
SLOW_JOB_THRESHOLD_MS = 1000


class SchedulerState(Enum):
    """Scheduler state enumeration."""

    STOPPED = "stopped"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"


@dataclass
class JobInfo:
    """Information about a scheduled job."""

    id: str
    name: str | None
    trigger: str
    next_run_time: datetime | None


class SchedulerManager:
    """Owns the process-wide AsyncIOScheduler."""

    def __init__(self) -> None:
        self._scheduler: AsyncIOScheduler | None = None
        self._state: SchedulerState = SchedulerState.STOPPED
        self._job_start_times: dict[str, float] = {}

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == SchedulerState.RUNNING

    def _setup_event_listeners(self, scheduler: AsyncIOScheduler) -> None:
        """Set up event listeners for scheduler events."""

        def on_scheduler_event(event: SchedulerEvent) -> None:
            if event.code == EVENT_SCHEDULER_STARTED:
                scheduler_logger.scheduler_start(len(scheduler.get_jobs()))
            elif event.code == EVENT_SCHEDULER_SHUTDOWN:
                scheduler_logger.scheduler_stop(graceful=True)

        def on_job_submitted(event: JobSubmissionEvent) -> None:
            self._job_start_times[event.job_id] = time.monotonic()

        def on_job_execution_event(event: JobExecutionEvent) -> None:
            start_time = self._job_start_times.pop(event.job_id, None)
            duration_ms = (time.monotonic() - start_time) * 1000 if start_time else 0

            if event.code == EVENT_JOB_EXECUTED:
                scheduler_logger.job_execution_success(
                    job_id=event.job_id,
                    duration_ms=duration_ms,
                    result=event.retval,
                )
                if duration_ms > SLOW_JOB_THRESHOLD_MS:
                    scheduler_logger.slow_job_execution(
                        job_id=event.job_id,
                        duration_ms=duration_ms,
                        threshold_ms=SLOW_JOB_THRESHOLD_MS,
                    )
            elif event.code == EVENT_JOB_ERROR:
                scheduler_logger.job_execution_error(
                    job_id=event.job_id,
                    duration_ms=duration_ms,
                    error=str(event.exception),
                    error_type=type(event.exception).__name__,
                )
            elif event.code == EVENT_JOB_MISSED:
                scheduler_logger.job_missed(
                    job_id=event.job_id,
                    scheduled_time=(
                        event.scheduled_run_time.isoformat()
                        if event.scheduled_run_time
                        else "unknown"
                    ),
                    misfire_grace_time=get_settings().scheduler_misfire_grace_time,
                )

        def on_max_instances(event: JobSubmissionEvent) -> None:
            scheduler_logger.job_max_instances_reached(job_id=event.job_id)

        scheduler.add_listener(
            on_scheduler_event, EVENT_SCHEDULER_STARTED | EVENT_SCHEDULER_SHUTDOWN
        )
        scheduler.add_listener(on_job_submitted, EVENT_JOB_SUBMITTED)
        scheduler.add_listener(
            on_job_execution_event,
            EVENT_JOB_EXECUTED | EVENT_JOB_ERROR | EVENT_JOB_MISSED,
        )
        scheduler.add_listener(on_max_instances, EVENT_JOB_MAX_INSTANCES)

    def init_scheduler(self) -> bool:
        """Create the scheduler.

        Returns:
            True if the scheduler exists afterwards, False when disabled.
        """
        settings = get_settings()

        if not settings.scheduler_enabled:
            logger.info("Scheduler is disabled via configuration")
            return False

        if self._scheduler is not None:
            return True

        self._scheduler = AsyncIOScheduler(
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": settings.scheduler_misfire_grace_time,
            },
            timezone="UTC",
        )
        self._setup_event_listeners(self._scheduler)
        logger.info("Scheduler initialized successfully")
        return True

    def start(self) -> bool:
        """Start the scheduler on the running event loop."""
        if self._scheduler is None and not self.init_scheduler():
            return False
        if self._scheduler is None:
            return False
        if self._state == SchedulerState.RUNNING:
            logger.warning("Scheduler is already running")
            return True

        try:
            self._scheduler.start()
            self._state = SchedulerState.RUNNING
            return True
        except Exception as e:
            logger.error(f"Failed to start scheduler: {e}", exc_info=True)
            self._state = SchedulerState.STOPPED
            return False

    def stop(self, wait: bool = False) -> None:
        """Stop the scheduler."""
        if self._scheduler is None or self._state != SchedulerState.RUNNING:
            self._scheduler = None
            self._state = SchedulerState.STOPPED
            return

        self._state = SchedulerState.SHUTTING_DOWN
        try:
            self._scheduler.shutdown(wait=wait)
        except Exception as e:
            logger.error(f"Error during scheduler shutdown: {e}", exc_info=True)
        finally:
            self._state = SchedulerState.STOPPED
            self._scheduler = None

    def add_interval_job(
        self,
        func: Callable[..., Any],
        id: str,
        seconds: int,
        name: str | None = None,
    ) -> str | None:
        """Register `func` to run every `seconds`; replaces a job with the same id."""
        if self._scheduler is None:
            scheduler_logger.scheduler_not_available(
                operation="add_interval_job",
                reason="Scheduler is not initialized",
            )
            return None

        job = self._scheduler.add_job(
            func,
            trigger=IntervalTrigger(seconds=seconds),
            id=id,
            name=name,
            replace_existing=True,
        )
        next_run = getattr(job, "next_run_time", None)
        scheduler_logger.job_added(
            job_id=job.id,
            job_name=job.name,
            trigger=str(job.trigger),
            next_run=next_run.isoformat() if next_run else None,
        )
        return str(job.id)

    def get_jobs(self) -> list[JobInfo]:
        if self._scheduler is None:
            return []
        return [
            JobInfo(
                id=job.id,
                name=job.name,
                trigger=str(job.trigger),
                next_run_time=getattr(job, "next_run_time", None),
            )
            for job in self._scheduler.get_jobs()
        ]

    def check_health(self) -> dict[str, Any]:
        """Check scheduler health."""
        if self._scheduler is None:
            return {
                "status": "not_initialized",
                "running": False,
                "state": self._state.value,
                "job_count": 0,
            }

        jobs = self.get_jobs()
        return {
            "status": "ok" if self.is_running else "degraded",
            "running": self.is_running,
            "state": self._state.value,
            "job_count": len(jobs),
            "jobs": [
                {
                    "id": job.id,
                    "next_run_time": (
                        job.next_run_time.isoformat() if job.next_run_time else None
                    ),
                }
                for job in jobs
            ],
        }


# Global scheduler manager instance
scheduler_manager = SchedulerManager()


def get_scheduler() -> SchedulerManager:
    """Get the scheduler manager instance."""
    return scheduler_manager
