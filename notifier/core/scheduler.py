"""
APScheduler integration for FastAPI.

Runs the notification cycle in-process on a fixed interval.

Jobs:
- Notification cycle: selects due users and sends pushes
  (every NOTIFICATION_POLL_INTERVAL_SECONDS, default 60s)

Only one process per deployment should run the scheduler; set
SCHEDULER_ENABLED=false on the others.
"""

from datetime import datetime
from typing import Any

from apscheduler import AsyncScheduler, CoalescePolicy, ConflictPolicy, JobOutcome, JobReleased
from apscheduler.datastores.memory import MemoryDataStore
from apscheduler.triggers.interval import IntervalTrigger

from notifier.config import get_settings
from notifier.core.database import AsyncSessionLocal
from notifier.core.datetime_utils import to_naive_utc, utc_now
from notifier.core.logging import get_logger
from notifier.jobs.notification_cycle import NotificationScheduler, build_notification_scheduler

logger = get_logger(__name__)

NOTIFICATION_JOB_ID = "notification_cycle"

# Global scheduler instances
scheduler: AsyncScheduler | None = None
notification_scheduler: NotificationScheduler | None = None


def get_notification_scheduler() -> NotificationScheduler:
    """Get the process-wide notification scheduler, creating it on first use."""
    global notification_scheduler
    if notification_scheduler is None:
        notification_scheduler = build_notification_scheduler()
    return notification_scheduler


async def notification_cycle_job() -> None:
    """Notification job - one select/dispatch/update cycle.

    Failures are contained inside the cycle and reported, so a bad cycle
    never prevents the next tick from running.
    """
    report = await get_notification_scheduler().tick()
    if report is None:
        return

    if report.aborted or report.error:
        logger.bind(error=report.error).warning("scheduled_notification_cycle_degraded")


async def _record_job_result(
    job_id: str,
    scheduled_at: datetime,
    started_at: datetime,
    outcome: JobOutcome,
    error: str | None = None,
) -> None:
    """Record job execution result to database."""
    from notifier.models.job_run import JobRun

    async with AsyncSessionLocal() as db:
        job_run = JobRun(
            job_id=job_id,
            scheduled_at=scheduled_at,
            started_at=started_at,
            finished_at=utc_now(),
            outcome=outcome.name,
            error=error,
        )
        db.add(job_run)
        await db.commit()


async def add_notification_schedule(target: AsyncScheduler, interval_seconds: int) -> None:
    """Register the notification cycle on an APScheduler instance."""
    await target.add_schedule(
        notification_cycle_job,
        IntervalTrigger(seconds=interval_seconds),
        id=NOTIFICATION_JOB_ID,
        coalesce=CoalescePolicy.latest,  # Collapse missed ticks into one
        conflict_policy=ConflictPolicy.replace,  # Update if already exists
    )


async def start_scheduler() -> AsyncScheduler | None:
    """Initialize and start the scheduler with in-memory schedule storage."""
    global scheduler

    settings = get_settings()
    if not settings.scheduler_enabled:
        logger.info("scheduler_disabled_by_config")
        return None

    # Schedules are rebuilt from settings on every start
    data_store = MemoryDataStore()
    scheduler = AsyncScheduler(data_store=data_store)

    # Start the scheduler first (required before calling other methods in APScheduler 4.x)
    await scheduler.__aenter__()

    # Subscribe to job events for history tracking
    scheduler.subscribe(_on_job_completed)

    await add_notification_schedule(scheduler, settings.notification_poll_interval_seconds)

    # Start the scheduler's background worker to actually process jobs
    await scheduler.start_in_background()

    logger.bind(
        jobs=[NOTIFICATION_JOB_ID],
        interval_seconds=settings.notification_poll_interval_seconds,
    ).info("scheduler_started")

    return scheduler


async def _on_job_completed(event: Any) -> None:
    """Handle job completion events."""
    if isinstance(event, JobReleased):
        try:
            scheduled_at = getattr(event, "scheduled_fire_time", None) or utc_now()
            started_at = getattr(event, "started_at", None) or utc_now()
            exception = getattr(event, "exception", None)
            await _record_job_result(
                job_id=event.schedule_id or "unknown",
                scheduled_at=to_naive_utc(scheduled_at),
                started_at=to_naive_utc(started_at),
                outcome=event.outcome,
                error=str(exception) if event.outcome == JobOutcome.error and exception else None,
            )
        except Exception as e:
            logger.bind(error=str(e)).error("failed_to_record_job_result")


async def stop_scheduler() -> None:
    """Gracefully stop the scheduler.

    Signals the notification scheduler first so an in-flight cycle stops
    at the next user boundary instead of draining the whole cycle.
    """
    global scheduler
    if notification_scheduler is not None:
        notification_scheduler.request_stop()
    if scheduler:
        await scheduler.__aexit__(None, None, None)
        logger.info("scheduler_stopped")
        scheduler = None


async def get_job_schedules() -> list[dict[str, Any]]:
    """Get all registered job schedules."""
    if not scheduler:
        return []

    schedules = await scheduler.get_schedules()
    return [
        {
            "id": s.id,
            "task_id": s.task_id,
            "trigger": str(s.trigger),
            "next_fire_time": s.next_fire_time.isoformat() if s.next_fire_time else None,
            "last_fire_time": s.last_fire_time.isoformat() if s.last_fire_time else None,
        }
        for s in schedules
    ]
