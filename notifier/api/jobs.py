"""Job monitoring and manual trigger endpoints."""

from dataclasses import asdict
from datetime import datetime

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel
from sqlalchemy import select

from notifier.core.scheduler import get_job_schedules
from notifier.dependencies import DBSession, Scheduler
from notifier.models.job_run import JobRun
from notifier.schemas.notification import CycleReportResponse

router = APIRouter()


class ScheduleResponse(BaseModel):
    """Response model for a job schedule."""

    id: str
    task_id: str
    trigger: str
    next_fire_time: str | None
    last_fire_time: str | None


class JobRunResponse(BaseModel):
    """Response model for a job run."""

    id: str
    job_id: str
    scheduled_at: datetime
    started_at: datetime
    finished_at: datetime
    duration_seconds: float
    outcome: str
    error: str | None


class CycleStatusResponse(BaseModel):
    """Current state of the notification scheduler."""

    phase: str
    running: bool
    stopping: bool
    last_report: CycleReportResponse | None


@router.get("/jobs/schedules", response_model=list[ScheduleResponse])
async def list_schedules() -> list[ScheduleResponse]:
    """
    List all registered job schedules.

    Returns schedule information including next/last fire times.
    """
    schedules = await get_job_schedules()
    return [ScheduleResponse(**s) for s in schedules]


@router.get("/jobs/runs", response_model=list[JobRunResponse])
async def list_job_runs(
    db: DBSession,
    job_id: str | None = Query(default=None, description="Filter by job ID"),
    limit: int = Query(default=50, le=200),
    offset: int = Query(default=0, ge=0),
) -> list[JobRunResponse]:
    """
    List job execution history.

    Returns recent job runs with optional filtering by job ID.
    """
    query = select(JobRun).order_by(JobRun.scheduled_at.desc())

    if job_id:
        query = query.where(JobRun.job_id == job_id)

    query = query.offset(offset).limit(limit)
    result = await db.execute(query)
    runs = result.scalars().all()

    return [
        JobRunResponse(
            id=run.id,
            job_id=run.job_id,
            scheduled_at=run.scheduled_at,
            started_at=run.started_at,
            finished_at=run.finished_at,
            duration_seconds=(run.finished_at - run.started_at).total_seconds(),
            outcome=run.outcome,
            error=run.error,
        )
        for run in runs
    ]


@router.get("/jobs/notification-cycle", response_model=CycleStatusResponse)
async def notification_cycle_status(scheduler: Scheduler) -> CycleStatusResponse:
    """Report the scheduler phase and the most recent cycle summary."""
    last = scheduler.last_report
    return CycleStatusResponse(
        phase=scheduler.phase.value,
        running=scheduler.is_running,
        stopping=scheduler.stop_event.is_set(),
        last_report=CycleReportResponse(**asdict(last)) if last else None,
    )


@router.post("/jobs/notification-cycle", response_model=CycleReportResponse)
async def trigger_notification_cycle(scheduler: Scheduler) -> CycleReportResponse:
    """
    Run one notification cycle now.

    Rejected with 409 while a scheduled cycle is already in flight.
    """
    if scheduler.is_running:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A notification cycle is already running",
        )

    report = await scheduler.run_cycle()
    return CycleReportResponse(**asdict(report))
