from datetime import UTC, datetime, timedelta

from fastapi import APIRouter
from pydantic import BaseModel
from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from damqueue.config.settings import Settings, SettingsDep
from damqueue.infra.database import SessionDep
from damqueue.v1.core.exceptions import create_success_response
from damqueue.v1.infra.jobs.models import Job, JobStatus

router = APIRouter()


class DatabaseHealth(BaseModel):
    """Database health status."""

    connected: bool
    response_time_ms: float | None = None
    error: str | None = None


class QueueHealth(BaseModel):
    """Job queue status."""

    active_workers: int
    queue_depth: int = 0
    stale_jobs_count: int | None = None


@router.get("/healthz", response_model=dict)
async def health_check(
    settings: Settings = SettingsDep, session: AsyncSession = SessionDep
):
    """Health check endpoint with database and queue status."""

    timestamp = datetime.now(UTC).isoformat()

    db_health = await _check_database_health(session)

    queue_health = None
    if db_health.connected:
        queue_health = await _check_queue_health(session, settings)

    health_data = {
        "ok": db_health.connected,
        "version": settings.version,
        "environment": settings.environment,
        "timestamp": timestamp,
        "database": db_health.model_dump(),
        "queue": queue_health.model_dump() if queue_health else None,
    }

    return create_success_response(data=health_data)


async def _check_database_health(session: AsyncSession) -> DatabaseHealth:
    """Check database connectivity and response time."""
    start_time = datetime.now(UTC)

    try:
        await session.execute(text("SELECT 1"))

        end_time = datetime.now(UTC)
        response_time_ms = (end_time - start_time).total_seconds() * 1000

        return DatabaseHealth(
            connected=True, response_time_ms=round(response_time_ms, 2)
        )

    except Exception as e:
        return DatabaseHealth(connected=False, error=str(e))


async def _check_queue_health(session: AsyncSession, settings: Settings) -> QueueHealth:
    """Count workers currently holding jobs and the outstanding queue."""
    active_workers_result = await session.execute(
        select(func.count(func.distinct(Job.locked_by))).where(
            Job.status == JobStatus.PROCESSING.value
        )
    )
    active_workers = active_workers_result.scalar() or 0

    queue_depth_result = await session.execute(
        select(func.count(Job.id)).where(
            Job.status.in_([JobStatus.PENDING.value, JobStatus.PROCESSING.value])
        )
    )
    queue_depth = queue_depth_result.scalar() or 0

    stale_jobs_count = None
    if settings.job_lock_timeout_s is not None:
        cutoff = datetime.now(UTC) - timedelta(seconds=settings.job_lock_timeout_s)
        stale_result = await session.execute(
            select(func.count(Job.id)).where(
                Job.status == JobStatus.PROCESSING.value, Job.locked_at < cutoff
            )
        )
        stale_jobs_count = stale_result.scalar() or 0

    return QueueHealth(
        active_workers=active_workers,
        queue_depth=queue_depth,
        stale_jobs_count=stale_jobs_count,
    )
