"""
Job management API endpoints.

Producers enqueue work here; operators inspect and requeue jobs.
"""

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends

from damqueue.config.logging import get_logger
from damqueue.config.settings import Settings, SettingsDep
from damqueue.infra.database import Database, DatabaseDep
from damqueue.v1.core.exceptions import NotFoundError, ValidationError, create_success_response
from damqueue.v1.infra.jobs.schemas import JobCreate, JobResponse
from damqueue.v1.infra.jobs.service import JobService
from damqueue.v1.infra.jobs.store import SqlJobStore

logger = get_logger(__name__)
router = APIRouter(prefix="/jobs", tags=["jobs"])


def get_job_service(
    settings: Settings = SettingsDep, database: Database = DatabaseDep
) -> JobService:
    return JobService(settings, SqlJobStore(database))


JobServiceDep = Depends(get_job_service)


@router.post("", response_model=dict, status_code=201)
async def enqueue_job(
    job_create: JobCreate, service: JobService = JobServiceDep
) -> dict[str, Any]:
    """Enqueue a new background job."""
    result = await service.enqueue_job(job_create)
    return create_success_response(data=result.model_dump(mode="json"))


@router.get("/{job_id}", response_model=dict)
async def get_job(job_id: UUID, service: JobService = JobServiceDep) -> dict[str, Any]:
    """Get job details by ID."""
    job = await service.get_job(job_id)
    if job is None:
        raise NotFoundError(f"Job {job_id} not found", details={"job_id": str(job_id)})

    return create_success_response(
        data=JobResponse.model_validate(job).model_dump(mode="json")
    )


@router.post("/{job_id}/requeue", response_model=dict)
async def requeue_job(
    job_id: UUID, service: JobService = JobServiceDep
) -> dict[str, Any]:
    """Reset a failed job to pending with a fresh attempt budget."""
    job = await service.get_job(job_id)
    if job is None:
        raise NotFoundError(f"Job {job_id} not found", details={"job_id": str(job_id)})

    if not await service.requeue_job(job_id):
        raise ValidationError(
            f"Job {job_id} is {job.status}; only failed jobs can be requeued",
            details={"job_id": str(job_id), "status": job.status},
        )

    return create_success_response(
        data={"job_id": str(job_id), "status": "pending"}, message="Job requeued"
    )
