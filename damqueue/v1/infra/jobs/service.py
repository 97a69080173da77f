"""
Job service for enqueueing and managing background jobs.
"""

import uuid
from uuid import UUID

from damqueue.config.logging import get_logger
from damqueue.config.settings import Settings
from damqueue.v1.core.clock import Clock, utcnow
from damqueue.v1.infra.jobs.handlers import PROCESS_VERSION_JOB
from damqueue.v1.infra.jobs.models import Job, JobStatus
from damqueue.v1.infra.jobs.schemas import (
    JobCreate,
    JobEnqueueResponse,
    QueueMetricsResponse,
)
from damqueue.v1.infra.jobs.store import JobStore

logger = get_logger(__name__)


class JobService:
    """Producer and operator operations on the job queue."""

    def __init__(self, settings: Settings, store: JobStore, clock: Clock = utcnow):
        self.settings = settings
        self.store = store
        self.clock = clock

    async def enqueue_job(self, job_create: JobCreate) -> JobEnqueueResponse:
        """
        Insert a pending job.

        Jobs start with zero attempts and run immediately unless ``run_at``
        lies in the future.
        """
        now = self.clock()
        job = Job(
            id=uuid.uuid4(),
            job_name=job_create.job_name,
            payload=job_create.payload,
            status=JobStatus.PENDING.value,
            attempts=0,
            max_attempts=job_create.max_attempts or self.settings.job_default_max_attempts,
            run_at=job_create.run_at or now,
            created_at=now,
            updated_at=now,
        )
        job = await self.store.insert(job)

        logger.info(
            "Job enqueued",
            job_id=str(job.id),
            job_name=job.job_name,
            max_attempts=job.max_attempts,
            run_at=job.run_at.isoformat(),
        )

        return JobEnqueueResponse(job_id=job.id, status=job.status, run_at=job.run_at)

    async def enqueue_version_processing(
        self, asset_id: UUID | str, version_id: UUID | str
    ) -> JobEnqueueResponse:
        """Queue processing of a freshly uploaded asset version."""
        return await self.enqueue_job(
            JobCreate(
                job_name=PROCESS_VERSION_JOB,
                payload={"assetId": str(asset_id), "versionId": str(version_id)},
            )
        )

    async def get_job(self, job_id: UUID) -> Job | None:
        return await self.store.get(job_id)

    async def requeue_job(self, job_id: UUID) -> bool:
        """Give a failed job a fresh set of attempts."""
        success = await self.store.requeue_failed(job_id, self.clock())
        if success:
            logger.info("Job requeued", job_id=str(job_id))
        return success

    async def queue_metrics(self) -> QueueMetricsResponse:
        counts = await self.store.count_by_status()
        return QueueMetricsResponse(
            pending=counts.get(JobStatus.PENDING.value, 0),
            processing=counts.get(JobStatus.PROCESSING.value, 0),
            failed=counts.get(JobStatus.FAILED.value, 0),
            timestamp=self.clock(),
        )
