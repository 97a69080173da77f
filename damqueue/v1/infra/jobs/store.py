"""
Job store: the persistence primitives the worker and producers rely on.

Every mutation is a single-row UPDATE scoped by primary key and guarded by the
row's current status, so concurrent workers coordinate through the database
alone.
"""

from datetime import datetime
from typing import Any, Protocol
from uuid import UUID

from sqlalchemy import func, select, update

from damqueue.infra.database import Database
from damqueue.v1.infra.jobs.models import Job, JobStatus


class JobStore(Protocol):
    """Access patterns the queue core needs from a job table."""

    async def insert(self, job: Job) -> Job: ...

    async def get(self, job_id: UUID) -> Job | None: ...

    async def fetch_next_due(self, now: datetime) -> Job | None: ...

    async def try_lock(self, job_id: UUID, worker_id: str, now: datetime) -> Job | None: ...

    async def resolve(
        self, job_id: UUID, worker_id: str, values: dict[str, Any]
    ) -> bool: ...

    async def requeue_stale(
        self, cutoff: datetime, now: datetime
    ) -> dict[UUID, JobStatus]: ...

    async def requeue_failed(self, job_id: UUID, now: datetime) -> bool: ...

    async def count_by_status(self) -> dict[str, int]: ...


class SqlJobStore:
    """JobStore backed by the ``dam_job_queue`` table."""

    def __init__(self, database: Database):
        self.database = database

    async def insert(self, job: Job) -> Job:
        async with self.database.session() as session:
            session.add(job)
            await session.commit()
            await session.refresh(job)
            return job

    async def get(self, job_id: UUID) -> Job | None:
        async with self.database.session() as session:
            return await session.get(Job, job_id)

    async def fetch_next_due(self, now: datetime) -> Job | None:
        """Oldest-by-run_at pending job that is due, without locking it."""
        async with self.database.session() as session:
            result = await session.execute(
                select(Job)
                .where(Job.status == JobStatus.PENDING.value, Job.run_at <= now)
                .order_by(Job.run_at, Job.created_at)
                .limit(1)
            )
            return result.scalars().first()

    async def try_lock(self, job_id: UUID, worker_id: str, now: datetime) -> Job | None:
        """
        Move a job from pending to processing if it is still pending.

        Returns the locked job, or None when another worker got there first.
        """
        async with self.database.session() as session:
            result = await session.execute(
                update(Job)
                .where(Job.id == job_id, Job.status == JobStatus.PENDING.value)
                .values(
                    status=JobStatus.PROCESSING.value,
                    locked_at=now,
                    locked_by=worker_id,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                await session.rollback()
                return None

            await session.commit()
            return await session.get(Job, job_id, populate_existing=True)

    async def resolve(
        self, job_id: UUID, worker_id: str, values: dict[str, Any]
    ) -> bool:
        """
        Apply a completion/retry/failure update to a job this worker holds.

        Returns False if the job is no longer processing under this worker
        (e.g. it was requeued by the stale lock sweep).
        """
        async with self.database.session() as session:
            result = await session.execute(
                update(Job)
                .where(
                    Job.id == job_id,
                    Job.status == JobStatus.PROCESSING.value,
                    Job.locked_by == worker_id,
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return result.rowcount == 1

    async def requeue_stale(
        self, cutoff: datetime, now: datetime
    ) -> dict[UUID, JobStatus]:
        """
        Release processing jobs locked before ``cutoff``.

        The abandoned run counts as an attempt, so a job that keeps killing
        its worker still ends as failed once max_attempts is used up.
        Returns the new status of every released job.
        """
        async with self.database.session() as session:
            result = await session.execute(
                select(Job.id, Job.locked_by, Job.attempts, Job.max_attempts).where(
                    Job.status == JobStatus.PROCESSING.value,
                    Job.locked_at < cutoff,
                )
            )
            candidates = result.all()

            released: dict[UUID, JobStatus] = {}
            for job_id, locked_by, attempts, max_attempts in candidates:
                attempts += 1
                status = (
                    JobStatus.FAILED if attempts >= max_attempts else JobStatus.PENDING
                )
                reset = await session.execute(
                    update(Job)
                    .where(
                        Job.id == job_id,
                        Job.status == JobStatus.PROCESSING.value,
                        Job.locked_by == locked_by,
                        Job.locked_at < cutoff,
                    )
                    .values(
                        status=status.value,
                        attempts=attempts,
                        locked_at=None,
                        locked_by=None,
                        error=f"Lock expired (held by {locked_by})",
                        updated_at=now,
                    )
                    .execution_options(synchronize_session=False)
                )
                if reset.rowcount == 1:
                    released[job_id] = status

            await session.commit()
            return released

    async def requeue_failed(self, job_id: UUID, now: datetime) -> bool:
        """Reset a permanently failed job so it runs again from scratch."""
        async with self.database.session() as session:
            result = await session.execute(
                update(Job)
                .where(Job.id == job_id, Job.status == JobStatus.FAILED.value)
                .values(
                    status=JobStatus.PENDING.value,
                    attempts=0,
                    run_at=now,
                    locked_at=None,
                    locked_by=None,
                    error=None,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return result.rowcount == 1

    async def count_by_status(self) -> dict[str, int]:
        async with self.database.session() as session:
            result = await session.execute(
                select(Job.status, func.count(Job.id)).group_by(Job.status)
            )
            counts = {status.value: 0 for status in JobStatus}
            counts.update(dict(result.all()))
            return counts
