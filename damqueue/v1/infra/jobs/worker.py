"""
Polling job worker for the DAM queue.
"""

import asyncio
import signal
from datetime import datetime, timedelta
from enum import Enum

from damqueue.config.logging import bind_worker_context, get_logger
from damqueue.config.settings import Settings
from damqueue.infra.database import Database
from damqueue.v1.assets.processing import AssetVersionProcessor, MediaProcessor
from damqueue.v1.assets.store import AssetVersionStore
from damqueue.v1.core.clock import Clock, Sleeper, async_sleep, utcnow
from damqueue.v1.infra.jobs.dispatcher import JobDispatcher
from damqueue.v1.infra.jobs.models import Job, JobStatus
from damqueue.v1.infra.jobs.policy import RetryPolicy, describe_error
from damqueue.v1.infra.jobs.registry_init import build_job_registry
from damqueue.v1.infra.jobs.store import JobStore, SqlJobStore

logger = get_logger(__name__)


class IterationOutcome(str, Enum):
    """What a single pass of the worker loop did."""

    IDLE = "idle"
    COMPLETED = "completed"
    RETRY_SCHEDULED = "retry_scheduled"
    FAILED = "failed"
    LOCK_LOST = "lock_lost"
    ERROR = "error"


# Outcomes after which the loop waits a poll interval before claiming again
SLEEP_OUTCOMES = frozenset({IterationOutcome.IDLE, IterationOutcome.ERROR})


class JobWorker:
    """
    Single-process job worker.

    Features:
    - Select-then-conditional-update claiming, safe across many processes
    - Fixed-delay retries bounded by each job's max_attempts
    - Failure escalation onto the asset version a job refers to
    - Optional requeue of jobs whose lock outlived a timeout
    - Injected clock and sleep so iterations can be stepped in tests
    """

    def __init__(
        self,
        store: JobStore,
        dispatcher: JobDispatcher,
        versions: AssetVersionProcessor,
        policy: RetryPolicy,
        *,
        worker_id: str,
        poll_interval: float = 2.0,
        lock_timeout_s: int | None = None,
        sweep_interval_s: int = 300,
        clock: Clock = utcnow,
        sleep: Sleeper = async_sleep,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.versions = versions
        self.policy = policy
        self.worker_id = worker_id
        self.poll_interval = poll_interval
        self.lock_timeout_s = lock_timeout_s
        self.sweep_interval_s = sweep_interval_s
        self.clock = clock
        self.sleep = sleep
        self.running = False
        self._last_sweep_at: datetime | None = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        database: Database,
        media: MediaProcessor | None = None,
        clock: Clock = utcnow,
        sleep: Sleeper = async_sleep,
    ) -> "JobWorker":
        """Wire a worker and its collaborators from configuration."""
        processor = AssetVersionProcessor(AssetVersionStore(database), media, clock)
        return cls(
            SqlJobStore(database),
            JobDispatcher(build_job_registry(processor)),
            processor,
            RetryPolicy.from_settings(settings),
            worker_id=settings.worker_id,
            poll_interval=settings.worker_poll_interval_ms / 1000,
            lock_timeout_s=settings.job_lock_timeout_s,
            sweep_interval_s=settings.job_stale_sweep_interval_s,
            clock=clock,
            sleep=sleep,
        )

    async def run(self) -> None:
        """Claim and process jobs until stop() is called."""
        if self.running:
            raise RuntimeError("Worker is already running")

        self.running = True
        logger.info(
            "DAM worker started",
            worker_id=self.worker_id,
            poll_interval_s=self.poll_interval,
            retry_delay_s=self.policy.retry_delay.total_seconds(),
        )

        try:
            while self.running:
                outcome = await self.run_once()
                if outcome in SLEEP_OUTCOMES and self.running:
                    await self.sleep(self.poll_interval)
        finally:
            self.running = False

    def stop(self) -> None:
        """Stop after the current iteration; an in-flight job is not drained."""
        self.running = False

    async def run_once(self) -> IterationOutcome:
        """One loop iteration. Never raises for store or handler errors."""
        try:
            await self._sweep_stale_locks()
            job = await self.claim_next_job()
            if job is None:
                return IterationOutcome.IDLE
            return await self._process(job)
        except Exception as e:
            logger.exception("Worker loop error", error=str(e))
            return IterationOutcome.ERROR

    async def claim_next_job(self) -> Job | None:
        """
        Claim the oldest due pending job for this worker.

        A lost race with another worker yields None for this cycle; the
        poll loop tries again on its next tick.
        """
        now = self.clock()
        candidate = await self.store.fetch_next_due(now)
        if candidate is None:
            return None

        job = await self.store.try_lock(candidate.id, self.worker_id, now)
        if job is None:
            logger.debug("Job claimed by another worker", job_id=str(candidate.id))
        return job

    async def _process(self, job: Job) -> IterationOutcome:
        logger.info(
            "Processing job",
            job_id=str(job.id),
            job_name=job.job_name,
            attempt=job.attempts + 1,
            max_attempts=job.max_attempts,
        )

        try:
            await self.dispatcher.dispatch(job, self.worker_id)
        except Exception as e:
            return await self._handle_failure(job, e)

        return await self._handle_success(job)

    async def _handle_success(self, job: Job) -> IterationOutcome:
        resolution = self.policy.on_success(job, self.worker_id, self.clock())
        if not await self.store.resolve(job.id, self.worker_id, resolution.values):
            logger.warning("Job lock lost before completion", job_id=str(job.id))
            return IterationOutcome.LOCK_LOST

        logger.info("Job completed", job_id=str(job.id))
        return IterationOutcome.COMPLETED

    async def _handle_failure(self, job: Job, error: Exception) -> IterationOutcome:
        message = describe_error(error)
        logger.error("Job failed", job_id=str(job.id), error=message)

        resolution = self.policy.on_failure(job, error, self.clock())
        outcome = IterationOutcome.ERROR
        try:
            held = await self.store.resolve(job.id, self.worker_id, resolution.values)
        except Exception as e:
            logger.exception(
                "Failed to record job failure", job_id=str(job.id), error=str(e)
            )
        else:
            if not held:
                # Another worker may own the job now; its version is not ours to touch
                logger.warning("Job lock lost before rescheduling", job_id=str(job.id))
                return IterationOutcome.LOCK_LOST

            if resolution.is_permanent_failure:
                logger.error(
                    "Job permanently failed",
                    job_id=str(job.id),
                    attempts=resolution.values["attempts"],
                    error=resolution.values["error"],
                )
                outcome = IterationOutcome.FAILED
            else:
                logger.info(
                    "Job scheduled for retry",
                    job_id=str(job.id),
                    attempts=resolution.values["attempts"],
                    next_run_at=resolution.values["run_at"].isoformat(),
                )
                outcome = IterationOutcome.RETRY_SCHEDULED

        # Independent of the job row update: a retry may still follow, but
        # readers of the version see the failure right away.
        await self._escalate(job, message)
        return outcome

    async def _escalate(self, job: Job, reason: str) -> None:
        try:
            version_id = self.dispatcher.version_id_for(job)
            if version_id is None:
                return
            if not await self.versions.mark_failed(version_id, reason):
                logger.warning(
                    "Asset version to mark as failed not found",
                    job_id=str(job.id),
                    version_id=version_id,
                )
        except Exception as e:
            logger.error(
                "Failed to mark asset version as failed",
                job_id=str(job.id),
                error=str(e),
            )

    async def _sweep_stale_locks(self) -> None:
        if self.lock_timeout_s is None:
            return

        now = self.clock()
        if (
            self._last_sweep_at is not None
            and (now - self._last_sweep_at).total_seconds() < self.sweep_interval_s
        ):
            return

        self._last_sweep_at = now
        cutoff = now - timedelta(seconds=self.lock_timeout_s)
        released = await self.store.requeue_stale(cutoff, now)
        if released:
            logger.warning(
                "Recovered stale jobs",
                stale_job_count=len(released),
                job_ids=[str(job_id) for job_id in released],
                failed_job_ids=[
                    str(job_id)
                    for job_id, status in released.items()
                    if status == JobStatus.FAILED
                ],
                lock_timeout_s=self.lock_timeout_s,
            )



async def run_worker(settings: Settings, database: Database | None = None) -> str | None:
    """
    Run a worker until SIGINT/SIGTERM.

    Returns the name of the signal that stopped it. Other errors propagate so
    the caller can exit non-zero.
    """
    database = database or Database(settings)
    worker = JobWorker.from_settings(settings, database)
    bind_worker_context(worker.worker_id)

    loop = asyncio.get_running_loop()
    main_task = asyncio.current_task()
    received: list[str] = []

    def _on_signal(sig: signal.Signals) -> None:
        logger.info("Worker shutting down", signal=sig.name)
        received.append(sig.name)
        worker.stop()
        if main_task is not None:
            main_task.cancel()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _on_signal, sig)

    try:
        await worker.run()
    except asyncio.CancelledError:
        if not received:
            raise
        # the cancel came from our own signal handler
        if main_task is not None:
            main_task.uncancel()
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)
        await database.close()

    return received[0] if received else None
