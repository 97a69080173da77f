"""
Retry/completion policy: decides how a claimed job's row changes after its
handler returns or raises.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from damqueue.config.settings import Settings
from damqueue.v1.infra.jobs.models import Job, JobStatus


@dataclass(frozen=True)
class Resolution:
    """Outcome of the policy for one attempt."""

    status: JobStatus
    values: dict[str, Any] = field(default_factory=dict)

    @property
    def is_permanent_failure(self) -> bool:
        return self.status == JobStatus.FAILED

    @property
    def is_retry(self) -> bool:
        return self.status == JobStatus.PENDING


def describe_error(error: BaseException | str) -> str:
    if isinstance(error, BaseException):
        message = str(error)
        return message if message else error.__class__.__name__
    return str(error)


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retries with a fixed delay between attempts."""

    retry_delay: timedelta = timedelta(seconds=30)
    error_max_length: int = 4000

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            retry_delay=timedelta(milliseconds=settings.worker_retry_delay_ms),
            error_max_length=settings.job_error_max_length,
        )

    def on_success(self, job: Job, worker_id: str, now: datetime) -> Resolution:
        # locked_by is kept on completed rows as a record of who finished them
        return Resolution(
            status=JobStatus.COMPLETE,
            values={
                "status": JobStatus.COMPLETE.value,
                "attempts": job.attempts + 1,
                "locked_at": None,
                "locked_by": worker_id,
                "error": None,
                "updated_at": now,
            },
        )

    def on_failure(
        self, job: Job, error: BaseException | str, now: datetime
    ) -> Resolution:
        attempts = job.attempts + 1
        values: dict[str, Any] = {
            "attempts": attempts,
            "locked_at": None,
            "locked_by": None,
            "error": describe_error(error)[: self.error_max_length],
            "updated_at": now,
        }

        if attempts < job.max_attempts:
            values["status"] = JobStatus.PENDING.value
            # run_at never moves backwards, even with a skewed worker clock
            values["run_at"] = max(now, job.run_at) + self.retry_delay
            return Resolution(status=JobStatus.PENDING, values=values)

        values["status"] = JobStatus.FAILED.value
        return Resolution(status=JobStatus.FAILED, values=values)
