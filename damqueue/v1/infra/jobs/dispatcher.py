"""
Routes a claimed job to the handler registered for its job_name.
"""

from damqueue.v1.core.exceptions import UnknownJobError
from damqueue.v1.core.registries import JobHandler, JobRegistry, VersionScopedHandler
from damqueue.v1.infra.jobs.models import Job


class JobDispatcher:
    """Dispatch jobs through a closed registry of handlers."""

    def __init__(self, registry: JobRegistry):
        self.registry = registry

    def handler_for(self, job_name: str) -> JobHandler:
        if job_name not in self.registry:
            raise UnknownJobError(job_name)
        return self.registry.get(job_name)

    async def dispatch(self, job: Job, worker_id: str) -> None:
        handler = self.handler_for(job.job_name)
        await handler.handle(job.payload or {}, worker_id)

    def version_id_for(self, job: Job) -> str | None:
        """Asset version a job operates on, for failure escalation."""
        if job.job_name not in self.registry:
            return None
        handler = self.registry.get(job.job_name)
        if not isinstance(handler, VersionScopedHandler):
            return None
        return handler.version_id_for(job.payload or {})
