"""
Job registry construction.

Builds the closed set of handlers a worker can dispatch to.
"""

from damqueue.config.logging import get_logger
from damqueue.v1.assets.processing import AssetVersionProcessor
from damqueue.v1.core.registries import JobRegistry
from damqueue.v1.infra.jobs.handlers import PROCESS_VERSION_JOB, ProcessVersionHandler

logger = get_logger(__name__)


def build_job_registry(processor: AssetVersionProcessor) -> JobRegistry:
    """Register all job handlers and freeze the registry."""
    registry = JobRegistry()

    registry.register(PROCESS_VERSION_JOB, ProcessVersionHandler(processor))

    registry.freeze()
    logger.info("Job handlers registered", registered_handlers=registry.list())
    return registry
