"""
Job handlers for background asset processing.

Handlers implement the JobHandler protocol and are registered in the job
registry under their job_name.
"""

from typing import Any

from damqueue.config.logging import get_logger
from damqueue.v1.assets.processing import AssetVersionProcessor
from damqueue.v1.core.exceptions import InvalidPayloadError

logger = get_logger(__name__)

PROCESS_VERSION_JOB = "dam.process-version"


class ProcessVersionHandler:
    """
    Job handler for processing one uploaded asset version.

    Payload expected:
    {
        "assetId": "uuid-string",
        "versionId": "uuid-string"
    }

    The handler never marks the version failed itself; the worker does that
    for every failed attempt.
    """

    job_name = PROCESS_VERSION_JOB

    def __init__(self, processor: AssetVersionProcessor):
        self.processor = processor

    async def handle(self, payload: dict[str, Any], worker_id: str) -> None:
        asset_id = payload.get("assetId")
        version_id = payload.get("versionId")
        if not asset_id or not version_id:
            raise InvalidPayloadError(
                "Missing assetId or versionId in job payload",
                details={"payload_keys": sorted(payload)},
            )

        try:
            await self.processor.process(version_id, worker_id)
        except Exception as e:
            logger.error(
                "Failed to process asset version",
                asset_id=str(asset_id),
                version_id=str(version_id),
                error=str(e),
            )
            raise  # Re-raise for job retry logic

    def version_id_for(self, payload: dict[str, Any]) -> str | None:
        version_id = payload.get("versionId")
        return str(version_id) if version_id else None
