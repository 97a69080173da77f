"""
Asset version processing shared by the queue handler and the process trigger.

Both paths follow the same contract: merge ``workerId``/``processingStartedAt``
and move the version to ``processing``, run the media step, then merge
``processingCompletedAt``/``processingNotes`` and move it to ``complete``.
Failure marking merges ``failureReason``/``failedAt``.
"""

from dataclasses import dataclass, field
from typing import Any, Protocol
from uuid import UUID

from damqueue.config.logging import get_logger
from damqueue.v1.assets.models import AssetVersion, ProcessingStatus
from damqueue.v1.assets.store import AssetVersionStore
from damqueue.v1.core.clock import Clock, utcnow
from damqueue.v1.core.exceptions import NotFoundError

logger = get_logger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"


@dataclass
class MediaResult:
    """What the media step learned about a version."""

    notes: str
    fields: dict[str, Any] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)


class MediaProcessor(Protocol):
    """Pluggable media step (thumbnails, text extraction, ...)."""

    async def process(self, version: AssetVersion) -> MediaResult: ...


class PlaceholderMediaProcessor:
    """Media step that records what would be done without touching the file."""

    async def process(self, version: AssetVersion) -> MediaResult:
        mime_type = version.mime_type or DEFAULT_MIME_TYPE

        if mime_type.startswith("image/") or mime_type == "application/pdf":
            logger.debug(
                "Media processing not configured, skipping",
                version_id=str(version.id),
                mime_type=mime_type,
            )
            return MediaResult(notes="Placeholder processing complete (no-op).")

        logger.info(
            "File type does not require processing",
            version_id=str(version.id),
            mime_type=mime_type,
        )
        return MediaResult(notes=f"File type {mime_type} does not require processing")


class AssetVersionProcessor:
    def __init__(
        self,
        versions: AssetVersionStore,
        media: MediaProcessor | None = None,
        clock: Clock = utcnow,
    ):
        self.versions = versions
        self.media = media or PlaceholderMediaProcessor()
        self.clock = clock

    async def start(self, version_id: UUID | str, worker_id: str) -> AssetVersion:
        now = self.clock()
        version = await self.versions.merge_update(
            version_id,
            processing_status=ProcessingStatus.PROCESSING,
            metadata={"workerId": worker_id, "processingStartedAt": now.isoformat()},
            now=now,
        )
        if version is None:
            raise NotFoundError(
                f"Asset version {version_id} not found",
                details={"version_id": str(version_id)},
            )
        return version

    async def finish(self, version: AssetVersion, result: MediaResult) -> AssetVersion:
        now = self.clock()
        metadata = {
            **result.metadata,
            "processingCompletedAt": now.isoformat(),
            "processingNotes": result.notes,
        }
        updated = await self.versions.merge_update(
            version.id,
            processing_status=ProcessingStatus.COMPLETE,
            metadata=metadata,
            fields=result.fields,
            now=now,
        )
        if updated is None:
            raise NotFoundError(
                f"Asset version {version.id} disappeared during processing",
                details={"version_id": str(version.id)},
            )
        return updated

    async def process(self, version_id: UUID | str, worker_id: str) -> AssetVersion:
        """Run the full processing contract; errors propagate unchanged."""
        version = await self.start(version_id, worker_id)

        logger.info(
            "Processing asset version",
            asset_id=str(version.asset_id),
            version_id=str(version.id),
            storage_path=version.storage_path,
            mime_type=version.mime_type,
        )

        result = await self.media.process(version)
        completed = await self.finish(version, result)

        logger.info(
            "Asset version processing completed",
            version_id=str(version.id),
            updates=sorted(result.fields),
        )
        return completed

    async def mark_failed(self, version_id: UUID | str, reason: str) -> bool:
        """Flag a version as failed; returns False if it does not exist."""
        now = self.clock()
        version = await self.versions.merge_update(
            version_id,
            processing_status=ProcessingStatus.FAILED,
            metadata={"failureReason": reason, "failedAt": now.isoformat()},
            now=now,
        )
        return version is not None
