"""
DAM endpoints: the storage-triggered processing hook and queue metrics.
"""

from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict

from damqueue.config.logging import get_logger
from damqueue.config.settings import Settings, SettingsDep
from damqueue.infra.database import Database, DatabaseDep
from damqueue.v1.assets.processing import AssetVersionProcessor
from damqueue.v1.assets.store import AssetVersionStore
from damqueue.v1.core.exceptions import create_success_response
from damqueue.v1.infra.jobs.policy import describe_error
from damqueue.v1.infra.jobs.routes import JobServiceDep
from damqueue.v1.infra.jobs.service import JobService

logger = get_logger(__name__)
router = APIRouter(prefix="/dam", tags=["dam"])


class StorageRecord(BaseModel):
    """Row image carried by a storage/database change event."""

    model_config = ConfigDict(extra="allow")

    id: str | None = None
    asset_id: str | None = None
    storage_path: str | None = None
    storage_bucket: str | None = None
    mime_type: str | None = None
    processing_status: str | None = None


class StorageEvent(BaseModel):
    type: str | None = None
    table: str | None = None
    record: StorageRecord | None = None


def get_version_processor(database: Database = DatabaseDep) -> AssetVersionProcessor:
    return AssetVersionProcessor(AssetVersionStore(database))


@router.post("/process")
async def process_version(
    event: StorageEvent,
    settings: Settings = SettingsDep,
    processor: AssetVersionProcessor = Depends(get_version_processor),
) -> Any:
    """
    Process an asset version straight from a storage event, bypassing the queue.

    Fire-and-forget: there is no retry beyond the caller's own redelivery.
    """
    record = event.record
    if record is None or not record.id or record.storage_bucket != settings.dam_bucket_id:
        return {"message": "Ignored"}

    try:
        await processor.process(record.id, settings.trigger_worker_id)
    except Exception as e:
        reason = describe_error(e)
        logger.error("dam-process error", version_id=record.id, error=reason)
        try:
            await processor.mark_failed(record.id, reason)
        except Exception as mark_error:
            logger.error(
                "Failed to mark asset version as failed",
                version_id=record.id,
                error=str(mark_error),
            )
        return JSONResponse(status_code=500, content={"error": "Processing failed"})

    return {"success": True}


@router.get("/queue/metrics", response_model=dict)
async def queue_metrics(service: JobService = JobServiceDep) -> dict[str, Any]:
    """Counts of pending, processing and failed jobs."""
    metrics = await service.queue_metrics()
    return create_success_response(data=metrics.model_dump(mode="json"))
