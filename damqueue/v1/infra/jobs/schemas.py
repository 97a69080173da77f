"""
Job queue Pydantic schemas.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class JobCreate(BaseModel):
    """Schema for creating a new job."""

    job_name: str = Field(..., min_length=1, description="Handler selector")
    payload: dict[str, Any] = Field(default_factory=dict, description="Job parameters")
    run_at: datetime | None = Field(
        default=None, description="Earliest time to run job; defaults to now"
    )
    max_attempts: int | None = Field(
        default=None, ge=1, description="Attempts before permanent failure"
    )


class JobResponse(BaseModel):
    """Schema for job API responses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    job_name: str
    payload: dict[str, Any]
    status: str
    attempts: int
    max_attempts: int
    run_at: datetime
    locked_at: datetime | None = None
    locked_by: str | None = None
    error: str | None = None
    created_at: datetime
    updated_at: datetime


class JobEnqueueResponse(BaseModel):
    """Schema for job enqueue response."""

    job_id: UUID
    status: str
    run_at: datetime


class QueueMetricsResponse(BaseModel):
    """Queue depth by status, as shown on the admin dashboard."""

    pending: int
    processing: int
    failed: int
    timestamp: datetime
