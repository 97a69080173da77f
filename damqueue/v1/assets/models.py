"""
Asset version model touched by the processing pipeline.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, CheckConstraint, Integer, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from damqueue.infra.database import Base, UTCDateTime


class ProcessingStatus(str, Enum):
    """Processing status of an uploaded asset version."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETE = "complete"
    FAILED = "failed"


class AssetVersion(Base):
    """One uploaded revision of an asset.

    Rows are created by the upload pipeline; the worker and the process
    trigger only move ``processing_status`` and merge keys into ``meta``.
    """

    __tablename__ = "dam_asset_versions"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    asset_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    version_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Storage location
    storage_bucket: Mapped[str] = mapped_column(Text, nullable=False, default="dam-assets")
    storage_path: Mapped[str] = mapped_column(Text, nullable=False)
    mime_type: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Derived by processing
    thumbnail_path: Mapped[str | None] = mapped_column(Text, nullable=True)
    width: Mapped[int | None] = mapped_column(Integer, nullable=True)
    height: Mapped[int | None] = mapped_column(Integer, nullable=True)
    page_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    extracted_text: Mapped[str | None] = mapped_column(Text, nullable=True)

    processing_status: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default=ProcessingStatus.PENDING.value,
        comment="pending|processing|complete|failed",
    )
    # "metadata" is reserved on declarative classes
    meta: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSON, nullable=False, default=dict
    )

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        server_default=func.now(),
        default=lambda: datetime.now(UTC),
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        server_default=func.now(),
        default=lambda: datetime.now(UTC),
    )

    __table_args__ = (
        CheckConstraint(
            "processing_status IN ('pending', 'processing', 'complete', 'failed')",
            name="dam_asset_versions_processing_status_check",
        ),
    )
