"""create dam job queue and asset versions tables

Revision ID: 3b7e1c2d9a40
Revises:
Create Date: 2026-10-19 10:12:41.508113

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3b7e1c2d9a40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "dam_asset_versions",
        sa.Column("id", sa.UUID(as_uuid=True), primary_key=True),
        sa.Column("asset_id", sa.UUID(as_uuid=True), nullable=False),
        sa.Column("version_number", sa.Integer, nullable=False, server_default="1"),
        sa.Column(
            "storage_bucket", sa.Text, nullable=False, server_default="dam-assets"
        ),
        sa.Column("storage_path", sa.Text, nullable=False),
        sa.Column("mime_type", sa.Text, nullable=True),
        sa.Column("thumbnail_path", sa.Text, nullable=True),
        sa.Column("width", sa.Integer, nullable=True),
        sa.Column("height", sa.Integer, nullable=True),
        sa.Column("page_count", sa.Integer, nullable=True),
        sa.Column("extracted_text", sa.Text, nullable=True),
        sa.Column(
            "processing_status",
            sa.Text,
            nullable=False,
            server_default="pending",
            comment="pending|processing|complete|failed",
        ),
        sa.Column("metadata", sa.JSON, nullable=False, server_default="{}"),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint(
            "processing_status IN ('pending', 'processing', 'complete', 'failed')",
            name="dam_asset_versions_processing_status_check",
        ),
    )
    op.create_index(
        "ix_dam_asset_versions_asset_id", "dam_asset_versions", ["asset_id"]
    )

    op.create_table(
        "dam_job_queue",
        sa.Column("id", sa.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "job_name",
            sa.Text,
            nullable=False,
            comment="Handler selector, e.g. dam.process-version",
        ),
        sa.Column(
            "payload",
            sa.JSON,
            nullable=False,
            server_default="{}",
            comment="Handler-specific parameters",
        ),
        sa.Column(
            "status",
            sa.Text,
            nullable=False,
            server_default="pending",
            comment="Job status: pending|processing|complete|failed",
        ),
        sa.Column(
            "attempts",
            sa.Integer,
            nullable=False,
            server_default="0",
            comment="Execution attempts made",
        ),
        sa.Column(
            "max_attempts",
            sa.Integer,
            nullable=False,
            server_default="5",
            comment="Attempts before permanent failure",
        ),
        sa.Column(
            "run_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
            comment="Earliest time the job may be claimed",
        ),
        # Worker coordination fields
        sa.Column(
            "locked_at",
            sa.TIMESTAMP(timezone=True),
            nullable=True,
            comment="When the job was claimed",
        ),
        sa.Column(
            "locked_by", sa.Text, nullable=True, comment="Worker ID that claimed the job"
        ),
        sa.Column("error", sa.Text, nullable=True, comment="Last failure message"),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'processing', 'complete', 'failed')",
            name="dam_job_queue_status_check",
        ),
        sa.CheckConstraint("max_attempts >= 1", name="dam_job_queue_max_attempts_check"),
    )

    # Claim query: WHERE status = 'pending' AND run_at <= now() ORDER BY run_at
    op.create_index(
        "ix_dam_job_queue_status_run_at", "dam_job_queue", ["status", "run_at"]
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_dam_job_queue_status_run_at", table_name="dam_job_queue")
    op.drop_table("dam_job_queue")
    op.drop_index("ix_dam_asset_versions_asset_id", table_name="dam_asset_versions")
    op.drop_table("dam_asset_versions")
