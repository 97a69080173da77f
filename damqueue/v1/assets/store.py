"""
Access to asset version rows.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from damqueue.infra.database import Database
from damqueue.v1.assets.models import AssetVersion, ProcessingStatus


def as_uuid(value: UUID | str) -> UUID:
    if isinstance(value, UUID):
        return value
    return UUID(str(value))


class AssetVersionStore:
    """Reads versions and applies status changes with additive metadata."""

    def __init__(self, database: Database):
        self.database = database

    async def insert(self, version: AssetVersion) -> AssetVersion:
        async with self.database.session() as session:
            session.add(version)
            await session.commit()
            await session.refresh(version)
            return version

    async def get(self, version_id: UUID | str) -> AssetVersion | None:
        async with self.database.session() as session:
            return await session.get(AssetVersion, as_uuid(version_id))

    async def merge_update(
        self,
        version_id: UUID | str,
        *,
        processing_status: ProcessingStatus,
        metadata: dict[str, Any],
        now: datetime,
        fields: dict[str, Any] | None = None,
    ) -> AssetVersion | None:
        """
        Set ``processing_status`` and merge ``metadata`` into the stored map.

        Existing metadata keys are kept unless ``metadata`` overrides them.
        Returns None when the version does not exist.
        """
        async with self.database.session() as session:
            version = await session.get(
                AssetVersion, as_uuid(version_id), with_for_update=True
            )
            if version is None:
                return None

            # assign a new dict so the JSON column is flagged dirty
            version.meta = {**(version.meta or {}), **metadata}
            version.processing_status = processing_status.value
            for name, value in (fields or {}).items():
                setattr(version, name, value)
            version.updated_at = now

            await session.commit()
            return version
