"""Database wiring shared by CLI commands"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from damqueue.config.settings import Settings, get_settings
from damqueue.infra.database import Database
from damqueue.v1.infra.jobs.service import JobService
from damqueue.v1.infra.jobs.store import SqlJobStore

T = TypeVar("T")


def open_database(settings: Settings) -> Database:
    return Database(settings)


def run_with_service(action: Callable[[JobService], Awaitable[T]]) -> T:
    """Run ``action`` against a JobService, closing the connection pool after."""
    settings = get_settings()

    async def _run() -> T:
        database = open_database(settings)
        try:
            return await action(JobService(settings, SqlJobStore(database)))
        finally:
            await database.close()

    return asyncio.run(_run())
