import uuid
from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

from damqueue.config.settings import Settings, get_settings
from damqueue.infra.database import Database
from damqueue.main import create_app
from damqueue.v1.assets.models import AssetVersion
from damqueue.v1.assets.processing import AssetVersionProcessor
from damqueue.v1.assets.store import AssetVersionStore
from damqueue.v1.infra.jobs.dispatcher import JobDispatcher
from damqueue.v1.infra.jobs.models import Job
from damqueue.v1.infra.jobs.policy import RetryPolicy
from damqueue.v1.infra.jobs.registry_init import build_job_registry
from damqueue.v1.infra.jobs.service import JobService
from damqueue.v1.infra.jobs.store import SqlJobStore
from damqueue.v1.infra.jobs.worker import JobWorker


class FakeClock:
    """Clock that only moves when a test advances it."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 15, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


async def no_sleep(seconds: float) -> None:
    return None


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings pointing at a throwaway SQLite file."""
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'dam.db'}",
        worker_id="worker-a",
    )


@pytest.fixture
async def database(settings: Settings) -> AsyncGenerator[Database, None]:
    """Fresh schema per test.

    A file database with NullPool gives every session its own connection, so
    concurrent claims really race on the same rows.
    """
    engine = create_async_engine(settings.database_url, poolclass=NullPool)
    database = Database(settings, engine)
    await database.create_all()
    yield database
    await database.close()


@pytest.fixture
def job_store(database: Database) -> SqlJobStore:
    return SqlJobStore(database)


@pytest.fixture
def version_store(database: Database) -> AssetVersionStore:
    return AssetVersionStore(database)


@pytest.fixture
def processor(version_store: AssetVersionStore, clock: FakeClock) -> AssetVersionProcessor:
    return AssetVersionProcessor(version_store, clock=clock)


@pytest.fixture
def service(settings: Settings, job_store: SqlJobStore, clock: FakeClock) -> JobService:
    return JobService(settings, job_store, clock)


@pytest.fixture
def make_worker(job_store: SqlJobStore, version_store: AssetVersionStore, clock: FakeClock):
    """Build workers sharing the test database and clock."""

    def _make(worker_id: str = "worker-a", media=None, sleep=no_sleep, **kwargs) -> JobWorker:
        processor = AssetVersionProcessor(version_store, media, clock)
        return JobWorker(
            job_store,
            JobDispatcher(build_job_registry(processor)),
            processor,
            RetryPolicy(retry_delay=timedelta(seconds=30)),
            worker_id=worker_id,
            clock=clock,
            sleep=sleep,
            **kwargs,
        )

    return _make


@pytest.fixture
def make_job(job_store: SqlJobStore, clock: FakeClock):
    """Insert a job row directly, bypassing the producer API."""

    async def _make(**overrides) -> Job:
        values = {
            "id": uuid.uuid4(),
            "job_name": "dam.process-version",
            "payload": {},
            "run_at": clock(),
        }
        values.update(overrides)
        return await job_store.insert(Job(**values))

    return _make


@pytest.fixture
async def asset_version(version_store: AssetVersionStore) -> AssetVersion:
    """An uploaded image version waiting for processing."""
    asset_id = uuid.uuid4()
    return await version_store.insert(
        AssetVersion(
            id=uuid.uuid4(),
            asset_id=asset_id,
            version_number=1,
            storage_bucket="dam-assets",
            storage_path=f"{asset_id}/v1/photo.png",
            mime_type="image/png",
            meta={"originalName": "photo.png", "uploadedBy": "editor@example.com"},
        )
    )


@pytest.fixture
def app(settings: Settings, database: Database):
    """Test application bound to the test database and settings."""
    app = create_app(settings, database)
    app.dependency_overrides[get_settings] = lambda: settings

    yield app

    app.dependency_overrides.clear()


@pytest.fixture
async def async_client(app) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
