from typing import Any
from unittest.mock import AsyncMock, Mock

import pytest

from damqueue.v1.core.exceptions import InvalidPayloadError, UnknownJobError
from damqueue.v1.core.registries import JobRegistry, Registry, VersionScopedHandler
from damqueue.v1.infra.jobs.dispatcher import JobDispatcher
from damqueue.v1.infra.jobs.handlers import PROCESS_VERSION_JOB, ProcessVersionHandler
from damqueue.v1.infra.jobs.models import Job
from damqueue.v1.infra.jobs.registry_init import build_job_registry


class RecordingHandler:
    def __init__(self):
        self.calls: list[tuple[dict[str, Any], str]] = []

    async def handle(self, payload: dict[str, Any], worker_id: str) -> None:
        self.calls.append((payload, worker_id))


def test_registry_basic_operations():
    """Test basic registry register, get, list operations."""
    registry = Registry[str]("Test")

    # Test empty registry
    assert registry.list() == []

    # Test register and get
    registry.register("test_impl", "test_value")
    assert registry.get("test_impl") == "test_value"
    assert registry.list() == ["test_impl"]
    assert "test_impl" in registry
    assert "other" not in registry

    # Test KeyError for missing implementation
    with pytest.raises(KeyError, match="No test implementation registered"):
        registry.get("nonexistent")


def test_registry_freeze():
    """A frozen registry rejects new registrations."""
    registry = Registry[str]("Test")
    registry.register("a", "1")
    registry.freeze()

    assert registry.is_frozen()
    with pytest.raises(RuntimeError, match="registry is frozen"):
        registry.register("b", "2")
    assert registry.list() == ["a"]


def test_build_job_registry():
    registry = build_job_registry(Mock())

    assert registry.is_frozen()
    assert registry.list() == [PROCESS_VERSION_JOB]
    assert isinstance(registry.get(PROCESS_VERSION_JOB), ProcessVersionHandler)


@pytest.mark.asyncio
async def test_dispatcher_routes_by_job_name():
    registry = JobRegistry()
    handler = RecordingHandler()
    registry.register("dam.echo", handler)
    dispatcher = JobDispatcher(registry)

    await dispatcher.dispatch(Job(job_name="dam.echo", payload={"n": 1}), "worker-a")

    assert handler.calls == [({"n": 1}, "worker-a")]


@pytest.mark.asyncio
async def test_dispatcher_rejects_unknown_job():
    dispatcher = JobDispatcher(JobRegistry())

    with pytest.raises(UnknownJobError, match="Unknown job: dam.mystery"):
        await dispatcher.dispatch(Job(job_name="dam.mystery", payload={}), "worker-a")


def test_dispatcher_version_lookup():
    registry = JobRegistry()
    registry.register("dam.echo", RecordingHandler())
    registry.register(PROCESS_VERSION_JOB, ProcessVersionHandler(Mock()))
    dispatcher = JobDispatcher(registry)

    scoped = Job(job_name=PROCESS_VERSION_JOB, payload={"assetId": "a", "versionId": "v-1"})
    assert dispatcher.version_id_for(scoped) == "v-1"

    # Handlers without a version reference and unknown names escalate nothing
    assert dispatcher.version_id_for(Job(job_name="dam.echo", payload={"versionId": "v-1"})) is None
    assert dispatcher.version_id_for(Job(job_name="dam.mystery", payload={})) is None
    assert dispatcher.version_id_for(Job(job_name=PROCESS_VERSION_JOB, payload={})) is None


def test_version_scoped_handler_protocol():
    """Only handlers that can name a version take part in escalation."""
    assert isinstance(ProcessVersionHandler(Mock()), VersionScopedHandler)
    assert not isinstance(RecordingHandler(), VersionScopedHandler)


class TestProcessVersionHandler:
    """Payload validation and delegation"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [{}, {"assetId": "a"}, {"versionId": "v"}, {"assetId": "", "versionId": "v"}],
    )
    async def test_missing_ids_rejected_before_store_access(self, payload):
        processor = Mock()
        processor.process = AsyncMock()
        handler = ProcessVersionHandler(processor)

        with pytest.raises(InvalidPayloadError, match="Missing assetId or versionId"):
            await handler.handle(payload, "worker-a")

        processor.process.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delegates_to_processor(self):
        processor = Mock()
        processor.process = AsyncMock()
        handler = ProcessVersionHandler(processor)

        await handler.handle({"assetId": "a", "versionId": "v"}, "worker-a")

        processor.process.assert_awaited_once_with("v", "worker-a")

    @pytest.mark.asyncio
    async def test_processing_errors_propagate(self):
        processor = Mock()
        processor.process = AsyncMock(side_effect=RuntimeError("storage unavailable"))
        handler = ProcessVersionHandler(processor)

        with pytest.raises(RuntimeError, match="storage unavailable"):
            await handler.handle({"assetId": "a", "versionId": "v"}, "worker-a")
