"""API tests for job, trigger, metrics and health endpoints"""

import uuid

import pytest
from httpx import ASGITransport, AsyncClient

from damqueue.v1.assets.processing import AssetVersionProcessor
from damqueue.v1.assets.routes import get_version_processor
from damqueue.v1.assets.store import AssetVersionStore
from damqueue.v1.infra.jobs.models import JobStatus


def storage_event(version, bucket: str = "dam-assets") -> dict:
    return {
        "type": "INSERT",
        "table": "dam_asset_versions",
        "record": {
            "id": str(version.id),
            "asset_id": str(version.asset_id),
            "storage_bucket": bucket,
            "storage_path": version.storage_path,
            "mime_type": version.mime_type,
            "processing_status": "pending",
        },
    }


class BrokenMedia:
    async def process(self, version):
        raise RuntimeError("thumbnail service unavailable")


class TestJobEndpoints:
    """Enqueue, inspect and requeue"""

    @pytest.mark.asyncio
    async def test_enqueue_job(self, async_client: AsyncClient, job_store):
        response = await async_client.post(
            "/v1/jobs",
            json={"job_name": "dam.process-version", "payload": {"assetId": "a", "versionId": "v"}},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["ok"] is True
        assert body["data"]["status"] == "pending"

        job = await job_store.get(uuid.UUID(body["data"]["job_id"]))
        assert job.attempts == 0
        assert job.max_attempts == 5
        assert job.payload == {"assetId": "a", "versionId": "v"}

    @pytest.mark.asyncio
    async def test_enqueue_with_max_attempts(self, async_client: AsyncClient, job_store):
        response = await async_client.post(
            "/v1/jobs", json={"job_name": "dam.process-version", "max_attempts": 2}
        )

        job = await job_store.get(uuid.UUID(response.json()["data"]["job_id"]))
        assert job.max_attempts == 2

    @pytest.mark.asyncio
    async def test_enqueue_rejects_invalid_body(self, async_client: AsyncClient):
        response = await async_client.post(
            "/v1/jobs", json={"job_name": "", "max_attempts": 0}
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_get_job(self, async_client: AsyncClient, make_job):
        job = await make_job(payload={"assetId": "a", "versionId": "v"})

        response = await async_client.get(f"/v1/jobs/{job.id}")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["id"] == str(job.id)
        assert data["job_name"] == "dam.process-version"
        assert data["status"] == "pending"
        assert data["locked_by"] is None

    @pytest.mark.asyncio
    async def test_get_missing_job(self, async_client: AsyncClient):
        response = await async_client.get(f"/v1/jobs/{uuid.uuid4()}")

        assert response.status_code == 404
        body = response.json()
        assert body["ok"] is False
        assert body["error"]["code"] == 404
        assert "not found" in body["error"]["message"]
        assert "X-Request-ID" in response.headers
        assert body["request_id"] == response.headers["X-Request-ID"]
        assert uuid.UUID(body["error"]["details"]["job_id"])

    @pytest.mark.asyncio
    async def test_unexpected_error_returns_envelope(self, app):
        async def explode():
            raise RuntimeError("connection pool exhausted")

        app.add_api_route("/v1/explode", explode)
        transport = ASGITransport(app=app, raise_app_exceptions=False)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/v1/explode")

        assert response.status_code == 500
        body = response.json()
        assert body["ok"] is False
        assert body["error"]["message"] == "Internal server error"
        assert "connection pool" not in response.text

    @pytest.mark.asyncio
    async def test_requeue_failed_job(self, async_client: AsyncClient, make_job, job_store):
        job = await make_job(status=JobStatus.FAILED.value, attempts=5, error="boom")

        response = await async_client.post(f"/v1/jobs/{job.id}/requeue")

        assert response.status_code == 200
        assert response.json()["message"] == "Job requeued"

        stored = await job_store.get(job.id)
        assert stored.status == JobStatus.PENDING.value
        assert stored.attempts == 0
        assert stored.error is None

    @pytest.mark.asyncio
    async def test_requeue_rejects_non_failed_job(self, async_client: AsyncClient, make_job):
        job = await make_job()

        response = await async_client.post(f"/v1/jobs/{job.id}/requeue")

        assert response.status_code == 422
        assert response.json()["error"]["details"]["status"] == "pending"

    @pytest.mark.asyncio
    async def test_requeue_missing_job(self, async_client: AsyncClient):
        response = await async_client.post(f"/v1/jobs/{uuid.uuid4()}/requeue")

        assert response.status_code == 404


class TestProcessTrigger:
    """Direct processing from storage events"""

    @pytest.mark.asyncio
    async def test_event_without_record_is_ignored(self, async_client: AsyncClient):
        response = await async_client.post("/v1/dam/process", json={"type": "INSERT"})

        assert response.status_code == 200
        assert response.json() == {"message": "Ignored"}

    @pytest.mark.asyncio
    async def test_record_without_id_is_ignored(self, async_client: AsyncClient):
        response = await async_client.post(
            "/v1/dam/process",
            json={"type": "INSERT", "record": {"storage_bucket": "dam-assets"}},
        )

        assert response.json() == {"message": "Ignored"}

    @pytest.mark.asyncio
    async def test_other_bucket_is_ignored(self, async_client: AsyncClient, asset_version, version_store):
        response = await async_client.post(
            "/v1/dam/process", json=storage_event(asset_version, bucket="avatars")
        )

        assert response.json() == {"message": "Ignored"}
        stored = await version_store.get(asset_version.id)
        assert stored.processing_status == "pending"

    @pytest.mark.asyncio
    async def test_processes_version(self, async_client: AsyncClient, asset_version, version_store):
        response = await async_client.post(
            "/v1/dam/process", json=storage_event(asset_version)
        )

        assert response.status_code == 200
        assert response.json() == {"success": True}

        stored = await version_store.get(asset_version.id)
        assert stored.processing_status == "complete"
        assert stored.meta["workerId"] == "dam-process"
        assert stored.meta["originalName"] == "photo.png"
        assert "processingCompletedAt" in stored.meta

    @pytest.mark.asyncio
    async def test_failure_marks_version_failed(self, app, async_client: AsyncClient, database, asset_version, version_store):
        app.dependency_overrides[get_version_processor] = lambda: AssetVersionProcessor(
            AssetVersionStore(database), BrokenMedia()
        )

        response = await async_client.post(
            "/v1/dam/process", json=storage_event(asset_version)
        )

        assert response.status_code == 500
        assert response.json() == {"error": "Processing failed"}

        stored = await version_store.get(asset_version.id)
        assert stored.processing_status == "failed"
        assert stored.meta["failureReason"] == "thumbnail service unavailable"
        assert stored.meta["uploadedBy"] == "editor@example.com"

    @pytest.mark.asyncio
    async def test_missing_version_returns_error(self, async_client: AsyncClient, asset_version):
        event = storage_event(asset_version)
        event["record"]["id"] = str(uuid.uuid4())

        response = await async_client.post("/v1/dam/process", json=event)

        assert response.status_code == 500
        assert response.json() == {"error": "Processing failed"}


class TestMetricsAndHealth:
    """Operational endpoints"""

    @pytest.mark.asyncio
    async def test_queue_metrics(self, async_client: AsyncClient, make_job, job_store, clock):
        await make_job()
        await make_job()
        processing = await make_job()
        await job_store.try_lock(processing.id, "worker-a", clock())
        await make_job(status=JobStatus.FAILED.value)
        await make_job(status=JobStatus.COMPLETE.value)

        response = await async_client.get("/v1/dam/queue/metrics")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["pending"] == 2
        assert data["processing"] == 1
        assert data["failed"] == 1
        assert "timestamp" in data

    @pytest.mark.asyncio
    async def test_health_check(self, async_client: AsyncClient, make_job, job_store, clock):
        job = await make_job()
        await make_job()
        await job_store.try_lock(job.id, "worker-a", clock())

        response = await async_client.get("/v1/healthz")

        assert response.status_code == 200
        health = response.json()["data"]
        assert health["ok"] is True
        assert health["database"]["connected"] is True
        assert health["queue"]["active_workers"] == 1
        assert health["queue"]["queue_depth"] == 2
        assert health["queue"]["stale_jobs_count"] is None
