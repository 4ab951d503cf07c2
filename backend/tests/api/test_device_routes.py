"""
Tests for the device ingestion HTTP endpoints.
"""

from datetime import datetime, timezone

import httpx
import pytest
import pytest_asyncio
from unittest.mock import Mock
from aioresponses import aioresponses
from sqlalchemy import func, select

from biometric_attendance.core.database import get_db
from biometric_attendance.integrations.devices.registry import build_default_registry, get_adapter_registry
from biometric_attendance.models import AttendanceRecord, AuditLog
from main import app


ZK_LOG = {"pin": "1001", "sn": "ZK-1", "timestamp": "2026-02-12T07:45:00Z", "status": 0}


def device_headers(**overrides):
    headers = {"x-device-id": "ZK-1", "x-device-secret": "s3cret"}
    headers.update(overrides)
    return headers


@pytest_asyncio.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_adapter_registry] = build_default_registry

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


class TestWebhookEndpoint:
    """Test POST /api/v1/devices/webhook."""

    @pytest.mark.asyncio
    async def test_accepts_logs_envelope(self, client, zk_device, students, db_session):
        response = await client.post(
            "/api/v1/devices/webhook", json={"logs": [ZK_LOG]}, headers=device_headers()
        )

        assert response.status_code == 200
        assert response.json() == {"success": True, "records_synced": 1}
        count = (await db_session.execute(select(func.count()).select_from(AttendanceRecord))).scalar_one()
        assert count == 1

    @pytest.mark.asyncio
    async def test_reports_record_errors(self, client, zk_device, students):
        response = await client.post(
            "/api/v1/devices/webhook",
            json=[ZK_LOG, {**ZK_LOG, "pin": "7777"}],
            headers=device_headers()
        )

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "records_synced": 1,
            "errors": ["Student not found for biometric ID: 7777"],
        }

    @pytest.mark.asyncio
    async def test_missing_credentials(self, client, zk_device):
        response = await client.post("/api/v1/devices/webhook", json=ZK_LOG)

        assert response.status_code == 401
        assert response.json() == {"detail": "Missing device credentials", "status_code": 401}

    @pytest.mark.asyncio
    async def test_wrong_secret_is_audited_with_client_ip(self, client, zk_device, db_session):
        response = await client.post(
            "/api/v1/devices/webhook", json=ZK_LOG, headers=device_headers(**{"x-device-secret": "bad"})
        )

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid device credentials"
        entry = (await db_session.execute(select(AuditLog))).scalar_one()
        assert entry.action == "webhook_auth_failed"
        assert entry.ip_address == "127.0.0.1"

    @pytest.mark.asyncio
    async def test_stale_timestamp(self, client, zk_device):
        response = await client.post(
            "/api/v1/devices/webhook",
            json=ZK_LOG,
            headers=device_headers(**{"x-timestamp": "2020-01-01T00:00:00Z"})
        )

        assert response.status_code == 401
        assert response.json()["detail"] == "Request expired"

    @pytest.mark.asyncio
    async def test_fresh_timestamp(self, client, zk_device, students):
        now = datetime.now(timezone.utc).isoformat()
        response = await client.post(
            "/api/v1/devices/webhook", json=ZK_LOG, headers=device_headers(**{"x-timestamp": now})
        )

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_nonce_replay(self, client, zk_device, students):
        headers = device_headers(**{"x-nonce": "7f3c9a"})

        first = await client.post("/api/v1/devices/webhook", json=ZK_LOG, headers=headers)
        second = await client.post("/api/v1/devices/webhook", json=ZK_LOG, headers=headers)

        assert first.status_code == 200
        assert second.status_code == 409

    @pytest.mark.asyncio
    async def test_malformed_json(self, client, zk_device):
        response = await client.post(
            "/api/v1/devices/webhook",
            content=b"{\"logs\": [",
            headers={**device_headers(), "content-type": "application/json"}
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_wrong_method(self, client):
        response = await client.get("/api/v1/devices/webhook")
        assert response.status_code == 405

    @pytest.mark.asyncio
    async def test_unexpected_error_is_500(self, client, zk_device):
        broken = Mock()
        broken.normalize.side_effect = RuntimeError("adapter crashed")
        app.dependency_overrides[get_adapter_registry] = lambda: broken

        response = await client.post("/api/v1/devices/webhook", json=ZK_LOG, headers=device_headers())

        assert response.status_code == 500
        assert response.json() == {"detail": "Internal server error", "status_code": 500}


class TestAutoSyncEndpoint:
    """Test POST /api/v1/devices/auto-sync."""

    @pytest.mark.asyncio
    async def test_no_pull_devices(self, client, zk_device):
        response = await client.post("/api/v1/devices/auto-sync")

        assert response.status_code == 200
        assert response.json() == {"results": [], "message": "No API pull devices found"}

    @pytest.mark.asyncio
    async def test_runs_cycle(self, client, pull_device, students):
        with aioresponses() as m:
            m.get(
                "http://10.0.0.5:8080/api/attendance/logs",
                payload={"logs": [{"userId": "1002", "timestamp": "2026-02-12T07:50:00Z"}]}
            )
            response = await client.post("/api/v1/devices/auto-sync")

        assert response.status_code == 200
        assert response.json() == {
            "results": [{"device": "Library Reader", "status": "success", "records": 1}]
        }


class TestHealth:
    """Test service probes."""

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
