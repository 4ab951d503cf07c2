"""
Tests for the device pull cycle.
"""

import pytest
from unittest.mock import AsyncMock
from aioresponses import aioresponses
from sqlalchemy import select

from biometric_attendance.integrations.devices.error_handler import RetryConfig
from biometric_attendance.integrations.devices.registry import build_default_registry
from biometric_attendance.models import (
    AttendanceRecord, Device, DeviceSyncLog, IntegrationType, SyncAttemptStatus, SyncType
)
from biometric_attendance.services.ingestion.pull_orchestrator import DevicePullOrchestrator


LOGS_URL = "http://10.0.0.5:8080/api/attendance/logs"

THREE_LOGS = {"logs": [
    {"userId": "1001", "timestamp": "2026-02-12T07:45:00Z", "type": "check-in"},
    {"userId": "1002", "timestamp": "2026-02-12T07:50:00Z", "type": "check-in"},
    {"userId": "1001", "timestamp": "2026-02-12T15:10:00Z", "type": "check-out"},
]}


@pytest.fixture
def sleep():
    return AsyncMock()


@pytest.fixture
def orchestrator(db_session, sleep):
    return DevicePullOrchestrator(
        db_session,
        build_default_registry(),
        retry_config=RetryConfig(max_attempts=3, base_delay=2.0),
        sleep=sleep
    )


async def load_attempts(db_session):
    result = await db_session.execute(
        select(DeviceSyncLog).order_by(DeviceSyncLog.id).execution_options(populate_existing=True)
    )
    return result.scalars().all()


class TestDeviceSelection:
    """Test which devices a cycle polls."""

    @pytest.mark.asyncio
    async def test_no_pull_devices(self, orchestrator, zk_device, db_session):
        assert await orchestrator.run_cycle() == []
        assert await load_attempts(db_session) == []

    @pytest.mark.asyncio
    async def test_disabled_and_webhook_devices_are_skipped(self, orchestrator, pull_device, zk_device, db_session):
        pull_device.is_enabled = False
        await db_session.commit()

        assert await orchestrator.load_pull_devices() == []

    @pytest.mark.asyncio
    async def test_profiles_are_snapshots(self, orchestrator, pull_device):
        profiles = await orchestrator.load_pull_devices()

        assert len(profiles) == 1
        assert profiles[0].base_url == "http://10.0.0.5:8080"
        assert profiles[0].secret_key == "pull-key"


class TestPullCycle:
    """Test per-device outcomes."""

    @pytest.mark.asyncio
    async def test_successful_pull(self, orchestrator, pull_device, students, db_session, sleep):
        with aioresponses() as m:
            m.get(LOGS_URL, payload=THREE_LOGS)
            results = await orchestrator.run_cycle()

        assert [r.to_dict() for r in results] == [
            {"device": "Library Reader", "status": "success", "records": 3}
        ]
        sleep.assert_not_awaited()

        attempt = (await load_attempts(db_session))[0]
        assert attempt.sync_type == SyncType.SCHEDULED_PULL
        assert attempt.status == SyncAttemptStatus.SUCCESS
        assert attempt.records_synced == 3

        await db_session.refresh(pull_device)
        assert pull_device.is_online is True
        assert pull_device.last_sync_at is not None

        rows = (await db_session.execute(select(AttendanceRecord))).scalars().all()
        assert len(rows) == 2

    @pytest.mark.asyncio
    async def test_fail_fail_succeed(self, orchestrator, pull_device, students, db_session, sleep):
        with aioresponses() as m:
            m.get(LOGS_URL, status=500)
            m.get(LOGS_URL, status=502)
            m.get(LOGS_URL, payload={"logs": THREE_LOGS["logs"][:2]})
            results = await orchestrator.run_cycle()

        assert results[0].status == "success"
        assert results[0].records == 2
        assert [c.args[0] for c in sleep.await_args_list] == [2.0, 2.0]

        attempts = await load_attempts(db_session)
        assert len(attempts) == 1
        assert attempts[0].status == SyncAttemptStatus.SUCCESS
        assert attempts[0].records_synced == 2

    @pytest.mark.asyncio
    async def test_exhausted_retries_mark_device_offline(self, orchestrator, pull_device, db_session, sleep):
        with aioresponses() as m:
            for _ in range(3):
                m.get(LOGS_URL, status=503)
            results = await orchestrator.run_cycle()

        assert results[0].to_dict() == {
            "device": "Library Reader", "status": "failed", "error": "Device returned 503"
        }
        assert sleep.await_count == 2

        attempt = (await load_attempts(db_session))[0]
        assert attempt.status == SyncAttemptStatus.FAILED
        assert attempt.error_message == "Device returned 503"
        assert attempt.records_synced == 0

        await db_session.refresh(pull_device)
        assert pull_device.is_online is False
        assert pull_device.is_enabled is True

    @pytest.mark.asyncio
    async def test_device_without_address_fails_without_retry(self, orchestrator, pull_device, db_session, sleep):
        pull_device.ip_address = None
        await db_session.commit()

        with aioresponses():
            results = await orchestrator.run_cycle()

        assert results[0].status == "failed"
        assert "no network address" in results[0].error
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_record_errors_keep_success_status(self, orchestrator, pull_device, students, db_session):
        payload = {"logs": [
            {"userId": "1001", "timestamp": "2026-02-12T07:45:00Z"},
            {"userId": "4040", "timestamp": "2026-02-12T07:46:00Z"},
            {"timestamp": "2026-02-12T07:47:00Z"},
        ]}
        with aioresponses() as m:
            m.get(LOGS_URL, payload=payload)
            results = await orchestrator.run_cycle()

        assert results[0].status == "success"
        assert results[0].records == 1

        attempt = (await load_attempts(db_session))[0]
        assert attempt.status == SyncAttemptStatus.SUCCESS
        assert attempt.error_message == (
            "Record 2: missing user id; Student not found for biometric ID: 4040"
        )

    @pytest.mark.asyncio
    async def test_unexpected_processing_error_keeps_connectivity(self, orchestrator, pull_device, db_session):
        orchestrator.engine.reconcile_batch = AsyncMock(side_effect=RuntimeError("disk full"))

        with aioresponses() as m:
            m.get(LOGS_URL, payload=THREE_LOGS)
            results = await orchestrator.run_cycle()

        assert results[0].to_dict() == {"device": "Library Reader", "status": "failed", "error": "disk full"}

        attempt = (await load_attempts(db_session))[0]
        assert attempt.status == SyncAttemptStatus.FAILED
        await db_session.refresh(pull_device)
        assert pull_device.is_online is True

    @pytest.mark.asyncio
    async def test_unexpected_fetch_error_finalizes_attempt(self, db_session, pull_device, sleep):
        class BrokenClient:
            async def __aenter__(self):
                return self

            async def __aexit__(self, exc_type, exc, tb):
                return False

            async def fetch_logs(self, device):
                raise TypeError("unexpected client failure")

        orchestrator = DevicePullOrchestrator(
            db_session,
            build_default_registry(),
            client_factory=BrokenClient,
            retry_config=RetryConfig(max_attempts=3, base_delay=2.0),
            sleep=sleep
        )

        results = await orchestrator.run_cycle()

        assert results[0].to_dict() == {
            "device": "Library Reader", "status": "failed", "error": "unexpected client failure"
        }
        sleep.assert_not_awaited()

        attempt = (await load_attempts(db_session))[0]
        assert attempt.status == SyncAttemptStatus.FAILED
        assert attempt.completed_at is not None
        assert attempt.error_message == "unexpected client failure"
        await db_session.refresh(pull_device)
        assert pull_device.is_online is True

    @pytest.mark.asyncio
    async def test_one_failing_device_does_not_stop_cycle(self, orchestrator, pull_device, students, db_session):
        db_session.add(Device(
            device_name="Gym Reader", device_serial="SP-2", company="suprema",
            integration=IntegrationType.API_PULL, ip_address="10.0.0.6", secret_key="gym"
        ))
        await db_session.commit()

        with aioresponses() as m:
            for _ in range(3):
                m.get(LOGS_URL, status=500)
            m.get("http://10.0.0.6/api/attendance/logs", payload=[
                {"user_id": "1002", "device_id": "SP-2", "datetime": "2026-02-12T07:55:00Z", "event_type": 3}
            ])
            results = await orchestrator.run_cycle()

        assert [(r.device, r.status) for r in results] == [
            ("Library Reader", "failed"),
            ("Gym Reader", "success"),
        ]
        assert results[1].records == 1
