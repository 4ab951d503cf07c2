"""
Pull ingestion: poll every enabled api_pull device once per cycle.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from biometric_attendance.core.config import settings
from biometric_attendance.integrations.devices.error_handler import (
    DeviceErrorHandler, DeviceIntegrationError, DeviceTransportError,
    RetryConfig, retry_on_error
)
from biometric_attendance.integrations.devices.pull_client import DevicePullClient
from biometric_attendance.integrations.devices.registry import AdapterRegistry
from biometric_attendance.models.device import Device, DeviceProfile
from biometric_attendance.models.sync_log import SyncAttemptStatus, SyncType
from biometric_attendance.services.ingestion.reconciliation import ReconciliationEngine
from biometric_attendance.services.ingestion.sync_ledger import SyncLedger


logger = logging.getLogger(__name__)

NO_PULL_DEVICES_MESSAGE = "No API pull devices found"


@dataclass
class DeviceSyncResult:
    device: str
    status: str
    records: Optional[int] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"device": self.device, "status": self.status}
        if self.status == SyncAttemptStatus.SUCCESS.value:
            data["records"] = self.records
        else:
            data["error"] = self.error
        return data


class DevicePullOrchestrator:
    """
    Runs one sync cycle over all pull devices, one device at a time.

    Only the network fetch is retried. A device that stays unreachable for the
    whole retry budget gets a failed attempt and is marked offline; other
    devices in the cycle are unaffected.
    """

    def __init__(
        self,
        db: AsyncSession,
        registry: AdapterRegistry,
        client_factory: Callable[[], DevicePullClient] = DevicePullClient,
        retry_config: Optional[RetryConfig] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        error_handler: Optional[DeviceErrorHandler] = None
    ):
        self.db = db
        self.registry = registry
        self.client_factory = client_factory
        self.retry_config = retry_config or RetryConfig(
            max_attempts=settings.DEVICE_PULL_MAX_ATTEMPTS,
            base_delay=settings.DEVICE_PULL_BACKOFF_SECONDS
        )
        self.sleep = sleep
        self.error_handler = error_handler or DeviceErrorHandler()
        self.ledger = SyncLedger(db)
        self.engine = ReconciliationEngine(db)

    async def load_pull_devices(self) -> List[DeviceProfile]:
        result = await self.db.execute(
            select(Device)
            .where(Device.is_pull_device, Device.is_enabled.is_(True))
            .order_by(Device.id)
        )
        return [device.to_profile() for device in result.scalars().all()]

    async def run_cycle(self) -> List[DeviceSyncResult]:
        devices = await self.load_pull_devices()
        if not devices:
            logger.info(NO_PULL_DEVICES_MESSAGE)
            return []

        logger.info(f"Starting pull cycle for {len(devices)} devices")
        results = []
        async with self.client_factory() as client:
            for device in devices:
                try:
                    results.append(await self.sync_device(device, client))
                except Exception as e:
                    # Ledger itself failed; keep going with the next device
                    await self.db.rollback()
                    logger.exception(f"Pull cycle failed for device {device.device_serial}")
                    results.append(DeviceSyncResult(
                        device=device.device_name,
                        status=SyncAttemptStatus.FAILED.value,
                        error=str(e)
                    ))
        return results

    async def sync_device(self, device: DeviceProfile, client: DevicePullClient) -> DeviceSyncResult:
        attempt_id = await self.ledger.start_attempt(device.id, SyncType.SCHEDULED_PULL)

        def log_retry(attempt: int, error: Exception) -> None:
            self.error_handler.log_error(error, {'attempt': attempt})

        try:
            records = await retry_on_error(
                client.fetch_logs,
                self.retry_config,
                (DeviceTransportError,),
                device,
                sleep=self.sleep,
                on_retry=log_retry
            )
        except DeviceIntegrationError as e:
            if not e.retryable:
                self.error_handler.log_error(e)
            logger.error(f"Device {device.device_serial} unreachable: {e.message}")
            await self.ledger.complete_attempt(attempt_id, SyncAttemptStatus.FAILED, 0, e.message)
            await self.ledger.mark_device_offline(device.id)
            return DeviceSyncResult(
                device=device.device_name,
                status=SyncAttemptStatus.FAILED.value,
                error=e.message
            )
        except Exception as e:
            # Not a device fault; connectivity flag stays as it was
            await self.db.rollback()
            logger.exception(f"Unexpected error fetching logs from device {device.device_serial}")
            await self.ledger.complete_attempt(attempt_id, SyncAttemptStatus.FAILED, 0, str(e))
            return DeviceSyncResult(
                device=device.device_name,
                status=SyncAttemptStatus.FAILED.value,
                error=str(e)
            )

        try:
            normalized = self.registry.normalize(
                device.company, records, default_device_id=device.device_serial
            )
            outcome = await self.engine.reconcile_batch(normalized.events, device.id)
        except Exception as e:
            # Device answered; connectivity flag stays as it was
            await self.db.rollback()
            logger.exception(f"Failed to process logs from device {device.device_serial}")
            await self.ledger.complete_attempt(attempt_id, SyncAttemptStatus.FAILED, 0, str(e))
            return DeviceSyncResult(
                device=device.device_name,
                status=SyncAttemptStatus.FAILED.value,
                error=str(e)
            )

        errors = normalized.errors + outcome.errors
        await self.ledger.complete_attempt(
            attempt_id,
            SyncAttemptStatus.SUCCESS,
            outcome.records_synced,
            "; ".join(errors) if errors else None
        )
        await self.ledger.mark_device_synced(device.id)

        return DeviceSyncResult(
            device=device.device_name,
            status=SyncAttemptStatus.SUCCESS.value,
            records=outcome.records_synced
        )
