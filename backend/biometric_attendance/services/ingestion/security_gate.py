"""
Authentication and replay defence for device webhook deliveries.
"""

import hmac
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from biometric_attendance.core.config import settings
from biometric_attendance.integrations.devices.base import parse_timestamp
from biometric_attendance.models.device import Device, DeviceProfile
from biometric_attendance.models.webhook_nonce import WebhookNonce
from biometric_attendance.services.ingestion.sync_ledger import SyncLedger, utcnow


logger = logging.getLogger(__name__)

AUTH_FAILED_ACTION = "webhook_auth_failed"


class DeviceAuthenticationError(Exception):
    """Request could not be attributed to an enabled device. Maps to 401."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ReplayError(Exception):
    """Nonce already used by this device. Maps to 409."""

    def __init__(self, message: str = "Nonce already used"):
        super().__init__(message)
        self.message = message


class DeviceSecurityGate:
    """Decides whether a webhook request comes from a known, enabled device."""

    def __init__(
        self,
        db: AsyncSession,
        ledger: Optional[SyncLedger] = None,
        clock: Callable[[], datetime] = utcnow,
        freshness_window_seconds: Optional[int] = None
    ):
        self.db = db
        self.ledger = ledger or SyncLedger(db, clock=clock)
        self.clock = clock
        if freshness_window_seconds is None:
            freshness_window_seconds = settings.WEBHOOK_FRESHNESS_WINDOW_SECONDS
        self.freshness_window = timedelta(seconds=freshness_window_seconds)

    async def authenticate(
        self,
        device_serial: Optional[str],
        device_secret: Optional[str],
        nonce: Optional[str] = None,
        request_timestamp: Optional[str] = None,
        client_ip: Optional[str] = None
    ) -> DeviceProfile:
        """
        Run the checks in order and return the authenticated device.

        Raises:
            DeviceAuthenticationError: Missing or wrong credentials, stale request
            ReplayError: Nonce was already accepted for this device
        """
        if not device_serial or not device_secret:
            raise DeviceAuthenticationError("Missing device credentials")

        if request_timestamp:
            self._check_freshness(device_serial, request_timestamp)

        if nonce and await self._nonce_seen(device_serial, nonce):
            logger.warning(f"Replayed nonce from device {device_serial}")
            raise ReplayError()

        result = await self.db.execute(
            select(Device).where(Device.device_serial == device_serial)
        )
        device = result.scalar_one_or_none()
        if device is None or not device.is_enabled:
            logger.warning(f"Webhook from unknown or disabled device {device_serial}")
            raise DeviceAuthenticationError("Invalid device credentials")

        profile = device.to_profile()

        if not hmac.compare_digest(
            (profile.secret_key or "").encode("utf-8"),
            device_secret.encode("utf-8")
        ):
            logger.warning(f"Secret mismatch for device {device_serial} from {client_ip}")
            await self.ledger.record_audit_event(
                action=AUTH_FAILED_ACTION,
                target_table="devices",
                target_id=profile.id,
                old_data={"device_serial": device_serial},
                ip_address=client_ip
            )
            raise DeviceAuthenticationError("Invalid device credentials")

        if nonce:
            await self._consume_nonce(profile, nonce)

        return profile

    def _check_freshness(self, device_serial: str, request_timestamp: str) -> None:
        try:
            sent_at = parse_timestamp(request_timestamp)
        except (ValueError, OverflowError, OSError):
            raise DeviceAuthenticationError("Invalid request timestamp")

        # A skew of exactly the window is still accepted
        if abs(self.clock() - sent_at) > self.freshness_window:
            logger.warning(f"Stale webhook from device {device_serial}: sent at {sent_at.isoformat()}")
            raise DeviceAuthenticationError("Request expired")

    async def _nonce_seen(self, device_serial: str, nonce: str) -> bool:
        result = await self.db.execute(
            select(WebhookNonce.nonce)
            .join(Device, Device.id == WebhookNonce.device_id)
            .where(Device.device_serial == device_serial, WebhookNonce.nonce == nonce)
        )
        return result.first() is not None

    async def _consume_nonce(self, device: DeviceProfile, nonce: str) -> None:
        self.db.add(WebhookNonce(device_id=device.id, nonce=nonce))
        try:
            await self.db.commit()
        except IntegrityError:
            # Lost the race against a concurrent delivery of the same nonce
            await self.db.rollback()
            logger.warning(f"Concurrent replay of nonce from device {device.device_serial}")
            raise ReplayError()
