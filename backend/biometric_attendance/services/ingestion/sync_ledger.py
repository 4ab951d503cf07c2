"""
Sync attempt bookkeeping, device connectivity state and the audit trail.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from biometric_attendance.models.audit_log import AuditLog
from biometric_attendance.models.device import Device
from biometric_attendance.models.sync_log import DeviceSyncLog, SyncAttemptStatus, SyncType


logger = logging.getLogger(__name__)


class SyncAttemptFinalizedError(Exception):
    """Raised when finalizing an attempt that is unknown or already terminal."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SyncLedger:
    """Writes to device_sync_logs, devices and audit_logs. Every call commits."""

    def __init__(self, db: AsyncSession, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.clock = clock

    async def start_attempt(self, device_id: int, sync_type: SyncType) -> int:
        attempt = DeviceSyncLog(
            device_id=device_id,
            sync_type=sync_type,
            status=SyncAttemptStatus.PENDING,
            records_synced=0,
            started_at=self.clock()
        )
        self.db.add(attempt)
        await self.db.commit()
        logger.debug(f"Started {sync_type.value} attempt {attempt.id} for device {device_id}")
        return attempt.id

    async def complete_attempt(
        self,
        attempt_id: int,
        status: SyncAttemptStatus,
        records_synced: int = 0,
        error_message: Optional[str] = None
    ) -> None:
        """
        Move a pending attempt to its terminal status.

        The WHERE clause on status makes the transition happen at most once,
        even if two callers race on the same attempt.

        Raises:
            ValueError: If status is not terminal
            SyncAttemptFinalizedError: If the attempt is unknown or already finalized
        """
        if status == SyncAttemptStatus.PENDING:
            raise ValueError("Sync attempt can only be completed with a terminal status")

        stmt = (
            update(DeviceSyncLog)
            .where(
                DeviceSyncLog.id == attempt_id,
                DeviceSyncLog.status == SyncAttemptStatus.PENDING
            )
            .values(
                status=status,
                records_synced=records_synced,
                error_message=error_message,
                completed_at=self.clock()
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        if result.rowcount != 1:
            await self.db.rollback()
            raise SyncAttemptFinalizedError(f"Sync attempt {attempt_id} is not pending")
        await self.db.commit()

        logger.info(
            f"Sync attempt {attempt_id} finished {status.value}: "
            f"{records_synced} records synced"
            + (f", errors: {error_message}" if error_message else "")
        )

    async def mark_device_synced(self, device_id: int) -> None:
        await self._update_device(device_id, last_sync_at=self.clock(), is_online=True)

    async def mark_device_offline(self, device_id: int) -> None:
        """Clear the connectivity flag only; enablement and config stay as they are."""
        await self._update_device(device_id, is_online=False)
        logger.warning(f"Device {device_id} marked offline")

    async def _update_device(self, device_id: int, **values: Any) -> None:
        stmt = (
            update(Device)
            .where(Device.id == device_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(stmt)
        await self.db.commit()

    async def record_audit_event(
        self,
        action: str,
        target_table: str,
        target_id: Optional[int] = None,
        old_data: Optional[Dict[str, Any]] = None,
        new_data: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None
    ) -> int:
        entry = AuditLog(
            action=action,
            target_table=target_table,
            target_id=target_id,
            old_data=old_data,
            new_data=new_data,
            ip_address=ip_address
        )
        self.db.add(entry)
        await self.db.commit()
        return entry.id
