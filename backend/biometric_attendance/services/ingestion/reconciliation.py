"""
Merge canonical attendance events into the one-row-per-student-per-day table.
"""

import logging
from dataclasses import dataclass, field
from datetime import timezone
from typing import List, Optional, Sequence

from sqlalchemy import select, func
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from biometric_attendance.integrations.devices.base import AttendanceDirection, AttendanceEvent
from biometric_attendance.models.attendance import AttendanceRecord, AttendanceStatus
from biometric_attendance.models.student import Student


logger = logging.getLogger(__name__)


class StudentNotFoundError(Exception):
    """No student carries the event's biometric id."""

    def __init__(self, biometric_id: str):
        super().__init__(f"Student not found for biometric ID: {biometric_id}")
        self.biometric_id = biometric_id


@dataclass
class ReconciliationResult:
    records_synced: int = 0
    errors: List[str] = field(default_factory=list)


class ReconciliationEngine:
    """
    Upserts events keyed on (student_id, attendance_date).

    A check-in only ever writes check_in and a check-out only check_out, so
    the two halves of a day can arrive in any order, from any device, any
    number of times. Each event commits on its own.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def resolve_student_id(self, biometric_id: str) -> int:
        result = await self.db.execute(
            select(Student.id).where(Student.biometric_id == biometric_id)
        )
        student_id = result.scalar_one_or_none()
        if student_id is None:
            raise StudentNotFoundError(biometric_id)
        return student_id

    def _insert(self):
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            return postgresql.insert(AttendanceRecord)
        if dialect == "sqlite":
            return sqlite.insert(AttendanceRecord)
        raise NotImplementedError(f"Attendance upsert not supported on {dialect}")

    async def reconcile(self, event: AttendanceEvent, device_id: Optional[int]) -> None:
        """
        Merge one event.

        Raises:
            StudentNotFoundError: Unknown biometric id; nothing is written
            SQLAlchemyError: Store failure; the caller decides about rollback
        """
        student_id = await self.resolve_student_id(event.user_id)

        timestamp = event.timestamp.astimezone(timezone.utc)
        column = "check_in" if event.direction == AttendanceDirection.CHECK_IN else "check_out"

        stmt = self._insert().values(
            student_id=student_id,
            attendance_date=timestamp.date(),
            device_id=device_id,
            status=AttendanceStatus.PRESENT,
            **{column: timestamp}
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[AttendanceRecord.student_id, AttendanceRecord.attendance_date],
            set_={
                column: stmt.excluded[column],
                "status": stmt.excluded.status,
                "device_id": stmt.excluded.device_id,
                "updated_at": func.now(),
            }
        )
        await self.db.execute(stmt)
        await self.db.commit()

    async def reconcile_batch(
        self,
        events: Sequence[AttendanceEvent],
        device_id: Optional[int]
    ) -> ReconciliationResult:
        """Merge every event; failures are collected and never stop the batch."""
        result = ReconciliationResult()

        for event in events:
            try:
                await self.reconcile(event, device_id)
                result.records_synced += 1
            except StudentNotFoundError as e:
                logger.warning(str(e))
                result.errors.append(str(e))
            except SQLAlchemyError as e:
                await self.db.rollback()
                logger.error(f"Failed to reconcile event for {event.user_id}: {e}")
                result.errors.append(f"Failed for {event.user_id}: {e}")
            except Exception as e:
                await self.db.rollback()
                logger.exception(f"Error processing log for {event.user_id}")
                result.errors.append(f"Error processing log: {e}")

        return result
