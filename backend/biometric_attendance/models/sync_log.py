"""
SQLAlchemy models for device sync attempts.
"""

from sqlalchemy import Column, Integer, DateTime, Text, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
import enum

from biometric_attendance.core.database import Base


class SyncType(str, enum.Enum):
    """Origin of an ingestion attempt."""
    WEBHOOK = "webhook"
    SCHEDULED_PULL = "scheduled_pull"


class SyncAttemptStatus(str, enum.Enum):
    """Status of a sync attempt. SUCCESS and FAILED are terminal."""
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class DeviceSyncLog(Base):
    """One row per webhook delivery or per pull cycle per device."""

    __tablename__ = "device_sync_logs"

    id = Column(Integer, primary_key=True, index=True)
    device_id = Column(Integer, ForeignKey("devices.id", ondelete="CASCADE"), nullable=False, index=True)

    sync_type = Column(
        SQLEnum(SyncType, values_callable=lambda e: [m.value for m in e]),
        nullable=False
    )
    status = Column(
        SQLEnum(SyncAttemptStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False, default=SyncAttemptStatus.PENDING
    )
    records_synced = Column(Integer, default=0, nullable=False)
    error_message = Column(Text, nullable=True)

    started_at = Column(DateTime(timezone=True), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    device = relationship("Device", back_populates="sync_logs")

    def __repr__(self):
        return f"<DeviceSyncLog(id={self.id}, device={self.device_id}, type={self.sync_type}, status={self.status})>"
