from sqlalchemy import (
    Column, Integer, String, Boolean, Date, DateTime, ForeignKey, UniqueConstraint,
    Enum as SQLEnum
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum

from biometric_attendance.core.database import Base


class AttendanceStatus(str, enum.Enum):
    PRESENT = "present"
    LATE = "late"
    ABSENT = "absent"
    EXCUSED = "excused"


class AttendanceRecord(Base):
    """One row per student per calendar day."""

    __tablename__ = "attendance"
    __table_args__ = (
        UniqueConstraint("student_id", "attendance_date", name="uq_attendance_student_date"),
    )

    id = Column(Integer, primary_key=True, index=True)

    # Foreign keys
    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    device_id = Column(Integer, ForeignKey("devices.id", ondelete="SET NULL"), nullable=True)  # NULL for manual entries

    # Attendance details
    attendance_date = Column(Date, nullable=False, index=True)
    check_in = Column(DateTime(timezone=True), nullable=True)
    check_out = Column(DateTime(timezone=True), nullable=True)
    status = Column(
        SQLEnum(AttendanceStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False, default=AttendanceStatus.PRESENT
    )

    # Manual corrections / soft delete
    is_manual = Column(Boolean, default=False, nullable=False)
    correction_reason = Column(String(500), nullable=True)
    is_deleted = Column(Boolean, default=False, nullable=False)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    student = relationship("Student", back_populates="attendance_records")
