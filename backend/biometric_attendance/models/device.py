"""
SQLAlchemy models for biometric devices.
"""

from dataclasses import dataclass
from typing import Optional
import enum

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum as SQLEnum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from sqlalchemy.ext.hybrid import hybrid_property

from biometric_attendance.core.database import Base


class DeviceCompany(str, enum.Enum):
    """Vendor tags with a dedicated or aliased payload adapter."""
    ZKTECO = "zkteco"
    HIKVISION = "hikvision"
    SUPREMA = "suprema"
    ANVIZ = "anviz"
    ESSL = "essl"
    GENERIC = "generic"


class IntegrationType(str, enum.Enum):
    """How attendance data leaves the device."""
    WEBHOOK = "webhook"
    API_PULL = "api_pull"
    SDK_MIDDLEWARE = "sdk_middleware"
    CSV_UPLOAD = "csv_upload"


@dataclass(frozen=True)
class DeviceProfile:
    """Detached, read-only view of a device row.

    The ingestion services work on profiles rather than ORM instances so a
    rollback in the middle of a batch never expires the device they hold.
    """
    id: int
    device_name: str
    device_serial: str
    company: str
    integration: IntegrationType
    ip_address: Optional[str] = None
    port: Optional[int] = None
    secret_key: Optional[str] = None

    @property
    def base_url(self) -> Optional[str]:
        if not self.ip_address:
            return None
        if self.port:
            return f"http://{self.ip_address}:{self.port}"
        return f"http://{self.ip_address}"


class Device(Base):
    """Registered biometric terminal."""

    __tablename__ = "devices"

    id = Column(Integer, primary_key=True, index=True)
    device_name = Column(String(255), nullable=False)
    device_serial = Column(String(100), unique=True, index=True, nullable=False)

    # Vendor tag is free text so devices of not-yet-supported brands can be
    # registered and fall back to the generic adapter
    company = Column(String(50), nullable=False, default=DeviceCompany.GENERIC.value)
    integration = Column(
        SQLEnum(IntegrationType, values_callable=lambda e: [m.value for m in e]),
        nullable=False, default=IntegrationType.WEBHOOK
    )

    # Network / credentials
    ip_address = Column(String(45), nullable=True)
    port = Column(Integer, nullable=True)
    secret_key = Column(String(255), nullable=True)

    # State
    is_enabled = Column(Boolean, default=True, nullable=False)
    is_online = Column(Boolean, default=False, nullable=False)
    last_sync_at = Column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    sync_logs = relationship("DeviceSyncLog", back_populates="device")

    @hybrid_property
    def is_pull_device(self) -> bool:
        return self.integration == IntegrationType.API_PULL

    def to_profile(self) -> DeviceProfile:
        return DeviceProfile(
            id=self.id,
            device_name=self.device_name,
            device_serial=self.device_serial,
            company=self.company,
            integration=self.integration,
            ip_address=self.ip_address,
            port=self.port,
            secret_key=self.secret_key,
        )

    def __repr__(self):
        return f"<Device(id={self.id}, serial={self.device_serial}, company={self.company})>"
