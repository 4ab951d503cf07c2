from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.sql import func

from biometric_attendance.core.database import Base


class WebhookNonce(Base):
    """Single-use request token. The composite key is the replay guard."""

    __tablename__ = "webhook_nonces"

    device_id = Column(Integer, ForeignKey("devices.id", ondelete="CASCADE"), primary_key=True)
    nonce = Column(String(255), primary_key=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
