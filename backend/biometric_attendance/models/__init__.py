from .device import Device, DeviceCompany, DeviceProfile, IntegrationType
from .student import Student
from .attendance import AttendanceRecord, AttendanceStatus
from .sync_log import DeviceSyncLog, SyncAttemptStatus, SyncType
from .webhook_nonce import WebhookNonce
from .audit_log import AuditLog

__all__ = [
    "Device",
    "DeviceCompany",
    "DeviceProfile",
    "IntegrationType",
    "Student",
    "AttendanceRecord",
    "AttendanceStatus",
    "DeviceSyncLog",
    "SyncAttemptStatus",
    "SyncType",
    "WebhookNonce",
    "AuditLog",
]
