"""
Generic JSON adapter, also used for Anviz, eSSL and unrecognised vendors.
"""

from typing import Any, Optional, Tuple

from biometric_attendance.integrations.devices.base import AttendanceDirection, BaseDeviceAdapter


CHECK_IN_SPELLINGS = frozenset({"check-in", "check_in", "checkin", "in", "entry", "0"})
CHECK_OUT_SPELLINGS = frozenset({"check-out", "check_out", "checkout", "out", "exit", "1"})


class GenericAdapter(BaseDeviceAdapter):
    vendor = "generic"
    user_id_aliases = ("userId", "user_id", "biometric_id")
    device_id_aliases = ("deviceId", "device_id")
    timestamp_aliases = ("timestamp", "time", "datetime")
    direction_aliases = ("type", "event_type")

    def parse_direction(self, value: Optional[Any]) -> Tuple[AttendanceDirection, bool]:
        if value is None:
            return AttendanceDirection.CHECK_IN, True
        spelling = str(value).strip().lower()
        if spelling in CHECK_IN_SPELLINGS:
            return AttendanceDirection.CHECK_IN, False
        if spelling in CHECK_OUT_SPELLINGS:
            return AttendanceDirection.CHECK_OUT, False
        raise ValueError(f"malformed direction {value!r}")
