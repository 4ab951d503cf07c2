"""
Hikvision access-control event adapter.
"""

from typing import Any, Optional, Tuple

from biometric_attendance.integrations.devices.base import AttendanceDirection, BaseDeviceAdapter


class HikvisionAdapter(BaseDeviceAdapter):
    vendor = "hikvision"
    user_id_aliases = ("employeeNoString", "employeeNo")
    device_id_aliases = ("deviceName", "ipAddress")
    timestamp_aliases = ("dateTime", "time")
    direction_aliases = ("eventType",)

    def parse_direction(self, value: Optional[Any]) -> Tuple[AttendanceDirection, bool]:
        # Only an explicit "entry" counts as arrival
        if value is None:
            return AttendanceDirection.CHECK_OUT, True
        if str(value).strip().lower() == "entry":
            return AttendanceDirection.CHECK_IN, False
        return AttendanceDirection.CHECK_OUT, False
