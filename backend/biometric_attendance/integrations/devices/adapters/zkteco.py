"""
ZKTeco push/pull log adapter.

ZKTeco terminals report a numeric ``status``: 0 is check-in, any other code
is check-out. Records without a status are treated as check-in.
"""

from typing import Any, Optional, Tuple

from biometric_attendance.integrations.devices.base import (
    AttendanceDirection, BaseDeviceAdapter, parse_number
)


class ZKTecoAdapter(BaseDeviceAdapter):
    vendor = "zkteco"
    user_id_aliases = ("pin", "user_id", "PIN")
    device_id_aliases = ("sn", "serial_number", "SN")
    timestamp_aliases = ("timestamp", "time", "Timestamp")
    direction_aliases = ("status", "Status")

    def parse_direction(self, value: Optional[Any]) -> Tuple[AttendanceDirection, bool]:
        if value is None:
            return AttendanceDirection.CHECK_IN, True
        if parse_number(value) == 0:
            return AttendanceDirection.CHECK_IN, False
        return AttendanceDirection.CHECK_OUT, False
