"""
Suprema BioStar event adapter.
"""

from typing import Any, Optional, Tuple

from biometric_attendance.integrations.devices.base import (
    AttendanceDirection, BaseDeviceAdapter, parse_number
)

# BioStar event codes up to this value are entry events
SUPREMA_ENTRY_EVENT_MAX = 20


class SupremaAdapter(BaseDeviceAdapter):
    vendor = "suprema"
    user_id_aliases = ("user_id",)
    device_id_aliases = ("device_id",)
    timestamp_aliases = ("datetime",)
    direction_aliases = ("event_type",)

    def parse_direction(self, value: Optional[Any]) -> Tuple[AttendanceDirection, bool]:
        if value is None:
            return AttendanceDirection.CHECK_OUT, True
        if parse_number(value) <= SUPREMA_ENTRY_EVENT_MAX:
            return AttendanceDirection.CHECK_IN, False
        return AttendanceDirection.CHECK_OUT, False
