"""
Canonical attendance event and the base class for vendor payload adapters.
"""

import enum
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from biometric_attendance.integrations.devices.error_handler import RecordNormalizationError


logger = logging.getLogger(__name__)


class AttendanceDirection(str, enum.Enum):
    CHECK_IN = "check-in"
    CHECK_OUT = "check-out"


@dataclass(frozen=True)
class AttendanceEvent:
    """Vendor-neutral attendance event. Timestamps are always aware UTC."""
    user_id: str
    device_id: str
    timestamp: datetime
    direction: AttendanceDirection
    direction_inferred: bool = False

    @property
    def timestamp_iso(self) -> str:
        utc = self.timestamp.astimezone(timezone.utc)
        return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"

    def to_dict(self) -> Dict[str, str]:
        return {
            "userId": self.user_id,
            "deviceId": self.device_id,
            "timestamp": self.timestamp_iso,
            "type": self.direction.value,
        }


@dataclass
class NormalizationResult:
    events: List[AttendanceEvent] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


def parse_timestamp(value: Any) -> datetime:
    """
    Parse a device timestamp into an aware UTC datetime.

    Accepts ISO 8601 strings (``Z`` suffix, explicit offset, or naive which is
    taken as UTC; a space may replace the ``T``) and numeric epoch seconds.

    Raises:
        ValueError: If the value is not a recognisable timestamp
    """
    if isinstance(value, bool):
        raise ValueError(f"unparseable timestamp {value!r}")

    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)

    if not isinstance(value, str):
        raise ValueError(f"unparseable timestamp {value!r}")

    text = value.strip()
    if not text:
        raise ValueError("empty timestamp")

    try:
        return datetime.fromtimestamp(float(text), tz=timezone.utc)
    except (ValueError, OverflowError):
        pass

    if text[-1] in ("Z", "z"):
        text = text[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise ValueError(f"unparseable timestamp {value!r}")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


class BaseDeviceAdapter(ABC):
    """
    Maps one vendor's raw log record onto an AttendanceEvent.

    Subclasses declare, per logical attribute, the ordered list of field
    names the vendor may use. The first alias holding a present value wins.
    """

    vendor: str = ""
    user_id_aliases: Tuple[str, ...] = ()
    device_id_aliases: Tuple[str, ...] = ()
    timestamp_aliases: Tuple[str, ...] = ()
    direction_aliases: Tuple[str, ...] = ()

    @staticmethod
    def pick(record: Mapping[str, Any], aliases: Sequence[str]) -> Optional[Any]:
        """Return the value of the first alias that is present, non-null and non-empty."""
        for alias in aliases:
            value = record.get(alias)
            if value is None:
                continue
            if isinstance(value, str) and not value.strip():
                continue
            return value
        return None

    @abstractmethod
    def parse_direction(self, value: Optional[Any]) -> Tuple[AttendanceDirection, bool]:
        """
        Map the raw direction value to a direction.

        Args:
            value: The picked direction value, or None when absent

        Returns:
            (direction, inferred) where inferred is True if the value was absent

        Raises:
            ValueError: If the value is present but malformed
        """
        pass

    def normalize_record(
        self,
        record: Any,
        default_device_id: Optional[str] = None
    ) -> AttendanceEvent:
        """
        Normalize a single raw record.

        Raises:
            RecordNormalizationError: If the record cannot be mapped
        """
        if not isinstance(record, Mapping):
            raise RecordNormalizationError("record is not an object")

        user_id = self.pick(record, self.user_id_aliases)
        if user_id is None:
            raise RecordNormalizationError("missing user id")

        device_id = self.pick(record, self.device_id_aliases)
        if device_id is None:
            device_id = default_device_id
        if device_id is None:
            raise RecordNormalizationError("missing device id")

        raw_timestamp = self.pick(record, self.timestamp_aliases)
        if raw_timestamp is None:
            raise RecordNormalizationError("missing timestamp")
        try:
            timestamp = parse_timestamp(raw_timestamp)
        except (ValueError, OverflowError, OSError) as e:
            raise RecordNormalizationError(str(e))

        try:
            direction, inferred = self.parse_direction(
                self.pick(record, self.direction_aliases)
            )
        except ValueError as e:
            raise RecordNormalizationError(str(e))

        event = AttendanceEvent(
            user_id=str(user_id).strip(),
            device_id=str(device_id).strip(),
            timestamp=timestamp,
            direction=direction,
            direction_inferred=inferred,
        )
        if inferred:
            logger.warning(
                f"{self.vendor} record for user {event.user_id} on {event.device_id} "
                f"has no direction; assumed {direction.value}"
            )
        return event

    def normalize(
        self,
        records: Sequence[Any],
        default_device_id: Optional[str] = None
    ) -> NormalizationResult:
        """Normalize a batch. Bad records are skipped and reported, never raised."""
        result = NormalizationResult()
        for index, record in enumerate(records):
            try:
                result.events.append(self.normalize_record(record, default_device_id))
            except RecordNormalizationError as e:
                result.errors.append(f"Record {index}: {e.message}")
        return result


def parse_number(value: Any) -> float:
    """Numeric direction codes arrive as numbers or numeric strings."""
    if isinstance(value, bool):
        raise ValueError(f"malformed direction {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip())
    except ValueError:
        raise ValueError(f"malformed direction {value!r}")
