"""
Vendor tag to payload adapter lookup.
"""

import logging
from functools import lru_cache
from types import MappingProxyType
from typing import Any, Mapping, Optional, Sequence

from biometric_attendance.integrations.devices.base import BaseDeviceAdapter, NormalizationResult
from biometric_attendance.integrations.devices.adapters import (
    GenericAdapter, HikvisionAdapter, SupremaAdapter, ZKTecoAdapter
)
from biometric_attendance.models.device import DeviceCompany


logger = logging.getLogger(__name__)


class AdapterRegistry:
    """Read-only mapping of vendor tags to adapters with a generic fallback."""

    def __init__(self, adapters: Mapping[str, BaseDeviceAdapter], fallback: BaseDeviceAdapter):
        self._adapters = MappingProxyType({k.lower(): v for k, v in adapters.items()})
        self._fallback = fallback

    def resolve(self, vendor_tag: Optional[str]) -> BaseDeviceAdapter:
        """Adapter for the tag; unknown, empty or missing tags get the fallback."""
        if not vendor_tag:
            return self._fallback
        adapter = self._adapters.get(str(vendor_tag).strip().lower())
        if adapter is None:
            logger.debug(f"No adapter registered for vendor '{vendor_tag}', using generic")
            return self._fallback
        return adapter

    def normalize(
        self,
        vendor_tag: Optional[str],
        raw_records: Sequence[Any],
        default_device_id: Optional[str] = None
    ) -> NormalizationResult:
        adapter = self.resolve(vendor_tag)
        result = adapter.normalize(raw_records, default_device_id=default_device_id)
        if result.errors:
            logger.info(
                f"{adapter.vendor} adapter skipped {len(result.errors)} of "
                f"{len(raw_records)} records"
            )
        return result


def build_default_registry() -> AdapterRegistry:
    generic = GenericAdapter()
    return AdapterRegistry(
        {
            DeviceCompany.ZKTECO.value: ZKTecoAdapter(),
            DeviceCompany.HIKVISION.value: HikvisionAdapter(),
            DeviceCompany.SUPREMA.value: SupremaAdapter(),
            DeviceCompany.ANVIZ.value: generic,
            DeviceCompany.ESSL.value: generic,
            DeviceCompany.GENERIC.value: generic,
        },
        fallback=generic,
    )


@lru_cache()
def get_adapter_registry() -> AdapterRegistry:
    """FastAPI dependency returning the process-wide registry."""
    return build_default_registry()
