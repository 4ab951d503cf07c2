from .base import AttendanceDirection, AttendanceEvent, BaseDeviceAdapter, NormalizationResult
from .registry import AdapterRegistry, build_default_registry, get_adapter_registry
from .pull_client import DevicePullClient
from .error_handler import (
    DeviceConfigurationError,
    DeviceErrorHandler,
    DeviceIntegrationError,
    DeviceTransportError,
    RecordNormalizationError,
    RetryConfig,
    retry_on_error,
)

__all__ = [
    "AttendanceDirection",
    "AttendanceEvent",
    "BaseDeviceAdapter",
    "NormalizationResult",
    "AdapterRegistry",
    "build_default_registry",
    "get_adapter_registry",
    "DevicePullClient",
    "DeviceConfigurationError",
    "DeviceErrorHandler",
    "DeviceIntegrationError",
    "DeviceTransportError",
    "RecordNormalizationError",
    "RetryConfig",
    "retry_on_error",
]
