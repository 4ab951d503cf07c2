"""
Error taxonomy, logging and retry utilities for biometric device integrations.
"""

import asyncio
import logging
import traceback
from datetime import datetime, timezone
from typing import Dict, Any, Optional, Callable, Awaitable, Union


# Device-integration specific logger
device_logger = logging.getLogger('device_integration')


class DeviceErrorSeverity:
    """Error severity levels for device operations."""
    LOW = "low"           # One record affected, batch continues
    MEDIUM = "medium"     # One device/attempt affected
    HIGH = "high"         # Device misconfigured, needs operator action
    CRITICAL = "critical"


class DeviceErrorCategory:
    """Error categories for better classification."""
    NETWORK = "network"
    TIMEOUT = "timeout"
    CONFIGURATION = "configuration"
    DATA_VALIDATION = "data_validation"
    UNKNOWN = "unknown"


class DeviceIntegrationError(Exception):
    """Base exception for device integration errors with enhanced metadata."""

    def __init__(
        self,
        message: str,
        category: str = DeviceErrorCategory.UNKNOWN,
        severity: str = DeviceErrorSeverity.MEDIUM,
        device_serial: Optional[str] = None,
        device_id: Optional[int] = None,
        operation_type: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        retryable: bool = True,
        original_exception: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.device_serial = device_serial
        self.device_id = device_id
        self.operation_type = operation_type
        self.details = details or {}
        self.retryable = retryable
        self.original_exception = original_exception
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/storage."""
        return {
            'message': self.message,
            'category': self.category,
            'severity': self.severity,
            'device_serial': self.device_serial,
            'device_id': self.device_id,
            'operation_type': self.operation_type,
            'details': self.details,
            'retryable': self.retryable,
            'timestamp': self.timestamp.isoformat(),
            'traceback': traceback.format_exc() if self.original_exception else None
        }


class DeviceTransportError(DeviceIntegrationError):
    """Device unreachable, timed out, or answered with an unusable response."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault('category', DeviceErrorCategory.NETWORK)
        super().__init__(
            message,
            severity=DeviceErrorSeverity.MEDIUM,
            retryable=True,
            **kwargs
        )


class DeviceConfigurationError(DeviceIntegrationError):
    """Device row cannot be used as configured (e.g. no network address)."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=DeviceErrorCategory.CONFIGURATION,
            severity=DeviceErrorSeverity.HIGH,
            retryable=False,
            **kwargs
        )


class RecordNormalizationError(DeviceIntegrationError):
    """A single raw record could not be mapped to a canonical event."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=DeviceErrorCategory.DATA_VALIDATION,
            severity=DeviceErrorSeverity.LOW,
            retryable=False,
            **kwargs
        )


class DeviceErrorHandler:
    """Central error handler for device operations."""

    def log_error(
        self,
        error: Union[DeviceIntegrationError, Exception],
        context: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Log an error with full context.

        Args:
            error: The error to log
            context: Additional context information

        Returns:
            The structured error entry that was logged
        """
        if isinstance(error, DeviceIntegrationError):
            error_dict = error.to_dict()
        else:
            error_dict = {
                'message': str(error),
                'category': DeviceErrorCategory.UNKNOWN,
                'severity': DeviceErrorSeverity.MEDIUM,
                'timestamp': datetime.now(timezone.utc).isoformat(),
                'traceback': traceback.format_exc()
            }

        if context:
            error_dict.update(context)

        severity = error_dict.get('severity', DeviceErrorSeverity.MEDIUM)
        log_message = f"Device Error [{severity.upper()}]: {error_dict['message']}"

        # 'message' clashes with LogRecord attributes, keep it out of extra
        extra = {f"device_{k}": v for k, v in error_dict.items()}
        if severity == DeviceErrorSeverity.CRITICAL:
            device_logger.critical(log_message, extra=extra)
        elif severity == DeviceErrorSeverity.HIGH:
            device_logger.error(log_message, extra=extra)
        elif severity == DeviceErrorSeverity.MEDIUM:
            device_logger.warning(log_message, extra=extra)
        else:
            device_logger.info(log_message, extra=extra)

        return error_dict


class RetryConfig:
    """Configuration for retry attempts."""

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 2.0,
        max_delay: float = 60.0,
        exponential_base: float = 1.0
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        # 1.0 keeps the delay fixed between attempts
        self.exponential_base = exponential_base

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after the given zero-based failed attempt."""
        return min(
            self.base_delay * (self.exponential_base ** attempt),
            self.max_delay
        )


async def retry_on_error(
    func: Callable[..., Awaitable[Any]],
    retry_config: RetryConfig,
    retryable_errors: tuple = (DeviceTransportError,),
    *args,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    on_retry: Optional[Callable[[int, Exception], None]] = None,
    **kwargs
) -> Any:
    """
    Retry an async call on specific errors with a bounded number of attempts.

    Args:
        func: Coroutine function to retry
        retry_config: Retry configuration
        retryable_errors: Tuple of error types that should trigger retry
        sleep: Awaitable used to wait between attempts
        on_retry: Called with (attempt number, error) after each failed attempt
        *args: Arguments for function
        **kwargs: Keyword arguments for function

    Returns:
        Function result

    Raises:
        The last retryable error once the budget is exhausted, or any
        non-retryable error immediately.
    """
    last_exception = None

    for attempt in range(retry_config.max_attempts):
        try:
            return await func(*args, **kwargs)

        except retryable_errors as e:
            if isinstance(e, DeviceIntegrationError) and not e.retryable:
                raise

            last_exception = e
            if on_retry:
                on_retry(attempt + 1, e)

            if attempt == retry_config.max_attempts - 1:
                # Last attempt, don't wait
                break

            delay = retry_config.delay_for(attempt)
            device_logger.info(
                f"Retrying operation in {delay:.1f}s "
                f"(attempt {attempt + 1}/{retry_config.max_attempts}): {e}"
            )
            await sleep(delay)

    raise last_exception
