"""
HTTP client for devices that expose their attendance log over REST.
"""

import asyncio
import logging
from typing import Any, List, Optional

import aiohttp

from biometric_attendance.core.config import settings
from biometric_attendance.integrations.devices.error_handler import (
    DeviceConfigurationError, DeviceErrorCategory, DeviceTransportError
)
from biometric_attendance.models.device import DeviceProfile


logger = logging.getLogger(__name__)


class DevicePullClient:
    """
    Fetches raw log records from a device.

    Use as an async context manager so the underlying session is closed:

        async with DevicePullClient() as client:
            records = await client.fetch_logs(profile)
    """

    def __init__(
        self,
        path: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        session: Optional[aiohttp.ClientSession] = None
    ):
        self.path = path or settings.DEVICE_PULL_PATH
        self.timeout_seconds = timeout_seconds or settings.DEVICE_PULL_TIMEOUT_SECONDS
        self._http_session = session
        self._owns_session = session is None

    async def __aenter__(self):
        if self._http_session is None:
            timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
            self._http_session = aiohttp.ClientSession(
                timeout=timeout,
                headers={
                    'User-Agent': 'Biometric-Attendance-Ingest/1.0',
                    'Accept': 'application/json'
                }
            )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._http_session and self._owns_session:
            await self._http_session.close()
            self._http_session = None

    def build_url(self, device: DeviceProfile) -> str:
        if not device.base_url:
            raise DeviceConfigurationError(
                f"Device {device.device_serial} has no network address",
                device_serial=device.device_serial,
                device_id=device.id,
                operation_type="pull"
            )
        return f"{device.base_url}{self.path}"

    async def fetch_logs(self, device: DeviceProfile) -> List[Any]:
        """
        One GET against the device's log endpoint.

        Returns:
            The raw records from a ``{"logs": [...]}`` or bare-list body;
            any other body shape is an empty batch

        Raises:
            DeviceConfigurationError: Device has no IP address
            DeviceTransportError: Timeout, connection failure, non-2xx or invalid JSON
        """
        if self._http_session is None:
            raise RuntimeError("HTTP session not initialized")

        url = self.build_url(device)
        headers = {'X-Device-Key': device.secret_key or ''}
        context = dict(device_serial=device.device_serial, device_id=device.id, operation_type="pull")

        try:
            async with self._http_session.get(url, headers=headers) as response:
                if response.status < 200 or response.status >= 300:
                    raise DeviceTransportError(
                        f"Device returned {response.status}",
                        details={'status': response.status},
                        **context
                    )
                try:
                    body = await response.json(content_type=None)
                except ValueError as e:
                    raise DeviceTransportError(
                        f"Device returned invalid JSON: {e}",
                        original_exception=e,
                        **context
                    )

        except asyncio.TimeoutError as e:
            raise DeviceTransportError(
                f"Timed out after {self.timeout_seconds:g}s",
                category=DeviceErrorCategory.TIMEOUT,
                original_exception=e,
                **context
            )
        except aiohttp.ClientError as e:
            raise DeviceTransportError(
                f"HTTP client error: {e}",
                original_exception=e,
                **context
            )

        if isinstance(body, dict):
            logs = body.get('logs')
            records = logs if isinstance(logs, list) else []
        elif isinstance(body, list):
            records = body
        else:
            records = []

        logger.debug(f"Fetched {len(records)} records from {device.device_serial} at {url}")
        return records
