"""
Background task management for device sync.
"""

from .device_sync_tasks import DeviceSyncScheduler

__all__ = [
    "DeviceSyncScheduler",
]
