"""
Background task that runs the device pull cycle on a fixed interval.
"""

import asyncio
import logging
from typing import Callable, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from biometric_attendance.core.config import settings
from biometric_attendance.core.database import AsyncSessionLocal
from biometric_attendance.integrations.devices.registry import AdapterRegistry, get_adapter_registry
from biometric_attendance.services.ingestion.pull_orchestrator import DevicePullOrchestrator

logger = logging.getLogger(__name__)


class DeviceSyncScheduler:
    """
    Runs DevicePullOrchestrator.run_cycle every interval in a fresh session.
    """

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession] = AsyncSessionLocal,
        registry: Optional[AdapterRegistry] = None,
        interval_seconds: Optional[float] = None
    ):
        self.session_factory = session_factory
        self.registry = registry or get_adapter_registry()
        self.interval_seconds = interval_seconds or settings.AUTO_SYNC_INTERVAL_SECONDS
        self._running_tasks: Dict[str, asyncio.Task] = {}
        self._shutdown_event = asyncio.Event()
        self.cycles_completed = 0

    @property
    def is_running(self) -> bool:
        task = self._running_tasks.get('device_sync')
        return task is not None and not task.done()

    async def start(self) -> None:
        """Start the periodic pull loop."""
        if self.is_running:
            return
        logger.info(f"Starting device sync scheduler (every {self.interval_seconds}s)")
        self._shutdown_event.clear()
        self._running_tasks['device_sync'] = asyncio.create_task(self._sync_loop())

    async def stop(self) -> None:
        """Stop the loop and wait for it to exit."""
        logger.info("Stopping device sync scheduler")
        self._shutdown_event.set()

        for task_name, task in self._running_tasks.items():
            if not task.done():
                logger.info(f"Cancelling task: {task_name}")
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

        self._running_tasks.clear()
        logger.info("Device sync scheduler stopped")

    async def run_once(self) -> None:
        async with self.session_factory() as db:
            results = await DevicePullOrchestrator(db, self.registry).run_cycle()
        failed = [r.device for r in results if r.error]
        logger.info(
            f"Device pull cycle finished: {len(results) - len(failed)} ok, "
            f"{len(failed)} failed" + (f" ({', '.join(failed)})" if failed else "")
        )
        self.cycles_completed += 1

    async def _sync_loop(self) -> None:
        while not self._shutdown_event.is_set():
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"Error in device sync loop: {e}")

            try:
                await asyncio.wait_for(
                    self._shutdown_event.wait(),
                    timeout=self.interval_seconds
                )
                break  # Shutdown event was set
            except asyncio.TimeoutError:
                pass  # Next cycle

        logger.info("Device sync loop stopped")
