"""Worker manager for the background sweeps."""

import asyncio
import logging
from typing import Dict

from ..core.config import settings
from .base import BaseWorker
from .notification_worker import NotificationSweepWorker
from .seat_hold_worker import SeatHoldCleanupWorker

logger = logging.getLogger(__name__)


class WorkerManager:
    """Owns the seat-hold reaper and the notification sweep and starts or stops them together."""

    def __init__(self):
        self.workers: Dict[str, BaseWorker] = {
            "seat_hold_cleanup": SeatHoldCleanupWorker(
                interval_seconds=settings.seat_hold_cleanup_interval_seconds
            ),
            "notifications": NotificationSweepWorker(
                interval_seconds=settings.scheduler_interval_seconds
            ),
        }

    async def start_all(self) -> None:
        for name, worker in self.workers.items():
            try:
                await worker.start()
            except Exception as e:
                logger.error(f"Failed to start worker {name}: {e!s}", exc_info=True)

        logger.info(
            "Background workers started",
            extra={"workers": sorted(name for name, w in self.workers.items() if w.is_running)}
        )

    async def stop_all(self) -> None:
        """Stop every running worker; one failing to stop does not block the others."""
        running = [(name, w) for name, w in self.workers.items() if w.is_running]
        results = await asyncio.gather(*(w.stop() for _, w in running), return_exceptions=True)

        for (name, _), result in zip(running, results):
            if isinstance(result, Exception):
                logger.error(f"Error stopping worker {name}: {result!s}")

        logger.info("Background workers stopped", extra={"stopped": len(running)})

    def get_worker(self, name: str) -> BaseWorker:
        """
        Raises:
            KeyError: If worker not found
        """
        return self.workers[name]

    def get_worker_status(self) -> Dict[str, bool]:
        """Map of worker name to running status."""
        return {name: worker.is_running for name, worker in self.workers.items()}


worker_manager = WorkerManager()
