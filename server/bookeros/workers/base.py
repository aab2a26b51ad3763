"""Base worker class for background tasks."""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class BaseWorker(ABC):
    """
    Abstract base class for periodic sweeps.

    A worker runs once as soon as it starts and then every interval. The
    clock is injectable so a sweep can be driven with a fixed "now"
    through ``run_once`` without any timer.
    """

    def __init__(self, name: str, interval_seconds: int = 60, clock: Optional[Clock] = None):
        """
        Args:
            name: Worker name for logging
            interval_seconds: Seconds between the start of two sweeps
            clock: Returns the current naive-UTC time (defaults to datetime.utcnow)
        """
        self.name = name
        self.interval_seconds = interval_seconds
        self.clock = clock or datetime.utcnow
        self.last_run_at: Optional[datetime] = None
        self.consecutive_failures = 0
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @abstractmethod
    async def run_once(self, now: datetime) -> Any:
        """Sweep once as of ``now`` and return a summary of what was done."""

    async def process(self) -> Any:
        now = self.clock()
        result = await self.run_once(now)
        self.last_run_at = now
        return result

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.is_running:
            logger.warning(f"{self.name} worker is already running")
            return

        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run(), name=f"worker:{self.name}")
        logger.info(f"{self.name} worker started with {self.interval_seconds}s interval")

    async def stop(self) -> None:
        """Ask the loop to finish; a sweep in progress is cancelled."""
        if not self.is_running:
            logger.warning(f"{self.name} worker is not running")
            return

        self._stop_event.set()
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

        logger.info(f"{self.name} worker stopped")

    async def _sleep(self, seconds: float) -> None:
        """Wait for the next sweep, waking early when stop() is called."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def _run(self) -> None:
        while not self._stop_event.is_set():
            loop_time = asyncio.get_running_loop().time()
            try:
                await self.process()
                self.consecutive_failures = 0
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.consecutive_failures += 1
                logger.error(
                    f"{self.name} worker sweep failed: {e!s}",
                    exc_info=True,
                    extra={"worker": self.name, "consecutive_failures": self.consecutive_failures}
                )

            elapsed = asyncio.get_running_loop().time() - loop_time
            logger.debug(
                f"{self.name} worker sweep finished",
                extra={"worker": self.name, "duration_seconds": round(elapsed, 3)}
            )
            await self._sleep(max(0.0, self.interval_seconds - elapsed))
