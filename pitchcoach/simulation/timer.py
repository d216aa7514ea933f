"""
Elapsed-time counter for the active session.
"""
import asyncio
import logging
from typing import Callable, Optional

from ..config import TIMER_INTERVAL

logger = logging.getLogger("session_timer")


class SessionTimer:
    """Counts whole ticks (seconds by default) on the running event loop."""

    def __init__(self, interval: float = TIMER_INTERVAL, on_tick: Optional[Callable[[int], None]] = None):
        self.interval = interval
        self.on_tick = on_tick
        self.elapsed_seconds = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start counting. Calling it again while running does nothing."""
        if self.is_running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.debug("Session timer started at %ds", self.elapsed_seconds)

    def stop(self) -> int:
        """Stop counting and return the elapsed value."""
        if self._task is not None:
            self._task.cancel()
            self._task = None
            logger.debug("Session timer stopped at %ds", self.elapsed_seconds)
        return self.elapsed_seconds

    def reset(self) -> None:
        self.stop()
        self.elapsed_seconds = 0

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            self.elapsed_seconds += 1
            if self.on_tick:
                self.on_tick(self.elapsed_seconds)
