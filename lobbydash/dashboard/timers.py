"""Owned asyncio timers with idempotent start/stop."""

import asyncio
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class RepeatingTimer:
    """Calls ``callback`` every ``interval`` seconds until stopped.

    At most one underlying task exists at a time. Stopping cancels the task
    outright, so a later start always waits a full interval before the
    first call.
    """

    def __init__(self, interval: float, callback: Callable[[], None], name: str = "timer"):
        self.interval = interval
        self.callback = callback
        self.name = name
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> bool:
        """Start the timer. Returns False if it was already running."""
        if self.running:
            return False
        self._task = asyncio.create_task(self._loop(), name=self.name)
        logger.debug(f"{self.name}: started ({self.interval}s)")
        return True

    def stop(self) -> bool:
        """Cancel the timer. Returns False if it was not running."""
        if not self.running:
            self._task = None
            return False
        self._task.cancel()
        self._task = None
        logger.debug(f"{self.name}: stopped")
        return True

    async def _loop(self):
        while True:
            await asyncio.sleep(self.interval)
            try:
                self.callback()
            except Exception:
                logger.exception(f"{self.name}: tick failed")


class DelayedAction:
    """A cancellable one-shot callback scheduled on the running loop."""

    def __init__(self, delay: float, callback: Callable[[], None]):
        self.delay = delay
        self.callback = callback
        self.fired = False
        self.cancelled = False
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(delay, self._fire)

    @property
    def pending(self) -> bool:
        return not (self.fired or self.cancelled)

    def _fire(self):
        self.fired = True
        try:
            self.callback()
        except Exception:
            logger.exception("Delayed action failed")

    def cancel(self):
        if self.pending:
            self._handle.cancel()
            self.cancelled = True
