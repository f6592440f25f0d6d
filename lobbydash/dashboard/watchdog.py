"""Periodic full restart as a last-resort recovery mechanism."""

import logging
import math
import os
import sys
import time
from typing import Callable, Optional

from ..errors import ConfigurationError
from .timers import RepeatingTimer

logger = logging.getLogger(__name__)

MIN_INTERVAL_MS = 10_000  # 10 seconds
DEFAULT_INTERVAL_MS = 600_000  # 10 minutes
COOLDOWN_SECONDS = 5.0


def restart_process():
    """Replace the current process with a fresh copy of itself."""
    logger.warning("Restarting process")
    logging.shutdown()
    os.execv(sys.executable, sys.orig_argv)


def validate_interval(interval_ms) -> float:
    """
    Return a safe reload interval in milliseconds.

    Anything non-numeric, non-finite or below MIN_INTERVAL_MS is replaced
    by DEFAULT_INTERVAL_MS so a bad setting can never cause a reload storm.
    """
    try:
        value = float(interval_ms)
    except (TypeError, ValueError):
        value = math.nan

    if not math.isfinite(value) or value < MIN_INTERVAL_MS:
        error = ConfigurationError(
            f"Invalid reload interval {interval_ms!r} ms, using {DEFAULT_INTERVAL_MS} ms"
        )
        logger.warning(str(error))
        return float(DEFAULT_INTERVAL_MS)

    return value


class ReloadWatchdog:
    """Owns a single repeating timer that restarts the whole process.

    The timer only runs while enabled and, with pause_when_hidden, while
    the display is visible. Reloads closer together than the cooldown are
    refused.
    """

    def __init__(
        self,
        reload_fn: Callable[[], None] = restart_process,
        clock: Callable[[], float] = time.monotonic,
        timer_factory: Callable[..., RepeatingTimer] = RepeatingTimer,
        cooldown: float = COOLDOWN_SECONDS,
    ):
        self.reload_fn = reload_fn
        self.clock = clock
        self.timer_factory = timer_factory
        self.cooldown = cooldown

        self.interval_ms = float(DEFAULT_INTERVAL_MS)
        self.enabled = False
        self.pause_when_hidden = True
        self.visible = True
        self.last_reload_at: Optional[float] = None
        self.reload_count = 0

        self._started = False
        self.timer = self._build_timer()

    def _build_timer(self) -> RepeatingTimer:
        return self.timer_factory(self.interval_ms / 1000, self.trigger, name="auto-reload")

    @property
    def running(self) -> bool:
        return self.timer.running

    def configure(self, interval_ms, enabled: bool = True, pause_when_hidden: bool = True):
        """
        Apply settings, rebuilding the timer if the interval changed.

        Args:
            interval_ms: Reload period; invalid values fall back to the default
            enabled: When False no timer runs
            pause_when_hidden: Stop the timer while the display is hidden
        """
        interval_ms = validate_interval(interval_ms)
        if interval_ms != self.interval_ms:
            self.timer.stop()
            self.interval_ms = interval_ms
            self.timer = self._build_timer()

        self.enabled = enabled
        self.pause_when_hidden = pause_when_hidden
        logger.info(
            f"Auto reload {'enabled' if enabled else 'disabled'} "
            f"(every {self.interval_ms / 1000:.0f}s, pause_when_hidden={pause_when_hidden})"
        )
        self._sync()

    def start(self):
        """Start watching. Idempotent."""
        self._started = True
        self._sync()

    def stop(self):
        """Cancel the timer. Idempotent."""
        self._started = False
        self.timer.stop()

    def set_visible(self, visible: bool):
        """Report display visibility (screen on/off, tab shown/hidden)."""
        if visible == self.visible:
            return
        self.visible = visible
        logger.debug(f"Display {'visible' if visible else 'hidden'}")
        self._sync()

    def _should_run(self) -> bool:
        if not (self._started and self.enabled):
            return False
        return self.visible or not self.pause_when_hidden

    def _sync(self):
        if self._should_run():
            self.timer.start()
        else:
            self.timer.stop()

    def trigger(self) -> bool:
        """
        Timer callback: issue a reload unless one was issued recently.

        Returns:
            True if a reload was issued
        """
        if self.pause_when_hidden and not self.visible:
            return False

        now = self.clock()
        if self.last_reload_at is not None and now - self.last_reload_at < self.cooldown:
            logger.warning("Reload requested during cooldown, ignoring")
            return False

        self.last_reload_at = now
        self.reload_count += 1
        logger.warning("Auto reload triggered, restarting now")
        self.reload_fn()
        return True
