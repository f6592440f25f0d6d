"""Timed view rotation with pause/resume for edit sessions."""

import logging
from typing import Callable, Sequence

from .timers import RepeatingTimer

logger = logging.getLogger(__name__)

VIEWS = ("signature", "new", "pending", "sales", "flipchart")
ROTATION_INTERVAL_SECONDS = 30.0

ViewListener = Callable[[str, str], None]


class RotationScheduler:
    """Advances the active view on a fixed cadence.

    Pausing tears the timer down rather than ignoring ticks, so resuming
    always waits a full interval before the next advance.
    """

    def __init__(
        self,
        views: Sequence[str] = VIEWS,
        interval: float = ROTATION_INTERVAL_SECONDS,
        timer_factory: Callable[..., RepeatingTimer] = RepeatingTimer,
    ):
        """
        Initialize scheduler.

        Args:
            views: Cyclic view order; the first one is shown initially
            interval: Seconds between advances
            timer_factory: Builds the repeating timer (swapped in tests)
        """
        if not views:
            raise ValueError("At least one view is required")

        self.views = tuple(views)
        self.interval = interval
        self.active_view = self.views[0]
        self.paused = False
        self._started = False
        self._listeners: list[ViewListener] = []
        self.timer = timer_factory(interval, self.advance, name="rotation")

    @property
    def running(self) -> bool:
        return self.timer.running

    def add_view_listener(self, listener: ViewListener):
        """Call ``listener(previous, current)`` whenever the view changes."""
        self._listeners.append(listener)

    def get_active_view(self) -> str:
        return self.active_view

    def start(self):
        """Start rotating. Idempotent."""
        self._started = True
        if not self.paused:
            self.timer.start()

    def stop(self):
        """Stop rotating and clear any pause left behind by an editor."""
        self._started = False
        self.paused = False
        self.timer.stop()

    def set_paused(self, paused: bool):
        """
        Gate rotation while an edit session is open.

        Pausing cancels the timer; unpausing starts a fresh one. Repeated
        calls with the same value do nothing.
        """
        if paused == self.paused:
            return

        self.paused = paused
        if paused:
            self.timer.stop()
            logger.info("Rotation paused")
        else:
            if self._started:
                self.timer.start()
            logger.info("Rotation resumed")

    def advance(self):
        """Move to the next view (one timer tick)."""
        if self.paused:
            return
        index = self.views.index(self.active_view)
        self._change(self.views[(index + 1) % len(self.views)])

    def show(self, view: str):
        """Jump to a view without touching the timer (manual tab selection)."""
        if view not in self.views:
            raise ValueError(f"Unknown view: {view}")
        self._change(view)

    def _change(self, view: str):
        previous = self.active_view
        if view == previous:
            return
        self.active_view = view
        logger.debug(f"View: {previous} -> {view}")
        for listener in self._listeners:
            try:
                listener(previous, view)
            except Exception:
                logger.exception("View listener failed")
