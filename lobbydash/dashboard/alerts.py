"""Goal alert levels and the transition-driven effects they trigger."""

import calendar
import logging
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Callable, Optional, Union

from ..store.models import GoalMetric
from .timers import DelayedAction

logger = logging.getLogger(__name__)

Number = Union[int, float, Decimal]

ACHIEVED_PERCENTAGE = 100
WARNING_PERCENTAGE = 80
CRITICAL_DAYS_REMAINING = 3

CELEBRATION_DELAY_SECONDS = 2.0
CELEBRATION_DURATION_SECONDS = 10.0

CUE_SUCCESS = "success"
CUE_WARNING = "warning"


class AlertLevel(str, Enum):
    NORMAL = "normal"
    WARNING = "warning"
    CRITICAL = "critical"
    ACHIEVED = "achieved"


def last_day_of_month(year: int, month: int) -> date:
    return date(year, month, calendar.monthrange(year, month)[1])


def days_remaining_in_period(period: tuple[int, int], today: date) -> int:
    """
    Days between today and the last calendar day of the period's month.

    Example:
        period = (2026, 10), today = 2026-10-19 -> 12
    """
    year, month = period
    return (last_day_of_month(year, month) - today).days


def classify(percentage_achieved: Number, days_remaining: int) -> AlertLevel:
    """
    Classify goal health.

    ACHIEVED wins over everything; CRITICAL (few days left and under 80%)
    is checked before the plain WARNING/NORMAL split.
    """
    if percentage_achieved >= ACHIEVED_PERCENTAGE:
        return AlertLevel.ACHIEVED
    if days_remaining <= CRITICAL_DAYS_REMAINING and percentage_achieved < WARNING_PERCENTAGE:
        return AlertLevel.CRITICAL
    if percentage_achieved >= WARNING_PERCENTAGE:
        return AlertLevel.WARNING
    return AlertLevel.NORMAL


def evaluate(metric: GoalMetric, today: Optional[date] = None) -> AlertLevel:
    """Alert level of a metric as of ``today`` (defaults to the current date)."""
    today = today or date.today()
    return classify(
        metric.percentage_achieved, days_remaining_in_period(metric.period, today)
    )


Scheduler = Callable[[float, Callable[[], None]], DelayedAction]


class AlertEngine:
    """Tracks the level of one goal and fires effects on level transitions.

    - entering ACHIEVED: success cue now, celebration shown after 2s and
      hidden 10s after the transition
    - entering CRITICAL: warning cue, only the first time in a session
    - leaving ACHIEVED: pending celebration actions are cancelled
    """

    def __init__(
        self,
        schedule: Scheduler = DelayedAction,
        celebration_delay: float = CELEBRATION_DELAY_SECONDS,
        celebration_duration: float = CELEBRATION_DURATION_SECONDS,
        today_fn: Callable[[], date] = date.today,
    ):
        self.schedule = schedule
        self.celebration_delay = celebration_delay
        self.celebration_duration = celebration_duration
        self.today_fn = today_fn

        self.level: Optional[AlertLevel] = None
        self.metric: Optional[GoalMetric] = None
        self.celebrating = False
        self._critical_cue_fired = False
        self._pending: list[DelayedAction] = []

        self._cue_listeners: list[Callable[[str], None]] = []
        self._celebration_listeners: list[Callable[[bool], None]] = []
        self._level_listeners: list[Callable[[Optional[AlertLevel], Optional[AlertLevel]], None]] = []

    def add_cue_listener(self, listener: Callable[[str], None]):
        """``listener(cue)`` with cue "success" or "warning"."""
        self._cue_listeners.append(listener)

    def add_celebration_listener(self, listener: Callable[[bool], None]):
        """``listener(show)`` at the celebration's show/hide boundaries."""
        self._celebration_listeners.append(listener)

    def add_level_listener(self, listener):
        """``listener(previous, current)`` on every level transition."""
        self._level_listeners.append(listener)

    def observe(self, metric: Optional[GoalMetric], today: Optional[date] = None) -> Optional[AlertLevel]:
        """
        Feed a fresh snapshot of the goal.

        Args:
            metric: Latest goal snapshot, or None when no goal is configured
            today: Evaluation date (defaults to today_fn())

        Returns:
            The current alert level
        """
        self.metric = metric
        level = evaluate(metric, today or self.today_fn()) if metric else None
        previous = self.level
        if level == previous:
            return level

        self.level = level
        logger.info(f"Goal alert level: {_name(previous)} -> {_name(level)}")
        self._dispatch(self._level_listeners, previous, level)

        if previous == AlertLevel.ACHIEVED:
            self._stop_celebration()

        if level == AlertLevel.ACHIEVED:
            self._start_celebration()
        elif level == AlertLevel.CRITICAL and not self._critical_cue_fired:
            # Latched for the whole session, even if the goal recovers
            self._critical_cue_fired = True
            self._dispatch(self._cue_listeners, CUE_WARNING)

        return level

    def _start_celebration(self):
        self._dispatch(self._cue_listeners, CUE_SUCCESS)
        self._pending = [
            self.schedule(self.celebration_delay, lambda: self._set_celebrating(True)),
            self.schedule(self.celebration_duration, lambda: self._set_celebrating(False)),
        ]

    def _stop_celebration(self):
        self.cancel()
        if self.celebrating:
            self._set_celebrating(False)

    def _set_celebrating(self, show: bool):
        self.celebrating = show
        self._dispatch(self._celebration_listeners, show)

    def cancel(self):
        """Cancel every pending delayed action."""
        for action in self._pending:
            action.cancel()
        self._pending = []

    @property
    def has_pending(self) -> bool:
        return any(action.pending for action in self._pending)

    def _dispatch(self, listeners, *args):
        for listener in listeners:
            try:
                listener(*args)
            except Exception:
                logger.exception("Alert listener failed")


def _name(level: Optional[AlertLevel]) -> str:
    return level.value if level else "none"
