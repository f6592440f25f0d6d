"""Dashboard session: wires sync, alerts, rotation and the reload watchdog."""

import logging
from collections import deque
from dataclasses import asdict
from datetime import date, datetime
from typing import Any, Callable, Optional

from ..store.client import StoreClient
from ..store.feeds import DashboardFeeds
from ..store.models import GoalMetric
from ..store.realtime import RealtimeClient
from ..sync.layer import SynchronizationLayer
from .alerts import AlertEngine, days_remaining_in_period, evaluate
from .display import DisplayModeClassifier
from .progress import card_urgency, progress_emoji, progress_tone, rank_by, remaining_amount
from .rotation import RotationScheduler
from .watchdog import ReloadWatchdog

logger = logging.getLogger(__name__)

SALES_GOAL_TOPIC = "sales_goal"
SALES_VIEW = "sales"
MAX_EVENTS = 50


class DashboardSession:
    """One dashboard session on one display.

    start() opens every channel and starts both timers; stop() tears all of
    it down again: channels, rotation timer, reload timer and any pending
    celebration actions.
    """

    def __init__(
        self,
        layer: SynchronizationLayer,
        rotation: RotationScheduler,
        watchdog: ReloadWatchdog,
        alerts: AlertEngine,
        display: Optional[DisplayModeClassifier] = None,
        resources: Optional[list] = None,
        today_fn: Callable[[], date] = date.today,
    ):
        """
        Initialize session.

        Args:
            layer: Synchronization layer with topics already registered
            rotation: View rotation scheduler
            watchdog: Configured reload watchdog
            alerts: Alert engine fed by the sales goal topic
            display: Display mode classifier
            resources: Clients with async connect()/disconnect(), opened on start
            today_fn: Returns the current date
        """
        self.layer = layer
        self.rotation = rotation
        self.watchdog = watchdog
        self.alerts = alerts
        self.display = display or DisplayModeClassifier()
        self.resources = resources or []
        self.today_fn = today_fn

        self.started = False
        self.editing = False
        self.celebration_visible = False
        self.events: deque = deque(maxlen=MAX_EVENTS)
        self._event_seq = 0

        self.layer.add_listener(self._on_snapshot)
        self.layer.add_failure_listener(self._on_failure)
        self.alerts.add_cue_listener(self._on_cue)
        self.alerts.add_celebration_listener(self._on_celebration)
        self.alerts.add_level_listener(self._on_level)
        self.rotation.add_view_listener(self._on_view_change)

    @classmethod
    def from_settings(cls, settings, reload_fn: Optional[Callable[[], None]] = None) -> "DashboardSession":
        """Build a session talking to the configured store."""
        store = StoreClient(
            settings.store_url, settings.store_api_key, timeout=settings.store_timeout_seconds
        )
        realtime = RealtimeClient(settings.store_url, settings.store_api_key)

        layer = SynchronizationLayer(realtime)
        for topic in DashboardFeeds(store).topics():
            layer.register_topic(topic.name, topic.fetch, topic.channel)

        watchdog = ReloadWatchdog(reload_fn=reload_fn) if reload_fn else ReloadWatchdog()
        watchdog.configure(
            settings.auto_reload_ms,
            enabled=settings.auto_reload_enabled,
            pause_when_hidden=settings.auto_reload_pause_when_hidden,
        )

        return cls(
            layer=layer,
            rotation=RotationScheduler(interval=settings.rotation_interval_seconds),
            watchdog=watchdog,
            alerts=AlertEngine(),
            resources=[store, realtime],
        )

    async def start(self):
        """Open channels, load data and start both timers. Idempotent."""
        if self.started:
            return
        self.started = True
        logger.info("Starting dashboard session...")

        for resource in self.resources:
            try:
                await resource.connect()
            except Exception as e:
                # Topics that need it degrade when their channel fails to open
                logger.error(f"Could not connect {type(resource).__name__}: {e}")

        await self.layer.start()
        self.rotation.start()
        self.watchdog.start()
        logger.info(f"✓ Dashboard session started on view {self.rotation.active_view}")

    async def stop(self):
        """Tear down every channel, timer and delayed action. Idempotent."""
        if not self.started:
            return
        self.started = False
        logger.info("Stopping dashboard session...")

        try:
            await self.layer.stop()
        finally:
            # Also clears a pause left by an editor that went away
            self.rotation.stop()
            self.watchdog.stop()
            self.alerts.cancel()
            self.celebration_visible = False
            self.editing = False

            for resource in reversed(self.resources):
                try:
                    await resource.disconnect()
                except Exception as e:
                    logger.warning(f"Error disconnecting {type(resource).__name__}: {e}")

        logger.info("Dashboard session stopped")

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.stop()

    # Inbound signals

    def on_editing_change(self, editing: bool):
        """Editing surface opened or closed: pause or resume rotation."""
        self.editing = editing
        self.rotation.set_paused(editing)

    def set_visible(self, visible: bool):
        self.watchdog.set_visible(visible)

    def report_viewport(self, width: float, height: float, user_agent_hints=None):
        return self.display.update(width, height, user_agent_hints)

    def show_view(self, view: str):
        self.rotation.show(view)

    def refresh(self):
        """Refetch every topic as if all of them had changed."""
        self.layer.refresh_all()

    def reevaluate_alerts(self):
        """
        Re-check the goal level against today's date.

        Days remaining shrink without any data change, so the level can
        cross into CRITICAL on a quiet day.
        """
        topic = self.layer.topics.get(SALES_GOAL_TOPIC)
        if topic is None or not topic.has_snapshot:
            return
        self.alerts.observe(topic.last_snapshot, self.today_fn())

    # Internal wiring

    def _record(self, kind: str, value: Any):
        self._event_seq += 1
        self.events.append(
            {
                "seq": self._event_seq,
                "type": kind,
                "value": value,
                "at": datetime.now().isoformat(),
            }
        )

    def _on_snapshot(self, name: str, snapshot: Any):
        if name == SALES_GOAL_TOPIC:
            self.alerts.observe(snapshot, self.today_fn())

    def _on_failure(self, error):
        self._record("error", str(error))

    def _on_cue(self, cue: str):
        self._record("cue", cue)

    def _on_level(self, previous, current):
        self._record("level", current.value if current else None)

    def _on_celebration(self, show: bool):
        # Only the sales view owns the celebration effect
        visible = show and self.rotation.active_view == SALES_VIEW
        if visible != self.celebration_visible:
            self.celebration_visible = visible
            self._record("celebration", visible)

    def _on_view_change(self, previous: str, current: str):
        self._record("view", current)
        if self.celebration_visible:
            self.celebration_visible = False
            self._record("celebration", False)
        self.reevaluate_alerts()

    # Presentation state

    def _goal_state(self, metric: Optional[GoalMetric], today: date) -> Optional[dict]:
        if metric is None:
            return None
        return {
            "year": metric.year,
            "month": metric.month,
            "team": metric.team,
            "target_value": str(metric.target_value),
            "achieved_value": str(metric.achieved_value),
            "percentage_achieved": str(metric.percentage_achieved),
            "remaining_value": str(remaining_amount(metric)),
            "days_remaining": days_remaining_in_period(metric.period, today),
            "level": evaluate(metric, today).value,
            "emoji": progress_emoji(metric.percentage_achieved),
            "tone": progress_tone(metric.percentage_achieved),
        }

    def _cards_state(self, name: str, view: str, today: date) -> list[dict]:
        cards = self.layer.snapshot(name) if name in self.layer.topics else None
        result = []
        for card in cards or ():
            row = asdict(card)
            row["due"] = card.due.isoformat() if card.due else None
            row["created_at"] = card.created_at.isoformat() if card.created_at else None
            row["urgency"] = card_urgency(card, today, view)
            result.append(row)
        return result

    def state(self) -> dict:
        """Serializable snapshot of everything the presentation needs."""
        self.reevaluate_alerts()
        today = self.today_fn()

        def snapshot(name):
            return self.layer.snapshot(name) if name in self.layer.topics else None

        monthly = snapshot("monthly_proposals") or ()
        pages = snapshot("flip_chart") or ()

        return {
            "started": self.started,
            "active_view": self.rotation.active_view,
            "views": list(self.rotation.views),
            "paused": self.rotation.paused,
            "editing": self.editing,
            "display_mode": self.display.mode.value,
            "alert_level": self.alerts.level.value if self.alerts.level else None,
            "celebration_visible": self.celebration_visible,
            "sales_goal": self._goal_state(snapshot("sales_goal"), today),
            "previous_goal": self._goal_state(snapshot("previous_goal"), today),
            "team_goals": [
                self._goal_state(metric, today) for metric in snapshot("team_goals") or ()
            ],
            "signature": self._cards_state("signature", "signature", today),
            "new_proposals": self._cards_state("new_proposals", "new", today),
            "pending": self._cards_state("pending", "pending", today),
            "rankings": {
                "supervisors": rank_by(monthly, lambda card: card.supervisor),
                "operators": rank_by(monthly, lambda card: card.operator_logo),
            },
            "flip_chart": [
                {"page_number": page.page_number, "text": page.text, "style": dict(page.style)}
                for page in pages
            ],
            "watchdog": {
                "enabled": self.watchdog.enabled,
                "running": self.watchdog.running,
                "interval_ms": self.watchdog.interval_ms,
                "visible": self.watchdog.visible,
                "reload_count": self.watchdog.reload_count,
            },
            "topics": self.layer.status(),
            "events": list(self.events),
        }
