"""Tests for the reload watchdog."""

import math

import pytest

from conftest import FakeTimer
from lobbydash.dashboard.watchdog import (
    DEFAULT_INTERVAL_MS,
    MIN_INTERVAL_MS,
    ReloadWatchdog,
    validate_interval,
)


class Clock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def reloads() -> list:
    return []


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def watchdog(reloads, clock) -> ReloadWatchdog:
    return ReloadWatchdog(
        reload_fn=lambda: reloads.append(clock()),
        clock=clock,
        timer_factory=FakeTimer,
    )


class TestValidation:
    @pytest.mark.parametrize(
        "value", [500, 0, -1, 9_999, math.inf, math.nan, None, "soon"]
    )
    def test_invalid_falls_back_to_default(self, value) -> None:
        assert validate_interval(value) == DEFAULT_INTERVAL_MS

    def test_valid_values_kept(self) -> None:
        assert validate_interval(MIN_INTERVAL_MS) == MIN_INTERVAL_MS
        assert validate_interval("120000") == 120_000

    def test_configure_500ms_uses_default(self, watchdog: ReloadWatchdog) -> None:
        watchdog.configure(500, enabled=True)

        assert watchdog.interval_ms == DEFAULT_INTERVAL_MS
        assert watchdog.timer.interval == DEFAULT_INTERVAL_MS / 1000


class TestTimer:
    def test_disabled_runs_no_timer(self, watchdog: ReloadWatchdog) -> None:
        watchdog.configure(60_000, enabled=False)
        watchdog.start()

        assert watchdog.running is False

    def test_disabling_cancels_timer(self, watchdog: ReloadWatchdog) -> None:
        watchdog.configure(60_000, enabled=True)
        watchdog.start()
        assert watchdog.running is True

        watchdog.configure(60_000, enabled=False)
        assert watchdog.running is False

    def test_start_is_idempotent(self, watchdog: ReloadWatchdog) -> None:
        watchdog.configure(60_000, enabled=True)
        watchdog.start()
        watchdog.start()

        assert watchdog.timer.starts == 1

    def test_interval_change_replaces_timer(self, watchdog: ReloadWatchdog) -> None:
        watchdog.configure(60_000, enabled=True)
        watchdog.start()
        old = watchdog.timer

        watchdog.configure(120_000, enabled=True)

        assert old.running is False
        assert watchdog.timer is not old
        assert watchdog.timer.running is True
        assert watchdog.timer.interval == 120

    def test_hidden_stops_and_visible_restarts(self, watchdog: ReloadWatchdog) -> None:
        watchdog.configure(60_000, enabled=True, pause_when_hidden=True)
        watchdog.start()

        watchdog.set_visible(False)
        assert watchdog.running is False

        watchdog.set_visible(True)
        assert watchdog.running is True
        assert watchdog.timer.starts == 2

    def test_hidden_ignored_without_pause_when_hidden(self, watchdog: ReloadWatchdog) -> None:
        watchdog.configure(60_000, enabled=True, pause_when_hidden=False)
        watchdog.start()
        watchdog.set_visible(False)

        assert watchdog.running is True

    def test_stop(self, watchdog: ReloadWatchdog) -> None:
        watchdog.configure(60_000, enabled=True)
        watchdog.start()
        watchdog.stop()
        watchdog.stop()

        assert watchdog.running is False
        assert watchdog.timer.stops == 1


class TestReload:
    def test_tick_reloads(self, watchdog: ReloadWatchdog, reloads: list) -> None:
        watchdog.configure(60_000, enabled=True)
        watchdog.start()
        watchdog.timer.tick()

        assert len(reloads) == 1
        assert watchdog.reload_count == 1

    def test_cooldown_blocks_double_fire(
        self, watchdog: ReloadWatchdog, reloads: list, clock: Clock
    ) -> None:
        watchdog.configure(60_000, enabled=True)

        assert watchdog.trigger() is True
        clock.now += 4.9
        assert watchdog.trigger() is False

        assert len(reloads) == 1

    def test_reload_allowed_after_cooldown(
        self, watchdog: ReloadWatchdog, reloads: list, clock: Clock
    ) -> None:
        watchdog.configure(60_000, enabled=True)

        watchdog.trigger()
        clock.now += 5.0
        watchdog.trigger()

        assert len(reloads) == 2

    def test_no_reload_while_hidden(self, watchdog: ReloadWatchdog, reloads: list) -> None:
        watchdog.configure(60_000, enabled=True, pause_when_hidden=True)
        watchdog.set_visible(False)

        assert watchdog.trigger() is False
        assert reloads == []
