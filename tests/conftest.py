"""Pytest configuration and fixtures."""

import asyncio
from datetime import date
from decimal import Decimal

import pytest

from lobbydash.errors import SubscriptionChannelError
from lobbydash.store.models import GoalMetric


class FakeSubscription:
    """Channel handle returned by FakeFeed."""

    def __init__(self, feed, channel, on_change, on_error):
        self.feed = feed
        self.channel = channel
        self.on_change = on_change
        self.on_error = on_error
        self.active = True

    async def unsubscribe(self):
        if self.active:
            self.active = False
            self.feed.unsubscribed.append(self.channel)


class FakeFeed:
    """In-memory change feed: tests fire notifications by channel name."""

    def __init__(self, fail_on_subscribe=()):
        self.subscriptions: list[FakeSubscription] = []
        self.unsubscribed: list[str] = []
        self.fail_on_subscribe = set(fail_on_subscribe)

    async def subscribe(self, channel, on_change, on_error):
        if channel in self.fail_on_subscribe:
            raise ConnectionError(f"cannot join {channel}")
        subscription = FakeSubscription(self, channel, on_change, on_error)
        self.subscriptions.append(subscription)
        return subscription

    def active(self, channel=None):
        return [
            s for s in self.subscriptions
            if s.active and (channel is None or s.channel == channel)
        ]

    def fire(self, channel):
        for subscription in self.active(channel):
            subscription.on_change()

    def fail(self, channel, reason="phx_error"):
        for subscription in self.active(channel):
            subscription.active = False
            subscription.on_error(SubscriptionChannelError(channel, reason))


class GatedFetcher:
    """Async fetcher that blocks on a gate and returns results by call number.

    Results that are exceptions are raised. The last result repeats.
    """

    def __init__(self, *results, open_gate=False):
        self.results = list(results) or [None]
        self.calls = 0
        self.active = 0
        self.max_active = 0
        self._gate = asyncio.Event()
        if open_gate:
            self._gate.set()

    def open(self):
        self._gate.set()

    def close(self):
        self._gate.clear()

    async def __call__(self):
        self.calls += 1
        call = self.calls
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await self._gate.wait()
        finally:
            self.active -= 1

        result = self.results[min(call, len(self.results)) - 1]
        if isinstance(result, Exception):
            raise result
        return result


class FakeTimer:
    """Drop-in for RepeatingTimer that never touches the event loop."""

    def __init__(self, interval, callback, name="timer"):
        self.interval = interval
        self.callback = callback
        self.name = name
        self.running = False
        self.starts = 0
        self.stops = 0

    def start(self):
        if self.running:
            return False
        self.running = True
        self.starts += 1
        return True

    def stop(self):
        if not self.running:
            return False
        self.running = False
        self.stops += 1
        return True

    def tick(self):
        assert self.running, "tick on a stopped timer"
        self.callback()


class FakeAction:
    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.fired = False
        self.cancelled = False

    @property
    def pending(self):
        return not (self.fired or self.cancelled)

    def cancel(self):
        if self.pending:
            self.cancelled = True

    def fire(self):
        assert self.pending
        self.fired = True
        self.callback()


class FakeScheduler:
    """Records delayed actions; tests fire them by elapsed time."""

    def __init__(self):
        self.actions: list[FakeAction] = []

    def __call__(self, delay, callback):
        action = FakeAction(delay, callback)
        self.actions.append(action)
        return action

    def advance_to(self, seconds):
        for action in sorted(self.actions, key=lambda a: a.delay):
            if action.pending and action.delay <= seconds:
                action.fire()

    @property
    def pending(self):
        return [a for a in self.actions if a.pending]


def make_goal(percentage, year=2026, month=10, target="100000", team=None) -> GoalMetric:
    percentage = Decimal(str(percentage))
    target = Decimal(target)
    return GoalMetric(
        year=year,
        month=month,
        target_value=target,
        achieved_value=target * percentage / 100,
        percentage_achieved=percentage,
        team=team,
    )


@pytest.fixture
def feed() -> FakeFeed:
    return FakeFeed()


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def today() -> date:
    """Mid-month date: 12 days left in October 2026."""
    return date(2026, 10, 19)
