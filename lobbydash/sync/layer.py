"""Live-data synchronization: subscribe to change notifications and refetch."""

import asyncio
import logging
from typing import Any, Callable, Optional

from ..errors import (
    DashboardError,
    DuplicateTopicError,
    FetchFailure,
    SubscriptionChannelError,
)
from ..store.realtime import ChangeFeed
from .topic import FetchFn, LiveTopic

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[str, Any], None]
FailureListener = Callable[[DashboardError], None]


class SynchronizationLayer:
    """Keeps every topic's snapshot in line with the backing store.

    Per topic, fetches are strictly serialized. A change notification that
    arrives while a fetch is running only sets a pending flag, so any burst
    of notifications collapses into a single trailing fetch.
    """

    def __init__(self, feed: ChangeFeed):
        """
        Initialize layer.

        Args:
            feed: Change-notification source used to open one channel per topic
        """
        self.feed = feed
        self.topics: dict[str, LiveTopic] = {}
        self._listeners: list[SnapshotListener] = []
        self._failure_listeners: list[FailureListener] = []
        self._tasks: set[asyncio.Task] = set()
        self._running = False
        # Bumped on every start/stop so results of older fetches are dropped
        self._generation = 0

    @property
    def running(self) -> bool:
        return self._running

    def register_topic(
        self, name: str, fetch_fn: FetchFn, channel: Optional[str] = None
    ) -> LiveTopic:
        """
        Add a topic.

        Raises:
            DuplicateTopicError: If a topic with this name already exists
        """
        if name in self.topics:
            raise DuplicateTopicError(name)

        topic = LiveTopic(name, fetch_fn, channel)
        self.topics[name] = topic
        logger.debug(f"Registered topic {name} (channel={topic.channel})")
        return topic

    def add_listener(self, listener: SnapshotListener):
        """Call ``listener(topic_name, snapshot)`` after every applied snapshot."""
        self._listeners.append(listener)

    def add_failure_listener(self, listener: FailureListener):
        """Call ``listener(error)`` on every fetch or channel failure."""
        self._failure_listeners.append(listener)

    def snapshot(self, name: str) -> Any:
        """Last good snapshot of a topic (None if never fetched)."""
        return self.topics[name].last_snapshot

    async def start(self):
        """
        Load every topic and open its change-notification channel.

        Initial fetches run concurrently; a failing topic never blocks the
        others. Calling start on a running layer does nothing.
        """
        if self._running:
            return

        self._running = True
        self._generation += 1
        logger.info(f"Starting synchronization for {len(self.topics)} topics")

        for topic in self.topics.values():
            topic.degraded = False
            self.notify(topic.name)

        for topic in self.topics.values():
            await self._open_channel(topic)

    async def _open_channel(self, topic: LiveTopic):
        generation = self._generation

        def on_change():
            if self._generation == generation:
                self.notify(topic.name)

        def on_error(error: SubscriptionChannelError):
            if self._generation == generation:
                self._channel_failed(topic, error)

        try:
            subscription = await self.feed.subscribe(topic.channel, on_change, on_error)
        except Exception as e:
            if self._running and self._generation == generation:
                self._channel_failed(topic, SubscriptionChannelError(topic.channel, str(e)))
            return

        if not self._running or self._generation != generation:
            # Stopped while the channel was opening
            await self._close_subscription(topic.name, subscription)
            return

        topic.subscription = subscription

    async def stop(self):
        """
        Close all channels and drop queued refreshes.

        Fetches already in flight finish, but their results are discarded.
        """
        if not self._running:
            return

        self._running = False
        self._generation += 1

        for topic in self.topics.values():
            topic.pending = False
            subscription, topic.subscription = topic.subscription, None
            if subscription is not None:
                await self._close_subscription(topic.name, subscription)

        logger.info("Synchronization stopped")

    async def _close_subscription(self, name: str, subscription):
        try:
            await subscription.unsubscribe()
        except Exception as e:
            logger.warning(f"Error closing channel for {name}: {e}")

    def notify(self, name: str):
        """
        Handle a change notification for a topic.

        Starts a fetch if the topic is idle, otherwise marks one trailing
        refresh as pending.
        """
        if not self._running:
            return

        topic = self.topics.get(name)
        if topic is None:
            logger.warning(f"Change notification for unknown topic {name}")
            return

        if topic.in_flight:
            if not topic.pending:
                logger.debug(f"{name}: fetch in flight, queueing one trailing refresh")
            topic.pending = True
            return

        topic.in_flight = True
        task = asyncio.create_task(self._run(topic), name=f"fetch:{name}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def refresh_all(self):
        """Treat every topic as changed."""
        for name in self.topics:
            self.notify(name)

    async def _run(self, topic: LiveTopic):
        try:
            while True:
                generation = self._generation
                topic.fetch_count += 1

                try:
                    snapshot = await topic.fetch()
                except Exception as e:
                    if self._running and self._generation == generation:
                        self._fetch_failed(topic, e)
                else:
                    if self._running and self._generation == generation:
                        topic.apply(snapshot)
                        self._emit(topic.name, snapshot)
                    else:
                        logger.debug(f"{topic.name}: discarding result after stop")

                if not (topic.pending and self._running):
                    break
                topic.pending = False
        finally:
            topic.in_flight = False

    def _emit(self, name: str, snapshot: Any):
        for listener in self._listeners:
            try:
                listener(name, snapshot)
            except Exception:
                logger.exception(f"Snapshot listener failed for topic {name}")

    def _report(self, error: DashboardError):
        for listener in self._failure_listeners:
            try:
                listener(error)
            except Exception:
                logger.exception("Failure listener raised")

    def _fetch_failed(self, topic: LiveTopic, cause: Exception):
        failure = FetchFailure(topic.name, cause)
        topic.last_error = str(cause)
        logger.warning(f"{failure} (keeping last snapshot)")
        self._report(failure)

    def _channel_failed(self, topic: LiveTopic, error: SubscriptionChannelError):
        topic.degraded = True
        topic.subscription = None
        topic.last_error = str(error)
        logger.error(f"{error}; topic {topic.name} is stale until the next reload")
        self._report(error)

    async def wait_idle(self):
        """Wait until no fetch is in flight."""
        while True:
            tasks = [task for task in self._tasks if not task.done()]
            if not tasks:
                return
            await asyncio.gather(*tasks, return_exceptions=True)

    def status(self) -> dict:
        """Health of every topic, keyed by name."""
        return {name: topic.status() for name, topic in self.topics.items()}
