"""A single live data feed."""

from datetime import datetime
from typing import Any, Awaitable, Callable, Optional

FetchFn = Callable[[], Awaitable[Any]]


class LiveTopic:
    """One named feed: its fetcher, last good snapshot and in-flight guard.

    The topic holds state only; SynchronizationLayer decides when to fetch.
    """

    def __init__(self, name: str, fetch: FetchFn, channel: Optional[str] = None):
        """
        Initialize topic.

        Args:
            name: Unique topic name (e.g., "sales_goal")
            fetch: Async callable returning the full current snapshot
            channel: Dataset to watch for change notifications (defaults to name)
        """
        self.name = name
        self.fetch = fetch
        self.channel = channel or name

        self.last_snapshot: Any = None
        self.has_snapshot = False
        self.last_refreshed_at: Optional[datetime] = None
        self.last_error: Optional[str] = None
        self.fetch_count = 0

        # At most one fetch outstanding, plus at most one queued behind it
        self.in_flight = False
        self.pending = False

        # Set when the notification channel dies: data is stale until reload
        self.degraded = False
        self.subscription = None

    def apply(self, snapshot: Any):
        """Replace the snapshot wholesale after a successful fetch."""
        self.last_snapshot = snapshot
        self.has_snapshot = True
        self.last_refreshed_at = datetime.now()
        self.last_error = None

    def status(self) -> dict:
        """Serializable view of the topic's health."""
        return {
            "name": self.name,
            "channel": self.channel,
            "has_snapshot": self.has_snapshot,
            "in_flight": self.in_flight,
            "pending": self.pending,
            "degraded": self.degraded,
            "subscribed": self.subscription is not None,
            "fetch_count": self.fetch_count,
            "last_refreshed_at": (
                self.last_refreshed_at.isoformat() if self.last_refreshed_at else None
            ),
            "last_error": self.last_error,
        }
