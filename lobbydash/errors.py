"""Exception hierarchy for the dashboard core.

- DashboardError (base)
  - DuplicateTopicError (wiring bug, raised at setup)
  - ConfigurationError (invalid setting, replaced by a default)
  - FetchFailure (one topic refresh failed, stale data kept)
  - SubscriptionChannelError (change-notification channel dropped)
  - StoreError (REST request or payload decoding failed)
"""

from typing import Optional


class DashboardError(Exception):
    """Base exception for all dashboard errors."""

    pass


class DuplicateTopicError(DashboardError):
    """A topic with the same name is already registered."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Topic already registered: {name}")


class ConfigurationError(DashboardError):
    """A configured value is invalid and was replaced by a safe default."""

    pass


class FetchFailure(DashboardError):
    """Fetching a topic snapshot failed."""

    def __init__(self, topic: str, cause: BaseException):
        self.topic = topic
        self.cause = cause
        super().__init__(f"Fetch failed for topic {topic}: {cause}")


class SubscriptionChannelError(DashboardError):
    """A change-notification channel failed or was closed by the server."""

    def __init__(self, channel: str, reason: Optional[str] = None):
        self.channel = channel
        self.reason = reason
        msg = f"Channel {channel} failed"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class StoreError(DashboardError):
    """The backing store returned an error or an unexpected payload."""

    pass
