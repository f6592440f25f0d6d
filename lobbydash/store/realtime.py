"""Realtime change-notification client over WebSocket.

Speaks the Phoenix channel protocol used by the store's realtime server:
one channel per watched table, ``postgres_changes`` events with no payload
guarantees beyond "something changed".
"""

import asyncio
import contextlib
import json
import logging
from typing import Callable, Optional, Protocol
from urllib.parse import urlencode

import websockets

from ..errors import SubscriptionChannelError

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[], None]
ErrorCallback = Callable[[SubscriptionChannelError], None]


class Subscription(Protocol):
    """Handle for one open change-notification channel."""

    channel: str

    async def unsubscribe(self) -> None: ...


class ChangeFeed(Protocol):
    """Anything able to open change-notification channels."""

    async def subscribe(
        self, channel: str, on_change: ChangeCallback, on_error: ErrorCallback
    ) -> Subscription: ...


class RealtimeSubscription:
    """One joined channel on a RealtimeClient."""

    def __init__(
        self,
        client: "RealtimeClient",
        channel: str,
        table: str,
        ref: str,
        on_change: ChangeCallback,
        on_error: ErrorCallback,
    ):
        self.client = client
        self.channel = channel
        self.table = table
        self.ref = ref
        self.on_change = on_change
        self.on_error = on_error
        self.active = True

    @property
    def topic(self) -> str:
        return f"realtime:{self.channel}:{self.ref}"

    async def unsubscribe(self) -> None:
        """Leave the channel. Safe to call more than once."""
        if not self.active:
            return
        self.active = False
        await self.client._leave(self)


class RealtimeClient:
    """WebSocket client for the store's realtime API."""

    def __init__(
        self,
        store_url: str,
        api_key: str,
        schema: str = "public",
        heartbeat_interval: float = 25.0,
    ):
        """
        Initialize realtime client.

        Args:
            store_url: Store base URL (e.g., https://project.example.co)
            api_key: API key sent on connect and on every channel join
            schema: Database schema the watched tables live in
            heartbeat_interval: Seconds between protocol heartbeats
        """
        self.store_url = store_url
        self.api_key = api_key
        self.schema = schema
        self.heartbeat_interval = heartbeat_interval
        self.ws_url = self._convert_to_ws_url(store_url)
        self.websocket = None
        self._ref = 0
        self._subscriptions: dict[str, RealtimeSubscription] = {}
        self._reader_task: Optional[asyncio.Task] = None
        self._heartbeat_task: Optional[asyncio.Task] = None
        self._closing = False

    def _convert_to_ws_url(self, http_url: str) -> str:
        """Convert HTTP URL to the realtime WebSocket URL."""
        ws_url = http_url.replace("http://", "ws://").replace("https://", "wss://")
        if not ws_url.endswith("/"):
            ws_url += "/"
        query = urlencode({"apikey": self.api_key, "vsn": "1.0.0"})
        return ws_url + "realtime/v1/websocket?" + query

    def _next_ref(self) -> str:
        self._ref += 1
        return str(self._ref)

    @property
    def connected(self) -> bool:
        return self.websocket is not None

    async def connect(self):
        """Open the socket and start the reader and heartbeat loops."""
        if self.websocket is not None:
            return

        logger.info(f"Connecting to realtime at {self.ws_url.split('?')[0]}")
        self._closing = False
        self.websocket = await websockets.connect(self.ws_url)
        self._reader_task = asyncio.create_task(self._read_loop())
        self._heartbeat_task = asyncio.create_task(self._heartbeat_loop())
        logger.info("Connected to realtime server")

    async def disconnect(self):
        """Stop the loops and close the socket."""
        self._closing = True
        for task in (self._heartbeat_task, self._reader_task):
            if task and not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self._heartbeat_task = None
        self._reader_task = None

        for subscription in self._subscriptions.values():
            subscription.active = False
        self._subscriptions.clear()

        if self.websocket:
            with contextlib.suppress(Exception):
                await self.websocket.close()
            self.websocket = None
            logger.info("Disconnected from realtime server")

    async def _send(self, topic: str, event: str, payload: dict, ref: Optional[str] = None):
        if not self.websocket:
            raise SubscriptionChannelError(topic, "not connected")
        message = {
            "topic": topic,
            "event": event,
            "payload": payload,
            "ref": ref or self._next_ref(),
        }
        await self.websocket.send(json.dumps(message))

    async def subscribe(
        self, channel: str, on_change: ChangeCallback, on_error: ErrorCallback
    ) -> RealtimeSubscription:
        """
        Join a channel watching every change on one table.

        Args:
            channel: Table (or view) name to watch
            on_change: Called with no arguments whenever the table changes
            on_error: Called once if the channel fails

        Returns:
            Subscription handle
        """
        if not self.websocket:
            await self.connect()

        ref = self._next_ref()
        subscription = RealtimeSubscription(
            self, channel, channel, ref, on_change, on_error
        )
        self._subscriptions[subscription.topic] = subscription

        payload = {
            "config": {
                "broadcast": {"self": False},
                "presence": {"key": ""},
                "postgres_changes": [
                    {"event": "*", "schema": self.schema, "table": channel}
                ],
            },
            "access_token": self.api_key,
        }
        logger.debug(f"Joining channel {subscription.topic} (ref={ref})")
        await self._send(subscription.topic, "phx_join", payload, ref=ref)
        return subscription

    async def _leave(self, subscription: RealtimeSubscription):
        self._subscriptions.pop(subscription.topic, None)
        if not self.websocket:
            return
        try:
            await self._send(subscription.topic, "phx_leave", {})
        except websockets.ConnectionClosed:
            logger.debug(f"Socket already closed while leaving {subscription.topic}")
        logger.debug(f"Left channel {subscription.topic}")

    async def _heartbeat_loop(self):
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            try:
                await self._send("phoenix", "heartbeat", {})
            except (websockets.ConnectionClosed, SubscriptionChannelError):
                return

    async def _read_loop(self):
        try:
            async for raw in self.websocket:
                self._dispatch(raw)
        except websockets.ConnectionClosed as e:
            logger.warning(f"Realtime socket closed: {e}")
        finally:
            if not self._closing:
                self._fail_all("socket closed")

    def _dispatch(self, raw):
        try:
            message = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Ignoring non-JSON realtime message: {raw!r}")
            return
        if not isinstance(message, dict):
            logger.warning(f"Ignoring non-object realtime message: {raw!r}")
            return

        subscription = self._subscriptions.get(message.get("topic"))
        if subscription is None or not subscription.active:
            return

        event = message.get("event")
        payload = message.get("payload") or {}

        if event == "postgres_changes":
            subscription.on_change()
        elif event == "phx_reply" and message.get("ref") == subscription.ref:
            if payload.get("status") != "ok":
                reason = json.dumps(payload.get("response", {}))
                self._fail(subscription, f"join rejected: {reason}")
            else:
                logger.info(f"✓ Subscribed to {subscription.channel}")
        elif event in ("phx_error", "phx_close"):
            self._fail(subscription, event)

    def _fail(self, subscription: RealtimeSubscription, reason: str):
        subscription.active = False
        self._subscriptions.pop(subscription.topic, None)
        subscription.on_error(SubscriptionChannelError(subscription.channel, reason))

    def _fail_all(self, reason: str):
        for subscription in list(self._subscriptions.values()):
            self._fail(subscription, reason)
