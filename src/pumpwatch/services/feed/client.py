"""PumpPortal websocket feed client.

Owns the upstream socket: subscribes to new-token events on every
connect, issues per-token trade (un)subscriptions for the aggregator and
reconnects after a drop. Every frame is parsed into an InboundEvent and
handed to the event handler one at a time, in arrival order.

Example:
    feed = PumpPortalFeed(url="wss://pumpportal.fun/api/data")
    feed.set_handlers(on_event=tracker.handle_event, on_reconnect=aggregator.resubscribe_all)
    task = asyncio.create_task(feed.run())
    ...
    await feed.stop()
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from typing import Any

import structlog
import websockets
from websockets.exceptions import WebSocketException

from pumpwatch.config.logging import short_id
from pumpwatch.constants.feed import (
    DEFAULT_FEED_URL,
    FEED_NAME,
    METHOD_SUBSCRIBE_NEW_TOKEN,
    METHOD_SUBSCRIBE_TOKEN_TRADE,
    METHOD_UNSUBSCRIBE_TOKEN_TRADE,
)
from pumpwatch.core.exceptions import FeedError, FeedNotConnectedError, SubscriptionError
from pumpwatch.models.events import InboundEvent, parse_feed_message
from pumpwatch.services.feed.subscription import FeedSubscription

log = structlog.get_logger(__name__)

EventHandler = Callable[[InboundEvent], Awaitable[None]]
ReconnectHandler = Callable[[], Awaitable[Any]]


class PumpPortalFeed:
    """Upstream event ingestor.

    Attributes:
        url: Websocket URL of the feed.
        running: True between run() and stop().
        reconnect_delay: Seconds to wait before reconnecting.
        command_timeout: Upper bound for sending one command.
    """

    def __init__(
        self,
        url: str = DEFAULT_FEED_URL,
        reconnect_delay: float = 5.0,
        command_timeout: float = 5.0,
        connect: Callable[[str], Any] | None = None,
    ) -> None:
        """Initialize feed client.

        Args:
            url: Websocket URL of the feed.
            reconnect_delay: Seconds between a drop and the next connect.
            command_timeout: Seconds before a send is considered failed.
            connect: Connection factory (defaults to websockets.connect).
        """
        self.url = url
        self.reconnect_delay = reconnect_delay
        self.command_timeout = command_timeout
        self.running = False
        self._connect = connect or websockets.connect
        self._ws: Any = None
        self._connections = 0
        self._on_event: EventHandler | None = None
        self._on_reconnect: ReconnectHandler | None = None
        self._background: set[asyncio.Task[Any]] = set()

    def set_handlers(
        self,
        on_event: EventHandler | None = None,
        on_reconnect: ReconnectHandler | None = None,
    ) -> None:
        """Attach the event sink and the reconnect hook."""
        if on_event is not None:
            self._on_event = on_event
        if on_reconnect is not None:
            self._on_reconnect = on_reconnect

    @property
    def connected(self) -> bool:
        return self._ws is not None

    @property
    def connection_count(self) -> int:
        return self._connections

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def _send(self, payload: dict[str, Any]) -> None:
        ws = self._ws
        if ws is None:
            raise FeedNotConnectedError(FEED_NAME)
        try:
            await asyncio.wait_for(ws.send(json.dumps(payload)), timeout=self.command_timeout)
        except (WebSocketException, OSError, TimeoutError) as e:
            raise FeedError(FEED_NAME, f"send failed: {e!s}") from e

    async def subscribe(self, identifier: str) -> FeedSubscription:
        """Start receiving trades for a token.

        Raises:
            SubscriptionError: If the command could not be sent.
        """
        try:
            await self._send({"method": METHOD_SUBSCRIBE_TOKEN_TRADE, "keys": [identifier]})
        except FeedError as e:
            raise SubscriptionError(str(e), identifier=identifier) from e

        log.debug("token_trades_subscribed", token=short_id(identifier))
        return FeedSubscription(identifier, self)

    async def unsubscribe(self, identifier: str) -> None:
        """Stop receiving trades for a token.

        Raises:
            SubscriptionError: If the command could not be sent.
        """
        try:
            await self._send({"method": METHOD_UNSUBSCRIBE_TOKEN_TRADE, "keys": [identifier]})
        except FeedError as e:
            raise SubscriptionError(str(e), identifier=identifier) from e

        log.info("token_trades_unsubscribed", token=short_id(identifier))

    # ------------------------------------------------------------------
    # Read loop
    # ------------------------------------------------------------------

    async def run(self) -> None:
        """Connect, read and reconnect until stop() is called."""
        self.running = True
        log.info("feed_starting", url=self.url)

        while self.running:
            try:
                async with self._connect(self.url) as ws:
                    self._ws = ws
                    self._connections += 1
                    await ws.send(json.dumps({"method": METHOD_SUBSCRIBE_NEW_TOKEN}))
                    log.info("feed_connected", url=self.url, connection=self._connections)

                    if self._connections > 1:
                        self._schedule_resubscribe()

                    async for raw in ws:
                        await self._dispatch(raw)

                log.info("feed_closed", url=self.url)
            except asyncio.CancelledError:
                raise
            except (WebSocketException, OSError, TimeoutError) as e:
                log.warning("feed_connection_lost", url=self.url, error=str(e))
            finally:
                self._ws = None

            if self.running:
                await asyncio.sleep(self.reconnect_delay)

        log.info("feed_stopped")

    async def _dispatch(self, raw: str | bytes) -> None:
        event = parse_feed_message(raw)
        if self._on_event is None:
            return
        try:
            await self._on_event(event)
        except Exception as e:
            # One bad event must not take the read loop down
            log.error("feed_event_handler_failed", kind=event.kind, error=str(e))

    def _schedule_resubscribe(self) -> None:
        if self._on_reconnect is None:
            return
        task = asyncio.create_task(self._on_reconnect())
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def stop(self) -> None:
        """Stop the read loop and close the socket."""
        self.running = False
        ws = self._ws
        if ws is not None:
            await ws.close()
        for task in list(self._background):
            task.cancel()
        log.info("feed_stop_requested")
