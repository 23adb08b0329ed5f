"""Subscription capabilities handed from the feed to the aggregator."""

from __future__ import annotations

from typing import Protocol


class TradeSubscription(Protocol):
    """Capability to stop receiving trades for one token."""

    identifier: str

    async def release(self) -> None:
        """Unsubscribe. Raises SubscriptionError if the command cannot be sent."""
        ...


class SubscriptionProvider(Protocol):
    """Anything that can start per-token trade delivery (the EventIngestor)."""

    async def subscribe(self, identifier: str) -> TradeSubscription:
        """Subscribe to trades. Raises SubscriptionError on failure."""
        ...


class Unsubscriber(Protocol):
    async def unsubscribe(self, identifier: str) -> None: ...


class FeedSubscription:
    """Subscription handle bound to the feed client that issued it.

    Releasing twice is a no-op.
    """

    def __init__(self, identifier: str, feed: Unsubscriber) -> None:
        self.identifier = identifier
        self._feed = feed
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    async def release(self) -> None:
        if self._released:
            return
        await self._feed.unsubscribe(self.identifier)
        self._released = True

    def __repr__(self) -> str:
        return f"FeedSubscription({self.identifier!r}, released={self._released})"
