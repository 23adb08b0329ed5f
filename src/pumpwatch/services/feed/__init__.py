"""Upstream feed ingestion."""

from pumpwatch.services.feed.client import PumpPortalFeed
from pumpwatch.services.feed.subscription import (
    FeedSubscription,
    SubscriptionProvider,
    TradeSubscription,
)

__all__ = [
    "FeedSubscription",
    "PumpPortalFeed",
    "SubscriptionProvider",
    "TradeSubscription",
]
