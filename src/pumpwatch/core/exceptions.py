"""PumpWatch exception hierarchy.

This module defines the base exception class and specialized exceptions
for the fault classes the monitor distinguishes: transport faults,
malformed events, subscription faults and underivable prices.
"""


class PumpWatchError(Exception):
    """Base exception for all PumpWatch errors.

    All custom exceptions in PumpWatch should inherit from this class
    to enable consistent error handling and logging.
    """

    pass


class ConfigurationError(PumpWatchError):
    """Raised when configuration is invalid or missing.

    Example:
        raise ConfigurationError("FEED_URL must be a websocket URL")
    """

    pass


class EventParseError(PumpWatchError):
    """Raised when an inbound feed message cannot be parsed.

    The feed read loop never lets this escape: the message is logged
    and dropped.

    Attributes:
        payload: The offending message (raw or decoded).
    """

    def __init__(self, message: str, payload: object = None) -> None:
        super().__init__(message)
        self.payload = payload


class FeedError(PumpWatchError):
    """Raised when the upstream feed transport fails.

    Attributes:
        feed: Name of the feed that failed.

    Example:
        raise FeedError(feed="PumpPortal", message="Connection reset")
    """

    def __init__(self, feed: str, message: str) -> None:
        self.feed = feed
        super().__init__(f"{feed}: {message}")


class FeedNotConnectedError(FeedError):
    """Raised when a command is issued while the feed socket is down."""

    def __init__(self, feed: str) -> None:
        super().__init__(feed, "WebSocket connection not initialized")


class SubscriptionError(PumpWatchError):
    """Raised when a per-token trade subscription cannot be acquired or released.

    Attributes:
        identifier: Token mint the subscription was for.

    Example:
        raise SubscriptionError("send failed", identifier="7xKXtg2C...")
    """

    def __init__(self, message: str, identifier: str | None = None) -> None:
        super().__init__(message)
        self.identifier = identifier


class PriceDerivationError(PumpWatchError):
    """Raised when a trade carries no usable supply to derive a price from.

    The trade has already been counted when this is raised; only the
    price point was skipped.
    """

    def __init__(self, message: str, identifier: str | None = None) -> None:
        super().__init__(message)
        self.identifier = identifier
