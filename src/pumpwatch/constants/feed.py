"""PumpPortal feed constants."""

from typing import Final

DEFAULT_FEED_URL: Final[str] = "wss://pumpportal.fun/api/data"
FEED_NAME: Final[str] = "PumpPortal"

# Outbound methods
METHOD_SUBSCRIBE_NEW_TOKEN: Final[str] = "subscribeNewToken"
METHOD_SUBSCRIBE_TOKEN_TRADE: Final[str] = "subscribeTokenTrade"
METHOD_UNSUBSCRIBE_TOKEN_TRADE: Final[str] = "unsubscribeTokenTrade"

# Inbound txType tags
TX_TYPE_CREATE: Final[str] = "create"
TX_TYPE_BUY: Final[str] = "buy"
TX_TYPE_SELL: Final[str] = "sell"

# Unlabelled tokens in broadcast payloads
UNKNOWN_SYMBOL: Final[str] = "Unknown"
