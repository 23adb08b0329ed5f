"""Per-token rolling state kept by the metrics aggregator."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pumpwatch.services.feed.subscription import TradeSubscription


class TradeSide(str, Enum):
    """Direction of a trade."""

    BUY = "buy"
    SELL = "sell"


@dataclass(frozen=True)
class TradeRecord:
    """One trade as it arrived from the feed. Immutable once appended."""

    trader: str
    side: TradeSide
    token_amount: float
    liquidity: float  # quote held by the bonding curve after the trade
    token_supply_remaining: float | None  # tokens held by the curve after the trade
    market_cap: float  # in quote units
    timestamp: datetime

    @property
    def price(self) -> float | None:
        """Implied price, or None when the supply is zero or missing."""
        if not self.token_supply_remaining:
            return None
        return self.market_cap / self.token_supply_remaining

    @property
    def quote_volume(self) -> float:
        """Trade size in quote units (0 when no price can be derived)."""
        price = self.price
        return self.token_amount * price if price is not None else 0.0


@dataclass(frozen=True)
class PricePoint:
    """Price observation derived from a trade."""

    timestamp: datetime
    price: float
    market_cap: float
    liquidity: float


@dataclass
class TokenState:
    """Rolling state for one tracked token.

    Invariants maintained by MetricsAggregator:
    - buy_count + sell_count == len(trades)
    - unique_traders only grows
    - one price point per trade that carries a usable supply
    - holder_balances / circulating_supply equal a full replay of trades
    """

    identifier: str
    symbol: str | None
    name: str | None
    created_at: datetime
    last_update: datetime

    # Creation snapshot, never changed afterwards
    initial_liquidity: float
    initial_supply: float
    initial_market_cap: float

    subscription: TradeSubscription | None = None

    trades: list[TradeRecord] = field(default_factory=list)
    buy_count: int = 0
    sell_count: int = 0
    total_volume_tokens: float = 0.0
    total_volume_quote: float = 0.0
    unique_traders: set[str] = field(default_factory=set)
    price_history: list[PricePoint] = field(default_factory=list)
    highest_market_cap: float = 0.0
    lowest_market_cap: float = 0.0

    # Net buys minus sells per trader, and the running supply they are measured against
    holder_balances: dict[str, float] = field(default_factory=dict)
    circulating_supply: float = 0.0

    def __post_init__(self) -> None:
        if not self.highest_market_cap:
            self.highest_market_cap = self.initial_market_cap
        if not self.lowest_market_cap:
            self.lowest_market_cap = self.initial_market_cap
        if not self.circulating_supply:
            self.circulating_supply = self.initial_supply

    @property
    def initial_price(self) -> float:
        if not self.initial_supply:
            return 0.0
        return self.initial_market_cap / self.initial_supply

    @property
    def latest_trade(self) -> TradeRecord | None:
        return self.trades[-1] if self.trades else None

    @property
    def latest_price_point(self) -> PricePoint | None:
        return self.price_history[-1] if self.price_history else None

    @property
    def current_price(self) -> float:
        """Latest price from the price history, else the creation price."""
        point = self.latest_price_point
        return point.price if point is not None else self.initial_price

    @property
    def current_market_cap(self) -> float:
        point = self.latest_price_point
        return point.market_cap if point is not None else self.initial_market_cap

    @property
    def current_liquidity(self) -> float:
        trade = self.latest_trade
        return trade.liquidity if trade is not None else self.initial_liquidity

    @property
    def current_supply(self) -> float:
        for trade in reversed(self.trades):
            if trade.token_supply_remaining is not None:
                return trade.token_supply_remaining
        return self.initial_supply

    def largest_holder_share(self) -> float:
        """Largest absolute net trader balance as a share of the running supply.

        A dominant net seller counts as much as a dominant net buyer.
        """
        if not self.holder_balances or self.circulating_supply <= 0:
            return 0.0
        return max(abs(b) for b in self.holder_balances.values()) / self.circulating_supply
