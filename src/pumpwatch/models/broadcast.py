"""Outbound payloads pushed to dashboard viewers.

Three message kinds, told apart by ``type``:

- ``stateUpdate``: cheap summary of every tracked token (1s cadence)
- ``tradingOpportunities``: every token that currently qualifies (5s sweep)
- ``newOpportunity``: one token that just started qualifying (edge-triggered)

Numbers are coerced to finite floats (0 otherwise) and missing symbols to
"Unknown" before they leave the process, so one bad token cannot break a
whole payload.
"""

import math
from typing import Any, Literal

from pydantic import Field, ValidationInfo, field_validator

from pumpwatch.constants.feed import UNKNOWN_SYMBOL
from pumpwatch.models.analysis import Analysis, TokenMetrics
from pumpwatch.models.base import CamelModel


def finite(value: Any) -> float:
    """Coerce anything to a finite float, substituting 0."""
    if isinstance(value, bool):
        return float(value)
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def label(value: Any) -> str:
    """Coerce a symbol to a non-empty string."""
    if isinstance(value, str) and value.strip():
        return value
    return UNKNOWN_SYMBOL


class TokenSummary(CamelModel):
    """Display projection of one TokenState."""

    identifier: str
    symbol: str = UNKNOWN_SYMBOL
    buy_count: int = 0
    sell_count: int = 0
    total_volume_tokens: float = 0.0
    unique_traders: int = 0
    market_cap: float = 0.0
    liquidity: float = 0.0
    price: float = 0.0
    price_growth_percent: float = 0.0
    age_ms: int = 0
    volume_24h: float = Field(default=0.0, alias="volume24h")
    trades_24h: int = Field(default=0, alias="trades24h")

    @field_validator("symbol", mode="before")
    @classmethod
    def default_symbol(cls, v: Any) -> str:
        return label(v)

    @field_validator(
        "total_volume_tokens",
        "market_cap",
        "liquidity",
        "price",
        "price_growth_percent",
        "volume_24h",
        mode="before",
    )
    @classmethod
    def finite_float(cls, v: Any) -> float:
        return finite(v)

    @field_validator(
        "buy_count", "sell_count", "unique_traders", "age_ms", "trades_24h", mode="before"
    )
    @classmethod
    def finite_int(cls, v: Any) -> int:
        return int(finite(v))


class SafeTokenMetrics(TokenMetrics):
    """TokenMetrics with every number forced finite."""

    @field_validator("*", mode="before")
    @classmethod
    def finite_number(cls, v: Any, info: ValidationInfo) -> Any:
        if info.field_name in ("recent_trade_count", "unique_holders"):
            return int(finite(v))
        return finite(v)


class OpportunityPayload(Analysis):
    """Analysis as broadcast: symbol defaulted, metrics sanitized."""

    symbol: str = UNKNOWN_SYMBOL
    metrics: SafeTokenMetrics

    @field_validator("symbol", mode="before")
    @classmethod
    def default_symbol(cls, v: Any) -> str:
        return label(v)

    @field_validator("metrics", mode="before")
    @classmethod
    def sanitize_metrics(cls, v: Any) -> Any:
        if isinstance(v, TokenMetrics):
            return v.model_dump()
        return v

    @classmethod
    def from_analysis(cls, analysis: Analysis) -> "OpportunityPayload":
        return cls.model_validate(
            {**analysis.model_dump(exclude={"metrics"}), "metrics": analysis.metrics}
        )


class StateUpdateMessage(CamelModel):
    type: Literal["stateUpdate"] = "stateUpdate"
    data: list[TokenSummary] = Field(default_factory=list)


class TradingOpportunitiesMessage(CamelModel):
    type: Literal["tradingOpportunities"] = "tradingOpportunities"
    data: list[OpportunityPayload] = Field(default_factory=list)


class NewOpportunityMessage(CamelModel):
    type: Literal["newOpportunity"] = "newOpportunity"
    data: OpportunityPayload


BroadcastMessage = StateUpdateMessage | TradingOpportunitiesMessage | NewOpportunityMessage


def to_wire(message: BroadcastMessage) -> dict[str, Any]:
    """Serialize a message the way viewers receive it (camelCase JSON)."""
    return message.model_dump(mode="json", by_alias=True)
