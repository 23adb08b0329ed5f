"""Inbound feed events.

The feed speaks PumpPortal's JSON (``txType``, ``mint``, ``vSolInBondingCurve``
...). Every message is parsed into exactly one variant of ``InboundEvent``;
anything that does not fit becomes an ``UnrecognizedEvent`` so the read
loop can log and drop it.
"""

import json
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from pumpwatch.constants.feed import TX_TYPE_BUY, TX_TYPE_CREATE, TX_TYPE_SELL
from pumpwatch.core.exceptions import EventParseError
from pumpwatch.models.token_state import TradeSide

# Epoch values above this are milliseconds
_EPOCH_MS_CUTOFF = 100_000_000_000


class _FeedModel(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False, extra="ignore", frozen=True)


class TokenCreatedEvent(_FeedModel):
    """A new token appeared on the bonding curve."""

    kind: Literal["create"] = "create"
    identifier: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("mint", "identifier")
    )
    symbol: str | None = None
    name: str | None = None
    initial_liquidity: float = Field(
        ...,
        validation_alias=AliasChoices(
            "vSolInBondingCurve", "initialLiquidity", "initial_liquidity"
        ),
    )
    initial_supply: float = Field(
        ...,
        ge=0,
        validation_alias=AliasChoices(
            "vTokensInBondingCurve", "initialSupply", "initial_supply"
        ),
    )
    initial_market_cap: float = Field(
        ...,
        validation_alias=AliasChoices(
            "marketCapSol", "initialMarketCapQuote", "initial_market_cap"
        ),
    )


class TradeEvent(_FeedModel):
    """A buy or sell on a subscribed token.

    ``token_supply_remaining`` may be missing; such a trade still counts
    but yields no price point.
    """

    kind: Literal["trade"] = "trade"
    identifier: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("mint", "identifier")
    )
    side: TradeSide = Field(..., validation_alias=AliasChoices("side", "txType"))
    trader: str = Field(
        ...,
        validation_alias=AliasChoices("traderPublicKey", "traderIdentifier", "trader"),
    )
    token_amount: float = Field(
        ..., ge=0, validation_alias=AliasChoices("tokenAmount", "token_amount")
    )
    liquidity: float = Field(
        ..., validation_alias=AliasChoices("vSolInBondingCurve", "liquidity")
    )
    token_supply_remaining: float | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "vTokensInBondingCurve", "tokenSupplyRemaining", "token_supply_remaining"
        ),
    )
    market_cap: float = Field(
        ..., validation_alias=AliasChoices("marketCapSol", "marketCapQuote", "market_cap")
    )
    timestamp: datetime | None = None

    @field_validator("timestamp", mode="before")
    @classmethod
    def parse_epoch(cls, v: Any) -> Any:
        """Accept epoch seconds or milliseconds as well as ISO strings."""
        if isinstance(v, bool):
            raise ValueError("timestamp must not be a boolean")
        if isinstance(v, int | float):
            seconds = v / 1000 if v > _EPOCH_MS_CUTOFF else v
            return datetime.fromtimestamp(seconds, tz=UTC)
        return v

    @field_validator("timestamp")
    @classmethod
    def ensure_utc(cls, v: datetime | None) -> datetime | None:
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v


class FeedAcknowledgement(_FeedModel):
    """Feed reply to a subscribe/unsubscribe command."""

    kind: Literal["ack"] = "ack"
    message: str


class UnrecognizedEvent(BaseModel):
    """Anything the parser could not classify."""

    kind: Literal["unrecognized"] = "unrecognized"
    reason: str
    payload: Any = None


InboundEvent = TokenCreatedEvent | TradeEvent | FeedAcknowledgement | UnrecognizedEvent
FeedEvent = TokenCreatedEvent | TradeEvent | FeedAcknowledgement


def decode_feed_message(raw: str | bytes | dict[str, Any]) -> FeedEvent:
    """Decode one feed message strictly.

    Args:
        raw: Websocket frame (text or bytes) or an already decoded dict.

    Returns:
        The matching event variant.

    Raises:
        EventParseError: If the message is not JSON, has no known tag or
            fails validation for its tag.
    """
    if isinstance(raw, str | bytes | bytearray):
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise EventParseError(f"invalid_json: {e}", payload=raw) from e
    else:
        data = raw

    if not isinstance(data, dict):
        raise EventParseError("not_an_object", payload=data)

    tag = data.get("txType") or data.get("type") or data.get("side")

    try:
        match tag:
            case str() if tag == TX_TYPE_CREATE:
                return TokenCreatedEvent.model_validate(data)
            case str() if tag in (TX_TYPE_BUY, TX_TYPE_SELL):
                return TradeEvent.model_validate({**data, "side": tag})
            case None if isinstance(data.get("message"), str):
                return FeedAcknowledgement(message=data["message"])
            case None:
                raise EventParseError("missing_tx_type", payload=data)
            case _:
                raise EventParseError(f"unknown_tx_type: {tag}", payload=data)
    except ValidationError as e:
        raise EventParseError(
            f"invalid_{tag}_event: {e.error_count()} error(s)", payload=data
        ) from e


def parse_feed_message(raw: str | bytes | dict[str, Any]) -> InboundEvent:
    """Parse one feed message into an InboundEvent.

    Never raises: malformed input is returned as UnrecognizedEvent.
    """
    try:
        return decode_feed_message(raw)
    except EventParseError as e:
        return UnrecognizedEvent(reason=str(e), payload=e.payload)
