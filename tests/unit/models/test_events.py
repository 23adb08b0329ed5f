"""Tests for inbound feed event parsing."""

import json
from datetime import UTC, datetime

import pytest

from pumpwatch.core.exceptions import EventParseError
from pumpwatch.models.events import (
    FeedAcknowledgement,
    TokenCreatedEvent,
    TradeEvent,
    UnrecognizedEvent,
    decode_feed_message,
    parse_feed_message,
)
from pumpwatch.models.token_state import TradeSide

PUMPPORTAL_TRADE = {
    "signature": "5x...",
    "mint": "Mint1111",
    "traderPublicKey": "Trader11",
    "txType": "sell",
    "tokenAmount": 12345.5,
    "newTokenBalance": 0,
    "bondingCurveKey": "Curve111",
    "vTokensInBondingCurve": 950_000_000,
    "vSolInBondingCurve": 32.1,
    "marketCapSol": 33.9,
}


class TestParseFeedMessage:
    def test_pumpportal_create(self) -> None:
        raw = json.dumps(
            {
                "txType": "create",
                "mint": "Mint1111",
                "name": "Pepe",
                "symbol": "PEPE",
                "vSolInBondingCurve": 30,
                "vTokensInBondingCurve": 1_073_000_000,
                "marketCapSol": 27.9,
            }
        )

        event = parse_feed_message(raw)

        assert isinstance(event, TokenCreatedEvent)
        assert event.identifier == "Mint1111"
        assert event.symbol == "PEPE"
        assert event.initial_liquidity == 30
        assert event.initial_supply == 1_073_000_000
        assert event.initial_market_cap == 27.9

    def test_pumpportal_trade_ignores_extra_fields(self) -> None:
        event = parse_feed_message(json.dumps(PUMPPORTAL_TRADE).encode())

        assert isinstance(event, TradeEvent)
        assert event.side is TradeSide.SELL
        assert event.trader == "Trader11"
        assert event.token_amount == 12345.5
        assert event.liquidity == 32.1
        assert event.token_supply_remaining == 950_000_000
        assert event.market_cap == 33.9
        assert event.timestamp is None

    def test_normalized_names_are_accepted(self) -> None:
        event = parse_feed_message(
            {
                "identifier": "Mint1111",
                "side": "buy",
                "traderIdentifier": "Trader11",
                "tokenAmount": 10,
                "liquidity": 30,
                "marketCapQuote": 30,
                "timestamp": 1_717_243_200_000,
            }
        )

        assert isinstance(event, TradeEvent)
        assert event.side is TradeSide.BUY
        assert event.token_supply_remaining is None
        assert event.timestamp == datetime(2024, 6, 1, 12, 0, tzinfo=UTC)

    def test_epoch_seconds_and_naive_iso(self) -> None:
        seconds = parse_feed_message({**PUMPPORTAL_TRADE, "timestamp": 1_717_243_200})
        iso = parse_feed_message({**PUMPPORTAL_TRADE, "timestamp": "2024-06-01T12:00:00"})

        assert isinstance(seconds, TradeEvent)
        assert isinstance(iso, TradeEvent)
        assert seconds.timestamp == iso.timestamp == datetime(2024, 6, 1, 12, 0, tzinfo=UTC)

    def test_subscription_reply_is_acknowledgement(self) -> None:
        event = parse_feed_message('{"message": "Successfully subscribed to keys."}')

        assert isinstance(event, FeedAcknowledgement)
        assert event.message.startswith("Successfully")

    @pytest.mark.parametrize(
        ("raw", "reason"),
        [
            ("{not json", "invalid_json"),
            ("[1, 2]", "not_an_object"),
            ('{"mint": "Mint1111"}', "missing_tx_type"),
            ('{"txType": "migrate", "mint": "Mint1111"}', "unknown_tx_type: migrate"),
            ('{"txType": "buy", "mint": "Mint1111"}', "invalid_buy_event"),
        ],
    )
    def test_malformed_messages_become_unrecognized(self, raw: str, reason: str) -> None:
        event = parse_feed_message(raw)

        assert isinstance(event, UnrecognizedEvent)
        assert event.reason.startswith(reason)

    def test_non_finite_numbers_are_rejected(self) -> None:
        event = parse_feed_message({**PUMPPORTAL_TRADE, "marketCapSol": float("nan")})

        assert isinstance(event, UnrecognizedEvent)

    def test_boolean_timestamp_is_rejected(self) -> None:
        event = parse_feed_message({**PUMPPORTAL_TRADE, "timestamp": True})

        assert isinstance(event, UnrecognizedEvent)


class TestDecodeFeedMessage:
    def test_raises_with_payload(self) -> None:
        with pytest.raises(EventParseError) as exc_info:
            decode_feed_message({"txType": "migrate"})

        assert exc_info.value.payload == {"txType": "migrate"}

    def test_returns_event(self) -> None:
        assert isinstance(decode_feed_message(PUMPPORTAL_TRADE), TradeEvent)
