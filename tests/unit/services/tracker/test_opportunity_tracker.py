"""Tests for OpportunityTracker."""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from pumpwatch.models.analysis import (
    Analysis,
    Recommendation,
    RiskSet,
    SignalSet,
    TokenMetrics,
    TradeAction,
)
from pumpwatch.models.broadcast import NewOpportunityMessage, TradingOpportunitiesMessage
from pumpwatch.models.events import FeedAcknowledgement, UnrecognizedEvent
from pumpwatch.services.aggregator import MetricsAggregator
from pumpwatch.services.analysis import SignalEvaluator
from pumpwatch.services.tracker import OpportunityTracker
from tests.factories import TokenCreatedEventFactory, TradeEventFactory
from tests.fakes import FakeClock, FakeFeed, RecordingSink

MINT = "MintBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBB"


def make_analysis(is_opportunity: bool, identifier: str = MINT) -> Analysis:
    action = TradeAction.ENTER if is_opportunity else TradeAction.WAIT
    return Analysis(
        identifier=identifier,
        symbol="TEST",
        metrics=TokenMetrics(),
        signals=SignalSet(),
        risks=RiskSet(),
        is_opportunity=is_opportunity,
        recommendation=Recommendation(action=action),
    )


@pytest.fixture
def scripted_evaluator() -> MagicMock:
    """Evaluator whose verdicts are set per test via side_effect."""
    return MagicMock(spec=SignalEvaluator)


@pytest.fixture
def scripted_tracker(
    aggregator: MetricsAggregator,
    scripted_evaluator: MagicMock,
    sink: RecordingSink,
    clock: FakeClock,
) -> OpportunityTracker:
    return OpportunityTracker(aggregator, scripted_evaluator, sink=sink, clock=clock)


class TestEventDispatch:
    """Tests for handle_event."""

    async def test_create_then_trade(
        self, tracker: OpportunityTracker, aggregator: MetricsAggregator
    ) -> None:
        await tracker.handle_event(TokenCreatedEventFactory(identifier=MINT))
        await aggregator.wait_pending()
        await tracker.handle_event(TradeEventFactory(identifier=MINT))

        state = aggregator.get(MINT)
        assert state is not None
        assert len(state.trades) == 1
        assert tracker.latest_analysis(MINT) is not None

    async def test_subscription_failure_is_contained(
        self, tracker: OpportunityTracker, feed: FakeFeed, aggregator: MetricsAggregator
    ) -> None:
        """A refused subscribe drops that token only."""
        feed.fail_subscribe.add("bad")

        await tracker.handle_event(TokenCreatedEventFactory(identifier="bad"))
        await tracker.handle_event(TokenCreatedEventFactory(identifier="good"))
        await aggregator.wait_pending()

        assert aggregator.identifiers() == ["good"]

    async def test_ack_and_unrecognized_are_dropped(
        self, tracker: OpportunityTracker, sink: RecordingSink, aggregator: MetricsAggregator
    ) -> None:
        await tracker.handle_event(FeedAcknowledgement(message="Successfully subscribed"))
        await tracker.handle_event(UnrecognizedEvent(reason="unknown_tx_type: migrate"))

        assert len(aggregator) == 0
        assert sink.messages == []

    async def test_trade_without_price_is_still_evaluated(
        self, tracker: OpportunityTracker, aggregator: MetricsAggregator
    ) -> None:
        await tracker.handle_event(TokenCreatedEventFactory(identifier=MINT))
        await aggregator.wait_pending()

        analysis = tracker.on_trade(TradeEventFactory(identifier=MINT, no_supply=True))

        assert analysis is not None
        state = aggregator.get(MINT)
        assert state is not None
        assert state.buy_count == 1
        assert state.price_history == []

    def test_trade_for_unknown_token_returns_none(
        self, tracker: OpportunityTracker, sink: RecordingSink
    ) -> None:
        assert tracker.on_trade(TradeEventFactory(identifier="ghost")) is None
        assert sink.messages == []


class TestNewOpportunityEdge:
    """newOpportunity fires on the false -> true edge only."""

    async def test_fires_once_per_rising_edge(
        self,
        scripted_tracker: OpportunityTracker,
        scripted_evaluator: MagicMock,
        aggregator: MetricsAggregator,
        sink: RecordingSink,
    ) -> None:
        """
        Given: Evaluations go False, True, True, False, True
        When: Five trades arrive
        Then: Exactly two newOpportunity messages are published
        """
        await aggregator.on_token_created(TokenCreatedEventFactory(identifier=MINT))
        scripted_evaluator.evaluate.side_effect = [
            make_analysis(flag) for flag in [False, True, True, False, True]
        ]

        for _ in range(5):
            scripted_tracker.on_trade(TradeEventFactory(identifier=MINT))

        alerts = sink.of_type("newOpportunity")
        assert len(alerts) == 2
        assert all(isinstance(m, NewOpportunityMessage) for m in alerts)

    async def test_first_evaluation_true_fires(
        self,
        scripted_tracker: OpportunityTracker,
        scripted_evaluator: MagicMock,
        aggregator: MetricsAggregator,
        sink: RecordingSink,
    ) -> None:
        """No previous analysis counts as not-qualifying."""
        await aggregator.on_token_created(TokenCreatedEventFactory(identifier=MINT))
        scripted_evaluator.evaluate.return_value = make_analysis(True)

        scripted_tracker.on_trade(TradeEventFactory(identifier=MINT))

        assert len(sink.of_type("newOpportunity")) == 1

    async def test_sweep_result_suppresses_trade_edge(
        self,
        scripted_tracker: OpportunityTracker,
        scripted_evaluator: MagicMock,
        aggregator: MetricsAggregator,
        sink: RecordingSink,
    ) -> None:
        """A sweep that already saw the token qualify counts as the previous state."""
        await aggregator.on_token_created(TokenCreatedEventFactory(identifier=MINT))
        scripted_evaluator.evaluate.return_value = make_analysis(True)

        scripted_tracker.sweep_opportunities()
        scripted_tracker.on_trade(TradeEventFactory(identifier=MINT))

        assert sink.of_type("newOpportunity") == []
        assert len(sink.of_type("tradingOpportunities")) == 1


class TestSweep:
    """Level-triggered tradingOpportunities sweep."""

    async def test_sweep_broadcasts_every_qualifying_token(
        self,
        scripted_tracker: OpportunityTracker,
        scripted_evaluator: MagicMock,
        aggregator: MetricsAggregator,
        sink: RecordingSink,
    ) -> None:
        for mint in ["a", "b", "c"]:
            await aggregator.on_token_created(TokenCreatedEventFactory(identifier=mint))
        scripted_evaluator.evaluate.side_effect = lambda token, now: make_analysis(
            token.identifier != "b", identifier=token.identifier
        )

        first = scripted_tracker.sweep_opportunities()
        second = scripted_tracker.sweep_opportunities()

        assert [a.identifier for a in first] == ["a", "c"]
        assert len(second) == 2
        batches = sink.of_type("tradingOpportunities")
        assert len(batches) == 2
        assert isinstance(batches[0], TradingOpportunitiesMessage)
        assert [p.identifier for p in batches[0].data] == ["a", "c"]

    async def test_sweep_without_opportunities_is_silent(
        self, tracker: OpportunityTracker, aggregator: MetricsAggregator, sink: RecordingSink
    ) -> None:
        await aggregator.on_token_created(TokenCreatedEventFactory(identifier=MINT))

        assert tracker.sweep_opportunities() == []
        assert sink.messages == []

    async def test_one_failing_token_does_not_abort_sweep(
        self,
        scripted_tracker: OpportunityTracker,
        scripted_evaluator: MagicMock,
        aggregator: MetricsAggregator,
    ) -> None:
        for mint in ["boom", "fine"]:
            await aggregator.on_token_created(TokenCreatedEventFactory(identifier=mint))

        def evaluate(token: object, now: object) -> Analysis:
            if getattr(token, "identifier", None) == "boom":
                raise ZeroDivisionError("bad token")
            return make_analysis(True, identifier="fine")

        scripted_evaluator.evaluate.side_effect = evaluate

        result = scripted_tracker.sweep_opportunities()

        assert [a.identifier for a in result] == ["fine"]


class TestStateSnapshot:
    """stateUpdate projection."""

    async def test_summary_fields(
        self,
        tracker: OpportunityTracker,
        aggregator: MetricsAggregator,
        clock: FakeClock,
    ) -> None:
        await aggregator.on_token_created(
            TokenCreatedEventFactory(identifier=MINT, symbol=None, initial_liquidity=30.0)
        )
        aggregator.on_trade(
            TradeEventFactory(
                identifier=MINT,
                trader="t1",
                token_amount=100,
                market_cap=30.0,
                token_supply_remaining=1_000_000,
            )
        )
        clock.advance(hours=25)
        aggregator.on_trade(
            TradeEventFactory(
                identifier=MINT,
                trader="t2",
                token_amount=50,
                liquidity=35.0,
                market_cap=45.0,
                token_supply_remaining=1_000_000,
                sell=True,
            )
        )
        clock.advance(seconds=2)

        [summary] = tracker.snapshot()

        assert summary.identifier == MINT
        assert summary.symbol == "Unknown"
        assert summary.buy_count == 1
        assert summary.sell_count == 1
        assert summary.total_volume_tokens == 150
        assert summary.unique_traders == 2
        assert summary.market_cap == 45.0
        assert summary.liquidity == 35.0
        assert summary.price == pytest.approx(45.0 / 1_000_000)
        assert summary.price_growth_percent == pytest.approx(50.0)
        assert summary.age_ms == (25 * 3600 + 2) * 1000
        # Only the second trade is inside the 24h lookback
        assert summary.volume_24h == 50
        assert summary.trades_24h == 1

    async def test_broadcast_state_publishes_snapshot(
        self, tracker: OpportunityTracker, aggregator: MetricsAggregator, sink: RecordingSink
    ) -> None:
        await aggregator.on_token_created(TokenCreatedEventFactory(identifier=MINT))

        message = tracker.broadcast_state()

        assert message.type == "stateUpdate"
        assert [s.identifier for s in message.data] == [MINT]
        assert sink.messages == [message]

    def test_broadcast_state_with_no_tokens(
        self, tracker: OpportunityTracker, sink: RecordingSink
    ) -> None:
        assert tracker.broadcast_state().data == []
        assert len(sink.messages) == 1

    async def test_sink_failure_is_contained(
        self, aggregator: MetricsAggregator, evaluator: SignalEvaluator, clock: FakeClock
    ) -> None:
        broken = MagicMock()
        broken.publish.side_effect = RuntimeError("viewer gone")
        tracker = OpportunityTracker(aggregator, evaluator, sink=broken, clock=clock)

        message = tracker.broadcast_state()

        assert message.data == []
        broken.publish.assert_called_once()

    async def test_headless_tracker_publishes_nothing(
        self, aggregator: MetricsAggregator, evaluator: SignalEvaluator, clock: FakeClock
    ) -> None:
        tracker = OpportunityTracker(aggregator, evaluator, sink=None, clock=clock)
        await aggregator.on_token_created(TokenCreatedEventFactory(identifier=MINT))

        assert len(tracker.broadcast_state().data) == 1


class TestHousekeeping:
    async def test_cleanup_forgets_cached_analysis(
        self, tracker: OpportunityTracker, aggregator: MetricsAggregator, feed: FakeFeed
    ) -> None:
        await tracker.handle_event(TokenCreatedEventFactory(identifier=MINT))
        await aggregator.wait_pending()
        tracker.on_trade(TradeEventFactory(identifier=MINT))
        assert tracker.latest_analysis(MINT) is not None

        removed = await tracker.run_cleanup(timedelta(0))

        assert removed == {MINT}
        assert tracker.latest_analysis(MINT) is None
        assert feed.unsubscribed == [MINT]

    async def test_analyze_does_not_cache(
        self, tracker: OpportunityTracker, aggregator: MetricsAggregator
    ) -> None:
        await aggregator.on_token_created(TokenCreatedEventFactory(identifier=MINT))

        analysis = tracker.analyze(MINT)

        assert analysis is not None
        assert tracker.latest_analysis(MINT) is None
        assert tracker.analyze("missing") is None
