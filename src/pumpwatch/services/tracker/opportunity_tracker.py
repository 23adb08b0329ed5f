"""Opportunity tracking and broadcast orchestration.

Three independent emissions:
- newOpportunity: on a trade, when a token flips from not-qualifying
  (or never evaluated) to qualifying. Edge-triggered.
- tradingOpportunities: periodic sweep over every tracked token, sent
  whenever at least one token qualifies. Level-triggered.
- stateUpdate: periodic summary projection of every token, no scoring.

The tracker is also the dispatch point for inbound feed events.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta
from typing import assert_never

import structlog

from pumpwatch.config.logging import short_id
from pumpwatch.constants.analysis import SUMMARY_LOOKBACK_SECONDS
from pumpwatch.core.exceptions import PriceDerivationError
from pumpwatch.models.analysis import Analysis
from pumpwatch.models.broadcast import (
    BroadcastMessage,
    NewOpportunityMessage,
    OpportunityPayload,
    StateUpdateMessage,
    TokenSummary,
    TradingOpportunitiesMessage,
)
from pumpwatch.models.events import (
    FeedAcknowledgement,
    InboundEvent,
    TokenCreatedEvent,
    TradeEvent,
    UnrecognizedEvent,
)
from pumpwatch.models.token_state import TokenState
from pumpwatch.services.aggregator.metrics_aggregator import MetricsAggregator, utc_now
from pumpwatch.services.analysis.signal_evaluator import SignalEvaluator, price_growth
from pumpwatch.services.broadcast.hub import BroadcastSink

log = structlog.get_logger(__name__)


class OpportunityTracker:
    """Runs the evaluator and decides what to broadcast.

    Attributes:
        aggregator: Owner of all TokenState.
        evaluator: Scoring policy.
        sink: Broadcast destination; None runs headless.
    """

    def __init__(
        self,
        aggregator: MetricsAggregator,
        evaluator: SignalEvaluator,
        sink: BroadcastSink | None = None,
        clock: Callable[[], datetime] = utc_now,
        summary_lookback: timedelta = timedelta(seconds=SUMMARY_LOOKBACK_SECONDS),
    ) -> None:
        self.aggregator = aggregator
        self.evaluator = evaluator
        self.sink = sink
        self.clock = clock
        self.summary_lookback = summary_lookback
        self._last_analysis: dict[str, Analysis] = {}

    # ------------------------------------------------------------------
    # Inbound events
    # ------------------------------------------------------------------

    async def handle_event(self, event: InboundEvent) -> None:
        """Route one parsed feed event. Never raises for per-event faults."""
        match event:
            case TokenCreatedEvent():
                # Subscribes in the background; trades for other tokens keep flowing
                self.aggregator.track(event)
            case TradeEvent():
                self.on_trade(event)
            case FeedAcknowledgement():
                log.debug("feed_acknowledged", message=event.message)
            case UnrecognizedEvent():
                log.warning("feed_message_unrecognized", reason=event.reason)
            case _:
                assert_never(event)

    def on_trade(self, event: TradeEvent) -> Analysis | None:
        """Apply a trade and re-evaluate its token.

        Returns:
            The fresh Analysis, or None if the token is not tracked.
        """
        try:
            state = self.aggregator.on_trade(event)
        except PriceDerivationError as e:
            log.warning(
                "trade_price_underivable", token=short_id(event.identifier), error=str(e)
            )
            state = self.aggregator.get(event.identifier)

        if state is None:
            return None

        analysis = self.evaluator.evaluate(state, self.clock())
        previous = self._last_analysis.get(state.identifier)
        self._last_analysis[state.identifier] = analysis

        if analysis.is_opportunity and (previous is None or not previous.is_opportunity):
            log.info(
                "new_opportunity",
                token=short_id(state.identifier),
                symbol=state.symbol,
                phase=analysis.recommendation.phase,
                position=analysis.recommendation.suggested_position,
                signals=analysis.signals.count(),
                risks=analysis.risks.count(),
            )
            self._publish(
                NewOpportunityMessage(data=OpportunityPayload.from_analysis(analysis))
            )
        return analysis

    # ------------------------------------------------------------------
    # Periodic emissions
    # ------------------------------------------------------------------

    def sweep_opportunities(self) -> list[Analysis]:
        """Re-evaluate every token and broadcast all that qualify.

        Returns:
            Analyses of the qualifying tokens.
        """
        now = self.clock()
        opportunities: list[Analysis] = []
        payloads: list[OpportunityPayload] = []

        for state in self.aggregator:
            try:
                analysis = self.evaluator.evaluate(state, now)
                self._last_analysis[state.identifier] = analysis
                if analysis.is_opportunity:
                    payloads.append(OpportunityPayload.from_analysis(analysis))
                    opportunities.append(analysis)
            except Exception as e:
                log.error(
                    "token_evaluation_failed", token=short_id(state.identifier), error=str(e)
                )

        if payloads:
            log.info("opportunities_found", count=len(payloads), tracked=len(self.aggregator))
            self._publish(TradingOpportunitiesMessage(data=payloads))
        return opportunities

    def snapshot(self) -> list[TokenSummary]:
        """Summary projection of every tracked token (no scoring)."""
        now = self.clock()
        summaries: list[TokenSummary] = []
        for state in self.aggregator:
            try:
                summaries.append(self.summarize(state, now))
            except Exception as e:
                log.error("state_summary_failed", token=short_id(state.identifier), error=str(e))
        return summaries

    def broadcast_state(self) -> StateUpdateMessage:
        message = StateUpdateMessage(data=self.snapshot())
        self._publish(message)
        return message

    def summarize(self, state: TokenState, now: datetime) -> TokenSummary:
        cutoff = now - self.summary_lookback
        recent = [t for t in state.trades if t.timestamp > cutoff]

        return TokenSummary(
            identifier=state.identifier,
            symbol=state.symbol,
            buy_count=state.buy_count,
            sell_count=state.sell_count,
            total_volume_tokens=state.total_volume_tokens,
            unique_traders=len(state.unique_traders),
            market_cap=state.current_market_cap,
            liquidity=state.current_liquidity,
            price=state.current_price,
            price_growth_percent=price_growth([p.price for p in state.price_history]),
            age_ms=(now - state.created_at).total_seconds() * 1000,
            volume_24h=sum(t.token_amount for t in recent),
            trades_24h=len(recent),
        )

    # ------------------------------------------------------------------
    # Housekeeping
    # ------------------------------------------------------------------

    async def run_cleanup(self, max_age: timedelta) -> set[str]:
        """Expire idle tokens and forget their cached analyses."""
        removed = await self.aggregator.cleanup(max_age)
        for identifier in removed:
            self._last_analysis.pop(identifier, None)
        return removed

    def latest_analysis(self, identifier: str) -> Analysis | None:
        return self._last_analysis.get(identifier)

    def analyze(self, identifier: str) -> Analysis | None:
        """Fresh evaluation of one token, without caching or broadcasting."""
        state = self.aggregator.get(identifier)
        if state is None:
            return None
        return self.evaluator.evaluate(state, self.clock())

    def _publish(self, message: BroadcastMessage) -> None:
        if self.sink is None:
            return
        try:
            self.sink.publish(message)
        except Exception as e:
            log.error("broadcast_publish_failed", type=message.type, error=str(e))
