"""Rule-based opportunity evaluator.

Scoring procedure:
1. Metrics over a trailing window (buy pressure, volume growth, max drop)
   plus whole-history metrics (price growth, holder concentration)
2. 10 boolean signals and 5 boolean risks against AnalysisConfig thresholds
3. Opportunity: signals >= min_signals AND risks <= max_risks
4. ENTER: phase (late > mid > early) -> position size, stop-loss, take-profit
   WAIT: every failed signal and active risk by name

The evaluator holds no state between calls: the same TokenState and the
same ``now`` always give the same Analysis.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from pumpwatch.core.exceptions import ConfigurationError
from pumpwatch.models.analysis import (
    Analysis,
    AnalysisConfig,
    RejectionReason,
    Recommendation,
    RiskSet,
    SignalSet,
    TokenMetrics,
    TokenPhase,
    TradeAction,
)
from pumpwatch.models.token_state import TokenState, TradeRecord, TradeSide


class SignalEvaluator:
    """Turns a TokenState snapshot into an Analysis."""

    def __init__(self, config: AnalysisConfig | None = None) -> None:
        """Initialize evaluator.

        Args:
            config: Scoring policy (uses defaults if None)

        Raises:
            ConfigurationError: If min_signals exceeds the number of signals,
                so no token could ever qualify.
        """
        self.config = config or AnalysisConfig()
        total_signals = len(SignalSet.model_fields)
        if self.config.min_signals > total_signals:
            raise ConfigurationError(
                f"min_signals={self.config.min_signals} exceeds the {total_signals} "
                "available signals"
            )

    def evaluate(self, token: TokenState, now: datetime) -> Analysis:
        """Evaluate one token at time ``now``."""
        metrics = self.calculate_metrics(token, now)
        signals = self.evaluate_signals(metrics)
        risks = self.assess_risks(metrics)
        is_opportunity = self.is_opportunity(signals, risks)

        return Analysis(
            identifier=token.identifier,
            symbol=token.symbol,
            metrics=metrics,
            signals=signals,
            risks=risks,
            is_opportunity=is_opportunity,
            recommendation=self.recommend(signals, risks, is_opportunity),
            evaluated_at=now,
        )

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------

    def calculate_metrics(self, token: TokenState, now: datetime) -> TokenMetrics:
        cutoff = now - timedelta(seconds=self.config.window_seconds)
        recent_trades = [t for t in token.trades if t.timestamp > cutoff]
        recent_prices = [p.price for p in token.price_history if p.timestamp > cutoff]

        return TokenMetrics(
            token_supply=token.current_supply,
            liquidity=token.current_liquidity,
            market_cap=token.current_market_cap,
            current_price=token.current_price,
            price_growth=price_growth([p.price for p in token.price_history]),
            buy_pressure=buy_pressure(recent_trades),
            volume_growth_rate=volume_growth(recent_trades),
            recent_trade_count=len(recent_trades),
            unique_holders=len(token.unique_traders),
            max_price_drop=max_drop(recent_prices),
            largest_holder_share=token.largest_holder_share(),
        )

    # ------------------------------------------------------------------
    # Signals and risks
    # ------------------------------------------------------------------

    def evaluate_signals(self, metrics: TokenMetrics) -> SignalSet:
        cfg = self.config
        return SignalSet(
            # Supply
            approaching_raydium=metrics.token_supply
            > cfg.target_supply * cfg.supply_approach_ratio,
            healthy_liquidity=metrics.liquidity > cfg.min_liquidity,
            # Trading
            strong_buy_pressure=metrics.buy_pressure > cfg.buy_pressure_threshold,
            growing_volume=metrics.volume_growth_rate > cfg.volume_growth_threshold,
            sufficient_trades=metrics.recent_trade_count > cfg.min_trade_count,
            # Distribution
            diverse_holders=metrics.unique_holders > cfg.min_holders,
            no_whale_concentration=not self._is_concentrated(metrics),
            # Price
            strong_price_growth=metrics.price_growth > cfg.min_price_growth,
            maintaining_price=metrics.max_price_drop < cfg.max_price_drop,
            # Bonding curve progression
            approaching_king_of_hill=metrics.liquidity
            > cfg.king_of_hill_liquidity * cfg.king_of_hill_approach_ratio,
        )

    def assess_risks(self, metrics: TokenMetrics) -> RiskSet:
        cfg = self.config
        return RiskSet(
            insufficient_liquidity=metrics.liquidity < cfg.min_liquidity,
            low_trade_volume=metrics.recent_trade_count < cfg.min_trade_count,
            excessive_concentration=self._is_concentrated(metrics),
            price_dumping=metrics.max_price_drop > cfg.max_price_drop,
            approaching_max_supply=metrics.token_supply
            > cfg.target_supply * cfg.supply_exhaustion_ratio,
        )

    def _is_concentrated(self, metrics: TokenMetrics) -> bool:
        return metrics.largest_holder_share > self.config.max_holder_share

    def is_opportunity(self, signals: SignalSet, risks: RiskSet) -> bool:
        return (
            signals.count() >= self.config.min_signals
            and risks.count() <= self.config.max_risks
        )

    # ------------------------------------------------------------------
    # Recommendation
    # ------------------------------------------------------------------

    def recommend(
        self, signals: SignalSet, risks: RiskSet, is_opportunity: bool
    ) -> Recommendation:
        if not is_opportunity:
            return Recommendation(
                action=TradeAction.WAIT, reason=self.rejection_reason(signals, risks)
            )

        phase = self.determine_phase(signals)
        policy = self.config.phase_policies[phase]
        return Recommendation(
            action=TradeAction.ENTER,
            phase=phase,
            suggested_position=self.position_size(signals, risks, phase),
            stop_loss=policy.stop_loss,
            take_profit=policy.take_profit,
        )

    @staticmethod
    def determine_phase(signals: SignalSet) -> TokenPhase:
        """Classify lifecycle phase; first match wins (late, mid, early)."""
        if signals.approaching_raydium:
            return TokenPhase.LATE
        if signals.approaching_king_of_hill:
            return TokenPhase.MID
        return TokenPhase.EARLY

    def position_size(self, signals: SignalSet, risks: RiskSet, phase: TokenPhase) -> float:
        """Signal-strength scaled size, reduced per risk and floored.

        size = max(min_position, strength * max_position * (1 - penalty * risks))
        """
        cfg = self.config
        strength = signals.count() / signals.total()
        base = strength * cfg.phase_policies[phase].max_position
        return max(cfg.min_position, base * (1 - cfg.risk_penalty * risks.count()))

    @staticmethod
    def rejection_reason(signals: SignalSet, risks: RiskSet) -> RejectionReason:
        failed = signals.failed()
        active = risks.active()
        return RejectionReason(
            failed_signals=failed,
            active_risks=active,
            summary=f"Missing {len(failed)} key signals with {len(active)} risk factors",
        )


# ----------------------------------------------------------------------
# Metric helpers
# ----------------------------------------------------------------------


def price_growth(prices: list[float]) -> float:
    """Percent change from the first to the last price (0 with < 2 points)."""
    if len(prices) < 2 or prices[0] <= 0:
        return 0.0
    return (prices[-1] - prices[0]) / prices[0] * 100


def buy_pressure(trades: list[TradeRecord]) -> float:
    """Share of token volume that was bought (0 with no volume)."""
    total = sum(t.token_amount for t in trades)
    if total <= 0:
        return 0.0
    bought = sum(t.token_amount for t in trades if t.side is TradeSide.BUY)
    return bought / total


def volume_growth(trades: list[TradeRecord]) -> float:
    """Percent change in quote volume from the first to the second half.

    The split is at floor(n/2); a first half with no volume gives 0.
    """
    if len(trades) < 2:
        return 0.0
    mid = len(trades) // 2
    first = sum(t.quote_volume for t in trades[:mid])
    second = sum(t.quote_volume for t in trades[mid:])
    if first <= 0:
        return 0.0
    return (second - first) / first * 100


def max_drop(prices: list[float]) -> float:
    """Largest single-step percent decline (0 with < 2 points)."""
    worst = 0.0
    for previous, current in zip(prices, prices[1:]):
        if previous > 0:
            worst = max(worst, (previous - current) / previous * 100)
    return worst
