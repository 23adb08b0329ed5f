"""Opportunity analysis models.

An Analysis is derived state: the evaluator rebuilds it from a TokenState
and the current time whenever asked, and the tracker only caches the
latest one per token for edge detection.
"""

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field, model_validator

from pumpwatch.constants import analysis as defaults
from pumpwatch.models.base import CamelModel


class TokenPhase(str, Enum):
    """Bonding-curve lifecycle phase, drives position sizing."""

    EARLY = "EARLY_STAGE"
    MID = "MID_STAGE"
    LATE = "LATE_STAGE"


class TradeAction(str, Enum):
    """Recommended action for a token."""

    ENTER = "ENTER"
    WAIT = "WAIT"


class PhasePolicy(BaseModel):
    """Position sizing and exit levels for one phase."""

    max_position: float = Field(default=defaults.MAX_POSITION, gt=0.0, le=1.0)
    stop_loss: float = Field(..., gt=0.0, le=1.0)
    take_profit: float = Field(..., gt=0.0)


def _default_phase_policies() -> dict[TokenPhase, PhasePolicy]:
    return {
        TokenPhase.EARLY: PhasePolicy(
            stop_loss=defaults.EARLY_STOP_LOSS, take_profit=defaults.EARLY_TAKE_PROFIT
        ),
        TokenPhase.MID: PhasePolicy(
            stop_loss=defaults.MID_STOP_LOSS, take_profit=defaults.MID_TAKE_PROFIT
        ),
        TokenPhase.LATE: PhasePolicy(
            stop_loss=defaults.LATE_STOP_LOSS, take_profit=defaults.LATE_TAKE_PROFIT
        ),
    }


class AnalysisConfig(BaseModel):
    """Tunable opportunity-scoring policy.

    The reference policy evaluates 10 signals and 5 risks and calls a token
    an opportunity at >= 7 signals with <= 1 risk. Changing the signal or
    risk sets means scaling min_signals/max_risks with them.
    """

    # Trailing window for momentum metrics
    window_seconds: int = Field(default=defaults.WINDOW_SECONDS, gt=0)

    # Bonding curve milestones
    king_of_hill_liquidity: float = Field(default=defaults.KING_OF_HILL_LIQUIDITY, gt=0.0)
    king_of_hill_approach_ratio: float = Field(
        default=defaults.KING_OF_HILL_APPROACH_RATIO, gt=0.0, le=1.0
    )
    target_supply: float = Field(default=defaults.TARGET_SUPPLY, gt=0.0)
    supply_approach_ratio: float = Field(default=defaults.SUPPLY_APPROACH_RATIO, gt=0.0)
    supply_exhaustion_ratio: float = Field(default=defaults.SUPPLY_EXHAUSTION_RATIO, gt=0.0)

    # Signal / risk thresholds
    min_liquidity: float = Field(default=defaults.MIN_LIQUIDITY, ge=0.0)
    min_trade_count: int = Field(default=defaults.MIN_TRADE_COUNT, ge=0)
    buy_pressure_threshold: float = Field(
        default=defaults.BUY_PRESSURE_THRESHOLD, ge=0.0, le=1.0
    )
    min_holders: int = Field(default=defaults.MIN_HOLDERS, ge=0)
    max_holder_share: float = Field(default=defaults.MAX_HOLDER_SHARE, ge=0.0, le=1.0)
    min_price_growth: float = Field(default=defaults.MIN_PRICE_GROWTH)
    max_price_drop: float = Field(default=defaults.MAX_PRICE_DROP, ge=0.0)
    volume_growth_threshold: float = Field(default=defaults.VOLUME_GROWTH_THRESHOLD)

    # Opportunity rule
    min_signals: int = Field(default=defaults.MIN_SIGNALS, ge=0)
    max_risks: int = Field(default=defaults.MAX_RISKS, ge=0)

    # Position sizing
    risk_penalty: float = Field(default=defaults.RISK_PENALTY, ge=0.0, le=1.0)
    min_position: float = Field(default=defaults.MIN_POSITION, ge=0.0, le=1.0)
    phase_policies: dict[TokenPhase, PhasePolicy] = Field(
        default_factory=_default_phase_policies
    )

    # State snapshot lookback (24h volume / trade count)
    summary_lookback_seconds: int = Field(default=defaults.SUMMARY_LOOKBACK_SECONDS, gt=0)

    @model_validator(mode="after")
    def fill_phase_policies(self) -> "AnalysisConfig":
        """Every phase needs a policy; missing ones fall back to defaults."""
        # New dict so a caller's mapping is never mutated
        self.phase_policies = {**_default_phase_policies(), **self.phase_policies}
        return self


class TokenMetrics(CamelModel):
    """Metrics snapshot the signals and risks are evaluated over."""

    token_supply: float = 0.0
    liquidity: float = 0.0
    market_cap: float = 0.0
    current_price: float = 0.0
    price_growth: float = 0.0  # percent, first vs last price point
    buy_pressure: float = 0.0  # 0-1, volume weighted, windowed
    volume_growth_rate: float = 0.0  # percent, second vs first half of window
    recent_trade_count: int = 0
    unique_holders: int = 0
    max_price_drop: float = 0.0  # percent, largest single step decline
    largest_holder_share: float = 0.0


class SignalSet(CamelModel):
    """Positive momentum predicates (10 in the reference policy)."""

    approaching_raydium: bool = False
    healthy_liquidity: bool = False
    strong_buy_pressure: bool = False
    growing_volume: bool = False
    sufficient_trades: bool = False
    diverse_holders: bool = False
    no_whale_concentration: bool = False
    strong_price_growth: bool = False
    maintaining_price: bool = False
    approaching_king_of_hill: bool = False

    def count(self) -> int:
        """Number of signals that fired."""
        return sum(1 for value in self.model_dump().values() if value)

    def total(self) -> int:
        return len(type(self).model_fields)

    def failed(self) -> list[str]:
        """Names of signals that did not fire, in declaration order."""
        return [name for name, value in self.model_dump().items() if not value]


class RiskSet(CamelModel):
    """Negative-condition predicates (5 in the reference policy)."""

    insufficient_liquidity: bool = False
    low_trade_volume: bool = False
    excessive_concentration: bool = False
    price_dumping: bool = False
    approaching_max_supply: bool = False

    def count(self) -> int:
        """Number of risks that are active."""
        return sum(1 for value in self.model_dump().values() if value)

    def active(self) -> list[str]:
        """Names of active risks, in declaration order."""
        return [name for name, value in self.model_dump().items() if value]


class RejectionReason(CamelModel):
    """Why a token is not an opportunity."""

    failed_signals: list[str] = Field(default_factory=list)
    active_risks: list[str] = Field(default_factory=list)
    summary: str = ""


class Recommendation(CamelModel):
    """ENTER with sizing and exit levels, or WAIT with a reason."""

    action: TradeAction
    phase: TokenPhase | None = None
    suggested_position: float | None = None
    stop_loss: float | None = None
    take_profit: float | None = None
    reason: RejectionReason | None = None


class Analysis(CamelModel):
    """Result of one evaluation of a token."""

    identifier: str
    symbol: str | None = None
    metrics: TokenMetrics
    signals: SignalSet
    risks: RiskSet
    is_opportunity: bool
    recommendation: Recommendation
    evaluated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
