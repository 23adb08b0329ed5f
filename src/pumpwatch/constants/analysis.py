"""Default opportunity-scoring policy.

These are product policy, not protocol: every value is a default for a
field on AnalysisConfig and can be overridden from the environment
(e.g. ANALYSIS__MIN_HOLDERS=30).
"""

from typing import Final

# =============================================================================
# Bonding curve milestones
# =============================================================================

# Quote liquidity needed for "King of the Hill"
KING_OF_HILL_LIQUIDITY: Final[float] = 45.0
KING_OF_HILL_APPROACH_RATIO: Final[float] = 0.8

# Tokens held by the bonding curve
TARGET_SUPPLY: Final[float] = 800_000_000
SUPPLY_APPROACH_RATIO: Final[float] = 0.7
SUPPLY_EXHAUSTION_RATIO: Final[float] = 0.95

# =============================================================================
# Analysis thresholds
# =============================================================================

WINDOW_SECONDS: Final[int] = 300  # 5 minute trailing window
MIN_LIQUIDITY: Final[float] = 5.0
MIN_TRADE_COUNT: Final[int] = 10
BUY_PRESSURE_THRESHOLD: Final[float] = 0.7
MIN_HOLDERS: Final[int] = 20
MAX_HOLDER_SHARE: Final[float] = 0.15

# Percentages
MIN_PRICE_GROWTH: Final[float] = 30.0
MAX_PRICE_DROP: Final[float] = 20.0
VOLUME_GROWTH_THRESHOLD: Final[float] = 50.0

# =============================================================================
# Opportunity rule (10 signals / 5 risks)
# =============================================================================

MIN_SIGNALS: Final[int] = 7
MAX_RISKS: Final[int] = 1

# =============================================================================
# Position sizing
# =============================================================================

RISK_PENALTY: Final[float] = 0.25
MIN_POSITION: Final[float] = 0.01
MAX_POSITION: Final[float] = 0.05

EARLY_STOP_LOSS: Final[float] = 0.15
MID_STOP_LOSS: Final[float] = 0.10
LATE_STOP_LOSS: Final[float] = 0.05

EARLY_TAKE_PROFIT: Final[float] = 0.50
MID_TAKE_PROFIT: Final[float] = 0.30
LATE_TAKE_PROFIT: Final[float] = 0.15

# Lookback for the 24h volume / trade count shown in state snapshots
SUMMARY_LOOKBACK_SECONDS: Final[int] = 86_400
