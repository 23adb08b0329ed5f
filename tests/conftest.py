"""Shared pytest fixtures for PumpWatch tests.

This module provides fixtures for:
- A controllable clock and an in-memory feed and broadcast sink
- Wired aggregator / evaluator / tracker instances
- Test data factories

Usage:
    async def test_something(aggregator, token_factory):
        state = await aggregator.on_token_created(token_factory())
        assert state is not None
"""

import os
from collections.abc import Generator

import pytest

from pumpwatch.config.settings import get_settings
from pumpwatch.services.aggregator import MetricsAggregator
from pumpwatch.services.analysis import SignalEvaluator
from pumpwatch.services.tracker import OpportunityTracker
from tests.factories import TokenCreatedEventFactory, TradeEventFactory
from tests.fakes import FakeClock, FakeFeed, RecordingSink

# =============================================================================
# Environment Configuration
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment() -> Generator[None, None, None]:
    """Keep the app offline during tests."""
    original_env = os.environ.copy()

    os.environ.setdefault("FEED_ENABLED", "false")
    os.environ.setdefault("BROADCAST_ENABLED", "false")
    os.environ.setdefault("LOG_LEVEL", "WARNING")

    yield

    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Generator[None, None, None]:
    """Settings are cached; tests that patch env need a fresh read."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# =============================================================================
# Factory Fixtures
# =============================================================================


@pytest.fixture
def token_factory() -> type[TokenCreatedEventFactory]:
    """Provide factory for token creation events."""
    return TokenCreatedEventFactory


@pytest.fixture
def trade_factory() -> type[TradeEventFactory]:
    """Provide factory for trade events."""
    return TradeEventFactory


# =============================================================================
# Core Components
# =============================================================================


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def feed() -> FakeFeed:
    return FakeFeed()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def aggregator(feed: FakeFeed, clock: FakeClock) -> MetricsAggregator:
    """Aggregator on the fake feed, with a short subscription timeout."""
    return MetricsAggregator(feed, clock=clock, subscription_timeout=0.2)


@pytest.fixture
def evaluator() -> SignalEvaluator:
    return SignalEvaluator()


@pytest.fixture
def tracker(
    aggregator: MetricsAggregator,
    evaluator: SignalEvaluator,
    sink: RecordingSink,
    clock: FakeClock,
) -> OpportunityTracker:
    return OpportunityTracker(aggregator, evaluator, sink=sink, clock=clock)
