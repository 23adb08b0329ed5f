"""Test data factories using factory_boy.

These factories generate realistic feed events for PumpWatch models.
"""

from tests.factories.events import TokenCreatedEventFactory, TradeEventFactory, fake_address

__all__ = [
    "TokenCreatedEventFactory",
    "TradeEventFactory",
    "fake_address",
]
