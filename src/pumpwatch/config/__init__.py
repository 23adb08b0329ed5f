"""Configuration module for PumpWatch.

Usage:
    from pumpwatch.config import get_settings

    settings = get_settings()  # Cached singleton
    print(settings.analysis.min_holders)
"""

from pumpwatch.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
