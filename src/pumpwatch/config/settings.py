"""Application settings using pydantic-settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from pumpwatch.constants.feed import DEFAULT_FEED_URL
from pumpwatch.models.analysis import AnalysisConfig


class Settings(BaseSettings):
    """PumpWatch configuration from environment variables.

    Analysis thresholds are nested: ANALYSIS__MIN_HOLDERS=30 overrides
    ``settings.analysis.min_holders``.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra env vars
        env_nested_delimiter="__",
    )

    # Application
    app_name: str = Field(default="PumpWatch", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Minimum log level"
    )
    log_format: Literal["console", "json"] | None = Field(
        default=None, description="Log renderer; unset means console in debug, else JSON"
    )

    # Server
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=3000, ge=1, le=65535, description="Server port")

    # Upstream feed
    feed_enabled: bool = Field(default=True, description="Connect to the upstream feed")
    feed_url: str = Field(default=DEFAULT_FEED_URL, description="PumpPortal websocket URL")
    feed_reconnect_delay_seconds: float = Field(
        default=5.0, gt=0, description="Pause before reconnecting a dropped feed"
    )
    subscription_timeout_seconds: float = Field(
        default=5.0, gt=0, description="Upper bound for one subscribe/unsubscribe attempt"
    )

    # Broadcast cadences
    broadcast_enabled: bool = Field(
        default=True, description="Run the periodic state and opportunity broadcasts"
    )
    state_broadcast_interval_seconds: float = Field(default=1.0, gt=0)
    opportunity_sweep_interval_seconds: float = Field(default=5.0, gt=0)
    viewer_queue_size: int = Field(
        default=100, ge=1, description="Messages buffered per viewer before dropping"
    )

    # Cleanup
    cleanup_interval_seconds: float = Field(default=60.0, gt=0)
    token_max_age_seconds: float = Field(
        default=24 * 60 * 60, ge=0, description="Inactivity before a token is dropped"
    )

    # Scoring policy
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)

    @field_validator("feed_url")
    @classmethod
    def validate_feed_url(cls, v: str) -> str:
        """Validate feed URL is a websocket URL."""
        if not v.startswith(("ws://", "wss://")):
            raise ValueError("Feed URL must start with ws:// or wss://")
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.upper() if isinstance(v, str) else v


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
