"""Logging configuration using structlog.

Log lines are JSON unless the console renderer is asked for, either with
LOG_FORMAT=console or by running with DEBUG=true and no explicit format.
"""

import logging
import sys

import structlog
from structlog.types import Processor

from pumpwatch.config.settings import Settings, get_settings

# Third-party loggers that are chatty below WARNING: APScheduler logs every
# 1s job run, websockets logs every frame at DEBUG
_NOISY_LOGGERS = ("apscheduler", "websockets")


def select_renderer(settings: Settings) -> list[Processor]:
    """Final processors for the configured output format."""
    log_format = settings.log_format or ("console" if settings.debug else "json")
    if log_format == "console":
        # ConsoleRenderer formats exc_info itself
        return [structlog.dev.ConsoleRenderer()]
    return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]


def configure_logging(settings: Settings | None = None) -> None:
    """Configure structlog and stdlib logging for the application."""
    settings = settings or get_settings()
    log_level = getattr(logging, settings.log_level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            *select_renderer(settings),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # uvicorn and friends log through stdlib
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a configured logger instance."""
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger


def short_id(identifier: str) -> str:
    """Truncate a mint or wallet address for log lines."""
    return identifier[:8] + "..." if len(identifier) > 8 else identifier
