"""PumpWatch - Main application entry point."""

import asyncio
import contextlib
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import timedelta

import uvicorn
from fastapi import FastAPI

from pumpwatch.api.dependencies import Runtime
from pumpwatch.api.routes import health, stream, tokens
from pumpwatch.config import Settings, get_settings
from pumpwatch.config.logging import configure_logging, get_logger
from pumpwatch.scheduler.scheduler import EmissionScheduler
from pumpwatch.services.aggregator import MetricsAggregator
from pumpwatch.services.analysis import SignalEvaluator
from pumpwatch.services.broadcast import BroadcastHub
from pumpwatch.services.feed import PumpPortalFeed
from pumpwatch.services.tracker import OpportunityTracker

log = get_logger(__name__)


def build_runtime(settings: Settings) -> Runtime:
    """Wire feed -> aggregator -> tracker -> hub, plus the scheduler.

    Nothing is started here; see lifespan().
    """
    feed = PumpPortalFeed(
        url=settings.feed_url,
        reconnect_delay=settings.feed_reconnect_delay_seconds,
        command_timeout=settings.subscription_timeout_seconds,
    )
    aggregator = MetricsAggregator(
        feed, subscription_timeout=settings.subscription_timeout_seconds
    )
    hub = BroadcastHub(queue_size=settings.viewer_queue_size)
    tracker = OpportunityTracker(
        aggregator,
        SignalEvaluator(settings.analysis),
        sink=hub,
        summary_lookback=timedelta(seconds=settings.analysis.summary_lookback_seconds),
    )
    scheduler = EmissionScheduler(
        tracker,
        state_interval=settings.state_broadcast_interval_seconds,
        sweep_interval=settings.opportunity_sweep_interval_seconds,
        cleanup_interval=settings.cleanup_interval_seconds,
        max_token_age=timedelta(seconds=settings.token_max_age_seconds),
        broadcast_enabled=settings.broadcast_enabled,
    )
    feed.set_handlers(on_event=tracker.handle_event, on_reconnect=aggregator.resubscribe_all)

    return Runtime(
        settings=settings,
        feed=feed,
        aggregator=aggregator,
        tracker=tracker,
        hub=hub,
        scheduler=scheduler,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application lifecycle.

    On startup: build the runtime, start the feed reader and the scheduler.
    On shutdown: stop emissions first, then the feed, then release every
    token subscription.
    """
    settings: Settings = app.state.settings
    configure_logging(settings)
    log.info("application_starting", version=settings.app_version)

    runtime = build_runtime(settings)
    app.state.runtime = runtime

    feed_task: asyncio.Task[None] | None = None
    if settings.feed_enabled:
        feed_task = asyncio.create_task(runtime.feed.run())
    else:
        log.info("feed_disabled")

    runtime.scheduler.start()
    log.info("application_started")

    yield

    # Shutdown
    log.info("application_stopping")
    runtime.scheduler.stop()

    await runtime.feed.stop()
    if feed_task is not None:
        feed_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await feed_task

    await runtime.aggregator.close()
    app.state.runtime = None
    log.info("application_stopped")


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Settings to run with (defaults to environment settings).

    Returns:
        Configured FastAPI application instance.
    """
    settings = settings or get_settings()

    application = FastAPI(
        title=settings.app_name,
        description="Real-time pump.fun token monitor and opportunity scorer",
        version=settings.app_version,
        lifespan=lifespan,
    )
    application.state.settings = settings
    application.state.runtime = None

    # Register API routes
    application.include_router(health.router, prefix="/api")
    application.include_router(tokens.router, prefix="/api")
    application.include_router(stream.router)

    return application


# Create the app instance
app = create_app()


def main() -> None:
    """Run the application with uvicorn."""
    settings = get_settings()
    uvicorn.run(
        "pumpwatch.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
