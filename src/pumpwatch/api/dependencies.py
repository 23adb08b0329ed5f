"""FastAPI dependencies for dependency injection.

All components live on one Runtime attached to ``app.state.runtime`` by
the app factory; routes pull what they need from it.
"""

from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, HTTPException, Request, WebSocket, status

from pumpwatch.config.settings import Settings
from pumpwatch.scheduler.scheduler import EmissionScheduler
from pumpwatch.services.aggregator.metrics_aggregator import MetricsAggregator
from pumpwatch.services.broadcast.hub import BroadcastHub
from pumpwatch.services.feed.client import PumpPortalFeed
from pumpwatch.services.tracker.opportunity_tracker import OpportunityTracker


@dataclass
class Runtime:
    """Wired set of components with one shared lifecycle."""

    settings: Settings
    feed: PumpPortalFeed
    aggregator: MetricsAggregator
    tracker: OpportunityTracker
    hub: BroadcastHub
    scheduler: EmissionScheduler


def _runtime_from(app_state: object) -> Runtime:
    runtime = getattr(app_state, "runtime", None)
    if runtime is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Runtime not initialized"
        )
    return runtime


def get_runtime(request: Request) -> Runtime:
    """Get the runtime of the current app."""
    return _runtime_from(request.app.state)


def get_ws_runtime(websocket: WebSocket) -> Runtime:
    """Get the runtime for a websocket route."""
    return _runtime_from(websocket.app.state)


RuntimeDep = Annotated[Runtime, Depends(get_runtime)]
