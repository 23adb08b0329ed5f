"""Health check endpoint with feed, tracker and scheduler status."""

from typing import Any

from fastapi import APIRouter

from pumpwatch.api.dependencies import RuntimeDep

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(runtime: RuntimeDep) -> dict[str, Any]:
    """
    Health check endpoint.

    Returns:
        dict with overall status, version, feed state, tracked token count,
        viewer count and scheduler info. Status is "degraded" while the
        upstream feed is disconnected.
    """
    feed = runtime.feed
    feed_status = {
        "enabled": runtime.settings.feed_enabled,
        "connected": feed.connected,
        "connections": feed.connection_count,
        "url": feed.url,
    }

    healthy = feed.connected or not runtime.settings.feed_enabled

    return {
        "status": "ok" if healthy else "degraded",
        "version": runtime.settings.app_version,
        "feed": feed_status,
        "tracked_tokens": len(runtime.aggregator),
        "viewers": runtime.hub.viewer_count,
        "scheduler": runtime.scheduler.get_status(),
    }
