"""Websocket stream of broadcast messages for dashboard viewers."""

import asyncio
from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from pumpwatch.api.dependencies import Runtime, get_ws_runtime
from pumpwatch.services.broadcast import Viewer

log = structlog.get_logger(__name__)

router = APIRouter(tags=["stream"])


async def _forward(websocket: WebSocket, viewer: Viewer) -> None:
    while True:
        payload = await viewer.next_message()
        await websocket.send_json(payload)


@router.websocket("/ws")
async def stream(
    websocket: WebSocket,
    runtime: Annotated[Runtime, Depends(get_ws_runtime)],
) -> None:
    """Push every stateUpdate / tradingOpportunities / newOpportunity message.

    Viewers only listen; anything they send is ignored. The viewer is
    registered before the handshake completes so no message published
    after connect is missed.
    """
    viewer = runtime.hub.register()
    sender: asyncio.Task[None] | None = None
    try:
        await websocket.accept()
        sender = asyncio.create_task(_forward(websocket, viewer))
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
    except WebSocketDisconnect:
        pass
    finally:
        if sender is not None:
            sender.cancel()
        runtime.hub.unregister(viewer)
