"""In-process fan-out of broadcast messages to connected viewers.

Each viewer gets its own bounded queue. publish() never waits: when a
viewer falls behind, its oldest queued message is dropped so slow or
stalled viewers cannot hold up the tracker or each other.
"""

from __future__ import annotations

import asyncio
from typing import Any, Protocol

import structlog

from pumpwatch.models.broadcast import BroadcastMessage, to_wire

log = structlog.get_logger(__name__)


class BroadcastSink(Protocol):
    """Destination for tracker emissions."""

    def publish(self, message: BroadcastMessage) -> None: ...


class Viewer:
    """One connected consumer of broadcast messages."""

    def __init__(self, viewer_id: int, queue_size: int) -> None:
        self.viewer_id = viewer_id
        self.queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=queue_size)
        self.dropped = 0

    def offer(self, payload: dict[str, Any]) -> bool:
        """Enqueue without waiting; drop the oldest message when full.

        Returns:
            False if a message had to be dropped.
        """
        lagging = False
        if self.queue.full():
            try:
                self.queue.get_nowait()
            except asyncio.QueueEmpty:
                pass
            else:
                self.dropped += 1
                lagging = True
        self.queue.put_nowait(payload)
        return not lagging

    async def next_message(self) -> dict[str, Any]:
        return await self.queue.get()


class BroadcastHub:
    """Fan-out sink shared by the tracker and the websocket route."""

    def __init__(self, queue_size: int = 100) -> None:
        self.queue_size = queue_size
        self._viewers: dict[int, Viewer] = {}
        self._next_id = 0
        self.published = 0

    @property
    def viewer_count(self) -> int:
        return len(self._viewers)

    def register(self) -> Viewer:
        self._next_id += 1
        viewer = Viewer(self._next_id, self.queue_size)
        self._viewers[viewer.viewer_id] = viewer
        log.info("viewer_connected", viewer=viewer.viewer_id, viewers=len(self._viewers))
        return viewer

    def unregister(self, viewer: Viewer) -> None:
        if self._viewers.pop(viewer.viewer_id, None) is not None:
            log.info(
                "viewer_disconnected",
                viewer=viewer.viewer_id,
                dropped=viewer.dropped,
                viewers=len(self._viewers),
            )

    def publish(self, message: BroadcastMessage) -> None:
        """Serialize once and offer the payload to every viewer."""
        self.published += 1
        if not self._viewers:
            return

        payload = to_wire(message)
        for viewer in list(self._viewers.values()):
            if not viewer.offer(payload):
                log.debug(
                    "broadcast_viewer_lagging",
                    viewer=viewer.viewer_id,
                    dropped=viewer.dropped,
                    type=message.type,
                )
