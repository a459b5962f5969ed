"""WebSocket outbox with one ordered writer per connection.

``send`` only enqueues; a per-connection writer task drains the queue onto
the socket. A slow or dead peer therefore never holds up the event that
produced the message, and messages to one peer keep their order. When a
send fails the writer stops and anything still queued for that peer is
dropped. A peer that stops reading is dropped the same way once its
backlog reaches ``max_backlog`` frames.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import WebSocket

from rtserver.relay.fanout import Outbox

logger = logging.getLogger(__name__)

DEFAULT_MAX_BACKLOG = 256


class _PeerLink:
    """Outbound queue and writer task for one WebSocket."""

    def __init__(self, connection_id: str, websocket: WebSocket, max_backlog: int) -> None:
        self.connection_id = connection_id
        self.websocket = websocket
        self.queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=max_backlog)
        self.task: asyncio.Task[None] | None = None
        self.alive = True

    def start(self) -> None:
        self.task = asyncio.create_task(self._pump(), name=f"ws-writer-{self.connection_id}")

    async def _pump(self) -> None:
        while True:
            frame = await self.queue.get()
            try:
                await self.websocket.send_json(frame)
            except Exception as e:
                # Peer went away mid-delivery; drop its backlog.
                logger.debug("Send to %s failed, dropping peer: %s", self.connection_id, e)
                self.alive = False
                return

    def abandon(self) -> None:
        """Stop delivering without waiting for the writer, and drop the backlog."""
        self.alive = False
        if self.task is not None:
            self.task.cancel()
        while not self.queue.empty():
            self.queue.get_nowait()

    async def stop(self) -> None:
        self.alive = False
        if self.task is not None:
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass


class WebSocketHub(Outbox):
    """Outbox backed by live FastAPI WebSocket connections."""

    def __init__(self, max_backlog: int = DEFAULT_MAX_BACKLOG) -> None:
        if max_backlog < 1:
            raise ValueError("max_backlog must be at least 1")
        self._max_backlog = max_backlog
        self._links: dict[str, _PeerLink] = {}

    def add(self, connection_id: str, websocket: WebSocket) -> None:
        """Start delivering to an accepted WebSocket."""
        link = _PeerLink(connection_id, websocket, self._max_backlog)
        self._links[connection_id] = link
        link.start()

    async def remove(self, connection_id: str) -> None:
        link = self._links.pop(connection_id, None)
        if link is not None:
            await link.stop()

    def send(self, connection_id: str, event: str, data: Any = None) -> bool:
        link = self._links.get(connection_id)
        if link is None or not link.alive:
            logger.debug("Dropping %s for gone connection %s", event, connection_id)
            return False
        try:
            link.queue.put_nowait({"event": event, "data": data})
        except asyncio.QueueFull:
            logger.warning(
                "Connection %s is not reading (%d frames queued); dropping it",
                connection_id, self._max_backlog,
            )
            link.abandon()
            return False
        return True

    async def close(self) -> None:
        for connection_id in list(self._links):
            await self.remove(connection_id)

    def __len__(self) -> int:
        return len(self._links)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._links
