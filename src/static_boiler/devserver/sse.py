"""Server-Sent Events broadcaster for live reload.

Every connected browser gets its own bounded asyncio.Queue. Events are
pushed to all queues; a client that stops reading and fills its queue
misses events rather than blocking the others.

Event types:
    reload: full page reload (data: null)
    inject: re-fetch stylesheets (data: list of changed CSS URLs)
    build-error: a rebuild failed (data: {"task": ..., "message": ...})

"""

import asyncio
import json
import logging
from collections.abc import AsyncGenerator
from typing import Any

logger = logging.getLogger(__name__)

__all__ = [
    "ReloadBroadcaster",
    "format_sse",
]

# Browsers reconnect after this many milliseconds when the stream drops
RETRY_MS = 1000


def format_sse(event_type: str, data: Any) -> str:
    """Encode one event in text/event-stream framing."""
    payload = json.dumps(data, separators=(",", ":"))
    return f"event: {event_type}\ndata: {payload}\n\n"


class ReloadBroadcaster:
    """Fan-out of reload signals to connected SSE clients.

    Attributes:
        queue_size: Per-client queue bound.
        heartbeat_interval: Seconds of silence before a keep-alive comment.

    """

    def __init__(self, queue_size: int = 100, heartbeat_interval: float = 15.0) -> None:
        self.queue_size = queue_size
        self.heartbeat_interval = heartbeat_interval
        self._clients: set[asyncio.Queue[str | None]] = set()

    @property
    def client_count(self) -> int:
        return len(self._clients)

    async def broadcast_event(self, event_type: str, data: Any = None) -> int:
        """Send an event to every connected client.

        Returns:
            Number of clients the event was queued for.

        """
        message = format_sse(event_type, data)
        reached = 0
        for queue in list(self._clients):
            try:
                queue.put_nowait(message)
            except asyncio.QueueFull:
                logger.warning("Live-reload client is not reading; dropping %s event", event_type)
                continue
            reached += 1
        logger.debug("Broadcast %s to %d client(s)", event_type, reached)
        return reached

    async def subscribe(self) -> AsyncGenerator[str, None]:
        """Stream events for one client until shutdown.

        Yields:
            SSE-framed messages, starting with the reconnect hint.

        """
        queue: asyncio.Queue[str | None] = asyncio.Queue(maxsize=self.queue_size)
        self._clients.add(queue)
        logger.debug("Live-reload client connected (%d total)", len(self._clients))
        try:
            yield f"retry: {RETRY_MS}\n\n"
            while True:
                try:
                    message = await asyncio.wait_for(queue.get(), timeout=self.heartbeat_interval)
                except TimeoutError:
                    yield ": heartbeat\n\n"
                    continue
                if message is None:
                    break
                yield message
        finally:
            self._clients.discard(queue)
            logger.debug("Live-reload client disconnected (%d left)", len(self._clients))

    def close(self) -> None:
        """End every open stream. Must be called on the event loop thread."""
        for queue in list(self._clients):
            try:
                queue.put_nowait(None)
            except asyncio.QueueFull:
                # Make room for the sentinel; the client is going away anyway
                queue.get_nowait()
                queue.put_nowait(None)

    async def shutdown(self) -> None:
        """Close all client streams."""
        self.close()
