"""SSE Event Bus - one queue per connected app-host client."""

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


class ClientConnection:
    """A single SSE client; the live reload engine emits events into it.

    Events are buffered in an asyncio queue read by the SSE response generator.
    """

    def __init__(self, maxsize: int = 1000):
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)

    def emit(self, event: str, data: Optional[Dict[str, Any]] = None) -> None:
        """Queue an event for the client. Drops the event if the client lags too far behind."""
        message = {
            "type": event,
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "data": data,
        }
        try:
            self.queue.put_nowait(message)
        except asyncio.QueueFull:
            pass

    def close(self) -> None:
        """Ask the stream reading this connection to finish."""
        try:
            self.queue.put_nowait(None)
        except asyncio.QueueFull:
            pass


class EventBus:
    """Tracks connected SSE clients."""

    def __init__(self):
        self._subscribers: List[ClientConnection] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> ClientConnection:
        """Create a new connection for an SSE consumer."""
        connection = ClientConnection()
        self._subscribers.append(connection)
        return connection

    def unsubscribe(self, connection: ClientConnection):
        """Remove a connection."""
        if connection in self._subscribers:
            self._subscribers.remove(connection)

    def close_all(self):
        """End every open stream."""
        for connection in list(self._subscribers):
            connection.close()
