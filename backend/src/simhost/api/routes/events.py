"""SSE live reload endpoint for the app-host."""

import asyncio
import json

from fastapi import APIRouter, Request, HTTPException
from sse_starlette.sse import EventSourceResponse

router = APIRouter(tags=["events"])


@router.get("/live-reload")
async def live_reload_stream(request: Request):
    """Attach the caller as the live reload client and stream its events."""
    live_reload = request.app.state.server.live_reload
    if live_reload is None:
        raise HTTPException(404, "Live reload is disabled")

    event_bus = request.app.state.event_bus
    connection = event_bus.subscribe()
    live_reload.start(connection)

    async def generate():
        try:
            while True:
                try:
                    event = await asyncio.wait_for(connection.queue.get(), timeout=15.0)
                    if event is None:
                        break
                    yield {
                        "event": event["type"],
                        "data": json.dumps(event["data"] or {}),
                    }
                except asyncio.TimeoutError:
                    yield {"comment": "keepalive"}
        finally:
            live_reload.release(connection)
            event_bus.unsubscribe(connection)

    return EventSourceResponse(generate(), ping=20)
