"""Server-sent event stream of playlist changes."""

from collab_api.routes.deps import get_event_bus
from collab_api.services.event_bus import EventBus
from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

router = APIRouter(tags=["stream"])

STREAM_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


@router.get("/stream")
async def stream_events(request: Request, bus: EventBus = Depends(get_event_bus)):
    """Push every playlist event, plus a ping heartbeat, as ``data: <json>`` frames.

    The subscriber is released when the client disconnects.
    """
    subscriber = bus.subscribe()
    return StreamingResponse(
        bus.stream(subscriber, request.app.state.heartbeat_seconds),
        media_type="text/event-stream",
        headers=STREAM_HEADERS,
    )
