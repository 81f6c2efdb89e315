"""Server-Sent Events endpoint for streamed replies."""

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse

from chatshelf.services.events import event_broker, format_sse
from chatshelf.utils import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.get("")
async def stream_events(request: Request):
    """Stream every chat-stream-chunk / chat-stream-error event as SSE."""
    queue = event_broker.subscribe()

    async def event_stream():
        try:
            yield ": connected\n\n"
            while not await request.is_disconnected():
                event = await queue.get()
                yield format_sse(event)
        finally:
            event_broker.unsubscribe(queue)
            logger.debug("SSE client disconnected")

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
        },
    )
