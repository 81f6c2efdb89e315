"""In-process event broker for streamed chat replies.

The UI layer learns about a reply only through events:
- chat-stream-chunk: one content fragment (ChatStreamEvent)
- chat-stream-error: terminal failure (ChatStreamError)

Each subscriber owns an asyncio.Queue; ``publish`` fans an event out to all
of them in publication order. ``format_sse`` renders an event for the
Server-Sent Events endpoint.

Publishing and subscribing happen on the event loop thread.
"""

import asyncio
import json
from collections.abc import AsyncIterator
from dataclasses import dataclass

from pydantic import BaseModel

from chatshelf.utils import get_logger

logger = get_logger(__name__)

# Events a slow subscriber may fall behind before new ones are dropped for it
MAX_QUEUE_SIZE = 1000


@dataclass(frozen=True)
class BrokerEvent:
    """An event name plus its JSON-ready payload."""

    name: str
    data: dict


class EventBroker:
    """Fan-out of chat events to every subscriber queue."""

    def __init__(self, max_queue_size: int = MAX_QUEUE_SIZE):
        self._max_queue_size = max_queue_size
        self._subscribers: list[asyncio.Queue[BrokerEvent]] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> asyncio.Queue[BrokerEvent]:
        queue: asyncio.Queue[BrokerEvent] = asyncio.Queue(maxsize=self._max_queue_size)
        self._subscribers.append(queue)
        logger.debug(f"Event subscriber added (total={len(self._subscribers)})")
        return queue

    def unsubscribe(self, queue: asyncio.Queue[BrokerEvent]) -> None:
        try:
            self._subscribers.remove(queue)
        except ValueError:
            return
        logger.debug(f"Event subscriber removed (total={len(self._subscribers)})")

    def publish(self, name: str, payload: BaseModel) -> int:
        """Deliver an event to every subscriber. Returns the delivery count."""
        event = BrokerEvent(name=name, data=payload.model_dump(mode="json"))
        delivered = 0
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(event)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning(f"Event queue full, dropping {name} for one subscriber")
        return delivered

    async def listen(self) -> AsyncIterator[BrokerEvent]:
        """Subscribe for the lifetime of the iteration."""
        queue = self.subscribe()
        try:
            while True:
                yield await queue.get()
        finally:
            self.unsubscribe(queue)


def format_sse(event: BrokerEvent) -> str:
    """Render one event in text/event-stream framing."""
    data = json.dumps(event.data, ensure_ascii=False, separators=(",", ":"))
    return f"event: {event.name}\ndata: {data}\n\n"


# Singleton broker instance
event_broker = EventBroker()
