from .events import BrokerEvent, EventBroker, event_broker, format_sse
from .filesystem import FileSystemService

__all__ = [
    "BrokerEvent",
    "EventBroker",
    "event_broker",
    "format_sse",
    "FileSystemService",
]
