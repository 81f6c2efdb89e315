"""Ollama wire models and the events emitted while a reply streams."""

from enum import Enum

from pydantic import BaseModel, ConfigDict


class OllamaChunkMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    role: str | None = None
    content: str | None = None


class OllamaStreamChunk(BaseModel):
    """One newline-delimited record of a streamed /api/chat reply.

    Performance counters (total_duration, eval_count, ...) are ignored.
    """

    model_config = ConfigDict(extra="ignore")

    model: str | None = None
    created_at: str | None = None
    message: OllamaChunkMessage | None = None
    done: bool = False
    done_reason: str | None = None
    error: str | None = None

    @property
    def content(self) -> str:
        if self.message is None or self.message.content is None:
            return ""
        return self.message.content


class EventType(str, Enum):
    """Event names published on the event broker."""

    CHUNK = "chat-stream-chunk"
    ERROR = "chat-stream-error"


class ChatStreamEvent(BaseModel):
    """Progress event: one content fragment of the assistant reply."""

    chat_id: str
    content: str
    done: bool
    done_reason: str | None = None


class ChatStreamError(BaseModel):
    """Terminal error event for one streamed reply."""

    chat_id: str
    error: str


class StreamState(str, Enum):
    """Lifecycle of one streamed reply."""

    SENDING = "sending"
    STREAMING = "streaming"
    FINALIZING = "finalizing"
    COMPLETED = "completed"
    FAILED = "failed"
