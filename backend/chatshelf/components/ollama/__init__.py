"""Ollama Integration Module.

Components:
- client.py: OllamaClient (streaming /api/chat + model pass-through)
- models.py: Stream records, emitted events, pipeline states
- stream.py: NdjsonBuffer and ChatStreamPipeline

Usage:
    from chatshelf.components.ollama import ChatStreamPipeline, get_ollama_client

    pipeline = ChatStreamPipeline(chat_id, model, history, get_ollama_client(), event_broker)
    state = await pipeline.run()
"""

from chatshelf.components.ollama.client import (
    ChatStream,
    OllamaClient,
    get_ollama_client,
    set_ollama_client,
    status_error,
)
from chatshelf.components.ollama.models import (
    ChatStreamError,
    ChatStreamEvent,
    EventType,
    OllamaStreamChunk,
    StreamState,
)
from chatshelf.components.ollama.stream import ChatStreamPipeline, NdjsonBuffer

__all__ = [
    "OllamaClient",
    "ChatStream",
    "get_ollama_client",
    "set_ollama_client",
    "status_error",
    "OllamaStreamChunk",
    "ChatStreamEvent",
    "ChatStreamError",
    "EventType",
    "StreamState",
    "ChatStreamPipeline",
    "NdjsonBuffer",
]
