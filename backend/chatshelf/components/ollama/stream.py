"""Streaming ingestion of one assistant reply.

``ChatStreamPipeline.run`` walks the states of a reply:

    SENDING -> STREAMING -> FINALIZING -> COMPLETED
    (SENDING and STREAMING may end in FAILED)

- SENDING: one /api/chat request with the full history and stream=true.
  Connect / timeout / status failures publish chat-stream-error and stop;
  no assistant message is written.
- STREAMING: body chunks go through ``NdjsonBuffer``; every parsed record
  publishes one chat-stream-chunk event and its fragment is appended to the
  reply. Unparsable records are logged and skipped. A failed chunk read
  publishes chat-stream-error and stops reading.
- FINALIZING: the first record with done=true (mid-buffer or in the
  unterminated remainder) appends one assistant message to the log and bumps
  the chat timestamp. A flag makes this happen at most once per run.
"""

import asyncio

from pydantic import ValidationError as PydanticValidationError

from chatshelf.components.ollama.client import OllamaClient
from chatshelf.components.ollama.models import (
    ChatStreamError,
    ChatStreamEvent,
    EventType,
    OllamaStreamChunk,
    StreamState,
)
from chatshelf.components.workspace import service as workspace_service
from chatshelf.components.workspace.models import ChatMessage
from chatshelf.components.workspace.storage import IndexName, get_index_store
from chatshelf.exceptions import ChatShelfError, UpstreamError
from chatshelf.services.events import EventBroker
from chatshelf.utils import get_logger

logger = get_logger(__name__)


class NdjsonBuffer:
    """Reassembles newline-delimited records across arbitrary chunk boundaries.

    A chunk that is not valid UTF-8 on its own is dropped whole.
    """

    def __init__(self):
        self._buffer = ""
        self.dropped_chunks = 0

    def feed(self, chunk: bytes) -> list[str]:
        """Append a chunk and return every complete, non-blank line."""
        try:
            text = chunk.decode("utf-8")
        except UnicodeDecodeError:
            self.dropped_chunks += 1
            logger.warning(f"Dropping stream chunk that is not valid UTF-8 ({len(chunk)} bytes)")
            return []

        self._buffer += text
        lines = []
        while True:
            newline_pos = self._buffer.find("\n")
            if newline_pos < 0:
                break
            line = self._buffer[:newline_pos].strip()
            self._buffer = self._buffer[newline_pos + 1 :]
            if line:
                lines.append(line)
        return lines

    def flush(self) -> str:
        """Return and clear whatever follows the last newline."""
        remaining = self._buffer.strip()
        self._buffer = ""
        return remaining


class ChatStreamPipeline:
    """One streamed reply for one chat, from request to persisted message."""

    def __init__(
        self,
        chat_id: str,
        model: str,
        history: list[ChatMessage],
        client: OllamaClient,
        broker: EventBroker,
    ):
        self.chat_id = chat_id
        self.model = model
        self.history = list(history)
        self._client = client
        self._broker = broker
        self.state = StreamState.SENDING
        self.error: str | None = None
        self.records = 0
        self._fragments: list[str] = []
        self._finalized = False

    @property
    def full_response(self) -> str:
        return "".join(self._fragments)

    async def run(self) -> StreamState:
        """Drive the reply to COMPLETED or FAILED; never raises UpstreamError."""
        try:
            stream = await self._client.open_chat_stream(self.model, self.history)
        except UpstreamError as e:
            self._fail(e.message)
            return self.state

        self.state = StreamState.STREAMING
        buffer = NdjsonBuffer()
        try:
            async for chunk in stream.iter_chunks():
                for line in buffer.feed(chunk):
                    await self._handle_record(line)
                    if self.state is not StreamState.STREAMING:
                        break
                if self.state is not StreamState.STREAMING:
                    break
        except UpstreamError as e:
            self._fail(e.message)
        finally:
            await stream.aclose()

        if self.state is StreamState.STREAMING:
            remaining = buffer.flush()
            if remaining:
                await self._handle_record(remaining)

        if self.state is StreamState.STREAMING:
            self._fail("Ollama closed the stream before the reply was complete")

        logger.info(
            f"[Stream] Finished: chat_id={self.chat_id}, state={self.state.value}, "
            f"records={self.records}, chars={len(self.full_response)}"
        )
        return self.state

    async def _handle_record(self, line: str) -> None:
        try:
            record = OllamaStreamChunk.model_validate_json(line)
        except PydanticValidationError as e:
            logger.warning(f"Skipping invalid JSON in Ollama stream: {line[:100]}... Error: {e}")
            return

        if record.error:
            self._fail(f"Ollama error: {record.error}")
            return

        self.records += 1
        content = record.content
        self._fragments.append(content)
        self._broker.publish(
            EventType.CHUNK.value,
            ChatStreamEvent(
                chat_id=self.chat_id,
                content=content,
                done=record.done,
                done_reason=record.done_reason,
            ),
        )

        if record.done:
            await self._finalize()

    async def _finalize(self) -> None:
        if self._finalized:
            return
        self._finalized = True
        self.state = StreamState.FINALIZING
        await asyncio.to_thread(self._persist_reply, self.full_response)
        self.state = StreamState.COMPLETED

    def _persist_reply(self, reply: str) -> None:
        """Append the assistant message and bump the timestamp, best-effort.

        A chat deleted while its reply was streaming gets no log file back.
        """
        store = get_index_store()
        try:
            # delete_chat cannot land between the check and the append
            with store.lock(IndexName.chats):
                if not any(c.id == self.chat_id for c in store.load(IndexName.chats).chats):
                    logger.warning(f"Chat {self.chat_id} was deleted while streaming, dropping reply")
                    return
                with store.edit_message_log(self.chat_id) as messages:
                    messages.append(ChatMessage(role="assistant", content=reply))
        except ChatShelfError as e:
            logger.error(f"Failed to save assistant reply for chat {self.chat_id}: {e}")

        try:
            workspace_service.update_chat_timestamp(self.chat_id)
        except ChatShelfError as e:
            logger.error(f"Failed to update timestamp for chat {self.chat_id}: {e}")

    def _fail(self, message: str) -> None:
        self.state = StreamState.FAILED
        self.error = message
        logger.error(f"[Stream] Failed: chat_id={self.chat_id}, error={message}")
        self._broker.publish(
            EventType.ERROR.value,
            ChatStreamError(chat_id=self.chat_id, error=message),
        )
