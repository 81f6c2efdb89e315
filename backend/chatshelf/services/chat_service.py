"""Send-message entry point.

``send_chat_message`` resolves (or creates) the chat and persists the user
message before returning the chat id. The reply is streamed by a detached
asyncio task whose progress reaches the UI only through the event broker.
"""

import asyncio

from chatshelf.components.ollama.client import OllamaClient, get_ollama_client
from chatshelf.components.ollama.stream import ChatStreamPipeline
from chatshelf.components.workspace import service as workspace_service
from chatshelf.components.workspace.models import ChatMessage
from chatshelf.components.workspace.storage import get_index_store
from chatshelf.exceptions import ValidationError
from chatshelf.services.events import EventBroker, event_broker
from chatshelf.utils import get_logger

logger = get_logger(__name__)

# Strong references keep detached stream tasks alive until they finish
_background_tasks: set[asyncio.Task] = set()


def prepare_chat_turn(
    model: str,
    message: str,
    chat_id: str | None = None,
    workspace_id: str | None = None,
    folder_id: str | None = None,
) -> tuple[str, list[ChatMessage]]:
    """Resolve the chat and append the user message to its log.

    A missing chat_id creates a new chat in workspace_id (or the active
    workspace). The history is captured under the chat's lock, right after
    the append.

    Returns:
        (chat_id, full history to send to the model)

    Raises:
        ValidationError: empty model or message
        NotFoundError: unknown chat, workspace or folder
    """
    if not model.strip():
        raise ValidationError("Model name cannot be empty")
    if not message.strip():
        raise ValidationError("Message cannot be empty")

    if chat_id is None:
        target_workspace = workspace_id or workspace_service.get_active_workspace_id()
        chat_id = workspace_service.create_chat(model, message, target_workspace, folder_id).id
    else:
        workspace_service.get_chat(chat_id)

    with get_index_store().edit_message_log(chat_id) as messages:
        messages.append(ChatMessage(role="user", content=message))
        history = list(messages)

    return chat_id, history


def start_chat_stream(
    chat_id: str,
    model: str,
    history: list[ChatMessage],
    client: OllamaClient | None = None,
    broker: EventBroker | None = None,
) -> asyncio.Task:
    """Launch the streaming pipeline as a detached task on the running loop."""
    pipeline = ChatStreamPipeline(
        chat_id=chat_id,
        model=model,
        history=history,
        client=client or get_ollama_client(),
        broker=broker or event_broker,
    )
    task = asyncio.create_task(pipeline.run(), name=f"chat-stream-{chat_id}")
    _background_tasks.add(task)
    task.add_done_callback(_on_stream_done)
    return task


def _on_stream_done(task: asyncio.Task) -> None:
    _background_tasks.discard(task)
    if task.cancelled():
        logger.warning(f"Stream task {task.get_name()} was cancelled")
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"Stream task {task.get_name()} crashed: {exc!r}")


async def send_chat_message(
    model: str,
    message: str,
    chat_id: str | None = None,
    workspace_id: str | None = None,
    folder_id: str | None = None,
) -> str:
    """Persist the user message, start streaming the reply, return the chat id."""
    resolved_chat_id, history = await asyncio.to_thread(
        prepare_chat_turn, model, message, chat_id, workspace_id, folder_id
    )
    start_chat_stream(resolved_chat_id, model, history)
    logger.info(f"Started reply stream for chat {resolved_chat_id} (model={model})")
    return resolved_chat_id


def active_stream_count() -> int:
    return len(_background_tasks)


async def wait_for_streams(timeout: float | None = None) -> None:
    """Wait for every running stream task (application shutdown, tests)."""
    if not _background_tasks:
        return
    await asyncio.wait(list(_background_tasks), timeout=timeout)
