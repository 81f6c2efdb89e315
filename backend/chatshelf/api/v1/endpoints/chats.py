"""Chats API endpoints.

send-chat-message answers with the chat id as soon as the user message is
stored; the reply arrives as chat-stream-chunk / chat-stream-error events on
GET /events.
"""

from fastapi import APIRouter

from chatshelf.components.workspace import service
from chatshelf.components.workspace.models import (
    ChatMessage,
    ChatMeta,
    RenameRequest,
    SendChatMessageRequest,
)
from chatshelf.services import chat_service

router = APIRouter()


@router.get("", response_model=list[ChatMeta])
def get_all_chats() -> list[ChatMeta]:
    return service.get_all_chats()


@router.post("/messages")
async def send_chat_message(request: SendChatMessageRequest) -> dict:
    """Store the user message and start streaming the reply.

    Returns:
        {"chat_id": ...} - a new id when request.chat_id was omitted
    """
    chat_id = await chat_service.send_chat_message(
        model=request.model,
        message=request.message,
        chat_id=request.chat_id,
        workspace_id=request.workspace_id,
        folder_id=request.folder_id,
    )
    return {"chat_id": chat_id}


@router.get("/{chat_id}", response_model=ChatMeta)
def get_chat(chat_id: str) -> ChatMeta:
    return service.get_chat(chat_id)


@router.get("/{chat_id}/messages", response_model=list[ChatMessage])
def get_chat_messages(chat_id: str) -> list[ChatMessage]:
    return service.get_chat_messages(chat_id)


@router.patch("/{chat_id}", response_model=ChatMeta)
def rename_chat(chat_id: str, request: RenameRequest) -> ChatMeta:
    return service.rename_chat(chat_id, request.name)


@router.delete("/{chat_id}")
def delete_chat(chat_id: str) -> dict:
    service.delete_chat(chat_id)
    return {"ok": True, "id": chat_id}
