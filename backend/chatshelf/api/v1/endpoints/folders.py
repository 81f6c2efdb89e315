"""Folder API endpoints.

Folders group chats inside one workspace. Attaching and detaching a chat
always updates both the folder's chat_ids and the chat's folder_id.
"""

from fastapi import APIRouter

from chatshelf.components.workspace import service
from chatshelf.components.workspace.models import CreateFolderRequest, FolderMeta, RenameRequest

router = APIRouter()


@router.post("", response_model=FolderMeta)
def create_folder(request: CreateFolderRequest) -> FolderMeta:
    return service.create_folder(request.workspace_id, request.name)


@router.get("/{folder_id}", response_model=FolderMeta)
def get_folder(folder_id: str) -> FolderMeta:
    return service.get_folder(folder_id)


@router.patch("/{folder_id}", response_model=FolderMeta)
def rename_folder(folder_id: str, request: RenameRequest) -> FolderMeta:
    return service.rename_folder(folder_id, request.name)


@router.delete("/{folder_id}")
def delete_folder(folder_id: str) -> dict:
    """Delete a folder; its chats stay, without a folder."""
    service.delete_folder(folder_id)
    return {"ok": True, "id": folder_id}


@router.put("/{folder_id}/chats/{chat_id}", response_model=FolderMeta)
def add_chat_to_folder(folder_id: str, chat_id: str) -> FolderMeta:
    return service.add_chat_to_folder(folder_id, chat_id)


@router.delete("/{folder_id}/chats/{chat_id}", response_model=FolderMeta)
def remove_chat_from_folder(folder_id: str, chat_id: str) -> FolderMeta:
    return service.remove_chat_from_folder(folder_id, chat_id)
