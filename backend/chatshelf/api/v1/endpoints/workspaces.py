"""Workspace API endpoints.

Workspaces are the top-level containers; exactly one is active at a time and
the last one can never be deleted.
"""

from fastapi import APIRouter, Query

from chatshelf.components.workspace import service
from chatshelf.components.workspace.models import (
    ChatMeta,
    CreateWorkspaceRequest,
    FolderMeta,
    RenameRequest,
    SetActiveWorkspaceRequest,
    WorkspaceMeta,
    WorkspacesIndex,
)

router = APIRouter()


@router.get("", response_model=WorkspacesIndex)
def get_all_workspaces() -> WorkspacesIndex:
    """All workspaces plus the active workspace id."""
    return service.get_all_workspaces()


@router.post("", response_model=WorkspaceMeta)
def create_workspace(request: CreateWorkspaceRequest) -> WorkspaceMeta:
    return service.create_workspace(request.name)


@router.put("/active")
def set_active_workspace(request: SetActiveWorkspaceRequest) -> dict:
    service.set_active_workspace(request.workspace_id)
    return {"ok": True, "active_workspace_id": request.workspace_id}


@router.patch("/{workspace_id}", response_model=WorkspaceMeta)
def rename_workspace(workspace_id: str, request: RenameRequest) -> WorkspaceMeta:
    return service.rename_workspace(workspace_id, request.name)


@router.delete("/{workspace_id}")
def delete_workspace(workspace_id: str) -> dict:
    """Delete a workspace together with its folders, chats and message logs."""
    service.delete_workspace(workspace_id)
    return {"ok": True, "id": workspace_id}


@router.get("/{workspace_id}/folders", response_model=list[FolderMeta])
def get_folders_for_workspace(workspace_id: str) -> list[FolderMeta]:
    return service.get_folders_for_workspace(workspace_id)


@router.get("/{workspace_id}/chats", response_model=list[ChatMeta])
def get_chats_for_workspace(workspace_id: str) -> list[ChatMeta]:
    return service.get_chats_for_workspace(workspace_id)


@router.get("/{workspace_id}/chats/search", response_model=list[ChatMeta])
def search_chats(workspace_id: str, q: str = Query("", description="Case-insensitive title filter")) -> list[ChatMeta]:
    """Chats whose title contains q; an empty q lists the whole workspace."""
    return service.search_chats(workspace_id, q)
