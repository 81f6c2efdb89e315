"""Workspace data models.

Defines the persisted entities and their index files:
- Workspace: Top-level container (workspaces.json)
- Folder: Groups chats inside a workspace (folders.json)
- ChatMeta: Chat metadata (chats_index.json)
- ChatMessage / ChatLog: One chat's message log (chats/{chat_id}.json)

Field names are the on-disk JSON keys.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class WorkspaceMeta(BaseModel):
    """Workspace metadata."""

    id: str
    name: str
    created_at: str
    last_updated_at: str


class WorkspacesIndex(BaseModel):
    """Root of workspaces.json: every workspace plus the active one."""

    workspaces: list[WorkspaceMeta] = Field(default_factory=list)
    active_workspace_id: str = ""


class FolderMeta(BaseModel):
    """Folder metadata.

    chat_ids is an ordered set; every id in it points at a chat whose
    folder_id is this folder's id.
    """

    id: str
    name: str
    workspace_id: str
    chat_ids: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    created_at: str
    last_updated_at: str

    @field_validator("chat_ids")
    @classmethod
    def dedupe_chat_ids(cls, value: list[str]) -> list[str]:
        return list(dict.fromkeys(value))


class FoldersIndex(BaseModel):
    """Root of folders.json."""

    folders: list[FolderMeta] = Field(default_factory=list)


class ChatMeta(BaseModel):
    """Chat metadata stored in chats_index.json.

    file_location is relative to the data directory (chats/{id}.json).
    """

    model_config = ConfigDict(protected_namespaces=())

    id: str
    chat_title: str
    file_location: str
    model_used: str
    workspace_id: str = ""  # Empty for records written before workspaces existed
    folder_id: str | None = None
    created_at: str
    last_updated_at: str


class ChatsIndex(BaseModel):
    """Root of chats_index.json."""

    chats: list[ChatMeta] = Field(default_factory=list)


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ChatLog(BaseModel):
    """One chat's message log, in chronological order."""

    messages: list[ChatMessage] = Field(default_factory=list)


# Request models


class CreateWorkspaceRequest(BaseModel):
    name: str


class RenameRequest(BaseModel):
    """Rename a workspace, folder or chat."""

    name: str


class SetActiveWorkspaceRequest(BaseModel):
    workspace_id: str


class CreateFolderRequest(BaseModel):
    workspace_id: str
    name: str


class SendChatMessageRequest(BaseModel):
    """Send a user message; chat_id=None starts a new chat."""

    model: str
    message: str
    chat_id: str | None = None
    workspace_id: str | None = None  # Defaults to the active workspace
    folder_id: str | None = None


class ShowModelRequest(BaseModel):
    model: str
