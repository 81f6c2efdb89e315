"""Workspace Management Module.

Components:
- models.py: Data models for Workspace, Folder, ChatMeta, ChatMessage
- storage.py: JSON index files and message logs (IndexStore)
- service.py: Operations that keep the indices consistent

Usage:
    from chatshelf.components.workspace import service

    workspace = service.create_workspace("Research")
    folder = service.create_folder(workspace.id, "Papers")
    service.add_chat_to_folder(folder.id, chat_id)
"""

from chatshelf.components.workspace.models import (
    ChatLog,
    ChatMessage,
    ChatMeta,
    ChatsIndex,
    FolderMeta,
    FoldersIndex,
    WorkspaceMeta,
    WorkspacesIndex,
)
from chatshelf.components.workspace.storage import (
    IndexName,
    IndexStore,
    get_index_store,
    reset_index_store,
    set_index_store,
)

__all__ = [
    # Models
    "WorkspaceMeta",
    "WorkspacesIndex",
    "FolderMeta",
    "FoldersIndex",
    "ChatMeta",
    "ChatsIndex",
    "ChatMessage",
    "ChatLog",
    # Storage
    "IndexName",
    "IndexStore",
    "get_index_store",
    "set_index_store",
    "reset_index_store",
]
