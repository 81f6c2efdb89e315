"""Workspace business logic.

Every operation that touches more than one index goes through here so that
workspaces.json, folders.json and chats_index.json never disagree:
- Workspace management (create, rename, delete with cascade, activate)
- Folder management (create, rename, delete releasing its chats)
- Chat management (create, rename, delete, search, timestamps)
- The folder <-> chat link (add_chat_to_folder / remove_chat_from_folder)

Locks are taken in IndexName order: workspaces, then folders, then chats.
"""

from chatshelf.components.workspace.models import (
    ChatMessage,
    ChatMeta,
    FolderMeta,
    WorkspaceMeta,
    WorkspacesIndex,
)
from chatshelf.components.workspace.storage import IndexName, get_index_store
from chatshelf.exceptions import ChatShelfError, NotFoundError, ValidationError
from chatshelf.settings import settings
from chatshelf.utils import generate_id, get_logger, now_iso

logger = get_logger(__name__)

TITLE_ELLIPSIS = "..."


def _clean_name(name: str, entity: str) -> str:
    trimmed = name.strip()
    if not trimmed:
        raise ValidationError(f"{entity} name cannot be empty")
    return trimmed


def derive_chat_title(first_message: str, max_chars: int | None = None) -> str:
    """Chat title from the first message, cut to max_chars plus an ellipsis."""
    limit = settings.title_max_chars if max_chars is None else max_chars
    if len(first_message) > limit:
        return f"{first_message[:limit]}{TITLE_ELLIPSIS}"
    return first_message


def _find(items, item_id: str):
    return next((item for item in items if item.id == item_id), None)


# Workspace service functions


def get_all_workspaces() -> WorkspacesIndex:
    """All workspaces plus the active workspace id."""
    return get_index_store().load(IndexName.workspaces)


def get_active_workspace_id() -> str:
    return get_all_workspaces().active_workspace_id


def create_workspace(name: str) -> WorkspaceMeta:
    """Create a new workspace. Raises ValidationError on an empty name."""
    trimmed = _clean_name(name, "Workspace")
    now = now_iso()
    workspace = WorkspaceMeta(id=generate_id(), name=trimmed, created_at=now, last_updated_at=now)

    with get_index_store().edit(IndexName.workspaces) as index:
        index.workspaces.append(workspace)

    logger.info(f"Created workspace: {workspace.id} ({workspace.name})")
    return workspace


def rename_workspace(workspace_id: str, new_name: str) -> WorkspaceMeta:
    trimmed = _clean_name(new_name, "Workspace")

    with get_index_store().edit(IndexName.workspaces) as index:
        workspace = _find(index.workspaces, workspace_id)
        if workspace is None:
            raise NotFoundError("Workspace", workspace_id)
        workspace.name = trimmed
        workspace.last_updated_at = now_iso()

    return workspace


def set_active_workspace(workspace_id: str) -> None:
    with get_index_store().edit(IndexName.workspaces) as index:
        if _find(index.workspaces, workspace_id) is None:
            raise NotFoundError("Workspace", workspace_id)
        index.active_workspace_id = workspace_id


def delete_workspace(workspace_id: str) -> None:
    """Delete a workspace and cascade to its folders, chats and message logs.

    Raises:
        ValidationError: it is the last remaining workspace
        NotFoundError: no workspace has this id
    """
    store = get_index_store()

    with store.lock(IndexName.workspaces), store.lock(IndexName.folders), store.lock(IndexName.chats):
        with store.edit(IndexName.workspaces) as index:
            if len(index.workspaces) <= 1:
                raise ValidationError(
                    "Cannot delete the last workspace. At least one workspace must exist."
                )
            workspace = _find(index.workspaces, workspace_id)
            if workspace is None:
                raise NotFoundError("Workspace", workspace_id)

            index.workspaces.remove(workspace)
            if index.active_workspace_id == workspace_id:
                index.active_workspace_id = index.workspaces[0].id if index.workspaces else ""

        removed = [c.id for c in store.load(IndexName.chats).chats if c.workspace_id == workspace_id]
        removed_ids = set(removed)

        with store.edit(IndexName.folders) as folders:
            removed_folder_ids = {f.id for f in folders.folders if f.workspace_id == workspace_id}
            folders.folders = [f for f in folders.folders if f.workspace_id != workspace_id]
            # Surviving folders may still list chats of the deleted workspace
            for folder in folders.folders:
                kept = [chat_id for chat_id in folder.chat_ids if chat_id not in removed_ids]
                if len(kept) != len(folder.chat_ids):
                    folder.chat_ids = kept
                    folder.last_updated_at = now_iso()

        with store.edit(IndexName.chats) as chats:
            chats.chats = [c for c in chats.chats if c.id not in removed_ids]
            for chat in chats.chats:
                if chat.folder_id in removed_folder_ids:
                    chat.folder_id = None

    for chat_id in removed:
        _delete_message_log_quietly(chat_id)

    logger.info(f"Deleted workspace {workspace_id} with {len(removed)} chat(s)")


# Folder service functions


def get_folders_for_workspace(workspace_id: str) -> list[FolderMeta]:
    index = get_index_store().load(IndexName.folders)
    return [f for f in index.folders if f.workspace_id == workspace_id]


def get_folder(folder_id: str) -> FolderMeta:
    folder = _find(get_index_store().load(IndexName.folders).folders, folder_id)
    if folder is None:
        raise NotFoundError("Folder", folder_id)
    return folder


def create_folder(workspace_id: str, name: str) -> FolderMeta:
    """Create an empty folder in an existing workspace."""
    trimmed = _clean_name(name, "Folder")
    store = get_index_store()

    with store.lock(IndexName.workspaces):
        if _find(store.load(IndexName.workspaces).workspaces, workspace_id) is None:
            raise NotFoundError("Workspace", workspace_id)

        now = now_iso()
        folder = FolderMeta(
            id=generate_id(),
            name=trimmed,
            workspace_id=workspace_id,
            created_at=now,
            last_updated_at=now,
        )
        with store.edit(IndexName.folders) as index:
            index.folders.append(folder)

    return folder


def rename_folder(folder_id: str, new_name: str) -> FolderMeta:
    trimmed = _clean_name(new_name, "Folder")

    with get_index_store().edit(IndexName.folders) as index:
        folder = _find(index.folders, folder_id)
        if folder is None:
            raise NotFoundError("Folder", folder_id)
        folder.name = trimmed
        folder.last_updated_at = now_iso()

    return folder


def delete_folder(folder_id: str) -> None:
    """Delete a folder and release (not delete) its chats.

    Clearing each chat's folder_id is best-effort: a failure is logged and
    the remaining chats are still processed.
    """
    store = get_index_store()

    with store.lock(IndexName.folders), store.lock(IndexName.chats):
        with store.edit(IndexName.folders) as index:
            folder = _find(index.folders, folder_id)
            if folder is None:
                raise NotFoundError("Folder", folder_id)
            released = list(folder.chat_ids)
            index.folders.remove(folder)

        for chat_id in released:
            try:
                if get_chat(chat_id).folder_id == folder_id:
                    set_chat_folder(chat_id, None)
            except ChatShelfError as e:
                logger.warning(f"Failed to release chat {chat_id} from folder {folder_id}: {e}")


def add_chat_to_folder(folder_id: str, chat_id: str) -> FolderMeta:
    """Attach a chat to a folder, writing both sides of the link.

    Idempotent. A chat that sits in another folder is detached from it first.
    Chat and folder must belong to the same workspace.
    """
    store = get_index_store()

    with store.edit(IndexName.folders) as folders:
        folder = _find(folders.folders, folder_id)
        if folder is None:
            raise NotFoundError("Folder", folder_id)

        with store.edit(IndexName.chats) as chats:
            chat = _find(chats.chats, chat_id)
            if chat is None:
                raise NotFoundError("Chat", chat_id)
            if chat.workspace_id != folder.workspace_id:
                raise ValidationError("Cannot add a chat to a folder in a different workspace")

            now = now_iso()
            if chat.folder_id and chat.folder_id != folder_id:
                previous = _find(folders.folders, chat.folder_id)
                if previous is not None and chat_id in previous.chat_ids:
                    previous.chat_ids.remove(chat_id)
                    previous.last_updated_at = now

            if chat_id not in folder.chat_ids:
                folder.chat_ids.append(chat_id)
                folder.last_updated_at = now
            chat.folder_id = folder_id

    return folder


def remove_chat_from_folder(folder_id: str, chat_id: str) -> FolderMeta:
    """Detach a chat from a folder, writing both sides of the link."""
    store = get_index_store()

    with store.edit(IndexName.folders) as folders:
        folder = _find(folders.folders, folder_id)
        if folder is None:
            raise NotFoundError("Folder", folder_id)

        if chat_id in folder.chat_ids:
            folder.chat_ids.remove(chat_id)
        folder.last_updated_at = now_iso()

        with store.edit(IndexName.chats) as chats:
            chat = _find(chats.chats, chat_id)
            if chat is not None and chat.folder_id == folder_id:
                chat.folder_id = None

    return folder


def set_chat_folder(chat_id: str, folder_id: str | None) -> ChatMeta:
    """Set chat.folder_id only; the folder's chat_ids is left untouched.

    Low-level primitive. Moving a chat must go through add_chat_to_folder /
    remove_chat_from_folder, which keep both sides in sync.
    """
    with get_index_store().edit(IndexName.chats) as index:
        chat = _find(index.chats, chat_id)
        if chat is None:
            raise NotFoundError("Chat", chat_id)
        chat.folder_id = folder_id
        return chat


# Chat service functions


def get_all_chats() -> list[ChatMeta]:
    return get_index_store().load(IndexName.chats).chats


def get_chats_for_workspace(workspace_id: str) -> list[ChatMeta]:
    return [c for c in get_all_chats() if c.workspace_id == workspace_id]


def get_chat(chat_id: str) -> ChatMeta:
    chat = _find(get_all_chats(), chat_id)
    if chat is None:
        raise NotFoundError("Chat", chat_id)
    return chat


def get_chat_messages(chat_id: str) -> list[ChatMessage]:
    """Messages of a chat in chronological order (empty before the first save)."""
    return get_index_store().load_message_log(chat_id)


def create_chat(
    model: str,
    first_message: str,
    workspace_id: str,
    folder_id: str | None = None,
) -> ChatMeta:
    """Register a new chat with an empty message log.

    The title is the first message cut to ``title_max_chars`` characters.
    With folder_id the chat is attached through add_chat_to_folder; the folder
    must belong to the same workspace.
    """
    store = get_index_store()

    with store.lock(IndexName.workspaces), store.lock(IndexName.folders):
        if _find(store.load(IndexName.workspaces).workspaces, workspace_id) is None:
            raise NotFoundError("Workspace", workspace_id)
        if folder_id is not None and get_folder(folder_id).workspace_id != workspace_id:
            raise ValidationError("Cannot add a chat to a folder in a different workspace")

        chat_id = generate_id()
        now = now_iso()
        meta = ChatMeta(
            id=chat_id,
            chat_title=derive_chat_title(first_message),
            file_location=store.chat_file_location(chat_id),
            model_used=model,
            workspace_id=workspace_id,
            created_at=now,
            last_updated_at=now,
        )

        store.save_message_log(chat_id, [])
        with store.edit(IndexName.chats) as index:
            index.chats.append(meta)

        if folder_id is not None:
            add_chat_to_folder(folder_id, chat_id)
            meta.folder_id = folder_id

    logger.info(f"Created chat {chat_id} in workspace {workspace_id} (model={model})")
    return meta


def rename_chat(chat_id: str, new_name: str) -> ChatMeta:
    trimmed = _clean_name(new_name, "Chat")

    with get_index_store().edit(IndexName.chats) as index:
        chat = _find(index.chats, chat_id)
        if chat is None:
            raise NotFoundError("Chat", chat_id)
        chat.chat_title = trimmed
        chat.last_updated_at = now_iso()

    return chat


def update_chat_timestamp(chat_id: str) -> None:
    """Bump last_updated_at; unknown ids are ignored."""
    with get_index_store().edit(IndexName.chats) as index:
        chat = _find(index.chats, chat_id)
        if chat is not None:
            chat.last_updated_at = now_iso()


def delete_chat(chat_id: str) -> None:
    """Delete a chat, detach it from its folder and remove its message log.

    The folder update and the file removal are best-effort.
    """
    store = get_index_store()

    with store.lock(IndexName.folders), store.lock(IndexName.chats):
        chat = _find(store.load(IndexName.chats).chats, chat_id)
        if chat is None:
            raise NotFoundError("Chat", chat_id)

        if chat.folder_id:
            try:
                with store.edit(IndexName.folders) as folders:
                    folder = _find(folders.folders, chat.folder_id)
                    if folder is not None and chat_id in folder.chat_ids:
                        folder.chat_ids.remove(chat_id)
                        folder.last_updated_at = now_iso()
            except ChatShelfError as e:
                logger.warning(f"Failed to detach chat {chat_id} from folder {chat.folder_id}: {e}")

        with store.edit(IndexName.chats) as index:
            index.chats = [c for c in index.chats if c.id != chat_id]

    _delete_message_log_quietly(chat_id)


def search_chats(workspace_id: str, query: str) -> list[ChatMeta]:
    """Chats of a workspace whose title contains query, case-insensitively.

    An empty (or blank) query returns every chat of the workspace in index order.
    """
    chats = get_chats_for_workspace(workspace_id)
    needle = query.strip().casefold()
    if not needle:
        return chats
    return [c for c in chats if needle in c.chat_title.casefold()]


def _delete_message_log_quietly(chat_id: str) -> None:
    try:
        get_index_store().delete_message_log(chat_id)
    except ChatShelfError as e:
        logger.warning(f"Failed to delete message log for chat {chat_id}: {e}")
