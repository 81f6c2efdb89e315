"""Thread-safe JSON file storage for workspace entities.

Provides storage for:
- Index files (workspaces.json, folders.json, chats_index.json)
- Per-chat message logs (chats/{chat_id}.json)

Every index is read and written as a whole file. A reentrant lock per index
serializes read-modify-write cycles through ``edit()``; a lock per chat id
does the same for message logs through ``edit_message_log()``. Operations
that span several indices take the locks in IndexName declaration order.
"""

import json
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from enum import Enum
from pathlib import Path

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import PydanticSerializationError

from chatshelf.components.workspace.models import (
    ChatLog,
    ChatMessage,
    ChatsIndex,
    FoldersIndex,
    WorkspaceMeta,
    WorkspacesIndex,
)
from chatshelf.exceptions import StorageError, StorageParseError, StorageSerializeError
from chatshelf.services.filesystem import FileSystemService
from chatshelf.settings import CHATS_INDEX, FOLDERS_INDEX, WORKSPACES_INDEX, settings
from chatshelf.utils import generate_id, get_logger, now_iso

logger = get_logger(__name__)


class IndexName(str, Enum):
    """Logical collections backed by one index file each (lock order)."""

    workspaces = "workspaces"
    folders = "folders"
    chats = "chats"


_INDEX_FILES: dict[IndexName, str] = {
    IndexName.workspaces: WORKSPACES_INDEX,
    IndexName.folders: FOLDERS_INDEX,
    IndexName.chats: CHATS_INDEX,
}

_INDEX_MODELS: dict[IndexName, type[BaseModel]] = {
    IndexName.workspaces: WorkspacesIndex,
    IndexName.folders: FoldersIndex,
    IndexName.chats: ChatsIndex,
}


class IndexStore:
    """Durable JSON storage for the three indices and the message logs.

    Missing index files are synthesized on first load (an empty list, or a
    single active default workspace) and written back immediately.
    """

    def __init__(
        self,
        root: Path,
        chats_subdir: str = "chats",
        default_workspace_name: str = "My Workspace",
    ):
        self._fs = FileSystemService(root, chats_subdir)
        self._default_workspace_name = default_workspace_name
        self._locks: dict[IndexName, threading.RLock] = {
            name: threading.RLock() for name in IndexName
        }
        self._chat_locks: dict[str, threading.RLock] = {}
        self._chat_locks_guard = threading.Lock()

    @property
    def root(self) -> Path:
        return self._fs.root

    def index_path(self, name: IndexName) -> Path:
        return self._fs.root / _INDEX_FILES[name]

    def chat_log_path(self, chat_id: str) -> Path:
        return self._fs.chat_log_path(chat_id)

    def chat_file_location(self, chat_id: str) -> str:
        """Message log location relative to the data directory."""
        return self.chat_log_path(chat_id).relative_to(self._fs.root).as_posix()

    # ==================== Locks ====================

    def lock(self, name: IndexName) -> threading.RLock:
        """The process-wide lock guarding one index file."""
        return self._locks[name]

    def chat_lock(self, chat_id: str) -> threading.RLock:
        """The lock guarding one chat's message log, created on first use."""
        with self._chat_locks_guard:
            lock = self._chat_locks.get(chat_id)
            if lock is None:
                lock = threading.RLock()
                self._chat_locks[chat_id] = lock
            return lock

    def _forget_chat_lock(self, chat_id: str) -> None:
        with self._chat_locks_guard:
            self._chat_locks.pop(chat_id, None)

    # ==================== Index files ====================

    def load(self, name: IndexName):
        """Load one index, creating and persisting the default if absent.

        Raises:
            StorageError: the data directory or file cannot be created/read
            StorageParseError: the file exists but is not a valid index
        """
        with self._locks[name]:
            self._ensure_dirs()
            path = self.index_path(name)
            try:
                content = self._fs.read_file(path)
            except OSError as e:
                raise StorageError(f"Failed to read {name.value} index: {e}") from e

            if content is None:
                index = self._default_index(name)
                self.save(name, index)
                logger.info(f"Created {name.value} index: {path}")
                return index

            try:
                return _INDEX_MODELS[name].model_validate_json(content)
            except PydanticValidationError as e:
                raise StorageParseError(f"Failed to parse {name.value} index: {e}") from e

    def save(self, name: IndexName, index: BaseModel) -> None:
        """Serialize and overwrite one index file."""
        with self._locks[name]:
            self._write_json(self.index_path(name), index, f"{name.value} index")

    @contextmanager
    def edit(self, name: IndexName) -> Iterator:
        """Hold the index lock across load, in-place mutation and save.

        Nothing is written if the body raises.
        """
        with self._locks[name]:
            index = self.load(name)
            yield index
            self.save(name, index)

    def _default_index(self, name: IndexName) -> BaseModel:
        if name is IndexName.workspaces:
            now = now_iso()
            workspace = WorkspaceMeta(
                id=generate_id(),
                name=self._default_workspace_name,
                created_at=now,
                last_updated_at=now,
            )
            return WorkspacesIndex(workspaces=[workspace], active_workspace_id=workspace.id)
        return _INDEX_MODELS[name]()

    # ==================== Message logs ====================

    def load_message_log(self, chat_id: str) -> list[ChatMessage]:
        """A chat's messages; empty if the chat has no log file yet."""
        with self.chat_lock(chat_id):
            self._ensure_dirs()
            try:
                content = self._fs.read_file(self.chat_log_path(chat_id))
            except OSError as e:
                raise StorageError(f"Failed to read chat data: {e}") from e
            if content is None:
                return []
            try:
                return ChatLog.model_validate_json(content).messages
            except PydanticValidationError as e:
                raise StorageParseError(f"Failed to parse chat data: {e}") from e

    def save_message_log(self, chat_id: str, messages: list[ChatMessage]) -> None:
        """Overwrite a chat's message file."""
        with self.chat_lock(chat_id):
            self._ensure_dirs()
            self._write_json(
                self.chat_log_path(chat_id), ChatLog(messages=list(messages)), "chat data"
            )

    @contextmanager
    def edit_message_log(self, chat_id: str) -> Iterator[list[ChatMessage]]:
        """Load, mutate and save one message log under the chat's lock."""
        with self.chat_lock(chat_id):
            messages = self.load_message_log(chat_id)
            yield messages
            self.save_message_log(chat_id, messages)

    def delete_message_log(self, chat_id: str) -> bool:
        """Remove a chat's message file. Returns False if there was none."""
        with self.chat_lock(chat_id):
            try:
                deleted = self._fs.delete_file(self.chat_log_path(chat_id))
            except OSError as e:
                raise StorageError(f"Failed to delete chat data: {e}") from e
        self._forget_chat_lock(chat_id)
        return deleted

    # ==================== Internals ====================

    def _ensure_dirs(self) -> None:
        try:
            self._fs.initialize()
        except OSError as e:
            raise StorageError(f"Failed to create data directory {self._fs.root}: {e}") from e

    def _write_json(self, path: Path, value: BaseModel, label: str) -> None:
        self._ensure_dirs()
        try:
            content = json.dumps(value.model_dump(mode="json", exclude_none=True), indent=2, ensure_ascii=False)
        except (PydanticSerializationError, TypeError, ValueError) as e:
            raise StorageSerializeError(f"Failed to serialize {label}: {e}") from e
        try:
            self._fs.write_file(path, content)
        except OSError as e:
            raise StorageError(f"Failed to write {label}: {e}") from e


# Singleton store instance
_index_store: IndexStore | None = None
_index_store_guard = threading.Lock()


def get_index_store() -> IndexStore:
    """Get the process-wide store rooted at settings.get_data_root()."""
    global _index_store

    with _index_store_guard:
        if _index_store is None:
            _index_store = IndexStore(
                settings.get_data_root(),
                chats_subdir=settings.chats_subdir,
                default_workspace_name=settings.default_workspace_name,
            )
            logger.info(f"IndexStore: using data directory {_index_store.root}")
        return _index_store


def set_index_store(store: IndexStore | None) -> None:
    """Replace the singleton (tests point it at a temporary directory)."""
    global _index_store
    with _index_store_guard:
        _index_store = store


def reset_index_store() -> None:
    """Reset the storage singleton (for testing)."""
    set_index_store(None)
