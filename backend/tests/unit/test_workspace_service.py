"""Tests for the workspace service.

Covers:
- Workspace create/rename/activate/delete (cascade, last-workspace guard)
- Folder create/rename/delete and the folder <-> chat link
- Chat create/rename/delete/search and title derivation
- Cross-index consistency after every mutation
"""

import threading

import pytest

from chatshelf.components.workspace import service
from chatshelf.components.workspace.models import ChatMessage
from chatshelf.components.workspace.storage import IndexName, IndexStore
from chatshelf.exceptions import NotFoundError, ValidationError


def assert_consistent(store: IndexStore) -> None:
    """Every cross-reference between the three indices agrees."""
    workspaces = store.load(IndexName.workspaces)
    folders = store.load(IndexName.folders).folders
    chats = store.load(IndexName.chats).chats

    workspace_ids = {w.id for w in workspaces.workspaces}
    folders_by_id = {f.id: f for f in folders}
    chats_by_id = {c.id: c for c in chats}

    assert len(workspace_ids) >= 1
    assert workspaces.active_workspace_id in workspace_ids
    for folder in folders:
        assert folder.workspace_id in workspace_ids
        assert len(folder.chat_ids) == len(set(folder.chat_ids))
        for chat_id in folder.chat_ids:
            assert chat_id in chats_by_id
            assert chats_by_id[chat_id].folder_id == folder.id
    for chat in chats:
        assert chat.workspace_id in workspace_ids
        if chat.folder_id is not None:
            assert chat.folder_id in folders_by_id
            assert chat.id in folders_by_id[chat.folder_id].chat_ids


def snapshot(store: IndexStore, chat_ids: list[str]) -> dict:
    """Raw bytes of every index file plus the given message logs."""
    paths = [store.index_path(name) for name in IndexName] + [store.chat_log_path(c) for c in chat_ids]
    return {str(p): p.read_bytes() for p in paths}


@pytest.fixture
def workspace_id(store: IndexStore) -> str:
    return service.get_active_workspace_id()


class TestChatTitle:
    """Title derivation from the first message."""

    def test_short_message_is_kept(self):
        assert service.derive_chat_title("Hello") == "Hello"

    def test_exactly_fifty_chars_is_kept(self):
        message = "x" * 50
        assert service.derive_chat_title(message) == message

    def test_long_message_is_cut_with_ellipsis(self):
        message = "a" * 60
        assert service.derive_chat_title(message) == "a" * 50 + "..."

    def test_cut_counts_characters_not_bytes(self):
        message = "é" * 51
        assert service.derive_chat_title(message) == "é" * 50 + "..."

    def test_custom_limit(self):
        assert service.derive_chat_title("abcdef", max_chars=3) == "abc..."


class TestWorkspaces:
    """Workspace management."""

    def test_first_load_has_default_workspace(self, store: IndexStore):
        index = service.get_all_workspaces()

        assert [w.name for w in index.workspaces] == ["My Workspace"]
        assert index.active_workspace_id == index.workspaces[0].id

    def test_create_workspace_does_not_change_active(self, store: IndexStore, workspace_id: str):
        created = service.create_workspace("  Research  ")

        index = service.get_all_workspaces()
        assert created.name == "Research"
        assert [w.id for w in index.workspaces] == [workspace_id, created.id]
        assert index.active_workspace_id == workspace_id

    def test_create_workspace_rejects_blank_name(self, store: IndexStore):
        with pytest.raises(ValidationError):
            service.create_workspace("   ")

    def test_rename_workspace(self, store: IndexStore, workspace_id: str):
        renamed = service.rename_workspace(workspace_id, "Personal")

        assert renamed.name == "Personal"
        assert service.get_all_workspaces().workspaces[0].name == "Personal"

    def test_rename_unknown_workspace(self, store: IndexStore):
        with pytest.raises(NotFoundError):
            service.rename_workspace("missing", "x")

    def test_set_active_workspace(self, store: IndexStore):
        other = service.create_workspace("Other")

        service.set_active_workspace(other.id)

        assert service.get_active_workspace_id() == other.id

    def test_set_active_unknown_workspace(self, store: IndexStore, workspace_id: str):
        with pytest.raises(NotFoundError):
            service.set_active_workspace("missing")
        assert service.get_active_workspace_id() == workspace_id

    def test_delete_last_workspace_is_rejected(self, store: IndexStore, workspace_id: str):
        folder = service.create_folder(workspace_id, "F")
        chat = service.create_chat("llama3.2", "hi", workspace_id, folder.id)
        store.save_message_log(chat.id, [ChatMessage(role="user", content="hi")])
        before = snapshot(store, [chat.id])

        with pytest.raises(ValidationError, match="Cannot delete the last workspace"):
            service.delete_workspace(workspace_id)

        assert snapshot(store, [chat.id]) == before

    def test_delete_unknown_workspace(self, store: IndexStore):
        service.create_workspace("Second")
        with pytest.raises(NotFoundError):
            service.delete_workspace("missing")

    def test_delete_active_workspace_reassigns_active(self, store: IndexStore, workspace_id: str):
        other = service.create_workspace("Other")

        service.delete_workspace(workspace_id)

        index = service.get_all_workspaces()
        assert [w.id for w in index.workspaces] == [other.id]
        assert index.active_workspace_id == other.id
        assert_consistent(store)

    def test_delete_workspace_cascades(self, store: IndexStore, workspace_id: str):
        doomed = service.create_workspace("Doomed")
        folder = service.create_folder(doomed.id, "F")
        chat = service.create_chat("llama3.2", "hello", doomed.id, folder.id)
        kept_chat = service.create_chat("llama3.2", "keep me", workspace_id)
        store.save_message_log(chat.id, [ChatMessage(role="user", content="hello")])

        service.delete_workspace(doomed.id)

        assert service.get_folders_for_workspace(doomed.id) == []
        assert [c.id for c in service.get_all_chats()] == [kept_chat.id]
        assert not store.chat_log_path(chat.id).exists()
        assert store.chat_log_path(kept_chat.id).exists()
        assert_consistent(store)


class TestFolders:
    """Folder management and the folder <-> chat link."""

    def test_create_folder(self, store: IndexStore, workspace_id: str):
        folder = service.create_folder(workspace_id, "Ideas")

        assert folder.name == "Ideas"
        assert folder.chat_ids == []
        assert folder.tags == []
        assert service.get_folders_for_workspace(workspace_id) == [folder]

    def test_create_folder_rejects_blank_name(self, store: IndexStore, workspace_id: str):
        with pytest.raises(ValidationError):
            service.create_folder(workspace_id, "")

    def test_create_folder_in_unknown_workspace(self, store: IndexStore):
        with pytest.raises(NotFoundError):
            service.create_folder("missing", "Ideas")
        assert store.load(IndexName.folders).folders == []

    def test_folders_are_scoped_to_workspace(self, store: IndexStore, workspace_id: str):
        other = service.create_workspace("Other")
        mine = service.create_folder(workspace_id, "Mine")
        service.create_folder(other.id, "Theirs")

        assert service.get_folders_for_workspace(workspace_id) == [mine]

    def test_rename_folder(self, store: IndexStore, workspace_id: str):
        folder = service.create_folder(workspace_id, "Old")

        assert service.rename_folder(folder.id, "New").name == "New"
        assert service.get_folder(folder.id).name == "New"

    def test_rename_unknown_folder(self, store: IndexStore):
        with pytest.raises(NotFoundError):
            service.rename_folder("missing", "x")

    def test_add_chat_to_folder_updates_both_sides(self, store: IndexStore, workspace_id: str):
        folder = service.create_folder(workspace_id, "F")
        chat = service.create_chat("llama3.2", "hi", workspace_id)

        updated = service.add_chat_to_folder(folder.id, chat.id)

        assert updated.chat_ids == [chat.id]
        assert service.get_chat(chat.id).folder_id == folder.id
        assert_consistent(store)

    def test_add_chat_to_folder_is_idempotent(self, store: IndexStore, workspace_id: str):
        folder = service.create_folder(workspace_id, "F")
        chat = service.create_chat("llama3.2", "hi", workspace_id)

        service.add_chat_to_folder(folder.id, chat.id)
        service.add_chat_to_folder(folder.id, chat.id)

        assert service.get_folder(folder.id).chat_ids == [chat.id]

    def test_add_chat_moves_it_out_of_previous_folder(self, store: IndexStore, workspace_id: str):
        first = service.create_folder(workspace_id, "First")
        second = service.create_folder(workspace_id, "Second")
        chat = service.create_chat("llama3.2", "hi", workspace_id, first.id)

        service.add_chat_to_folder(second.id, chat.id)

        assert service.get_folder(first.id).chat_ids == []
        assert service.get_folder(second.id).chat_ids == [chat.id]
        assert service.get_chat(chat.id).folder_id == second.id
        assert_consistent(store)

    def test_add_unknown_chat_to_folder(self, store: IndexStore, workspace_id: str):
        folder = service.create_folder(workspace_id, "F")

        with pytest.raises(NotFoundError):
            service.add_chat_to_folder(folder.id, "missing")
        assert service.get_folder(folder.id).chat_ids == []

    def test_add_chat_to_unknown_folder(self, store: IndexStore, workspace_id: str):
        chat = service.create_chat("llama3.2", "hi", workspace_id)

        with pytest.raises(NotFoundError):
            service.add_chat_to_folder("missing", chat.id)
        assert service.get_chat(chat.id).folder_id is None

    def test_remove_chat_from_folder(self, store: IndexStore, workspace_id: str):
        folder = service.create_folder(workspace_id, "F")
        chat = service.create_chat("llama3.2", "hi", workspace_id, folder.id)

        updated = service.remove_chat_from_folder(folder.id, chat.id)

        assert updated.chat_ids == []
        assert service.get_chat(chat.id).folder_id is None
        assert_consistent(store)

    def test_remove_chat_leaves_other_folder_link_alone(self, store: IndexStore, workspace_id: str):
        folder = service.create_folder(workspace_id, "F")
        other = service.create_folder(workspace_id, "Other")
        chat = service.create_chat("llama3.2", "hi", workspace_id, other.id)

        service.remove_chat_from_folder(folder.id, chat.id)

        assert service.get_chat(chat.id).folder_id == other.id

    def test_delete_folder_releases_chats(self, store: IndexStore, workspace_id: str):
        folder = service.create_folder(workspace_id, "F")
        chat = service.create_chat("llama3.2", "hi", workspace_id, folder.id)

        service.delete_folder(folder.id)

        assert service.get_folders_for_workspace(workspace_id) == []
        assert service.get_chat(chat.id).folder_id is None
        assert store.chat_log_path(chat.id).exists()
        assert_consistent(store)

    def test_delete_folder_skips_dangling_chat_ids(self, store: IndexStore, workspace_id: str):
        folder = service.create_folder(workspace_id, "F")
        chat = service.create_chat("llama3.2", "hi", workspace_id, folder.id)
        with store.edit(IndexName.folders) as index:
            index.folders[0].chat_ids.insert(0, "ghost")

        service.delete_folder(folder.id)

        assert service.get_chat(chat.id).folder_id is None

    def test_delete_unknown_folder(self, store: IndexStore):
        with pytest.raises(NotFoundError):
            service.delete_folder("missing")


class TestChats:
    """Chat management."""

    def test_create_chat(self, store: IndexStore, workspace_id: str):
        chat = service.create_chat("llama3.2", "What is the capital of France?", workspace_id)

        assert chat.chat_title == "What is the capital of France?"
        assert chat.model_used == "llama3.2"
        assert chat.workspace_id == workspace_id
        assert chat.folder_id is None
        assert chat.file_location == f"chats/{chat.id}.json"
        assert chat.created_at == chat.last_updated_at
        assert service.get_chat_messages(chat.id) == []
        assert store.chat_log_path(chat.id).exists()

    def test_create_chat_in_folder(self, store: IndexStore, workspace_id: str):
        folder = service.create_folder(workspace_id, "F")

        chat = service.create_chat("llama3.2", "hi", workspace_id, folder.id)

        assert chat.folder_id == folder.id
        assert service.get_folder(folder.id).chat_ids == [chat.id]
        assert_consistent(store)

    def test_create_chat_in_unknown_workspace(self, store: IndexStore):
        with pytest.raises(NotFoundError):
            service.create_chat("llama3.2", "hi", "missing")
        assert service.get_all_chats() == []

    def test_create_chat_in_unknown_folder(self, store: IndexStore, workspace_id: str):
        with pytest.raises(NotFoundError):
            service.create_chat("llama3.2", "hi", workspace_id, "missing")
        assert service.get_all_chats() == []

    def test_chats_are_scoped_to_workspace(self, store: IndexStore, workspace_id: str):
        other = service.create_workspace("Other")
        mine = service.create_chat("llama3.2", "mine", workspace_id)
        service.create_chat("llama3.2", "theirs", other.id)

        assert service.get_chats_for_workspace(workspace_id) == [mine]
        assert len(service.get_all_chats()) == 2

    def test_get_unknown_chat(self, store: IndexStore):
        with pytest.raises(NotFoundError, match="Chat with id 'missing' not found"):
            service.get_chat("missing")

    def test_rename_chat(self, store: IndexStore, workspace_id: str):
        chat = service.create_chat("llama3.2", "hi", workspace_id)

        renamed = service.rename_chat(chat.id, "Greetings")

        assert renamed.chat_title == "Greetings"
        assert service.get_chat(chat.id).chat_title == "Greetings"

    def test_rename_chat_rejects_blank_name(self, store: IndexStore, workspace_id: str):
        chat = service.create_chat("llama3.2", "hi", workspace_id)
        with pytest.raises(ValidationError):
            service.rename_chat(chat.id, " ")

    def test_update_chat_timestamp(self, store: IndexStore, workspace_id: str):
        chat = service.create_chat("llama3.2", "hi", workspace_id)

        service.update_chat_timestamp(chat.id)

        assert service.get_chat(chat.id).last_updated_at >= chat.last_updated_at

    def test_update_unknown_chat_timestamp_is_noop(self, store: IndexStore):
        service.update_chat_timestamp("missing")
        assert service.get_all_chats() == []

    def test_delete_chat(self, store: IndexStore, workspace_id: str):
        folder = service.create_folder(workspace_id, "F")
        chat = service.create_chat("llama3.2", "hi", workspace_id, folder.id)

        service.delete_chat(chat.id)

        assert service.get_all_chats() == []
        assert service.get_folder(folder.id).chat_ids == []
        assert not store.chat_log_path(chat.id).exists()
        assert_consistent(store)

    def test_delete_chat_without_log_file(self, store: IndexStore, workspace_id: str):
        chat = service.create_chat("llama3.2", "hi", workspace_id)
        store.chat_log_path(chat.id).unlink()

        service.delete_chat(chat.id)

        assert service.get_all_chats() == []

    def test_delete_unknown_chat(self, store: IndexStore):
        with pytest.raises(NotFoundError):
            service.delete_chat("missing")


class TestSearchChats:
    """Case-insensitive title search within a workspace."""

    @pytest.fixture
    def chats(self, store: IndexStore, workspace_id: str):
        return [
            service.create_chat("llama3.2", "Python decorators", workspace_id),
            service.create_chat("llama3.2", "Rust lifetimes", workspace_id),
            service.create_chat("llama3.2", "python packaging", workspace_id),
        ]

    def test_search_is_case_insensitive(self, chats, workspace_id: str):
        results = service.search_chats(workspace_id, "PYTHON")
        assert [c.id for c in results] == [chats[0].id, chats[2].id]

    def test_search_matches_substring(self, chats, workspace_id: str):
        results = service.search_chats(workspace_id, "life")
        assert [c.id for c in results] == [chats[1].id]

    def test_empty_query_returns_all(self, chats, workspace_id: str):
        assert [c.id for c in service.search_chats(workspace_id, "")] == [c.id for c in chats]

    def test_search_is_scoped_to_workspace(self, chats, store: IndexStore):
        other = service.create_workspace("Other")
        assert service.search_chats(other.id, "python") == []

    def test_no_match(self, chats, workspace_id: str):
        assert service.search_chats(workspace_id, "haskell") == []


class TestCrossWorkspaceLinks:
    """A chat and its folder always share a workspace."""

    def test_add_chat_from_other_workspace_is_rejected(self, store: IndexStore, workspace_id: str):
        other = service.create_workspace("Other")
        folder = service.create_folder(workspace_id, "Home folder")
        chat = service.create_chat("llama3.2", "hi", other.id)

        with pytest.raises(ValidationError, match="different workspace"):
            service.add_chat_to_folder(folder.id, chat.id)

        assert service.get_folder(folder.id).chat_ids == []
        assert service.get_chat(chat.id).folder_id is None

    def test_create_chat_in_folder_of_other_workspace_is_rejected(self, store: IndexStore, workspace_id: str):
        other = service.create_workspace("Other")
        folder = service.create_folder(other.id, "Elsewhere")

        with pytest.raises(ValidationError):
            service.create_chat("llama3.2", "hi", workspace_id, folder.id)

        assert service.get_all_chats() == []
        assert service.get_folder(folder.id).chat_ids == []

    def test_delete_workspace_strips_its_chats_from_surviving_folders(self, store: IndexStore, workspace_id: str):
        other = service.create_workspace("Other")
        folder = service.create_folder(workspace_id, "Home folder")
        chat = service.create_chat("llama3.2", "hi", other.id)
        # Link written by an older version that allowed cross-workspace attach
        with store.edit(IndexName.folders) as folders:
            folders.folders[0].chat_ids.append(chat.id)
        service.set_chat_folder(chat.id, folder.id)

        service.delete_workspace(other.id)

        assert service.get_folder(folder.id).chat_ids == []
        assert_consistent(store)

    def test_delete_workspace_releases_surviving_chats_from_its_folders(self, store: IndexStore, workspace_id: str):
        other = service.create_workspace("Other")
        folder = service.create_folder(other.id, "Doomed folder")
        chat = service.create_chat("llama3.2", "hi", workspace_id)
        with store.edit(IndexName.folders) as folders:
            folders.folders[0].chat_ids.append(chat.id)
        service.set_chat_folder(chat.id, folder.id)

        service.delete_workspace(other.id)

        assert service.get_chat(chat.id).folder_id is None
        assert store.chat_log_path(chat.id).exists()
        assert_consistent(store)


class TestSetChatFolder:
    """The one-sided primitive."""

    def test_sets_only_the_chat_side(self, store: IndexStore, workspace_id: str):
        folder = service.create_folder(workspace_id, "F")
        chat = service.create_chat("llama3.2", "hi", workspace_id)

        updated = service.set_chat_folder(chat.id, folder.id)

        assert updated.folder_id == folder.id
        assert service.get_chat(chat.id).folder_id == folder.id
        assert service.get_folder(folder.id).chat_ids == []

    def test_clears_folder(self, store: IndexStore, workspace_id: str):
        folder = service.create_folder(workspace_id, "F")
        chat = service.create_chat("llama3.2", "hi", workspace_id, folder.id)

        assert service.set_chat_folder(chat.id, None).folder_id is None

    def test_unknown_chat(self, store: IndexStore):
        with pytest.raises(NotFoundError):
            service.set_chat_folder("missing", None)


class TestDeleteChatFolders:
    """Folder side effects of deleting a chat."""

    def test_delete_unfiled_chat_leaves_folders_unchanged(self, store: IndexStore, workspace_id: str):
        folder = service.create_folder(workspace_id, "F")
        filed = service.create_chat("llama3.2", "filed", workspace_id, folder.id)
        unfiled = service.create_chat("llama3.2", "unfiled", workspace_id)
        before = store.index_path(IndexName.folders).read_bytes()

        service.delete_chat(unfiled.id)

        assert store.index_path(IndexName.folders).read_bytes() == before
        assert service.get_folder(folder.id).chat_ids == [filed.id]
        assert_consistent(store)


class TestConcurrentMutations:
    """Per-index locks serialize whole read-modify-write cycles."""

    def run_threads(self, target, count: int = 20) -> list[Exception]:
        errors: list[Exception] = []

        def worker(n: int) -> None:
            try:
                target(n)
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(count)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        return errors

    def test_concurrent_create_workspace(self, store: IndexStore):
        errors = self.run_threads(lambda n: service.create_workspace(f"Workspace {n}"))

        assert errors == []
        assert len(service.get_all_workspaces().workspaces) == 21

    def test_concurrent_create_folder(self, store: IndexStore, workspace_id: str):
        errors = self.run_threads(lambda n: service.create_folder(workspace_id, f"Folder {n}"))

        assert errors == []
        names = sorted(f.name for f in service.get_folders_for_workspace(workspace_id))
        assert names == sorted(f"Folder {n}" for n in range(20))

    def test_concurrent_attach_to_one_folder(self, store: IndexStore, workspace_id: str):
        folder = service.create_folder(workspace_id, "F")
        chats = [service.create_chat("llama3.2", f"chat {n}", workspace_id) for n in range(20)]

        errors = self.run_threads(lambda n: service.add_chat_to_folder(folder.id, chats[n].id))

        assert errors == []
        assert sorted(service.get_folder(folder.id).chat_ids) == sorted(c.id for c in chats)
        assert_consistent(store)

    def test_create_chat_racing_workspace_delete(self, store: IndexStore, workspace_id: str):
        other = service.create_workspace("Other")

        def work(n: int) -> None:
            if n == 10:
                service.delete_workspace(other.id)
            else:
                service.create_chat("llama3.2", f"chat {n}", other.id)

        errors = self.run_threads(work)

        assert all(isinstance(e, NotFoundError) for e in errors)
        assert service.get_chats_for_workspace(other.id) == []
        assert_consistent(store)
