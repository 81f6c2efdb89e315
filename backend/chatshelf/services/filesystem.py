"""FileSystem service for the chatshelf data directory.

This service handles:
- Directory initialization (data root, chats/, logs/)
- Atomic text writes for index files and message logs
- Reads and deletes with "missing file" reported as None / False

Concurrency Safety:
- Atomic writes use temp file + rename, so a reader never sees a half
  written JSON file even if the process dies mid-write
- Callers still serialize read-modify-write cycles themselves
"""

import os
import tempfile
from pathlib import Path

from chatshelf.utils import get_logger

logger = get_logger(__name__)


class FileSystemService:
    """File operations rooted at one data directory.

    Directory Structure:
    {data}/
    ├── workspaces.json
    ├── folders.json
    ├── chats_index.json
    ├── chats/
    │   └── {chat_id}.json
    └── logs/
    """

    def __init__(self, root: Path, chats_subdir: str = "chats"):
        self.root = Path(root)
        self.chats_dir = self.root / chats_subdir
        self._initialized = False

    def initialize(self) -> None:
        """Create the data root and the chats directory.

        Idempotent. Raises OSError if the directories cannot be created.
        """
        if self._initialized:
            return

        for dir_path in (self.root, self.chats_dir):
            dir_path.mkdir(parents=True, exist_ok=True)
            logger.debug(f"Ensured directory exists: {dir_path}")

        self._initialized = True
        logger.info(f"FileSystem initialized: data={self.root}")

    def chat_log_path(self, chat_id: str) -> Path:
        return self.chats_dir / f"{chat_id}.json"

    # ==================== File Operations ====================

    def write_file(self, path: Path, content: str, encoding: str = "utf-8") -> int:
        """Write text to a file atomically (temp file + rename).

        Creates parent directories if they don't exist.

        Returns:
            File size in bytes
        """
        path.parent.mkdir(parents=True, exist_ok=True)

        fd = None
        tmp_path = None
        try:
            # Temp file in the same directory keeps the rename on one filesystem
            fd, tmp_path_str = tempfile.mkstemp(
                dir=path.parent,
                suffix=".tmp",
                prefix=f".{path.name}.",
            )
            tmp_path = Path(tmp_path_str)

            os.write(fd, content.encode(encoding))
            os.close(fd)
            fd = None

            os.replace(tmp_path, path)

            size = path.stat().st_size
            logger.debug(f"Wrote file atomically: {path} ({size} bytes)")
            return size

        except Exception as e:
            if fd is not None:
                try:
                    os.close(fd)
                except OSError:
                    pass
            if tmp_path and tmp_path.exists():
                try:
                    tmp_path.unlink()
                except OSError:
                    pass
            logger.error(f"Atomic write failed for {path}: {e}")
            raise

    def read_file(self, path: Path, encoding: str = "utf-8") -> str | None:
        """Read file content as string, or None if the file doesn't exist."""
        if not path.exists():
            logger.debug(f"File not found: {path}")
            return None

        content = path.read_text(encoding=encoding)
        logger.debug(f"Read file: {path} ({len(content)} chars)")
        return content

    def delete_file(self, path: Path) -> bool:
        """Delete a file. Returns False if it didn't exist."""
        try:
            path.unlink()
        except FileNotFoundError:
            logger.debug(f"File not found for deletion: {path}")
            return False
        logger.debug(f"Deleted file: {path}")
        return True
