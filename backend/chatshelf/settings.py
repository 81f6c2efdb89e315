"""
Application Settings Management

All runtime configuration lives here: server, data directory, the local
Ollama endpoint, timeouts and logging.

IMPORTANT:
- Override any field through environment variables prefixed with CHATSHELF_
  (e.g. CHATSHELF_DATA_DIR, CHATSHELF_OLLAMA_BASE_URL)
- For local development create a .env.local file at the project root
"""

from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# backend/chatshelf/settings.py -> backend/chatshelf/ -> backend/ -> project root
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

ENV_FILE = PROJECT_ROOT / ".env.local"

# Index file names inside the data directory
WORKSPACES_INDEX = "workspaces.json"
FOLDERS_INDEX = "folders.json"
CHATS_INDEX = "chats_index.json"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ==================== Environment ====================
    # "local-dev" | "test" | "production"
    environment: str = "local-dev"

    # ==================== Server ====================
    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = True

    cors_origins: list[str] = [
        "http://localhost:1420",
        "http://127.0.0.1:1420",
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # ==================== Data directory ====================
    # Empty string means {project_root}/.data
    data_dir: str = ""
    chats_subdir: str = "chats"

    # ==================== Ollama ====================
    ollama_base_url: str = "http://localhost:11434"
    ollama_connect_timeout: float = 10.0
    # None leaves the streamed read unbounded; the stream ends when Ollama ends it
    ollama_read_timeout: float | None = None
    # Timeout for the non-streaming model pass-through calls
    ollama_request_timeout: float = 120.0

    # ==================== Chats ====================
    default_workspace_name: str = "My Workspace"
    title_max_chars: int = 50

    # ==================== Logging ====================
    logs_subdir: str = "logs"
    log_max_bytes: int = 20 * 1024 * 1024  # 20MB
    log_backup_count: int = 5

    model_config = SettingsConfigDict(
        env_prefix="CHATSHELF_",
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode="after")
    def strip_trailing_slash(self) -> "Settings":
        """Normalize the Ollama base URL so paths can be appended directly."""
        self.ollama_base_url = self.ollama_base_url.rstrip("/")
        return self

    # ==================== Path helpers ====================

    def get_data_root(self) -> Path:
        """Root of all persisted JSON files.

        - default: {project_root}/.data/
        - CHATSHELF_DATA_DIR overrides it (absolute, or relative to the project root)
        """
        if not self.data_dir:
            return PROJECT_ROOT / ".data"
        path = Path(self.data_dir).expanduser()
        return path if path.is_absolute() else PROJECT_ROOT / path

    def get_logs_root(self) -> Path:
        return self.get_data_root() / self.logs_subdir


settings = Settings()
