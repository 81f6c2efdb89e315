"""chatshelf: local chat assistant backend.

Workspaces, folders and chats are stored as JSON files; replies are streamed
from a local Ollama server.
"""

__version__ = "0.1.0"
