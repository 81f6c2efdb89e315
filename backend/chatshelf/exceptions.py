"""Error taxonomy shared by storage, services and the Ollama client.

API handlers in ``chatshelf.main`` map each family to an HTTP status.
"""


class ChatShelfError(Exception):
    """Base class for every error raised by chatshelf."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# Storage


class StorageError(ChatShelfError):
    """A data directory or file could not be created, read or written."""


class StorageParseError(StorageError):
    """An index or message log exists but does not contain valid JSON."""


class StorageSerializeError(StorageError):
    """An in-memory value could not be encoded as JSON."""


# Domain


class ValidationError(ChatShelfError):
    """Rejected input: empty names, deleting the last workspace."""


class NotFoundError(ChatShelfError):
    """An operation referenced an unknown workspace, folder or chat."""

    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity} with id '{entity_id}' not found")
        self.entity = entity
        self.entity_id = entity_id


# Upstream (Ollama)


class UpstreamError(ChatShelfError):
    """The inference server could not serve a request."""


class UpstreamConnectError(UpstreamError):
    """Connection refused or unreachable host."""


class UpstreamTimeoutError(UpstreamError):
    """The inference server did not answer in time."""


class UpstreamStatusError(UpstreamError):
    """The inference server answered with a non-success status."""

    def __init__(self, message: str, status_code: int, detail: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail
