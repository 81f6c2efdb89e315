#!/usr/bin/env python
"""
pytest configuration file

This file contains shared fixtures for all tests.
"""

import os
import tempfile

# Keep log files and the default data directory out of the project tree
os.environ.setdefault("CHATSHELF_ENVIRONMENT", "test")
os.environ.setdefault("CHATSHELF_DATA_DIR", tempfile.mkdtemp(prefix="chatshelf-test-"))

import json  # noqa: E402
from collections.abc import AsyncIterator, Callable  # noqa: E402
from types import SimpleNamespace  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from chatshelf.components.ollama.client import OllamaClient, set_ollama_client  # noqa: E402
from chatshelf.components.workspace.storage import (  # noqa: E402
    IndexStore,
    reset_index_store,
    set_index_store,
)
from chatshelf.main import app  # noqa: E402
from chatshelf.services.events import EventBroker  # noqa: E402

OLLAMA_TEST_URL = "http://ollama.test"


@pytest.fixture
def data_dir(tmp_path):
    """Empty data directory for one test."""
    return tmp_path / "data"


@pytest.fixture
def store(data_dir) -> IndexStore:
    """IndexStore rooted at a temporary directory, installed as the singleton."""
    index_store = IndexStore(data_dir)
    set_index_store(index_store)
    yield index_store
    reset_index_store()


@pytest.fixture
def broker() -> EventBroker:
    return EventBroker()


def ndjson(*records: dict) -> bytes:
    """Encode records the way Ollama streams them: one JSON object per line."""
    return b"".join(json.dumps(r).encode("utf-8") + b"\n" for r in records)


def chunk_record(content: str, done: bool = False, **extra) -> dict:
    """One /api/chat stream record."""
    record = {
        "model": "llama3.2",
        "created_at": "2025-01-15T10:00:00Z",
        "message": {"role": "assistant", "content": content},
        "done": done,
    }
    record.update(extra)
    return record


def streamed_response(*chunks: bytes, fail_with: Exception | None = None) -> httpx.Response:
    """200 response whose body arrives chunk by chunk, optionally failing afterwards."""

    async def body() -> AsyncIterator[bytes]:
        for chunk in chunks:
            yield chunk
        if fail_with is not None:
            raise fail_with

    return httpx.Response(200, content=body())


@pytest.fixture
def make_ollama_client() -> Callable[[Callable[[httpx.Request], httpx.Response]], OllamaClient]:
    """Factory for an OllamaClient whose requests go to an httpx.MockTransport handler."""

    def factory(handler) -> OllamaClient:
        return OllamaClient(
            base_url=OLLAMA_TEST_URL,
            connect_timeout=1.0,
            request_timeout=1.0,
            transport=httpx.MockTransport(handler),
        )

    return factory


@pytest.fixture
def ollama_client_override():
    """Install an OllamaClient as the singleton for the duration of a test."""

    def install(client: OllamaClient) -> OllamaClient:
        set_ollama_client(client)
        return client

    yield install
    set_ollama_client(None)


@pytest.fixture
def stream_helpers():
    """Builders for fake Ollama stream bodies."""
    return SimpleNamespace(ndjson=ndjson, record=chunk_record, response=streamed_response)


@pytest.fixture
def client(store: IndexStore):
    """TestClient running the app lifespan against the temporary store.

    Leaving the context waits for detached reply streams to finish.
    """
    with TestClient(app) as test_client:
        yield test_client
