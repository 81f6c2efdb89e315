"""Ollama API client for the local inference server.

API Flow:
1. OllamaClient.open_chat_stream(model, messages) -> ChatStream
2. ChatStream.iter_chunks() -> raw NDJSON byte chunks
3. ChatStream.aclose()

Model lifecycle calls (list, running, show) are thin pass-throughs that
return Ollama's JSON unchanged.

Ollama API Reference:
- POST /api/chat   {model, messages, stream: true} -> NDJSON stream
- GET  /api/tags   -> {models: [...]}
- GET  /api/ps     -> {models: [...]}
- POST /api/show   {model} -> model details

Every transport failure is translated into an UpstreamError subclass with a
message that names the server and the likely remedy.
"""

import json
import time
from collections.abc import AsyncIterator
from dataclasses import dataclass, field

import httpx

from chatshelf.components.workspace.models import ChatMessage
from chatshelf.exceptions import (
    UpstreamConnectError,
    UpstreamError,
    UpstreamStatusError,
    UpstreamTimeoutError,
)
from chatshelf.settings import settings
from chatshelf.utils import get_logger

logger = get_logger(__name__)


def _error_detail(body: str) -> str:
    """Ollama error bodies look like {"error": "..."}; fall back to raw text."""
    try:
        data = json.loads(body)
    except ValueError:
        return body.strip()
    if isinstance(data, dict) and isinstance(data.get("error"), str):
        return data["error"]
    return body.strip()


def status_error(status_code: int, body: str, model: str | None = None) -> UpstreamStatusError:
    """Build the user-facing error for a non-success Ollama response."""
    detail = _error_detail(body)
    subject = f"model '{model}'" if model else "the requested model"

    if status_code == 404:
        message = f"Ollama could not find {subject}. Pull it first with `ollama pull`."
    elif status_code == 400:
        message = f"Ollama rejected the request as invalid: {detail}"
    elif status_code >= 500:
        message = f"Ollama encountered an internal error (HTTP {status_code}): {detail}"
    else:
        message = f"Ollama returned HTTP {status_code}: {detail}"

    return UpstreamStatusError(message, status_code=status_code, detail=detail)


@dataclass
class ChatStream:
    """An accepted /api/chat request whose body is still being received."""

    response: httpx.Response
    client: httpx.AsyncClient = field(repr=False)

    @property
    def status_code(self) -> int:
        return self.response.status_code

    async def iter_chunks(self) -> AsyncIterator[bytes]:
        """Yield body chunks as they arrive; transport failures become UpstreamError."""
        try:
            async for chunk in self.response.aiter_bytes():
                if chunk:
                    yield chunk
        except httpx.TimeoutException as e:
            raise UpstreamTimeoutError(f"Stream error: read from Ollama timed out ({e})") from e
        except httpx.HTTPError as e:
            raise UpstreamError(f"Stream error: {e}") from e

    async def aclose(self) -> None:
        try:
            await self.response.aclose()
        finally:
            await self.client.aclose()


class OllamaClient:
    """Client for the Ollama HTTP API.

    Typical usage:
        client = OllamaClient()
        stream = await client.open_chat_stream("llama3.2", messages)
        try:
            async for chunk in stream.iter_chunks():
                ...
        finally:
            await stream.aclose()
    """

    def __init__(
        self,
        base_url: str | None = None,
        connect_timeout: float | None = None,
        read_timeout: float | None = None,
        request_timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.ollama_base_url).rstrip("/")
        self.connect_timeout = connect_timeout if connect_timeout is not None else settings.ollama_connect_timeout
        self.read_timeout = read_timeout if read_timeout is not None else settings.ollama_read_timeout
        self.request_timeout = request_timeout if request_timeout is not None else settings.ollama_request_timeout
        self._transport = transport

    def _connect_error(self) -> UpstreamConnectError:
        return UpstreamConnectError(
            f"Could not connect to Ollama. Make sure Ollama is running on {self.base_url}"
        )

    def _new_client(self, timeout: httpx.Timeout) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=self._transport)

    # ==================== Chat streaming ====================

    async def open_chat_stream(self, model: str, messages: list[ChatMessage]) -> ChatStream:
        """Send the chat request and return the open stream.

        The caller owns the stream and must ``aclose()`` it.

        Raises:
            UpstreamConnectError: Ollama is unreachable
            UpstreamTimeoutError: no response headers in time
            UpstreamStatusError: non-success status (body already read)
        """
        payload = {
            "model": model,
            "messages": [m.model_dump() for m in messages],
            "stream": True,
        }
        timeout = httpx.Timeout(self.read_timeout, connect=self.connect_timeout)
        client = self._new_client(timeout)
        start = time.time()

        logger.info(
            f"[Ollama] Connecting: model={model}, messages={len(messages)}, url={self.base_url}/api/chat"
        )

        try:
            request = client.build_request("POST", "/api/chat", json=payload)
            response = await client.send(request, stream=True)
        except httpx.ConnectError as e:
            await client.aclose()
            logger.error(f"[Ollama] Connect failed: {e}")
            raise self._connect_error() from e
        except httpx.TimeoutException as e:
            await client.aclose()
            logger.error(f"[Ollama] Timeout after {time.time() - start:.2f}s: {e}")
            raise UpstreamTimeoutError("Request to Ollama timed out") from e
        except httpx.HTTPError as e:
            await client.aclose()
            logger.error(f"[Ollama] Network error: error_type={type(e).__name__}, error={e}")
            raise UpstreamError(f"Network error: {e}") from e

        if response.is_error:
            try:
                body = (await response.aread()).decode("utf-8", errors="replace")
            except httpx.HTTPError:
                body = ""
            finally:
                await response.aclose()
                await client.aclose()
            logger.error(f"[Ollama] HTTP error: status={response.status_code}, model={model}")
            raise status_error(response.status_code, body, model)

        logger.info(f"[Ollama] Connected: status={response.status_code}, model={model}")
        return ChatStream(response=response, client=client)

    # ==================== Model pass-through ====================

    async def _request_json(self, method: str, path: str, json_body: dict | None = None, model: str | None = None):
        timeout = httpx.Timeout(self.request_timeout, connect=self.connect_timeout)
        try:
            async with self._new_client(timeout) as client:
                resp = await client.request(method, path, json=json_body)
        except httpx.ConnectError as e:
            raise self._connect_error() from e
        except httpx.TimeoutException as e:
            raise UpstreamTimeoutError(f"Request to Ollama timed out ({path})") from e
        except httpx.HTTPError as e:
            raise UpstreamError(f"Network error: {e}") from e

        if resp.is_error:
            raise status_error(resp.status_code, resp.text, model)
        try:
            return resp.json()
        except ValueError as e:
            raise UpstreamError(f"Failed to parse the Ollama response for {path}: {e}") from e

    async def list_models(self) -> list[dict]:
        """Locally installed models (GET /api/tags)."""
        data = await self._request_json("GET", "/api/tags")
        return data.get("models", [])

    async def list_running_models(self) -> list[dict]:
        """Models currently loaded in memory (GET /api/ps)."""
        data = await self._request_json("GET", "/api/ps")
        return data.get("models", [])

    async def show_model_details(self, model: str) -> dict:
        """Modelfile, parameters and template of one model (POST /api/show)."""
        return await self._request_json("POST", "/api/show", {"model": model}, model=model)


# Singleton client instance
_ollama_client: OllamaClient | None = None


def get_ollama_client() -> OllamaClient:
    global _ollama_client
    if _ollama_client is None:
        _ollama_client = OllamaClient()
    return _ollama_client


def set_ollama_client(client: OllamaClient | None) -> None:
    """Replace the singleton (tests inject a client backed by httpx.MockTransport)."""
    global _ollama_client
    _ollama_client = client
