"""FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from chatshelf import __version__
from chatshelf.api.v1.api import api_router
from chatshelf.components.workspace.storage import IndexName, get_index_store
from chatshelf.exceptions import (
    ChatShelfError,
    NotFoundError,
    UpstreamConnectError,
    UpstreamError,
    UpstreamTimeoutError,
    ValidationError,
)
from chatshelf.services import chat_service
from chatshelf.settings import settings
from chatshelf.utils import get_logger, setup_logging

logger = get_logger(__name__)

# Seconds to let in-flight replies finish on shutdown
SHUTDOWN_STREAM_GRACE = 5.0


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    store = get_index_store()
    # Synthesizes the default workspace on first start
    workspaces = store.load(IndexName.workspaces)
    logger.info(
        f"ChatShelf {__version__} started ({settings.environment}): data_dir={store.root}, "
        f"workspaces={len(workspaces.workspaces)}, ollama={settings.ollama_base_url}"
    )
    yield
    await chat_service.wait_for_streams(timeout=SHUTDOWN_STREAM_GRACE)
    logger.info("ChatShelf stopped")


app = FastAPI(
    title="ChatShelf API",
    description="Local chat front-end for Ollama with workspaces, folders and persistent history",
    version=__version__,
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _status_for(exc: ChatShelfError) -> int:
    if isinstance(exc, ValidationError):
        return 400
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, UpstreamConnectError):
        return 503
    if isinstance(exc, UpstreamTimeoutError):
        return 504
    if isinstance(exc, UpstreamError):
        # UpstreamStatusError and mid-stream network failures
        return 502
    # StorageError and anything unclassified
    return 500


@app.exception_handler(ChatShelfError)
async def chatshelf_error_handler(request: Request, exc: ChatShelfError) -> JSONResponse:
    status_code = _status_for(exc)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=status_code, content={"detail": exc.message})


app.include_router(api_router, prefix="/api/v1")


@app.get("/")
async def root():
    return {
        "status": "ok",
        "service": "ChatShelf API",
        "version": __version__,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "chatshelf.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
