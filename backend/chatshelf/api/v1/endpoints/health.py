"""Health check endpoint."""

from fastapi import APIRouter

from chatshelf import __version__
from chatshelf.components.workspace.storage import get_index_store
from chatshelf.services import chat_service

router = APIRouter()


@router.get("")
def health() -> dict:
    return {
        "status": "healthy",
        "version": __version__,
        "data_dir": str(get_index_store().root),
        "active_streams": chat_service.active_stream_count(),
    }
