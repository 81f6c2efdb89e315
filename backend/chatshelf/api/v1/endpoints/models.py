"""Model pass-through endpoints (list, running, show) backed by Ollama."""

from fastapi import APIRouter

from chatshelf.components.ollama.client import get_ollama_client
from chatshelf.components.workspace.models import ShowModelRequest

router = APIRouter()


@router.get("")
async def list_models() -> list[dict]:
    return await get_ollama_client().list_models()


@router.get("/running")
async def list_running_models() -> list[dict]:
    return await get_ollama_client().list_running_models()


@router.post("/show")
async def show_model_details(request: ShowModelRequest) -> dict:
    return await get_ollama_client().show_model_details(request.model)
