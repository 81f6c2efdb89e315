"""API v1 Router Aggregator.

Aggregates all v1 API endpoints into a single router.
"""

from fastapi import APIRouter

from chatshelf.api.v1.endpoints import chats, events, folders, health, models, workspaces

api_router = APIRouter()

# Mount endpoint routers
api_router.include_router(health.router, prefix="/health", tags=["Health"])
api_router.include_router(workspaces.router, prefix="/workspaces", tags=["Workspaces"])
api_router.include_router(folders.router, prefix="/folders", tags=["Folders"])
api_router.include_router(chats.router, prefix="/chats", tags=["Chats"])
api_router.include_router(events.router, prefix="/events", tags=["Events"])
api_router.include_router(models.router, prefix="/models", tags=["Models"])
