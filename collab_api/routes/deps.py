"""Request dependencies resolving the per-app service instances."""

from collab_api.services.database import DatabaseService
from collab_api.services.event_bus import EventBus
from collab_api.services.mutations import PlaylistService
from fastapi import Request


def get_db(request: Request) -> DatabaseService:
    """Get the app's database service."""
    return request.app.state.db


def get_playlist_service(request: Request) -> PlaylistService:
    """Get the app's playlist mutation service."""
    return request.app.state.playlist_service


def get_event_bus(request: Request) -> EventBus:
    """Get the app's event bus."""
    return request.app.state.event_bus
