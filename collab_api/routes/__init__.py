"""Routers mounted under ``/api``."""

from collab_api.routes.playlist import router as playlist_router
from collab_api.routes.stream import router as stream_router
from collab_api.routes.tracks import router as tracks_router

__all__ = [
    "tracks_router",
    "playlist_router",
    "stream_router",
]
