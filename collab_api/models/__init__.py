"""Pydantic models for the collaborative playlist API."""

from collab_api.models.events import PingFrame, PlaylistEvent
from collab_api.models.playlist import PlaylistAddRequest, PlaylistItem, PlaylistUpdateRequest, VoteRequest
from collab_api.models.responses import ErrorDetail, ErrorResponse, HealthResponse, UpdateResponse, VoteResponse
from collab_api.models.track import Track, TrackSummary

__all__ = [
    # Track models
    "Track",
    "TrackSummary",
    # Playlist models
    "PlaylistItem",
    "PlaylistAddRequest",
    "PlaylistUpdateRequest",
    "VoteRequest",
    # Response models
    "UpdateResponse",
    "VoteResponse",
    "ErrorDetail",
    "ErrorResponse",
    "HealthResponse",
    # Event models
    "PlaylistEvent",
    "PingFrame",
]
