"""Playlist item models and request bodies."""

from collab_api.models.track import TrackSummary
from pydantic import BaseModel, Field
from typing import Literal


class PlaylistItem(BaseModel):
    """A track in the shared playlist."""

    id: str
    track_id: str
    track: TrackSummary
    position: float
    votes: int = 0
    added_by: str
    is_playing: bool = False
    added_at: str
    played_at: str | None = None


class PlaylistAddRequest(BaseModel):
    """Request to add a track to the playlist."""

    track_id: str = Field(min_length=1, description="Catalog track id")
    added_by: str | None = Field(None, description="Display name of the contributor")


class PlaylistUpdateRequest(BaseModel):
    """Request to move an item and/or mark it as now playing."""

    position: float | None = Field(None, allow_inf_nan=False, description="New position key")
    is_playing: bool | None = Field(None, description="True marks this item as the only playing item")


class VoteRequest(BaseModel):
    """Request to vote an item up or down."""

    direction: Literal["up", "down"]
