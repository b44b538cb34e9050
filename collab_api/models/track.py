"""Track models for the shared catalog."""

from pydantic import BaseModel, Field


class Track(BaseModel):
    """Immutable catalog entry."""

    id: str
    title: str
    artist: str
    album: str
    duration_seconds: int = Field(ge=0)
    genre: str | None = None
    cover_url: str | None = None


class TrackSummary(BaseModel):
    """Track fields embedded in each playlist item."""

    title: str
    artist: str
    duration_seconds: int = Field(ge=0)
