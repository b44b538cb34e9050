"""Playlist event models pushed over the event stream."""

from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Literal

TRACK_ADDED = "track.added"
TRACK_REMOVED = "track.removed"
TRACK_MOVED = "track.moved"
TRACK_VOTED = "track.voted"
TRACK_PLAYING = "track.playing"
PLAYLIST_REORDERED = "playlist.reordered"
PING = "ping"

EventType = Literal[
    "track.added",
    "track.removed",
    "track.moved",
    "track.voted",
    "track.playing",
    "playlist.reordered",
]


class PlaylistEvent(BaseModel):
    """Something that happened to the playlist, before sequencing.

    The payload keys are merged into the top level of the stream frame,
    next to ``type`` and ``eventId``.
    """

    model_config = ConfigDict(frozen=True)

    type: EventType
    payload: dict[str, Any] = Field(default_factory=dict)

    def envelope(self, event_id: int) -> dict[str, Any]:
        """Build the wire frame for this event stamped with ``event_id``."""
        return {"eventId": event_id, "type": self.type, **self.payload}

    @classmethod
    def added(cls, item: dict[str, Any]) -> "PlaylistEvent":
        return cls(type=TRACK_ADDED, payload={"item": item})

    @classmethod
    def removed(cls, item_id: str) -> "PlaylistEvent":
        return cls(type=TRACK_REMOVED, payload={"id": item_id})

    @classmethod
    def moved(cls, item_id: str, position: float) -> "PlaylistEvent":
        return cls(type=TRACK_MOVED, payload={"item": {"id": item_id, "position": position}})

    @classmethod
    def voted(cls, item_id: str, votes: int) -> "PlaylistEvent":
        return cls(type=TRACK_VOTED, payload={"item": {"id": item_id, "votes": votes}})

    @classmethod
    def playing(cls, item_id: str) -> "PlaylistEvent":
        return cls(type=TRACK_PLAYING, payload={"id": item_id})

    @classmethod
    def reordered(cls, items: list[dict[str, Any]]) -> "PlaylistEvent":
        return cls(type=PLAYLIST_REORDERED, payload={"items": items})


class PingFrame(BaseModel):
    """Keep-alive frame. Carries no eventId and is never reconciled."""

    type: Literal["ping"] = PING
    ts: str
