"""Playlist mutations applied atomically against storage.

Every mutation runs under one writer lock and one ``BEGIN IMMEDIATE``
transaction, then reads the post-commit snapshot for the
``playlist.reordered`` event. Nothing here publishes; callers hand the
returned events to the event bus.
"""

import math
import sqlite3
import threading
import uuid
from collab_api.models.events import PlaylistEvent
from collab_api.services.database import DatabaseService
from collections.abc import Callable
from core.errors import DuplicateTrack, InvalidDirection, InvalidRequest, NotFound, ServerError
from core.logging import log_playlist_operation
from core.positions import allocate
from dataclasses import dataclass, field
from datetime import UTC, datetime
from eliot import start_action
from typing import Any

VOTE_DELTAS = {"up": 1, "down": -1}
DEFAULT_ADDED_BY = "Anonymous"


def utc_now() -> str:
    """Current time as an ISO-8601 UTC string."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class MutationResult:
    """Outcome of a mutation: the touched entity and the events to broadcast."""

    item: dict[str, Any] | None
    events: list[PlaylistEvent] = field(default_factory=list)


class PlaylistService:
    """Add, remove, vote, move and play operations on the shared playlist."""

    def __init__(
        self,
        db: DatabaseService,
        id_factory: Callable[[], str] | None = None,
        clock: Callable[[], str] = utc_now,
    ):
        self.db = db
        self._lock = threading.RLock()
        self._new_id = id_factory or (lambda: uuid.uuid4().hex)
        self._now = clock

    # ==================== Reads ====================

    def list_tracks(self) -> list[dict[str, Any]]:
        return self.db.get_all_tracks()

    def list_playlist(self) -> list[dict[str, Any]]:
        """Playlist in canonical order (position ascending)."""
        return self.db.get_playlist()

    def get_item(self, item_id: str) -> dict[str, Any]:
        item = self.db.get_item(item_id)
        if item is None:
            raise NotFound(details={"id": item_id})
        return item

    # ==================== Mutations ====================

    def _run(self, operation: str, body: Callable[[sqlite3.Connection], Any], **context) -> tuple[Any, list]:
        """Run ``body`` in one transaction and return its result plus the committed snapshot."""
        with start_action(action_type=f"playlist:{operation}", **context):
            with self._lock:
                try:
                    with self.db.transaction() as conn:
                        result = body(conn)
                    snapshot = self.db.get_playlist()
                except sqlite3.IntegrityError as e:
                    if operation == "add" and "track_id" in str(e):
                        raise DuplicateTrack(context.get("track_id", "")) from e
                    raise ServerError("Unexpected error", {"operation": operation}) from e
                except sqlite3.Error as e:
                    raise ServerError("Unexpected error", {"operation": operation}) from e
            log_playlist_operation(operation, **context)
            return result, snapshot

    def add(self, track_id: Any, added_by: Any = None) -> MutationResult:
        """Append a track to the end of the playlist.

        Raises:
            InvalidRequest: track_id missing, blank or not in the catalog
            DuplicateTrack: the track already has a playlist item
        """
        track_id = track_id.strip() if isinstance(track_id, str) else ""
        if not track_id:
            raise InvalidRequest("track_id is required")
        if not isinstance(added_by, str) or not added_by.strip():
            added_by = DEFAULT_ADDED_BY
        else:
            added_by = added_by.strip()

        def body(conn: sqlite3.Connection) -> dict[str, Any]:
            if self.db.get_track(track_id, conn) is None:
                raise InvalidRequest("Unknown track_id", {"track_id": track_id})
            if self.db.find_item_by_track(conn, track_id) is not None:
                raise DuplicateTrack(track_id)
            item_id = self._new_id()
            position = allocate(self.db.max_position(conn), None)
            self.db.insert_item(conn, item_id, track_id, position, added_by, self._now())
            return self.db.get_item(item_id, conn)

        item, snapshot = self._run("add", body, track_id=track_id, added_by=added_by)
        return MutationResult(item, [PlaylistEvent.added(item), PlaylistEvent.reordered(snapshot)])

    def remove(self, item_id: str) -> MutationResult:
        """Delete an item.

        Raises:
            NotFound: no item with that id
        """

        def body(conn: sqlite3.Connection) -> None:
            if not self.db.delete_item(conn, item_id):
                raise NotFound(details={"id": item_id})

        _, snapshot = self._run("remove", body, item_id=item_id)
        return MutationResult(None, [PlaylistEvent.removed(item_id), PlaylistEvent.reordered(snapshot)])

    def vote(self, item_id: str, direction: Any) -> MutationResult:
        """Shift an item's votes by exactly one. Votes are not clamped.

        Raises:
            InvalidDirection: direction is not ``up`` or ``down``
            NotFound: no item with that id
        """
        if direction not in VOTE_DELTAS:
            raise InvalidDirection(direction)
        delta = VOTE_DELTAS[direction]

        def body(conn: sqlite3.Connection) -> int:
            votes = self.db.add_votes(conn, item_id, delta)
            if votes is None:
                raise NotFound(details={"id": item_id})
            return votes

        votes, snapshot = self._run("vote", body, item_id=item_id, direction=direction)
        item = next(i for i in snapshot if i["id"] == item_id)
        return MutationResult(item, [PlaylistEvent.voted(item_id, votes), PlaylistEvent.reordered(snapshot)])

    def move(self, item_id: str, position: float) -> MutationResult:
        """Set an item's position to a caller-computed key.

        Raises:
            InvalidRequest: position is not a finite number
            NotFound: no item with that id
        """
        if isinstance(position, bool) or not isinstance(position, int | float) or not math.isfinite(position):
            raise InvalidRequest("position must be a finite number", {"position": position})
        position = float(position)

        def body(conn: sqlite3.Connection) -> None:
            if not self.db.set_position(conn, item_id, position):
                raise NotFound(details={"id": item_id})

        _, snapshot = self._run("move", body, item_id=item_id, position=position)
        item = next(i for i in snapshot if i["id"] == item_id)
        return MutationResult(item, [PlaylistEvent.moved(item_id, position), PlaylistEvent.reordered(snapshot)])

    def set_playing(self, item_id: str) -> MutationResult:
        """Make an item the single now-playing item.

        Raises:
            NotFound: no item with that id
        """
        played_at = self._now()

        def body(conn: sqlite3.Connection) -> None:
            if not self.db.set_playing(conn, item_id, played_at):
                raise NotFound(details={"id": item_id})

        _, snapshot = self._run("play", body, item_id=item_id)
        item = next(i for i in snapshot if i["id"] == item_id)
        return MutationResult(item, [PlaylistEvent.playing(item_id)])
