"""Pure reconciliation of server events and optimistic edits.

The local playlist is an immutable ``PlaylistSnapshot``. Server frames go
through ``reconcile``; local edits go through the ``optimistic_*`` helpers.
Nothing in here performs I/O, so the engine can swap snapshots in and out
freely (rollback is just restoring an older tuple of items).

Ordering rules for incoming frames:

1. ``ping`` heartbeats are dropped.
2. A frame whose ``eventId`` is not greater than the last accepted one is a
   duplicate or arrived late and is dropped. Gaps are fine. The mark is
   cleared for every new subscription, since a restarted server numbers
   from 1 again.
3. Anything else is applied. ``playlist.reordered`` replaces the item list
   verbatim; the other types patch the matching item by id.
"""

from collections.abc import Iterable, Sequence
from core.positions import allocate, allocate_at
from dataclasses import dataclass, replace
from typing import Any

Item = dict[str, Any]

HEARTBEAT_TYPES = frozenset({"ping", "heartbeat"})
PENDING_PREFIX = "pending:"

SORT_MANUAL = "manual"
SORT_VOTES = "votes"


@dataclass(frozen=True)
class PlaylistSnapshot:
    """Local copy of the playlist plus the highest accepted eventId."""

    items: tuple[Item, ...] = ()
    last_event_id: int = 0

    def with_items(self, items: Iterable[Item]) -> "PlaylistSnapshot":
        return replace(self, items=tuple(items))

    def for_new_stream(self) -> "PlaylistSnapshot":
        """Same items with the eventId mark cleared."""
        return replace(self, last_event_id=0)

    def find(self, item_id: str) -> Item | None:
        return next((item for item in self.items if item["id"] == item_id), None)

    def has_track(self, track_id: str) -> bool:
        return any(item["track_id"] == track_id for item in self.items)


def canonical_order(items: Iterable[Item]) -> list[Item]:
    """Items by position ascending; id breaks ties so every client agrees."""
    return sorted(items, key=lambda item: (item["position"], str(item["id"])))


def sort_for_display(items: Iterable[Item], mode: str = SORT_MANUAL) -> list[Item]:
    """Order items for display only. Never feed the result back as canonical order.

    Args:
        items: Playlist items
        mode: ``manual`` (position ascending) or ``votes`` (votes descending,
            position ascending as tie-break)
    """
    if mode == SORT_VOTES:
        return sorted(items, key=lambda item: (-item["votes"], item["position"], str(item["id"])))
    return canonical_order(items)


# ==================== Server events ====================


def _patch(items: Sequence[Item], item_id: str, **changes) -> list[Item]:
    return [{**item, **changes} if item["id"] == item_id else item for item in items]


def apply_event(items: Sequence[Item], frame: dict[str, Any]) -> list[Item]:
    """Apply one non-snapshot event to the item list."""
    kind = frame.get("type")

    if kind == "track.added":
        added = frame["item"]
        kept = [
            item
            for item in items
            if item["id"] != added["id"]
            and not (str(item["id"]).startswith(PENDING_PREFIX) and item["track_id"] == added["track_id"])
        ]
        return [*kept, added]

    if kind == "track.removed":
        return [item for item in items if item["id"] != frame["id"]]

    if kind == "track.moved":
        return _patch(items, frame["item"]["id"], position=frame["item"]["position"])

    if kind == "track.voted":
        return _patch(items, frame["item"]["id"], votes=frame["item"]["votes"])

    if kind == "track.playing":
        return [{**item, "is_playing": item["id"] == frame["id"]} for item in items]

    return list(items)


def reconcile(snapshot: PlaylistSnapshot, frame: dict[str, Any]) -> tuple[PlaylistSnapshot, bool]:
    """Merge one stream frame into the snapshot.

    Returns:
        The new snapshot and whether the frame was applied
    """
    if frame.get("type") in HEARTBEAT_TYPES:
        return snapshot, False

    event_id = frame.get("eventId")
    last_event_id = snapshot.last_event_id
    if isinstance(event_id, int) and not isinstance(event_id, bool):
        if event_id <= last_event_id:
            return snapshot, False
        last_event_id = event_id

    if frame.get("type") == "playlist.reordered" and isinstance(frame.get("items"), list):
        items = tuple(frame["items"])
    else:
        items = tuple(apply_event(snapshot.items, frame))
    return PlaylistSnapshot(items=items, last_event_id=last_event_id), True


# ==================== Optimistic edits ====================


def optimistic_vote(items: Sequence[Item], item_id: str, direction: str) -> list[Item]:
    delta = 1 if direction == "up" else -1
    return [{**item, "votes": item["votes"] + delta} if item["id"] == item_id else item for item in items]


def optimistic_remove(items: Sequence[Item], item_id: str) -> list[Item]:
    return [item for item in items if item["id"] != item_id]


def optimistic_play(items: Sequence[Item], item_id: str) -> list[Item]:
    return [{**item, "is_playing": item["id"] == item_id} for item in items]


def optimistic_move(items: Sequence[Item], item_id: str, index: int) -> tuple[list[Item], float | None]:
    """Drop ``item_id`` at display ``index`` (manual order).

    The new key is computed from the neighbours the item lands between, as
    the server expects for ``PATCH position``.

    Returns:
        The patched items and the new position, or the items unchanged and
        None when the item is unknown
    """
    if not any(item["id"] == item_id for item in items):
        return list(items), None
    others = [item["position"] for item in canonical_order(items) if item["id"] != item_id]
    position = allocate_at(others, index)
    return _patch(items, item_id, position=position), position


def pending_item(items: Sequence[Item], track: dict[str, Any], added_by: str, added_at: str) -> Item:
    """Placeholder for a track added locally but not yet confirmed.

    Replaced by the server's item when ``track.added`` or the following
    snapshot arrives.
    """
    positions = [item["position"] for item in items]
    return {
        "id": f"{PENDING_PREFIX}{track['id']}",
        "track_id": track["id"],
        "track": {
            "title": track.get("title", ""),
            "artist": track.get("artist", ""),
            "duration_seconds": track.get("duration_seconds", 0),
        },
        "position": allocate(max(positions) if positions else None, None),
        "votes": 0,
        "added_by": added_by,
        "is_playing": False,
        "added_at": added_at,
        "played_at": None,
    }


def optimistic_add(items: Sequence[Item], track: dict[str, Any], added_by: str, added_at: str) -> list[Item]:
    return [*items, pending_item(items, track, added_by, added_at)]


def next_in_order(items: Sequence[Item]) -> Item | None:
    """The item after the playing one in canonical order, wrapping to the start."""
    ordered = canonical_order(items)
    if not ordered:
        return None
    current = next((i for i, item in enumerate(ordered) if item.get("is_playing")), -1)
    return ordered[(current + 1) % len(ordered)]
