"""Unit tests for event reconciliation and optimistic edits."""

import pytest
from collab_client.reconcile import (
    PENDING_PREFIX,
    SORT_VOTES,
    PlaylistSnapshot,
    next_in_order,
    optimistic_add,
    optimistic_move,
    optimistic_play,
    optimistic_remove,
    optimistic_vote,
    reconcile,
    sort_for_display,
)
from tests.helpers.fakes import make_item


@pytest.fixture
def snapshot():
    return PlaylistSnapshot(items=(make_item("a", 1.0), make_item("b", 2.0), make_item("c", 3.0)))


def voted(event_id, item_id="a", votes=1):
    return {"eventId": event_id, "type": "track.voted", "item": {"id": item_id, "votes": votes}}


class TestSequenceFiltering:
    """Test duplicate and stale frame handling."""

    def test_duplicates_and_stale_frames_dropped(self, snapshot):
        applied = []
        for event_id in [1, 2, 2, 1, 3]:
            snapshot, ok = reconcile(snapshot, voted(event_id, votes=event_id))
            applied.append(ok)
        assert applied == [True, True, False, False, True]
        assert snapshot.last_event_id == 3
        assert snapshot.find("a")["votes"] == 3

    def test_gaps_are_tolerated(self, snapshot):
        snapshot, ok = reconcile(snapshot, voted(5))
        assert ok and snapshot.last_event_id == 5

    def test_new_stream_accepts_restarted_numbering(self, snapshot):
        seen, _ = reconcile(snapshot, voted(40, votes=4))
        assert not reconcile(seen, voted(1, "b", votes=7))[1]

        fresh = seen.for_new_stream()
        assert fresh.items == seen.items
        new, ok = reconcile(fresh, voted(1, "b", votes=7))
        assert ok
        assert new.find("b")["votes"] == 7
        assert new.last_event_id == 1

    def test_pings_ignored(self, snapshot):
        new, ok = reconcile(snapshot, {"type": "ping", "ts": "2024-01-01T00:00:00Z"})
        assert not ok
        assert new is snapshot

    def test_frame_without_event_id_applies_without_advancing(self, snapshot):
        new, ok = reconcile(snapshot, {"type": "track.removed", "id": "a"})
        assert ok
        assert new.last_event_id == 0
        assert new.find("a") is None


class TestEventTypes:
    """Test each event type's effect."""

    def test_snapshot_replaces_items_verbatim(self, snapshot):
        items = [make_item("z", 9.0)]
        new, _ = reconcile(snapshot, {"eventId": 1, "type": "playlist.reordered", "items": items})
        assert list(new.items) == items

    def test_added_replaces_pending_placeholder(self, snapshot):
        track = {"id": "track-new", "title": "New", "artist": "X", "duration_seconds": 100}
        local = snapshot.with_items(optimistic_add(snapshot.items, track, "Ana", "now"))
        assert local.find(f"{PENDING_PREFIX}track-new") is not None

        server_item = make_item("srv", 4.0, track_id="track-new")
        new, _ = reconcile(local, {"eventId": 1, "type": "track.added", "item": server_item})
        assert new.find(f"{PENDING_PREFIX}track-new") is None
        assert new.find("srv") == server_item
        assert len(new.items) == 4

    def test_added_twice_does_not_duplicate(self, snapshot):
        item = make_item("d", 4.0)
        snapshot, _ = reconcile(snapshot, {"eventId": 1, "type": "track.added", "item": item})
        snapshot, _ = reconcile(snapshot, {"type": "track.added", "item": item})
        assert [i["id"] for i in snapshot.items].count("d") == 1

    def test_moved(self, snapshot):
        new, _ = reconcile(snapshot, {"eventId": 1, "type": "track.moved", "item": {"id": "c", "position": 0.5}})
        assert new.find("c")["position"] == 0.5

    def test_playing_is_exclusive(self, snapshot):
        snapshot = snapshot.with_items(optimistic_play(snapshot.items, "a"))
        new, _ = reconcile(snapshot, {"eventId": 1, "type": "track.playing", "id": "b"})
        assert [i["id"] for i in new.items if i["is_playing"]] == ["b"]

    def test_unknown_type_still_advances_sequence(self, snapshot):
        new, ok = reconcile(snapshot, {"eventId": 4, "type": "something.new"})
        assert ok
        assert new.items == snapshot.items
        assert new.last_event_id == 4


class TestOptimistic:
    """Test local edits applied before the server confirms them."""

    def test_vote(self, snapshot):
        items = optimistic_vote(snapshot.items, "b", "down")
        assert next(i for i in items if i["id"] == "b")["votes"] == -1

    def test_remove(self, snapshot):
        assert [i["id"] for i in optimistic_remove(snapshot.items, "b")] == ["a", "c"]

    def test_move_to_front(self, snapshot):
        items, position = optimistic_move(snapshot.items, "c", 0)
        assert position == 0.0
        assert [i["id"] for i in sort_for_display(items)] == ["c", "a", "b"]

    def test_move_between(self, snapshot):
        _, position = optimistic_move(snapshot.items, "a", 1)
        assert position == 2.5

    def test_move_unknown(self, snapshot):
        items, position = optimistic_move(snapshot.items, "zzz", 0)
        assert position is None
        assert items == list(snapshot.items)

    def test_pending_item_goes_last(self, snapshot):
        track = {"id": "t9", "title": "T", "artist": "A", "duration_seconds": 60}
        items = optimistic_add(snapshot.items, track, "Ana", "now")
        assert items[-1]["position"] == 4.0
        assert items[-1]["added_by"] == "Ana"


class TestOrdering:
    """Test display sorts and next-track selection."""

    def test_votes_mode_uses_position_tiebreak(self):
        items = [make_item("a", 1.0, votes=1), make_item("b", 2.0, votes=5), make_item("c", 3.0, votes=1)]
        assert [i["id"] for i in sort_for_display(items, SORT_VOTES)] == ["b", "a", "c"]

    def test_manual_mode_ties_broken_by_id(self):
        items = [make_item("b", 1.0), make_item("a", 1.0)]
        assert [i["id"] for i in sort_for_display(items)] == ["a", "b"]

    def test_next_in_order_wraps(self, snapshot):
        items = optimistic_play(snapshot.items, "c")
        assert next_in_order(items)["id"] == "a"

    def test_next_with_nothing_playing_is_first(self, snapshot):
        assert next_in_order(snapshot.items)["id"] == "a"

    def test_next_of_empty(self):
        assert next_in_order([]) is None
