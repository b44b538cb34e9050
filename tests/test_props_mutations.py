"""Property-based tests for playlist consistency under arbitrary mutation sequences."""

import pytest
from core.errors import PlaylistError
from hypothesis import HealthCheck, given, settings, strategies as st

TRACK_IDS = ["track-1", "track-2", "track-3", "track-4"]

operations = st.lists(
    st.one_of(
        st.tuples(st.just("add"), st.sampled_from(TRACK_IDS)),
        st.tuples(st.just("remove"), st.integers(min_value=0, max_value=5)),
        st.tuples(st.just("vote"), st.integers(min_value=0, max_value=5), st.sampled_from(["up", "down"])),
        st.tuples(st.just("move"), st.integers(min_value=0, max_value=5), st.floats(-10, 10, allow_nan=False)),
        st.tuples(st.just("play"), st.integers(min_value=0, max_value=5)),
    ),
    max_size=25,
)


def apply(service, op):
    """Run one generated operation; indexes pick an existing item."""
    playlist = service.list_playlist()
    kind = op[0]
    if kind == "add":
        return service.add(op[1])
    if not playlist:
        return None
    item_id = playlist[op[1] % len(playlist)]["id"]
    if kind == "remove":
        return service.remove(item_id)
    if kind == "vote":
        return service.vote(item_id, op[2])
    if kind == "move":
        return service.move(item_id, op[2])
    return service.set_playing(item_id)


class TestPlaylistConsistency:
    """Ordering and playing rules hold after every operation, whether it succeeds or fails."""

    @settings(suppress_health_check=[HealthCheck.function_scoped_fixture])
    @given(ops=operations)
    def test_state_stays_consistent(self, db, ops):
        from collab_api.services.mutations import PlaylistService

        db.clear_playlist()
        service = PlaylistService(db)
        for op in ops:
            try:
                apply(service, op)
            except PlaylistError:
                pass

            playlist = service.list_playlist()
            track_ids = [i["track_id"] for i in playlist]
            assert len(track_ids) == len(set(track_ids))
            assert sum(1 for i in playlist if i["is_playing"]) <= 1
            assert [i["position"] for i in playlist] == sorted(i["position"] for i in playlist)

    @settings(suppress_health_check=[HealthCheck.function_scoped_fixture])
    @given(directions=st.lists(st.sampled_from(["up", "down"]), max_size=30))
    def test_votes_equal_net_direction(self, db, directions):
        from collab_api.services.mutations import PlaylistService

        db.clear_playlist()
        service = PlaylistService(db)
        item_id = service.add("track-1").item["id"]
        for direction in directions:
            service.vote(item_id, direction)
        expected = directions.count("up") - directions.count("down")
        assert service.get_item(item_id)["votes"] == expected

    @settings(suppress_health_check=[HealthCheck.function_scoped_fixture])
    @given(ops=operations)
    def test_snapshot_event_matches_storage(self, db, ops):
        """The playlist.reordered payload is the committed playlist."""
        from collab_api.services.mutations import PlaylistService

        db.clear_playlist()
        service = PlaylistService(db)
        for op in ops:
            try:
                result = apply(service, op)
            except PlaylistError:
                continue
            if result is None:
                continue
            snapshots = [e.payload["items"] for e in result.events if e.type == "playlist.reordered"]
            if snapshots:
                assert snapshots[-1] == service.list_playlist()


@pytest.mark.parametrize("count", [2, 8])
def test_concurrent_adds_of_same_track(service, count):
    """Only one of several racing adds of one track wins."""
    import threading

    results, errors = [], []

    def worker():
        try:
            results.append(service.add("track-3"))
        except PlaylistError as e:
            errors.append(e)

    threads = [threading.Thread(target=worker) for _ in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(results) == 1
    assert len(errors) == count - 1
    assert all(e.code == "DUPLICATE_TRACK" for e in errors)
