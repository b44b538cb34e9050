"""Unit tests for the durable offline queue and its replay."""

import asyncio
import json
import pytest
from collab_client.offline_queue import STORAGE_KEY, OfflineAction, OfflineQueue, replay
from collab_client.storage import LocalStore
from core.errors import DuplicateTrack, InvalidRequest, NotFound, ServerError, TransportFailure
from tests.helpers.fakes import FakeAPI, make_item


@pytest.fixture
def store_path(tmp_path):
    return tmp_path / "client.json"


@pytest.fixture
def queue(store_path):
    clock = iter(range(1_000, 100_000))
    return OfflineQueue(LocalStore(store_path), now_ms=lambda: next(clock))


@pytest.fixture
def api():
    return FakeAPI(items=[make_item("a", 1.0), make_item("b", 2.0), make_item("c", 3.0)])


class TestLocalStore:
    """Test the JSON key/value file."""

    def test_missing_file_reads_empty(self, store_path):
        assert LocalStore(store_path).get("anything", "default") == "default"

    def test_corrupt_file_reads_empty(self, store_path):
        store_path.write_text("{not json")
        store = LocalStore(store_path)
        assert store.get(STORAGE_KEY, []) == []
        store.set("k", 1)
        assert json.loads(store_path.read_text()) == {"k": 1}

    def test_update_returns_previous_and_new(self, store_path):
        store = LocalStore(store_path)
        store.set("n", 1)
        assert store.update("n", lambda v: v + 1, 0) == (1, 2)
        assert store.get("n") == 2

    def test_no_temp_file_left_behind(self, store_path):
        LocalStore(store_path).set("k", "v")
        assert not store_path.with_name(store_path.name + ".tmp").exists()


class TestQueuePersistence:
    """Test enqueue, ordering and the on-disk record."""

    def test_enqueue_preserves_order_and_stamps(self, queue):
        queue.enqueue(OfflineAction.vote("a", "up"))
        queue.enqueue(OfflineAction.remove("b"))
        actions = queue.load()
        assert [a.type for a in actions] == ["vote", "remove"]
        assert actions[0].queued_at < actions[1].queued_at
        assert len(queue) == 2

    def test_record_uses_camel_case_keys(self, queue, store_path):
        queue.enqueue(OfflineAction.add("track-1", "Ana"))
        record = json.loads(store_path.read_text())[STORAGE_KEY][0]
        assert record == {"type": "add", "trackId": "track-1", "addedBy": "Ana", "queuedAt": 1000}

    def test_survives_restart(self, queue, store_path):
        queue.enqueue(OfflineAction.move("a", 0.5))
        reopened = OfflineQueue(LocalStore(store_path))
        assert reopened.load() == queue.load()

    def test_unknown_keys_are_kept(self, store_path):
        store = LocalStore(store_path)
        store.set(STORAGE_KEY, [{"type": "vote", "id": "a", "direction": "up", "queuedAt": 1, "client": "web"}])
        action = OfflineQueue(store).load()[0]
        assert action.to_record()["client"] == "web"

    def test_malformed_records_skipped(self, store_path):
        store = LocalStore(store_path)
        store.set(STORAGE_KEY, [{"type": "explode"}, "junk", {"type": "remove", "id": "a"}])
        assert [a.type for a in OfflineQueue(store).load()] == ["remove"]

    def test_non_list_value_treated_as_empty(self, store_path):
        store = LocalStore(store_path)
        store.set(STORAGE_KEY, {"oops": True})
        queue = OfflineQueue(store)
        assert queue.load() == []
        queue.enqueue(OfflineAction.play("a"))
        assert len(queue) == 1

    def test_dequeue_all_empties(self, queue):
        queue.enqueue(OfflineAction.play("a"))
        assert [a.type for a in queue.dequeue_all()] == ["play"]
        assert len(queue) == 0

    def test_requeue_front_goes_before_newer(self, queue):
        queue.enqueue(OfflineAction.remove("new"))
        queue.requeue_front([OfflineAction.remove("old1"), OfflineAction.remove("old2")])
        assert [a.id for a in queue.load()] == ["old1", "old2", "new"]


class TestReplay:
    """Test in-order replay and failure handling."""

    def test_replays_in_capture_order(self, queue, api):
        queue.enqueue(OfflineAction.vote("a", "up"))
        queue.enqueue(OfflineAction.move("c", 0.5))
        queue.enqueue(OfflineAction.play("b"))
        queue.enqueue(OfflineAction.remove("a"))
        queue.enqueue(OfflineAction.add("track-9", "Ana"))

        report = asyncio.run(replay(queue, api))

        assert [c[0] for c in api.calls] == ["vote", "update", "update", "remove", "add"]
        assert api.calls[1] == ("update", "c", 0.5, None)
        assert api.calls[2] == ("update", "b", None, True)
        assert len(report.sent) == 5
        assert not report.stopped
        assert len(queue) == 0

    def test_transport_failure_requeues_rest(self, queue, api):
        """A, B, C with B unreachable: A is sent once, B and C stay queued in order."""
        queue.enqueue(OfflineAction.vote("a", "up"))
        queue.enqueue(OfflineAction.remove("b"))
        queue.enqueue(OfflineAction.vote("c", "down"))
        api.failures["remove"] = [TransportFailure("down")]

        report = asyncio.run(replay(queue, api))

        assert report.stopped
        assert isinstance(report.error, TransportFailure)
        assert [(a.type, a.id) for a in queue.load()] == [("remove", "b"), ("vote", "c")]

        # Next replay sends B and C; A is not sent again
        api.calls.clear()
        report = asyncio.run(replay(queue, api))
        assert [c[:2] for c in api.calls] == [("remove", "b"), ("vote", "c")]
        assert len(queue) == 0
        assert next(i for i in api.items if i["id"] == "a")["votes"] == 1

    def test_server_error_is_retryable(self, queue, api):
        queue.enqueue(OfflineAction.vote("a", "up"))
        api.failures["vote"] = [ServerError("boom")]
        report = asyncio.run(replay(queue, api))
        assert report.stopped
        assert len(queue) == 1

    @pytest.mark.parametrize("error", [NotFound(), InvalidRequest("nope")])
    def test_rejection_stops_and_keeps_failed_action(self, queue, api, error):
        """A, B, C with B rejected: A is sent, B and C stay queued and C is never sent."""
        queue.enqueue(OfflineAction.vote("a", "up"))
        queue.enqueue(OfflineAction.vote("b", "up"))
        queue.enqueue(OfflineAction.vote("c", "up"))
        original_vote = api.vote

        async def vote(item_id, direction):
            if item_id == "b":
                api.calls.append(("vote", item_id, direction))
                raise error
            return await original_vote(item_id, direction)

        api.vote = vote
        report = asyncio.run(replay(queue, api))

        assert report.stopped
        assert report.error is error
        assert [a.id for a in report.sent] == ["a"]
        assert [(a.type, a.id) for a in queue.load()] == [("vote", "b"), ("vote", "c")]
        assert [c[1] for c in api.calls] == ["a", "b"]

    def test_duplicate_add_blocks_later_actions(self, queue, api):
        queue.enqueue(OfflineAction.add("track-x", "Ana"))
        queue.enqueue(OfflineAction.remove("a"))
        api.failures["add"] = [DuplicateTrack("track-x")]

        report = asyncio.run(replay(queue, api))

        assert isinstance(report.error, DuplicateTrack)
        assert [a.type for a in queue.load()] == ["add", "remove"]
        assert [c[0] for c in api.calls] == ["add"]

    def test_actions_queued_during_replay_stay_behind(self, queue, api):
        queue.enqueue(OfflineAction.vote("a", "up"))
        queue.enqueue(OfflineAction.vote("b", "up"))

        original_vote = api.vote

        async def vote_and_capture(item_id, direction):
            if item_id == "a":
                queue.enqueue(OfflineAction.remove("c"))
                raise TransportFailure("flaky")
            return await original_vote(item_id, direction)

        api.vote = vote_and_capture
        asyncio.run(replay(queue, api))
        assert [(a.type, a.id) for a in queue.load()] == [("vote", "a"), ("vote", "b"), ("remove", "c")]

    def test_empty_queue(self, queue, api):
        report = asyncio.run(replay(queue, api))
        assert report.sent == [] and not report.stopped
        assert api.calls == []
