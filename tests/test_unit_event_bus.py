"""Unit tests for the playlist event bus and its stream generator."""

import asyncio
import json
import pytest
from collab_api.models.events import PlaylistEvent
from collab_api.services.event_bus import EventBus, encode_frame, ping_frame


def decode(frame: str) -> dict:
    assert frame.startswith("data: ") and frame.endswith("\n\n")
    return json.loads(frame[len("data: ") : -2])


@pytest.fixture
def bus():
    return EventBus(queue_size=8)


class TestFrames:
    """Test wire encoding of frames."""

    def test_encode_frame(self):
        assert encode_frame({"type": "ping"}) == 'data: {"type":"ping"}\n\n'

    def test_ping_has_no_event_id(self):
        ping = ping_frame()
        assert ping["type"] == "ping"
        assert "eventId" not in ping
        assert ping["ts"].endswith("Z")

    def test_envelope_merges_payload(self):
        event = PlaylistEvent.voted("item-1", 3)
        assert event.envelope(7) == {"eventId": 7, "type": "track.voted", "item": {"id": "item-1", "votes": 3}}

    def test_removed_and_playing_carry_bare_id(self):
        assert PlaylistEvent.removed("a").envelope(1)["id"] == "a"
        assert PlaylistEvent.playing("b").envelope(2)["id"] == "b"


class TestSequencing:
    """Test eventId stamping."""

    def test_ids_start_at_one_and_increase(self, bus):
        first = bus.broadcast(PlaylistEvent.removed("a"))
        second = bus.broadcast(PlaylistEvent.removed("b"))
        assert first["eventId"] == 1
        assert second["eventId"] == 2
        assert bus.last_event_id == 2

    def test_broadcast_without_subscribers_still_consumes_id(self, bus):
        bus.broadcast(PlaylistEvent.removed("a"))
        assert bus.subscriber_count == 0
        assert bus.last_event_id == 1

    def test_publish_preserves_order(self, bus):
        envelopes = bus.publish([PlaylistEvent.voted("a", 1), PlaylistEvent.reordered([])])
        assert [e["eventId"] for e in envelopes] == [1, 2]
        assert [e["type"] for e in envelopes] == ["track.voted", "playlist.reordered"]

    def test_fresh_bus_restarts_sequence(self, bus):
        bus.broadcast(PlaylistEvent.removed("a"))
        assert EventBus().broadcast(PlaylistEvent.removed("a"))["eventId"] == 1


class TestSubscribers:
    """Test fan-out, lagging subscribers and unsubscribe."""

    def test_every_subscriber_gets_the_same_frames(self, bus):
        a, b = bus.subscribe(), bus.subscribe()
        bus.publish([PlaylistEvent.removed("x"), PlaylistEvent.playing("y")])
        for sub in (a, b):
            frames = [decode(sub.queue.get_nowait()) for _ in range(2)]
            assert [f["eventId"] for f in frames] == [1, 2]

    def test_subscriber_ids_are_unique(self, bus):
        assert bus.subscribe().id != bus.subscribe().id

    def test_lagging_subscriber_is_dropped(self):
        bus = EventBus(queue_size=2)
        slow, fast = bus.subscribe(), bus.subscribe()
        for n in range(2):
            bus.broadcast(PlaylistEvent.removed(str(n)))
            fast.queue.get_nowait()
        bus.broadcast(PlaylistEvent.removed("overflow"))

        assert slow.closed
        assert not fast.closed
        assert bus.subscriber_count == 1
        assert decode(fast.queue.get_nowait())["eventId"] == 3

    def test_unsubscribe_is_idempotent(self, bus):
        sub = bus.subscribe()
        bus.unsubscribe(sub)
        bus.unsubscribe(sub)
        assert bus.subscriber_count == 0

    def test_unsubscribed_gets_nothing(self, bus):
        sub = bus.subscribe()
        bus.unsubscribe(sub)
        bus.broadcast(PlaylistEvent.removed("a"))
        assert not sub.deliver("data: {}\n\n")

    def test_close_disconnects_everyone(self, bus):
        subs = [bus.subscribe() for _ in range(3)]
        bus.close()
        assert bus.subscriber_count == 0
        assert all(sub.closed for sub in subs)


class TestStream:
    """Test the async frame generator behind GET /api/stream."""

    def test_stream_pings_then_delivers_events(self, bus):
        async def scenario():
            sub = bus.subscribe()
            stream = bus.stream(sub, heartbeat_seconds=5)
            first = decode(await stream.__anext__())
            bus.broadcast(PlaylistEvent.removed("a"))
            second = decode(await stream.__anext__())
            await stream.aclose()
            return first, second

        first, second = asyncio.run(scenario())
        assert first["type"] == "ping"
        assert second == {"eventId": 1, "type": "track.removed", "id": "a"}
        assert bus.subscriber_count == 0

    def test_idle_stream_sends_heartbeat(self, bus):
        async def scenario():
            stream = bus.stream(bus.subscribe(), heartbeat_seconds=0.01)
            frames = [decode(await stream.__anext__()) for _ in range(3)]
            await stream.aclose()
            return frames

        frames = asyncio.run(scenario())
        assert [f["type"] for f in frames] == ["ping", "ping", "ping"]

    def test_busy_stream_still_sends_heartbeat(self, bus):
        async def scenario():
            sub = bus.subscribe()
            stream = bus.stream(sub, heartbeat_seconds=0.05)
            frames = [decode(await stream.__anext__())]
            bus.publish(PlaylistEvent.removed(f"item-{n}") for n in range(6))
            for _ in range(7):
                await asyncio.sleep(0.03)
                frames.append(decode(await stream.__anext__()))
            await stream.aclose()
            return frames

        frames = asyncio.run(scenario())
        assert "ping" in [f["type"] for f in frames[1:]]
        event_ids = [f["eventId"] for f in frames if f["type"] != "ping"]
        assert event_ids == sorted(event_ids)
        assert event_ids[0] == 1

    def test_stream_ends_when_subscriber_closed(self, bus):
        async def scenario():
            sub = bus.subscribe()
            frames = []
            stream = bus.stream(sub, heartbeat_seconds=5)
            frames.append(await stream.__anext__())
            bus.close()
            async for frame in stream:
                frames.append(frame)
            return frames

        frames = asyncio.run(scenario())
        assert len(frames) == 1
