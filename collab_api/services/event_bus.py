"""Server-push event bus for the playlist stream.

Each connected client owns a ``Subscriber`` with its own bounded queue of
encoded frames. ``broadcast`` stamps the next sequence number and enqueues the
frame on every subscriber without awaiting, so a slow or dead client never
holds up the mutation that produced the event.

``broadcast``, ``subscribe`` and ``unsubscribe`` are meant to be called from
the event loop thread; the lock only guards the counter and the registry.
"""

import asyncio
import itertools
import json
import threading
from collab_api.models.events import PingFrame, PlaylistEvent
from collections.abc import AsyncIterator, Iterable
from datetime import UTC, datetime
from eliot import log_message
from typing import Any

DEFAULT_QUEUE_SIZE = 256

_CLOSED = object()


def encode_frame(payload: dict[str, Any]) -> str:
    """Encode a payload as one ``text/event-stream`` frame."""
    return f"data: {json.dumps(payload, separators=(',', ':'))}\n\n"


def ping_frame() -> dict[str, Any]:
    """Heartbeat payload. Carries no eventId."""
    return PingFrame(ts=datetime.now(UTC).isoformat().replace("+00:00", "Z")).model_dump()


class Subscriber:
    """Handle for one connected stream client."""

    def __init__(self, subscriber_id: int, queue_size: int = DEFAULT_QUEUE_SIZE):
        self.id = subscriber_id
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self.closed = False

    def deliver(self, frame: str) -> bool:
        """Enqueue a frame. Returns False when the subscriber has fallen too far behind."""
        if self.closed:
            return False
        try:
            self.queue.put_nowait(frame)
        except asyncio.QueueFull:
            return False
        return True

    def close(self) -> None:
        """Discard pending frames and wake the stream so it ends."""
        if self.closed:
            return
        self.closed = True
        while not self.queue.empty():
            self.queue.get_nowait()
        self.queue.put_nowait(_CLOSED)

    def __repr__(self) -> str:
        return f"Subscriber(id={self.id}, pending={self.queue.qsize()}, closed={self.closed})"


class EventBus:
    """Fan-out of playlist events to every connected subscriber.

    Sequence numbers start at 1 and only ever increase for the lifetime of
    the instance; a fresh instance is a fresh process as far as clients are
    concerned.
    """

    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE):
        self.queue_size = queue_size
        self._lock = threading.Lock()
        self._subscribers: dict[int, Subscriber] = {}
        self._subscriber_ids = itertools.count(1)
        self._last_event_id = 0

    @property
    def last_event_id(self) -> int:
        return self._last_event_id

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> Subscriber:
        """Register a new subscriber."""
        with self._lock:
            subscriber = Subscriber(next(self._subscriber_ids), self.queue_size)
            self._subscribers[subscriber.id] = subscriber
        log_message(message_type="stream_subscribed", subscriber_id=subscriber.id, subscribers=self.subscriber_count)
        return subscriber

    def unsubscribe(self, subscriber: Subscriber) -> None:
        """Remove a subscriber. Unknown or already removed handles are ignored."""
        with self._lock:
            removed = self._subscribers.pop(subscriber.id, None)
        subscriber.close()
        if removed is not None:
            log_message(
                message_type="stream_unsubscribed", subscriber_id=subscriber.id, subscribers=self.subscriber_count
            )

    def broadcast(self, event: PlaylistEvent) -> dict[str, Any]:
        """Stamp ``event`` with the next sequence number and push it to every subscriber.

        Stamping and enqueueing happen under one lock so every subscriber
        sees frames in increasing eventId order.

        Returns:
            The stamped envelope
        """
        lagging: list[Subscriber] = []
        with self._lock:
            self._last_event_id += 1
            envelope = event.envelope(self._last_event_id)
            frame = encode_frame(envelope)
            # Iterate a snapshot; unsubscribe mutates the registry
            for subscriber in list(self._subscribers.values()):
                if not subscriber.deliver(frame):
                    lagging.append(subscriber)

        for subscriber in lagging:
            log_message(message_type="stream_subscriber_dropped", subscriber_id=subscriber.id)
            self.unsubscribe(subscriber)
        return envelope

    def publish(self, events: Iterable[PlaylistEvent]) -> list[dict[str, Any]]:
        """Broadcast events in order."""
        return [self.broadcast(event) for event in events]

    async def stream(self, subscriber: Subscriber, heartbeat_seconds: float = 15.0) -> AsyncIterator[str]:
        """Yield encoded frames for ``subscriber`` until it is closed.

        A ping goes out immediately so the client knows it is connected, then
        every ``heartbeat_seconds`` whether or not events are flowing. The
        subscriber is released when the generator finishes or is closed.
        """
        loop = asyncio.get_running_loop()
        try:
            yield encode_frame(ping_frame())
            next_ping = loop.time() + heartbeat_seconds
            while True:
                frame = None
                remaining = next_ping - loop.time()
                if remaining > 0:
                    try:
                        frame = await asyncio.wait_for(subscriber.queue.get(), timeout=remaining)
                    except TimeoutError:
                        pass
                if frame is None:
                    frame = encode_frame(ping_frame())
                    next_ping = loop.time() + heartbeat_seconds
                if frame is _CLOSED:
                    return
                yield frame
        finally:
            self.unsubscribe(subscriber)

    def close(self) -> None:
        """Close every subscriber (process shutdown)."""
        with self._lock:
            subscribers = list(self._subscribers.values())
            self._subscribers.clear()
        for subscriber in subscribers:
            subscriber.close()
