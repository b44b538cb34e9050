"""Client sync engine.

Keeps the local playlist consistent with the server under flaky
connectivity:

* local mutations are applied optimistically, then sent to the server, or
  captured in the offline queue when there is no connection;
* server frames are merged by ``reconcile`` (sequence numbers drop
  duplicates and stale frames; snapshots replace everything);
* the push channel is reopened with exponential backoff, and every time it
  comes back the playlist is refetched and the offline queue replayed.

Everything runs on one asyncio event loop. Transport failures never escape
the engine; business errors are re-raised after local state has been rolled
back or refreshed, so the caller can show them.
"""

import asyncio
import config
from collab_client.api import PlaylistAPI
from collab_client.clock import Clock, SystemClock
from collab_client.offline_queue import OfflineAction, OfflineQueue, ReplayReport, replay
from collab_client.playback import PlaybackClock
from collab_client.reconcile import (
    PENDING_PREFIX,
    SORT_MANUAL,
    PlaylistSnapshot,
    apply_event,
    canonical_order,
    next_in_order,
    optimistic_add,
    optimistic_move,
    optimistic_play,
    optimistic_remove,
    optimistic_vote,
    reconcile,
    sort_for_display,
)
from collab_client.state import (
    ConnectionState,
    ConnectionStatus,
    begin_connect,
    connected,
    disconnected,
    initial_state,
    schedule_retry,
)
from collab_client.transport import EventSource
from collab_client.views import now_playing
from collections.abc import Awaitable, Callable
from core.errors import DuplicateTrack, InvalidDirection, NotFound, PlaylistError, TransportFailure
from core.logging import log_error, log_sync_event
from core.positions import has_room, neighbours
from datetime import UTC, datetime
from typing import Any

ROLLBACK = "rollback"
REFRESH = "refresh"

Listener = Callable[["SyncEngine"], None]


def _utc_now() -> str:
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class SyncEngine:
    """Local view of the shared playlist kept in sync with the server."""

    def __init__(
        self,
        api: PlaylistAPI,
        source: EventSource,
        queue: OfflineQueue,
        clock: Clock | None = None,
        added_by: str = config.DEFAULT_ADDED_BY,
        backoff_initial: float = config.BACKOFF_INITIAL,
        backoff_max: float = config.BACKOFF_MAX,
        tick_seconds: float | None = config.PLAYBACK_TICK_SECONDS,
    ):
        """Initialize the engine.

        Args:
            api: Server operations
            source: Push channel
            queue: Durable offline action queue
            clock: Time source (wall clock by default)
            added_by: Name recorded on tracks this client adds
            backoff_initial: First reconnect delay in seconds
            backoff_max: Reconnect delay cap in seconds
            tick_seconds: Playback tick interval; None disables auto-advance
        """
        self.api = api
        self.source = source
        self.queue = queue
        self.clock = clock or SystemClock()
        self.added_by = added_by
        self.tick_seconds = tick_seconds

        self.snapshot = PlaylistSnapshot()
        self.tracks: list[dict[str, Any]] = []
        self.connection: ConnectionState = initial_state(backoff_initial, backoff_max)
        self.playback = PlaybackClock(self.clock)

        self._listeners: list[Listener] = []
        self._run_task: asyncio.Task | None = None
        self._tick_task: asyncio.Task | None = None
        self._background: set[asyncio.Task] = set()
        self._closing = False
        # Bumped for every full snapshot taken from the stream
        self._stream_snapshots = 0

    # ==================== Observation ====================

    @property
    def items(self) -> tuple[dict[str, Any], ...]:
        return self.snapshot.items

    @property
    def status(self) -> ConnectionStatus:
        return self.connection.status

    @property
    def is_online(self) -> bool:
        return self.connection.is_online

    @property
    def queued(self) -> int:
        """Number of actions waiting in the offline queue."""
        return len(self.queue)

    def display(self, mode: str = SORT_MANUAL) -> list[dict[str, Any]]:
        return sort_for_display(self.items, mode)

    def add_listener(self, listener: Listener) -> None:
        """Call ``listener(engine)`` after every change to items or status."""
        self._listeners.append(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    # ==================== Local state ====================

    def _set_items(self, items) -> None:
        self.snapshot = self.snapshot.with_items(items)
        self._sync_playback()
        self._notify()

    def _set_connection(self, state: ConnectionState) -> None:
        if state.status is not self.connection.status:
            log_sync_event("status", description=state.status.value, retry_delay=state.retry_delay)
        self.connection = state
        self._notify()

    def handle_frame(self, frame: dict[str, Any]) -> bool:
        """Merge one pushed frame. Returns True if it changed local state."""
        snapshot, applied = reconcile(self.snapshot, frame)
        if not applied:
            return False
        self.snapshot = snapshot
        if frame.get("type") == "playlist.reordered":
            self._stream_snapshots += 1
        self._sync_playback(restart=frame.get("type") == "track.playing")
        self._notify()
        return True

    async def load(self) -> None:
        """Initial fetch of the catalog and the playlist."""
        try:
            tracks, playlist = await asyncio.gather(self.api.fetch_tracks(), self.api.fetch_playlist())
        except TransportFailure as e:
            log_sync_event("initial_load_failed", description=str(e))
            return
        self.tracks = tracks
        self._set_items(playlist)

    async def refresh(self) -> bool:
        """Replace local items with the server's full playlist.

        A full snapshot pushed while the request was in flight is newer than
        the response, so the response is discarded in that case.

        Returns:
            False when the server could not be reached
        """
        snapshots_before = self._stream_snapshots
        try:
            playlist = await self.api.fetch_playlist()
        except TransportFailure as e:
            self._lost_connection(e)
            return False
        if self._stream_snapshots != snapshots_before:
            log_sync_event("resync_skipped", description="stream snapshot arrived during fetch")
            return True
        self._set_items(playlist)
        log_sync_event("resync", items=len(playlist))
        return True

    # ==================== Connection ====================

    def _spawn(self, coro: Awaitable[Any]) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background_done)
        return task

    def _background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if not task.cancelled() and task.exception() is not None:
            log_error(task.exception(), task="sync_background")

    def _lost_connection(self, error: Exception) -> None:
        """A request could not reach the server: go offline and let ``run`` reconnect."""
        log_sync_event("transport_failure", description=str(error))
        self.source.close()
        if self.connection.status is not ConnectionStatus.OFFLINE:
            self._set_connection(disconnected(self.connection))

    async def _on_online(self) -> ReplayReport | None:
        """Resynchronize after (re)connecting, then replay offline actions."""
        if not await self.refresh():
            return None
        report = await replay(self.queue, self.api)
        if isinstance(report.error, TransportFailure):
            self._lost_connection(report.error)
        elif report.stopped:
            # The blocked action stays queued; show the server's state meanwhile
            await self.refresh()
        self._notify()
        return report

    async def connect_once(self) -> None:
        """Open the push channel and consume it until it fails or is closed."""
        self._set_connection(begin_connect(self.connection))
        try:
            frames = await self.source.connect()
            self.snapshot = self.snapshot.for_new_stream()
            self._set_connection(connected(self.connection))
            self._spawn(self._on_online())
            async for frame in frames:
                self.handle_frame(frame)
        except TransportFailure as e:
            log_sync_event("stream_lost", description=str(e))
        finally:
            self.source.close()
            self._set_connection(disconnected(self.connection))

    async def run(self) -> None:
        """Connect, listen, and reconnect with backoff until ``close``."""
        while not self._closing:
            await self.connect_once()
            if self._closing:
                break
            state, wait = schedule_retry(self.connection)
            self._set_connection(state)
            log_sync_event("reconnect_scheduled", delay=wait, attempt=state.failed_attempts)
            await self.clock.sleep(wait)

    def start(self) -> asyncio.Task:
        """Run the connection loop in the background."""
        if self._run_task is None or self._run_task.done():
            self._closing = False
            self._run_task = asyncio.ensure_future(self.run())
        return self._run_task

    def stop(self) -> None:
        """Ask ``run`` to exit after the current attempt."""
        self._closing = True
        self.source.close()

    async def close(self) -> None:
        """Disconnect and cancel every timer and background task."""
        self.stop()
        tasks = [t for t in (self._run_task, self._tick_task, *self._background) if t is not None and not t.done()]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._run_task = None
        self._tick_task = None
        if self.connection.status is not ConnectionStatus.OFFLINE:
            self._set_connection(disconnected(self.connection))

    # ==================== Mutations ====================

    async def _submit(
        self,
        action: OfflineAction,
        send: Callable[[], Awaitable[Any]],
        before: tuple[dict[str, Any], ...],
        recovery: str,
    ) -> Any:
        """Send a mutation whose optimistic effect is already applied.

        Offline, or if the server turns out to be unreachable, the action is
        queued and None returned. On a server error local state is rolled
        back to ``before`` or refetched, then the error is re-raised.
        """
        if not self.is_online:
            self.queue.enqueue(action)
            self._notify()
            return None
        try:
            return await send()
        except TransportFailure as e:
            self.queue.enqueue(action)
            self._lost_connection(e)
            self._notify()
            return None
        except NotFound:
            await self.refresh()
            raise
        except PlaylistError:
            if recovery == ROLLBACK:
                self._set_items(before)
            else:
                await self.refresh()
            raise

    async def add(self, track_id: str, added_by: str | None = None) -> dict[str, Any] | None:
        """Add a track to the end of the playlist.

        Returns:
            The server's item, or None if the action was queued
        """
        added_by = added_by or self.added_by
        if self.snapshot.has_track(track_id):
            raise DuplicateTrack(track_id)
        track = next((t for t in self.tracks if t["id"] == track_id), {"id": track_id})

        before = self.snapshot.items
        self._set_items(optimistic_add(before, track, added_by, _utc_now()))
        item = await self._submit(
            OfflineAction.add(track_id, added_by), lambda: self.api.add(track_id, added_by), before, ROLLBACK
        )
        pending_id = f"{PENDING_PREFIX}{track_id}"
        if item is not None and self.snapshot.find(pending_id) is not None:
            self._set_items(apply_event(self.items, {"type": "track.added", "item": item}))
        return item

    async def remove(self, item_id: str) -> None:
        before = self.snapshot.items
        self._set_items(optimistic_remove(before, item_id))
        await self._submit(OfflineAction.remove(item_id), lambda: self.api.remove(item_id), before, ROLLBACK)

    async def vote(self, item_id: str, direction: str) -> None:
        if direction not in ("up", "down"):
            raise InvalidDirection(direction)
        before = self.snapshot.items
        self._set_items(optimistic_vote(before, item_id, direction))
        await self._submit(
            OfflineAction.vote(item_id, direction), lambda: self.api.vote(item_id, direction), before, ROLLBACK
        )

    async def move(self, item_id: str, index: int) -> float:
        """Drag ``item_id`` to display ``index`` in manual order.

        Returns:
            The position key sent to the server
        """
        before = self.snapshot.items
        items, position = optimistic_move(before, item_id, index)
        if position is None:
            raise NotFound(details={"id": item_id})
        others = [item["position"] for item in canonical_order(before) if item["id"] != item_id]
        if not has_room(*neighbours(others, index)):
            # The key collides with a neighbour; order falls back to item id until positions are renumbered
            log_sync_event("position_exhausted", description="no free position key between neighbours", item_id=item_id, index=index)
        self._set_items(items)
        await self._submit(
            OfflineAction.move(item_id, position),
            lambda: self.api.update(item_id, position=position),
            before,
            REFRESH,
        )
        return position

    async def play(self, item_id: str) -> None:
        """Make ``item_id`` the now-playing item and restart the playback clock."""
        before = self.snapshot.items
        self._set_items(optimistic_play(before, item_id))
        self._sync_playback(restart=True)
        await self._submit(
            OfflineAction.play(item_id), lambda: self.api.update(item_id, is_playing=True), before, REFRESH
        )

    async def play_next(self) -> None:
        """Skip to the next item in position order, wrapping around."""
        item = next_in_order(self.items)
        if item is not None:
            await self.play(item["id"])

    def toggle_pause(self) -> bool:
        paused = self.playback.toggle()
        self._notify()
        return paused

    # ==================== Playback ticks ====================

    def _sync_playback(self, restart: bool = False) -> None:
        """Follow the now-playing item; the tick task is recreated whenever it changes."""
        current = now_playing(self.items)
        if current is None:
            if self.playback.item_id is not None:
                self.playback.stop()
                self._cancel_tick()
            return
        if restart or current["id"] != self.playback.item_id:
            self.playback.start(current["id"], current["track"]["duration_seconds"])
            self._restart_tick()

    def _cancel_tick(self) -> None:
        if self._tick_task is not None and not self._tick_task.done():
            self._tick_task.cancel()
        self._tick_task = None

    def _restart_tick(self) -> None:
        self._cancel_tick()
        if self.tick_seconds is None:
            return
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return
        self._tick_task = asyncio.ensure_future(self._tick_loop(self.playback.item_id))

    async def _tick_loop(self, item_id: str) -> None:
        while self.playback.item_id == item_id:
            await self.clock.sleep(self.tick_seconds)
            if await self.on_tick():
                return

    async def on_tick(self) -> bool:
        """Advance to the next item once the current one has run out.

        Returns:
            True if playback moved on
        """
        if not self.playback.finished:
            return False
        # Detach first; play() recreates the tick task for the next item
        self._tick_task = None
        try:
            await self.play_next()
        except PlaylistError as e:
            log_error(e, task="playback_advance")
        return True
