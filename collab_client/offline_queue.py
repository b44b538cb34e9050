"""Durable queue of playlist mutations captured while offline.

Actions are stored, in the order they were attempted, under the
``collab_playlist_offline_queue_v1`` key of a ``LocalStore``. The record is a
plain JSON list of action objects using the original camelCase keys; keys
this version does not know about are kept so a newer client's entries
survive a round trip through an older one.
"""

import time
from collab_client.storage import LocalStore
from core.errors import PlaylistError
from core.logging import log_sync_event
from dataclasses import dataclass, field
from eliot import log_message, start_action
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from typing import TYPE_CHECKING, Any, Literal

if TYPE_CHECKING:
    from collab_client.api import PlaylistAPI

STORAGE_KEY = "collab_playlist_offline_queue_v1"

ActionType = Literal["add", "remove", "vote", "move", "play"]


class OfflineAction(BaseModel):
    """A queued mutation intent with everything needed to retry it."""

    model_config = ConfigDict(populate_by_name=True, extra="allow", frozen=True)

    type: ActionType
    id: str | None = None
    track_id: str | None = Field(None, alias="trackId")
    added_by: str | None = Field(None, alias="addedBy")
    direction: Literal["up", "down"] | None = None
    position: float | None = None
    queued_at: int | None = Field(None, alias="queuedAt")

    @classmethod
    def add(cls, track_id: str, added_by: str) -> "OfflineAction":
        return cls(type="add", track_id=track_id, added_by=added_by)

    @classmethod
    def remove(cls, item_id: str) -> "OfflineAction":
        return cls(type="remove", id=item_id)

    @classmethod
    def vote(cls, item_id: str, direction: str) -> "OfflineAction":
        return cls(type="vote", id=item_id, direction=direction)

    @classmethod
    def move(cls, item_id: str, position: float) -> "OfflineAction":
        return cls(type="move", id=item_id, position=position)

    @classmethod
    def play(cls, item_id: str) -> "OfflineAction":
        return cls(type="play", id=item_id)

    def to_record(self) -> dict[str, Any]:
        """Serialize for storage."""
        return self.model_dump(by_alias=True, exclude_none=True)


class OfflineQueue:
    """FIFO of ``OfflineAction`` persisted in a ``LocalStore``."""

    def __init__(self, store: LocalStore, now_ms=None):
        self.store = store
        self._now_ms = now_ms or (lambda: int(time.time() * 1000))

    @staticmethod
    def _records(value: Any) -> list[dict[str, Any]]:
        return [record for record in value if isinstance(record, dict)] if isinstance(value, list) else []

    @staticmethod
    def _parse(records: list[dict[str, Any]]) -> list[OfflineAction]:
        actions = []
        for record in records:
            try:
                actions.append(OfflineAction.model_validate(record))
            except ValidationError as e:
                log_message(message_type="offline_action_invalid", record=record, error=str(e))
        return actions

    def load(self) -> list[OfflineAction]:
        """Queued actions, oldest first. Unreadable records are skipped."""
        return self._parse(self._records(self.store.get(STORAGE_KEY, [])))

    def __len__(self) -> int:
        return len(self._records(self.store.get(STORAGE_KEY, [])))

    def enqueue(self, action: OfflineAction) -> OfflineAction:
        """Append an action stamped with its capture time."""
        stamped = action.model_copy(update={"queued_at": self._now_ms()})
        self.store.update(STORAGE_KEY, lambda value: [*self._records(value), stamped.to_record()], [])
        log_sync_event("offline_enqueue", description=stamped.type, action=stamped.to_record())
        return stamped

    def dequeue_all(self) -> list[OfflineAction]:
        """Atomically return every queued action and leave the queue empty."""
        previous, _ = self.store.update(STORAGE_KEY, lambda value: [], [])
        return self._parse(self._records(previous))

    def requeue_front(self, actions: list[OfflineAction]) -> None:
        """Put actions back ahead of anything queued since they were taken."""
        if not actions:
            return
        head = [action.to_record() for action in actions]
        self.store.update(STORAGE_KEY, lambda value: [*head, *self._records(value)], [])

    def clear(self) -> None:
        self.store.set(STORAGE_KEY, [])


async def dispatch(api: "PlaylistAPI", action: OfflineAction) -> Any:
    """Issue the API call an action stands for."""
    if action.type == "add":
        return await api.add(action.track_id, action.added_by)
    if action.type == "remove":
        return await api.remove(action.id)
    if action.type == "vote":
        return await api.vote(action.id, action.direction)
    if action.type == "move":
        return await api.update(action.id, position=action.position)
    if action.type == "play":
        return await api.update(action.id, is_playing=True)
    raise ValueError(f"Unknown offline action: {action.type}")


@dataclass
class ReplayReport:
    """What happened during a replay."""

    sent: list[OfflineAction] = field(default_factory=list)
    requeued: list[OfflineAction] = field(default_factory=list)
    error: PlaylistError | None = None

    @property
    def stopped(self) -> bool:
        return bool(self.requeued)


async def replay(queue: OfflineQueue, api: "PlaylistAPI") -> ReplayReport:
    """Send queued actions strictly in capture order.

    Local state is not touched; the optimistic effect was applied when the
    action was captured and the server's events settle the final state.

    The first failure of any kind puts that action and every later one back
    at the front of the queue and stops. Later actions are never sent ahead
    of an earlier one.
    """
    actions = queue.dequeue_all()
    report = ReplayReport()
    if not actions:
        return report

    with start_action(action_type="offline_replay", queued=len(actions)):
        for index, action in enumerate(actions):
            try:
                await dispatch(api, action)
            except PlaylistError as e:
                report.requeued = actions[index:]
                report.error = e
                queue.requeue_front(report.requeued)
                log_sync_event(
                    "offline_replay_stopped", description=f"{e.code}: {e}", action=action.to_record(), requeued=len(report.requeued)
                )
                break
            except Exception:
                queue.requeue_front(actions[index:])
                raise
            report.sent.append(action)

    return report
