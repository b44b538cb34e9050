"""Connection state machine for the sync client.

``connecting -> online -> offline -> connecting -> ...``

States are immutable and every transition is a pure function, so the
reconnect policy can be tested without timers or sockets. The retry delay
starts at ``BACKOFF_INITIAL``, doubles after every failed attempt up to
``BACKOFF_MAX`` and snaps back to the initial value once a connection
succeeds.
"""

from dataclasses import dataclass, replace
from enum import Enum

BACKOFF_INITIAL = 1.0
BACKOFF_MAX = 30.0


class ConnectionStatus(str, Enum):
    """Connection status shown by the status indicator."""

    CONNECTING = "connecting"
    ONLINE = "online"
    OFFLINE = "offline"


@dataclass(frozen=True)
class ConnectionState:
    """Current status plus the delay to use before the next reconnect attempt."""

    status: ConnectionStatus = ConnectionStatus.CONNECTING
    retry_delay: float = BACKOFF_INITIAL
    failed_attempts: int = 0
    initial_delay: float = BACKOFF_INITIAL
    max_delay: float = BACKOFF_MAX

    @property
    def is_online(self) -> bool:
        return self.status is ConnectionStatus.ONLINE


def initial_state(initial_delay: float = BACKOFF_INITIAL, max_delay: float = BACKOFF_MAX) -> ConnectionState:
    return ConnectionState(retry_delay=initial_delay, initial_delay=initial_delay, max_delay=max_delay)


def begin_connect(state: ConnectionState) -> ConnectionState:
    """A new transport attempt is starting."""
    return replace(state, status=ConnectionStatus.CONNECTING)


def connected(state: ConnectionState) -> ConnectionState:
    """The transport opened. Backoff resets."""
    return replace(state, status=ConnectionStatus.ONLINE, retry_delay=state.initial_delay, failed_attempts=0)


def disconnected(state: ConnectionState) -> ConnectionState:
    """The transport failed or closed. The retry delay is left for ``schedule_retry``."""
    return replace(state, status=ConnectionStatus.OFFLINE)


def schedule_retry(state: ConnectionState) -> tuple[ConnectionState, float]:
    """Plan the next reconnect attempt.

    Returns:
        The state to hold while waiting (delay doubled for the attempt after
        this one) and the number of seconds to wait now
    """
    wait = state.retry_delay
    next_state = replace(
        state,
        status=ConnectionStatus.OFFLINE,
        retry_delay=min(state.retry_delay * 2, state.max_delay),
        failed_attempts=state.failed_attempts + 1,
    )
    return next_state, wait
