"""Server-sent event transport for the sync client."""

import asyncio
import json
import requests
from collections.abc import AsyncIterator, Iterable, Iterator
from core.errors import TransportFailure
from eliot import log_message
from typing import Any, Protocol

_END = object()


def iter_frames(lines: Iterable[str]) -> Iterator[dict[str, Any]]:
    """Decode ``text/event-stream`` lines into JSON payloads.

    Only ``data:`` fields are used; a blank line ends a frame. Frames whose
    data is not a JSON object are logged and skipped.
    """
    data_lines: list[str] = []
    for line in lines:
        if isinstance(line, bytes):
            line = line.decode("utf-8")
        line = line.rstrip("\r")
        if line == "":
            if not data_lines:
                continue
            payload = "\n".join(data_lines)
            data_lines = []
            try:
                frame = json.loads(payload)
            except ValueError:
                log_message(message_type="stream_bad_frame", data=payload)
                continue
            if isinstance(frame, dict):
                yield frame
        elif line.startswith(":"):
            continue
        elif line.startswith("data:"):
            value = line[5:]
            data_lines.append(value[1:] if value.startswith(" ") else value)


class EventSource(Protocol):
    """Persistent push channel delivering decoded frames."""

    async def connect(self) -> AsyncIterator[dict[str, Any]]:
        """Open the channel.

        Returns once the server has accepted the connection; the returned
        iterator yields frames until the channel fails, then raises
        ``TransportFailure``.
        """
        ...

    def close(self) -> None: ...


class SseEventSource:
    """``EventSource`` reading ``GET /api/stream`` with requests."""

    def __init__(
        self,
        base_url: str,
        connect_timeout: float = 10.0,
        read_timeout: float = 45.0,
        session: requests.Session | None = None,
    ):
        """Initialize the event source.

        Args:
            base_url: Server root, e.g. ``http://localhost:4000``
            connect_timeout: Seconds allowed to open the connection
            read_timeout: Seconds of silence (no frame, no ping) before the
                connection is considered dead
            session: Optional preconfigured session
        """
        self.url = f"{base_url.rstrip('/')}/api/stream"
        self.timeout = (connect_timeout, read_timeout)
        self.session = session or requests.Session()
        self._response: requests.Response | None = None

    async def connect(self) -> AsyncIterator[dict[str, Any]]:
        # Always tear down the previous attempt first
        self.close()
        try:
            response = await asyncio.to_thread(
                self.session.get,
                self.url,
                stream=True,
                timeout=self.timeout,
                headers={"Accept": "text/event-stream"},
            )
        except requests.RequestException as e:
            raise TransportFailure(f"stream connect failed: {e}") from e

        if response.status_code != 200:
            response.close()
            raise TransportFailure(f"stream connect failed with status {response.status_code}")

        self._response = response
        return self._frames(response)

    async def _frames(self, response: requests.Response) -> AsyncIterator[dict[str, Any]]:
        frames = iter_frames(response.iter_lines(decode_unicode=True))
        try:
            while True:
                try:
                    frame = await asyncio.to_thread(next, frames, _END)
                except (requests.RequestException, OSError, ValueError) as e:
                    raise TransportFailure(f"stream read failed: {e}") from e
                if frame is _END:
                    raise TransportFailure("stream closed by server")
                yield frame
        finally:
            if self._response is response:
                self.close()
            else:
                response.close()

    def close(self) -> None:
        """Close the current connection, if any."""
        response, self._response = self._response, None
        if response is not None:
            response.close()
