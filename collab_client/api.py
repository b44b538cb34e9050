"""HTTP client for the collaborative playlist API.

``requests`` is blocking, so every call is pushed onto a worker thread with
``asyncio.to_thread`` and the event loop stays free for stream frames and
playback ticks.
"""

import asyncio
import requests
from core.errors import PlaylistError, TransportFailure, error_from_response
from typing import Any, Protocol

# Gateway errors mean the API itself could not be reached
UNREACHABLE_STATUSES = {502, 503, 504}


class PlaylistAPI(Protocol):
    """Operations the sync engine needs from the server."""

    async def fetch_tracks(self) -> list[dict[str, Any]]: ...

    async def fetch_playlist(self) -> list[dict[str, Any]]: ...

    async def add(self, track_id: str, added_by: str | None = None) -> dict[str, Any]: ...

    async def remove(self, item_id: str) -> None: ...

    async def vote(self, item_id: str, direction: str) -> dict[str, Any]: ...

    async def update(self, item_id: str, position: float | None = None, is_playing: bool | None = None) -> dict[str, Any]: ...


class HttpPlaylistAPI:
    """``PlaylistAPI`` over HTTP/JSON."""

    def __init__(self, base_url: str, timeout: float = 10.0, session: requests.Session | None = None):
        """Initialize the client.

        Args:
            base_url: Server root, e.g. ``http://localhost:4000``
            timeout: Per-request timeout in seconds
            session: Optional preconfigured session
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, json: dict[str, Any] | None = None) -> Any:
        """Send one request and decode the response.

        Raises:
            TransportFailure: the server could not be reached
            PlaylistError: the server answered with an error body
        """
        url = f"{self.base_url}/api{path}"
        try:
            response = self.session.request(method, url, json=json, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransportFailure(f"{method} {path} failed: {e}") from e

        if response.status_code in UNREACHABLE_STATUSES:
            raise TransportFailure(f"{method} {path} failed with status {response.status_code}")
        if response.status_code == 204 or not response.content:
            body = None
        else:
            try:
                body = response.json()
            except ValueError:
                body = response.text
        if not response.ok:
            raise error_from_response(response.status_code, body)
        return body

    async def _call(self, method: str, path: str, json: dict[str, Any] | None = None) -> Any:
        return await asyncio.to_thread(self._request, method, path, json)

    async def fetch_tracks(self) -> list[dict[str, Any]]:
        return await self._call("GET", "/tracks")

    async def fetch_playlist(self) -> list[dict[str, Any]]:
        return await self._call("GET", "/playlist")

    async def add(self, track_id: str, added_by: str | None = None) -> dict[str, Any]:
        body = {"track_id": track_id}
        if added_by:
            body["added_by"] = added_by
        return await self._call("POST", "/playlist", body)

    async def remove(self, item_id: str) -> None:
        await self._call("DELETE", f"/playlist/{item_id}")

    async def vote(self, item_id: str, direction: str) -> dict[str, Any]:
        return await self._call("POST", f"/playlist/{item_id}/vote", {"direction": direction})

    async def update(self, item_id: str, position: float | None = None, is_playing: bool | None = None) -> dict[str, Any]:
        body: dict[str, Any] = {}
        if position is not None:
            body["position"] = position
        if is_playing is not None:
            body["is_playing"] = is_playing
        return await self._call("PATCH", f"/playlist/{item_id}", body)

    def close(self) -> None:
        self.session.close()


__all__ = ["PlaylistAPI", "HttpPlaylistAPI", "PlaylistError", "TransportFailure"]
