"""Error taxonomy shared by the API server and the sync client."""

from typing import Any


class PlaylistError(Exception):
    """Base error carrying the wire code and HTTP status."""

    code = "SERVER_ERROR"
    status = 500
    retryable = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the ``{"error": {...}}`` response body."""
        error: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            error["details"] = self.details
        return {"error": error}


class InvalidRequest(PlaylistError):
    """Malformed or missing input."""

    code = "INVALID_REQUEST"
    status = 400


class InvalidDirection(InvalidRequest):
    """Vote direction other than ``up`` or ``down``."""

    def __init__(self, direction: Any):
        super().__init__('direction must be "up" or "down"', {"direction": direction})


class DuplicateTrack(PlaylistError):
    """The track already has an item in the playlist."""

    code = "DUPLICATE_TRACK"
    status = 400

    def __init__(self, track_id: str):
        super().__init__("This track is already in the playlist", {"track_id": track_id})
        self.track_id = track_id


class NotFound(PlaylistError):
    """The playlist item id is unknown (usually stale on the client)."""

    code = "NOT_FOUND"
    status = 404

    def __init__(self, message: str = "Playlist item not found", details: dict[str, Any] | None = None):
        super().__init__(message, details)


class ServerError(PlaylistError):
    """Unexpected storage or server failure."""

    code = "SERVER_ERROR"
    status = 500
    retryable = True


class TransportFailure(PlaylistError):
    """The server could not be reached. Never produced by the server itself."""

    code = "TRANSPORT_FAILURE"
    status = 0
    retryable = True


_ERRORS_BY_CODE: dict[str, type[PlaylistError]] = {
    InvalidRequest.code: InvalidRequest,
    NotFound.code: NotFound,
    ServerError.code: ServerError,
}


def error_from_response(status: int, body: Any) -> PlaylistError:
    """Rebuild a typed error from an HTTP error response.

    Args:
        status: HTTP status code
        body: Decoded JSON body (or raw text when the body was not JSON)

    Returns:
        The matching PlaylistError subclass instance
    """
    error = body.get("error") if isinstance(body, dict) else None
    if not isinstance(error, dict):
        error = {}
    code = error.get("code")
    message = error.get("message") or f"Request failed with status {status}"
    details = error.get("details") if isinstance(error.get("details"), dict) else None

    if code == DuplicateTrack.code:
        return DuplicateTrack((details or {}).get("track_id", ""))
    if code in _ERRORS_BY_CODE:
        return _ERRORS_BY_CODE[code](message, details)
    if status == 404:
        return NotFound(message, details)
    if 400 <= status < 500:
        return InvalidRequest(message, details)
    return ServerError(message, details)
