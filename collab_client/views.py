"""Display helpers for library browsing and the playlist header."""

from collections.abc import Iterable
from typing import Any

ALL_GENRES = "All"


def genres(tracks: Iterable[dict[str, Any]]) -> list[str]:
    """``All`` followed by the distinct genres of the catalog, sorted."""
    return [ALL_GENRES, *sorted({t["genre"] for t in tracks if t.get("genre")})]


def filter_tracks(tracks: Iterable[dict[str, Any]], query: str = "", genre: str = ALL_GENRES) -> list[dict[str, Any]]:
    """Tracks matching ``genre`` and containing ``query`` in title, artist or genre.

    Matching is case-insensitive; an empty query matches everything.
    """
    q = query.strip().lower()
    matches = []
    for track in tracks:
        if genre != ALL_GENRES and track.get("genre") != genre:
            continue
        if q and not (
            q in track.get("title", "").lower()
            or q in track.get("artist", "").lower()
            or q in (track.get("genre") or "").lower()
        ):
            continue
        matches.append(track)
    return matches


def total_duration(items: Iterable[dict[str, Any]]) -> int:
    """Sum of track durations in seconds."""
    return sum(item["track"]["duration_seconds"] for item in items)


def format_time(total_seconds: float | None) -> str:
    """``m:ss``; negative or missing values render as ``0:00``.

    Examples:
        >>> format_time(355)
        '5:55'
        >>> format_time(None)
        '0:00'
    """
    s = max(0, int(total_seconds or 0))
    return f"{s // 60}:{s % 60:02d}"


def now_playing(items: Iterable[dict[str, Any]]) -> dict[str, Any] | None:
    return next((item for item in items if item.get("is_playing")), None)
