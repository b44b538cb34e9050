"""SQLite storage for the track catalog and the shared playlist.

Every call opens its own connection; multi-statement updates go through
``transaction()`` so they commit or roll back as one unit.
"""

import sqlite3
from collections.abc import Generator, Iterable
from contextlib import contextmanager
from pathlib import Path
from typing import Any

DB_TABLES = {
    "tracks": """
        CREATE TABLE IF NOT EXISTS tracks
        (id TEXT PRIMARY KEY,
         title TEXT NOT NULL,
         artist TEXT NOT NULL,
         album TEXT NOT NULL,
         duration_seconds INTEGER NOT NULL CHECK (duration_seconds >= 0),
         genre TEXT,
         cover_url TEXT)
    """,
    "playlist_items": """
        CREATE TABLE IF NOT EXISTS playlist_items (
            id TEXT PRIMARY KEY,
            track_id TEXT NOT NULL UNIQUE,
            position REAL NOT NULL,
            votes INTEGER NOT NULL DEFAULT 0,
            added_by TEXT NOT NULL DEFAULT 'Anonymous',
            is_playing INTEGER NOT NULL DEFAULT 0,
            added_at TEXT NOT NULL,
            played_at TEXT,
            FOREIGN KEY (track_id) REFERENCES tracks(id) ON DELETE CASCADE
        )
    """,
}

DB_INDEXES = {
    "playlist_items_position": """
        CREATE INDEX IF NOT EXISTS playlist_items_position ON playlist_items(position)
    """,
    # At most one row may have is_playing = 1
    "playlist_items_single_playing": """
        CREATE UNIQUE INDEX IF NOT EXISTS playlist_items_single_playing
        ON playlist_items(is_playing) WHERE is_playing = 1
    """,
}

_ITEM_COLUMNS = """
    p.id, p.track_id, p.position, p.votes, p.added_by, p.is_playing,
    p.added_at, p.played_at,
    t.title, t.artist, t.duration_seconds
"""


def _item_from_row(row: sqlite3.Row) -> dict[str, Any]:
    """Shape a joined playlist row as the API item."""
    return {
        "id": row["id"],
        "track_id": row["track_id"],
        "track": {
            "title": row["title"],
            "artist": row["artist"],
            "duration_seconds": row["duration_seconds"],
        },
        "position": row["position"],
        "votes": row["votes"],
        "added_by": row["added_by"],
        "is_playing": bool(row["is_playing"]),
        "added_at": row["added_at"],
        "played_at": row["played_at"],
    }


class DatabaseService:
    """SQLite storage for tracks and playlist items.

    Uses a fresh connection per call and context managers for thread safety.
    """

    def __init__(self, db_path: str | Path):
        """Initialize the database service.

        Args:
            db_path: Path to the SQLite database file
        """
        self.db_path = Path(db_path)
        self._ensure_tables()

    def _ensure_tables(self) -> None:
        """Create database tables if they don't exist."""
        with self.get_connection() as conn:
            cursor = conn.cursor()
            for table_sql in DB_TABLES.values():
                cursor.execute(table_sql)
            for index_sql in DB_INDEXES.values():
                cursor.execute(index_sql)
            conn.commit()

    @contextmanager
    def get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Get a database connection with automatic cleanup.

        Yields:
            SQLite connection that will be automatically closed
        """
        conn = sqlite3.connect(str(self.db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Generator[sqlite3.Connection, None, None]:
        """Run a block as one write transaction.

        ``BEGIN IMMEDIATE`` takes the write lock up front so two writers can
        never both read the pre-update state and then commit.

        Yields:
            Connection inside an open transaction; committed on success,
            rolled back if the block raises
        """
        with self.get_connection() as conn:
            conn.isolation_level = None
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")

    # ==================== Track Catalog ====================

    def get_all_tracks(self) -> list[dict[str, Any]]:
        """Get the whole catalog ordered by title."""
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT id, title, artist, album, duration_seconds, genre, cover_url
                FROM tracks
                ORDER BY title COLLATE NOCASE ASC, id ASC
            """
            )
            return [dict(row) for row in cursor.fetchall()]

    def get_track(self, track_id: str, conn: sqlite3.Connection | None = None) -> dict[str, Any] | None:
        """Get a single track by ID."""
        if conn is None:
            with self.get_connection() as own:
                return self.get_track(track_id, own)
        row = conn.execute(
            "SELECT id, title, artist, album, duration_seconds, genre, cover_url FROM tracks WHERE id = ?",
            (track_id,),
        ).fetchone()
        return dict(row) if row else None

    def add_tracks(self, tracks: Iterable[dict[str, Any]]) -> int:
        """Insert or replace catalog tracks.

        Returns:
            Number of tracks written
        """
        rows = [
            (
                t["id"],
                t["title"],
                t["artist"],
                t["album"],
                int(t["duration_seconds"]),
                t.get("genre"),
                t.get("cover_url"),
            )
            for t in tracks
        ]
        with self.get_connection() as conn:
            conn.executemany(
                """
                INSERT OR REPLACE INTO tracks
                (id, title, artist, album, duration_seconds, genre, cover_url)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
                rows,
            )
            conn.commit()
        return len(rows)

    # ==================== Playlist Items ====================

    def get_playlist(self, conn: sqlite3.Connection | None = None) -> list[dict[str, Any]]:
        """Get all playlist items ordered by position (id breaks ties)."""
        if conn is None:
            with self.get_connection() as own:
                return self.get_playlist(own)
        cursor = conn.execute(
            f"""
            SELECT {_ITEM_COLUMNS}
            FROM playlist_items p
            JOIN tracks t ON t.id = p.track_id
            ORDER BY p.position ASC, p.id ASC
        """
        )
        return [_item_from_row(row) for row in cursor.fetchall()]

    def get_item(self, item_id: str, conn: sqlite3.Connection | None = None) -> dict[str, Any] | None:
        """Get a single playlist item by ID."""
        if conn is None:
            with self.get_connection() as own:
                return self.get_item(item_id, own)
        row = conn.execute(
            f"""
            SELECT {_ITEM_COLUMNS}
            FROM playlist_items p
            JOIN tracks t ON t.id = p.track_id
            WHERE p.id = ?
        """,
            (item_id,),
        ).fetchone()
        return _item_from_row(row) if row else None

    def find_item_by_track(self, conn: sqlite3.Connection, track_id: str) -> str | None:
        """Return the id of the item holding ``track_id``, if any."""
        row = conn.execute("SELECT id FROM playlist_items WHERE track_id = ?", (track_id,)).fetchone()
        return row["id"] if row else None

    def max_position(self, conn: sqlite3.Connection) -> float | None:
        """Return the highest position in the playlist, or None when empty."""
        return conn.execute("SELECT MAX(position) FROM playlist_items").fetchone()[0]

    def insert_item(
        self,
        conn: sqlite3.Connection,
        item_id: str,
        track_id: str,
        position: float,
        added_by: str,
        added_at: str,
        votes: int = 0,
        is_playing: bool = False,
        played_at: str | None = None,
    ) -> None:
        """Insert a playlist item row."""
        conn.execute(
            """
            INSERT INTO playlist_items
            (id, track_id, position, votes, added_by, is_playing, added_at, played_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """,
            (item_id, track_id, position, votes, added_by, int(is_playing), added_at, played_at),
        )

    def delete_item(self, conn: sqlite3.Connection, item_id: str) -> bool:
        """Delete a playlist item. Returns False if it did not exist."""
        cursor = conn.execute("DELETE FROM playlist_items WHERE id = ?", (item_id,))
        return cursor.rowcount > 0

    def add_votes(self, conn: sqlite3.Connection, item_id: str, delta: int) -> int | None:
        """Shift an item's vote count. Returns the new count, or None if missing."""
        cursor = conn.execute("UPDATE playlist_items SET votes = votes + ? WHERE id = ?", (delta, item_id))
        if cursor.rowcount == 0:
            return None
        return conn.execute("SELECT votes FROM playlist_items WHERE id = ?", (item_id,)).fetchone()[0]

    def set_position(self, conn: sqlite3.Connection, item_id: str, position: float) -> bool:
        """Overwrite an item's position. Returns False if it did not exist."""
        cursor = conn.execute("UPDATE playlist_items SET position = ? WHERE id = ?", (position, item_id))
        return cursor.rowcount > 0

    def set_playing(self, conn: sqlite3.Connection, item_id: str, played_at: str) -> bool:
        """Make ``item_id`` the only playing item.

        Must run inside ``transaction()``; the clear and the set commit together.
        """
        if conn.execute("SELECT 1 FROM playlist_items WHERE id = ?", (item_id,)).fetchone() is None:
            return False
        conn.execute("UPDATE playlist_items SET is_playing = 0 WHERE is_playing = 1 AND id != ?", (item_id,))
        conn.execute("UPDATE playlist_items SET is_playing = 1, played_at = ? WHERE id = ?", (played_at, item_id))
        return True

    def clear_playlist(self) -> None:
        """Remove every playlist item."""
        with self.get_connection() as conn:
            conn.execute("DELETE FROM playlist_items")
            conn.commit()

    def count_playing(self) -> int:
        """Number of items currently flagged as playing."""
        with self.get_connection() as conn:
            return conn.execute("SELECT COUNT(*) FROM playlist_items WHERE is_playing = 1").fetchone()[0]
