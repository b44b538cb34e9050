"""Demo catalog and starting playlist.

Run ``collab-seed`` (or ``python -m collab_api.seed``) to reset the database
at ``COLLAB_DB_PATH`` to the demo state.
"""

from collab_api.services.database import DatabaseService
from collab_api.services.mutations import utc_now
from core.logging import setup_logging
from eliot import log_message, start_action
from typing import Any

CATALOG: list[tuple[str, str, str, int, str]] = [
    # Rock
    ("Bohemian Rhapsody", "Queen", "A Night at the Opera", 355, "Rock"),
    ("Back in Black", "AC/DC", "Back in Black", 255, "Rock"),
    ("Sweet Child o' Mine", "Guns N' Roses", "Appetite for Destruction", 356, "Rock"),
    ("Enter Sandman", "Metallica", "Metallica", 331, "Rock"),
    ("Smells Like Teen Spirit", "Nirvana", "Nevermind", 301, "Rock"),
    ("Paranoid Android", "Radiohead", "OK Computer", 386, "Rock"),
    ("Hotel California", "Eagles", "Hotel California", 390, "Rock"),
    ("Come As You Are", "Nirvana", "Nevermind", 219, "Rock"),
    # Pop
    ("Billie Jean", "Michael Jackson", "Thriller", 294, "Pop"),
    ("Blinding Lights", "The Weeknd", "After Hours", 200, "Pop"),
    ("Rolling in the Deep", "Adele", "21", 228, "Pop"),
    ("Bad Guy", "Billie Eilish", "When We All Fall Asleep, Where Do We Go?", 194, "Pop"),
    ("Shape of You", "Ed Sheeran", "÷", 233, "Pop"),
    ("Uptown Funk", "Mark Ronson ft. Bruno Mars", "Uptown Special", 269, "Pop"),
    ("Havana", "Camila Cabello", "Camila", 217, "Pop"),
    ("Levitating", "Dua Lipa", "Future Nostalgia", 203, "Pop"),
    # Electronic
    ("One More Time", "Daft Punk", "Discovery", 320, "Electronic"),
    ("Harder, Better, Faster, Stronger", "Daft Punk", "Discovery", 224, "Electronic"),
    ("Around the World", "Daft Punk", "Homework", 435, "Electronic"),
    ("Strobe", "deadmau5", "For Lack of a Better Name", 630, "Electronic"),
    ("Opus", "Eric Prydz", "Opus", 571, "Electronic"),
    ("Midnight City", "M83", "Hurry Up, We're Dreaming", 276, "Electronic"),
    ("Windowlicker", "Aphex Twin", "Windowlicker", 365, "Electronic"),
    ("Xtal", "Aphex Twin", "Selected Ambient Works 85–92", 300, "Electronic"),
    # Jazz
    ("Take Five", "The Dave Brubeck Quartet", "Time Out", 324, "Jazz"),
    ("So What", "Miles Davis", "Kind of Blue", 545, "Jazz"),
    ("Blue in Green", "Miles Davis", "Kind of Blue", 329, "Jazz"),
    ("Autumn Leaves", "Bill Evans Trio", "Portrait in Jazz", 300, "Jazz"),
    ("Take the A Train", "Duke Ellington", "The Best of Duke Ellington", 210, "Jazz"),
    ("My Favorite Things", "John Coltrane", "My Favorite Things", 800, "Jazz"),
    ("All Blues", "Miles Davis", "Kind of Blue", 690, "Jazz"),
    ("Freddie Freeloader", "Miles Davis", "Kind of Blue", 586, "Jazz"),
    # Classical
    ("Clair de Lune", "Claude Debussy", "Suite bergamasque", 300, "Classical"),
    ("Gymnopédie No.1", "Erik Satie", "Gymnopédies", 210, "Classical"),
    ("Nocturne Op.9 No.2", "Frédéric Chopin", "Nocturnes", 270, "Classical"),
    ("Moonlight Sonata", "Ludwig van Beethoven", "Piano Sonatas", 360, "Classical"),
    ("The Four Seasons: Spring", "Antonio Vivaldi", "The Four Seasons", 210, "Classical"),
    ("Swan Lake Theme", "Pyotr Ilyich Tchaikovsky", "Swan Lake", 210, "Classical"),
    ("Canon in D", "Johann Pachelbel", "Canon and Gigue", 360, "Classical"),
    ("Adagio for Strings", "Samuel Barber", "Adagio for Strings", 420, "Classical"),
]

DEMO_GENRES = ["Rock", "Pop", "Electronic", "Jazz", "Classical", "Hip-Hop", "R&B", "Indie", "Country", "Metal"]
CATALOG_SIZE = 220

# (track number, votes, added_by); the first entry starts as now playing
STARTING_PLAYLIST: list[tuple[int, int, str]] = [
    (33, 4, "Classics"),
    (1, 10, "User123"),
    (9, 3, "User456"),
    (25, 1, "JazzFan"),
    (17, 0, "EDMHead"),
    (5, 8, "RockLover"),
    (27, -2, "SmoothJazz"),
    (13, 2, "PopFan"),
    (20, 6, "NightOwl"),
    (29, -1, "Duke"),
]


def build_catalog() -> list[dict[str, Any]]:
    """Named tracks followed by generated demo tracks, ``track-1`` .. ``track-220``."""
    tracks = [
        {
            "id": f"track-{n}",
            "title": title,
            "artist": artist,
            "album": album,
            "duration_seconds": duration,
            "genre": genre,
            "cover_url": None,
        }
        for n, (title, artist, album, duration, genre) in enumerate(CATALOG, start=1)
    ]
    for n in range(len(CATALOG) + 1, CATALOG_SIZE + 1):
        tracks.append(
            {
                "id": f"track-{n}",
                "title": f"Demo Track {n}",
                "artist": f"Artist {(n - 1) % 50 + 1}",
                "album": f"Album {(n - 1) % 25 + 1}",
                "duration_seconds": 120 + (n * 7) % 360,
                "genre": DEMO_GENRES[(n - len(CATALOG) - 1) % len(DEMO_GENRES)],
                "cover_url": None,
            }
        )
    return tracks


def seed_database(db: DatabaseService) -> int:
    """Replace the catalog and playlist with the demo data.

    Returns:
        Number of catalog tracks written
    """
    with start_action(action_type="seed_database", db_path=str(db.db_path)):
        db.clear_playlist()
        count = db.add_tracks(build_catalog())
        now = utc_now()
        with db.transaction() as conn:
            for position, (track_number, votes, added_by) in enumerate(STARTING_PLAYLIST, start=1):
                playing = position == 1
                db.insert_item(
                    conn,
                    item_id=f"seed-{position}",
                    track_id=f"track-{track_number}",
                    position=float(position),
                    added_by=added_by,
                    added_at=now,
                    votes=votes,
                    is_playing=playing,
                    played_at=now if playing else None,
                )
        log_message(message_type="seed_complete", tracks=count, playlist_items=len(STARTING_PLAYLIST))
        return count


def main() -> None:
    """Entry point for ``collab-seed``."""
    import config

    setup_logging(config.LOG_LEVEL, config.LOG_FILE)
    seed_database(DatabaseService(config.DB_PATH))


if __name__ == "__main__":
    main()
