"""Unit tests for catalog filtering and display helpers."""

import pytest
from collab_client.views import ALL_GENRES, filter_tracks, format_time, genres, now_playing, total_duration
from tests.helpers.fakes import TEST_TRACKS, make_item


class TestFilterTracks:
    """Test catalog search."""

    def test_everything_by_default(self):
        assert filter_tracks(TEST_TRACKS) == TEST_TRACKS

    def test_query_matches_title_artist_or_genre(self):
        assert [t["id"] for t in filter_tracks(TEST_TRACKS, "queen")] == ["track-1"]
        assert [t["id"] for t in filter_tracks(TEST_TRACKS, "FIVE")] == ["track-3"]
        assert [t["id"] for t in filter_tracks(TEST_TRACKS, "jazz")] == ["track-3"]

    def test_genre_filter(self):
        assert [t["id"] for t in filter_tracks(TEST_TRACKS, genre="Pop")] == ["track-2"]
        assert filter_tracks(TEST_TRACKS, "queen", genre="Pop") == []

    def test_genres_list(self):
        assert genres(TEST_TRACKS) == [ALL_GENRES, "Classical", "Jazz", "Pop", "Rock"]


class TestFormatting:
    """Test duration helpers."""

    @pytest.mark.parametrize("seconds,expected", [(0, "0:00"), (59, "0:59"), (60, "1:00"), (355, "5:55"), (3600, "60:00"), (-3, "0:00"), (None, "0:00"), (12.9, "0:12")])
    def test_format_time(self, seconds, expected):
        assert format_time(seconds) == expected

    def test_total_duration(self):
        items = [make_item("a", 1.0, duration=100), make_item("b", 2.0, duration=55)]
        assert total_duration(items) == 155
        assert total_duration([]) == 0

    def test_now_playing(self):
        items = [make_item("a", 1.0), make_item("b", 2.0, is_playing=True)]
        assert now_playing(items)["id"] == "b"
        assert now_playing([make_item("a", 1.0)]) is None
