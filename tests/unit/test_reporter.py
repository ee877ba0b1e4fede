"""Unit tests for playlist quality reports."""
import pytest

from daylist.playlist.config import PlaylistSpec, QualityWeights, TransitionRules
from daylist.playlist.reporter import (
    count_artist_repeats,
    count_bpm_jumps,
    era_cohesion,
    format_duration,
    format_report,
    genre_coherence,
    report,
)


class TestStats:
    def test_descriptive_stats(self, make_song):
        songs = [
            make_song(1, bpm=100, year=1995, duration=180, genre="Jazz"),
            make_song(2, bpm=120, year=2001, duration=240, genre="jazz, soul"),
            make_song(3, bpm=None, year=None, duration=200, genre="Funk", artist_id="ar1"),
        ]

        stats = report(songs).stats

        assert stats.song_count == 3
        assert stats.total_duration == 620
        assert stats.average_bpm == pytest.approx(110.0)
        assert stats.bpm_range == (100, 120)
        assert stats.unique_artists == 2
        assert stats.year_range == (1995, 2001)
        assert stats.top_genres[0] == ("jazz", 2)

    def test_empty_playlist_scores_zero(self):
        result = report([])
        assert result.score == 0.0
        assert result.stats.song_count == 0
        assert result.stats.average_bpm is None


class TestComponents:
    def test_clean_playlist_scores_full_on_constraints(self, make_song):
        songs = [make_song(i, bpm=100 + i) for i in range(6)]
        result = report(songs)
        assert result.components["artist_repeats"] == pytest.approx(100.0)
        assert result.components["bpm_jumps"] == pytest.approx(100.0)

    def test_violations_lower_the_score(self, make_song):
        clean = [make_song(i, bpm=100) for i in range(6)]
        messy = [make_song(i, artist_id="same", bpm=80 if i % 2 else 160) for i in range(6)]
        assert report(messy).score < report(clean).score

    def test_genre_target_is_read_from_spec(self, make_song):
        songs = [make_song(i, genre="rock") for i in range(4)]
        coherent = PlaylistSpec(name="A", quality_weights=QualityWeights(genre_coherence=1.0))
        eclectic = PlaylistSpec(name="B", quality_weights=QualityWeights(genre_coherence=0.0))
        assert report(songs, coherent).components["genre_spread"] == pytest.approx(100.0)
        assert report(songs, eclectic).components["genre_spread"] == pytest.approx(0.0)

    def test_score_is_bounded(self, make_song):
        songs = [make_song(i, year=1960 + 20 * i) for i in range(4)]
        result = report(songs)
        assert 0.0 <= result.score <= 100.0


class TestMetrics:
    def test_genre_coherence(self, make_song):
        assert genre_coherence([make_song(1, genre="rock"), make_song(2, genre="rock")]) == 1.0
        assert genre_coherence([make_song(1, genre="rock"), make_song(2, genre="jazz")]) == pytest.approx(0.0)
        assert genre_coherence([make_song(1, genre=None)]) is None

    @pytest.mark.parametrize("years,expected", [
        ([2000, 2001], 1.0),
        ([2000, 2010], 0.5),
        ([2000, 2020], 0.2),
    ])
    def test_era_cohesion_by_span(self, make_song, years, expected):
        songs = [make_song(i, year=y) for i, y in enumerate(years)]
        assert era_cohesion(songs) == pytest.approx(expected)

    def test_artist_repeats_use_window(self, make_song):
        songs = [make_song(0, artist_id="a"), make_song(1, artist_id="b"), make_song(2, artist_id="a")]
        assert count_artist_repeats(songs, 1) == 0
        assert count_artist_repeats(songs, 2) == 1

    def test_bpm_jumps_skip_unknown_tempo(self, make_song):
        songs = [make_song(0, bpm=100), make_song(1, bpm=None), make_song(2, bpm=150), make_song(3, bpm=100)]
        assert count_bpm_jumps(songs, 20) == (1, 1)


class TestFormatting:
    def test_format_duration(self):
        assert format_duration(125) == "2m 05s"
        assert format_duration(3725) == "1h 02m"

    def test_format_report_lines(self, make_song):
        result = report([make_song(1), make_song(2)], PlaylistSpec(name="X", transition_rules=TransitionRules()))
        lines = format_report(result, title="Evening")
        assert lines[0] == "Playlist: Evening"
        assert any("Quality score" in line for line in lines)
        assert any("Top genres: rock (2)" in line for line in lines)
