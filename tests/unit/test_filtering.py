"""Unit tests for the filter engine."""
from datetime import timedelta

import pytest

from daylist.playlist.config import (
    BpmRange,
    ExactPlayCount,
    PercentileDirection,
    PlayCountPercentile,
    PlayCountRange,
    PlayCountThreshold,
    PlaylistSpec,
    PreferenceWeights,
    ThresholdOperator,
)
from daylist.playlist.filtering import filter_by_play_count, filter_pool


def _spec(**kwargs) -> PlaylistSpec:
    play_count_filter = kwargs.pop("play_count_filter", None)
    return PlaylistSpec(
        name="Test",
        preference_weights=PreferenceWeights(play_count_filter=play_count_filter),
        **kwargs,
    )


def _ids(songs):
    return [s.id for s in songs]


class TestGenreFilters:
    def test_acceptable_genres_match_any_token(self, make_song, now):
        """Delimited genre strings are tokenized and compared case-insensitively."""
        songs = [
            make_song(1, genre="Jazz, Soul"),
            make_song(2, genre="Rock"),
            make_song(3, genre="neo-soul; SOUL"),
            make_song(4, genre=None),
        ]

        result = filter_pool(songs, _spec(acceptable_genres=["soul"]), now=now)

        assert _ids(result.eligible) == ["s1", "s3"]

    def test_extra_genre_tags_count(self, make_song, now):
        songs = [make_song(1, genre="Rock", genres=("Blues",))]
        result = filter_pool(songs, _spec(acceptable_genres=["blues"]), now=now)
        assert _ids(result.eligible) == ["s1"]

    def test_no_acceptable_genres_means_all(self, make_song, now):
        songs = [make_song(1, genre="jazz"), make_song(2, genre=None)]
        result = filter_pool(songs, _spec(), now=now)
        assert _ids(result.eligible) == ["s1", "s2"]

    def test_unacceptable_genres_excluded(self, make_song, now):
        songs = [make_song(1, genre="Metal"), make_song(2, genre="Pop/Metal"), make_song(3, genre="Pop")]
        result = filter_pool(songs, _spec(unacceptable_genres=["metal"]), now=now)
        assert _ids(result.eligible) == ["s3"]

    def test_exclusion_dominates_inclusion(self, make_song, now):
        """A genre in both lists excludes every song carrying it."""
        songs = [
            make_song(1, genre="jazz"),
            make_song(2, genre="jazz, funk"),
            make_song(3, genre="funk"),
        ]
        spec = _spec(acceptable_genres=["jazz", "funk"], unacceptable_genres=["jazz"])

        result = filter_pool(songs, spec, now=now)

        assert _ids(result.eligible) == ["s3"]


class TestBpmFilter:
    def test_bpm_range_is_inclusive(self, make_song, now):
        songs = [make_song(i, bpm=bpm) for i, bpm in enumerate([89, 90, 120, 130, 131])]
        result = filter_pool(songs, _spec(bpm_thresholds=BpmRange(90, 130)), now=now)
        assert [s.bpm for s in result.eligible] == [90, 120, 130]

    def test_missing_bpm_excluded_when_range_configured(self, make_song, now):
        songs = [make_song(1, bpm=None), make_song(2, bpm=100)]
        result = filter_pool(songs, _spec(bpm_thresholds=BpmRange(90, 130)), now=now)
        assert _ids(result.eligible) == ["s2"]

    def test_missing_bpm_passes_without_range(self, make_song, now):
        result = filter_pool([make_song(1, bpm=None)], _spec(), now=now)
        assert len(result.eligible) == 1


class TestRecencyFloor:
    def test_recently_played_songs_excluded(self, make_song, now):
        songs = [
            make_song(1, last_played=now - timedelta(days=1)),
            make_song(2, last_played=now - timedelta(days=5)),
            make_song(3, last_played=None),
            make_song(4, last_played=now - timedelta(days=3)),
        ]

        result = filter_pool(songs, _spec(min_days_since_last_play=3), now=now)

        assert _ids(result.eligible) == ["s2", "s3", "s4"]


class TestPlayCountFilter:
    def test_exact_none_admits_only_unplayed(self, make_song):
        songs = [make_song(i, play_count=c) for i, c in enumerate([0, 1, 0, 7])]
        kept = filter_by_play_count(songs, ExactPlayCount(count=None))
        assert [s.play_count for s in kept] == [0, 0]

    def test_exact_count(self, make_song):
        songs = [make_song(i, play_count=c) for i, c in enumerate([0, 5, 5, 7])]
        kept = filter_by_play_count(songs, ExactPlayCount(count=5))
        assert _ids(kept) == ["s1", "s2"]

    def test_range_with_open_bounds(self, make_song):
        songs = [make_song(i, play_count=c) for i, c in enumerate([0, 3, 10, 50])]
        assert [s.play_count for s in filter_by_play_count(songs, PlayCountRange(min=3))] == [3, 10, 50]
        assert [s.play_count for s in filter_by_play_count(songs, PlayCountRange(max=10))] == [0, 3, 10]
        assert [s.play_count for s in filter_by_play_count(songs, PlayCountRange(3, 10))] == [3, 10]

    def test_top_percentile_over_fifty_songs(self, make_song):
        """Top 20% of 50 songs is exactly the 10 most played."""
        songs = [make_song(i, play_count=(i * 37) % 50) for i in range(50)]

        kept = filter_by_play_count(songs, PlayCountPercentile(PercentileDirection.TOP, 0.2))

        assert len(kept) == 10
        assert sorted(s.play_count for s in kept) == list(range(40, 50))

    def test_percentile_ties_never_exceed_quota(self, make_song):
        """Tied boundary songs are admitted in input order up to the quota."""
        counts = [5, 9, 5, 5, 1, 1, 1, 1, 1, 1]
        songs = [make_song(i, play_count=c) for i, c in enumerate(counts)]

        kept = filter_by_play_count(songs, PlayCountPercentile(PercentileDirection.TOP, 0.3))

        assert _ids(kept) == ["s0", "s1", "s2"]

    def test_bottom_percentile(self, make_song):
        counts = [4, 0, 8, 2, 6]
        songs = [make_song(i, play_count=c) for i, c in enumerate(counts)]

        kept = filter_by_play_count(songs, PlayCountPercentile(PercentileDirection.BOTTOM, 0.4))

        assert _ids(kept) == ["s1", "s3"]

    def test_percentile_rounds_down(self, make_song):
        songs = [make_song(i, play_count=i) for i in range(4)]
        assert filter_by_play_count(songs, PlayCountPercentile(PercentileDirection.TOP, 0.2)) == []

    @pytest.mark.parametrize("operator,expected", [
        (ThresholdOperator.ABOVE, [6, 9]),
        (ThresholdOperator.BELOW, [0, 3]),
        (ThresholdOperator.AT_LEAST, [5, 6, 9]),
        (ThresholdOperator.AT_MOST, [0, 3, 5]),
    ])
    def test_threshold_operators(self, make_song, operator, expected):
        songs = [make_song(i, play_count=c) for i, c in enumerate([0, 3, 5, 6, 9])]
        kept = filter_by_play_count(songs, PlayCountThreshold(operator, 5))
        assert [s.play_count for s in kept] == expected

    def test_unknown_variant_rejected(self, make_song):
        with pytest.raises(TypeError):
            filter_by_play_count([make_song(1)], object())


class TestFilterPool:
    def test_stats_track_each_step(self, make_song, now):
        songs = [make_song(1, genre="jazz"), make_song(2, genre="rock", bpm=None), make_song(3, genre="rock")]
        spec = _spec(acceptable_genres=["rock"], bpm_thresholds=BpmRange(100, 140))

        result = filter_pool(songs, spec, now=now)

        assert result.stats["acceptable_genres"] == {"before": 3, "after": 2, "removed": 1}
        assert result.stats["bpm_range"] == {"before": 2, "after": 1, "removed": 1}
        assert result.stats["final_size"] == 1

    def test_empty_result_is_not_an_error(self, make_song, now):
        result = filter_pool([make_song(1, genre="rock")], _spec(acceptable_genres=["jazz"]), now=now)
        assert result.eligible == ()
