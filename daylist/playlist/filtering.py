"""
Filter engine: applies a playlist spec's inclusion and exclusion rules.

The chain runs in a fixed order:
- Genre inclusion (acceptable_genres)
- Genre exclusion (unacceptable_genres, wins over inclusion)
- BPM range
- Recency floor (min_days_since_last_play)
- Play-count filter (from preference weights)

Each step is an independent predicate except the percentile play-count
filter, which ranks the songs that reach it. Input order is preserved.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Sequence, Tuple

import numpy as np

from .config import (
    BpmRange,
    ExactPlayCount,
    PercentileDirection,
    PlayCountFilter,
    PlayCountPercentile,
    PlayCountRange,
    PlayCountThreshold,
    PlaylistSpec,
    ThresholdOperator,
)
from .models import Song

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FilterResult:
    """
    Result of filtering with per-step diagnostics.

    Attributes:
        eligible: Songs that passed every step, in input order
        stats: {step_name: {"before", "after", "removed"}} plus totals
    """
    eligible: Tuple[Song, ...]
    stats: Dict[str, Any] = field(default_factory=dict)


def matches_acceptable_genres(song: Song, acceptable: Optional[FrozenSet[str]]) -> bool:
    if acceptable is None:
        return True
    return bool(song.genre_tokens & acceptable)


def avoids_unacceptable_genres(song: Song, unacceptable: Optional[FrozenSet[str]]) -> bool:
    if not unacceptable:
        return True
    return not (song.genre_tokens & unacceptable)


def within_bpm_range(song: Song, bpm_range: Optional[BpmRange]) -> bool:
    """A song with unknown BPM cannot be verified and fails a configured range."""
    if bpm_range is None:
        return True
    if song.bpm is None:
        return False
    return bpm_range.contains(song.bpm)


def passes_recency_floor(song: Song, min_days: Optional[float], now: datetime) -> bool:
    if min_days is None:
        return True
    days = song.days_since_played(now)
    if days is None:
        return True
    return days >= min_days


_THRESHOLD_COMPARATORS: Dict[ThresholdOperator, Callable[[int, int], bool]] = {
    ThresholdOperator.ABOVE: lambda value, count: value > count,
    ThresholdOperator.BELOW: lambda value, count: value < count,
    ThresholdOperator.AT_LEAST: lambda value, count: value >= count,
    ThresholdOperator.AT_MOST: lambda value, count: value <= count,
}


def filter_by_play_count(
    songs: Sequence[Song],
    play_count_filter: Optional[PlayCountFilter],
) -> List[Song]:
    """
    Apply a play-count filter variant.

    Args:
        songs: Songs reaching this step
        play_count_filter: Configured variant (None keeps everything)

    Returns:
        Songs that pass, in input order

    Raises:
        TypeError: Unknown filter variant
    """
    if play_count_filter is None:
        return list(songs)

    if isinstance(play_count_filter, ExactPlayCount):
        wanted = play_count_filter.count or 0
        return [s for s in songs if s.play_count == wanted]

    if isinstance(play_count_filter, PlayCountRange):
        low = play_count_filter.min
        high = play_count_filter.max
        return [
            s for s in songs
            if (low is None or s.play_count >= low) and (high is None or s.play_count <= high)
        ]

    if isinstance(play_count_filter, PlayCountPercentile):
        return _filter_by_percentile(songs, play_count_filter)

    if isinstance(play_count_filter, PlayCountThreshold):
        compare = _THRESHOLD_COMPARATORS[play_count_filter.operator]
        return [s for s in songs if compare(s.play_count, play_count_filter.count)]

    raise TypeError(f"Unsupported play count filter: {type(play_count_filter).__name__}")


def _filter_by_percentile(songs: Sequence[Song], percentile: PlayCountPercentile) -> List[Song]:
    """
    Keep exactly floor(fraction * n) songs from the requested end.

    Songs tied at the boundary are admitted in input order until the quota
    is used up, so the result never exceeds the requested fraction.
    """
    n = len(songs)
    keep = int(np.floor(percentile.fraction * n + 1e-9))
    if keep <= 0:
        return []
    if keep >= n:
        return list(songs)

    counts = np.array([s.play_count for s in songs], dtype=np.int64)
    if percentile.direction == PercentileDirection.TOP:
        counts = -counts
    # Stable sort keeps input order among equal play counts
    chosen = np.sort(np.argsort(counts, kind="stable")[:keep])
    return [songs[i] for i in chosen]


def filter_pool(
    pool: Sequence[Song],
    spec: PlaylistSpec,
    *,
    now: datetime,
) -> FilterResult:
    """
    Run the full predicate chain for one playlist spec.

    Args:
        pool: Classified candidate songs
        spec: Playlist definition
        now: Reference time for the recency floor

    Returns:
        FilterResult with the eligible pool and per-step counts
    """
    stats: Dict[str, Any] = {"initial_size": len(pool)}
    current: List[Song] = list(pool)

    def _record(step: str, before: int, after: List[Song]) -> List[Song]:
        stats[step] = {"before": before, "after": len(after), "removed": before - len(after)}
        logger.debug(
            "stage=filter spec=%s step=%s | before=%d after=%d",
            spec.name, step, before, len(after),
        )
        return after

    current = _record(
        "acceptable_genres",
        len(current),
        [s for s in current if matches_acceptable_genres(s, spec.acceptable_genres)],
    )
    current = _record(
        "unacceptable_genres",
        len(current),
        [s for s in current if avoids_unacceptable_genres(s, spec.unacceptable_genres)],
    )
    current = _record(
        "bpm_range",
        len(current),
        [s for s in current if within_bpm_range(s, spec.bpm_thresholds)],
    )
    current = _record(
        "recency_floor",
        len(current),
        [s for s in current if passes_recency_floor(s, spec.min_days_since_last_play, now)],
    )
    current = _record(
        "play_count",
        len(current),
        filter_by_play_count(current, spec.preference_weights.play_count_filter),
    )

    stats["final_size"] = len(current)
    logger.info(
        "stage=filter spec=%s | before=%d after=%d removed=%d",
        spec.name, len(pool), len(current), len(pool) - len(current),
    )
    return FilterResult(eligible=tuple(current), stats=stats)
