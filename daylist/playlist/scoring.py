"""
Inclusion scoring for eligible songs.

The score is a priority signal for the sequencer: it decides which songs are
preferred, never which songs are allowed. All terms are additive and each one
drops out when its weight is zero:

    score = starred_boost * starred
          + play_count_weight * (+/-) normalized_play_count
          - recency_penalty_weight * recency_factor
          + jitter
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Sequence, Tuple

import numpy as np

from .config import PlaylistSpec
from .models import Song

logger = logging.getLogger(__name__)

# Jitter is uniform in [0, randomness_factor * JITTER_AMPLITUDE)
JITTER_AMPLITUDE = 10.0
# Days for the recency factor to fall to 1/e
RECENCY_DECAY_DAYS = 7.0


@dataclass(frozen=True)
class PoolStatistics:
    """Play-count statistics of the eligible pool."""
    max_play_count: int = 0
    min_play_count: int = 0
    median_normalized_play_count: float = 0.0

    @property
    def has_play_count_variance(self) -> bool:
        return self.max_play_count > self.min_play_count

    def normalized_play_count(self, play_count: int) -> float:
        """Play count relative to the pool maximum, 0.0 when counts do not vary."""
        if not self.has_play_count_variance or self.max_play_count <= 0:
            return 0.0
        return play_count / self.max_play_count

    @classmethod
    def from_songs(cls, songs: Sequence[Song]) -> "PoolStatistics":
        if not songs:
            return cls()
        counts = np.array([s.play_count for s in songs], dtype=float)
        max_count = int(counts.max())
        min_count = int(counts.min())
        if max_count > min_count and max_count > 0:
            median = float(np.median(counts / max_count))
        else:
            median = 0.0
        return cls(
            max_play_count=max_count,
            min_play_count=min_count,
            median_normalized_play_count=median,
        )


@dataclass(frozen=True)
class ScoredSong:
    song: Song
    score: float


@dataclass(frozen=True)
class ScoringResult:
    """
    Scored pool.

    Attributes:
        scored: ScoredSong entries in input order
        pool_statistics: Statistics the scores were normalized against
        stats: Diagnostics (score range, jitter amplitude)
    """
    scored: Tuple[ScoredSong, ...]
    pool_statistics: PoolStatistics
    stats: Dict[str, Any] = field(default_factory=dict)


def recency_factor(song: Song, now: datetime) -> float:
    """1.0 for a song played just now, decaying toward 0; never played is 0."""
    days = song.days_since_played(now)
    if days is None:
        return 0.0
    return math.exp(-days / RECENCY_DECAY_DAYS)


def score(
    song: Song,
    spec: PlaylistSpec,
    pool_statistics: PoolStatistics,
    *,
    now: datetime,
    jitter: float = 0.0,
) -> float:
    """
    Compute the inclusion score for one song.

    Args:
        song: Song to score
        spec: Playlist definition holding the preference weights
        pool_statistics: Statistics of the eligible pool
        now: Reference time for the recency term
        jitter: Pre-drawn random jitter for this song

    Returns:
        Score, higher is more desirable
    """
    weights = spec.preference_weights
    total = 0.0

    if song.starred and weights.starred_boost:
        total += weights.starred_boost

    if weights.play_count_weight:
        normalized = pool_statistics.normalized_play_count(song.play_count)
        if weights.discovery_mode:
            normalized = -normalized
        total += weights.play_count_weight * normalized

    if weights.recency_penalty_weight:
        total -= weights.recency_penalty_weight * recency_factor(song, now)

    return total + jitter


def score_pool(
    songs: Sequence[Song],
    spec: PlaylistSpec,
    *,
    now: datetime,
    rng: Optional[np.random.Generator] = None,
) -> ScoringResult:
    """
    Score every song in the eligible pool.

    Jitter is drawn from ``rng`` once per song in pool order, so the same
    generator state always produces the same scores.

    Args:
        songs: Eligible songs
        spec: Playlist definition
        now: Reference time
        rng: Random source owned by this generation call

    Returns:
        ScoringResult in input order
    """
    pool_statistics = PoolStatistics.from_songs(songs)
    randomness = spec.preference_weights.randomness_factor

    if randomness > 0 and songs:
        if rng is None:
            rng = np.random.default_rng()
        jitters = rng.random(len(songs)) * randomness * JITTER_AMPLITUDE
    else:
        jitters = np.zeros(len(songs))

    scored = tuple(
        ScoredSong(song=s, score=score(s, spec, pool_statistics, now=now, jitter=float(j)))
        for s, j in zip(songs, jitters)
    )

    stats: Dict[str, Any] = {
        "scored": len(scored),
        "jitter_amplitude": randomness * JITTER_AMPLITUDE,
        "play_count_variance": pool_statistics.has_play_count_variance,
    }
    if scored:
        values = [item.score for item in scored]
        stats["score_min"] = float(min(values))
        stats["score_max"] = float(max(values))
        logger.debug(
            "stage=score spec=%s | n=%d min=%.2f max=%.2f jitter_amp=%.2f",
            spec.name, len(scored), stats["score_min"], stats["score_max"], stats["jitter_amplitude"],
        )

    return ScoringResult(scored=scored, pool_statistics=pool_statistics, stats=stats)
