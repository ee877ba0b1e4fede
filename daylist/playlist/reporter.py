"""
Playlist quality reporting.

Diagnostic only: nothing here feeds back into selection or ordering. The
report combines four component scores (0-100 each) with fixed weights:

- artist repeats within the playlist's artist window (fewer is better)
- BPM jumps above max_bpm_jump (fewer is better)
- genre spread compared to the playlist's genre_coherence target
- era spread compared to the playlist's era_cohesion target
"""
from __future__ import annotations

import logging
import math
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from .config import PlaylistSpec, QualityWeights, TransitionRules
from .models import Song

logger = logging.getLogger(__name__)

COMPONENT_WEIGHTS: Dict[str, float] = {
    "artist_repeats": 0.35,
    "bpm_jumps": 0.30,
    "genre_spread": 0.20,
    "era_spread": 0.15,
}
TOP_GENRES = 5
# Component value when there is no data to judge
NEUTRAL_COMPONENT = 50.0


@dataclass(frozen=True)
class PlaylistStats:
    song_count: int = 0
    total_duration: int = 0
    average_bpm: Optional[float] = None
    bpm_range: Optional[Tuple[int, int]] = None
    unique_artists: int = 0
    year_range: Optional[Tuple[int, int]] = None
    top_genres: Tuple[Tuple[str, int], ...] = ()


@dataclass(frozen=True)
class PlaylistReport:
    """
    Quality report for a finished playlist.

    Attributes:
        score: Weighted quality score, 0-100
        stats: Descriptive statistics
        components: Component scores, 0-100 each
    """
    score: float
    stats: PlaylistStats
    components: Dict[str, float] = field(default_factory=dict)


def genre_distribution(songs: Sequence[Song]) -> Counter:
    """Genre token frequencies in first-seen order."""
    counts: Counter = Counter()
    for song in songs:
        # Sorted so tokens of one song are counted in a stable order
        for token in sorted(song.genre_tokens):
            counts[token] += 1
    return counts


def genre_coherence(songs: Sequence[Song]) -> Optional[float]:
    """1 - normalized Shannon entropy of the genre distribution; None without genres."""
    counts = genre_distribution(songs)
    if not counts:
        return None
    if len(counts) == 1:
        return 1.0
    freqs = np.array(list(counts.values()), dtype=float)
    probs = freqs / freqs.sum()
    entropy = float(-(probs * np.log(probs)).sum())
    return 1.0 - entropy / math.log(len(counts))


def era_cohesion(songs: Sequence[Song]) -> Optional[float]:
    """Map the release-year span to [0, 1]; a tight span scores high."""
    years = [s.year for s in songs if s.year]
    if not years:
        return None
    span = max(years) - min(years)
    if span <= 2:
        return 1.0
    if span <= 10:
        return 0.8 - (span - 2) / 8 * 0.3
    if span <= 20:
        return 0.5 - (span - 10) / 10 * 0.3
    return 0.2 * math.exp(-(span - 20) / 20)


def count_artist_repeats(songs: Sequence[Song], window: int) -> int:
    """Songs whose artist already appeared within the previous ``window`` songs."""
    window = max(window, 1)
    violations = 0
    for i, song in enumerate(songs):
        recent = songs[max(0, i - window):i]
        if any(prev.artist_key == song.artist_key for prev in recent):
            violations += 1
    return violations


def count_bpm_jumps(songs: Sequence[Song], max_bpm_jump: int) -> Tuple[int, int]:
    """(violations, adjacent pairs with known BPM)."""
    violations = 0
    pairs = 0
    for prev, cur in zip(songs, songs[1:]):
        if prev.bpm is None or cur.bpm is None:
            continue
        pairs += 1
        if abs(cur.bpm - prev.bpm) > max_bpm_jump:
            violations += 1
    return violations, pairs


def compute_stats(songs: Sequence[Song]) -> PlaylistStats:
    if not songs:
        return PlaylistStats()
    bpms = [s.bpm for s in songs if s.bpm is not None]
    years = [s.year for s in songs if s.year]
    return PlaylistStats(
        song_count=len(songs),
        total_duration=sum(s.duration or 0 for s in songs),
        average_bpm=float(np.mean(bpms)) if bpms else None,
        bpm_range=(min(bpms), max(bpms)) if bpms else None,
        unique_artists=len({s.artist_key for s in songs}),
        year_range=(min(years), max(years)) if years else None,
        top_genres=tuple(genre_distribution(songs).most_common(TOP_GENRES)),
    )


def _match_target(observed: Optional[float], target: float) -> float:
    if observed is None:
        return NEUTRAL_COMPONENT
    return 100.0 * (1.0 - min(abs(observed - target), 1.0))


def report(songs: Sequence[Song], spec: Optional[PlaylistSpec] = None) -> PlaylistReport:
    """
    Build a quality report for a finished playlist.

    Args:
        songs: Playlist in order
        spec: Spec the playlist was built from (defaults apply when omitted)

    Returns:
        PlaylistReport; an empty playlist scores 0
    """
    songs = list(songs)
    stats = compute_stats(songs)
    if not songs:
        return PlaylistReport(score=0.0, stats=stats, components={k: 0.0 for k in COMPONENT_WEIGHTS})

    rules = spec.transition_rules if spec else TransitionRules()
    targets = spec.quality_weights if spec else QualityWeights()
    transitions = max(len(songs) - 1, 1)

    artist_violations = count_artist_repeats(songs, rules.avoid_artist_repeats_within)
    bpm_violations, bpm_pairs = count_bpm_jumps(songs, rules.max_bpm_jump)

    components = {
        "artist_repeats": 100.0 * (1.0 - artist_violations / transitions),
        "bpm_jumps": 100.0 * (1.0 - bpm_violations / bpm_pairs) if bpm_pairs else 100.0,
        "genre_spread": _match_target(genre_coherence(songs), targets.genre_coherence),
        "era_spread": _match_target(era_cohesion(songs), targets.era_cohesion),
    }
    components = {k: max(0.0, min(100.0, v)) for k, v in components.items()}
    total = sum(COMPONENT_WEIGHTS[k] * v for k, v in components.items())

    return PlaylistReport(score=round(total, 1), stats=stats, components=components)


def format_duration(seconds: int) -> str:
    """Render seconds as e.g. "1h 12m" or "47m 05s"."""
    minutes, secs = divmod(int(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}h {minutes:02d}m"
    return f"{minutes}m {secs:02d}s"


def format_report(playlist_report: PlaylistReport, title: Optional[str] = None) -> List[str]:
    """Render a report as log lines."""
    stats = playlist_report.stats
    lines: List[str] = []
    if title:
        lines.append(f"Playlist: {title}")
    lines.append(f"  Quality score: {playlist_report.score:.1f}/100")
    lines.append(f"  Songs: {stats.song_count} ({format_duration(stats.total_duration)})")
    lines.append(f"  Unique artists: {stats.unique_artists}")
    if stats.average_bpm is not None and stats.bpm_range:
        lines.append(
            f"  BPM: avg {stats.average_bpm:.0f} (range {stats.bpm_range[0]}-{stats.bpm_range[1]})"
        )
    if stats.year_range:
        lines.append(f"  Years: {stats.year_range[0]}-{stats.year_range[1]}")
    if stats.top_genres:
        genres = ", ".join(f"{g} ({c})" for g, c in stats.top_genres)
        lines.append(f"  Top genres: {genres}")
    parts = ", ".join(f"{k}={v:.0f}" for k, v in playlist_report.components.items())
    lines.append(f"  Components: {parts}")
    return lines
