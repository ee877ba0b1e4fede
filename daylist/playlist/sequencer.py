"""
Greedy constrained sequencer.

Builds a playlist one slot at a time from the scored, eligible pool:

1. Candidates are the songs not yet placed.
2. Hard constraints narrow the candidates (artist window, album window, BPM
   jump). A constraint that would leave no candidates is relaxed for that
   slot only and the relaxation is counted.
3. Each survivor gets a composite score: its inclusion score plus coherence
   terms weighted by the playlist's QualityWeights.
4. The best composite wins; ties go to the higher inclusion score, then to
   the earlier song in input order.

All mutable state lives in a SequencerState created per call, so sequencing
several specs at once needs no locking.
"""
from __future__ import annotations

import logging
from collections import Counter, deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, FrozenSet, List, Optional, Sequence, Tuple

import numpy as np

from .config import PlaylistSpec, QualityWeights, TransitionRules
from .models import Song
from .scoring import PoolStatistics, ScoredSong

logger = logging.getLogger(__name__)

# Neutral value for a coherence term that cannot be computed
NEUTRAL = 0.5


@dataclass(frozen=True)
class SequencerConfig:
    """Tuning knobs for composite scoring."""

    coherence_scale: float = 25.0
    """Points a perfect coherence term adds at weight 1.0."""

    genre_context: int = 3
    """Number of recently placed songs considered for genre coherence."""

    era_tolerance_years: float = 20.0
    """Year distance at which era cohesion reaches zero."""

    def __post_init__(self):
        if self.coherence_scale < 0:
            raise ValueError(f"coherence_scale must be >= 0, got {self.coherence_scale}")
        if self.genre_context < 1:
            raise ValueError(f"genre_context must be >= 1, got {self.genre_context}")
        if self.era_tolerance_years <= 0:
            raise ValueError(f"era_tolerance_years must be > 0, got {self.era_tolerance_years}")


@dataclass
class SequencerState:
    """Per-call sequencing state. Never shared between calls."""
    artist_window: Deque[str] = field(default_factory=deque)
    album_window: Deque[str] = field(default_factory=deque)
    recent_genres: Deque[FrozenSet[str]] = field(default_factory=deque)
    previous_bpm: Optional[int] = None
    genre_counts: Counter = field(default_factory=Counter)
    decade_counts: Counter = field(default_factory=Counter)
    artist_counts: Counter = field(default_factory=Counter)
    year_sum: int = 0
    year_count: int = 0
    placed: int = 0

    @classmethod
    def for_rules(cls, rules: TransitionRules, config: SequencerConfig) -> "SequencerState":
        return cls(
            artist_window=deque(maxlen=rules.avoid_artist_repeats_within),
            album_window=deque(maxlen=rules.avoid_album_repeats_within),
            recent_genres=deque(maxlen=config.genre_context),
        )

    @property
    def average_year(self) -> Optional[float]:
        if not self.year_count:
            return None
        return self.year_sum / self.year_count

    def place(self, song: Song) -> None:
        self.artist_window.append(song.artist_key)
        self.album_window.append(song.album_key)
        tokens = song.genre_tokens
        self.recent_genres.append(tokens)
        self.genre_counts.update(tokens)
        self.artist_counts[song.artist_key] += 1
        # An unknown tempo breaks the BPM chain
        self.previous_bpm = song.bpm
        if song.year:
            self.year_sum += song.year
            self.year_count += 1
            self.decade_counts[(song.year // 10) * 10] += 1
        self.placed += 1


@dataclass(frozen=True)
class SequenceResult:
    songs: Tuple[Song, ...]
    stats: Dict[str, Any]


def _apply_window(
    candidates: np.ndarray,
    keys: Sequence[str],
    window: Deque[str],
) -> Tuple[np.ndarray, bool]:
    """
    Drop candidates whose key is in the window.

    When that would leave nothing, retry with only the most recent entries
    (down to the previous song alone) before giving up on the window.

    Returns:
        (surviving candidates, whether the window was relaxed)
    """
    recent = list(window)
    if not recent:
        return candidates, False
    for size in range(len(recent), 0, -1):
        blocked = set(recent[-size:])
        mask = np.fromiter((keys[i] not in blocked for i in candidates), dtype=bool, count=candidates.size)
        if mask.any():
            return candidates[mask], size < len(recent)
    return candidates, True


def _apply_bpm_jump(
    candidates: np.ndarray,
    bpms: np.ndarray,
    previous_bpm: Optional[int],
    max_bpm_jump: int,
) -> Tuple[np.ndarray, bool]:
    if previous_bpm is None:
        return candidates, False
    cand_bpm = bpms[candidates]
    # Candidates without BPM cannot violate the jump limit
    mask = np.isnan(cand_bpm) | (np.abs(cand_bpm - previous_bpm) <= max_bpm_jump)
    if mask.any():
        return candidates[mask], False
    return candidates, True


def _coherence_terms(
    candidates: np.ndarray,
    *,
    state: SequencerState,
    songs: Sequence[Song],
    bpms: np.ndarray,
    years: np.ndarray,
    popularity: np.ndarray,
    rules: TransitionRules,
    weights: QualityWeights,
    config: SequencerConfig,
) -> np.ndarray:
    """Weighted sum of coherence terms (each in [0, 1]) for every candidate."""
    total = np.zeros(candidates.size, dtype=float)

    if weights.bpm_transition_smoothness:
        if state.previous_bpm is None:
            smooth = np.full(candidates.size, NEUTRAL)
        else:
            target = state.previous_bpm + rules.preferred_bpm_change
            deviation = np.abs(bpms[candidates] - target) / max(rules.max_bpm_jump, 1)
            smooth = 1.0 - np.minimum(deviation, 1.0)
            smooth = np.where(np.isnan(smooth), NEUTRAL, smooth)
        total += weights.bpm_transition_smoothness * smooth

    if weights.genre_coherence and state.placed:
        genre = np.zeros(candidates.size, dtype=float)
        recent = list(state.recent_genres)
        for pos, idx in enumerate(candidates):
            tokens = songs[idx].genre_tokens
            if not tokens:
                continue
            shared = sum(1 for placed in recent if tokens & placed) / len(recent)
            frequency = max(state.genre_counts[t] for t in tokens) / state.placed
            genre[pos] = 0.5 * shared + 0.5 * frequency
        total += weights.genre_coherence * genre

    if weights.era_cohesion:
        average = state.average_year
        if average is None:
            era = np.full(candidates.size, NEUTRAL)
        else:
            distance = np.abs(years[candidates] - average) / config.era_tolerance_years
            era = 1.0 - np.minimum(distance, 1.0)
            era = np.where(np.isnan(era), NEUTRAL, era)
        total += weights.era_cohesion * era

    if weights.popularity_balance:
        total += weights.popularity_balance * popularity[candidates]

    if weights.artist_diversity:
        fresh = np.fromiter(
            (0.0 if songs[i].artist_key in state.artist_counts else 1.0 for i in candidates),
            dtype=float,
            count=candidates.size,
        )
        total += weights.artist_diversity * fresh

    return total


def _count_violations(songs: Sequence[Song], rules: TransitionRules) -> Dict[str, int]:
    adjacency = 0
    bpm_jumps = 0
    for prev, cur in zip(songs, songs[1:]):
        if prev.artist_key == cur.artist_key:
            adjacency += 1
        if prev.bpm is not None and cur.bpm is not None and abs(cur.bpm - prev.bpm) > rules.max_bpm_jump:
            bpm_jumps += 1
    return {"adjacent_artist_repeats": adjacency, "bpm_jump_violations": bpm_jumps}


def build_sequence(
    scored_pool: Sequence[ScoredSong],
    spec: PlaylistSpec,
    config: Optional[SequencerConfig] = None,
) -> SequenceResult:
    """
    Select and order songs for one playlist.

    Args:
        scored_pool: Eligible songs with inclusion scores, in input order
        spec: Playlist definition
        config: Composite scoring configuration

    Returns:
        SequenceResult with min(target_length, len(scored_pool)) songs and
        relaxation counters
    """
    config = config or SequencerConfig()
    rules = spec.transition_rules
    weights = spec.quality_weights

    songs = [item.song for item in scored_pool]
    n = len(songs)
    target = min(spec.target_length, n)

    base = np.array([item.score for item in scored_pool], dtype=float)
    bpms = np.array([s.bpm if s.bpm is not None else np.nan for s in songs], dtype=float)
    years = np.array([s.year if s.year else np.nan for s in songs], dtype=float)
    artist_keys = [s.artist_key for s in songs]
    album_keys = [s.album_key for s in songs]

    pool_stats = PoolStatistics.from_songs(songs)
    normalized = np.array([pool_stats.normalized_play_count(s.play_count) for s in songs], dtype=float)
    popularity = 1.0 - np.abs(normalized - pool_stats.median_normalized_play_count)

    state = SequencerState.for_rules(rules, config)
    available = np.ones(n, dtype=bool)
    order: List[int] = []
    relaxations = {"artist": 0, "album": 0, "bpm": 0}

    for slot in range(target):
        candidates = np.flatnonzero(available)

        candidates, relaxed = _apply_window(candidates, artist_keys, state.artist_window)
        if relaxed:
            relaxations["artist"] += 1
            logger.debug("spec=%s slot=%d: artist window relaxed", spec.name, slot)

        candidates, relaxed = _apply_window(candidates, album_keys, state.album_window)
        if relaxed:
            relaxations["album"] += 1
            logger.debug("spec=%s slot=%d: album window relaxed", spec.name, slot)

        candidates, relaxed = _apply_bpm_jump(candidates, bpms, state.previous_bpm, rules.max_bpm_jump)
        if relaxed:
            relaxations["bpm"] += 1
            logger.debug("spec=%s slot=%d: BPM jump limit relaxed", spec.name, slot)

        composite = base[candidates] + config.coherence_scale * _coherence_terms(
            candidates,
            state=state,
            songs=songs,
            bpms=bpms,
            years=years,
            popularity=popularity,
            rules=rules,
            weights=weights,
            config=config,
        )

        # Deterministic tie-breaking: composite, then base score, then input order
        ranking = np.lexsort((candidates, -base[candidates], -composite))
        choice = int(candidates[ranking[0]])

        available[choice] = False
        order.append(choice)
        state.place(songs[choice])

    placed = tuple(songs[i] for i in order)
    stats: Dict[str, Any] = {
        "eligible": n,
        "requested": spec.target_length,
        "placed": len(placed),
        "artist_relaxations": relaxations["artist"],
        "album_relaxations": relaxations["album"],
        "bpm_relaxations": relaxations["bpm"],
        "distinct_artists": len(state.artist_counts),
        "decade_counts": dict(sorted(state.decade_counts.items())),
    }
    stats.update(_count_violations(placed, rules))

    logger.info(
        "stage=sequence spec=%s | placed=%d target=%d eligible=%d | relaxed artist=%d album=%d bpm=%d",
        spec.name,
        len(placed),
        spec.target_length,
        n,
        relaxations["artist"],
        relaxations["album"],
        relaxations["bpm"],
    )
    return SequenceResult(songs=placed, stats=stats)


def sequence(
    scored_pool: Sequence[ScoredSong],
    spec: PlaylistSpec,
    config: Optional[SequencerConfig] = None,
) -> List[Song]:
    """Ordered songs for one playlist; see build_sequence for diagnostics."""
    return list(build_sequence(scored_pool, spec, config).songs)
