"""
Playlist definition types and parsing.

A PlaylistSpec is loaded once from the playlists file and never mutated.
Every dataclass validates itself in ``__post_init__`` and raises
ConfigurationError, so a spec that exists is a spec that is usable.
"""
from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Union

import yaml

from ..string_utils import normalize_genre_set
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class PercentileDirection(str, Enum):
    TOP = "top"
    BOTTOM = "bottom"


class ThresholdOperator(str, Enum):
    ABOVE = "above"
    BELOW = "below"
    AT_LEAST = "at_least"
    AT_MOST = "at_most"


@dataclass(frozen=True)
class ExactPlayCount:
    """Keep songs played exactly ``count`` times (None means never played)."""
    count: Optional[int] = None

    def __post_init__(self):
        if self.count is not None and self.count < 0:
            raise ConfigurationError(f"exact play count must be >= 0, got {self.count}")


@dataclass(frozen=True)
class PlayCountRange:
    """Keep songs whose play count lies in [min, max]; a missing bound is open."""
    min: Optional[int] = None
    max: Optional[int] = None

    def __post_init__(self):
        if self.min is not None and self.min < 0:
            raise ConfigurationError(f"play count range min must be >= 0, got {self.min}")
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ConfigurationError(
                f"play count range min ({self.min}) is greater than max ({self.max})"
            )


@dataclass(frozen=True)
class PlayCountPercentile:
    """Keep the top or bottom ``fraction`` of the pool by play count."""
    direction: PercentileDirection = PercentileDirection.TOP
    fraction: float = 0.2

    def __post_init__(self):
        if not (0.0 <= self.fraction <= 1.0):
            raise ConfigurationError(f"percentile fraction must be in [0,1], got {self.fraction}")


@dataclass(frozen=True)
class PlayCountThreshold:
    """Keep songs whose play count compares against ``count``."""
    operator: ThresholdOperator
    count: int

    def __post_init__(self):
        if self.count < 0:
            raise ConfigurationError(f"threshold count must be >= 0, got {self.count}")


PlayCountFilter = Union[ExactPlayCount, PlayCountRange, PlayCountPercentile, PlayCountThreshold]


@dataclass(frozen=True)
class BpmRange:
    min_bpm: int
    max_bpm: int

    def __post_init__(self):
        if self.min_bpm < 0 or self.max_bpm < 0:
            raise ConfigurationError(
                f"BPM thresholds must be >= 0, got {self.min_bpm}-{self.max_bpm}"
            )
        if self.min_bpm > self.max_bpm:
            raise ConfigurationError(
                f"BPM min ({self.min_bpm}) is greater than max ({self.max_bpm})"
            )

    def contains(self, bpm: int) -> bool:
        return self.min_bpm <= bpm <= self.max_bpm


@dataclass(frozen=True)
class PreferenceWeights:
    """Weights that bias which songs get included."""

    starred_boost: float = 100.0
    """Added to the score of starred songs."""

    play_count_weight: float = 20.0
    """Multiplier for the pool-normalized play count."""

    recency_penalty_weight: float = 5.0
    """Multiplier for the recency penalty."""

    randomness_factor: float = 0.2
    """Scales the random jitter, 0.0 disables it."""

    discovery_mode: bool = False
    """Favor rarely played songs instead of popular ones."""

    play_count_filter: Optional[PlayCountFilter] = None

    def __post_init__(self):
        if self.starred_boost < 0:
            raise ConfigurationError(f"starred_boost must be >= 0, got {self.starred_boost}")
        if not (0.0 <= self.randomness_factor <= 1.0):
            raise ConfigurationError(
                f"randomness_factor must be in [0,1], got {self.randomness_factor}"
            )
        for name in ("play_count_weight", "recency_penalty_weight"):
            value = getattr(self, name)
            if not math.isfinite(value):
                raise ConfigurationError(f"{name} must be finite, got {value}")


@dataclass(frozen=True)
class QualityWeights:
    """Weights that bias where a song is placed in the sequence."""
    artist_diversity: float = 0.30
    bpm_transition_smoothness: float = 0.25
    genre_coherence: float = 0.20
    popularity_balance: float = 0.25
    era_cohesion: float = 0.20

    def __post_init__(self):
        for name in (
            "artist_diversity",
            "bpm_transition_smoothness",
            "genre_coherence",
            "popularity_balance",
            "era_cohesion",
        ):
            value = getattr(self, name)
            if not (0.0 <= value <= 1.0):
                raise ConfigurationError(f"quality weight {name} must be in [0,1], got {value}")


@dataclass(frozen=True)
class TransitionRules:
    max_bpm_jump: int = 20
    preferred_bpm_change: int = 0
    avoid_artist_repeats_within: int = 3
    avoid_album_repeats_within: int = 0

    def __post_init__(self):
        if self.max_bpm_jump < 0:
            raise ConfigurationError(f"max_bpm_jump must be >= 0, got {self.max_bpm_jump}")
        if self.avoid_artist_repeats_within < 0:
            raise ConfigurationError(
                f"avoid_artist_repeats_within must be >= 0, got {self.avoid_artist_repeats_within}"
            )
        if self.avoid_album_repeats_within < 0:
            raise ConfigurationError(
                f"avoid_album_repeats_within must be >= 0, got {self.avoid_album_repeats_within}"
            )


@dataclass(frozen=True)
class PlaylistSpec:
    """
    Declarative description of one playlist.

    Attributes:
        name: Playlist name (also the default base name for cleanup)
        target_length: Number of songs wanted
        acceptable_genres: Allowed genre tokens, None means all
        unacceptable_genres: Excluded genre tokens
        bpm_thresholds: Allowed BPM range
        min_days_since_last_play: Recency floor in days
        preference_weights: Inclusion weights
        quality_weights: Sequencing weights
        transition_rules: Hard transition constraints
        base_name: Prefix matched when replacing previous versions
        genre_suffix: Number of top genres (0-2) appended to the display name
    """
    name: str
    target_length: int = 20
    acceptable_genres: Optional[FrozenSet[str]] = None
    unacceptable_genres: Optional[FrozenSet[str]] = None
    bpm_thresholds: Optional[BpmRange] = None
    min_days_since_last_play: Optional[float] = None
    preference_weights: PreferenceWeights = field(default_factory=PreferenceWeights)
    quality_weights: QualityWeights = field(default_factory=QualityWeights)
    transition_rules: TransitionRules = field(default_factory=TransitionRules)
    base_name: Optional[str] = None
    genre_suffix: int = 0

    def __post_init__(self):
        if not self.name or not self.name.strip():
            raise ConfigurationError("playlist name must not be empty")
        if self.target_length < 1:
            raise ConfigurationError(
                f"target_length must be >= 1, got {self.target_length}", self.name
            )
        if self.min_days_since_last_play is not None and self.min_days_since_last_play < 0:
            raise ConfigurationError(
                f"min_days_since_last_play must be >= 0, got {self.min_days_since_last_play}",
                self.name,
            )
        if self.genre_suffix not in (0, 1, 2):
            raise ConfigurationError(f"genre_suffix must be 0, 1 or 2, got {self.genre_suffix}", self.name)
        # Normalize genre collections so callers may pass plain lists
        object.__setattr__(self, "acceptable_genres", normalize_genre_set(self.acceptable_genres))
        object.__setattr__(self, "unacceptable_genres", normalize_genre_set(self.unacceptable_genres))

    @property
    def cleanup_base_name(self) -> str:
        return (self.base_name or self.name).strip()


def parse_play_count_filter(data: Optional[Mapping[str, Any]]) -> Optional[PlayCountFilter]:
    """
    Parse a ``play_count_filter`` mapping into its variant.

    Args:
        data: Mapping with a ``type`` key (exact, range, percentile, threshold)

    Returns:
        Filter variant or None when not configured
    """
    if data is None:
        return None
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"play_count_filter must be a mapping, got {type(data).__name__}")

    kind = str(data.get("type", "")).strip().lower()
    if kind == "exact":
        return ExactPlayCount(count=_opt_int(data.get("count"), "count"))
    if kind == "range":
        return PlayCountRange(min=_opt_int(data.get("min"), "min"), max=_opt_int(data.get("max"), "max"))
    if kind == "percentile":
        fraction = data.get("fraction", data.get("percent"))
        if fraction is None:
            raise ConfigurationError("percentile play_count_filter requires 'fraction'")
        return PlayCountPercentile(
            direction=_enum_value(PercentileDirection, data.get("direction", "top"), "direction"),
            fraction=_as_float(fraction, "fraction"),
        )
    if kind == "threshold":
        count = _opt_int(data.get("count"), "count")
        if count is None:
            raise ConfigurationError("threshold play_count_filter requires 'count'")
        return PlayCountThreshold(
            operator=_enum_value(ThresholdOperator, data.get("operator"), "operator"),
            count=count,
        )
    raise ConfigurationError(f"unknown play_count_filter type: {data.get('type')!r}")


def parse_playlist_spec(entry: Mapping[str, Any]) -> PlaylistSpec:
    """
    Validate one raw playlist entry into a PlaylistSpec.

    Raises:
        ConfigurationError: The entry is malformed or contradictory
    """
    if not isinstance(entry, Mapping):
        raise ConfigurationError(f"playlist entry must be a mapping, got {type(entry).__name__}")

    name = str(entry.get("name") or "").strip()
    try:
        prefs = dict(entry.get("preference_weights") or {})
        play_count_filter = parse_play_count_filter(prefs.pop("play_count_filter", None))
        preference_weights = PreferenceWeights(
            starred_boost=_as_float(prefs.get("starred_boost", 100.0), "starred_boost"),
            play_count_weight=_as_float(prefs.get("play_count_weight", 20.0), "play_count_weight"),
            recency_penalty_weight=_as_float(
                prefs.get("recency_penalty_weight", 5.0), "recency_penalty_weight"
            ),
            randomness_factor=_as_float(prefs.get("randomness_factor", 0.2), "randomness_factor"),
            discovery_mode=bool(prefs.get("discovery_mode", False)),
            play_count_filter=play_count_filter,
        )

        quality = entry.get("quality_weights") or {}
        quality_weights = QualityWeights(**{
            key: _as_float(value, key) for key, value in quality.items()
            if key in QualityWeights.__dataclass_fields__
        })

        rules = entry.get("transition_rules") or {}
        transition_rules = TransitionRules(**{
            key: _opt_int(value, key) for key, value in rules.items()
            if key in TransitionRules.__dataclass_fields__ and value is not None
        })

        bpm = entry.get("bpm_thresholds")
        bpm_thresholds = None
        if bpm:
            min_bpm = _opt_int(bpm.get("min_bpm"), "min_bpm")
            max_bpm = _opt_int(bpm.get("max_bpm"), "max_bpm")
            if min_bpm is None or max_bpm is None:
                raise ConfigurationError("bpm_thresholds requires both min_bpm and max_bpm")
            bpm_thresholds = BpmRange(min_bpm=min_bpm, max_bpm=max_bpm)

        min_days = entry.get("min_days_since_last_play")
        target_length = _opt_int(entry.get("target_length"), "target_length")
        genre_suffix = _opt_int(entry.get("genre_suffix"), "genre_suffix")
        return PlaylistSpec(
            name=name,
            target_length=20 if target_length is None else target_length,
            acceptable_genres=entry.get("acceptable_genres"),
            unacceptable_genres=entry.get("unacceptable_genres"),
            bpm_thresholds=bpm_thresholds,
            min_days_since_last_play=None if min_days is None else _as_float(min_days, "min_days_since_last_play"),
            preference_weights=preference_weights,
            quality_weights=quality_weights,
            transition_rules=transition_rules,
            base_name=entry.get("base_name"),
            genre_suffix=genre_suffix or 0,
        )
    except ConfigurationError as e:
        if e.spec_name or not name:
            raise
        raise ConfigurationError(str(e), name) from e


def load_playlist_entries(path: Union[str, Path]) -> List[Dict[str, Any]]:
    """
    Read raw playlist entries from a JSON or YAML file.

    The file holds either a list of entries or a mapping with a
    ``playlists`` list. Entries are returned unparsed so that a malformed
    entry only fails its own generation.

    Raises:
        FileNotFoundError: The file does not exist
        ConfigurationError: The file is not a list of playlist entries
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Playlist configuration file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        try:
            if path.suffix.lower() == ".json":
                data = json.load(f)
            else:
                data = yaml.safe_load(f)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Cannot parse {path}: {e}") from e

    if isinstance(data, Mapping):
        data = data.get("playlists")
    if not isinstance(data, list):
        raise ConfigurationError(f"{path} must contain a list of playlists")

    logger.info("Loaded %d playlist entries from %s", len(data), path)
    return data


def _as_float(value: Any, name: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from None


def _opt_int(value: Any, name: str) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from None
    if not number.is_integer():
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    return int(number)


def _enum_value(enum_cls, value: Any, name: str):
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ConfigurationError(f"{name} must be one of {allowed}, got {value!r}") from None
