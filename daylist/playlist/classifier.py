"""
Content classifier: decides whether a candidate track is a genuine song.

Interludes, spoken word, ambient filler and fragments are common in
album rips and ruin a playlist's flow. Classification is a pure function of
the title and duration, so the same input always gets the same verdict.
"""
from __future__ import annotations

import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .models import Song

logger = logging.getLogger(__name__)

MIN_SONG_DURATION_SECONDS = 30
MAX_SONG_DURATION_SECONDS = 15 * 60
# "(instrumental)" tracks shorter than this are sketches
SHORT_INSTRUMENTAL_SECONDS = 90


class ExclusionReason(str, Enum):
    INTERLUDE = "interlude"
    FRAGMENT = "fragment"
    SPOKEN = "spoken"
    AMBIENT = "ambient"
    NUMERIC_TITLE = "numeric_title"
    SHORT_INSTRUMENTAL = "short_instrumental"
    TOO_SHORT = "too_short"
    TOO_LONG = "too_long"


def _word_pattern(markers: Sequence[str]) -> re.Pattern:
    alternatives = "|".join(re.escape(m).replace(r"\ ", r"\s+") for m in markers)
    return re.compile(rf"\b(?:{alternatives})\b", re.IGNORECASE)


_TITLE_RULES: Tuple[Tuple[ExclusionReason, re.Pattern], ...] = (
    (ExclusionReason.INTERLUDE, _word_pattern(
        ["interlude", "intro", "outro", "bridge", "transition", "prelude", "segue"]
    )),
    (ExclusionReason.FRAGMENT, _word_pattern(["sketch", "fragment", "snippet", "bits"])),
    (ExclusionReason.SPOKEN, _word_pattern(["monologue", "dialogue", "speech", "interview"])),
    (ExclusionReason.AMBIENT, _word_pattern([
        "atmosphere", "soundscape", "field recording", "rain", "ocean",
        "silence", "test", "announcement",
    ])),
)

# Digits with "." or "-" separators only, or a bare placeholder like "Track 05"
_NUMERIC_TITLE = re.compile(r"^(?=.*\d)[\d\s.\-]+$|^track\s*\d+$", re.IGNORECASE)
_INSTRUMENTAL_TAG = re.compile(r"\(\s*instrumental\s*\)", re.IGNORECASE)


@dataclass(frozen=True)
class Classification:
    is_song: bool
    reason: Optional[ExclusionReason] = None


@dataclass(frozen=True)
class ClassificationResult:
    """
    Result of classifying a candidate pool.

    Attributes:
        songs: Tracks classified as songs, in input order
        excluded: Tracks rejected, in input order
        stats: Counts per exclusion reason plus totals
    """
    songs: Tuple[Song, ...]
    excluded: Tuple[Song, ...]
    stats: Dict[str, int] = field(default_factory=dict)


def classify(song: Song) -> Classification:
    """
    Classify one track.

    Args:
        song: Candidate track

    Returns:
        Classification with the first matching exclusion reason, if any
    """
    title = (song.title or "").strip()
    duration = song.duration

    if duration is not None:
        if duration < MIN_SONG_DURATION_SECONDS:
            return Classification(False, ExclusionReason.TOO_SHORT)
        if duration > MAX_SONG_DURATION_SECONDS:
            return Classification(False, ExclusionReason.TOO_LONG)

    if title and _NUMERIC_TITLE.match(title):
        return Classification(False, ExclusionReason.NUMERIC_TITLE)

    for reason, pattern in _TITLE_RULES:
        if pattern.search(title):
            return Classification(False, reason)

    if (
        _INSTRUMENTAL_TAG.search(title)
        and duration is not None
        and duration < SHORT_INSTRUMENTAL_SECONDS
    ):
        return Classification(False, ExclusionReason.SHORT_INSTRUMENTAL)

    return Classification(True)


def is_actual_song(song: Song) -> bool:
    return classify(song).is_song


def classify_pool(songs: Iterable[Song]) -> ClassificationResult:
    """
    Split a candidate pool into songs and non-songs.

    Exclusions are summarized at INFO; individual tracks are only logged at
    DEBUG.
    """
    kept: List[Song] = []
    excluded: List[Song] = []
    reasons: Counter = Counter()

    for song in songs:
        verdict = classify(song)
        if verdict.is_song:
            kept.append(song)
            continue
        excluded.append(song)
        reasons[verdict.reason.value] += 1
        logger.debug("Excluded non-song: %s - %s (%s)", song.artist, song.title, verdict.reason.value)

    stats: Dict[str, int] = {
        "before": len(kept) + len(excluded),
        "after": len(kept),
        "removed": len(excluded),
    }
    stats.update(sorted(reasons.items()))

    if excluded:
        logger.info(
            "stage=classify | before=%d after=%d removed=%d | %s",
            stats["before"],
            stats["after"],
            stats["removed"],
            ", ".join(f"{k}={v}" for k, v in sorted(reasons.items())),
        )
    else:
        logger.info("stage=classify | before=%d after=%d removed=0", stats["before"], stats["after"])

    return ClassificationResult(songs=tuple(kept), excluded=tuple(excluded), stats=stats)
