"""
End-to-end playlist generation.

generate_playlist() runs one spec through filter -> score -> sequence ->
report against an already classified pool. generate_playlists() classifies
the candidate pool once and then runs every spec independently: a spec that
fails (bad configuration or an unexpected error) is recorded as FAILED and the
remaining specs still run.
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from ..logging_utils import format_count, stage_timer
from .classifier import classify_pool
from .config import PlaylistSpec, parse_playlist_spec
from .exceptions import ConfigurationError, EmptyPoolError, GenerationIssue, PartialFulfillment
from .filtering import filter_pool
from .models import Song
from .naming import suggest_display_name
from .reporter import PlaylistReport, report
from .scoring import score_pool
from .sequencer import SequencerConfig, build_sequence

logger = logging.getLogger(__name__)

SpecEntry = Union[PlaylistSpec, Mapping[str, Any]]


class GenerationStatus(str, Enum):
    COMPLETE = "complete"
    PARTIAL = "partial"
    EMPTY = "empty"
    FAILED = "failed"


@dataclass(frozen=True)
class GenerationResult:
    """
    Outcome of generating one playlist.

    Attributes:
        spec_name: Name from the playlist definition (or the raw entry when parsing failed)
        status: COMPLETE, PARTIAL, EMPTY or FAILED
        songs: Ordered songs
        display_name: Suggested playlist name
        base_name: Name pattern whose previous versions should be replaced
        report: Quality report (None when generation failed)
        issue: Non-fatal condition for PARTIAL/EMPTY results
        error: Error message for FAILED results
        stats: Per-stage diagnostics
    """
    spec_name: str
    status: GenerationStatus
    songs: Tuple[Song, ...] = ()
    display_name: str = ""
    base_name: str = ""
    report: Optional[PlaylistReport] = None
    issue: Optional[GenerationIssue] = None
    error: Optional[str] = None
    stats: Dict[str, Any] = field(default_factory=dict)

    @property
    def song_ids(self) -> List[str]:
        return [song.id for song in self.songs]

    @property
    def succeeded(self) -> bool:
        return self.status in (GenerationStatus.COMPLETE, GenerationStatus.PARTIAL)


def generate_playlist(
    pool: Sequence[Song],
    spec: PlaylistSpec,
    *,
    now: Optional[datetime] = None,
    rng: Optional[np.random.Generator] = None,
    sequencer_config: Optional[SequencerConfig] = None,
) -> GenerationResult:
    """
    Generate one playlist from a classified pool.

    Args:
        pool: Songs that passed classification
        spec: Playlist definition
        now: Reference time for recency (defaults to the current UTC time)
        rng: Random source owned by this call
        sequencer_config: Composite scoring configuration

    Returns:
        GenerationResult with status COMPLETE, PARTIAL or EMPTY
    """
    now = now or datetime.now(timezone.utc)

    filtered = filter_pool(pool, spec, now=now)
    if not filtered.eligible:
        issue = EmptyPoolError(
            f"No songs passed filtering for '{spec.name}'",
            spec_name=spec.name,
            placed=0,
            requested=spec.target_length,
        )
        logger.warning("%s (pool=%d)", issue, len(pool))
        return GenerationResult(
            spec_name=spec.name,
            status=GenerationStatus.EMPTY,
            display_name=spec.name,
            base_name=spec.cleanup_base_name,
            report=report([], spec),
            issue=issue,
            stats={"filter": filtered.stats},
        )

    scored = score_pool(filtered.eligible, spec, now=now, rng=rng)
    sequenced = build_sequence(scored.scored, spec, sequencer_config)
    songs = sequenced.songs

    status = GenerationStatus.COMPLETE
    issue: Optional[GenerationIssue] = None
    if len(songs) < spec.target_length:
        status = GenerationStatus.PARTIAL
        issue = PartialFulfillment(
            f"'{spec.name}' has {format_count(len(songs), 'song')} of {spec.target_length} requested",
            spec_name=spec.name,
            placed=len(songs),
            requested=spec.target_length,
        )
        logger.warning("%s", issue)

    return GenerationResult(
        spec_name=spec.name,
        status=status,
        songs=songs,
        display_name=suggest_display_name(spec, songs),
        base_name=spec.cleanup_base_name,
        report=report(songs, spec),
        issue=issue,
        stats={"filter": filtered.stats, "score": scored.stats, "sequence": sequenced.stats},
    )


def _entry_name(entry: SpecEntry, position: int) -> str:
    if isinstance(entry, PlaylistSpec):
        return entry.name
    if isinstance(entry, Mapping) and entry.get("name"):
        return str(entry["name"])
    return f"playlist #{position + 1}"


def _generate_entry(
    position: int,
    entry: SpecEntry,
    pool: Sequence[Song],
    now: datetime,
    rng: np.random.Generator,
    sequencer_config: Optional[SequencerConfig],
) -> GenerationResult:
    name = _entry_name(entry, position)
    try:
        spec = entry if isinstance(entry, PlaylistSpec) else parse_playlist_spec(entry)
        with stage_timer(f"Playlist '{spec.name}'", logger):
            return generate_playlist(pool, spec, now=now, rng=rng, sequencer_config=sequencer_config)
    except ConfigurationError as e:
        logger.error("Invalid playlist configuration for '%s': %s", name, e)
        return GenerationResult(spec_name=name, status=GenerationStatus.FAILED, error=str(e))
    except Exception as e:
        logger.exception("Playlist '%s' failed", name)
        return GenerationResult(spec_name=name, status=GenerationStatus.FAILED, error=f"{type(e).__name__}: {e}")


def generate_playlists(
    candidates: Iterable[Song],
    entries: Sequence[SpecEntry],
    *,
    now: Optional[datetime] = None,
    seed: Optional[int] = None,
    max_workers: int = 1,
    sequencer_config: Optional[SequencerConfig] = None,
) -> List[GenerationResult]:
    """
    Generate every playlist in a batch.

    The candidate pool is classified once. Each entry gets its own random
    generator spawned from ``seed``, so results do not depend on
    ``max_workers``.

    Args:
        candidates: Raw candidate songs from the catalog
        entries: PlaylistSpec objects or raw mappings (parsed per entry)
        now: Reference time shared by every spec
        seed: Seed for reproducible jitter (None draws fresh entropy)
        max_workers: Number of specs generated concurrently
        sequencer_config: Composite scoring configuration

    Returns:
        One GenerationResult per entry, in entry order
    """
    now = now or datetime.now(timezone.utc)
    classified = classify_pool(candidates)
    pool = classified.songs
    logger.info(
        "Generating %s from %s",
        format_count(len(entries), "playlist"),
        format_count(len(pool), "song"),
    )

    rngs = [np.random.default_rng(s) for s in np.random.SeedSequence(seed).spawn(len(entries))]
    jobs = [
        (position, entry, pool, now, rngs[position], sequencer_config)
        for position, entry in enumerate(entries)
    ]

    if max_workers > 1 and len(jobs) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = [executor.submit(_generate_entry, *job) for job in jobs]
            results = [future.result() for future in futures]
    else:
        results = [_generate_entry(*job) for job in jobs]

    succeeded = sum(1 for r in results if r.succeeded)
    logger.info("Generated %d/%d playlists", succeeded, len(results))
    return results
