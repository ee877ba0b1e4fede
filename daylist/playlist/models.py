"""
Song model shared by every playlist stage.

Songs are immutable snapshots of catalog metadata taken once per run. Stages
never mutate them; they only select, score and reorder.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, FrozenSet, Optional, Tuple

from ..string_utils import normalize_key, tokenize_genres

logger = logging.getLogger(__name__)

# Unparseable last-played values are treated as this long before "now"
UNPARSEABLE_PLAYED_OFFSET = timedelta(hours=12)

# Fractional seconds, any precision (Go RFC3339Nano sends up to nine digits)
_FRACTION = re.compile(r"\.(\d+)")

_LAST_PLAYED_FORMATS = (
    "%Y-%m-%dT%H:%M:%S.%fZ",
    "%Y-%m-%dT%H:%M:%SZ",
    "%Y-%m-%d %H:%M:%S",
)


@dataclass(frozen=True)
class Song:
    """
    Read-only song metadata.

    Attributes:
        id: Server identifier
        title: Song title
        artist: Display artist name
        artist_id: Server artist identifier (None when the server omits it)
        album: Album title
        album_id: Server album identifier
        genre: Single tag or delimiter-joined tag list
        genres: Extra tags (OpenSubsonic ``genres`` array)
        year: Release year
        duration: Length in seconds
        bpm: Tempo, None when unknown
        play_count: Number of plays (>= 0)
        starred: Whether the user starred the song
        last_played: Timezone-aware timestamp of the last play
        bit_rate: Bit rate in kbps
        track: Track number
        disc_number: Disc number
    """
    id: str
    title: str
    artist: str = "Unknown Artist"
    artist_id: Optional[str] = None
    album: str = "Unknown Album"
    album_id: Optional[str] = None
    genre: Optional[str] = None
    genres: Tuple[str, ...] = ()
    year: Optional[int] = None
    duration: Optional[int] = None
    bpm: Optional[int] = None
    play_count: int = 0
    starred: bool = False
    last_played: Optional[datetime] = None
    bit_rate: Optional[int] = None
    track: Optional[int] = None
    disc_number: Optional[int] = None

    @property
    def genre_tokens(self) -> FrozenSet[str]:
        """Case-insensitive genre tokens used for matching."""
        return tokenize_genres(self.genre, *self.genres)

    @property
    def artist_key(self) -> str:
        return self.artist_id or normalize_key(self.artist)

    @property
    def album_key(self) -> str:
        return self.album_id or normalize_key(self.album)

    def days_since_played(self, now: datetime) -> Optional[float]:
        """Days between the last play and ``now``; None when never played."""
        if self.last_played is None:
            return None
        delta = now - self.last_played
        return max(delta.total_seconds(), 0.0) / 86400.0

    @classmethod
    def from_subsonic(cls, payload: Dict[str, Any], now: Optional[datetime] = None) -> "Song":
        """
        Build a Song from a Subsonic ``child`` object.

        Args:
            payload: Decoded JSON entry from getRandomSongs and similar endpoints
            now: Reference time for unparseable last-played values

        Returns:
            Song snapshot
        """
        now = now or datetime.now(timezone.utc)
        extra_genres = tuple(
            str(g.get("name")) for g in payload.get("genres") or []
            if isinstance(g, dict) and g.get("name")
        )
        bpm = _optional_int(payload.get("bpm"))
        return cls(
            id=str(payload["id"]),
            title=str(payload.get("title") or ""),
            artist=str(payload.get("artist") or "Unknown Artist"),
            artist_id=_optional_str(payload.get("artistId")),
            album=str(payload.get("album") or "Unknown Album"),
            album_id=_optional_str(payload.get("albumId")),
            genre=_optional_str(payload.get("genre")),
            genres=extra_genres,
            year=_optional_int(payload.get("year")),
            duration=_optional_int(payload.get("duration")),
            # Servers report 0 when tempo was never analysed
            bpm=bpm if bpm else None,
            play_count=max(_optional_int(payload.get("playCount")) or 0, 0),
            starred=bool(payload.get("starred")),
            last_played=parse_last_played(payload.get("played"), now=now),
            bit_rate=_optional_int(payload.get("bitRate")),
            track=_optional_int(payload.get("track")),
            disc_number=_optional_int(payload.get("discNumber")),
        )


def parse_last_played(value: Any, now: datetime) -> Optional[datetime]:
    """
    Parse a last-played timestamp.

    Accepts RFC 3339 strings (with or without fractional seconds or offsets)
    and ``YYYY-MM-DD HH:MM:SS``. Naive values are taken as UTC. A value that
    cannot be parsed is treated as a recent play (twelve hours before ``now``)
    so the song is not accidentally favoured.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

    # fromisoformat before 3.11 only takes exactly 3 or 6 fractional digits
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), str(value).strip())
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        parsed = None
        for fmt in _LAST_PLAYED_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue

    if parsed is None:
        logger.debug("Unparseable last-played value %r; treating as recently played", text)
        return now - UNPARSEABLE_PLAYED_OFFSET
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value)
    return text or None
