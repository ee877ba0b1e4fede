"""Display names for generated playlists."""
from __future__ import annotations

from typing import List, Sequence

from ..string_utils import to_title_case
from .config import PlaylistSpec
from .models import Song
from .reporter import genre_distribution

GENRE_SEPARATOR = " & "
SUFFIX_SEPARATOR = " - "


def top_genres(songs: Sequence[Song], limit: int) -> List[str]:
    """Most frequent genre tokens, ties resolved by first appearance."""
    if limit <= 0:
        return []
    return [genre for genre, _ in genre_distribution(songs).most_common(limit)]


def suggest_display_name(spec: PlaylistSpec, songs: Sequence[Song]) -> str:
    """
    Suggested name for a finished playlist.

    The playlist name is suffixed with its ``genre_suffix`` most frequent
    genres, e.g. "Evening Wind-Down - Jazz & Soul".
    """
    base = spec.name.strip()
    genres = top_genres(songs, spec.genre_suffix)
    if not genres:
        return base
    return f"{base}{SUFFIX_SEPARATOR}{GENRE_SEPARATOR.join(to_title_case(g) for g in genres)}"


def matches_base_name(existing_name: str, base_name: str) -> bool:
    """
    True when ``existing_name`` is the base name or a suffixed variant of it.

    "Focus" matches "Focus" and "Focus - Ambient", but not "Focus Flow".
    """
    existing = existing_name.strip()
    base = base_name.strip()
    return existing == base or existing.startswith(f"{base}{SUFFIX_SEPARATOR}")
