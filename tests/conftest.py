"""Test configuration and fixtures."""

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Add repo root to path for imports
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from daylist.playlist.models import Song

FIXED_NOW = datetime(2026, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def build_song(idx: int, **overrides) -> Song:
    """Build a plain, classifier-safe song; keyword overrides win."""
    fields = {
        "id": f"s{idx}",
        "title": f"Song {idx}",
        "artist": f"Artist {idx}",
        "artist_id": f"ar{idx}",
        "album": f"Album {idx}",
        "album_id": f"al{idx}",
        "genre": "rock",
        "year": 2000,
        "duration": 200,
        "bpm": 120,
        "play_count": 0,
    }
    fields.update(overrides)
    return Song(**fields)


@pytest.fixture()
def make_song():
    """Factory for test songs: make_song(3, genre="jazz")."""
    return build_song


@pytest.fixture()
def now():
    return FIXED_NOW
