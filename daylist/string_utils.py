"""
Shared string normalization helpers.

Genre tags, artist names and album names arrive from the server with
inconsistent casing, Unicode forms and delimiters; everything that compares
them goes through these helpers.
"""
import re
import unicodedata
from typing import FrozenSet, Iterable, List, Optional

_GENRE_DELIMITERS = re.compile(r"[,;/|]")
_WHITESPACE = re.compile(r"\s+")

# Typography normalization for names
_TYPOGRAPHY_TRANSLATION = {
    ord("\u2018"): "'",
    ord("\u2019"): "'",
    ord("\u201C"): '"',
    ord("\u201D"): '"',
    ord("\u2010"): "-",
    ord("\u2013"): "-",
    ord("\u2014"): "-",
}


def normalize_text(text: Optional[str], lowercase: bool = True) -> str:
    """
    Normalize text for consistent comparisons.

    Applies NFC normalization, typography folding, whitespace collapsing and
    (optionally) case folding.

    Args:
        text: Text to normalize (None is treated as empty)
        lowercase: Apply casefold()

    Returns:
        Normalized string
    """
    if not text:
        return ""
    result = unicodedata.normalize("NFC", str(text)).translate(_TYPOGRAPHY_TRANSLATION)
    result = _WHITESPACE.sub(" ", result).strip()
    return result.casefold() if lowercase else result


def normalize_genre(genre: Optional[str]) -> str:
    """Normalize a single genre token for matching."""
    return normalize_text(genre)


def tokenize_genres(*values: Optional[str]) -> FrozenSet[str]:
    """
    Split genre strings into a case-insensitive token set.

    Each value may hold a single tag or several joined by ``,``, ``;``,
    ``/`` or ``|``. Empty tokens are dropped.

    Example:
        tokenize_genres("Jazz, Soul", "soul") -> frozenset({"jazz", "soul"})
    """
    tokens = set()
    for value in values:
        if not value:
            continue
        for part in _GENRE_DELIMITERS.split(str(value)):
            token = normalize_genre(part)
            if token:
                tokens.add(token)
    return frozenset(tokens)


def normalize_genre_set(genres: Optional[Iterable[str]]) -> Optional[FrozenSet[str]]:
    """Normalize a configured genre list; None stays None (meaning "not configured")."""
    if genres is None:
        return None
    if isinstance(genres, str):
        genres = [genres]
    return tokenize_genres(*genres)


def normalize_key(name: Optional[str]) -> str:
    """Key used to compare artist or album names when no server identifier exists."""
    return normalize_text(name)


def to_title_case(text: str) -> str:
    """
    Title-case a genre or tag for display.

    Words that are already fully uppercase (e.g. "EDM", "UK") are kept.
    """
    words: List[str] = []
    for word in normalize_text(text, lowercase=False).split(" "):
        if len(word) > 1 and word.isupper():
            words.append(word)
        else:
            words.append("-".join(part[:1].upper() + part[1:].lower() for part in word.split("-")))
    return " ".join(words)
