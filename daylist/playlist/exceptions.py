"""
Error types for playlist generation.

ConfigurationError is raised and aborts generation of a single spec.
GenerationIssue subclasses describe non-fatal outcomes; the pipeline records
them on the GenerationResult instead of raising them.
"""
from typing import Optional


class PlaylistError(Exception):
    """Base exception for playlist generation errors."""
    pass


class ConfigurationError(PlaylistError, ValueError):
    """Raised when a playlist spec is malformed or self-contradictory."""

    def __init__(self, message: str, spec_name: Optional[str] = None):
        self.spec_name = spec_name
        if spec_name:
            message = f"[{spec_name}] {message}"
        super().__init__(message)


class GenerationIssue(PlaylistError):
    """A reported, non-fatal generation condition."""

    def __init__(self, message: str, spec_name: str, placed: int, requested: int):
        super().__init__(message)
        self.spec_name = spec_name
        self.placed = placed
        self.requested = requested


class EmptyPoolError(GenerationIssue):
    """No songs survived filtering; the playlist is empty."""
    pass


class PartialFulfillment(GenerationIssue):
    """Fewer songs were placed than the playlist's target length."""
    pass
