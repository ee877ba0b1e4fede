"""
Playlist construction engine.

Stages, leaf first: classifier -> filtering -> scoring -> sequencer ->
reporter. pipeline ties them together per spec and per batch.
"""
from .classifier import Classification, ClassificationResult, classify, classify_pool, is_actual_song
from .config import (
    BpmRange,
    ExactPlayCount,
    PercentileDirection,
    PlayCountPercentile,
    PlayCountRange,
    PlayCountThreshold,
    PlaylistSpec,
    PreferenceWeights,
    QualityWeights,
    ThresholdOperator,
    TransitionRules,
    load_playlist_entries,
    parse_playlist_spec,
)
from .exceptions import ConfigurationError, EmptyPoolError, GenerationIssue, PartialFulfillment, PlaylistError
from .filtering import FilterResult, filter_pool
from .models import Song
from .pipeline import GenerationResult, GenerationStatus, generate_playlist, generate_playlists
from .reporter import PlaylistReport, report
from .scoring import PoolStatistics, ScoredSong, score, score_pool
from .sequencer import SequencerConfig, SequenceResult, build_sequence, sequence

__all__ = [
    "BpmRange",
    "Classification",
    "ClassificationResult",
    "ConfigurationError",
    "EmptyPoolError",
    "ExactPlayCount",
    "FilterResult",
    "GenerationIssue",
    "GenerationResult",
    "GenerationStatus",
    "PartialFulfillment",
    "PercentileDirection",
    "PlayCountPercentile",
    "PlayCountRange",
    "PlayCountThreshold",
    "PlaylistError",
    "PlaylistReport",
    "PlaylistSpec",
    "PoolStatistics",
    "PreferenceWeights",
    "QualityWeights",
    "ScoredSong",
    "SequenceResult",
    "SequencerConfig",
    "Song",
    "ThresholdOperator",
    "TransitionRules",
    "build_sequence",
    "classify",
    "classify_pool",
    "filter_pool",
    "generate_playlist",
    "generate_playlists",
    "is_actual_song",
    "load_playlist_entries",
    "parse_playlist_spec",
    "report",
    "score",
    "score_pool",
    "sequence",
]
