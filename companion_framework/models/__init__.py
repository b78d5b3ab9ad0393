"""
Data models for the companion framework.
"""

from .data_models import (
    DEFAULT_USER_LABEL,
    DEFAULT_ASSISTANT_LABEL,
    Speaker,
    Tone,
    PipelineKind,
    AudioFrame,
    TranscriptionResult,
    Turn,
    Transcript,
    LanguagePatterns,
    ChunkResult,
    SessionSummary,
    CacheEntry,
    StoredSummary,
)

__all__ = [
    'DEFAULT_USER_LABEL',
    'DEFAULT_ASSISTANT_LABEL',
    'Speaker',
    'Tone',
    'PipelineKind',
    'AudioFrame',
    'TranscriptionResult',
    'Turn',
    'Transcript',
    'LanguagePatterns',
    'ChunkResult',
    'SessionSummary',
    'CacheEntry',
    'StoredSummary',
]
