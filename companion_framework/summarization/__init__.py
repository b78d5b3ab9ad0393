"""
Session summarization: chunk, map, reduce, guard and cache.
"""

from .chunker import TranscriptChunk, chunk_transcript, DEFAULT_CHUNK_BUDGET
from .chunk_summarizer import ChunkSummarizer
from .reducer import SummaryReducer, local_dedupe, normalize_bullet, MAX_SUMMARY_BULLETS
from .gratitude_guard import GratitudeHeuristicGuard, reconcile
from .cache_digest import DigestCache, compute_digest, cache_key
from .pipeline import SummarizationPipeline
from .insights import (
    InsightsService,
    RangeInsights,
    RadarScale,
    ToneRadarPoint,
    aggregate_radar,
    normalize_scores,
    tone_scores,
)

__all__ = [
    'TranscriptChunk',
    'chunk_transcript',
    'DEFAULT_CHUNK_BUDGET',
    'ChunkSummarizer',
    'SummaryReducer',
    'local_dedupe',
    'normalize_bullet',
    'MAX_SUMMARY_BULLETS',
    'GratitudeHeuristicGuard',
    'reconcile',
    'DigestCache',
    'compute_digest',
    'cache_key',
    'SummarizationPipeline',
    'InsightsService',
    'RangeInsights',
    'RadarScale',
    'ToneRadarPoint',
    'aggregate_radar',
    'normalize_scores',
    'tone_scores',
]
