"""
Range insights: tone radar aggregation plus the digest-cached language
pattern and recommendation variants.
"""

import asyncio
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

from ..config_models import SummarizationConfig
from ..interfaces.persistence import PersistenceInterface
from ..interfaces.response import TextGenerationInterface
from ..models.data_models import LanguagePatterns, PipelineKind, SessionSummary, StoredSummary, Tone
from ..utils.error_handling import ErrorHandler, retry_with_backoff
from ..utils.logging_config import get_logger
from .cache_digest import DigestCache
from .prompts import (
    EXTRACTION_SYSTEM_PROMPT,
    build_language_patterns_prompt,
    build_recommendation_prompt,
)
from .schemas import LanguagePatternsPayload, RecommendationPayload, parse_json_payload

logger = get_logger("insights")

PRIMARY_TONE_WEIGHT = 1.0
SUPPORTING_TONE_WEIGHT = 0.5
TOP_TONE_WEIGHT = 0.5


@dataclass
class ToneRadarPoint:
    label: str
    value: float


@dataclass
class RadarScale:
    """
    `raw_max` divides by the largest score. `tempered` raises proportions to
    `gamma`, renormalises, rescales into [floor, 1] and stretches around 0.5
    by `contrast`.
    """
    mode: str = "tempered"
    gamma: float = 0.9
    floor: float = 0.40
    contrast: float = 1.25


def normalize_scores(scores: Dict[Tone, float], scale: Optional[RadarScale] = None) -> List[ToneRadarPoint]:
    scale = scale or RadarScale()
    tones = list(Tone)

    if scale.mode == "raw_max":
        max_val = max(max(scores.values(), default=0.0), 1.0)
        return [ToneRadarPoint(t.value, scores.get(t, 0.0) / max_val) for t in tones]

    total = sum(scores.values())
    if total <= 0:
        return [ToneRadarPoint(t.value, 0.0) for t in tones]

    tempered = [(scores.get(t, 0.0) / total) ** scale.gamma for t in tones]
    sum_tempered = max(sum(tempered), 1e-12)
    norm = [v / sum_tempered for v in tempered]

    max_norm = max(max(norm), 1.0)
    with_floor = [scale.floor + (1 - scale.floor) * (v / max_norm) for v in norm]

    contrast = max(scale.contrast, 0.0)
    points = []
    for tone, v in zip(tones, with_floor):
        out = 0.5 + (v - 0.5) * contrast
        points.append(ToneRadarPoint(tone.value, min(max(out, 0.0), 1.0)))
    return points


def tone_scores(summaries: Iterable[SessionSummary],
                top_tone_lists: Iterable[List[str]] = ()) -> Dict[Tone, float]:
    """Weighted tone counts: primary 1.0, supporting 0.5, range top tones 0.5."""
    scores = {t: 0.0 for t in Tone}
    for summary in summaries:
        primary = Tone.map(summary.tone)
        if primary is not None:
            scores[primary] += PRIMARY_TONE_WEIGHT
        for raw in summary.supporting_tones or []:
            tone = Tone.map(raw)
            if tone is not None:
                scores[tone] += SUPPORTING_TONE_WEIGHT
    for top_tones in top_tone_lists:
        for raw in top_tones:
            tone = Tone.map(raw)
            if tone is not None:
                scores[tone] += TOP_TONE_WEIGHT
    return scores


def aggregate_radar(summaries: Iterable[SessionSummary],
                    top_tone_lists: Iterable[List[str]] = (),
                    scale: Optional[RadarScale] = None) -> List[ToneRadarPoint]:
    return normalize_scores(tone_scores(summaries, top_tone_lists), scale)


@dataclass
class RangeInsights:
    range_days: int
    session_count: int = 0
    radar: List[ToneRadarPoint] = field(default_factory=list)
    gratitude_total: int = 0
    top_tone: Optional[str] = None
    language_patterns: Optional[LanguagePatterns] = None
    recommendation: Optional[str] = None


class InsightsService:
    """Computes range insights for a user; LLM variants go through the digest cache."""

    def __init__(self,
                 store: PersistenceInterface,
                 generator: TextGenerationInterface,
                 config: Optional[SummarizationConfig] = None,
                 scale: Optional[RadarScale] = None,
                 error_handler: Optional[ErrorHandler] = None):
        self.store = store
        self.generator = generator
        self.config = config or SummarizationConfig()
        self.scale = scale or RadarScale()
        self.error_handler = error_handler
        self.cache = DigestCache(store)

    async def load_history(self, user_id: str, limit: int = 50) -> List[StoredSummary]:
        try:
            stored = await self.store.list_summaries(user_id)
        except Exception as e:
            logger.warning(f"Could not load history: {e}")
            return []
        return stored[:limit]

    async def refresh(self, user_id: str, range_days: int) -> RangeInsights:
        since = datetime.now(timezone.utc) - timedelta(days=range_days)
        try:
            stored = await self.store.list_summaries(user_id, since)
        except Exception as e:
            logger.warning(f"Could not list summaries for insights: {e}")
            stored = []

        summaries = [s.summary for s in stored]
        insights = RangeInsights(range_days=range_days, session_count=len(summaries))
        insights.radar = aggregate_radar(summaries, scale=self.scale)
        insights.gratitude_total = sum(s.gratitude_mentions for s in summaries)
        insights.top_tone = _top_tone(summaries)

        if not summaries:
            return insights

        bullets = [b for s in summaries for b in s.summary]
        signals = [_language_signal(s) for s in summaries]
        base_inputs = {'rangeDays': range_days, 'bullets': bullets, 'signals': signals}

        language, recommendation = await asyncio.gather(
            self._language_patterns(user_id, range_days, base_inputs),
            self._recommendation(user_id, range_days, base_inputs,
                                 insights.gratitude_total, insights.top_tone),
        )
        insights.language_patterns = language
        insights.recommendation = recommendation
        logger.info(
            f"📊 Insights for {range_days}d: {len(summaries)} sessions, top tone {insights.top_tone}, "
            f"cache hits={self.cache.hits} misses={self.cache.misses}"
        )
        return insights

    async def _language_patterns(self, user_id: str, range_days: int,
                                 inputs: Dict[str, Any]) -> Optional[LanguagePatterns]:
        async def compute() -> Dict[str, Any]:
            prompt = build_language_patterns_prompt(range_days, inputs['bullets'], inputs['signals'])
            payload = await self._structured(prompt, LanguagePatternsPayload, "language_patterns")
            return payload.to_patterns().to_dict()

        payload = await self.cache.get_or_compute(
            user_id, range_days, PipelineKind.LANGUAGE_PATTERNS, inputs, compute
        )
        return LanguagePatterns.from_dict(payload) if payload else None

    async def _recommendation(self, user_id: str, range_days: int, inputs: Dict[str, Any],
                              gratitude_total: int, top_tone: Optional[str]) -> Optional[str]:
        variant_inputs = dict(inputs, gratitudeTotal=gratitude_total, topTone=top_tone)

        async def compute() -> Dict[str, Any]:
            prompt = build_recommendation_prompt(
                range_days, inputs['bullets'], inputs['signals'], gratitude_total, top_tone or ""
            )
            payload = await self._structured(prompt, RecommendationPayload, "recommendation")
            return {'recommendation': payload.recommendation}

        payload = await self.cache.get_or_compute(
            user_id, range_days, PipelineKind.RECOMMENDATION, variant_inputs, compute
        )
        return payload.get('recommendation') if payload else None

    async def _structured(self, prompt: str, model, component: str):
        async def _request():
            raw = await self.generator.complete(
                system_prompt=EXTRACTION_SYSTEM_PROMPT,
                user_prompt=prompt,
                temperature=self.config.extraction_temperature,
                json_mode=True,
            )
            return parse_json_payload(raw, model)

        return await retry_with_backoff(
            _request,
            max_attempts=self.config.chunk_max_attempts,
            initial_delay=self.config.retry_delay_seconds,
            timeout=self.config.request_timeout_seconds,
            error_handler=self.error_handler,
            component_name=component,
        )


def _top_tone(summaries: List[SessionSummary]) -> Optional[str]:
    counts = Counter()
    for s in summaries:
        tone = Tone.map(s.tone)
        if tone is not None:
            counts[tone] += 1
    if not counts:
        return None
    # Ties resolve in taxonomy order
    best = max(Tone, key=lambda t: (counts.get(t, 0), -list(Tone).index(t)))
    return best.value


def _language_signal(summary: SessionSummary) -> Dict[str, Any]:
    language = summary.language.to_dict() if summary.language else {}
    return {
        'tone': summary.tone,
        'gratitudeMentions': summary.gratitude_mentions,
        'language': language,
    }
