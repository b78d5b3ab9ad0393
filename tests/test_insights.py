"""
Tests for tone radar aggregation and range insights.
"""

import json

import pytest

from companion_framework.models import LanguagePatterns, SessionSummary, Tone
from companion_framework.providers.persistence import InMemorySessionStore
from companion_framework.summarization import (
    InsightsService,
    RadarScale,
    aggregate_radar,
    normalize_scores,
    tone_scores,
)

from conftest import FakeTextGenerator


def summary(tone, supporting=None, gratitude=0, bullets=("Talked it through",)):
    return SessionSummary(
        id="s",
        summary=list(bullets),
        tone=tone,
        supporting_tones=supporting,
        gratitude_mentions=gratitude,
        language=LanguagePatterns(repeated_words=["work"], thinking_style="practical"),
    )


def as_dict(points):
    return {p.label: p.value for p in points}


def insight_responder(prompt, json_mode):
    if "language patterns" in prompt:
        return json.dumps({"repeated_words": ["work", "sleep"], "thinking_style": "reflective",
                           "emotional_indicators": "steady"})
    if "Suggest one concrete" in prompt:
        return json.dumps({"recommendation": "Keep the evening walks going."})
    raise AssertionError("unexpected prompt")


async def store_with(*summaries, user_id="u1"):
    store = InMemorySessionStore()
    for s in summaries:
        session_id = await store.start_session(user_id)
        await store.write_summary(session_id, s, duration_sec=300)
    return store


class TestToneScores:

    def test_weights(self):
        scores = tone_scores([summary("Calm", ["worried"])], top_tone_lists=[["Sad"]])
        assert scores[Tone.CALM] == 1.0
        assert scores[Tone.ANXIOUS] == 0.5
        assert scores[Tone.SAD] == 0.5
        assert scores[Tone.HOPEFUL] == 0.0

    def test_unknown_tones_are_ignored(self):
        scores = tone_scores([summary("Ecstatic", ["purple"])])
        assert sum(scores.values()) == 0.0


class TestNormalizeScores:

    def test_raw_max(self):
        points = as_dict(normalize_scores({Tone.CALM: 2.0, Tone.HOPEFUL: 1.0}, RadarScale(mode="raw_max")))
        assert points["Calm"] == 1.0
        assert points["Hopeful"] == 0.5
        assert points["Sad"] == 0.0

    def test_raw_max_never_divides_by_less_than_one(self):
        points = as_dict(normalize_scores({Tone.CALM: 0.5}, RadarScale(mode="raw_max")))
        assert points["Calm"] == 0.5

    def test_tempered_single_tone(self):
        points = as_dict(normalize_scores({Tone.CALM: 3.0}))
        assert points["Calm"] == 1.0
        # floor 0.40 stretched by contrast 1.25 around 0.5
        assert points["Sad"] == pytest.approx(0.375)

    def test_tempered_is_bounded_and_ordered(self):
        points = as_dict(normalize_scores({Tone.CALM: 4.0, Tone.STRESSED: 2.0, Tone.SAD: 1.0}))
        assert all(0.0 <= v <= 1.0 for v in points.values())
        assert points["Calm"] > points["Stressed"] > points["Sad"] > points["Hopeful"]

    def test_no_data_is_all_zero(self):
        points = normalize_scores({})
        assert [p.label for p in points] == [t.value for t in Tone]
        assert all(p.value == 0.0 for p in points)

    def test_aggregate_radar(self):
        points = as_dict(aggregate_radar([summary("Hopeful"), summary("hopeful")], scale=RadarScale("raw_max")))
        assert points["Hopeful"] == 1.0


class TestInsightsService:

    @pytest.mark.asyncio
    async def test_empty_range_skips_generation(self, fast_summary_config):
        generator = FakeTextGenerator(responder=insight_responder)
        service = InsightsService(InMemorySessionStore(), generator, fast_summary_config)

        insights = await service.refresh("u1", 7)

        assert insights.session_count == 0
        assert insights.top_tone is None
        assert insights.recommendation is None
        assert generator.calls == []

    @pytest.mark.asyncio
    async def test_refresh_aggregates_and_generates(self, fast_summary_config):
        store = await store_with(summary("Calm", gratitude=2), summary("Calm", ["Anxious"], gratitude=1),
                                 summary("Sad"))
        generator = FakeTextGenerator(responder=insight_responder)
        service = InsightsService(store, generator, fast_summary_config)

        insights = await service.refresh("u1", 7)

        assert insights.session_count == 3
        assert insights.gratitude_total == 3
        assert insights.top_tone == "Calm"
        assert insights.language_patterns.repeated_words == ["work", "sleep"]
        assert insights.recommendation == "Keep the evening walks going."
        radar = as_dict(insights.radar)
        assert radar["Calm"] == max(radar.values())
        assert len(generator.calls) == 2

    @pytest.mark.asyncio
    async def test_second_refresh_hits_cache(self, fast_summary_config):
        store = await store_with(summary("Hopeful"))
        generator = FakeTextGenerator(responder=insight_responder)
        service = InsightsService(store, generator, fast_summary_config)

        await service.refresh("u1", 7)
        again = await service.refresh("u1", 7)

        assert len(generator.calls) == 2
        assert service.cache.hits == 2
        assert again.recommendation == "Keep the evening walks going."

    @pytest.mark.asyncio
    async def test_new_session_invalidates_cache(self, fast_summary_config):
        store = await store_with(summary("Hopeful"))
        generator = FakeTextGenerator(responder=insight_responder)
        service = InsightsService(store, generator, fast_summary_config)
        await service.refresh("u1", 7)

        session_id = await store.start_session("u1")
        await store.write_summary(session_id, summary("Stressed", bullets=["Exams"]), 60)
        await service.refresh("u1", 7)

        assert len(generator.calls) == 4

    @pytest.mark.asyncio
    async def test_generation_failure_keeps_local_insights(self, fast_summary_config):
        store = await store_with(summary("Reflective", gratitude=4))
        generator = FakeTextGenerator(responder=lambda prompt, json_mode: RuntimeError("503"))
        service = InsightsService(store, generator, fast_summary_config)

        insights = await service.refresh("u1", 30)

        assert insights.gratitude_total == 4
        assert insights.top_tone == "Reflective"
        assert insights.language_patterns is None
        assert insights.recommendation is None

    @pytest.mark.asyncio
    async def test_other_users_are_excluded(self, fast_summary_config):
        store = await store_with(summary("Calm"), user_id="someone-else")
        service = InsightsService(store, FakeTextGenerator(responder=insight_responder), fast_summary_config)

        insights = await service.refresh("u1", 7)

        assert insights.session_count == 0

    @pytest.mark.asyncio
    async def test_load_history_newest_first(self, fast_summary_config):
        store = await store_with(summary("Calm"), summary("Sad"))
        service = InsightsService(store, FakeTextGenerator(), fast_summary_config)

        history = await service.load_history("u1", limit=1)

        assert len(history) == 1
