"""
Tests for the session summarization pipeline (chunk -> map -> reduce -> final).
"""

import json

import pytest

from companion_framework.config_models import SummarizationConfig
from companion_framework.models import Speaker, Tone, Transcript
from companion_framework.summarization import ChunkSummarizer, SummarizationPipeline, chunk_transcript
from companion_framework.utils.error_handling import SummarizationError

from conftest import FakeTextGenerator


CHUNK_REPLY = {
    "bullets": ["Work deadlines piled up", "Went for a run"],
    "gratitude_mentions": 0,
    "local_tone": "optimistic",
    "language": {
        "repeated_words": ["deadline", "tired"],
        "thinking_style": "practical",
        "emotional_indicators": "mild stress",
    },
}

REDUCE_REPLY = {"bullets": ["Work deadlines piled up", "Running helped"]}

FINAL_REPLY = {
    "summary": ["Deadlines at work felt heavy", "A run helped reset"],
    "tone": "Hopeful",
    "supporting_tones": ["Stressed"],
    "tone_note": "Stress early on, lighter by the end.",
    "language": {"repeated_words": ["deadline"], "thinking_style": "practical", "emotional_indicators": "relief"},
    "recommendation": "Plan one short run tomorrow.",
    "gratitude_mentions": 0,
}


def scripted(chunk=CHUNK_REPLY, reduce=REDUCE_REPLY, final=FINAL_REPLY):
    """Responder that answers each structured call by prompt type."""

    def _respond(prompt, json_mode):
        if "TRANSCRIPT PART" in prompt:
            return chunk if isinstance(chunk, (str, Exception)) else json.dumps(chunk)
        if "Merge them into" in prompt:
            return reduce if isinstance(reduce, (str, Exception)) else json.dumps(reduce)
        if "Write the final summary" in prompt:
            return final if isinstance(final, (str, Exception)) else json.dumps(final)
        raise AssertionError(f"unexpected prompt: {prompt[:60]}")

    return _respond


def sample_transcript() -> Transcript:
    transcript = Transcript()
    transcript.append(Speaker.USER, "I'm grateful my sister called.")
    transcript.append(Speaker.ASSISTANT, "That sounds comforting. Thank you for sharing.")
    transcript.append(Speaker.USER, "Work has been a lot, but thanks for asking.")
    return transcript


@pytest.fixture
def config():
    return SummarizationConfig(retry_delay_seconds=0.0, request_timeout_seconds=2.0)


def calls_of(generator, marker):
    return [c for c in generator.calls if marker in c['user_prompt']]


class TestSummarizationPipeline:

    @pytest.mark.asyncio
    async def test_single_chunk_makes_three_calls(self, config):
        generator = FakeTextGenerator(responder=scripted())
        pipeline = SummarizationPipeline(generator, config)

        summary = await pipeline.generate_summary("session-1", sample_transcript())

        assert len(generator.calls) == 3
        assert all(c['json_mode'] for c in generator.calls)
        assert summary.id == "session-1"
        assert summary.summary == FINAL_REPLY["summary"]
        assert summary.tone == "Hopeful"
        assert summary.supporting_tones == ["Stressed"]
        assert summary.recommendation == "Plan one short run tomorrow."
        assert summary.language.repeated_words == ["deadline"]

    @pytest.mark.asyncio
    async def test_gratitude_guard_corrects_undercount(self, config):
        generator = FakeTextGenerator(responder=scripted())
        pipeline = SummarizationPipeline(generator, config)

        summary = await pipeline.generate_summary("s", sample_transcript())

        assert summary.gratitude_mentions == 2

    @pytest.mark.asyncio
    async def test_final_prompt_carries_user_snippets_only(self, config):
        generator = FakeTextGenerator(responder=scripted())
        pipeline = SummarizationPipeline(generator, config)

        await pipeline.generate_summary("s", sample_transcript())

        final_prompt = calls_of(generator, "Write the final summary")[0]['user_prompt']
        assert "I'm grateful my sister called." in final_prompt
        assert "That sounds comforting" not in final_prompt
        assert "- Work deadlines piled up" in final_prompt

    @pytest.mark.asyncio
    async def test_long_transcript_is_chunked(self):
        config = SummarizationConfig(chunk_budget_chars=200, retry_delay_seconds=0.0)
        transcript = Transcript()
        for i in range(20):
            transcript.append(Speaker.USER if i % 2 == 0 else Speaker.ASSISTANT, "x" * 60)
        expected_chunks = len(chunk_transcript(transcript.turns, budget=200))
        generator = FakeTextGenerator(responder=scripted())

        await SummarizationPipeline(generator, config).generate_summary("s", transcript)

        assert expected_chunks > 1
        assert len(calls_of(generator, "TRANSCRIPT PART")) == expected_chunks
        assert len(calls_of(generator, "Merge them into")) == 1
        assert len(calls_of(generator, "Write the final summary")) == 1

    @pytest.mark.asyncio
    async def test_malformed_chunk_degrades_but_summary_succeeds(self, config):
        generator = FakeTextGenerator(responder=scripted(chunk="{not json"))
        pipeline = SummarizationPipeline(generator, config)

        summary = await pipeline.generate_summary("s", sample_transcript())

        assert summary.tone == "Hopeful"
        assert len(calls_of(generator, "TRANSCRIPT PART")) == config.chunk_max_attempts
        # No chunk bullets means nothing to reduce
        assert calls_of(generator, "Merge them into") == []

    @pytest.mark.asyncio
    async def test_final_failure_raises(self, config):
        generator = FakeTextGenerator(responder=scripted(final=RuntimeError("service unavailable")))
        pipeline = SummarizationPipeline(generator, config)

        with pytest.raises(SummarizationError):
            await pipeline.generate_summary("s", sample_transcript())

        assert len(calls_of(generator, "Write the final summary")) == config.final_max_attempts

    @pytest.mark.asyncio
    async def test_final_without_tone_is_malformed(self, config):
        final = dict(FINAL_REPLY)
        del final["tone"]
        generator = FakeTextGenerator(responder=scripted(final=final))

        with pytest.raises(SummarizationError):
            await SummarizationPipeline(generator, config).generate_summary("s", sample_transcript())

    @pytest.mark.asyncio
    async def test_falls_back_to_reduced_bullets_and_chunk_language(self, config):
        final = {"summary": [], "tone": "Calm", "gratitude_mentions": 0}
        generator = FakeTextGenerator(responder=scripted(final=final))

        summary = await SummarizationPipeline(generator, config).generate_summary("s", sample_transcript())

        assert summary.summary == REDUCE_REPLY["bullets"]
        assert summary.language.repeated_words == ["deadline", "tired"]
        assert summary.recommendation is None

    @pytest.mark.asyncio
    async def test_accepts_persisted_transcript_text(self, config):
        generator = FakeTextGenerator(responder=scripted())
        text = sample_transcript().render()

        summary = await SummarizationPipeline(generator, config).generate_summary("s", text)

        assert summary.gratitude_mentions == 2
        chunk_prompt = calls_of(generator, "TRANSCRIPT PART")[0]['user_prompt']
        assert "Companion: That sounds comforting." in chunk_prompt

    @pytest.mark.asyncio
    @pytest.mark.parametrize("as_text", [False, True])
    async def test_multi_line_assistant_reply_is_not_user_gratitude(self, config, as_text):
        transcript = Transcript()
        transcript.append(Speaker.USER, "Rough day at work.")
        transcript.append(Speaker.ASSISTANT,
                          "That sounds hard.\n\nWhat is one thing you're grateful for? Thanks for sharing.")
        generator = FakeTextGenerator(responder=scripted())

        summary = await SummarizationPipeline(generator, config).generate_summary(
            "s", transcript.render() if as_text else transcript
        )

        assert summary.gratitude_mentions == 0

    @pytest.mark.asyncio
    async def test_summary_is_bounded(self, config):
        final = dict(FINAL_REPLY, summary=[f"Point {i}" for i in range(9)] + ["point 0"])
        generator = FakeTextGenerator(responder=scripted(final=final))

        summary = await SummarizationPipeline(generator, config).generate_summary("s", sample_transcript())

        assert len(summary.summary) == 6
        assert len(summary.display_bullets) == 3


class TestChunkSummarizer:

    @pytest.mark.asyncio
    async def test_maps_tone_synonyms(self, config):
        generator = FakeTextGenerator(responder=scripted())
        chunk = chunk_transcript(sample_transcript().turns)[0]

        result = await ChunkSummarizer(generator, config).summarize(chunk)

        assert result.local_tone == Tone.HOPEFUL
        assert result.bullets == CHUNK_REPLY["bullets"]

    @pytest.mark.asyncio
    async def test_unknown_tone_is_empty_result(self, config):
        generator = FakeTextGenerator(responder=scripted(chunk=dict(CHUNK_REPLY, local_tone="purple")))
        chunk = chunk_transcript(sample_transcript().turns)[0]

        result = await ChunkSummarizer(generator, config).summarize(chunk)

        assert result.is_empty

    @pytest.mark.asyncio
    async def test_results_come_back_in_chunk_order(self, config):
        turns = [sample_transcript().turns[0]] * 3
        chunks = [chunk_transcript([t])[0] for t in turns]
        replies = iter([
            json.dumps(dict(CHUNK_REPLY, bullets=[f"chunk {i}"])) for i in range(3)
        ])
        generator = FakeTextGenerator(responder=lambda prompt, json_mode: next(replies))

        results = await ChunkSummarizer(generator, config).summarize_all(chunks)

        assert [r.bullets for r in results] == [["chunk 0"], ["chunk 1"], ["chunk 2"]]
