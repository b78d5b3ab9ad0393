"""
Tests for transcript chunking.
"""

import pytest

from companion_framework.models import Speaker, Transcript, Turn
from companion_framework.summarization import chunk_transcript


def conversation(n_turns: int, words: int = 30) -> Transcript:
    transcript = Transcript()
    for i in range(n_turns):
        speaker = Speaker.USER if i % 2 == 0 else Speaker.ASSISTANT
        transcript.append(speaker, " ".join(f"word{i}_{j}" for j in range(words)))
    return transcript


class TestChunkTranscript:

    def test_short_transcript_is_one_chunk(self):
        transcript = conversation(4)
        chunks = chunk_transcript(transcript.turns)
        assert len(chunks) == 1
        assert chunks[0].turns == transcript.turns

    def test_coverage_preserves_every_turn_in_order(self):
        transcript = conversation(200)
        chunks = chunk_transcript(transcript.turns, budget=2000)
        assert len(chunks) > 1
        assert [t for c in chunks for t in c.turns] == transcript.turns

    def test_chunks_respect_budget(self):
        transcript = conversation(200)
        budget = 2000
        for chunk in chunk_transcript(transcript.turns, budget=budget):
            assert chunk.rendered_length <= budget
            assert len(chunk.render()) == chunk.rendered_length

    def test_oversized_turn_gets_its_own_chunk(self):
        """A single 20 000-character turn is never split."""
        turn = Turn(Speaker.USER, "x" * 20000)
        chunks = chunk_transcript([turn], budget=8000)
        assert len(chunks) == 1
        assert chunks[0].turns == [turn]
        assert chunks[0].rendered_length > 8000

    def test_oversized_turn_between_small_ones(self):
        small = Turn(Speaker.USER, "hi")
        big = Turn(Speaker.ASSISTANT, "y" * 500)
        chunks = chunk_transcript([small, big, small], budget=100)
        assert [c.turns for c in chunks] == [[small], [big], [small]]

    def test_empty_transcript_yields_one_empty_chunk(self):
        chunks = chunk_transcript([])
        assert len(chunks) == 1
        assert chunks[0].turns == []
        assert chunks[0].render() == ""

    def test_rendered_length_counts_labels_and_newline(self):
        turn = Turn(Speaker.ASSISTANT, "hello")
        chunk = chunk_transcript([turn], user_label="Me", assistant_label="Coach")[0]
        assert chunk.render() == "Coach: hello\n"
        assert chunk.rendered_length == len("Coach: hello\n")

    def test_invalid_budget(self):
        with pytest.raises(ValueError):
            chunk_transcript([], budget=0)
