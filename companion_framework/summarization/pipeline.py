"""
Session summarization pipeline.

transcript -> chunks -> per-chunk extraction (concurrent) -> reduce ->
final structured summary -> gratitude guard -> SessionSummary
"""

from collections import Counter
from typing import Any, Dict, List, Optional, Union

from ..config_models import SummarizationConfig
from ..interfaces.response import TextGenerationInterface
from ..models.data_models import (
    ChunkResult,
    LanguagePatterns,
    SessionSummary,
    Transcript,
    DEFAULT_USER_LABEL,
    DEFAULT_ASSISTANT_LABEL,
)
from ..utils.error_handling import ErrorHandler, SummarizationError, retry_with_backoff
from ..utils.logging_config import get_logger
from .chunk_summarizer import ChunkSummarizer
from .chunker import chunk_transcript
from .gratitude_guard import GratitudeHeuristicGuard
from .prompts import EXTRACTION_SYSTEM_PROMPT, build_final_prompt
from .reducer import SummaryReducer, local_dedupe
from .schemas import FinalSummaryPayload, parse_json_payload

logger = get_logger("pipeline")


class SummarizationPipeline:
    """
    Distills a session transcript into a bounded SessionSummary.

    Chunk and reduce failures degrade gracefully. The final structured call
    is the terminal operation: when it exhausts its retries the pipeline
    raises SummarizationError.
    """

    def __init__(self,
                 generator: TextGenerationInterface,
                 config: Optional[SummarizationConfig] = None,
                 user_label: str = DEFAULT_USER_LABEL,
                 assistant_label: str = DEFAULT_ASSISTANT_LABEL,
                 error_handler: Optional[ErrorHandler] = None):
        self.generator = generator
        self.config = config or SummarizationConfig()
        self.user_label = user_label
        self.assistant_label = assistant_label
        self.error_handler = error_handler
        self.chunk_summarizer = ChunkSummarizer(generator, self.config, error_handler)
        self.reducer = SummaryReducer(generator, self.config, error_handler)
        self.guard = GratitudeHeuristicGuard(assistant_label, user_label)

    async def generate_summary(self, session_id: str, transcript: Union[Transcript, str]) -> SessionSummary:
        """
        Summarize `transcript` (a Transcript or persisted `Label: text` lines).

        Raises:
            SummarizationError: The final summary request failed after retries
        """
        if isinstance(transcript, str):
            transcript = Transcript.from_text(transcript, self.user_label, self.assistant_label)

        chunks = chunk_transcript(
            transcript.turns,
            budget=self.config.chunk_budget_chars,
            user_label=self.user_label,
            assistant_label=self.assistant_label,
        )
        logger.info(f"📝 Summarizing session {session_id[:8]}: {len(transcript)} turns in {len(chunks)} chunk(s)")

        chunk_results = await self.chunk_summarizer.summarize_all(chunks)
        bullets = await self.reducer.reduce(chunk_results)
        final = await self._request_final(transcript, chunk_results, bullets)

        summary_bullets = local_dedupe(final.summary or bullets, self.config.max_summary_bullets)
        gratitude = self.guard.apply(transcript, final.gratitude_mentions)

        language = final.language.to_patterns() if final.language is not None else _merge_language(chunk_results)

        return SessionSummary(
            id=session_id,
            summary=summary_bullets,
            tone=final.tone,
            gratitude_mentions=gratitude,
            supporting_tones=final.supporting_tones,
            tone_note=final.tone_note,
            language=language,
            recommendation=final.recommendation,
        )

    async def _request_final(self,
                             transcript: Transcript,
                             chunk_results: List[ChunkResult],
                             bullets: List[str]) -> FinalSummaryPayload:
        prompt = build_final_prompt(
            bullets=bullets,
            signals=[_signal(r) for r in chunk_results if not r.is_empty],
            snippets=self._user_snippets(transcript),
            max_bullets=self.config.max_summary_bullets,
        )

        async def _request() -> FinalSummaryPayload:
            raw = await self.generator.complete(
                system_prompt=EXTRACTION_SYSTEM_PROMPT,
                user_prompt=prompt,
                temperature=self.config.extraction_temperature,
                json_mode=True,
            )
            return parse_json_payload(raw, FinalSummaryPayload)

        try:
            return await retry_with_backoff(
                _request,
                max_attempts=self.config.final_max_attempts,
                initial_delay=self.config.retry_delay_seconds,
                timeout=self.config.request_timeout_seconds,
                error_handler=self.error_handler,
                component_name="pipeline",
            )
        except Exception as e:
            raise SummarizationError(f"Final summary request failed: {e}") from e

    def _user_snippets(self, transcript: Transcript) -> str:
        """Most recent user speech, bounded by `snippet_chars`."""
        text = "\n".join(transcript.user_texts())
        limit = self.config.snippet_chars
        if len(text) <= limit:
            return text
        return text[-limit:]


def _signal(result: ChunkResult) -> Dict[str, Any]:
    return {
        'tone': result.local_tone.value if result.local_tone else None,
        'gratitude_mentions': result.gratitude_mentions,
        'language': result.language.to_dict(),
    }


def _merge_language(results: List[ChunkResult]) -> Optional[LanguagePatterns]:
    """Fallback language patterns when the final call omits them."""
    non_empty = [r for r in results if not r.is_empty]
    if not non_empty:
        return None
    words = Counter()
    for r in non_empty:
        words.update(w.lower() for w in r.language.repeated_words)
    first = non_empty[0].language
    return LanguagePatterns(
        repeated_words=[w for w, _ in words.most_common(5)],
        thinking_style=first.thinking_style,
        emotional_indicators=first.emotional_indicators,
    )
