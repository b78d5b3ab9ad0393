"""
Map step: one structured-extraction request per transcript chunk.
"""

import asyncio
from typing import List, Optional

from ..config_models import SummarizationConfig
from ..interfaces.response import TextGenerationInterface
from ..models.data_models import ChunkResult, Tone
from ..utils.error_handling import ErrorHandler, MalformedResponseError, retry_with_backoff
from ..utils.logging_config import get_logger
from .chunker import TranscriptChunk
from .prompts import EXTRACTION_SYSTEM_PROMPT, build_chunk_prompt
from .schemas import ChunkPayload, parse_json_payload

logger = get_logger("chunk_summarizer")


class ChunkSummarizer:
    """
    Extracts bullets, tone, gratitude count and language signals per chunk.

    A chunk whose request fails, times out or returns malformed JSON after
    the configured attempts contributes an empty ChunkResult instead of
    failing the session.
    """

    def __init__(self,
                 generator: TextGenerationInterface,
                 config: Optional[SummarizationConfig] = None,
                 error_handler: Optional[ErrorHandler] = None):
        self.generator = generator
        self.config = config or SummarizationConfig()
        self.error_handler = error_handler

    async def summarize(self, chunk: TranscriptChunk, index: int = 0, total: int = 1) -> ChunkResult:
        prompt = build_chunk_prompt(chunk.render(), index, total, self.config.max_chunk_bullets)

        async def _request() -> ChunkResult:
            raw = await self.generator.complete(
                system_prompt=EXTRACTION_SYSTEM_PROMPT,
                user_prompt=prompt,
                temperature=self.config.extraction_temperature,
                json_mode=True,
            )
            return self._to_result(parse_json_payload(raw, ChunkPayload))

        try:
            return await retry_with_backoff(
                _request,
                max_attempts=self.config.chunk_max_attempts,
                initial_delay=self.config.retry_delay_seconds,
                timeout=self.config.request_timeout_seconds,
                error_handler=self.error_handler,
                component_name="chunk_summarizer",
            )
        except Exception as e:
            logger.warning(f"Chunk {index + 1}/{total} degraded to empty result: {e}")
            return ChunkResult.empty()

    async def summarize_all(self, chunks: List[TranscriptChunk]) -> List[ChunkResult]:
        """
        Summarize every chunk concurrently (bounded) and wait for all of them.

        Results are returned in chunk order.
        """
        semaphore = asyncio.Semaphore(self.config.max_concurrent_chunks)
        total = len(chunks)

        async def _bounded(index: int, chunk: TranscriptChunk) -> ChunkResult:
            async with semaphore:
                return await self.summarize(chunk, index, total)

        results = await asyncio.gather(*[_bounded(i, c) for i, c in enumerate(chunks)])
        degraded = sum(1 for r in results if r.is_empty)
        logger.info(f"🧩 Summarized {total} chunk(s), {degraded} empty")
        return list(results)

    def _to_result(self, payload: ChunkPayload) -> ChunkResult:
        tone = Tone.map(payload.local_tone)
        if tone is None:
            raise MalformedResponseError(f"Unknown chunk tone: {payload.local_tone!r}")
        return ChunkResult(
            bullets=payload.bullets[:self.config.max_chunk_bullets],
            gratitude_mentions=payload.gratitude_mentions,
            local_tone=tone,
            language=payload.language.to_patterns(),
        )
