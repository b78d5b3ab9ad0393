"""
Reduce step: merge per-chunk bullets into one bounded, deduplicated list.
"""

import re
from typing import Iterable, List, Optional

from ..config_models import SummarizationConfig
from ..interfaces.response import TextGenerationInterface
from ..models.data_models import ChunkResult
from ..utils.error_handling import ErrorHandler, retry_with_backoff
from ..utils.logging_config import get_logger
from .prompts import EXTRACTION_SYSTEM_PROMPT, build_reduce_prompt
from .schemas import ReducePayload, parse_json_payload

logger = get_logger("reducer")

MAX_SUMMARY_BULLETS = 6

_WHITESPACE = re.compile(r"\s+")


def normalize_bullet(bullet: str) -> str:
    """Dedup key: trimmed, whitespace collapsed, lowercased."""
    return _WHITESPACE.sub(" ", bullet.strip()).lower()


def local_dedupe(bullets: Iterable[str], cap: int = MAX_SUMMARY_BULLETS) -> List[str]:
    """Keep the first occurrence of each normalized bullet, in order, up to `cap`."""
    seen = set()
    result: List[str] = []
    for bullet in bullets:
        key = normalize_bullet(bullet)
        if not key or key in seen:
            continue
        seen.add(key)
        result.append(_WHITESPACE.sub(" ", bullet.strip()))
        if len(result) >= cap:
            break
    return result


class SummaryReducer:
    """Asks the service to merge bullets; falls back to `local_dedupe`."""

    def __init__(self,
                 generator: TextGenerationInterface,
                 config: Optional[SummarizationConfig] = None,
                 error_handler: Optional[ErrorHandler] = None):
        self.generator = generator
        self.config = config or SummarizationConfig()
        self.error_handler = error_handler

    async def reduce(self, results: List[ChunkResult]) -> List[str]:
        cap = self.config.max_summary_bullets
        bullets = [b for r in results for b in r.bullets]
        if not bullets:
            return []

        async def _request() -> List[str]:
            raw = await self.generator.complete(
                system_prompt=EXTRACTION_SYSTEM_PROMPT,
                user_prompt=build_reduce_prompt(bullets, cap),
                temperature=self.config.extraction_temperature,
                json_mode=True,
            )
            return parse_json_payload(raw, ReducePayload).bullets

        try:
            merged = await retry_with_backoff(
                _request,
                max_attempts=self.config.chunk_max_attempts,
                initial_delay=self.config.retry_delay_seconds,
                timeout=self.config.request_timeout_seconds,
                error_handler=self.error_handler,
                component_name="reducer",
            )
        except Exception as e:
            logger.warning(f"Reduce request failed ({e}); using local dedupe")
            return local_dedupe(bullets, cap)

        return local_dedupe(merged, cap)
