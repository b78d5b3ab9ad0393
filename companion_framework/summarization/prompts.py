"""
Prompt templates for the summarization and insight calls.
"""

import json
from typing import Any, Dict, List

from ..models.data_models import Tone

TONE_CHOICES = ", ".join(t.value for t in Tone)

EXTRACTION_SYSTEM_PROMPT = (
    "You analyze transcripts of supportive voice conversations. Focus on what the USER "
    "said and felt, not on the assistant's suggestions. Respond with a single JSON object "
    "and nothing else."
)

CHUNK_PROMPT = """Summarize this part of a conversation.

Return JSON with exactly these keys:
{{
  "bullets": [at most {max_bullets} short user-centric bullet strings],
  "gratitude_mentions": integer count of times the USER expressed gratitude,
  "local_tone": one of [{tones}],
  "language": {{
    "repeated_words": [up to 5 meaningful words the USER repeats, no filler],
    "thinking_style": short phrase,
    "emotional_indicators": short phrase
  }}
}}

TRANSCRIPT PART {index} OF {total}:
{chunk}"""

REDUCE_PROMPT = """These bullets were extracted from consecutive parts of ONE conversation.
Merge them into 1 to {max_bullets} bullets covering the ENTIRE session. Remove duplicates
and near-duplicates, keep the user's perspective.

Return JSON: {{"bullets": [strings]}}

BULLETS:
{bullets}"""

FINAL_PROMPT = """Write the final summary of a conversation session.

Session bullets (merged from every part of the session):
{bullets}

Per-part signals:
{signals}

Representative USER snippets:
{snippets}

Return JSON with these keys:
{{
  "summary": [1 to {max_bullets} bullet strings],
  "tone": overall tone word (prefer one of [{tones}]),
  "supporting_tones": [up to 2 tone words],
  "tone_note": one sentence explaining the tone,
  "language": {{"repeated_words": [up to 5], "thinking_style": string, "emotional_indicators": string}},
  "recommendation": one concrete, gentle next step,
  "gratitude_mentions": integer count of times the USER expressed gratitude
}}"""

LANGUAGE_PATTERNS_PROMPT = """Across the last {range_days} days of sessions, describe the user's language patterns.

Session bullets:
{bullets}

Per-session language signals:
{signals}

Return JSON: {{"repeated_words": [up to 5], "thinking_style": string, "emotional_indicators": string}}"""

RECOMMENDATION_PROMPT = """Across the last {range_days} days of sessions the dominant tone was {top_tone}
and the user expressed gratitude {gratitude_total} time(s).

Session bullets:
{bullets}

Per-session language signals:
{signals}

Suggest one concrete, gentle recommendation for the coming days.
Return JSON: {{"recommendation": string}}"""


def format_bullets(bullets: List[str]) -> str:
    if not bullets:
        return "- (none)"
    return "\n".join(f"- {b}" for b in bullets)


def format_signals(signals: List[Dict[str, Any]]) -> str:
    if not signals:
        return "(none)"
    return "\n".join(json.dumps(s, ensure_ascii=False, sort_keys=True) for s in signals)


def build_chunk_prompt(chunk_text: str, index: int, total: int, max_bullets: int) -> str:
    return CHUNK_PROMPT.format(
        max_bullets=max_bullets,
        tones=TONE_CHOICES,
        index=index + 1,
        total=total,
        chunk=chunk_text,
    )


def build_reduce_prompt(bullets: List[str], max_bullets: int) -> str:
    return REDUCE_PROMPT.format(max_bullets=max_bullets, bullets=format_bullets(bullets))


def build_final_prompt(bullets: List[str], signals: List[Dict[str, Any]],
                       snippets: str, max_bullets: int) -> str:
    return FINAL_PROMPT.format(
        bullets=format_bullets(bullets),
        signals=format_signals(signals),
        snippets=snippets or "(none)",
        max_bullets=max_bullets,
        tones=TONE_CHOICES,
    )


def build_language_patterns_prompt(range_days: int, bullets: List[str],
                                   signals: List[Dict[str, Any]]) -> str:
    return LANGUAGE_PATTERNS_PROMPT.format(
        range_days=range_days,
        bullets=format_bullets(bullets),
        signals=format_signals(signals),
    )


def build_recommendation_prompt(range_days: int, bullets: List[str], signals: List[Dict[str, Any]],
                                gratitude_total: int, top_tone: str) -> str:
    return RECOMMENDATION_PROMPT.format(
        range_days=range_days,
        top_tone=top_tone or "unknown",
        gratitude_total=gratitude_total,
        bullets=format_bullets(bullets),
        signals=format_signals(signals),
    )
