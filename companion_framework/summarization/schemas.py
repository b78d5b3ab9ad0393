"""
JSON schemas for the structured text-generation calls.

Every structured completion is parsed with `parse_json_payload`; anything
that is not a JSON object matching the model raises MalformedResponseError,
which callers treat exactly like a failed request.
"""

import json
from typing import List, Optional, Type, TypeVar

from pydantic import BaseModel, Field, ValidationError, field_validator

from ..models.data_models import LanguagePatterns
from ..utils.error_handling import MalformedResponseError

MAX_REPEATED_WORDS = 5


def _clean_strings(values) -> List[str]:
    if values is None:
        return []
    if isinstance(values, str):
        values = [values]
    cleaned = []
    for v in values:
        if v is None:
            continue
        s = " ".join(str(v).split())
        if s:
            cleaned.append(s)
    return cleaned


class LanguagePayload(BaseModel):
    repeated_words: List[str] = Field(default_factory=list)
    thinking_style: str = ""
    emotional_indicators: str = ""

    @field_validator('repeated_words', mode='before')
    @classmethod
    def clean_words(cls, v):
        return _clean_strings(v)[:MAX_REPEATED_WORDS]

    @field_validator('thinking_style', 'emotional_indicators', mode='before')
    @classmethod
    def none_to_empty(cls, v):
        return "" if v is None else str(v).strip()

    def to_patterns(self) -> LanguagePatterns:
        return LanguagePatterns(
            repeated_words=list(self.repeated_words),
            thinking_style=self.thinking_style,
            emotional_indicators=self.emotional_indicators,
        )


class ChunkPayload(BaseModel):
    """Per-chunk extraction."""
    bullets: List[str] = Field(default_factory=list)
    gratitude_mentions: int = Field(0, ge=0)
    local_tone: str
    language: LanguagePayload = Field(default_factory=LanguagePayload)

    @field_validator('bullets', mode='before')
    @classmethod
    def clean_bullets(cls, v):
        return _clean_strings(v)


class ReducePayload(BaseModel):
    """Merged session-wide bullets."""
    bullets: List[str]

    @field_validator('bullets', mode='before')
    @classmethod
    def clean_bullets(cls, v):
        cleaned = _clean_strings(v)
        if not cleaned:
            raise ValueError('at least one bullet is required')
        return cleaned


class FinalSummaryPayload(BaseModel):
    """Terminal structured summary of the whole session."""
    summary: List[str] = Field(default_factory=list)
    tone: str
    supporting_tones: Optional[List[str]] = None
    tone_note: Optional[str] = None
    language: Optional[LanguagePayload] = None
    recommendation: Optional[str] = None
    gratitude_mentions: int = Field(0, ge=0)

    @field_validator('summary', mode='before')
    @classmethod
    def clean_summary(cls, v):
        return _clean_strings(v)

    @field_validator('supporting_tones', mode='before')
    @classmethod
    def clean_tones(cls, v):
        return None if v is None else _clean_strings(v)

    @field_validator('tone')
    @classmethod
    def tone_not_blank(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('tone must not be blank')
        return v

    @field_validator('tone_note', 'recommendation')
    @classmethod
    def blank_to_none(cls, v):
        if v is None:
            return None
        v = v.strip()
        return v or None


class LanguagePatternsPayload(LanguagePayload):
    """Range-level language pattern variant."""


class RecommendationPayload(BaseModel):
    recommendation: str

    @field_validator('recommendation')
    @classmethod
    def not_blank(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('recommendation must not be blank')
        return v


T = TypeVar('T', bound=BaseModel)


def parse_json_payload(raw: Optional[str], model: Type[T]) -> T:
    """
    Parse a completion as strict JSON and validate it against `model`.

    Markdown code fences around the object are tolerated.

    Raises:
        MalformedResponseError: Not JSON, not an object, or schema mismatch
    """
    if raw is None:
        raise MalformedResponseError(f"Empty {model.__name__} response")
    text = raw.strip()
    if text.startswith("```"):
        text = text.strip("`")
        if text.lower().startswith("json"):
            text = text[4:]
        text = text.strip()

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"Invalid JSON for {model.__name__}: {e}", raw=raw) from e

    if not isinstance(data, dict):
        raise MalformedResponseError(f"Expected a JSON object for {model.__name__}", raw=raw)

    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise MalformedResponseError(
            f"{model.__name__} failed validation: {e.error_count()} error(s)", raw=raw
        ) from e
