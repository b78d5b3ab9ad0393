"""
Common data structures for the companion framework.
"""

import re
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any, Iterable, Iterator
from datetime import datetime, timezone
from enum import Enum

import numpy as np


DEFAULT_USER_LABEL = "You"
DEFAULT_ASSISTANT_LABEL = "Companion"

_LINE_BREAK = re.compile(r"\s*[\r\n]+\s*")


class Speaker(str, Enum):
    """Who produced a turn."""
    USER = "user"
    ASSISTANT = "assistant"


class Tone(str, Enum):
    """Fixed six-value tone taxonomy used by chunk summaries and insights."""
    CALM = "Calm"
    HOPEFUL = "Hopeful"
    REFLECTIVE = "Reflective"
    ANXIOUS = "Anxious"
    STRESSED = "Stressed"
    SAD = "Sad"

    @classmethod
    def map(cls, raw: Optional[str]) -> Optional['Tone']:
        """
        Map a free-form tone word onto the taxonomy.

        Returns None when the word does not belong to any bucket.
        """
        if not raw:
            return None
        s = raw.strip().lower()
        for tone, synonyms in _TONE_SYNONYMS.items():
            if s == tone.value.lower() or s in synonyms:
                return tone
        return None


_TONE_SYNONYMS = {
    Tone.CALM: {"peaceful", "grounded", "steady"},
    Tone.HOPEFUL: {"supportive", "encouraging", "optimistic", "uplifting", "motivating", "motivated"},
    Tone.REFLECTIVE: {"thoughtful", "analytical", "practical"},
    Tone.ANXIOUS: {"worried", "uneasy", "nervous"},
    Tone.STRESSED: {"overwhelmed", "pressured", "tense", "frustrated"},
    Tone.SAD: {"down", "low", "disappointed"},
}


class PipelineKind(str, Enum):
    """Cacheable range-insight variants."""
    LANGUAGE_PATTERNS = "language_patterns"
    RECOMMENDATION = "recommendation"


@dataclass
class AudioFrame:
    """
    One buffer of captured audio.

    `samples` is a mono numpy array, either float32 in [-1, 1] or int16.
    """
    samples: np.ndarray
    frame_count: int
    sample_rate: int = 16000

    @property
    def duration(self) -> float:
        """Duration of the frame in seconds."""
        if self.sample_rate <= 0:
            return 0.0
        return self.frame_count / self.sample_rate


@dataclass
class TranscriptionResult:
    """Best hypothesis for the whole current utterance."""
    text: str
    is_final: bool
    timestamp: float = field(default_factory=lambda: datetime.now().timestamp())
    confidence: Optional[float] = None

    def __str__(self) -> str:
        return f"{'[FINAL]' if self.is_final else '[PARTIAL]'} {self.text}"


@dataclass(frozen=True)
class Turn:
    """One attributed unit of the transcript. Never mutated after creation."""
    speaker: Speaker
    text: str

    def render(self, user_label: str = DEFAULT_USER_LABEL,
               assistant_label: str = DEFAULT_ASSISTANT_LABEL) -> str:
        """
        Render as a single `Label: text` line (no trailing newline).

        Line breaks inside the text are folded to spaces so every rendered
        line carries its speaker label.
        """
        label = assistant_label if self.speaker == Speaker.ASSISTANT else user_label
        text = _LINE_BREAK.sub(" ", self.text.strip())
        return f"{label}: {text}"

    def rendered_length(self, user_label: str = DEFAULT_USER_LABEL,
                        assistant_label: str = DEFAULT_ASSISTANT_LABEL) -> int:
        """Length of `label + ": " + text + "\\n"`."""
        return len(self.render(user_label, assistant_label)) + 1


class Transcript:
    """
    Append-only, insertion-ordered list of turns.

    Turns are immutable and can never be removed or reordered; `turns`
    returns a copy.
    """

    def __init__(self, user_label: str = DEFAULT_USER_LABEL,
                 assistant_label: str = DEFAULT_ASSISTANT_LABEL,
                 turns: Optional[Iterable[Turn]] = None):
        self.user_label = user_label
        self.assistant_label = assistant_label
        self._turns: List[Turn] = list(turns or [])

    def append(self, speaker: Speaker, text: str) -> Turn:
        turn = Turn(speaker=speaker, text=text)
        self._turns.append(turn)
        return turn

    @property
    def turns(self) -> List[Turn]:
        return list(self._turns)

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[Turn]:
        return iter(list(self._turns))

    def render(self) -> str:
        """Full transcript text, one `Label: text` line per turn."""
        return "\n".join(t.render(self.user_label, self.assistant_label) for t in self._turns)

    def user_texts(self) -> List[str]:
        return [t.text for t in self._turns if t.speaker == Speaker.USER]

    @classmethod
    def from_text(cls, text: str, user_label: str = DEFAULT_USER_LABEL,
                  assistant_label: str = DEFAULT_ASSISTANT_LABEL) -> 'Transcript':
        """
        Parse persisted `Label: text` lines back into turns.

        A labelled line starts a new turn for that speaker. An unlabelled line
        continues the previous turn (text written before line breaks were
        folded); unlabelled lines before any label belong to the user.
        """
        transcript = cls(user_label=user_label, assistant_label=assistant_label)
        assistant_prefix = re.compile(rf"^\s*{re.escape(assistant_label)}\s*:\s*", re.IGNORECASE)
        user_prefix = re.compile(rf"^\s*{re.escape(user_label)}\s*:\s*", re.IGNORECASE)

        pending: List[List[Any]] = []
        for line in text.splitlines():
            if not line.strip():
                continue
            match = assistant_prefix.match(line)
            if match:
                pending.append([Speaker.ASSISTANT, [line[match.end():].strip()]])
                continue
            match = user_prefix.match(line)
            if match:
                pending.append([Speaker.USER, [line[match.end():].strip()]])
            elif pending:
                pending[-1][1].append(line.strip())
            else:
                pending.append([Speaker.USER, [line.strip()]])

        for speaker, parts in pending:
            transcript.append(speaker, " ".join(p for p in parts if p))
        return transcript


@dataclass
class LanguagePatterns:
    """Language signals extracted from the user's speech."""
    repeated_words: List[str] = field(default_factory=list)
    thinking_style: str = ""
    emotional_indicators: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            'repeatedWords': list(self.repeated_words),
            'thinkingStyle': self.thinking_style,
            'emotionalIndicators': self.emotional_indicators,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LanguagePatterns':
        return cls(
            repeated_words=list(data.get('repeatedWords', [])),
            thinking_style=data.get('thinkingStyle', ''),
            emotional_indicators=data.get('emotionalIndicators', ''),
        )


@dataclass
class ChunkResult:
    """Structured signals extracted from one transcript chunk."""
    bullets: List[str] = field(default_factory=list)
    gratitude_mentions: int = 0
    local_tone: Optional[Tone] = None
    language: LanguagePatterns = field(default_factory=LanguagePatterns)

    @classmethod
    def empty(cls) -> 'ChunkResult':
        return cls()

    @property
    def is_empty(self) -> bool:
        return not self.bullets and self.local_tone is None and self.gratitude_mentions == 0


@dataclass(frozen=True)
class SessionSummary:
    """Final immutable summary of one session."""
    id: str
    summary: List[str]
    tone: str
    gratitude_mentions: int = 0
    supporting_tones: Optional[List[str]] = None
    tone_note: Optional[str] = None
    language: Optional[LanguagePatterns] = None
    recommendation: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    DISPLAY_BULLETS = 3

    @property
    def display_bullets(self) -> List[str]:
        """Bullets trimmed for display."""
        return list(self.summary[:self.DISPLAY_BULLETS])

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'id': self.id,
            'summary': list(self.summary),
            'tone': self.tone,
            'gratitudeMentions': self.gratitude_mentions,
            'createdAt': self.created_at.isoformat(),
        }
        if self.supporting_tones is not None:
            data['supportingTones'] = list(self.supporting_tones)
        if self.tone_note is not None:
            data['toneNote'] = self.tone_note
        if self.language is not None:
            data['language'] = self.language.to_dict()
        if self.recommendation is not None:
            data['recommendation'] = self.recommendation
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SessionSummary':
        language = data.get('language')
        created_at = data.get('createdAt')
        return cls(
            id=data['id'],
            summary=list(data.get('summary', [])),
            tone=data.get('tone', ''),
            gratitude_mentions=int(data.get('gratitudeMentions', 0)),
            supporting_tones=data.get('supportingTones'),
            tone_note=data.get('toneNote'),
            language=LanguagePatterns.from_dict(language) if language else None,
            recommendation=data.get('recommendation'),
            created_at=datetime.fromisoformat(created_at) if created_at else datetime.now(timezone.utc),
        )


@dataclass
class CacheEntry:
    """Cached payload for one (user, range, kind) key."""
    digest: str
    payload: Dict[str, Any]
    updated_at: float = field(default_factory=lambda: datetime.now().timestamp())

    def to_dict(self) -> Dict[str, Any]:
        return {'digest': self.digest, 'payload': self.payload, 'updatedAt': self.updated_at}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CacheEntry':
        return cls(
            digest=data['digest'],
            payload=dict(data.get('payload', {})),
            updated_at=float(data.get('updatedAt', 0.0)),
        )


@dataclass
class StoredSummary:
    """A persisted summary together with its session bookkeeping."""
    session_id: str
    user_id: str
    summary: SessionSummary
    duration_sec: int = 0
