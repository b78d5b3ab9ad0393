"""
Pydantic configuration models with validation.
"""

from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, Dict, Any
import os

from .models.data_models import DEFAULT_USER_LABEL, DEFAULT_ASSISTANT_LABEL


class TurnTakingConfig(BaseModel):
    """Voice activity, commit, barge-in and resume timing."""
    vad_gate: float = Field(0.013, gt=0.0, lt=1.0, description="RMS gate for voiced frames")
    level_smoothing: float = Field(0.25, gt=0.0, le=1.0, description="Alpha of the smoothed mic level")
    silence_hold_seconds: float = Field(0.9, gt=0.0, description="Trailing silence before auto-commit")
    min_commit_chars: int = Field(2, ge=1, description="Minimum utterance length to commit")
    silence_tick_seconds: float = Field(0.1, gt=0.0, description="Silence check interval")
    barge_in_enabled: bool = Field(True, description="Allow interrupting assistant playback")
    barge_in_min_gate: float = Field(0.015, gt=0.0, lt=1.0, description="Floor of the barge-in gate")
    barge_in_gate_multiplier: float = Field(1.2, ge=1.0, description="Barge-in gate relative to the VAD gate")
    barge_in_hold_seconds: float = Field(0.12, gt=0.0, description="Sustained speech required to barge in")
    resume_delay_seconds: float = Field(0.25, ge=0.0, description="Delay before listening after playback")
    fast_resume_delay_seconds: float = Field(0.05, ge=0.0, description="Delay before listening after barge-in")
    recognition_restart_backoff: float = Field(0.3, ge=0.0, description="Backoff before restarting recognition")
    reply_timeout_seconds: float = Field(20.0, gt=0.0, description="Deadline for one reply request")
    reply_max_attempts: int = Field(2, ge=1, le=5, description="Reply request attempts")
    user_label: str = Field(DEFAULT_USER_LABEL, description="Transcript label for user turns")
    assistant_label: str = Field(DEFAULT_ASSISTANT_LABEL, description="Transcript label for assistant turns")

    @field_validator('user_label', 'assistant_label')
    @classmethod
    def validate_label(cls, v):
        v = v.strip()
        if not v or ':' in v:
            raise ValueError('Speaker labels must be non-empty and must not contain ":"')
        return v

    @model_validator(mode='after')
    def validate_resume_delays(self):
        if self.fast_resume_delay_seconds > self.resume_delay_seconds:
            raise ValueError('fast_resume_delay_seconds must not exceed resume_delay_seconds')
        if self.user_label.lower() == self.assistant_label.lower():
            raise ValueError('user_label and assistant_label must differ')
        return self


class SessionLimitConfig(BaseModel):
    """Session duration cap."""
    max_duration_seconds: float = Field(20 * 60, gt=0.0, description="Hard session limit")
    warn_at_seconds: float = Field(15 * 60, ge=0.0, description="Warn when this much time remains")
    tick_hz: float = Field(60.0, gt=0.0, le=240.0, description="Limiter tick rate")
    final_countdown_seconds: float = Field(60.0, ge=0.0, description="Show countdown below this remaining time")

    @model_validator(mode='after')
    def validate_thresholds(self):
        if self.warn_at_seconds >= self.max_duration_seconds:
            raise ValueError('warn_at_seconds must be smaller than max_duration_seconds')
        return self


class SummarizationConfig(BaseModel):
    """Summarization pipeline configuration."""
    chunk_budget_chars: int = Field(8000, ge=1, description="Rendered characters per chunk")
    max_chunk_bullets: int = Field(3, ge=1, le=3, description="Bullets per chunk")
    max_summary_bullets: int = Field(6, ge=1, le=6, description="Bullets in the final summary")
    max_concurrent_chunks: int = Field(4, ge=1, le=32, description="Chunk requests in flight")
    request_timeout_seconds: float = Field(30.0, gt=0.0, description="Deadline for one request")
    chunk_max_attempts: int = Field(2, ge=1, le=5, description="Attempts per chunk request")
    final_max_attempts: int = Field(3, ge=1, le=5, description="Attempts for the final summary request")
    retry_delay_seconds: float = Field(0.5, ge=0.0, description="Initial retry backoff")
    extraction_temperature: float = Field(0.2, ge=0.0, le=2.0, description="Temperature for structured calls")
    snippet_chars: int = Field(4000, ge=200, description="User snippet budget in the final request")
    auto_summarize: bool = Field(True, description="Summarize automatically when a session ends")


class OpenAIConfig(BaseModel):
    """OpenAI chat completion configuration."""
    api_key: str = Field("", description="OpenAI API key")
    base_url: Optional[str] = Field(None, description="Alternative API base URL")
    model: str = Field("gpt-4o", description="Model name")
    max_tokens: int = Field(800, ge=16, le=4096, description="Maximum tokens per completion")
    reply_temperature: float = Field(0.7, ge=0.0, le=2.0, description="Temperature for conversational replies")
    system_prompt: str = Field("", description="Override for the conversational system prompt")
    request_timeout_seconds: float = Field(30.0, gt=0.0, description="Client-side HTTP timeout")

    @field_validator('api_key')
    @classmethod
    def validate_api_key(cls, v):
        if v and len(v) < 20:
            raise ValueError('Invalid OpenAI API key')
        return v


class FrameworkConfig(BaseModel):
    """Complete framework configuration."""
    turn_taking: TurnTakingConfig = Field(default_factory=TurnTakingConfig)
    session_limit: SessionLimitConfig = Field(default_factory=SessionLimitConfig)
    summarization: SummarizationConfig = Field(default_factory=SummarizationConfig)
    openai: OpenAIConfig = Field(default_factory=OpenAIConfig)
    log_level: str = Field("INFO", description="Framework log level")
    log_file: Optional[str] = Field(None, description="Optional log file path")
    store_path: Optional[str] = Field(None, description="JSON session store path (memory store when unset)")

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        v = v.upper()
        if v not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            raise ValueError(f'Invalid log level: {v}')
        return v

    def require_api_key(self) -> str:
        """Return the OpenAI API key or raise if it is missing."""
        if not self.openai.api_key:
            raise ValueError("OpenAI API key required (set OPENAI_API_KEY)")
        return self.openai.api_key

    @classmethod
    def from_env(cls) -> 'FrameworkConfig':
        """Load configuration from environment variables."""
        return cls(
            turn_taking=TurnTakingConfig(
                vad_gate=float(os.getenv('VAD_GATE', '0.013')),
                silence_hold_seconds=float(os.getenv('SILENCE_HOLD_SECONDS', '0.9')),
                barge_in_enabled=os.getenv('BARGE_IN_ENABLED', 'true').lower() == 'true',
            ),
            session_limit=SessionLimitConfig(
                max_duration_seconds=float(os.getenv('SESSION_MAX_SECONDS', str(20 * 60))),
                warn_at_seconds=float(os.getenv('SESSION_WARN_AT_SECONDS', str(15 * 60))),
            ),
            summarization=SummarizationConfig(
                chunk_budget_chars=int(os.getenv('SUMMARY_CHUNK_BUDGET', '8000')),
            ),
            openai=OpenAIConfig(
                api_key=os.getenv('OPENAI_API_KEY', ''),
                base_url=os.getenv('OPENAI_BASE_URL') or None,
                model=os.getenv('OPENAI_MODEL', 'gpt-4o'),
                system_prompt=os.getenv('SYSTEM_PROMPT', ''),
            ),
            log_level=os.getenv('LOG_LEVEL', 'INFO'),
            log_file=os.getenv('LOG_FILE') or None,
            store_path=os.getenv('SESSION_STORE_PATH') or None,
        )

    def to_legacy_dict(self) -> Dict[str, Any]:
        """Sectioned dictionary form consumed by provider constructors."""
        return {
            'turn_taking': self.turn_taking.model_dump(),
            'session_limit': self.session_limit.model_dump(),
            'summarization': self.summarization.model_dump(),
            'response': {
                'provider': 'openai_chat',
                'config': self.openai.model_dump(),
            },
            'persistence': {
                'provider': 'json_file' if self.store_path else 'memory',
                'config': {'path': self.store_path} if self.store_path else {},
            },
            'logging': {
                'level': self.log_level,
                'file': self.log_file,
            },
        }
