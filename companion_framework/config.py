"""
Configuration for the companion framework.
Organized into discrete feature sections; every value can be overridden
from the environment (or a `.env` file at the project root).
"""

import os
from pathlib import Path
from typing import Any, Dict

from dotenv import load_dotenv

from .config_models import (
    FrameworkConfig,
    OpenAIConfig,
    SessionLimitConfig,
    SummarizationConfig,
    TurnTakingConfig,
)


# =============================================================================
# SECTION 1: ENVIRONMENT & CREDENTIALS
# =============================================================================

parent_dir = Path(__file__).parent.parent
env_path = parent_dir / ".env"
if env_path.exists():
    load_dotenv(env_path)


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value not in (None, "") else default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value not in (None, "") else default


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value in (None, ""):
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# =============================================================================
# SECTION 2: PROVIDER SELECTION
# =============================================================================

RESPONSE_PROVIDER = "openai_chat"
CAPTURE_PROVIDER = "sounddevice"
PERSISTENCE_PROVIDER = "json_file" if os.getenv("SESSION_STORE_PATH") else "memory"


# =============================================================================
# SECTION 3: TURN TAKING
# =============================================================================

TURN_TAKING_CONFIG = {
    "vad_gate": _env_float("VAD_GATE", 0.013),
    "level_smoothing": 0.25,
    "silence_hold_seconds": _env_float("SILENCE_HOLD_SECONDS", 0.9),
    "min_commit_chars": _env_int("MIN_COMMIT_CHARS", 2),
    "silence_tick_seconds": 0.1,
    "barge_in_enabled": _env_bool("BARGE_IN_ENABLED", True),
    "barge_in_min_gate": 0.015,
    "barge_in_gate_multiplier": 1.2,
    "barge_in_hold_seconds": _env_float("BARGE_IN_HOLD_SECONDS", 0.12),
    "resume_delay_seconds": 0.25,       # after normal playback completion
    "fast_resume_delay_seconds": 0.05,  # after a barge-in
    "recognition_restart_backoff": 0.3,
    "reply_timeout_seconds": _env_float("REPLY_TIMEOUT_SECONDS", 20.0),
    "reply_max_attempts": 2,
    "user_label": os.getenv("USER_LABEL", "You"),
    "assistant_label": os.getenv("ASSISTANT_LABEL", "Companion"),
}

CAPTURE_CONFIG = {
    "sample_rate": _env_int("CAPTURE_SAMPLE_RATE", 16000),
    "block_size": _env_int("CAPTURE_BLOCK_SIZE", 1024),
    "device": os.getenv("CAPTURE_DEVICE") or None,
}


# =============================================================================
# SECTION 4: SESSION LIMIT
# =============================================================================

SESSION_LIMIT_CONFIG = {
    "max_duration_seconds": _env_float("SESSION_MAX_SECONDS", 20 * 60),
    "warn_at_seconds": _env_float("SESSION_WARN_AT_SECONDS", 15 * 60),
    "tick_hz": 60.0,
    "final_countdown_seconds": 60.0,
}


# =============================================================================
# SECTION 5: SUMMARIZATION
# =============================================================================

SUMMARIZATION_CONFIG = {
    "chunk_budget_chars": _env_int("SUMMARY_CHUNK_BUDGET", 8000),
    "max_chunk_bullets": 3,
    "max_summary_bullets": 6,
    "max_concurrent_chunks": _env_int("SUMMARY_MAX_CONCURRENT_CHUNKS", 4),
    "request_timeout_seconds": _env_float("SUMMARY_REQUEST_TIMEOUT", 30.0),
    "chunk_max_attempts": 2,
    "final_max_attempts": 3,
    "retry_delay_seconds": 0.5,
    "extraction_temperature": 0.2,
    "snippet_chars": 4000,
    "auto_summarize": _env_bool("AUTO_SUMMARIZE", True),
}


# =============================================================================
# SECTION 6: OPENAI
# =============================================================================

OPENAI_CHAT_CONFIG = {
    "api_key": os.getenv("OPENAI_API_KEY", ""),
    "base_url": os.getenv("OPENAI_BASE_URL") or None,
    "model": os.getenv("OPENAI_MODEL", "gpt-4o"),
    "max_tokens": _env_int("OPENAI_MAX_TOKENS", 800),
    "reply_temperature": 0.7,
    "system_prompt": os.getenv("SYSTEM_PROMPT", ""),
    "request_timeout_seconds": 30.0,
}


# =============================================================================
# SECTION 7: LOGGING & STORAGE
# =============================================================================

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE") or None
SESSION_STORE_PATH = os.getenv("SESSION_STORE_PATH") or None


def get_framework_config() -> FrameworkConfig:
    """
    Assemble and validate the complete framework configuration.

    Raises:
        pydantic.ValidationError: If any section is invalid
    """
    return FrameworkConfig(
        turn_taking=TurnTakingConfig(**TURN_TAKING_CONFIG),
        session_limit=SessionLimitConfig(**SESSION_LIMIT_CONFIG),
        summarization=SummarizationConfig(**SUMMARIZATION_CONFIG),
        openai=OpenAIConfig(**OPENAI_CHAT_CONFIG),
        log_level=LOG_LEVEL,
        log_file=LOG_FILE,
        store_path=SESSION_STORE_PATH,
    )


def get_provider_config() -> Dict[str, Any]:
    """Sectioned provider dictionary for `ProviderFactory.create_all_providers`."""
    config = get_framework_config().to_legacy_dict()
    config["capture"] = {"provider": CAPTURE_PROVIDER, "config": dict(CAPTURE_CONFIG)}
    return config


def validate_environment() -> Dict[str, Any]:
    """
    Check that required environment variables are present.

    Returns:
        Dict with 'valid' plus lists of 'missing' and 'warnings'
    """
    missing = []
    warnings = []
    if not OPENAI_CHAT_CONFIG["api_key"]:
        missing.append("OPENAI_API_KEY")
    if PERSISTENCE_PROVIDER == "memory":
        warnings.append("SESSION_STORE_PATH not set; sessions are kept in memory only")
    return {'valid': not missing, 'missing': missing, 'warnings': warnings}
