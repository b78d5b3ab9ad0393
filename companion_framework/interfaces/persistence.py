"""
Abstract interface for the session persistence store.

The turn-taking engine treats every call as best-effort: failures are logged
and never change coordinator state.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from ..models.data_models import CacheEntry, SessionSummary, StoredSummary


class PersistenceInterface(ABC):
    """Abstract base class for session/summary/cache stores."""

    @abstractmethod
    async def start_session(self, user_id: str) -> str:
        """Create a session record and return its id."""
        pass

    @abstractmethod
    async def append_transcript(self, session_id: str, full_text: str) -> None:
        """Replace the stored transcript with the full transcript so far."""
        pass

    @abstractmethod
    async def write_summary(self, session_id: str, summary: SessionSummary, duration_sec: int) -> None:
        pass

    @abstractmethod
    async def read_cache(self, user_id: str, range_key: str) -> Optional[CacheEntry]:
        pass

    @abstractmethod
    async def write_cache(self, user_id: str, range_key: str, entry: CacheEntry) -> None:
        pass

    async def list_summaries(self, user_id: str, since: Optional[datetime] = None) -> List[StoredSummary]:
        """Summaries for `user_id` created at or after `since`, newest first."""
        return []

    async def mark_session_warning(self, session_id: str) -> None:
        """Record that the time-limit warning was shown."""
        return None

    async def set_max_duration(self, session_id: str, seconds: int) -> None:
        return None

    async def end_session_by_time_limit(self, session_id: str) -> None:
        return None
