"""
In-process session store.
"""

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ...interfaces.persistence import PersistenceInterface
from ...models.data_models import CacheEntry, SessionSummary, StoredSummary
from ...utils.logging_config import get_logger

logger = get_logger("store")


class InMemorySessionStore(PersistenceInterface):
    """
    Keeps sessions, summaries and cache entries in dictionaries.

    Session records are plain dicts so that subclasses can serialize them
    directly.
    """

    def __init__(self):
        self.sessions: Dict[str, Dict[str, Any]] = {}
        self.caches: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._lock = asyncio.Lock()

    async def start_session(self, user_id: str) -> str:
        session_id = str(uuid.uuid4())
        async with self._lock:
            self.sessions[session_id] = {
                'userId': user_id,
                'createdAt': datetime.now(timezone.utc).isoformat(),
                'transcript': '',
                'status': 'active',
            }
            await self._changed()
        logger.debug(f"Opened session {session_id[:8]} for {user_id}")
        return session_id

    async def append_transcript(self, session_id: str, full_text: str) -> None:
        async with self._lock:
            self._session(session_id)['transcript'] = full_text
            await self._changed()

    async def write_summary(self, session_id: str, summary: SessionSummary, duration_sec: int) -> None:
        async with self._lock:
            record = self._session(session_id)
            record['summary'] = summary.to_dict()
            record['durationSec'] = int(duration_sec)
            record['status'] = 'summarized'
            await self._changed()

    async def read_cache(self, user_id: str, range_key: str) -> Optional[CacheEntry]:
        data = self.caches.get(user_id, {}).get(range_key)
        return CacheEntry.from_dict(data) if data else None

    async def write_cache(self, user_id: str, range_key: str, entry: CacheEntry) -> None:
        async with self._lock:
            self.caches.setdefault(user_id, {})[range_key] = entry.to_dict()
            await self._changed()

    async def list_summaries(self, user_id: str, since: Optional[datetime] = None) -> List[StoredSummary]:
        results = []
        for session_id, record in self.sessions.items():
            if record.get('userId') != user_id or 'summary' not in record:
                continue
            summary = SessionSummary.from_dict(record['summary'])
            if since is not None and summary.created_at < since:
                continue
            results.append(StoredSummary(
                session_id=session_id,
                user_id=user_id,
                summary=summary,
                duration_sec=int(record.get('durationSec', 0)),
            ))
        results.sort(key=lambda s: s.summary.created_at, reverse=True)
        return results

    async def mark_session_warning(self, session_id: str) -> None:
        async with self._lock:
            self._session(session_id)['warningIssuedAt'] = datetime.now(timezone.utc).isoformat()
            await self._changed()

    async def set_max_duration(self, session_id: str, seconds: int) -> None:
        async with self._lock:
            self._session(session_id)['maxDurationSec'] = int(seconds)
            await self._changed()

    async def end_session_by_time_limit(self, session_id: str) -> None:
        async with self._lock:
            record = self._session(session_id)
            record['status'] = 'ended_by_time_limit'
            record['endedAt'] = datetime.now(timezone.utc).isoformat()
            await self._changed()

    def _session(self, session_id: str) -> Dict[str, Any]:
        try:
            return self.sessions[session_id]
        except KeyError:
            raise KeyError(f"Unknown session: {session_id}") from None

    async def _changed(self) -> None:
        """Hook for subclasses that persist the dictionaries."""
        return None
