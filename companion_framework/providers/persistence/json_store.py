"""
Session store persisted to a single JSON file.
"""

import asyncio
import json
from pathlib import Path
from typing import Union

from ...utils.logging_config import get_logger
from .memory_store import InMemorySessionStore

logger = get_logger("store")


class JsonFileSessionStore(InMemorySessionStore):
    """
    In-memory store that rewrites `path` after every change.

    The file holds `{"sessions": {...}, "caches": {...}}`.
    """

    def __init__(self, path: Union[str, Path]):
        super().__init__()
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable session store {self.path}: {e}")
            return
        self.sessions = dict(data.get('sessions', {}))
        self.caches = dict(data.get('caches', {}))
        logger.info(f"📂 Loaded {len(self.sessions)} session(s) from {self.path}")

    async def _changed(self) -> None:
        # Serialised on the loop while the caller holds the store lock
        snapshot = json.dumps({'sessions': self.sessions, 'caches': self.caches}, indent=2)
        await asyncio.to_thread(self._write_snapshot, snapshot)

    def _write_snapshot(self, snapshot: str) -> None:
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w") as f:
            f.write(snapshot)
        tmp_path.replace(self.path)
