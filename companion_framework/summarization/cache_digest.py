"""
Digest-gated cache for range-level pipeline variants.
"""

import hashlib
import json
from typing import Any, Awaitable, Callable, Dict, Optional

from ..interfaces.persistence import PersistenceInterface
from ..models.data_models import CacheEntry, PipelineKind
from ..utils.logging_config import get_logger

logger = get_logger("cache")


def compute_digest(inputs: Any) -> str:
    """
    sha256 over the canonical JSON form of `inputs`.

    Mapping keys are sorted; list order is significant.
    """
    canonical = json.dumps(inputs, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def cache_key(range_days: int, kind: PipelineKind) -> str:
    return f"{range_days}d:{kind.value}"


class DigestCache:
    """
    Returns the cached payload when the stored digest matches the inputs;
    otherwise runs `compute` and stores the new (payload, digest) pair.

    A failed read is a miss. A failed `compute` returns the stale payload if
    one exists, else None. A failed write is logged.
    """

    def __init__(self, store: PersistenceInterface):
        self.store = store
        self.hits = 0
        self.misses = 0

    async def get_or_compute(self,
                             user_id: str,
                             range_days: int,
                             kind: PipelineKind,
                             inputs: Dict[str, Any],
                             compute: Callable[[], Awaitable[Dict[str, Any]]]) -> Optional[Dict[str, Any]]:
        key = cache_key(range_days, kind)
        digest = compute_digest(inputs)

        entry: Optional[CacheEntry] = None
        try:
            entry = await self.store.read_cache(user_id, key)
        except Exception as e:
            logger.warning(f"Cache read failed for {key}: {e}")

        if entry is not None and entry.digest == digest:
            self.hits += 1
            logger.debug(f"Cache hit for {key}")
            return entry.payload

        self.misses += 1
        logger.debug(f"Cache {'stale' if entry else 'miss'} for {key}, regenerating")
        try:
            payload = await compute()
        except Exception as e:
            logger.warning(f"Regeneration failed for {key}: {e}")
            return entry.payload if entry is not None else None

        try:
            await self.store.write_cache(user_id, key, CacheEntry(digest=digest, payload=payload))
        except Exception as e:
            logger.warning(f"Cache write failed for {key}: {e}")
        return payload
