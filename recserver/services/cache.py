"""
Recommendation cache.

Keyed by make_cache_key(user_id, types, limit, exclude_interacted); every key
starts with rec:{user_id}: so one prefix invalidates all of a user's entries.
Values are stored as flat versioned records (RecommendationSet.to_record()).

update(key, fn) is an atomic per-key read-modify-write that keeps the
entry's remaining TTL; real-time boosts and scheduled refreshes both go
through the per-key lock, so the last writer wins.
"""

import asyncio
import hashlib
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence

from recengine.models import RecommendationSet

logger = logging.getLogger(__name__)

KEY_PREFIX = "rec"


def user_prefix(user_id: str) -> str:
    return f"{KEY_PREFIX}:{user_id}:"


def make_cache_key(
    user_id: str,
    types: Sequence[str],
    limit: int,
    exclude_interacted: bool,
) -> str:
    """Stable cache key; independent of the order of types."""
    raw = "|".join([user_id, ",".join(sorted(types)), str(limit), "1" if exclude_interacted else "0"])
    digest = hashlib.sha256(raw.encode("utf-8")).hexdigest()[:16]
    return f"{user_prefix(user_id)}{digest}"


class RecommendationCache(Protocol):
    """Protocol for the recommendation cache. Backend failures raise CacheUnavailable."""

    async def get(self, key: str) -> Optional[RecommendationSet]:
        ...

    async def put(self, key: str, value: RecommendationSet, ttl_seconds: float) -> None:
        ...

    async def update(
        self,
        key: str,
        fn: Callable[[RecommendationSet], RecommendationSet],
    ) -> Optional[RecommendationSet]:
        """Apply fn to the live entry atomically, keeping its expiry. None if absent or expired."""
        ...

    async def keys_with_prefix(self, prefix: str) -> List[str]:
        ...

    async def invalidate_prefix(self, prefix: str) -> int:
        """Drop every entry whose key starts with prefix; returns the number dropped."""
        ...


@dataclass
class CacheEntry:
    record: Dict[str, Any]
    expires_at: float


class InMemoryRecommendationCache:
    """
    TTL cache in process memory with per-key asyncio locks.
    Must be used from a single event loop. Locks exist only while a key is
    being written; expired entries are swept on put.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def lock_count(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def _locked(self, key: str):
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if not self._lock_users[key]:
                del self._lock_users[key]
                del self._locks[key]

    def _live(self, key: str) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            self._entries.pop(key, None)
            return None
        return entry

    def _sweep(self) -> int:
        now = self._clock()
        expired = [k for k, entry in self._entries.items() if entry.expires_at <= now]
        for key in expired:
            del self._entries[key]
        return len(expired)

    async def get(self, key: str) -> Optional[RecommendationSet]:
        entry = self._live(key)
        if entry is None:
            return None
        return RecommendationSet.from_record(entry.record)

    async def put(self, key: str, value: RecommendationSet, ttl_seconds: float) -> None:
        async with self._locked(key):
            self._sweep()
            self._entries[key] = CacheEntry(value.to_record(), self._clock() + ttl_seconds)

    async def update(
        self,
        key: str,
        fn: Callable[[RecommendationSet], RecommendationSet],
    ) -> Optional[RecommendationSet]:
        async with self._locked(key):
            entry = self._live(key)
            if entry is None:
                return None
            updated = fn(RecommendationSet.from_record(entry.record))
            self._entries[key] = CacheEntry(updated.to_record(), entry.expires_at)
            return updated

    async def keys_with_prefix(self, prefix: str) -> List[str]:
        return [k for k in list(self._entries) if k.startswith(prefix) and self._live(k) is not None]

    async def invalidate_prefix(self, prefix: str) -> int:
        keys = [k for k in list(self._entries) if k.startswith(prefix)]
        for key in keys:
            async with self._locked(key):
                self._entries.pop(key, None)
        if keys:
            logger.debug("[cache] INVALIDATED prefix=%s keys=%d", prefix, len(keys))
        return len(keys)

    def remaining_ttl(self, key: str) -> Optional[float]:
        entry = self._live(key)
        return None if entry is None else entry.expires_at - self._clock()
