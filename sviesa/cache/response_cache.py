"""
Response Cache
==============

Exact-match cache: normalized query (+ optional day stamp) -> full answer.

Entry payload (JSON):
    {"response": "...", "timestamp": 1760000000.0, "query": "..."}

- An entry older than the TTL is a miss, even if still physically present
- At capacity, the single oldest entry (by stored timestamp) is evicted
  before a new key is inserted
- Malformed payloads are logged, deleted and treated as misses

The store calls block on Redis, so coroutines use `get_async` and
`put_async`, which run them in a worker thread.

Time-sensitive questions are keyed with today's date so yesterday's
answer is never served.
"""

import asyncio
import logging
import time
from datetime import date
from typing import Any, Callable, Dict, Optional

from ..errors import CacheCorruption
from ..rag.text import normalize_query
from .redis_cache import RedisCache

logger = logging.getLogger(__name__)

NAMESPACE = "response"


def today_context_key(clock: Callable[[], float] = time.time) -> str:
    """Day stamp used as context key for time-sensitive questions."""
    return date.fromtimestamp(clock()).isoformat()


class ResponseCache:
    """TTL + bounded-size exact response cache."""

    def __init__(
        self,
        store: Optional[RedisCache] = None,
        ttl_seconds: int = 3600,
        max_entries: int = 100,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store or RedisCache(use_redis=False)
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self.clock = clock

    async def open(self) -> None:
        logger.info(f"Response cache opened ({self.store.backend} backend)")

    async def close(self) -> None:
        await asyncio.to_thread(self.store.close)

    @staticmethod
    def make_key(query: str, context_key: Optional[str] = None) -> str:
        return RedisCache.compute_hash(normalize_query(query), context_key or "")

    def get(self, query: str, context_key: Optional[str] = None) -> Optional[str]:
        """Cached answer, or None when absent, expired or corrupt."""
        key = self.make_key(query, context_key)
        entry = self._load(key)
        if entry is None:
            return None

        if self.clock() - entry["timestamp"] > self.ttl_seconds:
            logger.debug(f"Response cache entry {key} expired")
            self.store.delete(f"{NAMESPACE}:{key}")
            return None

        return entry["response"]

    async def get_async(self, query: str, context_key: Optional[str] = None) -> Optional[str]:
        return await asyncio.to_thread(self.get, query, context_key)

    def put(self, query: str, response: str, context_key: Optional[str] = None) -> None:
        key = self.make_key(query, context_key)

        if not self.store.exists(f"{NAMESPACE}:{key}"):
            self._evict_if_full()

        self.store.set(
            f"{NAMESPACE}:{key}",
            {"response": response, "timestamp": self.clock(), "query": query},
            ttl_seconds=self.ttl_seconds,
        )

    async def put_async(self, query: str, response: str, context_key: Optional[str] = None) -> None:
        await asyncio.to_thread(self.put, query, response, context_key)

    def clear(self) -> int:
        return self.store.clear_prefix(f"{NAMESPACE}:")

    def __len__(self) -> int:
        return len(self.store.keys(f"{NAMESPACE}:"))

    def _evict_if_full(self) -> None:
        keys = self.store.keys(f"{NAMESPACE}:")
        if len(keys) < self.max_entries:
            return

        oldest_key = None
        oldest_ts = None
        for full in keys:
            entry = self._load(full[len(NAMESPACE) + 1:])
            if entry is None:
                # corrupt entry was deleted, which frees a slot
                return
            if oldest_ts is None or entry["timestamp"] < oldest_ts:
                oldest_key, oldest_ts = full, entry["timestamp"]

        if oldest_key is not None:
            self.store.delete(oldest_key)
            logger.debug(f"Response cache full, evicted {oldest_key}")

    def _load(self, key: str) -> Optional[Dict[str, Any]]:
        full = f"{NAMESPACE}:{key}"
        try:
            entry = self.store.get(full)
            if entry is None:
                return None
            if (
                not isinstance(entry, dict)
                or not isinstance(entry.get("response"), str)
                or not isinstance(entry.get("timestamp"), (int, float))
            ):
                raise CacheCorruption(f"Unexpected entry shape under {full}", key=full)
        except CacheCorruption as e:
            logger.warning(f"Response cache corruption, dropping entry: {e}")
            self.store.delete(full)
            return None
        return entry
