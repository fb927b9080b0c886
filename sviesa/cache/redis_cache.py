"""
Answer Store
============

Namespaced JSON key/value store used by the response cache.

Two backends, same behaviour:

    redis   REDIS_URL with RESPONSE_CACHE_BACKEND=redis, answers survive
            restarts and are shared by every worker on the host
    memory  dict with per-key expiry, used when Redis is disabled, when the
            first PING fails, or for a single call when Redis errors

Values are JSON text in both backends, so a malformed payload raises
CacheCorruption wherever it lives. Keys are "<prefix>:<namespace>:<hash>".
"""

import hashlib
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

import redis

from ..errors import CacheCorruption

logger = logging.getLogger(__name__)

# (expires_at or None, JSON text)
MemoryItem = Tuple[Optional[datetime], str]


class RedisCache:
    """JSON key/value store on Redis, degrading to process memory."""

    def __init__(
        self,
        redis_url: Optional[str] = None,
        prefix: str = "sviesa",
        use_redis: bool = True,
        timeout_seconds: float = 5.0,
    ):
        self.prefix = prefix
        self._memory_cache: Dict[str, MemoryItem] = {}
        self._redis: Optional[redis.Redis] = None

        if use_redis and redis_url:
            self._redis = self._connect(redis_url, timeout_seconds)

    @staticmethod
    def _connect(redis_url: str, timeout_seconds: float) -> Optional[redis.Redis]:
        host = redis_url.rsplit("@", 1)[-1]
        try:
            client = redis.from_url(
                redis_url,
                decode_responses=True,
                socket_timeout=timeout_seconds,
                socket_connect_timeout=timeout_seconds,
            )
            client.ping()
        except redis.RedisError as e:
            logger.warning(f"Redis at {host} unreachable ({e}), answers cached in memory")
            return None
        logger.info(f"Response store on Redis at {host}")
        return client

    @property
    def backend(self) -> str:
        return "redis" if self._redis is not None else "memory"

    def _full(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    def _redis_or_memory(self, op: str, on_redis: Callable[[], Any], on_memory: Callable[[], Any]) -> Any:
        if self._redis is None:
            return on_memory()
        try:
            return on_redis()
        except redis.RedisError as e:
            logger.warning(f"Redis {op} failed, using memory: {e}")
            return on_memory()

    # =========================================================================
    # KEY/VALUE
    # =========================================================================

    def get(self, key: str) -> Optional[Any]:
        """
        Decoded value, or None when absent or expired.

        Raises:
            CacheCorruption: stored payload is not valid JSON
        """
        full = self._full(key)
        raw = self._redis_or_memory("get", lambda: self._redis.get(full), lambda: self._memory_read(full))
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError) as e:
            raise CacheCorruption(f"Malformed payload under {key}: {e}", key=key) from e

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> bool:
        full = self._full(key)
        raw = json.dumps(value, ensure_ascii=False)

        def on_redis():
            if ttl_seconds:
                self._redis.setex(full, ttl_seconds, raw)
            else:
                self._redis.set(full, raw)
            return True

        return self._redis_or_memory("set", on_redis, lambda: self._memory_write(full, raw, ttl_seconds))

    def delete(self, key: str) -> bool:
        full = self._full(key)
        return self._redis_or_memory(
            "delete",
            lambda: self._redis.delete(full) > 0,
            lambda: self._memory_cache.pop(full, None) is not None,
        )

    def exists(self, key: str) -> bool:
        full = self._full(key)
        return self._redis_or_memory(
            "exists",
            lambda: self._redis.exists(full) > 0,
            lambda: self._memory_read(full) is not None,
        )

    def keys(self, prefix: str = "") -> List[str]:
        """Live keys starting with prefix, returned without the store prefix."""
        full_prefix = self._full(prefix)
        cut = len(self.prefix) + 1

        def on_memory():
            return [k[cut:] for k in list(self._memory_cache)
                    if k.startswith(full_prefix) and self._memory_read(k) is not None]

        return self._redis_or_memory(
            "scan",
            lambda: [k[cut:] for k in self._redis.scan_iter(match=f"{full_prefix}*")],
            on_memory,
        )

    def clear_prefix(self, prefix: str) -> int:
        """Delete every key under prefix; returns how many were removed."""
        return sum(1 for key in self.keys(prefix) if self.delete(key))

    def get_stats(self) -> Dict[str, Any]:
        stats: Dict[str, Any] = {"backend": self.backend}
        if self._redis is None:
            stats["keys"] = len(self._memory_cache)
            return stats
        try:
            stats["keys"] = self._redis.dbsize()
            stats["memory_used"] = self._redis.info("memory").get("used_memory_human")
        except redis.RedisError as e:
            logger.debug(f"Redis stats unavailable: {e}")
        return stats

    def close(self) -> None:
        if self._redis is None:
            return
        try:
            self._redis.close()
        except redis.RedisError as e:
            logger.debug(f"Redis close failed: {e}")
        self._redis = None

    # =========================================================================
    # MEMORY BACKEND
    # =========================================================================

    def _memory_read(self, full_key: str) -> Optional[str]:
        item = self._memory_cache.get(full_key)
        if item is None:
            return None
        expires_at, raw = item
        if expires_at is not None and expires_at < datetime.now(timezone.utc):
            self._memory_cache.pop(full_key, None)
            return None
        return raw

    def _memory_write(self, full_key: str, raw: str, ttl_seconds: Optional[int]) -> bool:
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=ttl_seconds) if ttl_seconds else None
        self._memory_cache[full_key] = (expires_at, raw)
        return True

    @staticmethod
    def compute_hash(*parts) -> str:
        """16 hex chars of sha256 over the JSON-encoded parts."""
        payload = json.dumps(parts, sort_keys=True, default=str, ensure_ascii=False)
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]
