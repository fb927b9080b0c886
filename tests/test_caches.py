"""
Tests for the embedding cache, the Redis/memory store and the response
cache.

Scenarios tested:
- Insertion-order eviction in the embedding cache
- TTL boundary of the response cache (clock injected)
- Oldest-entry eviction at capacity
- Corrupt payloads treated as misses and removed
- Redis connection failure falling back to memory

Usage:
    pytest tests/test_caches.py -v
"""

from unittest.mock import MagicMock, patch

import pytest
import redis

from sviesa.cache.embedding_cache import EmbeddingCache
from sviesa.cache.redis_cache import RedisCache
from sviesa.cache.response_cache import NAMESPACE, ResponseCache, today_context_key
from sviesa.errors import CacheCorruption


class FakeClock:

    def __init__(self, now: float = 1_760_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestEmbeddingCache:

    def test_get_put(self):
        cache = EmbeddingCache()
        assert cache.get("malda") is None
        cache.put("malda", [0.1, 0.2])
        assert cache.get("malda") == [0.1, 0.2]
        assert cache.hits == 1
        assert cache.misses == 1

    def test_evicts_oldest_inserted(self):
        cache = EmbeddingCache(max_entries=2)
        cache.put("a", [1.0])
        cache.put("b", [2.0])
        cache.get("a")  # reads do not refresh
        cache.put("c", [3.0])

        assert "a" not in cache
        assert "b" in cache
        assert "c" in cache
        assert len(cache) == 2

    def test_overwrite_does_not_evict(self):
        cache = EmbeddingCache(max_entries=2)
        cache.put("a", [1.0])
        cache.put("b", [2.0])
        cache.put("a", [1.5])

        assert len(cache) == 2
        assert cache.get("a") == [1.5]

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            EmbeddingCache(max_entries=0)

    @pytest.mark.asyncio
    async def test_close_clears(self):
        cache = EmbeddingCache()
        await cache.open()
        cache.put("a", [1.0])
        await cache.close()
        assert len(cache) == 0


class TestRedisCacheMemoryBackend:

    def setup_method(self):
        self.store = RedisCache(use_redis=False)

    def test_backend(self):
        assert self.store.backend == "memory"

    def test_roundtrip_json(self):
        self.store.set("response:k", {"response": "Ačiū", "timestamp": 1.0})
        assert self.store.get("response:k") == {"response": "Ačiū", "timestamp": 1.0}
        assert self.store.exists("response:k") is True

    def test_delete(self):
        self.store.set("k", 1)
        assert self.store.delete("k") is True
        assert self.store.get("k") is None
        assert self.store.delete("k") is False

    def test_keys_strip_namespace(self):
        self.store.set("response:a", 1)
        self.store.set("response:b", 2)
        self.store.set("other:c", 3)
        assert sorted(self.store.keys("response:")) == ["response:a", "response:b"]

    def test_clear_prefix(self):
        self.store.set("response:a", 1)
        self.store.set("other:c", 3)
        assert self.store.clear_prefix("response:") == 1
        assert self.store.keys("") == ["other:c"]

    def test_corrupt_payload_raises(self):
        self.store._memory_cache["sviesa:bad"] = (None, "{not json")
        with pytest.raises(CacheCorruption):
            self.store.get("bad")

    def test_physical_expiry(self):
        self.store.set("k", 1, ttl_seconds=1)
        expires_at, value = self.store._memory_cache["sviesa:k"]
        self.store._memory_cache["sviesa:k"] = (expires_at.replace(year=2000), value)
        assert self.store.get("k") is None

    def test_compute_hash(self):
        first = RedisCache.compute_hash("kas yra malda", "")
        assert len(first) == 16
        assert first == RedisCache.compute_hash("kas yra malda", "")
        assert first != RedisCache.compute_hash("kas yra malda", "2026-10-19")


class TestRedisCacheConnection:

    @patch("sviesa.cache.redis_cache.redis.from_url")
    def test_connection_failure_falls_back(self, from_url):
        client = MagicMock()
        client.ping.side_effect = redis.ConnectionError("refused")
        from_url.return_value = client

        store = RedisCache(redis_url="redis://localhost:6379/0")

        assert store.backend == "memory"
        store.set("k", 1)
        assert store.get("k") == 1

    @patch("sviesa.cache.redis_cache.redis.from_url")
    def test_redis_backend(self, from_url):
        client = MagicMock()
        client.get.return_value = '{"response": "x"}'
        from_url.return_value = client

        store = RedisCache(redis_url="redis://localhost:6379/0")
        store.set("response:k", {"response": "x"}, ttl_seconds=60)

        assert store.backend == "redis"
        client.setex.assert_called_once_with("sviesa:response:k", 60, '{"response": "x"}')
        assert store.get("response:k") == {"response": "x"}


class TestResponseCache:

    def setup_method(self):
        self.clock = FakeClock()
        self.cache = ResponseCache(ttl_seconds=3600, max_entries=3, clock=self.clock)

    def test_hit_on_normalized_query(self):
        self.cache.put("Kas yra Eucharistija?", "Atsakymas")
        assert self.cache.get("kas yra   eucharistija") == "Atsakymas"

    def test_miss(self):
        assert self.cache.get("Kas yra malda?") is None

    def test_ttl_boundary(self):
        self.cache.put("Kas yra malda?", "Atsakymas")

        self.clock.advance(3600 - 1)
        assert self.cache.get("Kas yra malda?") == "Atsakymas"

        self.clock.advance(2)
        assert self.cache.get("Kas yra malda?") is None

    def test_context_key_separates_entries(self):
        self.cache.put("Šiandienos evangelija?", "Vakar", context_key="2026-10-18")
        assert self.cache.get("Šiandienos evangelija?", context_key="2026-10-19") is None
        assert self.cache.get("Šiandienos evangelija?", context_key="2026-10-18") == "Vakar"
        assert self.cache.get("Šiandienos evangelija?") is None

    def test_evicts_single_oldest_at_capacity(self):
        for i in range(3):
            self.cache.put(f"Klausimas numeris {i}", f"Atsakymas {i}")
            self.clock.advance(10)

        self.cache.put("Klausimas numeris 3", "Atsakymas 3")

        assert len(self.cache) == 3
        assert self.cache.get("Klausimas numeris 0") is None
        assert self.cache.get("Klausimas numeris 1") == "Atsakymas 1"
        assert self.cache.get("Klausimas numeris 3") == "Atsakymas 3"

    def test_overwrite_does_not_evict(self):
        for i in range(3):
            self.cache.put(f"Klausimas numeris {i}", f"Atsakymas {i}")
        self.cache.put("Klausimas numeris 0", "Naujas")

        assert len(self.cache) == 3
        assert self.cache.get("Klausimas numeris 0") == "Naujas"

    def test_corrupt_entry_is_miss_and_removed(self):
        key = ResponseCache.make_key("Kas yra malda?")
        self.cache.store._memory_cache[f"sviesa:{NAMESPACE}:{key}"] = (None, "{broken")

        assert self.cache.get("Kas yra malda?") is None
        assert len(self.cache) == 0

    def test_wrong_shape_is_miss(self):
        key = ResponseCache.make_key("Kas yra malda?")
        self.cache.store.set(f"{NAMESPACE}:{key}", {"answer": "neteisingas laukas"})

        assert self.cache.get("Kas yra malda?") is None
        assert len(self.cache) == 0

    def test_clear(self):
        self.cache.put("Kas yra malda?", "A")
        self.cache.put("Kas yra tikėjimas?", "B")
        assert self.cache.clear() == 2
        assert len(self.cache) == 0

    def test_today_context_key(self):
        key = today_context_key(self.clock)
        assert len(key) == 10
        assert key.count("-") == 2
