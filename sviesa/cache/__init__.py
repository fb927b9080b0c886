"""
Sviesa Cache Module
===================

Process-local caches in front of the generative provider:

- EmbeddingCache: query text -> embedding vector
- ResponseCache: normalized query -> full answer, TTL + capacity bound
- RedisCache: key/value store behind ResponseCache (Redis or memory)

Usage:
    from sviesa.cache import ResponseCache

    cache = ResponseCache(ttl_seconds=3600, max_entries=100)
    cache.put("Kas yra Eucharistija?", answer)
    cached = cache.get("kas yra eucharistija")
"""

from .embedding_cache import EmbeddingCache
from .redis_cache import RedisCache
from .response_cache import ResponseCache, today_context_key

__all__ = ["EmbeddingCache", "RedisCache", "ResponseCache", "today_context_key"]
