"""
RAG Embedder
============

Query embeddings for semantic memory lookup and the scorer's vector boost.

Chain: EmbeddingCache -> primary model -> fallback model -> None.
A None result means this turn runs without vector capabilities; it is
never an error for the caller.
"""

import logging
from typing import List, Optional

from ..ai.llm_client import GenerativeProvider
from ..ai.usage import TokenUsageTracker, estimate_tokens
from ..cache.embedding_cache import EmbeddingCache
from ..errors import ProviderError

logger = logging.getLogger(__name__)


class RAGEmbedder:
    """Cached, fallback-aware query embedder."""

    def __init__(
        self,
        provider: Optional[GenerativeProvider],
        cache: Optional[EmbeddingCache] = None,
        usage: Optional[TokenUsageTracker] = None,
    ):
        self.provider = provider
        self.cache = cache if cache is not None else EmbeddingCache()
        self.usage = usage

        self._total_requests = 0
        self._failed_requests = 0
        self._total_tokens = 0

    @property
    def models(self) -> List[str]:
        if self.provider is None or not self.provider.embedding_model:
            return []
        models = [self.provider.embedding_model]
        if self.provider.embedding_fallback_model and self.provider.embedding_fallback_model not in models:
            models.append(self.provider.embedding_fallback_model)
        return models

    async def embed_query(self, text: str) -> Optional[List[float]]:
        """
        Embed a query, or None if every model failed.

        Successful vectors are cached under the raw query text.
        """
        cached = self.cache.get(text)
        if cached is not None:
            return cached

        if not text.strip():
            return None

        for model in self.models:
            self._total_requests += 1
            try:
                vector = await self.provider.embed(text, model=model)
            except ProviderError as e:
                self._failed_requests += 1
                logger.warning(f"Embedding with {model} failed: {e}")
                continue

            tokens = estimate_tokens(text)
            self._total_tokens += tokens
            if self.usage is not None:
                await self.usage.record_async(tokens, 0, f"Embedding: {text[:30]}", model)

            self.cache.put(text, vector)
            return vector

        logger.warning("All embedding models failed, continuing without vectors")
        return None

    def get_stats(self) -> dict:
        return {
            "total_requests": self._total_requests,
            "failed_requests": self._failed_requests,
            "total_tokens": self._total_tokens,
            "cache_entries": len(self.cache),
            "cache_hits": self.cache.hits,
        }
