"""
Tests for the query embedder: cache, primary/fallback chain, usage.

Usage:
    pytest tests/test_embedder.py -v
"""

import pytest

from sviesa.ai.usage import TokenUsageTracker
from sviesa.cache.embedding_cache import EmbeddingCache
from sviesa.rag.embedder import RAGEmbedder


class TestRAGEmbedder:

    @pytest.mark.asyncio
    async def test_primary_model(self, make_provider):
        provider = make_provider(embeddings={"Kas yra malda?": [0.5, 0.5]})
        embedder = RAGEmbedder(provider)

        assert await embedder.embed_query("Kas yra malda?") == [0.5, 0.5]
        assert provider.embed_calls == [("Kas yra malda?", "text-embedding-3-small")]

    @pytest.mark.asyncio
    async def test_cached_second_call(self, make_provider):
        provider = make_provider()
        embedder = RAGEmbedder(provider, EmbeddingCache())

        await embedder.embed_query("Kas yra malda?")
        await embedder.embed_query("Kas yra malda?")

        assert len(provider.embed_calls) == 1
        assert embedder.get_stats()["cache_hits"] == 1

    @pytest.mark.asyncio
    async def test_fallback_model(self, make_provider):
        provider = make_provider(failing_models=["text-embedding-3-small"])
        embedder = RAGEmbedder(provider)

        vector = await embedder.embed_query("Kas yra malda?")

        assert vector == [1.0, 0.0, 0.0, 0.0]
        assert [model for _, model in provider.embed_calls] == [
            "text-embedding-3-small", "text-embedding-3-large",
        ]
        assert embedder.get_stats()["failed_requests"] == 1

    @pytest.mark.asyncio
    async def test_both_models_fail(self, make_provider):
        provider = make_provider(failing_models=["text-embedding-3-small", "text-embedding-3-large"])
        embedder = RAGEmbedder(provider)

        assert await embedder.embed_query("Kas yra malda?") is None
        assert len(embedder.cache) == 0

    @pytest.mark.asyncio
    async def test_no_provider(self):
        embedder = RAGEmbedder(None)
        assert embedder.models == []
        assert await embedder.embed_query("Kas yra malda?") is None

    @pytest.mark.asyncio
    async def test_blank_text(self, make_provider):
        provider = make_provider()
        embedder = RAGEmbedder(provider)

        assert await embedder.embed_query("   ") is None
        assert provider.embed_calls == []

    @pytest.mark.asyncio
    async def test_records_usage(self, make_provider):
        usage = TokenUsageTracker()
        embedder = RAGEmbedder(make_provider(), usage=usage)

        await embedder.embed_query("Kas yra malda?")

        entry = usage.history[0]
        assert entry.model == "text-embedding-3-small"
        assert entry.input_tokens == 4
        assert entry.output_tokens == 0
