"""Pytest configuration and fixtures."""

import os
from typing import AsyncIterator, Dict, List, Optional, Sequence

import pytest

from sviesa.ai.llm_client import (
    ChatTurn,
    GenerativeProvider,
    ImageAttachment,
    LLMProvider,
    LLMResponse,
    StreamChunk,
    TokenUsage,
)
from sviesa.errors import ProviderError
from sviesa.rag.models import Chunk


@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    """Keep tests away from real services."""
    for key in ("DATABASE_URL", "REDIS_URL", "SUPABASE_URL", "SUPABASE_KEY", "SUPABASE_SERVICE_ROLE_KEY"):
        os.environ.pop(key, None)
    os.environ["OPENAI_API_KEY"] = "test-openai-key"


class FakeProvider(GenerativeProvider):
    """In-memory provider recording every call."""

    provider = LLMProvider.OPENAI
    model = "gpt-4o-mini"
    embedding_model = "text-embedding-3-small"
    embedding_fallback_model = "text-embedding-3-large"

    def __init__(
        self,
        reply: Sequence[str] = ("Atsakymas",),
        embeddings: Optional[Dict[str, List[float]]] = None,
        default_embedding: Optional[List[float]] = None,
        failing_models: Sequence[str] = (),
        fail_generation: bool = False,
    ):
        self.reply = list(reply)
        self.embeddings = embeddings or {}
        self.default_embedding = default_embedding if default_embedding is not None else [1.0, 0.0, 0.0, 0.0]
        self.failing_models = set(failing_models)
        self.fail_generation = fail_generation

        self.embed_calls: List[tuple] = []
        self.stream_calls: List[dict] = []

    async def embed(self, text: str, model: Optional[str] = None) -> List[float]:
        model = model or self.embedding_model
        self.embed_calls.append((text, model))
        if model in self.failing_models:
            raise ProviderError("embedding unavailable", provider="fake", model=model)
        return list(self.embeddings.get(text, self.default_embedding))

    async def generate_stream(
        self,
        system_instruction: str,
        history: Sequence[ChatTurn],
        message: str,
        image: Optional[ImageAttachment] = None,
    ) -> AsyncIterator[StreamChunk]:
        self.stream_calls.append({
            "system_instruction": system_instruction,
            "history": list(history),
            "message": message,
            "image": image,
        })
        if self.fail_generation:
            raise ProviderError("generation unavailable", provider="fake", model=self.model)
        for part in self.reply:
            yield StreamChunk(text=part)

    async def generate(self, prompt: str, system: Optional[str] = None) -> LLMResponse:
        return LLMResponse(
            content="".join(self.reply),
            model=self.model,
            provider=self.provider,
            usage=TokenUsage(prompt_tokens=len(prompt) // 4, candidate_tokens=1),
        )


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def make_provider():
    """Factory for configured fake providers."""
    return FakeProvider


def make_chunk(
    content: str,
    id: str = "chunk-1",
    source: str = "Kita",
    book_or_section: str = "Dokumentas",
    chapter_or_ref: str = "Dalis 1",
    tags: Optional[List[str]] = None,
    embedding: Optional[List[float]] = None,
) -> Chunk:
    return Chunk(
        id=id,
        source=source,
        book_or_section=book_or_section,
        chapter_or_ref=chapter_or_ref,
        content=content,
        tags=tags or [],
        embedding=embedding,
    )


@pytest.fixture
def chunk_factory():
    return make_chunk


LONG_ANSWER = (
    "### Eutanazija\n"
    "> „Tiesioginė eutanazija moraliai nepriimtina.\" (KBK 2277)\n"
    "Bažnyčia moko, kad žmogaus gyvybė yra šventa nuo prasidėjimo iki natūralios mirties."
)


@pytest.fixture
def long_answer():
    return LONG_ANSWER
