"""
Sviesa LLM Client
=================

Generative provider contract used by the answer pipeline, with OpenAI and
Anthropic implementations.

Contract:
    embed(text, model=None)            -> list[float]
    generate_stream(system, history, message, image=None)
                                       -> async iterator of StreamChunk
    generate(prompt, system=None)      -> LLMResponse(content, usage)

Every SDK failure is wrapped in ProviderError. Anthropic has no embedding
endpoint, so AnthropicProvider delegates embeddings to an OpenAIProvider.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

import anthropic
import openai
from anthropic import AsyncAnthropic
from openai import AsyncOpenAI

from ..config import ProviderConfig, get_settings
from ..errors import ProviderError

logger = logging.getLogger(__name__)


class LLMProvider(Enum):
    """Supported providers."""
    ANTHROPIC = "anthropic"
    OPENAI = "openai"


@dataclass
class TokenUsage:
    prompt_tokens: int = 0
    candidate_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.candidate_tokens


@dataclass
class LLMResponse:
    """Non-streamed generation result."""
    content: str
    model: str
    provider: LLMProvider
    usage: TokenUsage = field(default_factory=TokenUsage)

    @property
    def text(self) -> str:
        return self.content


@dataclass
class StreamChunk:
    text: str


@dataclass
class ChatTurn:
    """One prior conversation message. role is "user" or "assistant"."""
    role: str
    text: str


@dataclass
class ImageAttachment:
    """Base64 image sent with the user message."""
    data: str
    mime_type: str = "image/jpeg"

    @classmethod
    def from_data_url(cls, value: str, mime_type: str = "image/jpeg") -> "ImageAttachment":
        # "data:image/png;base64,AAAA" or bare base64
        if value.startswith("data:") and "," in value:
            header, data = value.split(",", 1)
            return cls(data=data, mime_type=header[5:].split(";")[0] or mime_type)
        return cls(data=value, mime_type=mime_type)


class GenerativeProvider(ABC):
    """Pluggable generation + embedding capability."""

    provider: LLMProvider
    model: str
    embedding_model: str = ""
    embedding_fallback_model: Optional[str] = None

    @abstractmethod
    async def embed(self, text: str, model: Optional[str] = None) -> List[float]:
        """Embed text with the given (or primary) embedding model."""

    @abstractmethod
    def generate_stream(
        self,
        system_instruction: str,
        history: Sequence[ChatTurn],
        message: str,
        image: Optional[ImageAttachment] = None,
    ) -> AsyncIterator[StreamChunk]:
        """Stream the answer to message."""

    @abstractmethod
    async def generate(self, prompt: str, system: Optional[str] = None) -> LLMResponse:
        """Single-shot generation."""


class OpenAIProvider(GenerativeProvider):
    """
    OpenAI chat streaming and embeddings.

    Embedding models are asked for `dimensions` so the primary and
    fallback models produce vectors of the same length.
    """

    provider = LLMProvider.OPENAI

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-4o-mini",
        embedding_model: str = "text-embedding-3-small",
        embedding_fallback_model: Optional[str] = "text-embedding-3-large",
        embedding_dimensions: int = 768,
        temperature: float = 0.3,
        max_tokens: int = 2048,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.embedding_model = embedding_model
        self.embedding_fallback_model = embedding_fallback_model
        self.embedding_dimensions = embedding_dimensions
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._client = client

        if not self.api_key and client is None:
            logger.warning("OPENAI_API_KEY not set - OpenAI provider disabled")

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self.api_key:
                raise ProviderError("OPENAI_API_KEY required", provider="openai")
            self._client = AsyncOpenAI(api_key=self.api_key)
        return self._client

    async def embed(self, text: str, model: Optional[str] = None) -> List[float]:
        model = model or self.embedding_model
        if not text.strip():
            raise ProviderError("Cannot embed empty text", provider="openai", model=model)

        try:
            response = await self._get_client().embeddings.create(
                model=model,
                input=text,
                dimensions=self.embedding_dimensions,
            )
        except openai.OpenAIError as e:
            raise ProviderError(str(e), provider="openai", model=model) from e

        return list(response.data[0].embedding)

    def _messages(
        self,
        system_instruction: str,
        history: Sequence[ChatTurn],
        message: str,
        image: Optional[ImageAttachment],
    ) -> List[Dict[str, Any]]:
        messages: List[Dict[str, Any]] = [{"role": "system", "content": system_instruction}]
        for turn in history:
            messages.append({"role": "user" if turn.role == "user" else "assistant", "content": turn.text})

        if image is not None:
            messages.append({"role": "user", "content": [
                {"type": "text", "text": message},
                {"type": "image_url", "image_url": {"url": f"data:{image.mime_type};base64,{image.data}"}},
            ]})
        else:
            messages.append({"role": "user", "content": message})
        return messages

    async def generate_stream(
        self,
        system_instruction: str,
        history: Sequence[ChatTurn],
        message: str,
        image: Optional[ImageAttachment] = None,
    ) -> AsyncIterator[StreamChunk]:
        try:
            stream = await self._get_client().chat.completions.create(
                model=self.model,
                messages=self._messages(system_instruction, history, message, image),
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                stream=True,
            )
            async for event in stream:
                if event.choices and event.choices[0].delta.content:
                    yield StreamChunk(text=event.choices[0].delta.content)
        except openai.OpenAIError as e:
            raise ProviderError(str(e), provider="openai", model=self.model) from e

    async def generate(self, prompt: str, system: Optional[str] = None) -> LLMResponse:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        try:
            response = await self._get_client().chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except openai.OpenAIError as e:
            raise ProviderError(str(e), provider="openai", model=self.model) from e

        return LLMResponse(
            content=response.choices[0].message.content or "",
            model=self.model,
            provider=self.provider,
            usage=TokenUsage(
                prompt_tokens=response.usage.prompt_tokens,
                candidate_tokens=response.usage.completion_tokens,
            ),
        )


class AnthropicProvider(GenerativeProvider):
    """
    Claude generation.

    Embeddings go through the OpenAI provider given as `embedder`.
    """

    provider = LLMProvider.ANTHROPIC

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "claude-sonnet-4-20250514",
        embedder: Optional[OpenAIProvider] = None,
        temperature: float = 0.3,
        max_tokens: int = 2048,
        client: Optional[AsyncAnthropic] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.embedder = embedder
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._client = client

        if embedder is not None:
            self.embedding_model = embedder.embedding_model
            self.embedding_fallback_model = embedder.embedding_fallback_model

        if not self.api_key and client is None:
            logger.warning("ANTHROPIC_API_KEY not set - Anthropic provider disabled")

    def _get_client(self) -> AsyncAnthropic:
        if self._client is None:
            if not self.api_key:
                raise ProviderError("ANTHROPIC_API_KEY required", provider="anthropic")
            self._client = AsyncAnthropic(api_key=self.api_key)
        return self._client

    async def embed(self, text: str, model: Optional[str] = None) -> List[float]:
        if self.embedder is None:
            raise ProviderError("No embedding provider configured", provider="anthropic")
        return await self.embedder.embed(text, model)

    def _messages(
        self,
        history: Sequence[ChatTurn],
        message: str,
        image: Optional[ImageAttachment],
    ) -> List[Dict[str, Any]]:
        messages: List[Dict[str, Any]] = [
            {"role": "user" if turn.role == "user" else "assistant", "content": turn.text}
            for turn in history
        ]
        # the Messages API requires the first turn to be the user's
        while messages and messages[0]["role"] != "user":
            messages.pop(0)

        if image is not None:
            content: Any = [
                {"type": "image", "source": {"type": "base64", "media_type": image.mime_type, "data": image.data}},
                {"type": "text", "text": message},
            ]
        else:
            content = message
        messages.append({"role": "user", "content": content})
        return messages

    async def generate_stream(
        self,
        system_instruction: str,
        history: Sequence[ChatTurn],
        message: str,
        image: Optional[ImageAttachment] = None,
    ) -> AsyncIterator[StreamChunk]:
        try:
            async with self._get_client().messages.stream(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                system=system_instruction,
                messages=self._messages(history, message, image),
            ) as stream:
                async for text in stream.text_stream:
                    if text:
                        yield StreamChunk(text=text)
        except anthropic.AnthropicError as e:
            raise ProviderError(str(e), provider="anthropic", model=self.model) from e

    async def generate(self, prompt: str, system: Optional[str] = None) -> LLMResponse:
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            kwargs["system"] = system

        try:
            response = await self._get_client().messages.create(**kwargs)
        except anthropic.AnthropicError as e:
            raise ProviderError(str(e), provider="anthropic", model=self.model) from e

        return LLMResponse(
            content="".join(block.text for block in response.content if block.type == "text"),
            model=self.model,
            provider=self.provider,
            usage=TokenUsage(
                prompt_tokens=response.usage.input_tokens,
                candidate_tokens=response.usage.output_tokens,
            ),
        )


def get_provider(config: Optional[ProviderConfig] = None) -> GenerativeProvider:
    """
    Factory for the configured generative provider.

    Priority:
    1. Explicit LLM_PROVIDER
    2. Only OPENAI_API_KEY present -> OpenAI
    3. ANTHROPIC_API_KEY present -> Claude (embeddings through OpenAI)
    4. Error
    """
    config = config or get_settings().provider
    provider = (config.provider or "").lower() or None

    openai_provider = OpenAIProvider(
        api_key=config.openai_api_key,
        model=config.generation_model or "gpt-4o-mini",
        embedding_model=config.embedding_model,
        embedding_fallback_model=config.embedding_fallback_model,
        embedding_dimensions=config.embedding_dimensions,
        temperature=config.temperature,
        max_tokens=config.max_tokens,
    ) if config.openai_api_key else None

    if provider == "openai" or (not provider and openai_provider and not config.anthropic_api_key):
        if openai_provider is None:
            raise ValueError("LLM_PROVIDER=openai requires OPENAI_API_KEY or GPT_API_KEY")
        return openai_provider

    if provider == "anthropic" or config.anthropic_api_key:
        if openai_provider is None:
            logger.warning("No OpenAI key: embeddings disabled, semantic memory and vector boost off")
        return AnthropicProvider(
            api_key=config.anthropic_api_key,
            model=config.generation_model or "claude-sonnet-4-20250514",
            embedder=openai_provider,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
        )

    raise ValueError(
        "No LLM API key found. Set ANTHROPIC_API_KEY, OPENAI_API_KEY, or GPT_API_KEY"
    )
