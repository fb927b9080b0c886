"""
Sviesa AI Module
================

Generative provider contract, prompt building, the query gate and token
usage tracking.
"""

from .gate import GateDecision, QueryGate, QueryKind, classify
from .llm_client import (
    AnthropicProvider,
    ChatTurn,
    GenerativeProvider,
    ImageAttachment,
    LLMProvider,
    LLMResponse,
    OpenAIProvider,
    StreamChunk,
    TokenUsage,
    get_provider,
)
from .usage import TokenUsageTracker, UsageStatistics

__all__ = [
    # Gate
    "GateDecision",
    "QueryGate",
    "QueryKind",
    "classify",
    # Providers
    "AnthropicProvider",
    "ChatTurn",
    "GenerativeProvider",
    "ImageAttachment",
    "LLMProvider",
    "LLMResponse",
    "OpenAIProvider",
    "StreamChunk",
    "TokenUsage",
    "get_provider",
    # Usage
    "TokenUsageTracker",
    "UsageStatistics",
]
