"""
Sviesa Configuration Module
===========================

Every tunable of the answer pipeline comes from the environment (or a .env
file at the project root). Sections are dataclasses validated on creation,
so a bad value fails at startup rather than mid-answer.

Environment Variables:
    MEMORY_SIMILARITY_THRESHOLD: Semantic memory hit threshold (default: 0.85)
    MEMORY_DUPLICATE_THRESHOLD: Duplicate-write threshold (default: 0.95)
    RESPONSE_CACHE_TTL_SECONDS: Exact response cache TTL (default: 3600)
    RESPONSE_CACHE_MAX_ENTRIES: Exact response cache capacity (default: 100)
    EMBEDDING_CACHE_MAX_ENTRIES: Query embedding cache soft cap (default: 500)
    LOCAL_MEMORY_MAX_ENTRIES: Local semantic memory capacity (default: 500)
    SHARED_MEMORY_FETCH_LIMIT: Shared memory rows fetched per session (default: 500)
    RAG_RELEVANCE_FLOOR: Minimum score for context injection (default: 50)
    RAG_MAX_CONTEXT_CHUNKS: Chunks injected per turn (default: 2)
    RAG_CHUNK_CHAR_BUDGET: Characters injected per chunk (default: 600)
    MAX_HISTORY_TURNS: Conversation turns kept in the prompt (default: 8)
    HISTORY_TURN_CHARS: Characters kept per history turn (default: 500)
    MIN_DURABLE_ANSWER_LENGTH: Shortest answer worth memoizing (default: 100)

    LLM_PROVIDER: openai | anthropic (default: auto-detect from keys)
    OPENAI_API_KEY / GPT_API_KEY: OpenAI key (generation and embeddings)
    ANTHROPIC_API_KEY: Anthropic key (generation)
    GENERATION_MODEL: Chat model override
    EMBEDDING_MODEL: Primary embedding model (default: text-embedding-3-small)
    EMBEDDING_FALLBACK_MODEL: Secondary embedding model (default: text-embedding-3-large)
    EMBEDDING_DIMENSIONS: Vector length requested from both models (default: 768)

    DATABASE_URL: PostgreSQL URL for the chunk store (optional)
    DATA_DIR: Directory for local memory and usage files (default: ./data)
    RESPONSE_CACHE_BACKEND: memory | redis (default: memory)
    REDIS_URL: Redis URL when the redis backend is selected
    SEED_MEMORY_FILE: Exported memory loaded into an empty local memory
                      (default: <DATA_DIR>/seed_memory.json)

    SUPABASE_URL / SUPABASE_KEY: Shared memory project (optional)
    SUPABASE_MEMORY_TABLE: Shared memory table (default: shared_memory)

    LOG_LEVEL, LOG_FILE, LOG_JSON: Logging options
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional, TypeVar

from dotenv import load_dotenv

T = TypeVar("T")

# Variables already set in the environment take precedence over .env
ENV_FILE = Path(__file__).resolve().parent.parent / ".env"
if ENV_FILE.is_file():
    load_dotenv(ENV_FILE)

TRUTHY = frozenset(["1", "true", "yes", "on", "taip"])


def get_env(key: str, default: Optional[str] = None) -> Optional[str]:
    """Raw value, with empty strings treated as unset."""
    value = os.getenv(key)
    return value if value not in (None, "") else default


def _typed_env(key: str, default: T, cast: Callable[[str], T], kind: str) -> T:
    raw = get_env(key)
    if raw is None:
        return default
    try:
        return cast(raw.strip())
    except ValueError:
        raise ValueError(f"{key}={raw!r} is not a valid {kind}") from None


def get_env_int(key: str, default: int) -> int:
    return _typed_env(key, default, int, "integer")


def get_env_float(key: str, default: float) -> float:
    return _typed_env(key, default, float, "number")


def get_env_bool(key: str, default: bool) -> bool:
    return _typed_env(key, default, lambda raw: raw.lower() in TRUTHY, "flag")


@dataclass
class PipelineConfig:
    """Thresholds, capacities and budgets of the answer pipeline."""

    similarity_threshold: float = field(default_factory=lambda: get_env_float("MEMORY_SIMILARITY_THRESHOLD", 0.85))
    duplicate_threshold: float = field(default_factory=lambda: get_env_float("MEMORY_DUPLICATE_THRESHOLD", 0.95))

    response_cache_ttl_seconds: int = field(default_factory=lambda: get_env_int("RESPONSE_CACHE_TTL_SECONDS", 3600))
    response_cache_max_entries: int = field(default_factory=lambda: get_env_int("RESPONSE_CACHE_MAX_ENTRIES", 100))
    embedding_cache_max_entries: int = field(default_factory=lambda: get_env_int("EMBEDDING_CACHE_MAX_ENTRIES", 500))
    local_memory_max_entries: int = field(default_factory=lambda: get_env_int("LOCAL_MEMORY_MAX_ENTRIES", 500))
    shared_memory_fetch_limit: int = field(default_factory=lambda: get_env_int("SHARED_MEMORY_FETCH_LIMIT", 500))

    # Retrieval injection
    relevance_floor: float = field(default_factory=lambda: get_env_float("RAG_RELEVANCE_FLOOR", 50.0))
    max_context_chunks: int = field(default_factory=lambda: get_env_int("RAG_MAX_CONTEXT_CHUNKS", 2))
    chunk_char_budget: int = field(default_factory=lambda: get_env_int("RAG_CHUNK_CHAR_BUDGET", 600))
    search_limit: int = field(default_factory=lambda: get_env_int("RAG_SEARCH_LIMIT", 8))

    # Prompt history
    max_history_turns: int = field(default_factory=lambda: get_env_int("MAX_HISTORY_TURNS", 8))
    history_turn_chars: int = field(default_factory=lambda: get_env_int("HISTORY_TURN_CHARS", 500))

    min_durable_answer_length: int = field(default_factory=lambda: get_env_int("MIN_DURABLE_ANSWER_LENGTH", 100))

    def __post_init__(self):
        if not 0.0 < self.similarity_threshold <= 1.0:
            raise ValueError("similarity_threshold must be in (0, 1]")
        if self.duplicate_threshold < self.similarity_threshold:
            raise ValueError("duplicate_threshold cannot be lower than similarity_threshold")
        if self.response_cache_ttl_seconds <= 0:
            raise ValueError("response_cache_ttl_seconds must be positive")
        for name in (
            "response_cache_max_entries",
            "embedding_cache_max_entries",
            "local_memory_max_entries",
            "max_context_chunks",
            "chunk_char_budget",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.max_history_turns < 0:
            raise ValueError("max_history_turns cannot be negative")


@dataclass
class ProviderConfig:
    """Generative and embedding provider configuration."""

    provider: Optional[str] = field(default_factory=lambda: get_env("LLM_PROVIDER"))
    openai_api_key: Optional[str] = field(
        default_factory=lambda: get_env("OPENAI_API_KEY") or get_env("GPT_API_KEY")
    )
    anthropic_api_key: Optional[str] = field(default_factory=lambda: get_env("ANTHROPIC_API_KEY"))

    generation_model: Optional[str] = field(default_factory=lambda: get_env("GENERATION_MODEL"))
    temperature: float = field(default_factory=lambda: get_env_float("GENERATION_TEMPERATURE", 0.3))
    max_tokens: int = field(default_factory=lambda: get_env_int("GENERATION_MAX_TOKENS", 2048))

    embedding_model: str = field(default_factory=lambda: get_env("EMBEDDING_MODEL", "text-embedding-3-small"))
    embedding_fallback_model: Optional[str] = field(
        default_factory=lambda: get_env("EMBEDDING_FALLBACK_MODEL", "text-embedding-3-large")
    )
    embedding_dimensions: int = field(default_factory=lambda: get_env_int("EMBEDDING_DIMENSIONS", 768))

    def __post_init__(self):
        if self.provider and self.provider.lower() not in ("openai", "anthropic"):
            raise ValueError(f"Unsupported LLM_PROVIDER: {self.provider}")
        if self.embedding_dimensions <= 0:
            raise ValueError("embedding_dimensions must be positive")


@dataclass
class StorageConfig:
    """Local persistence configuration."""

    database_url: Optional[str] = field(default_factory=lambda: get_env("DATABASE_URL"))
    data_dir: Path = field(default_factory=lambda: Path(get_env("DATA_DIR", "data")))
    response_cache_backend: str = field(default_factory=lambda: get_env("RESPONSE_CACHE_BACKEND", "memory"))
    redis_url: Optional[str] = field(default_factory=lambda: get_env("REDIS_URL"))
    seed_memory_file: Optional[Path] = field(
        default_factory=lambda: Path(get_env("SEED_MEMORY_FILE")) if get_env("SEED_MEMORY_FILE") else None
    )

    def __post_init__(self):
        if self.response_cache_backend not in ("memory", "redis"):
            raise ValueError("RESPONSE_CACHE_BACKEND must be 'memory' or 'redis'")
        if self.seed_memory_file is None:
            self.seed_memory_file = self.data_dir / "seed_memory.json"


@dataclass
class SupabaseConfig:
    """Shared memory (Supabase) configuration."""

    url: Optional[str] = field(default_factory=lambda: get_env("SUPABASE_URL"))
    key: Optional[str] = field(
        default_factory=lambda: get_env("SUPABASE_KEY") or get_env("SUPABASE_SERVICE_ROLE_KEY")
    )
    table: str = field(default_factory=lambda: get_env("SUPABASE_MEMORY_TABLE", "shared_memory"))

    @property
    def is_configured(self) -> bool:
        return bool(self.url and self.key)


@dataclass
class LoggingConfig:
    level: str = field(default_factory=lambda: get_env("LOG_LEVEL", "INFO"))
    log_file: Optional[str] = field(default_factory=lambda: get_env("LOG_FILE"))
    json_logs: bool = field(default_factory=lambda: get_env_bool("LOG_JSON", False))


@dataclass
class Settings:
    """All sections, read once per process."""

    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    supabase: SupabaseConfig = field(default_factory=SupabaseConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    app_name: str = "sviesa"
    app_version: str = "0.1.0"
    environment: str = field(default_factory=lambda: get_env("ENVIRONMENT", "development"))

    def is_production(self) -> bool:
        return self.environment.lower() in ("production", "prod")


def load_settings() -> Settings:
    """
    Build fresh settings from the current environment.

    Raises:
        ValueError: a variable is malformed or out of range
    """
    return Settings()


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Process-wide settings, loaded on first use."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings
