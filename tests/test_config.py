"""
Tests for environment-driven configuration.

Usage:
    pytest tests/test_config.py -v
"""

from pathlib import Path
from unittest.mock import patch

import pytest

from sviesa.config import (
    LoggingConfig,
    PipelineConfig,
    ProviderConfig,
    StorageConfig,
    SupabaseConfig,
    get_env_bool,
    get_env_int,
    load_settings,
)


class TestPipelineConfig:

    def test_defaults(self):
        with patch.dict("os.environ", {}, clear=True):
            config = PipelineConfig()

        assert config.similarity_threshold == 0.85
        assert config.duplicate_threshold == 0.95
        assert config.response_cache_ttl_seconds == 3600
        assert config.response_cache_max_entries == 100
        assert config.local_memory_max_entries == 500
        assert config.relevance_floor == 50.0
        assert config.max_history_turns == 8
        assert config.chunk_char_budget == 600

    @patch.dict("os.environ", {"RAG_RELEVANCE_FLOOR": "75", "MAX_HISTORY_TURNS": "4"})
    def test_env_override(self):
        config = PipelineConfig()
        assert config.relevance_floor == 75.0
        assert config.max_history_turns == 4

    @patch.dict("os.environ", {"RESPONSE_CACHE_MAX_ENTRIES": "lots"})
    def test_invalid_number(self):
        with pytest.raises(ValueError, match="RESPONSE_CACHE_MAX_ENTRIES"):
            PipelineConfig()

    @patch.dict("os.environ", {"MEMORY_SIMILARITY_THRESHOLD": "0.9", "MEMORY_DUPLICATE_THRESHOLD": "0.8"})
    def test_duplicate_below_similarity(self):
        with pytest.raises(ValueError):
            PipelineConfig()

    @patch.dict("os.environ", {"RESPONSE_CACHE_TTL_SECONDS": "0"})
    def test_non_positive_ttl(self):
        with pytest.raises(ValueError):
            PipelineConfig()


class TestOtherSections:

    @patch.dict("os.environ", {"LLM_PROVIDER": "gemini"})
    def test_unknown_provider(self):
        with pytest.raises(ValueError, match="LLM_PROVIDER"):
            ProviderConfig()

    @patch.dict("os.environ", {"GPT_API_KEY": "gpt-key"}, clear=True)
    def test_gpt_key_alias(self):
        assert ProviderConfig().openai_api_key == "gpt-key"

    @patch.dict("os.environ", {"RESPONSE_CACHE_BACKEND": "memcached"})
    def test_unknown_cache_backend(self):
        with pytest.raises(ValueError):
            StorageConfig()

    @patch.dict("os.environ", {"DATA_DIR": "/tmp/sviesa"}, clear=True)
    def test_seed_file_default(self):
        assert StorageConfig().seed_memory_file == Path("/tmp/sviesa/seed_memory.json")

    @patch.dict("os.environ", {"SUPABASE_URL": "https://x.supabase.co", "SUPABASE_SERVICE_ROLE_KEY": "k"}, clear=True)
    def test_supabase_configured(self):
        assert SupabaseConfig().is_configured is True

    @patch.dict("os.environ", {}, clear=True)
    def test_supabase_not_configured(self):
        assert SupabaseConfig().is_configured is False

    @patch.dict("os.environ", {"LOG_JSON": "yes"})
    def test_logging(self):
        assert LoggingConfig().json_logs is True


class TestHelpers:

    @patch.dict("os.environ", {"X": "on"})
    def test_bool(self):
        assert get_env_bool("X", False) is True
        assert get_env_bool("MISSING_FLAG", True) is True

    @patch.dict("os.environ", {"N": "12"})
    def test_int(self):
        assert get_env_int("N", 0) == 12
        assert get_env_int("MISSING_NUMBER", 7) == 7


@patch.dict("os.environ", {"ENVIRONMENT": "production"})
def test_load_settings():
    settings = load_settings()
    assert settings.is_production() is True
    assert settings.app_name == "sviesa"
