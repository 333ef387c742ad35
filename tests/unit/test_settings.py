"""
Unit tests for rin.settings - Centralized Configuration

Tests default values, environment variable overrides, .env file loading,
admin id parsing, build_llm_config(), has_llm_credentials() and
clear_settings_cache().
"""

import pytest
from pydantic import ValidationError

from rin.settings import RinSettings, clear_settings_cache, get_settings

# Keys that alias-based fields read from the environment (no RIN_ prefix).
# We strip these during tests so the real env doesn't leak in.
_ALIAS_KEYS = [
    "DATABASE_URL",
    "ADMIN_USER_ID",
    "OPENROUTER_API_KEY",
    "OPENAI_API_KEY",
    "ANTHROPIC_API_KEY",
    "GOOGLE_OAUTH_BASE_URL",
    "GOOGLE_CLIENT_ID",
    "GOOGLE_CLIENT_SECRET",
]


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch):
    """Clear settings cache and strip aliased env vars so tests are isolated."""
    clear_settings_cache()
    for key in _ALIAS_KEYS:
        monkeypatch.delenv(key, raising=False)
    yield
    clear_settings_cache()


# ============================================================================
# Default Values
# ============================================================================


class TestDefaults:
    def test_default_runtime_limits(self):
        settings = RinSettings(_env_file=None)
        assert settings.max_rounds == 12
        assert settings.memory_turns == 30
        assert settings.recent_turns == 10
        assert settings.compress_threshold == 15
        assert settings.rate_limit_per_hour == 60
        assert settings.admin_rate_limit_per_hour == 300
        assert settings.shell_timeout_seconds == 30
        assert settings.message_chunk_size == 4096

    def test_default_database_url(self):
        settings = RinSettings(_env_file=None)
        assert settings.database_url == "sqlite+aiosqlite:///rin.db"

    def test_default_llm_settings(self):
        settings = RinSettings(_env_file=None)
        assert settings.llm_provider == "openrouter"
        assert settings.llm_fast_model == "openai/gpt-4o-mini"
        assert settings.llm_complex_model == "openai/gpt-4o"
        assert settings.llm_max_retries == 3

    def test_default_api_keys_are_none(self):
        settings = RinSettings(_env_file=None)
        assert settings.openrouter_api_key is None
        assert settings.openai_api_key is None
        assert settings.anthropic_api_key is None
        assert settings.has_llm_credentials() is False

    def test_no_admins_by_default(self):
        assert RinSettings(_env_file=None).admin_ids == frozenset()


# ============================================================================
# Environment Overrides
# ============================================================================


class TestEnvOverrides:
    def test_prefixed_env_vars(self, monkeypatch):
        monkeypatch.setenv("RIN_MAX_ROUNDS", "5")
        monkeypatch.setenv("RIN_LOG_LEVEL", "debug")
        monkeypatch.setenv("RIN_UPLOADS_DIR", "/srv/rin/uploads")

        settings = RinSettings(_env_file=None)

        assert settings.max_rounds == 5
        assert settings.log_level == "DEBUG"
        assert settings.uploads_dir == "/srv/rin/uploads"

    def test_alias_env_vars(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///other.db")
        monkeypatch.setenv("OPENROUTER_API_KEY", "sk-or-test")
        monkeypatch.setenv("GOOGLE_OAUTH_BASE_URL", "https://rin.example")

        settings = RinSettings(_env_file=None)

        assert settings.database_url == "sqlite+aiosqlite:///other.db"
        assert settings.has_llm_credentials() is True
        assert settings.oauth_base_url == "https://rin.example"

    def test_env_file(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("RIN_MAX_ROUNDS=3\nADMIN_USER_ID=7\n")

        settings = RinSettings(_env_file=str(env_file))

        assert settings.max_rounds == 3
        assert settings.admin_ids == frozenset({7})

    def test_invalid_values_rejected(self, monkeypatch):
        monkeypatch.setenv("RIN_MAX_ROUNDS", "0")
        with pytest.raises(ValidationError):
            RinSettings(_env_file=None)

    def test_unknown_log_level_rejected(self, monkeypatch):
        monkeypatch.setenv("RIN_LOG_LEVEL", "chatty")
        with pytest.raises(ValidationError):
            RinSettings(_env_file=None)


# ============================================================================
# Helpers
# ============================================================================


class TestHelpers:
    def test_admin_ids_parsing(self):
        settings = RinSettings(_env_file=None, admin_user_ids=" 1, 22 ,abc,,-5")

        assert settings.admin_ids == frozenset({1, 22, -5})
        assert settings.is_admin(22)
        assert not settings.is_admin(3)

    def test_build_llm_config_uses_provider_key(self):
        settings = RinSettings(
            _env_file=None,
            llm_provider="anthropic",
            llm_fast_model="claude-haiku",
            llm_complex_model="claude-sonnet",
            anthropic_api_key="sk-ant-test",
            openai_api_key="sk-openai-test",
        )

        config = settings.build_llm_config()

        assert config.provider == "anthropic"
        assert config.fast_model == "claude-haiku"
        assert config.complex_model == "claude-sonnet"
        assert config.api_key == "sk-ant-test"

    def test_unknown_provider_has_no_credentials(self):
        settings = RinSettings(_env_file=None, llm_provider="nope", openai_api_key="k")
        assert settings.has_llm_credentials() is False


class TestCache:
    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()

    def test_clear_settings_cache(self):
        first = get_settings()
        clear_settings_cache()
        assert get_settings() is not first
