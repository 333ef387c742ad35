"""
rin.settings - Centralized Configuration

Single source of truth for all rin configuration.
Loads from .env files and environment variables using pydantic-settings.

Usage:
    >>> from rin.settings import get_settings
    >>> settings = get_settings()
    >>> settings.max_rounds
    12

    >>> llm_config = settings.build_llm_config()
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from rin.llm.config import LLMConfig


class RinSettings(BaseSettings):
    """Centralized rin configuration loaded from .env / environment variables.

    All RIN_* prefixed env vars are loaded automatically.
    API keys use standard names (no prefix) via aliases.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="RIN_",
        extra="ignore",
        populate_by_name=True,
    )

    # -- Environment -----------------------------------------------------------
    env: str = "development"

    # -- Logging ---------------------------------------------------------------
    log_level: str = "INFO"

    # -- Persistence -----------------------------------------------------------
    database_url: str = Field(
        default="sqlite+aiosqlite:///rin.db",
        alias="DATABASE_URL",
    )

    # -- Callers ---------------------------------------------------------------
    # Comma-separated caller ids with privileged (admin) access.
    admin_user_ids: str = Field(default="", alias="ADMIN_USER_ID")
    uploads_dir: str = "uploads"
    rate_limit_per_hour: int = Field(default=60, ge=1)
    admin_rate_limit_per_hour: int = Field(default=300, ge=1)

    # -- Conversation memory ---------------------------------------------------
    memory_turns: int = Field(default=30, ge=1)
    recent_turns: int = Field(default=10, ge=1)
    compress_threshold: int = Field(default=15, ge=1)
    min_fact_extraction_length: int = Field(default=20, ge=0)

    # -- Orchestration ---------------------------------------------------------
    max_rounds: int = Field(default=12, ge=1)
    shell_timeout_seconds: int = Field(default=30, ge=1)
    message_chunk_size: int = Field(default=4096, ge=1)

    # -- LLM -------------------------------------------------------------------
    llm_provider: str = "openrouter"
    llm_fast_model: str = "openai/gpt-4o-mini"
    llm_complex_model: str = "openai/gpt-4o"
    llm_base_url: str | None = None
    llm_temperature: float = 0.7
    llm_max_tokens: int = 4096
    llm_max_retries: int = Field(default=3, ge=1)
    llm_timeout_seconds: int = 60

    # -- API Keys (standard names via alias, no RIN_ prefix) -------------------
    openrouter_api_key: str | None = Field(default=None, alias="OPENROUTER_API_KEY")
    openai_api_key: str | None = Field(default=None, alias="OPENAI_API_KEY")
    anthropic_api_key: str | None = Field(default=None, alias="ANTHROPIC_API_KEY")

    # -- Linked account --------------------------------------------------------
    oauth_base_url: str = Field(default="", alias="GOOGLE_OAUTH_BASE_URL")
    google_client_id: str = Field(default="", alias="GOOGLE_CLIENT_ID")
    google_client_secret: str = Field(default="", alias="GOOGLE_CLIENT_SECRET")
    # JSON file mapping caller id -> stored OAuth tokens; unset disables account tools
    google_tokens_file: str | None = None

    # -- Validators ------------------------------------------------------------

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    # -- Helpers ---------------------------------------------------------------

    @property
    def admin_ids(self) -> frozenset[int]:
        """Parsed admin caller ids."""
        ids = set()
        for raw in self.admin_user_ids.split(","):
            raw = raw.strip()
            if raw.lstrip("-").isdigit():
                ids.add(int(raw))
        return frozenset(ids)

    def is_admin(self, caller_id: int) -> bool:
        return caller_id in self.admin_ids

    def has_llm_credentials(self) -> bool:
        """Return True if the configured provider has an API key."""
        return bool(self._api_key_for(self.llm_provider))

    def _api_key_for(self, provider: str) -> str | None:
        if provider == "openrouter":
            return self.openrouter_api_key
        if provider == "openai":
            return self.openai_api_key
        if provider == "anthropic":
            return self.anthropic_api_key
        return None

    def build_llm_config(self) -> LLMConfig:
        """Build an LLMConfig from server-level settings."""
        return LLMConfig(
            provider=self.llm_provider,
            fast_model=self.llm_fast_model,
            complex_model=self.llm_complex_model,
            base_url=self.llm_base_url,
            api_key=self._api_key_for(self.llm_provider),
            temperature=self.llm_temperature,
            max_tokens=self.llm_max_tokens,
            max_retries=self.llm_max_retries,
            timeout_seconds=self.llm_timeout_seconds,
        )


# ---------------------------------------------------------------------------
# Singleton accessor
# ---------------------------------------------------------------------------


@lru_cache(maxsize=1)
def get_settings() -> RinSettings:
    """Return the cached RinSettings singleton."""
    return RinSettings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for tests)."""
    get_settings.cache_clear()
