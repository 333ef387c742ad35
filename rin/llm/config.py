"""
LLM provider configuration.

This module provides configuration for LLM providers and the default endpoint
for each supported provider.
"""

from pydantic import BaseModel, ConfigDict, Field

from rin.llm.models import ModelTier

# Default base URLs for OpenAI-compatible providers
PROVIDER_BASE_URLS: dict[str, str | None] = {
    "openrouter": "https://openrouter.ai/api/v1",
    "openai": None,
    "anthropic": None,
}

# Extra headers OpenRouter uses for attribution
OPENROUTER_HEADERS = {
    "HTTP-Referer": "https://github.com/rin-bot",
    "X-Title": "Rin",
}


class LLMConfig(BaseModel):
    """LLM configuration."""

    model_config = ConfigDict(frozen=True)

    provider: str = "openrouter"

    # Model used for short, single-step requests
    fast_model: str = "openai/gpt-4o-mini"

    # Model used for multi-step, high-stakes or capability questions
    complex_model: str = "openai/gpt-4o"

    base_url: str | None = None

    # API key (excluded from serialization)
    api_key: str | None = Field(default=None, exclude=True, repr=False)

    temperature: float = 0.7
    max_tokens: int = 4096

    # Performance settings
    max_retries: int = 3
    timeout_seconds: int = 60

    def model_for(self, tier: ModelTier) -> str:
        """Return the model id configured for a routing tier."""
        return self.complex_model if tier == ModelTier.COMPLEX else self.fast_model

    def resolved_base_url(self) -> str | None:
        return self.base_url or PROVIDER_BASE_URLS.get(self.provider)
