"""
Abstract LLM provider interface.

This module defines the base interface that all LLM providers must implement.
"""

from abc import ABC, abstractmethod
from typing import Any

from rin.errors import ConfigurationError
from rin.llm.models import LLMRequest, ModelResponse


class LLMProviderBase(ABC):
    """Abstract base class for LLM providers."""

    def __init__(self, api_key: str, model_id: str, **kwargs: Any) -> None:
        self.api_key = api_key
        self.model_id = model_id
        self.kwargs = kwargs

    @abstractmethod
    async def complete(self, request: LLMRequest) -> ModelResponse:
        """
        Generate one completion, optionally with tool declarations.

        Args:
            request: LLM request with messages, parameters and tools

        Returns:
            ModelResponse with either text content or tool calls

        Raises:
            ModelError: Provider failures normalised with their HTTP status
                (None for network-level failures)
        """


class LLMProviderFactory:
    """Factory for creating LLM providers."""

    @staticmethod
    def create(provider: str, api_key: str, model_id: str, **kwargs: Any) -> LLMProviderBase:
        """
        Create LLM provider.

        Args:
            provider: Provider name ("openrouter", "openai", "anthropic")
            api_key: API key for provider
            model_id: Model identifier
            **kwargs: Additional provider-specific config
                For OpenAI-compatible providers: base_url, default_headers, timeout

        Returns:
            Configured LLM provider instance

        Raises:
            ConfigurationError: If provider is unknown
        """
        from rin.llm.anthropic import AnthropicProvider
        from rin.llm.openai import OpenAIProvider

        providers: dict[str, type[LLMProviderBase]] = {
            "openrouter": OpenAIProvider,
            "openai": OpenAIProvider,
            "anthropic": AnthropicProvider,
        }

        if provider not in providers:
            raise ConfigurationError(
                f"Unknown provider: {provider}. Supported providers: {', '.join(providers.keys())}"
            )

        return providers[provider](api_key=api_key, model_id=model_id, **kwargs)
