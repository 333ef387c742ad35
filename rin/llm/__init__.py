"""
rin.llm - Conversation model client.

This package wraps the underlying language model behind a single
``ModelClient`` with retry on transient failures, cooperative cancellation,
fast/complex model routing tiers and best-effort usage accounting.

Example:
    >>> from rin.llm import ModelClient
    >>> from rin.llm.config import LLMConfig
    >>>
    >>> client = ModelClient(LLMConfig(provider="openrouter", api_key=key))
    >>> response = await client.complete(messages, tools=declarations, cancel_token=token)
    >>> if response.has_tool_calls:
    ...     ...
    >>> text = await client.chat(messages)
"""

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from rin.core.cancellation import CancellationToken, run_cancellable
from rin.errors import (
    ConfigurationError,
    ModelError,
    ToolCallingUnsupportedError,
    TransientModelError,
)
from rin.llm.config import OPENROUTER_HEADERS, LLMConfig
from rin.llm.models import (
    LLMRequest,
    Message,
    ModelResponse,
    ModelTier,
    TokenUsage,
    ToolCall,
    UsageRecord,
)
from rin.llm.provider import LLMProviderBase, LLMProviderFactory

logger = logging.getLogger(__name__)

# Delay before retry N (the last value repeats for later retries)
DEFAULT_RETRY_DELAYS: tuple[float, ...] = (1.0, 3.0)

_TOOL_UNSUPPORTED_RE = re.compile(r"tool|function", re.IGNORECASE)

UsageSink = Callable[[UsageRecord], Awaitable[None]]


def is_tool_calling_unsupported(error: BaseException) -> bool:
    """
    Return True if ``error`` means the model cannot take tool declarations.

    Providers signal this inconsistently: a bare 400, or a 4xx whose message
    mentions tools/functions.
    """
    if isinstance(error, ToolCallingUnsupportedError):
        return True
    if not isinstance(error, ModelError) or error.is_transient:
        return False
    return error.status == 400 or bool(_TOOL_UNSUPPORTED_RE.search(str(error)))


class ModelClient:
    """
    Conversation model client with retry, cancellation and usage tracking.

    Attributes:
        config: LLM configuration
        providers: Provider instance per routing tier
        requests_count: Total number of successful completions
    """

    def __init__(
        self,
        config: LLMConfig,
        providers: dict[ModelTier, LLMProviderBase] | None = None,
        usage_sink: UsageSink | None = None,
        retry_delays: Sequence[float] = DEFAULT_RETRY_DELAYS,
    ) -> None:
        """
        Initialize model client.

        Args:
            config: LLM configuration
            providers: Pre-built providers per tier (tests inject fakes here)
            usage_sink: Async callback receiving one UsageRecord per completion
            retry_delays: Seconds to wait before each retry
        """
        self.config = config
        self.providers = providers or {
            tier: self._create_provider(config.model_for(tier)) for tier in ModelTier
        }
        self.usage_sink = usage_sink
        self.retry_delays = tuple(retry_delays) or (0.0,)
        self.requests_count = 0

    def _create_provider(self, model_id: str) -> LLMProviderBase:
        if not self.config.api_key:
            raise ConfigurationError(
                f"No API key configured for LLM provider '{self.config.provider}'"
            )
        kwargs: dict[str, Any] = {"timeout": self.config.timeout_seconds}
        if self.config.provider in ("openrouter", "openai"):
            kwargs["base_url"] = self.config.resolved_base_url()
        if self.config.provider == "openrouter":
            kwargs["default_headers"] = OPENROUTER_HEADERS
        return LLMProviderFactory.create(
            provider=self.config.provider,
            api_key=self.config.api_key,
            model_id=model_id,
            **kwargs,
        )

    async def complete(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]] | None = None,
        *,
        cancel_token: CancellationToken | None = None,
        tier: ModelTier = ModelTier.FAST,
    ) -> ModelResponse:
        """
        Run one completion, with tools when given.

        Args:
            messages: Full prompt context
            tools: Provider-neutral tool declarations (name, description, parameters)
            cancel_token: Token checked before every attempt and raced against it
            tier: Routing tier selecting the model

        Returns:
            ModelResponse with text or tool calls

        Raises:
            ToolCallingUnsupportedError: The model rejected the tool declarations
            TransientModelError: Transient failures outlasted every retry
            ModelError: Non-transient provider failure
            RunCancelledError: The token was cancelled
        """
        request = LLMRequest(
            messages=messages,
            max_tokens=self.config.max_tokens,
            temperature=self.config.temperature,
            tools=tools or None,
            tool_choice="auto" if tools else None,
        )
        provider = self.providers.get(tier) or self.providers[ModelTier.FAST]

        try:
            response = await self._complete_with_retry(provider, request, cancel_token)
        except ModelError as e:
            if tools and not isinstance(e, TransientModelError) and is_tool_calling_unsupported(e):
                raise ToolCallingUnsupportedError(str(e), status=e.status) from e
            raise

        self.requests_count += 1
        await self._track_usage(response, provider)
        return response

    async def chat(
        self,
        messages: list[Message],
        *,
        cancel_token: CancellationToken | None = None,
        tier: ModelTier = ModelTier.FAST,
    ) -> str:
        """Plain completion without tools; returns the stripped text."""
        response = await self.complete(messages, cancel_token=cancel_token, tier=tier)
        return response.content.strip()

    async def _complete_with_retry(
        self,
        provider: LLMProviderBase,
        request: LLMRequest,
        cancel_token: CancellationToken | None,
    ) -> ModelResponse:
        attempts = max(1, self.config.max_retries)
        for attempt in range(attempts):
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()
            try:
                return await run_cancellable(provider.complete(request), cancel_token)
            except ModelError as e:
                if not e.is_transient:
                    raise
                if attempt == attempts - 1:
                    logger.error(
                        f"Model call failed after {attempts} attempts: {e}",
                        extra={"model": provider.model_id, "status": e.status},
                    )
                    raise TransientModelError(str(e), status=e.status) from e

                delay = self.retry_delays[min(attempt, len(self.retry_delays) - 1)]
                logger.warning(
                    f"Transient model error, retrying in {delay}s (attempt {attempt + 1}/{attempts})",
                    extra={"model": provider.model_id, "status": e.status, "attempt": attempt + 1},
                )
                if cancel_token is not None:
                    await cancel_token.sleep(delay)
                else:
                    await asyncio.sleep(delay)

        raise AssertionError("unreachable")  # pragma: no cover

    async def _track_usage(self, response: ModelResponse, provider: LLMProviderBase) -> None:
        """Log token usage. Failures here never affect the returned response."""
        if response.usage is None or self.usage_sink is None:
            return
        try:
            record = UsageRecord(
                model=response.model or provider.model_id,
                tokens_in=response.usage.input_tokens,
                tokens_out=response.usage.output_tokens,
            )
            await self.usage_sink(record)
        except Exception as e:
            logger.warning(f"Failed to record model usage: {e}", exc_info=True)


__all__ = [
    "LLMConfig",
    "LLMProviderFactory",
    "Message",
    "ModelClient",
    "ModelResponse",
    "ModelTier",
    "TokenUsage",
    "ToolCall",
    "UsageRecord",
    "is_tool_calling_unsupported",
]
