"""
Shared LLM models and types.

This module defines common data models used across all LLM providers and the
orchestration loop.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class ModelTier(str, Enum):
    """Model routing tiers."""

    FAST = "fast"
    COMPLEX = "complex"


class ToolCall(BaseModel):
    """
    A tool invocation requested by the model.

    ``arguments`` is kept as the raw JSON text the model produced; the
    orchestrator decodes it right before dispatch so that a malformed payload
    becomes a recoverable tool error instead of a provider-level failure.
    """

    id: str
    name: str
    arguments: str = "{}"


class Message(BaseModel):
    """Chat message."""

    role: Literal["system", "user", "assistant", "tool"]
    content: str = ""
    tool_call_id: str | None = None
    tool_calls: list[ToolCall] | None = None


class LLMRequest(BaseModel):
    """LLM generation request."""

    messages: list[Message]
    max_tokens: int = 4096
    temperature: float = 0.7

    # Provider-neutral tool declarations (name, description, parameters)
    tools: list[dict[str, Any]] | None = None
    tool_choice: str | None = None


class TokenUsage(BaseModel):
    """Token usage tracking."""

    input_tokens: int
    output_tokens: int
    total_tokens: int


class ModelResponse(BaseModel):
    """
    Model completion result.

    Either ``content`` carries a candidate answer, or ``tool_calls`` carries
    the structured tool requests for this round.
    """

    content: str = ""
    tool_calls: list[ToolCall] = Field(default_factory=list)
    model: str = ""
    usage: TokenUsage | None = None
    finish_reason: str | None = None

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)


class UsageRecord(BaseModel):
    """Append-only record of one model call's token consumption."""

    model_config = ConfigDict(frozen=True)

    model: str
    tokens_in: int
    tokens_out: int
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
