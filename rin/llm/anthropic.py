"""
Anthropic Claude provider implementation.

This module implements the LLM provider interface for Anthropic's Messages
API, translating between rin's OpenAI-shaped tool messages and Claude's
``tool_use`` / ``tool_result`` content blocks.
"""

import json
from typing import Any

from anthropic import APIConnectionError, APIStatusError, AsyncAnthropic

from rin.errors import ModelError
from rin.llm.models import LLMRequest, Message, ModelResponse, TokenUsage, ToolCall
from rin.llm.provider import LLMProviderBase


def _decode_input(arguments: str) -> dict[str, Any]:
    try:
        decoded = json.loads(arguments or "{}")
    except json.JSONDecodeError:
        return {}
    return decoded if isinstance(decoded, dict) else {}


def to_anthropic_messages(messages: list[Message]) -> tuple[str | None, list[dict[str, Any]]]:
    """
    Convert rin messages into (system, messages) for the Messages API.

    Consecutive tool results are merged into a single user turn, which is how
    Claude expects the answers to one batch of ``tool_use`` blocks.
    """
    system_parts: list[str] = []
    converted: list[dict[str, Any]] = []

    for msg in messages:
        if msg.role == "system":
            system_parts.append(msg.content)
            continue

        if msg.role == "tool":
            block = {
                "type": "tool_result",
                "tool_use_id": msg.tool_call_id,
                "content": msg.content,
            }
            last = converted[-1] if converted else None
            if (
                last
                and last["role"] == "user"
                and isinstance(last["content"], list)
                and all(b.get("type") == "tool_result" for b in last["content"])
            ):
                last["content"].append(block)
            else:
                converted.append({"role": "user", "content": [block]})
            continue

        if msg.role == "assistant" and msg.tool_calls:
            blocks: list[dict[str, Any]] = []
            if msg.content:
                blocks.append({"type": "text", "text": msg.content})
            for tc in msg.tool_calls:
                blocks.append(
                    {
                        "type": "tool_use",
                        "id": tc.id,
                        "name": tc.name,
                        "input": _decode_input(tc.arguments),
                    }
                )
            converted.append({"role": "assistant", "content": blocks})
            continue

        converted.append({"role": msg.role, "content": msg.content})

    system = "\n\n".join(p for p in system_parts if p) or None
    return system, converted


def to_anthropic_tools(tools: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [
        {
            "name": tool["name"],
            "description": tool.get("description", ""),
            "input_schema": tool.get("parameters") or {"type": "object", "properties": {}},
        }
        for tool in tools
    ]


class AnthropicProvider(LLMProviderBase):
    """Anthropic Claude provider."""

    def __init__(self, api_key: str, model_id: str, **kwargs: Any) -> None:
        super().__init__(api_key, model_id, **kwargs)
        self.client = AsyncAnthropic(
            api_key=api_key,
            timeout=kwargs.get("timeout", 60),
            max_retries=0,
        )

    async def complete(self, request: LLMRequest) -> ModelResponse:
        """
        Generate completion using Anthropic API.

        Args:
            request: LLM request

        Returns:
            Model response with content or tool calls
        """
        system_message, messages = to_anthropic_messages(request.messages)

        params: dict[str, Any] = {
            "model": self.model_id,
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
            "messages": messages,
        }
        if system_message:
            params["system"] = system_message
        if request.tools:
            params["tools"] = to_anthropic_tools(request.tools)
            params["tool_choice"] = {"type": "auto"}

        try:
            response = await self.client.messages.create(**params)
        except APIStatusError as e:
            raise ModelError(str(e), status=e.status_code) from e
        except APIConnectionError as e:
            raise ModelError(str(e), status=None) from e

        text_parts: list[str] = []
        tool_calls: list[ToolCall] = []
        for block in response.content:
            if block.type == "text":
                text_parts.append(block.text)
            elif block.type == "tool_use":
                tool_calls.append(
                    ToolCall(id=block.id, name=block.name, arguments=json.dumps(block.input))
                )

        return ModelResponse(
            content="".join(text_parts),
            tool_calls=tool_calls,
            model=response.model,
            usage=TokenUsage(
                input_tokens=response.usage.input_tokens,
                output_tokens=response.usage.output_tokens,
                total_tokens=response.usage.input_tokens + response.usage.output_tokens,
            ),
            finish_reason=response.stop_reason,
        )
