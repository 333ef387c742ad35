"""
OpenAI-compatible provider implementation.

This module implements the LLM provider interface for OpenAI's chat
completions API and compatible gateways such as OpenRouter.
"""

from typing import Any

from openai import APIConnectionError, APIStatusError, AsyncOpenAI

from rin.errors import ModelError
from rin.llm.models import LLMRequest, Message, ModelResponse, TokenUsage, ToolCall
from rin.llm.provider import LLMProviderBase


def to_openai_messages(messages: list[Message]) -> list[dict[str, Any]]:
    """Convert rin messages into the chat.completions wire shape."""
    converted: list[dict[str, Any]] = []
    for msg in messages:
        if msg.role == "tool":
            converted.append(
                {"role": "tool", "tool_call_id": msg.tool_call_id, "content": msg.content}
            )
        elif msg.role == "assistant" and msg.tool_calls:
            converted.append(
                {
                    "role": "assistant",
                    "content": msg.content or None,
                    "tool_calls": [
                        {
                            "id": tc.id,
                            "type": "function",
                            "function": {"name": tc.name, "arguments": tc.arguments},
                        }
                        for tc in msg.tool_calls
                    ],
                }
            )
        else:
            converted.append({"role": msg.role, "content": msg.content})
    return converted


def to_openai_tools(tools: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Wrap provider-neutral declarations in the ``function`` envelope."""
    return [
        {
            "type": "function",
            "function": {
                "name": tool["name"],
                "description": tool.get("description", ""),
                "parameters": tool.get("parameters") or {"type": "object", "properties": {}},
            },
        }
        for tool in tools
    ]


class OpenAIProvider(LLMProviderBase):
    """OpenAI / OpenRouter chat completions provider."""

    def __init__(self, api_key: str, model_id: str, **kwargs: Any) -> None:
        super().__init__(api_key, model_id, **kwargs)
        # Retries are owned by ModelClient so they can honour cancellation
        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=kwargs.get("base_url"),
            default_headers=kwargs.get("default_headers"),
            timeout=kwargs.get("timeout", 60),
            max_retries=0,
        )

    async def complete(self, request: LLMRequest) -> ModelResponse:
        """
        Generate completion using the chat completions API.

        Args:
            request: LLM request

        Returns:
            Model response with content or tool calls
        """
        params: dict[str, Any] = {
            "model": self.model_id,
            "messages": to_openai_messages(request.messages),
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
        }
        if request.tools:
            params["tools"] = to_openai_tools(request.tools)
            params["tool_choice"] = request.tool_choice or "auto"

        try:
            response = await self.client.chat.completions.create(**params)
        except APIStatusError as e:
            raise ModelError(str(e), status=e.status_code) from e
        except APIConnectionError as e:
            raise ModelError(str(e), status=None) from e

        choice = response.choices[0]
        message = choice.message

        tool_calls = [
            ToolCall(
                id=tc.id,
                name=tc.function.name,
                arguments=tc.function.arguments or "{}",
            )
            for tc in (message.tool_calls or [])
            if getattr(tc, "function", None) is not None
        ]

        usage = None
        if response.usage is not None:
            usage = TokenUsage(
                input_tokens=response.usage.prompt_tokens or 0,
                output_tokens=response.usage.completion_tokens or 0,
                total_tokens=response.usage.total_tokens or 0,
            )

        return ModelResponse(
            content=message.content or "",
            tool_calls=tool_calls,
            model=response.model or self.model_id,
            usage=usage,
            finish_reason=choice.finish_reason,
        )
