"""
Test doubles shared by the unit and integration tests.

- ScriptedModel: conversation model that replays canned responses
- RecordingTransport: chat transport that remembers what was sent
- FakeAccountClient: AccountClient answering from a route table

Usage:
    from tests.fakes import ScriptedModel, text, tool_call

    model = ScriptedModel([tool_call("list_reminders"), text("Nothing pending.")])
"""

import json
from pathlib import Path
from typing import Any

from rin.capabilities.account import AccountError, AccountTokens
from rin.llm.models import Message, ModelResponse, ModelTier, TokenUsage, ToolCall


def text(content: str) -> ModelResponse:
    """A tool-less candidate answer."""
    return ModelResponse(
        content=content,
        model="test-model",
        usage=TokenUsage(input_tokens=10, output_tokens=5, total_tokens=15),
    )


def tool_call(name: str, args: dict[str, Any] | str | None = None, call_id: str | None = None) -> ModelResponse:
    """A response requesting one tool call (``args`` may be raw JSON text)."""
    raw = args if isinstance(args, str) else json.dumps(args or {})
    return ModelResponse(tool_calls=[ToolCall(id=call_id or f"call_{name}", name=name, arguments=raw)])


def tool_calls(*calls: tuple[str, dict[str, Any]]) -> ModelResponse:
    """A response requesting several tool calls in order."""
    return ModelResponse(
        tool_calls=[
            ToolCall(id=f"call_{i}_{name}", name=name, arguments=json.dumps(args))
            for i, (name, args) in enumerate(calls)
        ]
    )


class ScriptedModel:
    """
    Conversation model replaying scripted results.

    Items in ``responses`` (for ``complete``) and ``chat_replies`` (for
    ``chat``) are returned in order; exceptions are raised instead. When a
    script runs out, ``complete`` answers ``default_text`` and ``chat``
    answers ``default_chat``.
    """

    def __init__(
        self,
        responses: list[ModelResponse | BaseException] | None = None,
        chat_replies: list[str | BaseException] | None = None,
        default_text: str = "done",
        default_chat: str = "summary",
    ) -> None:
        self.responses = list(responses or [])
        self.chat_replies = list(chat_replies or [])
        self.default_text = default_text
        self.default_chat = default_chat
        self.complete_calls: list[dict[str, Any]] = []
        self.chat_calls: list[dict[str, Any]] = []

    async def complete(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]] | None = None,
        *,
        cancel_token=None,
        tier: ModelTier = ModelTier.FAST,
    ) -> ModelResponse:
        self.complete_calls.append({"messages": list(messages), "tools": tools, "tier": tier})
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        if not self.responses:
            return text(self.default_text)
        item = self.responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    async def chat(
        self,
        messages: list[Message],
        *,
        cancel_token=None,
        tier: ModelTier = ModelTier.FAST,
    ) -> str:
        self.chat_calls.append({"messages": list(messages), "tier": tier})
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        if not self.chat_replies:
            return self.default_chat
        item = self.chat_replies.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item.strip()


class RecordingTransport:
    """Chat transport that records every delivery."""

    def __init__(self) -> None:
        self.texts: list[tuple[int, str]] = []
        self.files: list[tuple[int, Path, str | None]] = []
        self.typing: list[int] = []

    async def send_text(self, caller_id: int, text: str) -> None:
        self.texts.append((caller_id, text))

    async def send_typing(self, caller_id: int) -> None:
        self.typing.append(caller_id)

    async def send_file(self, caller_id: int, path: Path, caption: str | None = None) -> None:
        self.files.append((caller_id, path, caption))

    def sent_to(self, caller_id: int) -> list[str]:
        return [t for cid, t in self.texts if cid == caller_id]


class FakeAccountClient:
    """
    ``AccountClient`` answering from ``routes``.

    Routes map ``(method, url_suffix)`` to a response dict, a list of dicts
    (one per call, in order) or an exception. Unmatched requests raise a 404
    ``AccountError``.
    """

    def __init__(
        self,
        routes: dict[tuple[str, str], Any] | None = None,
        tokens: AccountTokens | None = None,
    ) -> None:
        self.routes = dict(routes or {})
        self.tokens = tokens if tokens is not None else AccountTokens(access_token="test-token")
        self.requests: list[dict[str, Any]] = []

    async def get_tokens(self, caller_id: int) -> AccountTokens | None:
        return self.tokens

    async def request(
        self,
        caller_id: int,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
        content: bytes | None = None,
        content_type: str | None = None,
    ) -> dict[str, Any]:
        self.requests.append(
            {
                "method": method,
                "url": url,
                "params": params,
                "json": json_body,
                "content": content,
                "content_type": content_type,
            }
        )
        for (route_method, suffix), result in self.routes.items():
            if route_method == method and url.endswith(suffix):
                if isinstance(result, list):
                    result = result.pop(0) if result else {}
                if isinstance(result, BaseException):
                    raise result
                return result
        raise AccountError(f"No route for {method} {url}", status=404)
