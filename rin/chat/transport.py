"""
rin.chat.transport - Chat transport interface

The chat handler and the ``send_file`` tool deliver output through this
protocol; the concrete transport (Telegram, console, webhook) lives outside
the core.
"""

from pathlib import Path
from typing import Protocol, runtime_checkable


@runtime_checkable
class Transport(Protocol):
    async def send_text(self, caller_id: int, text: str) -> None: ...

    async def send_typing(self, caller_id: int) -> None: ...

    async def send_file(self, caller_id: int, path: Path, caption: str | None = None) -> None: ...


MESSAGE_CHUNK_SIZE = 4096


def split_message(text: str, limit: int = MESSAGE_CHUNK_SIZE) -> list[str]:
    """
    Split ``text`` into chunks of at most ``limit`` characters.

    Each chunk ends just after the last newline inside the boundary when
    there is one, so the next chunk never opens with a blank line; otherwise
    the text is cut hard at the boundary. Nothing is dropped:
    ``"".join(split_message(t)) == t``.
    """
    if limit < 1:
        raise ValueError("limit must be positive")
    if len(text) <= limit:
        return [text]

    chunks = []
    start = 0
    while start < len(text):
        end = start + limit
        if end < len(text):
            newline = text.rfind("\n", start, end)
            if newline > start:
                end = newline + 1
        chunks.append(text[start:end])
        start = end
    return chunks
