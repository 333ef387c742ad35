"""
rin.chat - Chat Surface

The chat handler that drives one conversation turn, plus the transport
protocol, message chunking, system prompts and rate limiting it uses.
"""

from rin.chat.handler import APOLOGY, ChatHandler
from rin.chat.prompts import ADMIN_SYSTEM_PROMPT, SYSTEM_PROMPT, build_system_message
from rin.chat.ratelimit import MessageRateLimiter, RateLimitExceeded
from rin.chat.transport import Transport, split_message

__all__ = [
    "ADMIN_SYSTEM_PROMPT",
    "APOLOGY",
    "SYSTEM_PROMPT",
    "ChatHandler",
    "MessageRateLimiter",
    "RateLimitExceeded",
    "Transport",
    "build_system_message",
    "split_message",
]
