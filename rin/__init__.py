"""
rin - Conversational Agent Runtime

A chat assistant runtime that turns an LLM's structured function-call output
into a bounded, auditable multi-round tool execution process.

This package provides:
1. Tool-calling orchestration loop with guardrails (grounding nudges,
   capability-claim correction, verification pass, leaked tool-code recovery)
2. Capability-gated tool registry and sandboxed tool executor
3. Multi-provider model client with retry, cancellation and usage accounting
4. History compression and sanitized fact extraction
5. Chat handler and CLI for driving conversations

Example:
    >>> from rin.chat import ChatHandler
    >>> from rin.settings import get_settings
    >>>
    >>> handler = ChatHandler.from_settings(get_settings(), store=store, transport=transport)
    >>> await handler.handle_message(caller_id=42, text="What's on my calendar today?")

Architecture:
    - llm: Provider layer and ModelClient
    - core.tools: Registry, catalog, executor, sandbox
    - core.loop: Orchestrator and guard heuristics
    - core.memory: History compressor and fact extractor
    - capabilities: Concrete tool implementations (files, shell, web, account)
    - storage: Persistence collaborators (in-memory and SQLAlchemy)
    - chat: Chat handler, chunking and rate limiting
"""

__version__ = "0.1.0"
__author__ = "rin contributors"
__license__ = "Apache-2.0"

from rin.core.cancellation import CancellationRegistry, CancellationToken
from rin.core.loop import Orchestrator
from rin.core.tools import ToolExecutor, ToolRegistry, build_default_registry
from rin.errors import RinError, RunCancelledError

__all__ = [
    "CancellationRegistry",
    "CancellationToken",
    "Orchestrator",
    "RinError",
    "RunCancelledError",
    "ToolExecutor",
    "ToolRegistry",
    "__version__",
    "build_default_registry",
]
