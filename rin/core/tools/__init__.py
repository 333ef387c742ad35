"""
rin.core.tools - Tool registry, catalog and executor.
"""

from rin.core.tools.base import (
    CallerCapabilities,
    ToolContext,
    ToolDeclaration,
    ToolHandler,
    ToolOutcome,
)
from rin.core.tools.catalog import build_default_registry
from rin.core.tools.executor import ToolExecutor, sanitize_error_message
from rin.core.tools.registry import ToolRegistry
from rin.core.tools.sandbox import resolve_sandboxed_path

__all__ = [
    "CallerCapabilities",
    "ToolContext",
    "ToolDeclaration",
    "ToolExecutor",
    "ToolHandler",
    "ToolOutcome",
    "ToolRegistry",
    "build_default_registry",
    "resolve_sandboxed_path",
    "sanitize_error_message",
]
