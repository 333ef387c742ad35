"""
rin.capabilities - Tool Implementations

Concrete handlers behind the tool catalog, one module per concern. Each
module exposes a ``HANDLERS`` mapping of tool name to async handler;
``build_handlers()`` merges them into the dispatch table the
``ToolExecutor`` is built with.
"""

from rin.capabilities import account, files, google, monitoring, personal, shell, web
from rin.core.tools.base import ToolHandler


def build_handlers() -> dict[str, ToolHandler]:
    """
    Merge every capability's handler table.

    Raises:
        ValueError: If two capability modules register the same tool name
    """
    handlers: dict[str, ToolHandler] = {}
    for module in (web, personal, account, google, files, shell, monitoring):
        overlap = handlers.keys() & module.HANDLERS.keys()
        if overlap:
            raise ValueError(f"Duplicate tool handlers: {sorted(overlap)}")
        handlers.update(module.HANDLERS)
    return handlers


__all__ = ["build_handlers"]
