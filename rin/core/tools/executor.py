"""
rin.core.tools.executor - Tool Executor

Dispatches decoded tool calls to their handlers and turns every collaborator
failure into a sanitized tool-result string.
"""

import logging
import re
from collections.abc import Awaitable, Callable, Mapping
from time import time
from typing import TYPE_CHECKING, Any

from rin.core.cancellation import run_cancellable
from rin.core.tools.base import ToolContext, ToolHandler, ToolOutcome
from rin.core.tools.registry import ToolRegistry
from rin.errors import RunCancelledError

if TYPE_CHECKING:
    from rin.core.loop.models import RunState

logger = logging.getLogger(__name__)

META_TOOL_NAMES = frozenset({"think", "plan", "reflect"})

THOUGHT_RECORDED = "Thought recorded. Continue."
REFLECTION_SATISFACTORY = "Reflection noted: the answer is satisfactory."

_PATH_RE = re.compile(r"/[^\s:]+")
_JS_FRAME_RE = re.compile(r"\n\s+at .+")
_PY_FRAME_RE = re.compile(r"\n\s*File \".+")

MetaHandler = Callable[[dict[str, Any], "RunState | None"], Awaitable[ToolOutcome]]


def sanitize_error_message(message: str) -> str:
    """
    Strip absolute paths and stack-frame lines from an error message.

    Example:
        >>> sanitize_error_message("ENOENT: no such file '/srv/rin/uploads/7/a.txt'")
        "ENOENT: no such file '<path>"
    """
    sanitized = _PATH_RE.sub("<path>", message or "")
    sanitized = _JS_FRAME_RE.sub("", sanitized)
    sanitized = _PY_FRAME_RE.sub("", sanitized)
    return sanitized.strip() or "unknown error"


def format_tool_error(error: BaseException) -> str:
    message = str(error) or type(error).__name__
    return f"Tool error: {sanitize_error_message(message)}"


def _coerce_steps(raw: Any) -> list[str]:
    if isinstance(raw, str):
        return [line.strip() for line in raw.splitlines() if line.strip()]
    if isinstance(raw, list):
        return [str(step).strip() for step in raw if str(step).strip()]
    return []


class ToolExecutor:
    """
    Executes tool calls through a name-keyed dispatch table.

    This class NEVER raises for tool failures: every exception from a handler
    is sanitized into a ``ToolOutcome`` the model can read and recover from.
    Cancellation is the only thing that propagates.

    Meta-cognitive tools (``think``, ``plan``, ``reflect``) are handled here
    and never reach collaborator services.

    Example:
        >>> executor = ToolExecutor(registry, build_handlers())
        >>> outcome = await executor.execute("read_file", {"path": "notes.txt"}, context)
        >>> outcome.text
        'hello'
    """

    def __init__(self, registry: ToolRegistry, handlers: Mapping[str, ToolHandler]) -> None:
        """
        Initialize executor.

        Args:
            registry: Catalog used to check visibility and required parameters
            handlers: Collaborator handler per tool name
        """
        self.registry = registry
        self._meta: dict[str, MetaHandler] = {
            "think": self._think,
            "plan": self._plan,
            "reflect": self._reflect,
        }
        self._dispatch: dict[str, ToolHandler] = {
            name: handler for name, handler in handlers.items() if name not in META_TOOL_NAMES
        }

        missing = [
            decl.name
            for decl in registry
            if decl.name not in self._dispatch and decl.name not in META_TOOL_NAMES
        ]
        if missing:
            logger.warning(
                f"{len(missing)} declared tools have no handler and will answer 'Unknown tool'",
                extra={"tools": missing},
            )

    def has_handler(self, name: str) -> bool:
        return name in self._meta or name in self._dispatch

    async def execute(
        self,
        name: str,
        args: dict[str, Any],
        context: ToolContext,
        state: "RunState | None" = None,
    ) -> ToolOutcome:
        """
        Execute one tool call.

        Args:
            name: Tool name requested by the model
            args: Decoded arguments
            context: Per-turn collaborator bundle
            state: Run state updated by ``plan``

        Returns:
            ToolOutcome with result text; ``final_answer`` set when ``reflect``
            revised the answer

        Raises:
            RunCancelledError: If the run was cancelled while the tool ran
        """
        if not self.registry.is_visible(name, context.capabilities):
            logger.warning(
                f"Rejected tool call for unavailable tool: {name}",
                extra={"caller_id": context.caller_id, "tool_name": name},
            )
            return ToolOutcome(text=f"Unknown tool: {name}", is_error=True)

        meta = self._meta.get(name)
        if meta is not None:
            return await meta(args, state)

        handler = self._dispatch.get(name)
        if handler is None:
            return ToolOutcome(text=f"Unknown tool: {name}", is_error=True)

        validation_error = self._validate_params(name, args)
        if validation_error:
            return ToolOutcome(text=f"Tool error: {validation_error}", is_error=True)

        start_time = time()
        try:
            text = await run_cancellable(handler(args, context), context.cancel_token)
        except RunCancelledError:
            raise
        except Exception as e:
            logger.warning(
                f"Tool {name} failed: {type(e).__name__}",
                exc_info=True,
                extra={"caller_id": context.caller_id, "tool_name": name},
            )
            return ToolOutcome(text=format_tool_error(e), is_error=True)

        logger.info(
            f"Tool {name} executed",
            extra={
                "caller_id": context.caller_id,
                "tool_name": name,
                "duration_ms": round((time() - start_time) * 1000, 1),
            },
        )
        return ToolOutcome(text=str(text))

    def _validate_params(self, name: str, args: dict[str, Any]) -> str | None:
        decl = self.registry.get(name)
        if decl is None:
            return None
        for param in decl.required:
            if args.get(param) is None:
                return f"Missing required parameter: {param}"
        return None

    # ------------------------------------------------------------------
    # Meta-cognitive tools
    # ------------------------------------------------------------------

    async def _think(self, args: dict[str, Any], state: "RunState | None") -> ToolOutcome:
        return ToolOutcome(text=THOUGHT_RECORDED)

    async def _plan(self, args: dict[str, Any], state: "RunState | None") -> ToolOutcome:
        steps = _coerce_steps(args.get("steps"))
        goal = str(args.get("goal") or "").strip()
        if state is not None:
            state.active_plan = steps

        lines = [f"Plan recorded{f' for: {goal}' if goal else ''}"]
        lines.extend(f"{i}. {step}" for i, step in enumerate(steps, start=1))
        lines.append("Proceed now: execute each step in order using the appropriate tools.")
        return ToolOutcome(text="\n".join(lines))

    async def _reflect(self, args: dict[str, Any], state: "RunState | None") -> ToolOutcome:
        revised = args.get("revised_answer")
        if isinstance(revised, str) and revised.strip() and revised.strip() != "null":
            return ToolOutcome(text="Revised answer accepted.", final_answer=revised.strip())
        return ToolOutcome(text=REFLECTION_SATISFACTORY)
