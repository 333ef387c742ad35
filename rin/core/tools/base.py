"""
rin.core.tools.base - Base Tool Definitions

Core interfaces and data models for the tool system.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from rin.capabilities.account import AccountClient
    from rin.chat.transport import Transport
    from rin.core.cancellation import CancellationToken
    from rin.storage import Store


class ToolDeclaration(BaseModel):
    """
    Schema-described tool exposed to the model.

    Declarations are immutable catalog entries; the orchestrator hands them to
    the model client in provider-neutral form (see ``to_schema``).

    Example:
        >>> run_command = ToolDeclaration(
        ...     name="run_command",
        ...     description="Execute a bash command on the server.",
        ...     parameters={
        ...         "type": "object",
        ...         "properties": {"command": {"type": "string", "description": "bash -c command"}},
        ...         "required": ["command"],
        ...     },
        ... )
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., pattern=r"^[a-zA-Z0-9_-]{1,64}$", description="Unique tool name")
    description: str = Field(..., min_length=1, description="What this tool does")
    parameters: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}},
        description="JSON schema for tool parameters",
    )

    @property
    def required(self) -> list[str]:
        return list(self.parameters.get("required", []))

    def to_schema(self) -> dict[str, Any]:
        """Provider-neutral declaration: ``{name, description, parameters}``."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }


class CallerCapabilities(BaseModel):
    """
    Capability gate for one caller in one turn.

    Hashable so the registry can memoise the visible declaration set.
    """

    model_config = ConfigDict(frozen=True)

    admin: bool = False
    has_linked_account: bool = False


@dataclass(frozen=True)
class ToolContext:
    """
    Per-call collaborator bundle handed to tool handlers.

    Built once per conversation turn by the chat handler; tools never reach
    module-level state.
    """

    caller_id: int
    capabilities: CallerCapabilities
    sandbox_root: Path
    store: "Store"
    account: "AccountClient | None" = None
    transport: "Transport | None" = None
    shell_timeout_seconds: int = 30
    oauth_base_url: str = ""
    visible_tools: frozenset[str] = frozenset()
    cancel_token: "CancellationToken | None" = None

    @property
    def admin(self) -> bool:
        return self.capabilities.admin


class ToolOutcome(BaseModel):
    """
    Result of one tool execution as seen by the orchestrator.

    ``final_answer`` is only set by ``reflect`` with a revised answer and
    ends the run on the same round.
    """

    text: str
    is_error: bool = False
    final_answer: str | None = None


ToolHandler = Callable[[dict[str, Any], ToolContext], Awaitable[str]]
