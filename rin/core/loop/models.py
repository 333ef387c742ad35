"""
rin.core.loop.models - Loop-specific Models

Run-local state and tunables for the orchestration loop.
"""

from dataclasses import dataclass, field

from pydantic import BaseModel, Field

from rin.llm.models import Message


@dataclass
class RunState:
    """
    Mutable state of one orchestration run.

    Created at the start of ``Orchestrator.run`` and discarded at the end; it
    is never persisted. ``round`` only ever increases, and the run ends once
    it reaches ``LoopConfig.max_rounds``.

    Attributes:
        messages: Working message list (original messages plus everything
            appended during the run)
        round: Completed rounds, including guard-correction rounds
        active_plan: Steps recorded by the ``plan`` tool
        external_tool_calls: Non-meta tool calls executed so far
        grounding_nudge_used: One-shot flag for the grounding nudge
        capability_correction_used: One-shot flag for the claim correction
        capability_listing_retries: Times the model was told to list
            capabilities first
        verification_done: Whether the verification pass already ran
        called_tools: Names of every tool the model called this run
    """

    messages: list[Message]
    round: int = 0
    active_plan: list[str] | None = None
    external_tool_calls: int = 0
    grounding_nudge_used: bool = False
    capability_correction_used: bool = False
    capability_listing_retries: int = 0
    verification_done: bool = False
    called_tools: set[str] = field(default_factory=set)


class LoopConfig(BaseModel):
    """
    Configuration for the orchestration loop.

    Example:
        >>> config = LoopConfig(max_rounds=12, verification_enabled=False)
    """

    max_rounds: int = Field(default=12, ge=1, description="Hard cap on rounds per run")
    max_capability_listing_retries: int = Field(
        default=2, ge=0, description="How often to insist on the capability-listing tool"
    )
    verification_enabled: bool = Field(
        default=True, description="Run the tool-less verification pass after multi-tool answers"
    )
