"""
rin.core.loop - Tool-Calling Orchestration Loop

The bounded multi-round loop that turns a model's structured tool calls into
executed actions and a single final answer. Each round it:
1. Calls the model with the working messages and the visible tool set
2. Runs requested tools in order and appends their results, or
3. Passes a candidate answer through the guards (leaked tool code,
   grounding, capability listing, unsupported claims, verification)

Termination is guaranteed by the round cap (12 by default).
"""

from rin.core.loop.execution import ConversationModel, Orchestrator
from rin.core.loop.guards import GuardPolicy, is_multi_step_request, route_tier
from rin.core.loop.models import LoopConfig, RunState

__all__ = [
    "ConversationModel",
    "GuardPolicy",
    "LoopConfig",
    "Orchestrator",
    "RunState",
    "is_multi_step_request",
    "route_tier",
]
