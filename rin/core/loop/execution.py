"""
rin.core.loop.execution - Tool-Calling Orchestration Loop

Drives repeated model calls, runs the tools the model asks for, feeds the
results back and decides when a candidate answer may be returned.
"""

import dataclasses
import json
import logging
from typing import Any, Protocol

from rin.core.cancellation import CancellationToken
from rin.core.loop.guards import GuardPolicy
from rin.core.loop.models import LoopConfig, RunState
from rin.core.tools.base import ToolContext
from rin.core.tools.executor import META_TOOL_NAMES, ToolExecutor, sanitize_error_message
from rin.core.tools.registry import ToolRegistry
from rin.errors import ModelError, ToolCallingUnsupportedError
from rin.llm import is_tool_calling_unsupported
from rin.llm.models import Message, ModelResponse, ModelTier, ToolCall

logger = logging.getLogger(__name__)

SUMMARIZE_INSTRUCTION = (
    "You have reached the maximum number of tool rounds for this request. "
    "Do not call any more tools. Please summarize what you found and what, if anything, "
    "is still left to do."
)
GROUNDING_NUDGE = (
    "Before answering, call the relevant tools now to check the actual data "
    "(account status, reminders, notes, files or system status). "
    "Do not answer from memory or assumptions."
)
CAPABILITY_LISTING_INSTRUCTION = (
    "Call the `{tool}` tool first and base your answer on its output. "
    "Only describe capabilities it reports as available."
)
CLAIM_CORRECTION = (
    "Your previous answer claimed you cannot do this, but a tool for it is available to you. "
    "Re-verify with the relevant status or capability tools "
    "(for example google_auth_status or google_capabilities), then use the appropriate tool "
    "instead of refusing. Do not cite privacy restrictions that do not apply."
)
VERIFY_INSTRUCTION = (
    "Verify your previous answer against the tool results above. If anything is wrong, "
    "missing or unsupported by those results, reply with a corrected answer. Otherwise repeat "
    "the answer as is. Reply with the final answer only."
)
PLAN_COMPLETED = "All planned steps have been completed."


# ============================================================================
# Protocol Definitions
# ============================================================================


class ConversationModel(Protocol):
    """The model client surface the loop depends on (see ``rin.llm.ModelClient``)."""

    async def complete(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]] | None = None,
        *,
        cancel_token: CancellationToken | None = None,
        tier: ModelTier = ModelTier.FAST,
    ) -> ModelResponse: ...

    async def chat(
        self,
        messages: list[Message],
        *,
        cancel_token: CancellationToken | None = None,
        tier: ModelTier = ModelTier.FAST,
    ) -> str: ...


# ============================================================================
# Orchestrator
# ============================================================================


class Orchestrator:
    """
    Bounded multi-round tool-calling loop.

    One run is strictly sequential: a single model call at a time and tool
    calls executed one after another in the order the model requested them.
    The run ends with a final answer, or after ``max_rounds`` rounds with a
    tool-less summary. Tool failures and guard corrections are recovered
    inside the loop; only model errors and cancellation propagate.

    Example:
        >>> orchestrator = Orchestrator(model_client, registry, executor)
        >>> reply = await orchestrator.run(messages, context, cancel_token=token)
    """

    def __init__(
        self,
        model: ConversationModel,
        registry: ToolRegistry,
        executor: ToolExecutor,
        guards: GuardPolicy | None = None,
        config: LoopConfig | None = None,
    ) -> None:
        self.model = model
        self.registry = registry
        self.executor = executor
        self.guards = guards or GuardPolicy()
        self.config = config or LoopConfig()

    @property
    def max_rounds(self) -> int:
        return self.config.max_rounds

    async def run(
        self,
        messages: list[Message],
        context: ToolContext,
        *,
        cancel_token: CancellationToken | None = None,
    ) -> str:
        """
        Run the loop over ``messages`` for the caller described by ``context``.

        Args:
            messages: ``[system, *history, user]``; never mutated
            context: Per-turn tool context (capabilities, collaborators)
            cancel_token: Overrides ``context.cancel_token`` when given

        Returns:
            Final answer text

        Raises:
            RunCancelledError: The token was cancelled
            ModelError: Non-degradable model failure
        """
        token = cancel_token or context.cancel_token
        if token is not context.cancel_token:
            context = dataclasses.replace(context, cancel_token=token)

        original = list(messages)
        request = _last_user_text(original)
        declarations = self.registry.declarations(context.capabilities)
        tools = [d.to_schema() for d in declarations]
        visible = {d.name for d in declarations}
        tier = self.guards.route(request, len(declarations))

        state = RunState(messages=list(original))
        logger.info(
            "Orchestration run started",
            extra={"caller_id": context.caller_id, "tier": tier.value, "tools": len(tools)},
        )

        while True:
            if token is not None:
                token.raise_if_cancelled()

            if state.round >= self.max_rounds:
                logger.warning(
                    f"Max rounds ({self.max_rounds}) reached, asking for a summary",
                    extra={"caller_id": context.caller_id, "round": state.round},
                )
                state.messages.append(Message(role="user", content=SUMMARIZE_INSTRUCTION))
                return await self.model.chat(state.messages, cancel_token=token, tier=tier)

            try:
                response = await self.model.complete(
                    state.messages, tools or None, cancel_token=token, tier=tier
                )
            except ModelError as e:
                if tools and (
                    isinstance(e, ToolCallingUnsupportedError) or is_tool_calling_unsupported(e)
                ):
                    logger.warning(
                        "Model does not support tool calling, degrading to plain chat",
                        extra={"caller_id": context.caller_id, "status": e.status},
                    )
                    return await self.model.chat(original, cancel_token=token, tier=tier)
                raise

            if not response.has_tool_calls:
                answer = await self._handle_candidate(
                    response.content, state, request, visible, original, token, tier, context
                )
                if answer is not None:
                    logger.info(
                        "Orchestration run finished",
                        extra={
                            "caller_id": context.caller_id,
                            "round": state.round,
                            "external_tool_calls": state.external_tool_calls,
                        },
                    )
                    return answer
                state.round += 1
                continue

            final_answer = await self._run_tool_calls(response, state, context)
            if final_answer is not None:
                logger.info(
                    "Reflect revised the answer, ending run",
                    extra={"caller_id": context.caller_id, "round": state.round},
                )
                return final_answer
            state.round += 1

    async def _handle_candidate(
        self,
        text: str,
        state: RunState,
        request: str,
        visible: set[str],
        original: list[Message],
        token: CancellationToken | None,
        tier: ModelTier,
        context: ToolContext,
    ) -> str | None:
        """Apply the answer guards in order. None means a correction was injected."""
        extra = {"caller_id": context.caller_id, "round": state.round}

        if self.guards.is_leaked_tool_code(text):
            logger.warning("Discarding leaked tool code, rerunning without tools", extra=extra)
            return await self.model.chat(original, cancel_token=token, tier=tier)

        if (
            not state.grounding_nudge_used
            and state.external_tool_calls == 0
            and self.guards.needs_grounding(request)
        ):
            state.grounding_nudge_used = True
            logger.info("Injecting grounding nudge", extra=extra)
            self._inject(state, text, GROUNDING_NUDGE)
            return None

        listing_tool = self.guards.capability_listing_tool
        if (
            listing_tool in visible
            and listing_tool not in state.called_tools
            and state.capability_listing_retries < self.config.max_capability_listing_retries
            and self.guards.is_account_capability_query(request)
        ):
            state.capability_listing_retries += 1
            logger.info("Asking the model to list capabilities first", extra=extra)
            self._inject(state, text, CAPABILITY_LISTING_INSTRUCTION.format(tool=listing_tool))
            return None

        if not state.capability_correction_used and self.guards.claims_unsupported_capability(
            text, visible
        ):
            state.capability_correction_used = True
            logger.info("Correcting unsupported capability claim", extra=extra)
            self._inject(state, text, CLAIM_CORRECTION)
            return None

        if not text.strip() and state.active_plan:
            return PLAN_COMPLETED

        plan_steps = len(state.active_plan or [])
        if (
            self.config.verification_enabled
            and not state.verification_done
            and (state.external_tool_calls > 1 or plan_steps > 1)
        ):
            state.verification_done = True
            logger.info("Running verification pass", extra=extra)
            verify_messages = [
                *state.messages,
                Message(role="assistant", content=text),
                Message(role="user", content=VERIFY_INSTRUCTION),
            ]
            verified = await self.model.chat(verify_messages, cancel_token=token, tier=tier)
            if verified.strip():
                return verified

        return text

    def _inject(self, state: RunState, draft: str, instruction: str) -> None:
        if draft.strip():
            state.messages.append(Message(role="assistant", content=draft))
        state.messages.append(Message(role="user", content=instruction))

    async def _run_tool_calls(
        self,
        response: ModelResponse,
        state: RunState,
        context: ToolContext,
    ) -> str | None:
        """Execute every requested call in order; return a reflect final answer if any."""
        state.messages.append(
            Message(role="assistant", content=response.content, tool_calls=response.tool_calls)
        )

        for call in response.tool_calls:
            state.called_tools.add(call.name)
            if call.name not in META_TOOL_NAMES:
                state.external_tool_calls += 1

            args, decode_error = decode_arguments(call)
            if decode_error is not None:
                logger.warning(
                    f"Invalid JSON arguments for {call.name}",
                    extra={"caller_id": context.caller_id, "tool_name": call.name},
                )
                state.messages.append(_tool_message(call, decode_error))
                continue

            outcome = await self.executor.execute(call.name, args, context, state)
            state.messages.append(_tool_message(call, outcome.text))
            if outcome.final_answer is not None:
                return outcome.final_answer

        return None


def decode_arguments(call: ToolCall) -> tuple[dict[str, Any], str | None]:
    """
    Decode a tool call's raw JSON arguments.

    Returns:
        ``(args, None)`` on success, ``({}, error_text)`` when the payload is
        not a JSON object
    """
    raw = (call.arguments or "").strip() or "{}"
    try:
        args = json.loads(raw)
    except json.JSONDecodeError as e:
        return {}, f"Tool error: Invalid JSON arguments for {call.name}: {sanitize_error_message(str(e))}"
    if not isinstance(args, dict):
        return {}, f"Tool error: Invalid JSON arguments for {call.name}: expected an object"
    return args, None


def _tool_message(call: ToolCall, text: str) -> Message:
    return Message(role="tool", content=text, tool_call_id=call.id)


def _last_user_text(messages: list[Message]) -> str:
    for message in reversed(messages):
        if message.role == "user":
            return message.content
    return ""
