"""
rin.chat.handler - Chat Handler

Wires the runtime together for one inbound message:
1. Rate limit (hourly quota, higher for admins)
2. Per-caller cancellation token (a new message supersedes the old run)
3. History compression and the system prompt with known user facts
4. Orchestration with the caller's capability-gated tool set
5. Chunked reply, history persistence, best-effort fact extraction
"""

import asyncio
import logging
from pathlib import Path

from rin.capabilities import build_handlers
from rin.capabilities.account import AccountClient
from rin.chat.prompts import build_system_message
from rin.chat.ratelimit import MessageRateLimiter, RateLimitExceeded
from rin.chat.transport import MESSAGE_CHUNK_SIZE, Transport, split_message
from rin.core.cancellation import CancellationRegistry, CancellationToken
from rin.core.loop import GuardPolicy, LoopConfig, Orchestrator, is_multi_step_request
from rin.core.memory import COMPRESS_THRESHOLD, RECENT_TURNS, FactExtractor, HistoryCompressor, is_safe_fact
from rin.core.tools import CallerCapabilities, ToolContext, ToolExecutor, ToolRegistry, build_default_registry
from rin.errors import RunCancelledError
from rin.llm import ModelClient
from rin.llm.models import Message
from rin.settings import RinSettings
from rin.storage import Store

logger = logging.getLogger(__name__)

APOLOGY = "Sorry, something went wrong on my end. Try again in a moment."
TYPING_INTERVAL_SECONDS = 4.0


class ChatHandler:
    """
    Handle one chat message end to end.

    Example:
        >>> handler = ChatHandler.from_settings(get_settings(), store=store, transport=console)
        >>> await handler.handle_message(42, "Remind me to call mom in 20 minutes")
        >>> handler.cancel(42)  # e.g. on /cancel
    """

    def __init__(
        self,
        *,
        model: ModelClient,
        store: Store,
        transport: Transport,
        registry: ToolRegistry | None = None,
        executor: ToolExecutor | None = None,
        account: AccountClient | None = None,
        guards: GuardPolicy | None = None,
        loop_config: LoopConfig | None = None,
        uploads_dir: str | Path = "uploads",
        admin_ids: frozenset[int] = frozenset(),
        user_rate_limit: int = 60,
        admin_rate_limit: int = 300,
        memory_turns: int = 30,
        recent_turns: int = RECENT_TURNS,
        compress_threshold: int = COMPRESS_THRESHOLD,
        min_fact_extraction_length: int = 20,
        shell_timeout_seconds: int = 30,
        oauth_base_url: str = "",
        chunk_size: int = MESSAGE_CHUNK_SIZE,
    ) -> None:
        self.store = store
        self.transport = transport
        self.account = account
        self.registry = registry or build_default_registry()
        self.executor = executor or ToolExecutor(self.registry, build_handlers())
        self.orchestrator = Orchestrator(model, self.registry, self.executor, guards, loop_config)
        self.compressor = HistoryCompressor(model)
        self.fact_extractor = FactExtractor(model)
        self.rate_limiter = MessageRateLimiter(store, user_rate_limit, admin_rate_limit)
        self.cancellations = CancellationRegistry()

        self.uploads_dir = Path(uploads_dir)
        self.admin_ids = admin_ids
        self.memory_turns = memory_turns
        self.recent_turns = recent_turns
        self.compress_threshold = compress_threshold
        self.min_fact_extraction_length = min_fact_extraction_length
        self.shell_timeout_seconds = shell_timeout_seconds
        self.oauth_base_url = oauth_base_url
        self.chunk_size = chunk_size

        self._background: set[asyncio.Task] = set()

    @classmethod
    def from_settings(
        cls,
        settings: RinSettings,
        *,
        store: Store,
        transport: Transport,
        model: ModelClient | None = None,
        account: AccountClient | None = None,
    ) -> "ChatHandler":
        """Build a handler from ``RinSettings``; usage is logged to ``store``."""
        if model is None:
            model = ModelClient(settings.build_llm_config(), usage_sink=store.log_usage)
        return cls(
            model=model,
            store=store,
            transport=transport,
            account=account,
            loop_config=LoopConfig(max_rounds=settings.max_rounds),
            uploads_dir=settings.uploads_dir,
            admin_ids=settings.admin_ids,
            user_rate_limit=settings.rate_limit_per_hour,
            admin_rate_limit=settings.admin_rate_limit_per_hour,
            memory_turns=settings.memory_turns,
            recent_turns=settings.recent_turns,
            compress_threshold=settings.compress_threshold,
            min_fact_extraction_length=settings.min_fact_extraction_length,
            shell_timeout_seconds=settings.shell_timeout_seconds,
            oauth_base_url=settings.oauth_base_url,
            chunk_size=settings.message_chunk_size,
        )

    def is_admin(self, caller_id: int) -> bool:
        return caller_id in self.admin_ids

    def cancel(self, caller_id: int) -> bool:
        """Cancel the caller's in-flight run. Returns False if none was running."""
        return self.cancellations.cancel(caller_id)

    async def capabilities_for(self, caller_id: int) -> CallerCapabilities:
        """Capability gate for this turn: admin flag and account link state."""
        return CallerCapabilities(
            admin=self.is_admin(caller_id),
            has_linked_account=await self._has_linked_account(caller_id),
        )

    async def _has_linked_account(self, caller_id: int) -> bool:
        if self.account is None:
            return False
        try:
            tokens = await self.account.get_tokens(caller_id)
        except Exception as e:
            logger.warning(
                f"Could not load account tokens: {type(e).__name__}",
                extra={"caller_id": caller_id},
            )
            return False
        return bool(tokens and tokens.linked)

    async def handle_message(self, caller_id: int, text: str) -> str | None:
        """
        Answer one message from ``caller_id``.

        Returns:
            The reply that was sent, or None when the message was rate
            limited, cancelled or failed (the user got a fixed message then,
            or nothing for cancellation)
        """
        admin = self.is_admin(caller_id)
        try:
            await self.rate_limiter.check(caller_id, admin=admin)
        except RateLimitExceeded as e:
            await self.transport.send_text(caller_id, e.message)
            return None
        except Exception as e:
            logger.error(
                f"Rate limit check failed: {type(e).__name__}",
                exc_info=True,
                extra={"caller_id": caller_id},
            )
            await self.transport.send_text(caller_id, APOLOGY)
            return None

        token = self.cancellations.begin(caller_id)
        typing = asyncio.create_task(self._keep_typing(caller_id))
        try:
            reply = await self._answer(caller_id, text, admin, token)
        except RunCancelledError:
            logger.info("Run cancelled, no reply sent", extra={"caller_id": caller_id})
            return None
        except Exception as e:
            logger.error(
                f"Failed to answer message: {type(e).__name__}",
                exc_info=True,
                extra={"caller_id": caller_id},
            )
            await self.transport.send_text(caller_id, APOLOGY)
            return None
        finally:
            typing.cancel()
            self.cancellations.finish(caller_id, token)

        if not reply.strip():
            reply = APOLOGY
        for chunk in split_message(reply, self.chunk_size):
            await self.transport.send_text(caller_id, chunk)

        # The reply is already delivered; a failed write only costs memory
        try:
            await self.store.append_history(caller_id, "user", text)
            await self.store.append_history(caller_id, "assistant", reply)
        except Exception as e:
            logger.error(
                f"Failed to save history: {type(e).__name__}",
                exc_info=True,
                extra={"caller_id": caller_id},
            )

        if len(text) > self.min_fact_extraction_length and not text.startswith("/"):
            self._spawn(self._extract_facts(caller_id, text, reply))
        return reply

    async def _answer(
        self,
        caller_id: int,
        text: str,
        admin: bool,
        token: CancellationToken,
    ) -> str:
        facts = {k: v for k, v in (await self.store.all_facts(caller_id)).items() if is_safe_fact(k, v)}
        turns = await self.store.recent_history(caller_id, self.memory_turns)
        history = await self.compressor.compress(
            turns, self.recent_turns, self.compress_threshold, cancel_token=token
        )

        system = build_system_message(facts, admin, multi_step=is_multi_step_request(text))
        messages = [
            Message(role="system", content=system),
            *history,
            Message(role="user", content=text),
        ]

        capabilities = await self.capabilities_for(caller_id)
        context = ToolContext(
            caller_id=caller_id,
            capabilities=capabilities,
            sandbox_root=self.uploads_dir / str(caller_id),
            store=self.store,
            account=self.account,
            transport=self.transport,
            shell_timeout_seconds=self.shell_timeout_seconds,
            oauth_base_url=self.oauth_base_url,
            visible_tools=frozenset(self.registry.names(capabilities)),
            cancel_token=token,
        )
        return await self.orchestrator.run(messages, context, cancel_token=token)

    async def _keep_typing(self, caller_id: int) -> None:
        try:
            while True:
                await self.transport.send_typing(caller_id)
                await asyncio.sleep(TYPING_INTERVAL_SECONDS)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.debug(f"Typing indicator failed: {type(e).__name__}")

    async def _extract_facts(self, caller_id: int, text: str, reply: str) -> None:
        try:
            facts = await self.fact_extractor.extract(text, reply)
            for fact in facts:
                if is_safe_fact(fact.key, fact.value):
                    await self.store.upsert_fact(caller_id, fact.key, fact.value)
        except Exception as e:
            logger.warning(
                f"Fact extraction failed: {type(e).__name__}",
                extra={"caller_id": caller_id},
            )

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def drain(self) -> None:
        """Wait for background work (fact extraction) to finish."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
