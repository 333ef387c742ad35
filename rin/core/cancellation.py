"""
rin.core.cancellation - Cooperative cancellation

A CancellationToken is threaded explicitly through every suspending call of a
run (model completion, tool execution, summarisation). Cancelling it makes the
in-flight await raise RunCancelledError instead of a generic error, so the
chat handler can stay silent on user-initiated cancellation.

Example:
    >>> registry = CancellationRegistry()
    >>> token = registry.begin(caller_id)        # supersedes any older run
    >>> try:
    ...     reply = await orchestrator.run(messages, context, cancel_token=token)
    ... finally:
    ...     registry.finish(caller_id, token)
    >>>
    >>> registry.cancel(caller_id)               # e.g. from a /cancel command
"""

import asyncio
import contextlib
import logging
from collections.abc import Awaitable
from typing import Any, TypeVar

from rin.errors import RunCancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancellationToken:
    """
    One-shot cancellation signal for a single orchestration run.

    The token never cancels by itself; it only races awaited work against an
    explicit ``cancel()`` call.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled") -> None:
        """Signal cancellation. Idempotent; the first reason wins."""
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise RunCancelledError(self.reason or "cancelled")

    async def run(self, awaitable: Awaitable[T]) -> T:
        """
        Await ``awaitable`` unless the token is cancelled first.

        Returns:
            The awaitable's result

        Raises:
            RunCancelledError: If the token was cancelled before or while
                the awaitable was pending (the pending work is cancelled)
        """
        if self._event.is_set():
            # Close un-started coroutines so they don't warn about never being awaited
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            self.raise_if_cancelled()

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            waiter.cancel()
            raise

        if task in done:
            waiter.cancel()
            return task.result()

        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        raise RunCancelledError(self.reason or "cancelled")

    async def sleep(self, delay: float) -> None:
        """Sleep for ``delay`` seconds, waking early with RunCancelledError on cancel."""
        await self.run(asyncio.sleep(delay))


async def run_cancellable(awaitable: Awaitable[T], token: CancellationToken | None) -> T:
    """Await ``awaitable`` through ``token`` when one is given."""
    if token is None:
        return await awaitable
    return await token.run(awaitable)


class CancellationRegistry:
    """
    Per-caller registry of in-flight run tokens.

    A new request from the same caller supersedes (cancels) the previous run.
    Lives on a single event loop; no locking needed.
    """

    def __init__(self) -> None:
        self._active: dict[Any, CancellationToken] = {}

    def begin(self, caller_id: Any) -> CancellationToken:
        """Create a fresh token for ``caller_id``, cancelling any older one."""
        previous = self._active.get(caller_id)
        if previous is not None:
            logger.info("Superseding in-flight run", extra={"caller_id": caller_id})
            previous.cancel("superseded")
        token = CancellationToken()
        self._active[caller_id] = token
        return token

    def cancel(self, caller_id: Any) -> bool:
        """Cancel the caller's in-flight run. Returns False when nothing was running."""
        token = self._active.pop(caller_id, None)
        if token is None:
            return False
        token.cancel("cancelled by user")
        logger.info("Cancelled in-flight run", extra={"caller_id": caller_id})
        return True

    def finish(self, caller_id: Any, token: CancellationToken) -> None:
        """Forget ``token`` if it is still the caller's active one."""
        if self._active.get(caller_id) is token:
            del self._active[caller_id]

    def is_active(self, caller_id: Any) -> bool:
        return caller_id in self._active
