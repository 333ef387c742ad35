"""
rin.chat.ratelimit - Per-Caller Message Rate Limiting

Hourly message quotas, with a higher ceiling for admins. Counters live in
the ``Store`` (fixed one-hour windows), so limits survive restarts and are
shared by every process using the same database.

Usage:
    from rin.chat.ratelimit import MessageRateLimiter, RateLimitExceeded

    limiter = MessageRateLimiter(store, user_limit=60, admin_limit=300)
    try:
        await limiter.check(caller_id, admin=False)
    except RateLimitExceeded as e:
        await transport.send_text(caller_id, e.message)
"""

import logging
import time

from rin.errors import RinError
from rin.storage.base import RATE_LIMIT_WINDOW_SECONDS, Store

logger = logging.getLogger(__name__)


class RateLimitExceeded(RinError):
    """Raised when a caller has used up the current hour's quota."""

    def __init__(self, message: str, retry_after: int = RATE_LIMIT_WINDOW_SECONDS) -> None:
        super().__init__(message)
        self.message = message
        self.retry_after = retry_after


class MessageRateLimiter:
    """
    Hourly message quota per caller.

    Attributes:
        user_limit: Messages per hour for regular callers
        admin_limit: Messages per hour for admins

    Example:
        >>> limiter = MessageRateLimiter(InMemoryStore(), user_limit=2)
        >>> await limiter.check(42)
        >>> await limiter.check(42)
        >>> await limiter.check(42)  # raises RateLimitExceeded
    """

    def __init__(self, store: Store, user_limit: int = 60, admin_limit: int = 300) -> None:
        """
        Initialize the rate limiter.

        Args:
            store: Persistence holding the window counters
            user_limit: Messages per hour for regular callers
            admin_limit: Messages per hour for admins
        """
        self.store = store
        self.user_limit = user_limit
        self.admin_limit = admin_limit

    async def check(self, caller_id: int, admin: bool = False) -> None:
        """
        Count one message against the caller's quota.

        Raises:
            RateLimitExceeded: Quota for the current window is used up
        """
        limit = self.admin_limit if admin else self.user_limit
        if await self.store.check_and_increment_rate_limit(caller_id, limit):
            return

        logger.warning(
            "Rate limit exceeded",
            extra={"caller_id": caller_id, "admin": admin, "limit_per_hour": limit},
        )
        if admin:
            message = f"Admin rate limit reached ({limit} messages/hour). Try again later."
        else:
            message = f"You've reached the rate limit ({limit} messages/hour). Try again later."
        raise RateLimitExceeded(message, retry_after=_seconds_to_next_window())


def _seconds_to_next_window(now: float | None = None) -> int:
    now = time.time() if now is None else now
    return int(RATE_LIMIT_WINDOW_SECONDS - (now % RATE_LIMIT_WINDOW_SECONDS))
