"""
rin.storage.base - Persistence interface

The orchestration core and the tools reach persistence only through the
``Store`` protocol below. Everything is keyed by the caller's numeric id.
"""

from datetime import UTC, datetime
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, Field

from rin.llm.models import Message, UsageRecord

RATE_LIMIT_WINDOW_SECONDS = 3600


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on round-trip)."""
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value.astimezone(UTC)


def rate_window_start(now: datetime) -> int:
    """Start of the fixed hourly window containing ``now``, as epoch seconds."""
    epoch = int(as_utc(now).timestamp())
    return epoch - epoch % RATE_LIMIT_WINDOW_SECONDS


class Note(BaseModel):
    id: int
    title: str
    content: str
    updated_at: datetime = Field(default_factory=utcnow)


class Reminder(BaseModel):
    id: int
    message: str
    fire_at: datetime


class UsageSummary(BaseModel):
    """Aggregated model usage for one model over a look-back window."""

    model: str
    calls: int
    tokens_in: int
    tokens_out: int


@runtime_checkable
class Store(Protocol):
    """
    Persistence operations needed by the chat handler and the tools.

    History entries are stored with their role (``user`` or ``assistant``)
    and returned oldest first.
    """

    # History
    async def append_history(self, caller_id: int, role: str, content: str) -> None: ...

    async def recent_history(self, caller_id: int, limit: int) -> list[Message]: ...

    # Facts
    async def upsert_fact(self, caller_id: int, key: str, value: str) -> None: ...

    async def all_facts(self, caller_id: int) -> dict[str, str]: ...

    # Usage
    async def log_usage(self, record: UsageRecord) -> None: ...

    async def usage_summary(self, days: int = 7) -> list[UsageSummary]: ...

    # Notes
    async def upsert_note(self, caller_id: int, title: str, content: str) -> None: ...

    async def get_notes(self, caller_id: int, search: str | None = None) -> list[Note]: ...

    async def delete_note(self, caller_id: int, title: str) -> bool: ...

    # Reminders
    async def add_reminder(self, caller_id: int, message: str, fire_at: datetime) -> int: ...

    async def pending_reminders(self, caller_id: int) -> list[Reminder]: ...

    async def delete_reminder(self, caller_id: int, reminder_id: int) -> bool: ...

    # Key/value storage
    async def kv_set(self, caller_id: int, key: str, value: str) -> None: ...

    async def kv_get(self, caller_id: int, key: str) -> str | None: ...

    async def kv_delete(self, caller_id: int, key: str) -> bool: ...

    async def kv_list(self, caller_id: int) -> list[tuple[str, str]]: ...

    # Rate limiting
    async def check_and_increment_rate_limit(
        self, caller_id: int, limit_per_hour: int, now: datetime | None = None
    ) -> bool: ...
