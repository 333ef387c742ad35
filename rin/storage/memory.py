"""
rin.storage.memory - In-process Store

Dict-backed ``Store`` for tests, the CLI and single-process deployments
that don't need durability.
"""

from collections import defaultdict
from datetime import datetime, timedelta
from itertools import count

from rin.llm.models import Message, UsageRecord
from rin.storage.base import Note, Reminder, UsageSummary, as_utc, rate_window_start, utcnow


class InMemoryStore:
    """
    Non-durable ``Store`` implementation.

    Lives on a single event loop; no locking needed.

    Example:
        >>> store = InMemoryStore()
        >>> await store.upsert_fact(42, "favorite_color", "blue")
        >>> await store.all_facts(42)
        {'favorite_color': 'blue'}
    """

    def __init__(self) -> None:
        self._history: dict[int, list[Message]] = defaultdict(list)
        self._facts: dict[int, dict[str, str]] = defaultdict(dict)
        self._usage: list[UsageRecord] = []
        self._notes: dict[int, dict[str, Note]] = defaultdict(dict)
        self._reminders: dict[int, dict[int, Reminder]] = defaultdict(dict)
        self._kv: dict[int, dict[str, str]] = defaultdict(dict)
        self._rate_windows: dict[tuple[int, int], int] = {}
        self._ids = count(1)

    # History ----------------------------------------------------------

    async def append_history(self, caller_id: int, role: str, content: str) -> None:
        self._history[caller_id].append(Message(role=role, content=content))

    async def recent_history(self, caller_id: int, limit: int) -> list[Message]:
        if limit <= 0:
            return []
        return list(self._history[caller_id][-limit:])

    # Facts ------------------------------------------------------------

    async def upsert_fact(self, caller_id: int, key: str, value: str) -> None:
        self._facts[caller_id][key.strip().lower()] = str(value).strip()

    async def all_facts(self, caller_id: int) -> dict[str, str]:
        return dict(self._facts[caller_id])

    # Usage ------------------------------------------------------------

    async def log_usage(self, record: UsageRecord) -> None:
        self._usage.append(record)

    async def usage_summary(self, days: int = 7) -> list[UsageSummary]:
        since = utcnow() - timedelta(days=days)
        totals: dict[str, UsageSummary] = {}
        for record in self._usage:
            if as_utc(record.timestamp) < since:
                continue
            summary = totals.setdefault(
                record.model, UsageSummary(model=record.model, calls=0, tokens_in=0, tokens_out=0)
            )
            summary.calls += 1
            summary.tokens_in += record.tokens_in
            summary.tokens_out += record.tokens_out
        return list(totals.values())

    # Notes ------------------------------------------------------------

    async def upsert_note(self, caller_id: int, title: str, content: str) -> None:
        notes = self._notes[caller_id]
        existing = notes.get(title)
        note_id = existing.id if existing else next(self._ids)
        notes[title] = Note(id=note_id, title=title, content=content, updated_at=utcnow())

    async def get_notes(self, caller_id: int, search: str | None = None) -> list[Note]:
        notes = list(self._notes[caller_id].values())
        if search:
            needle = search.lower()
            notes = [n for n in notes if needle in n.title.lower() or needle in n.content.lower()]
        return sorted(notes, key=lambda n: (n.updated_at, n.id), reverse=True)

    async def delete_note(self, caller_id: int, title: str) -> bool:
        return self._notes[caller_id].pop(title, None) is not None

    # Reminders --------------------------------------------------------

    async def add_reminder(self, caller_id: int, message: str, fire_at: datetime) -> int:
        reminder_id = next(self._ids)
        self._reminders[caller_id][reminder_id] = Reminder(
            id=reminder_id, message=message, fire_at=as_utc(fire_at)
        )
        return reminder_id

    async def pending_reminders(self, caller_id: int) -> list[Reminder]:
        return sorted(self._reminders[caller_id].values(), key=lambda r: r.fire_at)

    async def delete_reminder(self, caller_id: int, reminder_id: int) -> bool:
        return self._reminders[caller_id].pop(reminder_id, None) is not None

    # Key/value --------------------------------------------------------

    async def kv_set(self, caller_id: int, key: str, value: str) -> None:
        self._kv[caller_id][key] = str(value)

    async def kv_get(self, caller_id: int, key: str) -> str | None:
        return self._kv[caller_id].get(key)

    async def kv_delete(self, caller_id: int, key: str) -> bool:
        return self._kv[caller_id].pop(key, None) is not None

    async def kv_list(self, caller_id: int) -> list[tuple[str, str]]:
        return sorted(self._kv[caller_id].items())

    # Rate limiting ----------------------------------------------------

    async def check_and_increment_rate_limit(
        self, caller_id: int, limit_per_hour: int, now: datetime | None = None
    ) -> bool:
        window = (caller_id, rate_window_start(now or utcnow()))
        used = self._rate_windows.get(window, 0)
        if used >= limit_per_hour:
            return False
        self._rate_windows[window] = used + 1
        return True
