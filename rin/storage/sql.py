"""
rin.storage.sql - SQLAlchemy-backed Store

Durable ``Store`` over any SQLAlchemy async database. The default URL is a
local SQLite file through aiosqlite.

Example:
    >>> store = await SQLStore.connect("sqlite+aiosqlite:///rin.db")
    >>> await store.append_history(42, "user", "hi")
    >>> await store.close()
"""

import logging
from datetime import datetime, timedelta

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncEngine

from rin.llm.models import Message, UsageRecord
from rin.storage.base import Note, Reminder, UsageSummary, as_utc, rate_window_start, utcnow
from rin.storage.database import get_engine, get_sessionmaker, init_db
from rin.storage.orm import (
    FactRow,
    HistoryRow,
    KeyValueRow,
    NoteRow,
    RateLimitRow,
    ReminderRow,
    UsageRow,
)

logger = logging.getLogger(__name__)


class SQLStore:
    """
    ``Store`` implementation over SQLAlchemy async sessions.

    Each operation runs in its own short session and commits before
    returning.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self.engine = engine
        self._sessionmaker = get_sessionmaker(engine)

    @classmethod
    async def connect(cls, database_url: str | None = None, echo: bool = False) -> "SQLStore":
        """Create the engine, ensure tables exist and return a ready store."""
        engine = get_engine(database_url, echo=echo)
        await init_db(engine)
        logger.info("SQL store ready", extra={"dialect": engine.dialect.name})
        return cls(engine)

    async def close(self) -> None:
        await self.engine.dispose()

    # History ----------------------------------------------------------

    async def append_history(self, caller_id: int, role: str, content: str) -> None:
        async with self._sessionmaker() as session:
            session.add(HistoryRow(caller_id=caller_id, role=role, content=content))
            await session.commit()

    async def recent_history(self, caller_id: int, limit: int) -> list[Message]:
        if limit <= 0:
            return []
        async with self._sessionmaker() as session:
            result = await session.execute(
                select(HistoryRow)
                .where(HistoryRow.caller_id == caller_id)
                .order_by(HistoryRow.id.desc())
                .limit(limit)
            )
            rows = list(result.scalars())
        return [Message(role=row.role, content=row.content) for row in reversed(rows)]

    # Facts ------------------------------------------------------------

    async def upsert_fact(self, caller_id: int, key: str, value: str) -> None:
        key = key.strip().lower()
        async with self._sessionmaker() as session:
            row = await session.get(FactRow, (caller_id, key))
            if row is None:
                session.add(FactRow(caller_id=caller_id, key=key, value=str(value).strip()))
            else:
                row.value = str(value).strip()
            await session.commit()

    async def all_facts(self, caller_id: int) -> dict[str, str]:
        async with self._sessionmaker() as session:
            result = await session.execute(select(FactRow).where(FactRow.caller_id == caller_id))
            return {row.key: row.value for row in result.scalars()}

    # Usage ------------------------------------------------------------

    async def log_usage(self, record: UsageRecord) -> None:
        async with self._sessionmaker() as session:
            session.add(
                UsageRow(
                    timestamp=as_utc(record.timestamp),
                    model=record.model,
                    tokens_in=record.tokens_in,
                    tokens_out=record.tokens_out,
                )
            )
            await session.commit()

    async def usage_summary(self, days: int = 7) -> list[UsageSummary]:
        since = utcnow() - timedelta(days=days)
        async with self._sessionmaker() as session:
            result = await session.execute(
                select(
                    UsageRow.model,
                    func.count(UsageRow.id),
                    func.coalesce(func.sum(UsageRow.tokens_in), 0),
                    func.coalesce(func.sum(UsageRow.tokens_out), 0),
                )
                .where(UsageRow.timestamp >= since)
                .group_by(UsageRow.model)
                .order_by(UsageRow.model)
            )
            return [
                UsageSummary(model=model, calls=calls, tokens_in=tokens_in, tokens_out=tokens_out)
                for model, calls, tokens_in, tokens_out in result.all()
            ]

    # Notes ------------------------------------------------------------

    async def upsert_note(self, caller_id: int, title: str, content: str) -> None:
        async with self._sessionmaker() as session:
            result = await session.execute(
                select(NoteRow).where(NoteRow.caller_id == caller_id, NoteRow.title == title)
            )
            row = result.scalar_one_or_none()
            if row is None:
                session.add(NoteRow(caller_id=caller_id, title=title, content=content))
            else:
                row.content = content
                row.updated_at = utcnow()
            await session.commit()

    async def get_notes(self, caller_id: int, search: str | None = None) -> list[Note]:
        query = select(NoteRow).where(NoteRow.caller_id == caller_id)
        if search:
            pattern = f"%{search}%"
            query = query.where(or_(NoteRow.title.ilike(pattern), NoteRow.content.ilike(pattern)))
        query = query.order_by(NoteRow.updated_at.desc(), NoteRow.id.desc())

        async with self._sessionmaker() as session:
            result = await session.execute(query)
            return [
                Note(
                    id=row.id,
                    title=row.title,
                    content=row.content,
                    updated_at=as_utc(row.updated_at),
                )
                for row in result.scalars()
            ]

    async def delete_note(self, caller_id: int, title: str) -> bool:
        async with self._sessionmaker() as session:
            result = await session.execute(
                delete(NoteRow).where(NoteRow.caller_id == caller_id, NoteRow.title == title)
            )
            await session.commit()
            return result.rowcount > 0

    # Reminders --------------------------------------------------------

    async def add_reminder(self, caller_id: int, message: str, fire_at: datetime) -> int:
        async with self._sessionmaker() as session:
            row = ReminderRow(caller_id=caller_id, message=message, fire_at=as_utc(fire_at))
            session.add(row)
            await session.commit()
            return row.id

    async def pending_reminders(self, caller_id: int) -> list[Reminder]:
        async with self._sessionmaker() as session:
            result = await session.execute(
                select(ReminderRow)
                .where(ReminderRow.caller_id == caller_id)
                .order_by(ReminderRow.fire_at.asc())
            )
            return [
                Reminder(id=row.id, message=row.message, fire_at=as_utc(row.fire_at))
                for row in result.scalars()
            ]

    async def delete_reminder(self, caller_id: int, reminder_id: int) -> bool:
        async with self._sessionmaker() as session:
            result = await session.execute(
                delete(ReminderRow).where(
                    ReminderRow.id == reminder_id, ReminderRow.caller_id == caller_id
                )
            )
            await session.commit()
            return result.rowcount > 0

    # Key/value --------------------------------------------------------

    async def kv_set(self, caller_id: int, key: str, value: str) -> None:
        async with self._sessionmaker() as session:
            row = await session.get(KeyValueRow, (caller_id, key))
            if row is None:
                session.add(KeyValueRow(caller_id=caller_id, key=key, value=str(value)))
            else:
                row.value = str(value)
            await session.commit()

    async def kv_get(self, caller_id: int, key: str) -> str | None:
        async with self._sessionmaker() as session:
            row = await session.get(KeyValueRow, (caller_id, key))
            return row.value if row is not None else None

    async def kv_delete(self, caller_id: int, key: str) -> bool:
        async with self._sessionmaker() as session:
            result = await session.execute(
                delete(KeyValueRow).where(KeyValueRow.caller_id == caller_id, KeyValueRow.key == key)
            )
            await session.commit()
            return result.rowcount > 0

    async def kv_list(self, caller_id: int) -> list[tuple[str, str]]:
        async with self._sessionmaker() as session:
            result = await session.execute(
                select(KeyValueRow.key, KeyValueRow.value)
                .where(KeyValueRow.caller_id == caller_id)
                .order_by(KeyValueRow.key)
            )
            return [(key, value) for key, value in result.all()]

    # Rate limiting ----------------------------------------------------

    async def check_and_increment_rate_limit(
        self, caller_id: int, limit_per_hour: int, now: datetime | None = None
    ) -> bool:
        window_start = rate_window_start(now or utcnow())
        async with self._sessionmaker() as session:
            row = await session.get(RateLimitRow, (caller_id, window_start))
            if row is None:
                if limit_per_hour <= 0:
                    return False
                session.add(RateLimitRow(caller_id=caller_id, window_start=window_start, count=1))
            elif row.count >= limit_per_hour:
                return False
            else:
                row.count += 1
            await session.commit()
            return True
