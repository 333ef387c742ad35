"""
Unit tests for the personal data capability (reminders, notes, storage).
"""

import zoneinfo
from datetime import UTC, datetime, timedelta

import pytest

from rin.capabilities.personal import (
    delete_note,
    delete_reminder,
    get_notes,
    list_reminders,
    save_note,
    set_reminder,
    storage_delete,
    storage_get,
    storage_list,
    storage_set,
)

requires_tzdata = pytest.mark.skipif(
    "Europe/Lisbon" not in zoneinfo.available_timezones(), reason="tz database not installed"
)


class TestReminders:
    @pytest.mark.asyncio
    async def test_delay_minutes(self, make_context, store):
        before = datetime.now(UTC)

        result = await set_reminder({"message": "call mom", "delay_minutes": 20}, make_context())

        assert result.startswith("Reminder #1 set for ")
        assert result.endswith(': "call mom"')
        (reminder,) = await store.pending_reminders(42)
        assert timedelta(minutes=19) < reminder.fire_at - before < timedelta(minutes=21)

    @pytest.mark.asyncio
    async def test_delay_has_one_minute_floor(self, make_context, store):
        before = datetime.now(UTC)

        await set_reminder({"message": "now-ish", "delay_minutes": 0}, make_context())

        (reminder,) = await store.pending_reminders(42)
        assert reminder.fire_at - before >= timedelta(minutes=1)

    @pytest.mark.asyncio
    async def test_absolute_time_in_utc(self, make_context):
        result = await set_reminder(
            {"message": "dentist", "datetime": "2031-03-04T09:30:00+00:00"}, make_context()
        )
        assert result == 'Reminder #1 set for 2031-03-04 09:30 UTC: "dentist"'

    @pytest.mark.asyncio
    async def test_past_and_unparseable_times(self, make_context, store):
        context = make_context()

        assert (
            await set_reminder({"message": "x", "datetime": "2001-01-01T00:00:00"}, context)
            == "That time is in the past."
        )
        assert (
            await set_reminder({"message": "x", "datetime": "next tuesday"}, context)
            == "Could not parse the time, please try again."
        )
        assert await store.pending_reminders(42) == []

    @requires_tzdata
    @pytest.mark.asyncio
    async def test_naive_time_uses_saved_timezone(self, make_context, store):
        await store.kv_set(42, "timezone", "Europe/Lisbon")

        result = await set_reminder(
            {"message": "standup", "datetime": "2031-07-01T09:00"}, make_context()
        )

        assert result == 'Reminder #1 set for 2031-07-01 09:00 WEST: "standup"'
        (reminder,) = await store.pending_reminders(42)
        assert reminder.fire_at == datetime(2031, 7, 1, 8, 0, tzinfo=UTC)

    @pytest.mark.asyncio
    async def test_list_and_delete(self, make_context, store):
        context = make_context()
        assert await list_reminders({}, context) == "No pending reminders."

        await store.add_reminder(42, "water plants", datetime(2031, 1, 2, 8, 0, tzinfo=UTC))
        assert await list_reminders({}, context) == '#1: "water plants" at 2031-01-02 08:00 UTC'

        assert await delete_reminder({"id": 1}, context) == "Reminder #1 cancelled."
        assert await delete_reminder({"id": "1"}, context) == "No reminder with ID 1."
        assert await delete_reminder({"id": "abc"}, context) == "No reminder with ID abc."


class TestNotes:
    @pytest.mark.asyncio
    async def test_save_search_delete(self, make_context):
        context = make_context()
        assert await get_notes({}, context) == "No notes yet."

        assert await save_note({"title": "Groceries", "content": "milk"}, context) == (
            'Note "Groceries" saved.'
        )
        assert await get_notes({"search": "milk"}, context) == "[Groceries]\nmilk"
        assert await get_notes({"search": "bread"}, context) == 'No notes matching "bread".'

        assert await delete_note({"title": "Groceries"}, context) == 'Note "Groceries" deleted.'
        assert await delete_note({"title": "Groceries"}, context) == 'No note titled "Groceries".'


class TestStorage:
    @pytest.mark.asyncio
    async def test_round_trip(self, make_context):
        context = make_context()
        assert await storage_list({}, context) == "Storage is empty."

        assert await storage_set({"key": "wifi", "value": "hunter2"}, context) == (
            "Stored: wifi = hunter2"
        )
        assert await storage_set({"key": "bike_lock", "value": 1234}, context) == (
            "Stored: bike_lock = 1234"
        )
        assert await storage_get({"key": "wifi"}, context) == "hunter2"
        assert await storage_get({"key": "nope"}, context) == 'No value found for key "nope".'
        assert await storage_list({}, context) == "bike_lock: 1234\nwifi: hunter2"
        assert await storage_delete({"key": "wifi"}, context) == 'Deleted key "wifi".'
        assert await storage_delete({"key": "wifi"}, context) == 'Key "wifi" not found.'

    @pytest.mark.asyncio
    async def test_storage_is_per_caller(self, make_context, store):
        await store.kv_set(7, "secret", "theirs")
        assert await storage_get({"key": "secret"}, make_context()) == (
            'No value found for key "secret".'
        )
