"""
Personal Data Capability

Reminders, notes and key/value storage backed by the caller's ``Store``.
Reminder times are shown in the timezone saved under the ``timezone``
storage key, falling back to UTC.
"""

import logging
from datetime import UTC, datetime, timedelta
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from rin.core.tools.base import ToolContext, ToolHandler

logger = logging.getLogger(__name__)

TIMEZONE_KEY = "timezone"


async def _caller_tz(context: ToolContext) -> ZoneInfo | None:
    name = await context.store.kv_get(context.caller_id, TIMEZONE_KEY)
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return None


async def _format_time(moment: datetime, context: ToolContext) -> str:
    tz = await _caller_tz(context)
    local = moment.astimezone(tz or UTC)
    return local.strftime("%Y-%m-%d %H:%M %Z").strip()


def _parse_fire_at(args: dict[str, Any], now: datetime, tz: ZoneInfo | None) -> datetime | None:
    raw = args.get("datetime")
    if raw:
        try:
            moment = datetime.fromisoformat(str(raw))
        except ValueError:
            return None
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=tz or UTC)
        return moment.astimezone(UTC)

    try:
        delay = float(args.get("delay_minutes") or 1)
    except (TypeError, ValueError):
        delay = 1
    return now + timedelta(minutes=max(1.0, delay))


# ----------------------------------------------------------------------
# Reminders
# ----------------------------------------------------------------------


async def set_reminder(args: dict[str, Any], context: ToolContext) -> str:
    now = datetime.now(UTC)
    fire_at = _parse_fire_at(args, now, await _caller_tz(context))
    if fire_at is None:
        return "Could not parse the time, please try again."
    if fire_at <= now:
        return "That time is in the past."

    message = str(args["message"])
    reminder_id = await context.store.add_reminder(context.caller_id, message, fire_at)
    return f'Reminder #{reminder_id} set for {await _format_time(fire_at, context)}: "{message}"'


async def list_reminders(args: dict[str, Any], context: ToolContext) -> str:
    reminders = await context.store.pending_reminders(context.caller_id)
    if not reminders:
        return "No pending reminders."
    return "\n".join(
        [f'#{r.id}: "{r.message}" at {await _format_time(r.fire_at, context)}' for r in reminders]
    )


async def delete_reminder(args: dict[str, Any], context: ToolContext) -> str:
    try:
        reminder_id = int(args["id"])
    except (TypeError, ValueError):
        return f"No reminder with ID {args.get('id')}."
    if await context.store.delete_reminder(context.caller_id, reminder_id):
        return f"Reminder #{reminder_id} cancelled."
    return f"No reminder with ID {reminder_id}."


# ----------------------------------------------------------------------
# Notes
# ----------------------------------------------------------------------


async def save_note(args: dict[str, Any], context: ToolContext) -> str:
    title = str(args["title"])
    await context.store.upsert_note(context.caller_id, title, str(args["content"]))
    return f'Note "{title}" saved.'


async def get_notes(args: dict[str, Any], context: ToolContext) -> str:
    search = args.get("search") or None
    notes = await context.store.get_notes(context.caller_id, search)
    if not notes:
        return f'No notes matching "{search}".' if search else "No notes yet."
    return "\n\n---\n\n".join(f"[{n.title}]\n{n.content}" for n in notes)


async def delete_note(args: dict[str, Any], context: ToolContext) -> str:
    title = str(args["title"])
    if await context.store.delete_note(context.caller_id, title):
        return f'Note "{title}" deleted.'
    return f'No note titled "{title}".'


# ----------------------------------------------------------------------
# Key/value storage
# ----------------------------------------------------------------------


async def storage_set(args: dict[str, Any], context: ToolContext) -> str:
    key, value = str(args["key"]), str(args["value"])
    await context.store.kv_set(context.caller_id, key, value)
    return f"Stored: {key} = {value}"


async def storage_get(args: dict[str, Any], context: ToolContext) -> str:
    key = str(args["key"])
    value = await context.store.kv_get(context.caller_id, key)
    return value if value is not None else f'No value found for key "{key}".'


async def storage_delete(args: dict[str, Any], context: ToolContext) -> str:
    key = str(args["key"])
    if await context.store.kv_delete(context.caller_id, key):
        return f'Deleted key "{key}".'
    return f'Key "{key}" not found.'


async def storage_list(args: dict[str, Any], context: ToolContext) -> str:
    items = await context.store.kv_list(context.caller_id)
    if not items:
        return "Storage is empty."
    return "\n".join(f"{key}: {value}" for key, value in items)


HANDLERS: dict[str, ToolHandler] = {
    "set_reminder": set_reminder,
    "list_reminders": list_reminders,
    "delete_reminder": delete_reminder,
    "save_note": save_note,
    "get_notes": get_notes,
    "delete_note": delete_note,
    "storage_set": storage_set,
    "storage_get": storage_get,
    "storage_delete": storage_delete,
    "storage_list": storage_list,
}
