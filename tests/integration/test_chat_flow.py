"""
Integration tests for the chat flow.

Runs ChatHandler with the real registry, executor, capability handlers and
a SQLite-backed SQLStore; only the conversation model is scripted.
"""

import pytest
import pytest_asyncio

from rin.chat import ChatHandler
from rin.storage import SQLStore
from tests.fakes import RecordingTransport, ScriptedModel, text, tool_call


@pytest_asyncio.fixture
async def sql_store(tmp_path):
    store = await SQLStore.connect(f"sqlite+aiosqlite:///{tmp_path}/rin-flow.db")
    yield store
    await store.close()


@pytest.fixture
def chat_transport():
    return RecordingTransport()


@pytest.fixture
def make_handler(sql_store, chat_transport, tmp_path):
    def _make(model: ScriptedModel, **kwargs) -> ChatHandler:
        return ChatHandler(
            model=model,
            store=sql_store,
            transport=chat_transport,
            uploads_dir=tmp_path / "uploads",
            **kwargs,
        )

    return _make


@pytest.mark.asyncio
async def test_reminder_round_trip_with_verification(make_handler, sql_store, chat_transport):
    model = ScriptedModel(
        [
            tool_call("set_reminder", {"message": "water the plants", "delay_minutes": 30}),
            tool_call("list_reminders"),
            text("Done, I'll remind you."),
        ],
        chat_replies=["Reminder set: water the plants in 30 minutes.", "[]"],
    )
    handler = make_handler(model)

    reply = await handler.handle_message(7, "Remind me to water the plants in 30 minutes")
    await handler.drain()

    # Two external tool calls trigger the verification pass.
    assert reply == "Reminder set: water the plants in 30 minutes."
    assert chat_transport.sent_to(7) == [reply]

    reminders = await sql_store.pending_reminders(7)
    assert [r.message for r in reminders] == ["water the plants"]

    tool_results = [m for m in model.complete_calls[2]["messages"] if m.role == "tool"]
    assert tool_results[0].content.startswith(f"Reminder #{reminders[0].id} set for")
    assert '"water the plants"' in tool_results[1].content

    history = await sql_store.recent_history(7, 10)
    assert [m.role for m in history] == ["user", "assistant"]
    assert history[1].content == reply


@pytest.mark.asyncio
async def test_history_and_facts_carry_into_next_message(make_handler, sql_store):
    first = ScriptedModel(
        [text("Nice to meet you, Ana!")],
        chat_replies=['[{"key": "name", "value": "Ana"}]'],
    )
    handler = make_handler(first)
    await handler.handle_message(7, "Hi there, my name is Ana and I live in Porto")
    await handler.drain()

    assert await sql_store.all_facts(7) == {"name": "Ana"}

    second = ScriptedModel([text("Your name is Ana.")], chat_replies=["[]"])
    await make_handler(second).handle_message(7, "what's my name?")

    messages = second.complete_calls[0]["messages"]
    assert [m.role for m in messages] == ["system", "user", "assistant", "user"]
    assert "Ana" in messages[0].content
    assert messages[2].content == "Nice to meet you, Ana!"


@pytest.mark.asyncio
async def test_file_tools_stay_in_caller_folder(make_handler, tmp_path):
    model = ScriptedModel(
        [
            tool_call("write_file", {"path": "notes/todo.txt", "content": "buy milk"}),
            tool_call("read_file", {"path": "../8/secret.txt"}),
            text("Saved your list."),
        ],
        chat_replies=["Saved your list to notes/todo.txt.", "[]"],
    )
    handler = make_handler(model)

    await handler.handle_message(7, "please write my todo list to a file")
    await handler.drain()

    assert (tmp_path / "uploads" / "7" / "notes" / "todo.txt").read_text() == "buy milk"
    tool_results = [m.content for m in model.complete_calls[2]["messages"] if m.role == "tool"]
    assert tool_results[0] == "Written 8 bytes to notes/todo.txt"
    assert tool_results[1].startswith("Tool error: Access denied")
