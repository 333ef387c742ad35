"""
Unit tests for rin.capabilities.google.

Handlers run against FakeAccountClient route tables; GoogleAccountClient runs
against httpx.MockTransport.
"""

import base64
import json
from datetime import UTC, datetime, timedelta
from email import message_from_bytes

import httpx
import pytest

from rin.capabilities.account import AccountError, AccountTokens
from rin.capabilities.google import (
    TOKEN_URL,
    FileTokenStore,
    GoogleAccountClient,
    calendar_create_event,
    calendar_update_event,
    classroom_get_assignments,
    drive_create_file,
    drive_list,
    extract_email_body,
    gmail_label_add,
    gmail_read_unread,
    gmail_reply,
    gmail_send,
    tasks_list,
    tasks_update,
)
from tests.fakes import FakeAccountClient


def _b64(text: str) -> str:
    return base64.urlsafe_b64encode(text.encode()).decode().rstrip("=")


def _decode_raw(raw: str):
    return message_from_bytes(base64.urlsafe_b64decode(raw))


@pytest.fixture
def linked_context(make_context):
    def _make(routes):
        account = FakeAccountClient(routes)
        return make_context(linked=True, account=account), account

    return _make


# -------------------------------------------------------------------------
# Handler plumbing
# -------------------------------------------------------------------------


class TestAccountErrors:
    @pytest.mark.asyncio
    async def test_missing_client_reports_not_linked(self, make_context):
        result = await drive_list({}, make_context())

        assert result.startswith("Google account is not linked for this user.")
        assert "/linkgoogle" in result

    @pytest.mark.asyncio
    async def test_scope_error_is_explained(self, linked_context):
        context, _ = linked_context(
            {("GET", "/files"): AccountError("Insufficient Permission", status=403)}
        )

        result = await drive_list({}, context)

        assert result.startswith("Google denied this request due to missing permissions/scopes.")

    @pytest.mark.asyncio
    async def test_unexpected_error(self, linked_context):
        context, _ = linked_context({("GET", "/files"): AccountError("Backend Error", status=500)})
        assert await drive_list({}, context) == "[Google Error] Backend Error"


# -------------------------------------------------------------------------
# Drive
# -------------------------------------------------------------------------


class TestDrive:
    @pytest.mark.asyncio
    async def test_list_with_query(self, linked_context):
        context, account = linked_context(
            {
                ("GET", "/files"): {
                    "files": [
                        {
                            "id": "f1",
                            "name": "Bob's notes",
                            "mimeType": "text/plain",
                            "modifiedTime": "2030-04-02T10:00:00Z",
                        }
                    ]
                }
            }
        )

        result = await drive_list({"query": "Bob's", "maxResults": 500}, context)

        assert result == "- Bob's notes (modified: 2030-04-02) [text/plain] (ID: f1)"
        params = account.requests[0]["params"]
        assert params["q"] == "name contains 'Bob\\'s' and trashed = false"
        assert params["pageSize"] == 50

    @pytest.mark.asyncio
    async def test_empty_drive(self, linked_context):
        context, _ = linked_context({("GET", "/files"): {}})
        assert await drive_list({}, context) == "No files found in Drive."

    @pytest.mark.asyncio
    async def test_create_file_uses_multipart_upload(self, linked_context):
        context, account = linked_context(
            {("POST", "/files"): {"id": "f2", "name": "todo.txt", "webViewLink": "https://drive/f2"}}
        )

        result = await drive_create_file({"name": "todo.txt", "content": "buy milk"}, context)

        assert result == 'Created Drive file "todo.txt" (ID: f2)\nOpen: https://drive/f2'
        sent = account.requests[0]
        assert sent["url"].startswith("https://www.googleapis.com/upload/drive/v3/")
        assert sent["content_type"].startswith("multipart/related; boundary=rin-")
        assert b"buy milk" in sent["content"]
        assert b'"name": "todo.txt"' in sent["content"]


# -------------------------------------------------------------------------
# Calendar and Tasks
# -------------------------------------------------------------------------


class TestCalendar:
    @pytest.mark.asyncio
    async def test_create_all_day_and_timed(self, linked_context):
        context, account = linked_context(
            {
                ("POST", "/events"): {
                    "id": "e1",
                    "summary": "Trip",
                    "start": {"date": "2030-06-01"},
                }
            }
        )

        result = await calendar_create_event(
            {
                "summary": "Trip",
                "start": "2030-06-01",
                "end": "2030-06-03T18:00:00",
                "timeZone": "Europe/Lisbon",
            },
            context,
        )

        assert result == 'Created calendar event "Trip" (ID: e1) at 2030-06-01'
        body = account.requests[0]["json"]
        assert body["start"] == {"date": "2030-06-01"}
        assert body["end"] == {"dateTime": "2030-06-03T18:00:00", "timeZone": "Europe/Lisbon"}

    @pytest.mark.asyncio
    async def test_update_requires_a_field(self, linked_context):
        context, account = linked_context({})

        result = await calendar_update_event({"eventId": "e1"}, context)

        assert result.startswith("Please provide at least one field to update")
        assert account.requests == []


class TestTasks:
    @pytest.mark.asyncio
    async def test_list(self, linked_context):
        context, account = linked_context(
            {
                ("GET", "/tasks"): {
                    "items": [
                        {"id": "t1", "title": "Pay rent", "status": "needsAction", "due": "2030-05-01T00:00:00.000Z"},
                        {"id": "t2", "status": "completed"},
                    ]
                }
            }
        )

        result = await tasks_list({"showCompleted": True}, context)

        assert result == (
            "- Pay rent (pending) | due: 2030-05-01 (ID: t1)\n"
            "- (Untitled task) (completed) (ID: t2)"
        )
        assert account.requests[0]["params"]["showCompleted"] == "true"

    @pytest.mark.asyncio
    async def test_update_sends_only_given_fields(self, linked_context):
        context, account = linked_context({("PATCH", "/tasks/t1"): {"id": "t1", "title": "Pay rent"}})

        result = await tasks_update({"taskId": "t1", "status": "completed"}, context)

        assert result == 'Updated task "Pay rent" (ID: t1)'
        assert account.requests[0]["json"] == {"status": "completed"}


# -------------------------------------------------------------------------
# Gmail
# -------------------------------------------------------------------------

MESSAGE = {
    "id": "m1",
    "threadId": "th1",
    "snippet": "Are you free",
    "labelIds": ["UNREAD", "INBOX"],
    "payload": {
        "mimeType": "multipart/alternative",
        "headers": [
            {"name": "From", "value": "Ada <ada@example.com>"},
            {"name": "Subject", "value": "Lunch?"},
            {"name": "Date", "value": "Tue, 1 Oct 2030 10:00:00 +0000"},
            {"name": "Message-ID", "value": "<abc@mail.example.com>"},
        ],
        "parts": [
            {"mimeType": "text/plain", "body": {"data": _b64("Are you free at noon?")}},
            {"mimeType": "text/html", "body": {"data": _b64("<p>Are you <b>free</b>?</p>")}},
        ],
    },
}


class TestGmail:
    @pytest.mark.asyncio
    async def test_read_unread(self, linked_context):
        context, account = linked_context(
            {
                ("GET", "/messages"): {"messages": [{"id": "m1"}]},
                ("GET", "/messages/m1"): MESSAGE,
            }
        )

        result = await gmail_read_unread({}, context)

        assert result == (
            "- [Tue, 1 Oct 2030 10:00:00] Lunch? from Ada <ada@example.com>\n"
            "  Content: Are you free at noon?"
        )
        assert account.requests[0]["params"]["q"] == "is:unread"
        assert account.requests[1]["params"]["format"] == "full"

    @pytest.mark.asyncio
    async def test_no_unread(self, linked_context):
        context, _ = linked_context({("GET", "/messages"): {}})
        assert await gmail_read_unread({}, context) == "No unread emails."

    @pytest.mark.asyncio
    async def test_send_builds_raw_message(self, linked_context):
        context, account = linked_context(
            {("POST", "/messages/send"): {"id": "s1", "threadId": "th9"}}
        )

        result = await gmail_send(
            {"to": "bob@example.com", "subject": "Hi", "body": "See you soon", "cc": "eve@example.com"},
            context,
        )

        assert result == "Email sent successfully (Message ID: s1)\nThread ID: th9"
        message = _decode_raw(account.requests[0]["json"]["raw"])
        assert message["To"] == "bob@example.com"
        assert message["Cc"] == "eve@example.com"
        assert message["Subject"] == "Hi"
        assert message.get_payload().strip() == "See you soon"

    @pytest.mark.asyncio
    async def test_reply_threads_the_message(self, linked_context):
        context, account = linked_context(
            {
                ("GET", "/messages/m1"): MESSAGE,
                ("POST", "/messages/send"): {"id": "s2", "threadId": "th1"},
            }
        )

        result = await gmail_reply({"messageId": "m1", "body": "Sure!"}, context)

        assert result.startswith("Reply sent successfully (Message ID: s2)")
        payload = account.requests[1]["json"]
        assert payload["threadId"] == "th1"
        message = _decode_raw(payload["raw"])
        assert message["To"] == "Ada <ada@example.com>"
        assert message["Subject"] == "Re: Lunch?"
        assert message["In-Reply-To"] == "<abc@mail.example.com>"

    @pytest.mark.asyncio
    async def test_label_names_resolve_to_ids(self, linked_context):
        context, account = linked_context(
            {
                ("GET", "/labels"): {"labels": [{"id": "Label_7", "name": "Work"}]},
                ("POST", "/messages/m1/modify"): {"id": "m1", "labelIds": ["INBOX", "Label_7", "STARRED"]},
            }
        )

        result = await gmail_label_add({"messageId": "m1", "labels": ["work", "STARRED"]}, context)

        assert result == "Labels added to message m1. Current labels: INBOX, Label_7, STARRED"
        assert account.requests[1]["json"] == {
            "addLabelIds": ["Label_7", "STARRED"],
            "removeLabelIds": [],
        }

    @pytest.mark.asyncio
    async def test_label_add_requires_labels(self, linked_context):
        context, _ = linked_context({})
        assert await gmail_label_add({"messageId": "m1", "labels": []}, context) == (
            "Please provide at least one label to add."
        )

    def test_extract_email_body_falls_back_to_html(self):
        payload = {
            "mimeType": "multipart/alternative",
            "parts": [{"mimeType": "text/html", "body": {"data": _b64("<p>Hello <b>there</b></p>")}}],
        }
        assert extract_email_body(payload) == "Hello there"
        assert extract_email_body({"body": {"data": _b64(" plain ")}}) == "plain"
        assert extract_email_body(None) == ""


# -------------------------------------------------------------------------
# Classroom
# -------------------------------------------------------------------------


class TestClassroom:
    @pytest.mark.asyncio
    async def test_upcoming_assignments_sorted(self, linked_context):
        context, _ = linked_context(
            {
                ("GET", "/courses"): {"courses": [{"id": "c1", "name": "Math"}, {"id": "c2", "name": "Art"}]},
                ("GET", "/courses/c1/courseWork"): {
                    "courseWork": [
                        {"title": "Reading"},
                        {
                            "title": "Essay",
                            "dueDate": {"year": 2099, "month": 2, "day": 1},
                            "dueTime": {"hours": 23, "minutes": 59},
                            "alternateLink": "https://classroom/essay",
                        },
                        {"title": "Old quiz", "dueDate": {"year": 2001, "month": 1, "day": 1}},
                    ]
                },
                ("GET", "/courses/c2/courseWork"): AccountError("Forbidden", status=403),
            }
        )

        result = await classroom_get_assignments({}, context)

        assert result == (
            "- [Math] Essay (due 2099-02-01 23:59)\n"
            "  Link: https://classroom/essay\n"
            "- [Math] Reading (no due date)"
        )

    @pytest.mark.asyncio
    async def test_pagination(self, linked_context):
        context, account = linked_context(
            {
                ("GET", "/courses"): [
                    {"courses": [], "nextPageToken": "p2"},
                    {"courses": []},
                ],
            }
        )

        assert await classroom_get_assignments({}, context) == (
            "No upcoming assignments found across your courses."
        )
        assert account.requests[1]["params"]["pageToken"] == "p2"


# -------------------------------------------------------------------------
# GoogleAccountClient and FileTokenStore
# -------------------------------------------------------------------------


def _loader(tokens):
    async def load(caller_id):
        return tokens

    return load


class TestGoogleAccountClient:
    @pytest.mark.asyncio
    async def test_request_sends_bearer_token(self):
        def handler(request):
            assert request.headers["Authorization"] == "Bearer live-token"
            assert request.url.params["pageSize"] == "5"
            return httpx.Response(200, json={"files": []})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = GoogleAccountClient(_loader(AccountTokens(access_token="live-token")), http=http)
            data = await client.request(42, "GET", "https://www.googleapis.com/drive/v3/files", params={"pageSize": 5})

        assert data == {"files": []}

    @pytest.mark.asyncio
    async def test_error_status_becomes_account_error(self):
        def handler(request):
            return httpx.Response(404, json={"error": {"code": 404, "message": "File not found: x"}})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = GoogleAccountClient(_loader(AccountTokens(access_token="t")), http=http)
            with pytest.raises(AccountError) as exc_info:
                await client.request(42, "GET", "https://www.googleapis.com/drive/v3/files/x")

        assert exc_info.value.status == 404
        assert str(exc_info.value) == "File not found: x"

    @pytest.mark.asyncio
    async def test_empty_body(self):
        async with httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(204))) as http:
            client = GoogleAccountClient(_loader(AccountTokens(access_token="t")), http=http)
            assert await client.request(42, "DELETE", "https://tasks.googleapis.com/x") == {}

    @pytest.mark.asyncio
    async def test_not_linked(self):
        client = GoogleAccountClient(_loader(None))

        with pytest.raises(AccountError) as exc_info:
            await client.request(42, "GET", "https://www.googleapis.com/drive/v3/files")

        assert exc_info.value.category == "not_linked"

    @pytest.mark.asyncio
    async def test_expired_without_credentials(self):
        tokens = AccountTokens(
            access_token="old",
            refresh_token="r",
            expires_at=datetime.now(UTC) - timedelta(minutes=5),
        )
        client = GoogleAccountClient(_loader(tokens))

        with pytest.raises(AccountError) as exc_info:
            await client.request(42, "GET", "https://www.googleapis.com/drive/v3/files")

        assert exc_info.value.status == 401

    @pytest.mark.asyncio
    async def test_expired_token_is_refreshed_and_saved(self):
        saved = []

        async def save(caller_id, tokens):
            saved.append((caller_id, tokens))

        def handler(request):
            if str(request.url) == TOKEN_URL:
                assert b"grant_type=refresh_token" in request.content
                return httpx.Response(200, json={"access_token": "fresh", "expires_in": 3600})
            assert request.headers["Authorization"] == "Bearer fresh"
            return httpx.Response(200, json={"ok": True})

        tokens = AccountTokens(
            access_token="old",
            refresh_token="r",
            expires_at=datetime.now(UTC) - timedelta(minutes=5),
            scopes=["s1"],
        )
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = GoogleAccountClient(
                _loader(tokens), save, client_id="cid", client_secret="secret", http=http
            )
            assert await client.request(42, "GET", "https://www.googleapis.com/drive/v3/about") == {"ok": True}

        [(caller_id, refreshed)] = saved
        assert caller_id == 42
        assert refreshed.access_token == "fresh"
        assert refreshed.refresh_token == "r"
        assert refreshed.scopes == ["s1"]

    @pytest.mark.asyncio
    async def test_failed_refresh(self):
        def handler(request):
            return httpx.Response(400, json={"error": "invalid_grant"})

        tokens = AccountTokens(refresh_token="r")
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = GoogleAccountClient(_loader(tokens), client_id="cid", client_secret="s", http=http)
            with pytest.raises(AccountError, match="invalid_grant"):
                await client.request(42, "GET", "https://www.googleapis.com/drive/v3/about")


class TestFileTokenStore:
    @pytest.mark.asyncio
    async def test_save_and_load(self, tmp_path):
        store = FileTokenStore(tmp_path / "tokens.json")
        assert await store.load(42) is None

        await store.save(42, AccountTokens(access_token="a", scopes=["s"]))
        await store.save(7, AccountTokens(refresh_token="r"))

        loaded = await store.load(42)
        assert loaded.access_token == "a"
        assert loaded.scopes == ["s"]
        assert set(json.loads((tmp_path / "tokens.json").read_text())) == {"42", "7"}
