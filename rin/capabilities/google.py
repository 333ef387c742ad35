"""
rin.capabilities.google - Google Workspace Data Tools

``GoogleAccountClient`` talks to the Google REST APIs with httpx using the
caller's stored OAuth tokens (refreshing an expired access token when client
credentials are configured). The handlers below cover Drive, Calendar, Gmail,
Tasks and Classroom and format results as short text for the model.

Linking an account (the consent screen and callback) happens outside this
package; the client only consumes tokens a ``TokenLoader`` hands it.

Reference:
- https://developers.google.com/identity/protocols/oauth2/web-server#offline
- https://developers.google.com/workspace
"""

import asyncio
import base64
import functools
import json
import logging
import uuid
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from email.message import EmailMessage
from pathlib import Path
from typing import Any

import httpx
from bs4 import BeautifulSoup

from rin.capabilities.account import (
    AccountClient,
    AccountError,
    AccountTokens,
    build_relink_url,
    categorize_account_error,
    normalize_account_error,
)
from rin.core.tools.base import ToolContext, ToolHandler

logger = logging.getLogger(__name__)

DRIVE_API = "https://www.googleapis.com/drive/v3"
DRIVE_UPLOAD_API = "https://www.googleapis.com/upload/drive/v3"
CALENDAR_API = "https://www.googleapis.com/calendar/v3/calendars/primary"
GMAIL_API = "https://gmail.googleapis.com/gmail/v1/users/me"
TASKS_API = "https://tasks.googleapis.com/tasks/v1/lists/@default"
CLASSROOM_API = "https://classroom.googleapis.com/v1"
TOKEN_URL = "https://oauth2.googleapis.com/token"

DRIVE_FILE_FIELDS = "id, name, mimeType, modifiedTime, webViewLink"
FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
EMAIL_PREVIEW_CHARS = 280
MAX_CLASSROOM_PAGES = 10

TokenLoader = Callable[[int], Awaitable[AccountTokens | None]]
TokenSaver = Callable[[int, AccountTokens], Awaitable[None]]


class FileTokenStore:
    """
    OAuth tokens kept in a JSON file keyed by caller id.

    The file is written by whatever completes the consent flow; this class
    only reads it and writes back refreshed access tokens.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._lock = asyncio.Lock()

    def _read(self) -> dict[str, Any]:
        try:
            return json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}

    async def load(self, caller_id: int) -> AccountTokens | None:
        data = await asyncio.to_thread(self._read)
        raw = data.get(str(caller_id))
        return AccountTokens.model_validate(raw) if raw else None

    async def save(self, caller_id: int, tokens: AccountTokens) -> None:
        async with self._lock:
            data = await asyncio.to_thread(self._read)
            data[str(caller_id)] = tokens.model_dump(mode="json")
            await asyncio.to_thread(
                self.path.write_text, json.dumps(data, indent=2), encoding="utf-8"
            )


class GoogleAccountClient:
    """
    ``AccountClient`` for Google APIs.

    Example:
        >>> client = GoogleAccountClient(load_tokens=FileTokenStore("tokens.json").load)
        >>> files = await client.request(42, "GET", f"{DRIVE_API}/files")
    """

    TIMEOUT = 30.0
    REFRESH_MARGIN = timedelta(minutes=1)

    def __init__(
        self,
        load_tokens: TokenLoader,
        save_tokens: TokenSaver | None = None,
        client_id: str = "",
        client_secret: str = "",
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self._load_tokens = load_tokens
        self._save_tokens = save_tokens
        self._client_id = client_id
        self._client_secret = client_secret
        self._http = http

    async def get_tokens(self, caller_id: int) -> AccountTokens | None:
        return await self._load_tokens(caller_id)

    async def _access_token(self, caller_id: int) -> str:
        tokens = await self._load_tokens(caller_id)
        if tokens is None or not tokens.linked:
            raise AccountError("User not linked with Google.", category="not_linked")

        minutes = tokens.minutes_until_expiry(datetime.now(UTC) + self.REFRESH_MARGIN)
        expired = tokens.access_token is None or (minutes is not None and minutes <= 0)
        if not expired:
            return tokens.access_token  # type: ignore[return-value]

        if not (tokens.refresh_token and self._client_id and self._client_secret):
            raise AccountError("Access token expired and cannot be refreshed.", status=401)
        tokens = await self._refresh(caller_id, tokens)
        return tokens.access_token  # type: ignore[return-value]

    async def _refresh(self, caller_id: int, tokens: AccountTokens) -> AccountTokens:
        data = {
            "refresh_token": tokens.refresh_token,
            "client_id": self._client_id,
            "client_secret": self._client_secret,
            "grant_type": "refresh_token",
        }
        owns_client = self._http is None
        http = self._http or httpx.AsyncClient(timeout=self.TIMEOUT)
        try:
            response = await http.post(TOKEN_URL, data=data)
        except httpx.HTTPError as e:
            raise AccountError(f"Token refresh request failed: {type(e).__name__}") from e
        finally:
            if owns_client:
                await http.aclose()

        if response.status_code != 200:
            logger.error(
                f"Google token refresh failed: {response.status_code}",
                extra={"caller_id": caller_id, "status_code": response.status_code},
            )
            raise AccountError("invalid_grant: token refresh failed", status=401)

        payload = response.json()
        refreshed = AccountTokens(
            access_token=payload["access_token"],
            # Google doesn't always return a new refresh token
            refresh_token=payload.get("refresh_token") or tokens.refresh_token,
            expires_at=datetime.now(UTC) + timedelta(seconds=int(payload.get("expires_in", 3600))),
            scopes=payload["scope"].split() if payload.get("scope") else tokens.scopes,
        )
        if self._save_tokens is not None:
            await self._save_tokens(caller_id, refreshed)

        logger.info(
            "Google OAuth token refresh successful",
            extra={"caller_id": caller_id, "expires_in": payload.get("expires_in")},
        )
        return refreshed

    async def request(
        self,
        caller_id: int,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
        content: bytes | None = None,
        content_type: str | None = None,
    ) -> dict[str, Any]:
        token = await self._access_token(caller_id)
        headers = {"Authorization": f"Bearer {token}"}
        if content_type:
            headers["Content-Type"] = content_type

        owns_client = self._http is None
        http = self._http or httpx.AsyncClient(timeout=self.TIMEOUT)
        try:
            response = await http.request(
                method, url, params=params, json=json_body, content=content, headers=headers
            )
        except httpx.HTTPError as e:
            raise AccountError(f"Request failed: {type(e).__name__}") from e
        finally:
            if owns_client:
                await http.aclose()

        if response.status_code >= 400:
            raise AccountError(_error_message(response), status=response.status_code)
        if response.status_code == 204 or not response.content:
            return {}
        return response.json()


def _error_message(response: httpx.Response) -> str:
    try:
        error = response.json().get("error")
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(error, dict):
        return str(error.get("message") or error.get("status") or response.status_code)
    return str(error or f"HTTP {response.status_code}")


# ============================================================================
# Handler plumbing
# ============================================================================


def account_tool(service: str, action: str) -> Callable[[ToolHandler], ToolHandler]:
    """
    Wrap a data-tool handler: require a linked client and turn provider
    failures into the user-facing text from ``normalize_account_error``.
    """

    def decorator(fn: ToolHandler) -> ToolHandler:
        @functools.wraps(fn)
        async def wrapper(args: dict[str, Any], context: ToolContext) -> str:
            try:
                if context.account is None:
                    raise AccountError("Google account is not linked.", category="not_linked")
                result = await fn(args, context)
            except AccountError as e:
                logger.info(
                    f"Google {service}.{action} failed",
                    extra={
                        "caller_id": context.caller_id,
                        "category": categorize_account_error(e),
                        "status": e.status,
                    },
                )
                return normalize_account_error(
                    e, build_relink_url(context.oauth_base_url, context.caller_id)
                )
            logger.debug(f"Google {service}.{action} succeeded")
            return result

        return wrapper

    return decorator


def _client(context: ToolContext) -> AccountClient:
    assert context.account is not None
    return context.account


def _clamp(value: Any, default: int, low: int, high: int) -> int:
    try:
        number = int(value) if value not in (None, "") else default
    except (TypeError, ValueError):
        number = default
    return min(max(number, low), high)


def _present(args: dict[str, Any], *names: str) -> dict[str, Any]:
    return {name: args[name] for name in names if args.get(name) is not None}


# ============================================================================
# Drive
# ============================================================================


def _multipart_related(metadata: dict[str, Any], content: str, mime_type: str) -> tuple[bytes, str]:
    boundary = f"rin-{uuid.uuid4().hex}"
    body = (
        f"--{boundary}\r\n"
        "Content-Type: application/json; charset=UTF-8\r\n\r\n"
        f"{json.dumps(metadata)}\r\n"
        f"--{boundary}\r\n"
        f"Content-Type: {mime_type}\r\n\r\n"
        f"{content}\r\n"
        f"--{boundary}--"
    )
    return body.encode("utf-8"), f"multipart/related; boundary={boundary}"


def _open_link(item: dict[str, Any]) -> str:
    return f"\nOpen: {item['webViewLink']}" if item.get("webViewLink") else ""


@account_tool("drive", "list")
async def drive_list(args: dict[str, Any], context: ToolContext) -> str:
    params: dict[str, Any] = {
        "pageSize": _clamp(args.get("maxResults"), 10, 1, 50),
        "fields": "nextPageToken, files(id, name, mimeType, modifiedTime)",
        "supportsAllDrives": "true",
        "includeItemsFromAllDrives": "true",
    }
    if args.get("query"):
        escaped = str(args["query"]).replace("'", "\\'")
        params["q"] = f"name contains '{escaped}' and trashed = false"

    data = await _client(context).request(context.caller_id, "GET", f"{DRIVE_API}/files", params=params)
    files = data.get("files") or []
    if not files:
        return "No files found in Drive."
    lines = []
    for f in files:
        modified = f" (modified: {f['modifiedTime'][:10]})" if f.get("modifiedTime") else ""
        lines.append(f"- {f.get('name')}{modified} [{f.get('mimeType') or 'unknown'}] (ID: {f.get('id')})")
    return "\n".join(lines)


@account_tool("drive", "create_file")
async def drive_create_file(args: dict[str, Any], context: ToolContext) -> str:
    mime_type = args.get("mimeType") or "text/plain"
    body, content_type = _multipart_related(
        {"name": args["name"], "mimeType": mime_type}, str(args.get("content") or ""), mime_type
    )
    created = await _client(context).request(
        context.caller_id,
        "POST",
        f"{DRIVE_UPLOAD_API}/files",
        params={"uploadType": "multipart", "fields": DRIVE_FILE_FIELDS, "supportsAllDrives": "true"},
        content=body,
        content_type=content_type,
    )
    return f'Created Drive file "{created.get("name")}" (ID: {created.get("id")}){_open_link(created)}'


@account_tool("drive", "create_folder")
async def drive_create_folder(args: dict[str, Any], context: ToolContext) -> str:
    metadata: dict[str, Any] = {"name": args["name"], "mimeType": FOLDER_MIME_TYPE}
    if args.get("parentFolderId"):
        metadata["parents"] = [args["parentFolderId"]]
    folder = await _client(context).request(
        context.caller_id,
        "POST",
        f"{DRIVE_API}/files",
        params={"fields": DRIVE_FILE_FIELDS, "supportsAllDrives": "true"},
        json_body=metadata,
    )
    return f'Created Drive folder "{folder.get("name")}" (ID: {folder.get("id")}){_open_link(folder)}'


@account_tool("drive", "update_file")
async def drive_update_file(args: dict[str, Any], context: ToolContext) -> str:
    if args.get("name") is None and args.get("content") is None:
        return "Please provide at least one field to update: name and/or content."

    client = _client(context)
    params = {"fields": DRIVE_FILE_FIELDS, "supportsAllDrives": "true"}
    metadata = {"name": args["name"]} if args.get("name") else {}
    file_id = args["fileId"]

    if args.get("content") is not None:
        mime_type = args.get("mimeType") or "text/plain"
        body, content_type = _multipart_related(metadata, str(args["content"]), mime_type)
        updated = await client.request(
            context.caller_id,
            "PATCH",
            f"{DRIVE_UPLOAD_API}/files/{file_id}",
            params={**params, "uploadType": "multipart"},
            content=body,
            content_type=content_type,
        )
    else:
        updated = await client.request(
            context.caller_id, "PATCH", f"{DRIVE_API}/files/{file_id}", params=params, json_body=metadata
        )
    return f'Updated Drive file "{updated.get("name")}" (ID: {updated.get("id")})'


@account_tool("drive", "delete_file")
async def drive_delete_file(args: dict[str, Any], context: ToolContext) -> str:
    await _client(context).request(
        context.caller_id,
        "DELETE",
        f"{DRIVE_API}/files/{args['fileId']}",
        params={"supportsAllDrives": "true"},
    )
    return f"Deleted Drive file ID: {args['fileId']}"


# ============================================================================
# Calendar
# ============================================================================


def _event_time(value: Any, time_zone: str | None) -> dict[str, str] | None:
    if value is None:
        return None
    text = str(value)
    if len(text) == 10 and text[4] == "-" and text[7] == "-":
        return {"date": text}
    return {"dateTime": text, **({"timeZone": time_zone} if time_zone else {})}


def _event_body(args: dict[str, Any]) -> dict[str, Any]:
    body = _present(args, "summary", "description", "location")
    for key in ("start", "end"):
        moment = _event_time(args.get(key), args.get("timeZone"))
        if moment is not None:
            body[key] = moment
    return body


def _when(event: dict[str, Any]) -> str:
    start = event.get("start") or {}
    return start.get("dateTime") or start.get("date") or "unknown time"


@account_tool("calendar", "list")
async def calendar_list(args: dict[str, Any], context: ToolContext) -> str:
    now = datetime.now(UTC)
    days = _clamp(args.get("days"), 7, 1, 90)
    data = await _client(context).request(
        context.caller_id,
        "GET",
        f"{CALENDAR_API}/events",
        params={
            "timeMin": now.isoformat(),
            "timeMax": (now + timedelta(days=days)).isoformat(),
            "maxResults": 10,
            "singleEvents": "true",
            "orderBy": "startTime",
        },
    )
    events = data.get("items") or []
    if not events:
        return "No upcoming events found."
    return "\n".join(
        f"- {e.get('summary') or '(No title)'} at {_when(e)} (ID: {e.get('id')})" for e in events
    )


@account_tool("calendar", "create_event")
async def calendar_create_event(args: dict[str, Any], context: ToolContext) -> str:
    event = await _client(context).request(
        context.caller_id, "POST", f"{CALENDAR_API}/events", json_body=_event_body(args)
    )
    return (
        f'Created calendar event "{event.get("summary") or "(No title)"}" '
        f"(ID: {event.get('id')}) at {_when(event)}"
    )


@account_tool("calendar", "update_event")
async def calendar_update_event(args: dict[str, Any], context: ToolContext) -> str:
    body = _event_body(args)
    if not body:
        return (
            "Please provide at least one field to update: summary, description, location, "
            "start, or end."
        )
    event = await _client(context).request(
        context.caller_id, "PATCH", f"{CALENDAR_API}/events/{args['eventId']}", json_body=body
    )
    return f'Updated calendar event "{event.get("summary") or "(No title)"}" (ID: {event.get("id")})'


@account_tool("calendar", "delete_event")
async def calendar_delete_event(args: dict[str, Any], context: ToolContext) -> str:
    await _client(context).request(
        context.caller_id, "DELETE", f"{CALENDAR_API}/events/{args['eventId']}"
    )
    return f"Deleted calendar event ID: {args['eventId']}"


# ============================================================================
# Gmail
# ============================================================================


def _b64url_decode(data: str) -> str:
    padded = data + "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")


def _part_data(part: dict[str, Any], mime_type: str) -> str:
    if part.get("mimeType") == mime_type and (part.get("body") or {}).get("data"):
        return _b64url_decode(part["body"]["data"])
    for child in part.get("parts") or []:
        found = _part_data(child, mime_type)
        if found:
            return found
    return ""


def extract_email_body(payload: dict[str, Any] | None) -> str:
    """Plain-text body of a Gmail message payload, falling back to stripped HTML."""
    if not payload:
        return ""
    plain = _part_data(payload, "text/plain")
    if plain:
        return plain.strip()
    html = _part_data(payload, "text/html")
    if html:
        return " ".join(BeautifulSoup(html, "html.parser").get_text(" ").split())
    if (payload.get("body") or {}).get("data"):
        return _b64url_decode(payload["body"]["data"]).strip()
    return ""


def _header(headers: list[dict[str, str]], name: str) -> str:
    for header in headers:
        if str(header.get("name", "")).lower() == name.lower():
            return header.get("value", "")
    return ""


async def _list_emails(
    context: ToolContext,
    max_results: Any,
    query: str,
    unread_only: bool,
    include_body: bool,
) -> list[dict[str, Any]]:
    client = _client(context)
    q = " ".join(part for part in ("is:unread" if unread_only else "", query) if part)
    listing = await client.request(
        context.caller_id,
        "GET",
        f"{GMAIL_API}/messages",
        params={"q": q, "maxResults": _clamp(max_results, 10, 1, 20)},
    )

    emails = []
    for ref in listing.get("messages") or []:
        message = await client.request(
            context.caller_id,
            "GET",
            f"{GMAIL_API}/messages/{ref['id']}",
            params={
                "format": "full" if include_body else "metadata",
                "metadataHeaders": ["From", "Subject", "Date"],
            },
        )
        payload = message.get("payload") or {}
        headers = payload.get("headers") or []
        emails.append(
            {
                "id": message.get("id"),
                "from": _header(headers, "From") or "Unknown",
                "subject": _header(headers, "Subject") or "No Subject",
                "date": _header(headers, "Date"),
                "body": extract_email_body(payload) if include_body else "",
                "snippet": message.get("snippet") or "",
                "unread": "UNREAD" in (message.get("labelIds") or []),
            }
        )
    return emails


def _format_email(email: dict[str, Any], with_status: bool) -> str:
    body = " ".join(str(email["body"] or email["snippet"]).split())
    preview = ""
    if body:
        more = "..." if len(body) > EMAIL_PREVIEW_CHARS else ""
        preview = f"\n  Content: {body[:EMAIL_PREVIEW_CHARS]}{more}"
    status = f"[{'UNREAD' if email['unread'] else 'READ'}] " if with_status else ""
    return f"- {status}[{email['date'][:24]}] {email['subject']} from {email['from']}{preview}"


@account_tool("gmail", "read_unread")
async def gmail_read_unread(args: dict[str, Any], context: ToolContext) -> str:
    emails = await _list_emails(
        context, args.get("maxResults"), str(args.get("query") or ""), True, True
    )
    if not emails:
        return "No unread emails."
    return "\n".join(_format_email(e, with_status=False) for e in emails)


@account_tool("gmail", "inbox_read")
async def gmail_inbox_read(args: dict[str, Any], context: ToolContext) -> str:
    unread_only = bool(args.get("unreadOnly"))
    emails = await _list_emails(
        context,
        args.get("maxResults"),
        str(args.get("query") or ""),
        unread_only,
        args.get("includeBody") is not False,
    )
    if not emails:
        return "No unread emails." if unread_only else "No inbox emails found."
    return "\n".join(_format_email(e, with_status=True) for e in emails)


def _raw_message(
    to: str,
    subject: str,
    body: str,
    cc: str | None = None,
    bcc: str | None = None,
    in_reply_to: str | None = None,
    references: str | None = None,
) -> str:
    message = EmailMessage()
    message["To"] = to
    message["Subject"] = subject
    if cc:
        message["Cc"] = cc
    if bcc:
        message["Bcc"] = bcc
    if in_reply_to:
        message["In-Reply-To"] = in_reply_to
        message["References"] = f"{references} {in_reply_to}".strip() if references else in_reply_to
    message.set_content(body)
    return base64.urlsafe_b64encode(message.as_bytes()).decode("ascii")


def _sent_summary(kind: str, sent: dict[str, Any]) -> str:
    thread = f"\nThread ID: {sent['threadId']}" if sent.get("threadId") else ""
    return f"{kind} sent successfully (Message ID: {sent.get('id') or 'unknown'}){thread}"


@account_tool("gmail", "send")
async def gmail_send(args: dict[str, Any], context: ToolContext) -> str:
    payload: dict[str, Any] = {
        "raw": _raw_message(args["to"], args["subject"], args["body"], args.get("cc"), args.get("bcc"))
    }
    if args.get("threadId"):
        payload["threadId"] = args["threadId"]
    sent = await _client(context).request(
        context.caller_id, "POST", f"{GMAIL_API}/messages/send", json_body=payload
    )
    return _sent_summary("Email", sent)


@account_tool("gmail", "reply")
async def gmail_reply(args: dict[str, Any], context: ToolContext) -> str:
    client = _client(context)
    original = await client.request(
        context.caller_id,
        "GET",
        f"{GMAIL_API}/messages/{args['messageId']}",
        params={
            "format": "metadata",
            "metadataHeaders": ["From", "Reply-To", "Subject", "Message-ID", "References"],
        },
    )
    headers = (original.get("payload") or {}).get("headers") or []
    subject = args.get("subject") or _header(headers, "Subject")
    if not subject.lower().startswith("re:"):
        subject = f"Re: {subject}"
    to = args.get("to") or _header(headers, "Reply-To") or _header(headers, "From")

    raw = _raw_message(
        to,
        subject,
        args["body"],
        in_reply_to=_header(headers, "Message-ID") or None,
        references=_header(headers, "References") or None,
    )
    sent = await client.request(
        context.caller_id,
        "POST",
        f"{GMAIL_API}/messages/send",
        json_body={"raw": raw, "threadId": original.get("threadId")},
    )
    return _sent_summary("Reply", sent)


@account_tool("gmail", "draft_create")
async def gmail_draft_create(args: dict[str, Any], context: ToolContext) -> str:
    message: dict[str, Any] = {
        "raw": _raw_message(args["to"], args["subject"], args["body"], args.get("cc"), args.get("bcc"))
    }
    if args.get("threadId"):
        message["threadId"] = args["threadId"]
    draft = await _client(context).request(
        context.caller_id, "POST", f"{GMAIL_API}/drafts", json_body={"message": message}
    )
    message_id = (draft.get("message") or {}).get("id") or "unknown"
    return f"Draft created successfully (Draft ID: {draft.get('id') or 'unknown'}, Message ID: {message_id})"


async def _resolve_label_ids(context: ToolContext, labels: list[str]) -> list[str]:
    """Map label names to IDs; unknown entries are passed through as IDs."""
    data = await _client(context).request(context.caller_id, "GET", f"{GMAIL_API}/labels")
    by_name = {str(label.get("name", "")).lower(): label["id"] for label in data.get("labels") or []}
    return [by_name.get(str(label).lower(), str(label)) for label in labels]


async def _modify_labels(
    context: ToolContext,
    message_id: str,
    add: list[str] | None = None,
    remove: list[str] | None = None,
) -> dict[str, Any]:
    return await _client(context).request(
        context.caller_id,
        "POST",
        f"{GMAIL_API}/messages/{message_id}/modify",
        json_body={"addLabelIds": add or [], "removeLabelIds": remove or []},
    )


def _current_labels(message: dict[str, Any]) -> str:
    return ", ".join(message.get("labelIds") or []) or "(none)"


@account_tool("gmail", "label_add")
async def gmail_label_add(args: dict[str, Any], context: ToolContext) -> str:
    labels = args.get("labels")
    if not isinstance(labels, list) or not labels:
        return "Please provide at least one label to add."
    updated = await _modify_labels(
        context, args["messageId"], add=await _resolve_label_ids(context, labels)
    )
    return f"Labels added to message {updated.get('id')}. Current labels: {_current_labels(updated)}"


@account_tool("gmail", "label_remove")
async def gmail_label_remove(args: dict[str, Any], context: ToolContext) -> str:
    labels = args.get("labels")
    if not isinstance(labels, list) or not labels:
        return "Please provide at least one label to remove."
    updated = await _modify_labels(
        context, args["messageId"], remove=await _resolve_label_ids(context, labels)
    )
    return f"Labels removed from message {updated.get('id')}. Current labels: {_current_labels(updated)}"


@account_tool("gmail", "mark_read")
async def gmail_mark_read(args: dict[str, Any], context: ToolContext) -> str:
    updated = await _modify_labels(context, args["messageId"], remove=["UNREAD"])
    return f"Marked message {updated.get('id')} as read."


@account_tool("gmail", "mark_unread")
async def gmail_mark_unread(args: dict[str, Any], context: ToolContext) -> str:
    updated = await _modify_labels(context, args["messageId"], add=["UNREAD"])
    return f"Marked message {updated.get('id')} as unread."


# ============================================================================
# Tasks
# ============================================================================


@account_tool("tasks", "list")
async def tasks_list(args: dict[str, Any], context: ToolContext) -> str:
    data = await _client(context).request(
        context.caller_id,
        "GET",
        f"{TASKS_API}/tasks",
        params={
            "maxResults": _clamp(args.get("maxResults"), 20, 1, 100),
            "showCompleted": "true" if args.get("showCompleted") else "false",
            "showHidden": "false",
        },
    )
    tasks = data.get("items") or []
    if not tasks:
        return "No tasks found."
    lines = []
    for t in tasks:
        status = "completed" if t.get("status") == "completed" else "pending"
        due = f" | due: {str(t['due'])[:10]}" if t.get("due") else ""
        lines.append(f"- {t.get('title') or '(Untitled task)'} ({status}){due} (ID: {t.get('id')})")
    return "\n".join(lines)


@account_tool("tasks", "create")
async def tasks_create(args: dict[str, Any], context: ToolContext) -> str:
    task = await _client(context).request(
        context.caller_id, "POST", f"{TASKS_API}/tasks", json_body=_present(args, "title", "notes", "due")
    )
    return f'Created task "{task.get("title") or "(Untitled task)"}" (ID: {task.get("id")})'


@account_tool("tasks", "update")
async def tasks_update(args: dict[str, Any], context: ToolContext) -> str:
    body = _present(args, "title", "notes", "due", "status")
    if not body:
        return "Please provide at least one field to update: title, notes, due, or status."
    task = await _client(context).request(
        context.caller_id, "PATCH", f"{TASKS_API}/tasks/{args['taskId']}", json_body=body
    )
    return f'Updated task "{task.get("title") or "(Untitled task)"}" (ID: {task.get("id")})'


@account_tool("tasks", "delete")
async def tasks_delete(args: dict[str, Any], context: ToolContext) -> str:
    await _client(context).request(context.caller_id, "DELETE", f"{TASKS_API}/tasks/{args['taskId']}")
    return f"Deleted task ID: {args['taskId']}"


# ============================================================================
# Classroom
# ============================================================================


async def _paged(context: ToolContext, url: str, key: str, params: dict[str, Any]) -> list[dict[str, Any]]:
    items: list[dict[str, Any]] = []
    page_token = None
    for _ in range(MAX_CLASSROOM_PAGES):
        page_params = {**params, "pageSize": 100}
        if page_token:
            page_params["pageToken"] = page_token
        data = await _client(context).request(context.caller_id, "GET", url, params=page_params)
        items.extend(data.get(key) or [])
        page_token = data.get("nextPageToken")
        if not page_token:
            break
    return items


async def _courses(context: ToolContext) -> list[dict[str, Any]]:
    return await _paged(
        context, f"{CLASSROOM_API}/courses", "courses", {"courseStates": ["ACTIVE", "PROVISIONED"]}
    )


async def _coursework(context: ToolContext, course_id: str) -> list[dict[str, Any]]:
    return await _paged(
        context,
        f"{CLASSROOM_API}/courses/{course_id}/courseWork",
        "courseWork",
        {"courseWorkStates": ["PUBLISHED"]},
    )


def _due_datetime(item: dict[str, Any]) -> datetime | None:
    due_date = item.get("dueDate")
    if not due_date:
        return None
    due_time = item.get("dueTime") or {}
    return datetime(
        due_date["year"],
        due_date["month"],
        due_date["day"],
        due_time.get("hours", 0),
        due_time.get("minutes", 0),
        tzinfo=UTC,
    )


@account_tool("classroom", "get_assignments")
async def classroom_get_assignments(args: dict[str, Any], context: ToolContext) -> str:
    now = datetime.now(UTC)
    upcoming = []
    for course in await _courses(context):
        try:
            work = await _coursework(context, course["id"])
        except AccountError:
            logger.warning("Skipping course whose coursework could not be listed")
            continue
        for item in work:
            due = _due_datetime(item)
            if due is None or due >= now:
                upcoming.append((due, course.get("name"), item))

    if not upcoming:
        return "No upcoming assignments found across your courses."

    upcoming.sort(key=lambda entry: entry[0] or datetime.max.replace(tzinfo=UTC))
    lines = []
    for due, course_name, item in upcoming:
        when = f"due {due:%Y-%m-%d %H:%M}" if due else "no due date"
        link = f"\n  Link: {item['alternateLink']}" if item.get("alternateLink") else ""
        lines.append(f"- [{course_name}] {item.get('title')} ({when}){link}")
    return "\n".join(lines)


@account_tool("classroom", "list_courses")
async def classroom_list_courses(args: dict[str, Any], context: ToolContext) -> str:
    courses = await _courses(context)
    if not courses:
        return "No courses found in Classroom."
    return "\n".join(f"- {c.get('name')} (ID: {c.get('id')})" for c in courses)


@account_tool("classroom", "list_coursework")
async def classroom_list_coursework(args: dict[str, Any], context: ToolContext) -> str:
    work = await _coursework(context, str(args["courseId"]))
    if not work:
        return "No coursework found for this course."
    lines = []
    for w in work:
        due = _due_datetime(w)
        lines.append(f"- {w.get('title')} (due: {f'{due:%Y-%m-%d}' if due else 'no date'}) (ID: {w.get('id')})")
    return "\n".join(lines)


HANDLERS: dict[str, ToolHandler] = {
    "google_drive_list": drive_list,
    "google_drive_create_file": drive_create_file,
    "google_drive_create_folder": drive_create_folder,
    "google_drive_update_file": drive_update_file,
    "google_drive_delete_file": drive_delete_file,
    "google_calendar_list": calendar_list,
    "google_calendar_create_event": calendar_create_event,
    "google_calendar_update_event": calendar_update_event,
    "google_calendar_delete_event": calendar_delete_event,
    "gmail_read_unread": gmail_read_unread,
    "gmail_inbox_read": gmail_inbox_read,
    "gmail_send": gmail_send,
    "gmail_reply": gmail_reply,
    "gmail_draft_create": gmail_draft_create,
    "gmail_label_add": gmail_label_add,
    "gmail_label_remove": gmail_label_remove,
    "gmail_mark_read": gmail_mark_read,
    "gmail_mark_unread": gmail_mark_unread,
    "google_tasks_list": tasks_list,
    "google_tasks_create": tasks_create,
    "google_tasks_update": tasks_update,
    "google_tasks_delete": tasks_delete,
    "google_classroom_get_assignments": classroom_get_assignments,
    "google_classroom_list_courses": classroom_list_courses,
    "google_classroom_list_coursework": classroom_list_coursework,
}
