"""
rin.capabilities.account - Linked Account Status

The linked Google account seen from the agent's side: the ``AccountClient``
protocol the data tools call through, stored token metadata, error
categorisation, and the status tools that stay visible before linking
(``google_capabilities``, ``google_auth_status``, ``google_scope_status``).

Example:
    >>> tokens = AccountTokens(access_token="ya29...", scopes=[SCOPE_DRIVE_FILE])
    >>> format_auth_status(tokens)
    'linked (token expiry unknown, refresh token missing)'
"""

import json
from datetime import UTC, datetime
from typing import Any, Protocol, runtime_checkable
from urllib.parse import quote

from pydantic import BaseModel, Field

from rin.core.tools.base import ToolContext, ToolHandler
from rin.errors import RinError

_AUTH = "https://www.googleapis.com/auth/"

SCOPE_DRIVE_FILE = _AUTH + "drive.file"
SCOPE_DRIVE = _AUTH + "drive"
SCOPE_CALENDAR = _AUTH + "calendar"
SCOPE_GMAIL_MODIFY = _AUTH + "gmail.modify"
SCOPE_GMAIL_SEND = _AUTH + "gmail.send"
SCOPE_GMAIL_COMPOSE = _AUTH + "gmail.compose"
SCOPE_TASKS = _AUTH + "tasks"
SCOPE_CLASSROOM_COURSES = _AUTH + "classroom.courses.readonly"
SCOPE_CLASSROOM_COURSEWORK = _AUTH + "classroom.coursework.me.readonly"

# Scope groups requested at link time
SCOPE_REQUIREMENTS: dict[str, list[str]] = {
    "drive": [SCOPE_DRIVE_FILE],
    "calendar": [SCOPE_CALENDAR],
    "gmail_read": [SCOPE_GMAIL_MODIFY],
    "gmail_send": [SCOPE_GMAIL_SEND],
    "gmail_compose": [SCOPE_GMAIL_COMPOSE],
    "tasks": [SCOPE_TASKS],
    "classroom_courses": [SCOPE_CLASSROOM_COURSES],
    "classroom_coursework": [SCOPE_CLASSROOM_COURSEWORK],
}

# Broader scopes that also satisfy a requirement
_SCOPE_SUPERSETS: dict[str, set[str]] = {
    SCOPE_DRIVE_FILE: {SCOPE_DRIVE},
}

# Tool -> scope requirement group
TOOL_SCOPES: dict[str, str] = {
    "google_drive_list": "drive",
    "google_drive_create_file": "drive",
    "google_drive_create_folder": "drive",
    "google_drive_update_file": "drive",
    "google_drive_delete_file": "drive",
    "google_calendar_list": "calendar",
    "google_calendar_create_event": "calendar",
    "google_calendar_update_event": "calendar",
    "google_calendar_delete_event": "calendar",
    "gmail_read_unread": "gmail_read",
    "gmail_inbox_read": "gmail_read",
    "gmail_send": "gmail_send",
    "gmail_reply": "gmail_send",
    "gmail_draft_create": "gmail_compose",
    "gmail_label_add": "gmail_read",
    "gmail_label_remove": "gmail_read",
    "gmail_mark_read": "gmail_read",
    "gmail_mark_unread": "gmail_read",
    "google_tasks_list": "tasks",
    "google_tasks_create": "tasks",
    "google_tasks_update": "tasks",
    "google_tasks_delete": "tasks",
    "google_classroom_get_assignments": "classroom_coursework",
    "google_classroom_list_courses": "classroom_courses",
    "google_classroom_list_coursework": "classroom_coursework",
}

# Capability payload: service -> action -> tool name
SERVICE_ACTIONS: dict[str, dict[str, str]] = {
    "drive": {
        "list": "google_drive_list",
        "create_file": "google_drive_create_file",
        "create_folder": "google_drive_create_folder",
        "update": "google_drive_update_file",
        "delete": "google_drive_delete_file",
    },
    "gmail": {
        "read_unread": "gmail_read_unread",
        "inbox_read": "gmail_inbox_read",
        "send": "gmail_send",
        "reply": "gmail_reply",
        "draft_create": "gmail_draft_create",
        "label_add": "gmail_label_add",
        "label_remove": "gmail_label_remove",
        "mark_read": "gmail_mark_read",
        "mark_unread": "gmail_mark_unread",
    },
    "calendar": {
        "list": "google_calendar_list",
        "create": "google_calendar_create_event",
        "update": "google_calendar_update_event",
        "delete": "google_calendar_delete_event",
    },
    "tasks": {
        "list": "google_tasks_list",
        "create": "google_tasks_create",
        "update": "google_tasks_update",
        "delete": "google_tasks_delete",
    },
    "classroom": {
        "list_assignments": "google_classroom_get_assignments",
        "list_courses": "google_classroom_list_courses",
        "list_coursework": "google_classroom_list_coursework",
    },
}

OUT_OF_SCOPE = ["docs_api", "sheets_api"]


# ============================================================================
# Tokens, errors and the client protocol
# ============================================================================


class AccountTokens(BaseModel):
    """Stored OAuth token metadata for one caller (never logged)."""

    access_token: str | None = None
    refresh_token: str | None = None
    expires_at: datetime | None = None
    scopes: list[str] = Field(default_factory=list)

    @property
    def linked(self) -> bool:
        return bool(self.access_token or self.refresh_token)

    def minutes_until_expiry(self, now: datetime | None = None) -> int | None:
        if self.expires_at is None:
            return None
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=UTC)
        return int((expires_at - (now or datetime.now(UTC))).total_seconds() // 60)


class AccountError(RinError):
    """
    Raised by an ``AccountClient`` when the provider rejects a call.

    Attributes:
        status: HTTP status, or None when no request was made
        category: Explicit category (``not_linked``), or None to infer one
            from status and message
    """

    def __init__(self, message: str, status: int | None = None, category: str | None = None):
        super().__init__(message)
        self.status = status
        self.category = category


@runtime_checkable
class AccountClient(Protocol):
    """Authenticated access to one provider account per caller."""

    async def get_tokens(self, caller_id: int) -> AccountTokens | None:
        """Stored tokens for ``caller_id``, or None when never linked."""
        ...

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
        """
        Perform an authenticated API call and return the decoded JSON body.

        Raises:
            AccountError: Not linked, or the provider answered with an error
        """
        ...


def normalize_scopes(raw: str | list[str] | None) -> list[str]:
    """Deduplicated, sorted scope list from a space-separated string or list."""
    if not raw:
        return []
    items = raw.split() if isinstance(raw, str) else raw
    return sorted({s.strip() for s in items if s and s.strip()})


def _has_scope(granted: set[str], scope: str) -> bool:
    return scope in granted or bool(_SCOPE_SUPERSETS.get(scope, set()) & granted)


def scope_checks(tokens: AccountTokens | None) -> dict[str, dict[str, Any]]:
    """Per-tool ``{granted, missing}`` check against the granted scopes."""
    granted = set(normalize_scopes(tokens.scopes if tokens else []))
    checks = {}
    for tool, group in TOOL_SCOPES.items():
        missing = [s for s in SCOPE_REQUIREMENTS[group] if not _has_scope(granted, s)]
        checks[tool] = {"granted": not missing, "missing": missing}
    return checks


def categorize_account_error(error: Exception) -> str:
    """
    Classify a provider failure.

    Returns:
        One of ``not_linked``, ``auth_expired``, ``insufficient_scope``,
        ``not_found``, ``rate_limited`` or ``unknown``
    """
    category = getattr(error, "category", None)
    if category:
        return category

    status = getattr(error, "status", None)
    message = str(error).lower()

    if "not linked" in message or "not authenticated" in message:
        return "not_linked"
    if status == 401 or "invalid_grant" in message or "token has been expired" in message:
        return "auth_expired"
    if status == 429 or "rate limit" in message or "quota" in message:
        return "rate_limited"
    if status == 403 and ("scope" in message or "permission" in message):
        return "insufficient_scope"
    if status == 404:
        return "not_found"
    return "unknown"


# ============================================================================
# Payload builders
# ============================================================================


def build_relink_url(oauth_base_url: str, caller_id: int) -> str:
    base = (oauth_base_url or "").rstrip("/")
    if not base:
        return ""
    return f"{base}/api/auth/google?state={quote(str(caller_id))}"


def format_auth_status(tokens: AccountTokens | None, now: datetime | None = None) -> str:
    if tokens is None or not tokens.linked:
        return "not linked"

    refresh = "refresh token present" if tokens.refresh_token else "refresh token missing"
    minutes = tokens.minutes_until_expiry(now)
    if minutes is None:
        return f"linked (token expiry unknown, {refresh})"
    if minutes <= 0:
        return f"linked (access token expired, {refresh})"
    if minutes < 60:
        return f"linked (token expires in ~{minutes}m, {refresh})"
    return f"linked (token expires in ~{minutes // 60}h, {refresh})"


def build_capabilities_payload(
    linked: bool,
    visible_tools: frozenset[str] | set[str],
    relink_url: str,
) -> dict[str, Any]:
    """Machine-readable capability map derived from the visible tool set."""
    services: dict[str, dict[str, bool]] = {
        service: {action: tool in visible_tools for action, tool in actions.items()}
        for service, actions in SERVICE_ACTIONS.items()
    }
    services["classroom"]["write_actions"] = False
    return {
        "schema_version": "google_capabilities.v1",
        "source_of_truth": "runtime_tool_registry",
        "linked": linked,
        "relink_url": relink_url or None,
        "services": services,
        "out_of_scope": list(OUT_OF_SCOPE),
    }


def build_scope_status_payload(
    tokens: AccountTokens | None,
    relink_url: str,
    now: datetime | None = None,
) -> dict[str, Any]:
    granted = normalize_scopes(tokens.scopes if tokens else [])
    granted_set = set(granted)
    minutes = tokens.minutes_until_expiry(now) if tokens else None

    required = {
        "drive": SCOPE_REQUIREMENTS["drive"],
        "calendar": SCOPE_REQUIREMENTS["calendar"],
        "gmail": sorted(
            set(
                SCOPE_REQUIREMENTS["gmail_read"]
                + SCOPE_REQUIREMENTS["gmail_send"]
                + SCOPE_REQUIREMENTS["gmail_compose"]
            )
        ),
        "tasks": SCOPE_REQUIREMENTS["tasks"],
        "classroom": sorted(
            set(
                SCOPE_REQUIREMENTS["classroom_courses"]
                + SCOPE_REQUIREMENTS["classroom_coursework"]
            )
        ),
    }
    missing = {
        service: [s for s in scopes if not _has_scope(granted_set, s)]
        for service, scopes in required.items()
    }

    return {
        "schema_version": "google_scope_status.v1",
        "linked": bool(tokens and tokens.linked),
        "relink_url": relink_url or None,
        "token": {
            "has_access_token": bool(tokens and tokens.access_token),
            "has_refresh_token": bool(tokens and tokens.refresh_token),
            "expires_at": tokens.expires_at.isoformat() if tokens and tokens.expires_at else None,
            "expires_in_minutes": minutes,
            "expired": minutes <= 0 if minutes is not None else None,
        },
        "granted_scopes": granted,
        "required_scopes_by_service": required,
        "missing_scopes_by_service": missing,
        "tool_scope_checks": scope_checks(tokens),
        "relink_instructions": (
            f"Relink at {relink_url} and approve all requested scopes."
            if relink_url
            else "Relink URL unavailable. Configure GOOGLE_OAUTH_BASE_URL and retry."
        ),
    }


def normalize_account_error(error: Exception, relink_url: str) -> str:
    """User-facing text for a failed account call."""
    category = categorize_account_error(error)
    relink = (
        f"Relink: {relink_url}"
        if relink_url
        else "Relink: use /linkgoogle after GOOGLE_OAUTH_BASE_URL is configured."
    )

    if category == "not_linked":
        return f"Google account is not linked for this user.\n{relink}"
    if category == "auth_expired":
        return f"Google authentication expired or was revoked.\nPlease relink your Google account.\n{relink}"
    if category == "insufficient_scope":
        return (
            "Google denied this request due to missing permissions/scopes.\n"
            "Run google_scope_status for exact missing scopes, then relink and accept all "
            f"requested permissions.\n{relink}"
        )
    if category == "not_found":
        status = getattr(error, "status", None) or "unknown"
        return (
            f"Google could not find the requested resource (status {status}).\n"
            "Verify the ID and try again."
        )
    if category == "rate_limited":
        return "Google API rate limit reached. Please retry shortly."
    return f"[Google Error] {error}"


# ============================================================================
# Status tool handlers
# ============================================================================


async def _tokens(context: ToolContext) -> AccountTokens | None:
    if context.account is None:
        return None
    return await context.account.get_tokens(context.caller_id)


async def google_capabilities(args: dict[str, Any], context: ToolContext) -> str:
    payload = build_capabilities_payload(
        linked=context.capabilities.has_linked_account,
        visible_tools=context.visible_tools,
        relink_url=build_relink_url(context.oauth_base_url, context.caller_id),
    )
    return json.dumps(payload, indent=2)


async def google_auth_status(args: dict[str, Any], context: ToolContext) -> str:
    tokens = await _tokens(context)
    relink_url = build_relink_url(context.oauth_base_url, context.caller_id)
    hint = (
        f"Relink URL: {relink_url}"
        if relink_url
        else "Relink URL unavailable because GOOGLE_OAUTH_BASE_URL is not configured."
    )
    return f"Google auth status: {format_auth_status(tokens)}.\n{hint}"


async def google_scope_status(args: dict[str, Any], context: ToolContext) -> str:
    tokens = await _tokens(context)
    relink_url = build_relink_url(context.oauth_base_url, context.caller_id)
    return json.dumps(build_scope_status_payload(tokens, relink_url), indent=2)


HANDLERS: dict[str, ToolHandler] = {
    "google_capabilities": google_capabilities,
    "google_auth_status": google_auth_status,
    "google_scope_status": google_scope_status,
}
