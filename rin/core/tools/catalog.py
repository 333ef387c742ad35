"""
rin.core.tools.catalog - Static tool catalog

Every tool the agent can ever see, grouped by the capability gate that
exposes it. ``build_default_registry()`` turns the groups into an immutable
``ToolRegistry``.

Example:
    >>> registry = build_default_registry()
    >>> caps = CallerCapabilities(admin=False, has_linked_account=True)
    >>> [d.name for d in registry.declarations(caps)][:3]
    ['think', 'plan', 'reflect']
"""

from typing import Any

from rin.core.tools.base import ToolDeclaration
from rin.core.tools.registry import ToolRegistry


def _tool(
    name: str,
    description: str,
    properties: dict[str, Any] | None = None,
    required: list[str] | None = None,
) -> ToolDeclaration:
    parameters: dict[str, Any] = {"type": "object", "properties": properties or {}}
    if required:
        parameters["required"] = required
    return ToolDeclaration(name=name, description=description, parameters=parameters)


def _str(description: str | None = None) -> dict[str, Any]:
    return {"type": "string", "description": description} if description else {"type": "string"}


def _num(description: str) -> dict[str, Any]:
    return {"type": "number", "description": description}


def _bool(description: str) -> dict[str, Any]:
    return {"type": "boolean", "description": description}


def _str_list(description: str) -> dict[str, Any]:
    return {"type": "array", "items": {"type": "string"}, "description": description}


# ============================================================================
# Meta-cognitive tools (handled inside the executor)
# ============================================================================

META_TOOLS: tuple[ToolDeclaration, ...] = (
    _tool(
        "think",
        "Private reasoning scratchpad. Use this to think through a complex or ambiguous "
        "request BEFORE acting. Write your current understanding, any unknowns, and your "
        "intended next step. The user does NOT see this. "
        "Do not use this for simple or clearly-defined requests.",
        {"reasoning": _str("Your step-by-step internal reasoning")},
        ["reasoning"],
    ),
    _tool(
        "plan",
        "Decompose a multi-step goal into an ordered list of concrete actions. "
        "Call this when the user wants something that requires more than one distinct "
        "tool call. Return the plan, then execute each step using the appropriate tools.",
        {
            "goal": _str("What the user ultimately wants to achieve"),
            "steps": _str_list(
                "Ordered list of concrete actions to take, each referencing a specific tool or action"
            ),
        },
        ["goal", "steps"],
    ),
    _tool(
        "reflect",
        "Review your most recent answer and decide if it fully satisfies the user's request. "
        "Use after completing a complex or multi-step task. If the answer is incomplete or "
        "could be improved, provide a revised_answer. If the answer is already good, set "
        "revised_answer to null.",
        {
            "critique": _str("A brief evaluation of the answer's completeness and accuracy"),
            "revised_answer": _str(
                "An improved version of the answer, or null if no revision is needed"
            ),
        },
        ["critique"],
    ),
)

# ============================================================================
# Base tools (every caller)
# ============================================================================

BASE_TOOLS: tuple[ToolDeclaration, ...] = (
    _tool(
        "browse_url",
        "Fetch a web page and return its readable text content. "
        "Use to read articles, docs, or any public URL.",
        {"url": _str("Full URL to fetch (https://...)")},
        ["url"],
    ),
    _tool(
        "set_reminder",
        "Schedule a reminder. Provide delay_minutes (e.g. 30) OR datetime (ISO 8601). Not both.",
        {
            "message": _str("What to remind the user about"),
            "delay_minutes": _num("Minutes from now"),
            "datetime": _str('Absolute time, e.g. "2026-03-01T15:00:00"'),
        },
        ["message"],
    ),
    _tool("list_reminders", "List all pending reminders."),
    _tool(
        "delete_reminder",
        "Cancel a reminder by its ID.",
        {"id": {"type": "number"}},
        ["id"],
    ),
    _tool(
        "save_note",
        "Save or overwrite a note by title.",
        {"title": _str(), "content": _str()},
        ["title", "content"],
    ),
    _tool(
        "get_notes",
        "Retrieve notes, optionally filtering by keyword.",
        {"search": _str()},
    ),
    _tool(
        "delete_note",
        "Delete a note by its exact title.",
        {"title": _str()},
        ["title"],
    ),
    _tool(
        "storage_set",
        "Persist a key-value pair in local storage. Good for settings, counters, flags.",
        {"key": _str(), "value": _str()},
        ["key", "value"],
    ),
    _tool(
        "storage_get",
        "Retrieve a value from local storage by key.",
        {"key": _str()},
        ["key"],
    ),
    _tool(
        "storage_delete",
        "Remove a key from local storage.",
        {"key": _str()},
        ["key"],
    ),
    _tool("storage_list", "List all keys and values in local storage."),
)

# ============================================================================
# Account status tools (visible before linking)
# ============================================================================

ACCOUNT_STATUS_TOOLS: tuple[ToolDeclaration, ...] = (
    _tool(
        "google_capabilities",
        "Return machine-readable JSON with currently available Google capabilities based on "
        "linked auth and enabled tools. Use when the user asks what Google actions you can do.",
    ),
    _tool(
        "google_auth_status",
        "Check whether the user has a linked Google account, token freshness, and the exact "
        "relink URL. Use this before saying you cannot access Google services.",
    ),
    _tool(
        "google_scope_status",
        "Return machine-readable Google scope diagnostics, including granted scopes, missing "
        "scopes by service, and relink guidance.",
    ),
)

# ============================================================================
# Linked-account data tools
# ============================================================================

ACCOUNT_TOOLS: tuple[ToolDeclaration, ...] = (
    # Drive
    _tool(
        "google_drive_list",
        "List files in the user's connected Google Drive. Use when the user asks about their "
        "files, documents, or wants to find something they saved. Pass a query to filter by "
        "filename.",
        {
            "query": _str('Optional filename search term to filter results (e.g. "resume")'),
            "maxResults": _num("Max files to return (default: 10, max: 50)"),
        },
    ),
    _tool(
        "google_drive_create_file",
        "Create a new text-based file in Google Drive. Use for add/create requests.",
        {
            "name": _str("File name, e.g. notes.txt"),
            "content": _str("File content"),
            "mimeType": _str("MIME type (default text/plain)"),
        },
        ["name", "content"],
    ),
    _tool(
        "google_drive_create_folder",
        "Create a new folder in Google Drive. Optionally place it inside a parent folder.",
        {
            "name": _str("Folder name"),
            "parentFolderId": _str("Optional parent folder ID. Omit to create in root."),
        },
        ["name"],
    ),
    _tool(
        "google_drive_update_file",
        "Update an existing Google Drive file by ID (rename and/or replace content).",
        {
            "fileId": _str("Drive file ID"),
            "name": _str("Optional new file name"),
            "content": _str("Optional replacement content"),
            "mimeType": _str("MIME type for content updates (default text/plain)"),
        },
        ["fileId"],
    ),
    _tool(
        "google_drive_delete_file",
        "Delete a Google Drive file by ID.",
        {"fileId": _str("Drive file ID")},
        ["fileId"],
    ),
    # Calendar
    _tool(
        "google_calendar_list",
        "List upcoming events from the user's Google Calendar. Use when the user asks about "
        "their schedule, meetings, appointments, or what's coming up.",
        {"days": _num("How many days ahead to look (default: 7, max: 90)")},
    ),
    _tool(
        "google_calendar_create_event",
        "Create a Google Calendar event.",
        {
            "summary": _str("Event title"),
            "start": _str("Start date/time in ISO (e.g. 2026-03-02T09:00:00+08:00 or 2026-03-02)"),
            "end": _str("End date/time in ISO (e.g. 2026-03-02T10:00:00+08:00 or 2026-03-03)"),
            "description": _str("Optional event description"),
            "location": _str("Optional location"),
            "timeZone": _str("Optional IANA timezone, e.g. Asia/Manila"),
        },
        ["summary", "start", "end"],
    ),
    _tool(
        "google_calendar_update_event",
        "Update a Google Calendar event by event ID.",
        {
            "eventId": _str("Calendar event ID"),
            "summary": _str(),
            "start": _str(),
            "end": _str(),
            "description": _str(),
            "location": _str(),
            "timeZone": _str(),
        },
        ["eventId"],
    ),
    _tool(
        "google_calendar_delete_event",
        "Delete a Google Calendar event by event ID.",
        {"eventId": _str("Calendar event ID")},
        ["eventId"],
    ),
    # Gmail
    _tool(
        "gmail_read_unread",
        "Read unread emails in the user's Gmail inbox including content preview/body. "
        "Use query to filter by sender, subject, or keyword.",
        {
            "maxResults": _num("Max emails to return (default: 10)"),
            "query": _str('Gmail search filter (e.g. "from:boss@work.com"). Combined with is:unread.'),
        },
    ),
    _tool(
        "gmail_inbox_read",
        "Read Gmail inbox messages (not just unread), including content preview/body.",
        {
            "maxResults": _num("Max emails to return (default: 10)"),
            "query": _str('Optional Gmail query (e.g. "subject:invoice")'),
            "unreadOnly": _bool("Set true to only return unread emails"),
            "includeBody": _bool("Set false to return headers/snippet only"),
        },
    ),
    _tool(
        "gmail_send",
        "Send an email from the connected Gmail account.",
        {
            "to": _str("Recipient email address(es), comma-separated if multiple"),
            "subject": _str("Email subject line"),
            "body": _str("Plain-text email body"),
            "cc": _str("Optional CC recipient(s), comma-separated"),
            "bcc": _str("Optional BCC recipient(s), comma-separated"),
            "threadId": _str("Optional Gmail thread ID to append the message to"),
        },
        ["to", "subject", "body"],
    ),
    _tool(
        "gmail_reply",
        "Reply to a Gmail message by message ID.",
        {
            "messageId": _str("Gmail message ID to reply to"),
            "body": _str("Reply body (plain text)"),
            "to": _str("Optional explicit recipient override"),
            "subject": _str("Optional explicit subject override"),
        },
        ["messageId", "body"],
    ),
    _tool(
        "gmail_draft_create",
        "Create a Gmail draft message.",
        {
            "to": _str("Recipient email address(es), comma-separated if multiple"),
            "subject": _str("Draft subject line"),
            "body": _str("Draft body (plain text)"),
            "cc": _str("Optional CC recipient(s)"),
            "bcc": _str("Optional BCC recipient(s)"),
            "threadId": _str("Optional Gmail thread ID"),
        },
        ["to", "subject", "body"],
    ),
    _tool(
        "gmail_label_add",
        "Add one or more labels to a Gmail message by message ID.",
        {
            "messageId": _str("Gmail message ID"),
            "labels": _str_list('Label names or IDs to add (e.g. "IMPORTANT", "STARRED")'),
        },
        ["messageId", "labels"],
    ),
    _tool(
        "gmail_label_remove",
        "Remove one or more labels from a Gmail message by message ID.",
        {
            "messageId": _str("Gmail message ID"),
            "labels": _str_list("Label names or IDs to remove"),
        },
        ["messageId", "labels"],
    ),
    _tool(
        "gmail_mark_read",
        "Mark a Gmail message as read by removing the UNREAD label.",
        {"messageId": _str("Gmail message ID")},
        ["messageId"],
    ),
    _tool(
        "gmail_mark_unread",
        "Mark a Gmail message as unread by adding the UNREAD label.",
        {"messageId": _str("Gmail message ID")},
        ["messageId"],
    ),
    # Tasks
    _tool(
        "google_tasks_list",
        "List tasks from the user's Google Tasks. Use when the user mentions to-do items, "
        "pending tasks, or things they need to do.",
        {
            "showCompleted": _bool("Include completed tasks (default false)"),
            "maxResults": _num("Max tasks to return (default 20)"),
        },
    ),
    _tool(
        "google_tasks_create",
        "Create a new task in Google Tasks.",
        {
            "title": _str("Task title"),
            "notes": _str("Optional task notes"),
            "due": _str("Optional due datetime in ISO format"),
        },
        ["title"],
    ),
    _tool(
        "google_tasks_update",
        "Update a Google Task by task ID.",
        {
            "taskId": _str("Task ID"),
            "title": _str(),
            "notes": _str(),
            "due": _str("Due datetime in ISO format"),
            "status": {"type": "string", "enum": ["needsAction", "completed"]},
        },
        ["taskId"],
    ),
    _tool(
        "google_tasks_delete",
        "Delete a task from Google Tasks by task ID.",
        {"taskId": _str("Task ID")},
        ["taskId"],
    ),
    # Classroom
    _tool(
        "google_classroom_get_assignments",
        "Get all upcoming assignments across ALL of the user's Google Classroom courses in one "
        "call. Use this whenever the user asks about homework, assignments, deadlines, or "
        "what's due. Results are sorted by due date.",
    ),
    _tool(
        "google_classroom_list_courses",
        "List the user's Google Classroom courses with their IDs. To see assignments, prefer "
        "google_classroom_get_assignments instead.",
    ),
    _tool(
        "google_classroom_list_coursework",
        "List all coursework for a specific course by its ID. First call "
        "google_classroom_list_courses to get the course ID.",
        {"courseId": _str("The unique ID of the course")},
        ["courseId"],
    ),
)

# ============================================================================
# File tools (sandboxed for non-admins)
# ============================================================================

FILE_TOOLS: tuple[ToolDeclaration, ...] = (
    _tool(
        "read_file",
        "Read the contents of a file.",
        {"path": _str("Absolute or relative file path")},
        ["path"],
    ),
    _tool(
        "write_file",
        "Write or overwrite a file with given content.",
        {"path": _str(), "content": _str()},
        ["path", "content"],
    ),
    _tool(
        "list_directory",
        "List the contents of a directory.",
        {"path": _str("Directory path (default: current dir)")},
    ),
    _tool(
        "delete_file",
        "Delete a file at the given path.",
        {"path": _str()},
        ["path"],
    ),
    _tool(
        "send_file",
        "Send a file directly to the user in this chat. Use the filename as it appears in the "
        "uploads folder or a full absolute path. A bare filename is looked up in the user's "
        "uploads directory automatically.",
        {
            "path": _str("Filename (e.g. report.pdf) or full path to the file"),
            "caption": _str("Optional caption to include with the file"),
        },
        ["path"],
    ),
)

# ============================================================================
# Admin-only tools
# ============================================================================

ADMIN_TOOLS: tuple[ToolDeclaration, ...] = (
    _tool(
        "run_command",
        "Execute a bash command on the server. Use for system admin tasks: processes, "
        "services, logs, disk, etc.",
        {"command": _str("bash -c command")},
        ["command"],
    ),
    _tool(
        "convert_file",
        "Convert a file between formats. Supported: csv to json and json to csv.",
        {
            "path": _str(),
            "format": _str('Target format, e.g. "json" or "csv"'),
        },
        ["path", "format"],
    ),
    _tool(
        "system_health",
        "Get a summary of CPU, memory, disk usage, load averages, and uptime.",
    ),
    _tool(
        "api_usage",
        "Show API token usage and call count for the last N days.",
        {"days": _num("Number of days to look back (default 7)")},
    ),
)


def build_default_registry() -> ToolRegistry:
    """Build the registry over the full static catalog."""
    return ToolRegistry(
        meta=META_TOOLS,
        base=BASE_TOOLS,
        account_status=ACCOUNT_STATUS_TOOLS,
        account=ACCOUNT_TOOLS,
        files=FILE_TOOLS,
        admin=ADMIN_TOOLS,
    )
