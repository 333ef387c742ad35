"""
rin.core.loop.guards - Answer Guard Heuristics

Fuzzy text classifiers the orchestration loop consults before accepting a
candidate answer, and the model-tier router. Each classifier is a pure
``(text) -> bool`` function over a fixed pattern table, so the tables can be
tuned and tested in isolation. ``GuardPolicy`` bundles them behind one
replaceable object that the ``Orchestrator`` receives at construction.

Example:
    >>> looks_like_leaked_tool_code("```tool_code\\nprint(default_api.read_file())")
    True
    >>> claims_unsupported_capability(
    ...     "I cannot access your inbox for privacy reasons.",
    ...     {"gmail_inbox_read"},
    ... )
    True
"""

import re
from collections.abc import Collection

from rin.llm.models import ModelTier

_I = re.IGNORECASE

# ============================================================================
# Leaked tool code
# ============================================================================

# Markers of pseudo-code some models emit instead of a structured tool call
LEAKED_TOOL_CODE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^\s*```\s*tool_code\b", _I),
    re.compile(r"^\s*tool_code\b", _I),
    re.compile(r"^\s*```\s*(python|py)?\s*\n\s*(print\()?default_api\.", _I),
    re.compile(r"^\s*(print\()?default_api\.\w+\(", _I),
    re.compile(r"^\s*<\s*(tool_call|function_call|tool_use|function)[\s>=]", _I),
    re.compile(r"^\s*<\|(tool_call|python_tag|tool_calls_begin)", _I),
    re.compile(r'^\s*\{\s*"(name|tool|function)"\s*:\s*"\w+"\s*,\s*"(arguments|parameters|args)"', _I),
)


def looks_like_leaked_tool_code(text: str) -> bool:
    """True when a candidate answer starts with raw tool-call text."""
    return any(p.search(text) for p in LEAKED_TOOL_CODE_PATTERNS)


# ============================================================================
# Grounding
# ============================================================================

# Request topics that should be answered from tool results, never from memory
GROUNDING_CATEGORIES: dict[str, tuple[re.Pattern[str], ...]] = {
    "account": (
        re.compile(r"\b(gmail|inbox|e-?mails?|unread)\b", _I),
        re.compile(r"\b(google\s+)?(drive|calendar|tasks|classroom)\b", _I),
        re.compile(r"\b(my\s+)?(schedule|meetings?|appointments?|assignments?|homework)\b", _I),
        re.compile(r"\bgoogle\s+(account|auth|link)", _I),
    ),
    "reminders": (
        re.compile(r"\breminders?\b", _I),
        re.compile(r"\bremind me\b", _I),
    ),
    "notes": (
        re.compile(r"\b(my|the|saved)\s+notes?\b", _I),
        re.compile(r"\bwhat did i (save|note|write down)\b", _I),
        re.compile(r"\b(stored|saved)\s+(value|key|data)\b", _I),
    ),
    "files": (
        re.compile(r"\b(my|the|uploaded)\s+files?\b", _I),
        re.compile(r"\b(folder|directory|uploads?)\b", _I),
        re.compile(r"\b[\w-]+\.(txt|csv|json|pdf|md|log|docx?|xlsx?)\b", _I),
    ),
    "system": (
        re.compile(r"\b(server|system|vps)\s+(status|health|load)\b", _I),
        re.compile(r"\b(cpu|memory|ram|disk)\s+(usage|space|load)\b", _I),
        re.compile(r"\b(uptime|load average)\b", _I),
        re.compile(r"\bapi\s+usage\b", _I),
    ),
}


def grounding_categories(text: str) -> set[str]:
    """Names of every grounding category the text touches."""
    return {
        name
        for name, patterns in GROUNDING_CATEGORIES.items()
        if any(p.search(text) for p in patterns)
    }


def needs_grounding(text: str) -> bool:
    return bool(grounding_categories(text))


# ============================================================================
# Account capability questions
# ============================================================================

_ACCOUNT_TOPIC = r"(google|gmail|e-?mails?|inbox|drive|calendar|tasks|classroom)"

ACCOUNT_CAPABILITY_QUERY_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(rf"\bwhat (else )?(can|could) you do\b.*\b{_ACCOUNT_TOPIC}\b", _I),
    re.compile(rf"\b{_ACCOUNT_TOPIC}\b.*\bwhat (else )?(can|could) you do\b", _I),
    re.compile(
        rf"\b(can|could|are) you (able to )?(access|read|see|use|send|create|edit|manage|delete|check)\b"
        rf".*\b{_ACCOUNT_TOPIC}\b",
        _I,
    ),
    re.compile(rf"\b(do|does) you have (access|permission)s? (to|for)\b.*\b{_ACCOUNT_TOPIC}\b", _I),
    re.compile(rf"\bwhat {_ACCOUNT_TOPIC}?\s*(capabilities|permissions|access|scopes)\b", _I),
    re.compile(r"\bwhich google (services|apps|features|actions)\b", _I),
)

_GENERIC_CAPABILITY_QUESTION = re.compile(
    r"\b(what (else )?(can|could) you do|what are (your|you) (capable|able)|what tools do you have|"
    r"list (your|the) (tools|capabilities))\b",
    _I,
)


def is_account_capability_query(text: str) -> bool:
    """True for questions about what the agent can do with the linked account."""
    return any(p.search(text) for p in ACCOUNT_CAPABILITY_QUERY_PATTERNS)


def is_capability_question(text: str) -> bool:
    return is_account_capability_query(text) or bool(_GENERIC_CAPABILITY_QUESTION.search(text))


# ============================================================================
# Unsupported capability claims
# ============================================================================

PRIVACY_CLAIM_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\bfor (privacy|security|confidentiality) reasons\b", _I),
    re.compile(r"\bdue to (privacy|security|data protection)\b", _I),
    re.compile(r"\b(privacy|security) (restrictions?|concerns?|polic(y|ies)|limitations?)\b", _I),
    re.compile(
        r"\b(don't|do not|can't|cannot|am not able to|'m not able to) (have )?access (to )?"
        r"(your )?(personal|private)\b",
        _I,
    ),
)

INABILITY_PATTERN = re.compile(
    r"\b(i|we)\s*(can'?t|cannot|can not|am unable to|'m unable to|am not able to|'m not able to|"
    r"don'?t have (the )?(ability|access|permission)|do not have (the )?(ability|access|permission)|"
    r"have no (way|ability|access))\b|\b(is|are) not supported\b|\bnot (currently )?(possible|available) for me\b",
    _I,
)

# Action topic -> tools that perform it
ACTION_TOOLS: tuple[tuple[re.Pattern[str], tuple[str, ...]], ...] = (
    (
        re.compile(r"\b(inbox|e-?mails?|gmail|messages?)\b", _I),
        (
            "gmail_read_unread",
            "gmail_inbox_read",
            "gmail_send",
            "gmail_reply",
            "gmail_draft_create",
        ),
    ),
    (
        re.compile(r"\b(drive|documents?|google files?)\b", _I),
        ("google_drive_list", "google_drive_create_file", "google_drive_update_file"),
    ),
    (
        re.compile(r"\b(calendar|events?|schedule|meetings?|appointments?)\b", _I),
        ("google_calendar_list", "google_calendar_create_event"),
    ),
    (re.compile(r"\b(tasks?|to-?dos?)\b", _I), ("google_tasks_list", "google_tasks_create")),
    (
        re.compile(r"\b(classroom|assignments?|homework|courses?|coursework)\b", _I),
        ("google_classroom_get_assignments", "google_classroom_list_courses"),
    ),
    (re.compile(r"\b(reminders?|remind)\b", _I), ("set_reminder", "list_reminders")),
    (re.compile(r"\bnotes?\b", _I), ("save_note", "get_notes")),
    (
        re.compile(r"\b(files?|folders?|directory|directories)\b", _I),
        ("read_file", "write_file", "list_directory", "send_file"),
    ),
    (re.compile(r"\b(web ?pages?|websites?|urls?|links?|browse)\b", _I), ("browse_url",)),
    (re.compile(r"\b(commands?|shell|terminal|server)\b", _I), ("run_command", "system_health")),
)


def claims_privacy_restriction(text: str) -> bool:
    return any(p.search(text) for p in PRIVACY_CLAIM_PATTERNS)


def claims_unsupported_capability(text: str, visible_tools: Collection[str]) -> bool:
    """
    True when the answer refuses or disclaims an action a visible tool performs.

    A generic privacy excuse counts whenever any tool is visible for the
    topic it mentions, or whenever account tools exist at all.
    """
    privacy = claims_privacy_restriction(text)
    if not privacy and not INABILITY_PATTERN.search(text):
        return False

    for topic, tools in ACTION_TOOLS:
        if topic.search(text) and any(tool in visible_tools for tool in tools):
            return True
    return privacy and any(name.startswith(("google_", "gmail_")) for name in visible_tools)


# ============================================================================
# Model routing
# ============================================================================

# Patterns carried over from the chat handler's planning hint
MULTI_STEP_MIN_CHARS = 50
MULTI_STEP_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\b(then|after that|and then|followed by|also|next)\b", _I),
    re.compile(r"\b(search|find|look up).{1,60}(save|store|note|remind|send)", _I),
    re.compile(r"\b(get|fetch|check|read).{1,60}(and|then|also)", _I),
    re.compile(r"\bfor each\b", _I),
    re.compile(r"step[s]?:", _I),
)

HIGH_STAKES_PATTERN = re.compile(
    r"\b(legal|lawsuit|contract|medical|medication|diagnos\w*|financ\w*|tax(es)?|invest\w*|"
    r"payments?|bank\w*|securit(y|ies)|production|passwords?|credentials?)\b",
    _I,
)
BROAD_SCOPE_PATTERN = re.compile(
    r"\b(all|every|entire|whole|everything|comprehensive|complete|full|across)\b", _I
)

LARGE_TOOLSET_THRESHOLD = 30
LONG_MESSAGE_CHARS = 200


def is_multi_step_request(text: str) -> bool:
    if len(text) < MULTI_STEP_MIN_CHARS:
        return False
    return any(p.search(text) for p in MULTI_STEP_PATTERNS)


def is_high_stakes_broad_request(text: str) -> bool:
    return bool(HIGH_STAKES_PATTERN.search(text) and BROAD_SCOPE_PATTERN.search(text))


def route_tier(text: str, visible_tool_count: int) -> ModelTier:
    """
    Pick the model tier for a run from the triggering user message.

    Args:
        text: Original user message
        visible_tool_count: Number of tools the caller can see this turn

    Returns:
        ModelTier.COMPLEX for multi-step, high-stakes broad, capability
        questions, or a long message against a large tool set; else FAST
    """
    if (
        is_multi_step_request(text)
        or is_high_stakes_broad_request(text)
        or is_capability_question(text)
        or (visible_tool_count > LARGE_TOOLSET_THRESHOLD and len(text) > LONG_MESSAGE_CHARS)
    ):
        return ModelTier.COMPLEX
    return ModelTier.FAST


# ============================================================================
# Policy object
# ============================================================================


class GuardPolicy:
    """
    The classifier set consulted by the orchestration loop.

    Subclass and override individual methods to tune heuristics without
    touching the loop.
    """

    capability_listing_tool = "google_capabilities"

    def is_leaked_tool_code(self, text: str) -> bool:
        return looks_like_leaked_tool_code(text)

    def needs_grounding(self, request: str) -> bool:
        return needs_grounding(request)

    def is_account_capability_query(self, request: str) -> bool:
        return is_account_capability_query(request)

    def claims_unsupported_capability(self, answer: str, visible_tools: Collection[str]) -> bool:
        return claims_unsupported_capability(answer, visible_tools)

    def route(self, request: str, visible_tool_count: int) -> ModelTier:
        return route_tier(request, visible_tool_count)
