"""
rin.core.memory.facts - Fact Extraction

Pulls durable facts about the user out of one exchange. Facts are
re-injected verbatim into future system prompts, so every candidate passes
``is_safe_fact`` before it is returned.
"""

import json
import logging
import re

from pydantic import BaseModel, Field

from rin.core.cancellation import CancellationToken
from rin.errors import RunCancelledError
from rin.llm.models import Message

logger = logging.getLogger(__name__)

MAX_FACT_VALUE_CHARS = 200

FACT_KEY_PATTERN = re.compile(r"^[a-z_][a-z0-9_]*$")

# Prompt-injection phrases never stored as facts
INJECTION_DENYLIST: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"ignore\s+(all\s+)?(the\s+)?(previous|prior|above)\s+(instructions|prompts?|rules)",
        r"disregard\s+(all\s+)?(the\s+)?(previous|prior|above|your)\b",
        r"\byou\s+are\s+now\b",
        r"\bsystem\s*:",
        r"\bassistant\s*:",
        r"\bnew\s+instructions\b",
        r"\bact\s+as\b",
        r"\bjailbreak",
        r"\bdeveloper\s+mode\b",
        r"<\|",
        r"\[INST\]",
    )
)

EXTRACTION_PROMPT = (
    "Extract durable facts about the user from the snippet.\n"
    "Output ONLY valid JSON: an array of {key, value} objects with snake_case keys.\n"
    "If none, output exactly: []\n"
    "No explanation, no markdown, just the JSON array."
)

_FENCE_START = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_FENCE_END = re.compile(r"```\s*$")


class ExtractedFact(BaseModel):
    """A durable fact about the user, keyed per user."""

    key: str = Field(..., pattern=FACT_KEY_PATTERN.pattern)
    value: str = Field(..., min_length=1, max_length=MAX_FACT_VALUE_CHARS)


def is_safe_fact(key: str, value: str) -> bool:
    """
    Whether a fact may be stored and later injected into a system prompt.

    Args:
        key: Candidate key; must be snake_case
        value: Candidate value; non-empty, at most 200 characters, and free of
            prompt-injection phrases

    Returns:
        True if both key and value pass
    """
    if not isinstance(key, str) or not FACT_KEY_PATTERN.match(key):
        return False
    if not isinstance(value, str) or not value.strip() or len(value) > MAX_FACT_VALUE_CHARS:
        return False
    return not any(p.search(value) for p in INJECTION_DENYLIST)


def parse_facts(raw: str) -> list[ExtractedFact]:
    """Parse a model reply into safe facts; anything malformed yields []."""
    cleaned = _FENCE_END.sub("", _FENCE_START.sub("", raw.strip())).strip()
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError:
        return []
    if not isinstance(parsed, list):
        return []

    facts = []
    for item in parsed:
        if not isinstance(item, dict):
            continue
        key, value = item.get("key"), item.get("value")
        if isinstance(value, str):
            value = value.strip()
        if is_safe_fact(key, value):
            facts.append(ExtractedFact(key=key, value=value))
        else:
            logger.debug("Dropped unsafe or malformed fact candidate")
    return facts


class FactExtractor:
    """
    Extract durable user facts with a dedicated model call.

    Example:
        >>> extractor = FactExtractor(model_client)
        >>> facts = await extractor.extract("My favourite colour is blue", "Noted!")
        >>> [(f.key, f.value) for f in facts]
        [('favorite_color', 'blue')]
    """

    def __init__(self, model) -> None:
        self.model = model

    async def extract(
        self,
        user_text: str,
        assistant_text: str,
        *,
        cancel_token: CancellationToken | None = None,
    ) -> list[ExtractedFact]:
        """Return safe facts from one exchange, or [] on any model/parse failure."""
        snippet = f'User said: "{user_text}"\nRin replied: "{assistant_text}"'
        prompt = [
            Message(role="system", content=EXTRACTION_PROMPT),
            Message(role="user", content=snippet),
        ]
        try:
            raw = await self.model.chat(prompt, cancel_token=cancel_token)
        except RunCancelledError:
            raise
        except Exception as e:
            logger.warning(f"Fact extraction failed: {type(e).__name__}")
            return []
        return parse_facts(raw)
