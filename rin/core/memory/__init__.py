"""
rin.core.memory - Conversation Memory

- HistoryCompressor: bounded context via summaries of older turns
- FactExtractor: sanitized durable facts about the user
"""

from rin.core.memory.compressor import (
    COMPRESS_THRESHOLD,
    RECENT_TURNS,
    SUMMARY_FALLBACK,
    SUMMARY_PREFIX,
    HistoryCompressor,
)
from rin.core.memory.facts import ExtractedFact, FactExtractor, is_safe_fact, parse_facts

__all__ = [
    "COMPRESS_THRESHOLD",
    "RECENT_TURNS",
    "SUMMARY_FALLBACK",
    "SUMMARY_PREFIX",
    "ExtractedFact",
    "FactExtractor",
    "HistoryCompressor",
    "is_safe_fact",
    "parse_facts",
]
