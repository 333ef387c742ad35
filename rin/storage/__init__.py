"""
rin.storage - Persistence layer.

``Store`` is the protocol consumed by the chat handler and the tools;
``InMemoryStore`` and ``SQLStore`` implement it.
"""

from rin.storage.base import Note, Reminder, Store, UsageSummary
from rin.storage.memory import InMemoryStore
from rin.storage.sql import SQLStore

__all__ = [
    "InMemoryStore",
    "Note",
    "Reminder",
    "SQLStore",
    "Store",
    "UsageSummary",
]
