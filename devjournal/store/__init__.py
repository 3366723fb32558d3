from __future__ import annotations

from ._store import JournalStore
from .cache import CACHE_TABLES, LINEAR_ISSUES, LINEAR_PROJECTS, SLITE_NOTES
from .types import CachedState, CacheTable, JournalEntry, ProjectSummary
from .updates import CLEAR, KEEP, Clear, FieldUpdate, Keep, SetTo

__all__ = [
    "CACHE_TABLES",
    "CLEAR",
    "KEEP",
    "LINEAR_ISSUES",
    "LINEAR_PROJECTS",
    "SLITE_NOTES",
    "CacheTable",
    "CachedState",
    "Clear",
    "FieldUpdate",
    "JournalEntry",
    "JournalStore",
    "Keep",
    "ProjectSummary",
    "SetTo",
]
