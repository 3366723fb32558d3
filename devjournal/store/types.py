from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class CacheTable:
    name: str
    columns: tuple[str, ...]
    json_columns: frozenset[str] = frozenset()
    order_by: str = "updated_at DESC"


@dataclass
class CachedState:
    id: str
    has_summary: bool
    is_deleted: bool
    snapshot: dict[str, Any] = field(default_factory=dict)


@dataclass
class JournalEntry:
    commit_hash: str
    repository: str
    branch: str
    author: str
    date: str
    why: str
    what_changed: str
    decisions: str = ""
    technologies: str = ""
    summary: str | None = None


@dataclass
class ProjectSummary:
    repository: str
    git_url: str | None = None
    summary: str | None = None
    purpose: str | None = None
    architecture: str | None = None
    key_decisions: str | None = None
    technologies: str | None = None
    status: str | None = None
    linear_project_id: str | None = None
    linear_issue_id: str | None = None
