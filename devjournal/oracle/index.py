"""Knowledge index: a bounded snapshot of local journal data and cached remote items.

Each slice is loaded independently. A slice that fails to load is logged,
left empty and its name recorded in ``failed_sources``; the others are kept.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from typing import Any, Protocol

from ..config import DevJournalConfig
from ..store import LINEAR_ISSUES, LINEAR_PROJECTS, SLITE_NOTES, JournalStore

logger = logging.getLogger(__name__)

SLICE_NAMES = (
    "project_summaries",
    "journal_entries",
    "linear_issues",
    "linear_projects",
    "slite_notes",
    "documents",
    "attachments",
)


class DocumentSource(Protocol):
    def list_documents(self, *, limit: int = 50) -> list[dict[str, Any]]: ...


@dataclass
class IndexLimits:
    project_summaries: int = 50
    entries_per_repository: int = 30
    repository_fanout: int = 5
    entries_per_fanout_repository: int = 10
    issues: int = 100
    projects: int = 50
    notes: int = 50
    documents: int = 50
    attachment_entries: int = 10

    @classmethod
    def from_config(cls, cfg: DevJournalConfig) -> IndexLimits:
        return cls(
            project_summaries=cfg.index_project_summaries,
            entries_per_repository=cfg.index_entries_per_repository,
            repository_fanout=cfg.index_repository_fanout,
            entries_per_fanout_repository=cfg.index_entries_per_fanout_repository,
            issues=cfg.index_issues,
            projects=cfg.index_projects,
            notes=cfg.index_notes,
            documents=cfg.index_documents,
            attachment_entries=cfg.index_attachment_entries,
        )


@dataclass
class KnowledgeIndex:
    repository: str | None = None
    project_summaries: list[dict[str, Any]] = field(default_factory=list)
    journal_entries: list[dict[str, Any]] = field(default_factory=list)
    linear_issues: list[dict[str, Any]] = field(default_factory=list)
    linear_projects: list[dict[str, Any]] = field(default_factory=list)
    slite_notes: list[dict[str, Any]] = field(default_factory=list)
    documents: list[dict[str, Any]] = field(default_factory=list)
    attachments: list[dict[str, Any]] = field(default_factory=list)
    failed_sources: list[str] = field(default_factory=list)

    def counts(self) -> dict[str, int]:
        return {name: len(getattr(self, name)) for name in SLICE_NAMES}

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _load_slice(
    name: str, loader: Callable[[], list[dict[str, Any]]], failed: list[str]
) -> list[dict[str, Any]]:
    try:
        return loader()
    except Exception as exc:
        logger.warning("knowledge index slice failed", extra={"slice": name}, exc_info=exc)
        failed.append(name)
        return []


def _project_summaries(
    store: JournalStore, repository: str | None, limits: IndexLimits
) -> list[dict[str, Any]]:
    rows = store.list_project_summaries(repository=repository, limit=limits.project_summaries)
    return [
        {
            "repository": row["repository"],
            "summary": row.get("summary"),
            "status": row.get("status"),
            "technologies": row.get("technologies"),
            "updated_at": row.get("updated_at"),
            "entry_count": int(row.get("entry_count") or 0),
            "linear_project_id": row.get("linear_project_id"),
            "linear_issue_id": row.get("linear_issue_id"),
        }
        for row in rows
    ]


def _entry_index(row: dict[str, Any]) -> dict[str, Any]:
    return {
        "commit_hash": row["commit_hash"],
        "repository": row["repository"],
        "branch": row["branch"],
        "date": row["date"],
        "summary": row.get("summary") or None,
        "why": row.get("why") or "",
    }


def _journal_entries(
    store: JournalStore,
    repository: str | None,
    summaries: list[dict[str, Any]],
    limits: IndexLimits,
) -> list[dict[str, Any]]:
    if repository:
        rows = store.entries_by_repository(repository, limit=limits.entries_per_repository)
        return [_entry_index(row) for row in rows]
    entries: list[dict[str, Any]] = []
    for summary in summaries[: limits.repository_fanout]:
        rows = store.entries_by_repository(
            summary["repository"], limit=limits.entries_per_fanout_repository
        )
        entries.extend(_entry_index(row) for row in rows)
    return entries


def _issue_index(row: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": row["id"],
        "identifier": row["identifier"],
        "title": row["title"],
        "summary": row.get("summary") or None,
        "state_name": row.get("state_name"),
        "priority": row.get("priority"),
        "project_name": row.get("project_name"),
    }


def _linear_issues(
    store: JournalStore, repository: str | None, limits: IndexLimits
) -> list[dict[str, Any]]:
    if not repository:
        rows = store.list_cached(LINEAR_ISSUES, limit=limits.issues)
        return [_issue_index(row) for row in rows]
    # Scoped to the Linear project (or single issue) linked from the repository.
    project = store.get_project_summary(repository)
    if not project:
        return []
    if project.get("linear_project_id"):
        rows = store.list_cached(
            LINEAR_ISSUES,
            limit=limits.issues,
            where={"project_id": project["linear_project_id"]},
        )
        return [_issue_index(row) for row in rows]
    issue_ref = project.get("linear_issue_id")
    if issue_ref:
        rows = store.list_cached(LINEAR_ISSUES, limit=1, where={"identifier": issue_ref})
        if not rows:
            rows = store.list_cached(LINEAR_ISSUES, limit=1, where={"id": issue_ref})
        return [_issue_index(row) for row in rows]
    return []


def _linear_projects(store: JournalStore, limits: IndexLimits) -> list[dict[str, Any]]:
    return [
        {
            "id": row["id"],
            "name": row["name"],
            "summary": row.get("summary") or None,
            "state": row.get("state"),
            "progress": row.get("progress"),
        }
        for row in store.list_cached(LINEAR_PROJECTS, limit=limits.projects)
    ]


def _slite_notes(store: JournalStore, limits: IndexLimits) -> list[dict[str, Any]]:
    return [
        {
            "id": row["id"],
            "title": row["title"],
            "summary": row.get("summary") or None,
            "parent_note_id": row.get("parent_note_id"),
            "last_edited_at": row.get("last_edited_at"),
        }
        for row in store.list_cached(SLITE_NOTES, limit=limits.notes)
    ]


def _documents(
    documents: DocumentSource | None, limits: IndexLimits, deep: bool
) -> list[dict[str, Any]]:
    if documents is None:
        return []
    items: list[dict[str, Any]] = []
    for doc in documents.list_documents(limit=limits.documents)[: limits.documents]:
        item = {
            "slug": doc.get("slug") or str(doc.get("id") or ""),
            "type": doc.get("type") or "document",
            "title": doc.get("title") or "",
            "summary": doc.get("summary") or None,
            "language": doc.get("language") or None,
        }
        if deep:
            item["content"] = doc.get("content") or ""
        items.append(item)
    return items


def _attachments(
    store: JournalStore, entries: list[dict[str, Any]], limits: IndexLimits
) -> list[dict[str, Any]]:
    attachments: list[dict[str, Any]] = []
    for entry in entries[: limits.attachment_entries]:
        for row in store.attachments_for_commit(entry["commit_hash"]):
            attachments.append(
                {
                    "id": row["id"],
                    "commit_hash": entry["commit_hash"],
                    "filename": row["filename"],
                    "mime_type": row["mime_type"],
                    "description": row.get("description"),
                }
            )
    return attachments


def build_index(
    store: JournalStore,
    repository: str | None = None,
    *,
    documents: DocumentSource | None = None,
    limits: IndexLimits | None = None,
    deep: bool = False,
) -> KnowledgeIndex:
    limits = limits or IndexLimits()
    repository = repository or None
    failed: list[str] = []
    index = KnowledgeIndex(repository=repository, failed_sources=failed)
    index.project_summaries = _load_slice(
        "project_summaries", lambda: _project_summaries(store, repository, limits), failed
    )
    index.journal_entries = _load_slice(
        "journal_entries",
        lambda: _journal_entries(store, repository, index.project_summaries, limits),
        failed,
    )
    index.linear_issues = _load_slice(
        "linear_issues", lambda: _linear_issues(store, repository, limits), failed
    )
    index.linear_projects = _load_slice(
        "linear_projects", lambda: _linear_projects(store, limits), failed
    )
    index.slite_notes = _load_slice("slite_notes", lambda: _slite_notes(store, limits), failed)
    index.documents = _load_slice("documents", lambda: _documents(documents, limits, deep), failed)
    index.attachments = _load_slice(
        "attachments", lambda: _attachments(store, index.journal_entries, limits), failed
    )
    return index


def format_index_for_prompt(index: KnowledgeIndex, deep: bool = False) -> str:
    lines: list[str] = []

    if index.project_summaries:
        lines.append("## Project Summaries (Entry 0)")
        for ps in index.project_summaries:
            lines.append("")
            lines.append(f"### {ps['repository']}")
            lines.append(f"- Summary: {ps.get('summary') or 'Not set'}")
            lines.append(f"- Status: {ps.get('status') or 'Unknown'}")
            lines.append(f"- Technologies: {ps.get('technologies') or 'Not listed'}")
            lines.append(
                f"- Entries: {ps.get('entry_count') or 0}, Updated: {ps.get('updated_at')}"
            )

    if index.journal_entries:
        lines.extend(["", "## Recent Journal Entries"])
        for entry in index.journal_entries:
            text = entry.get("summary") or (entry.get("why") or "")[:100] or "No summary"
            lines.append("")
            lines.append(
                f"- **{entry['commit_hash'][:7]}** "
                f"({entry['repository']}/{entry['branch']}) [{entry['date']}]"
            )
            lines.append(f"  {text}")

    if index.linear_issues:
        lines.extend(["", "## Linear Issues"])
        for issue in index.linear_issues:
            state = issue.get("state_name") or "No state"
            line = f"- **{issue['identifier']}**: {issue['title']} [{state}]"
            if issue.get("project_name"):
                line += f" (Project: {issue['project_name']})"
            lines.append(line)
            if issue.get("summary"):
                lines.append(f"  {issue['summary']}")

    if index.linear_projects:
        lines.extend(["", "## Linear Projects"])
        for project in index.linear_projects:
            line = f"- **{project['name']}** [{project.get('state') or 'Unknown'}]"
            if project.get("progress") is not None:
                line += f" ({round(float(project['progress']) * 100)}% complete)"
            lines.append(line)
            if project.get("summary"):
                lines.append(f"  {project['summary']}")

    if index.slite_notes:
        lines.extend(["", "## Slite Notes"])
        for note in index.slite_notes:
            lines.append(f"- **{note['title']}** ({note['id']})")
            if note.get("summary"):
                lines.append(f"  {note['summary']}")

    if index.documents:
        lines.extend(["", "## Documents"])
        for doc in index.documents:
            lines.append(f"- **{doc['slug']}** ({doc['type']}): {doc['title']}")
            if deep and doc.get("content"):
                lines.append(f"  {doc['content'][:500]}")
            elif doc.get("summary"):
                lines.append(f"  {doc['summary']}")

    if index.attachments:
        lines.extend(["", "## Attachments"])
        for att in index.attachments:
            line = f"- {att['filename']} ({att['mime_type']}) - {att['commit_hash'][:7]}"
            if att.get("description"):
                line += f": {att['description']}"
            lines.append(line)

    return "\n".join(lines).strip() + ("\n" if lines else "")
