from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from ..store import LINEAR_ISSUES, LINEAR_PROJECTS, JournalStore
from .reconcile import EntityKind, RemoteItem, SummaryRunner, SyncCounts, reconcile

PROJECTS = EntityKind(
    name="linear_projects", table=LINEAR_PROJECTS, summary_type="linear_project"
)
ISSUES = EntityKind(name="linear_issues", table=LINEAR_ISSUES, summary_type="linear_issue")

CLOSED_PROJECT_STATES = {"completed", "canceled"}
CLOSED_ISSUE_STATE_MARKERS = ("done", "completed", "canceled")


class LinearSource(Protocol):
    def list_projects(self) -> list[dict[str, Any]]: ...

    def list_issues(self) -> list[dict[str, Any]]: ...


@dataclass
class LinearSyncResult:
    projects: SyncCounts = field(default_factory=SyncCounts)
    issues: SyncCounts = field(default_factory=SyncCounts)

    def to_dict(self) -> dict[str, dict[str, int]]:
        return {"projects": self.projects.to_dict(), "issues": self.issues.to_dict()}


def _nested(node: dict[str, Any], key: str, attr: str) -> Any:
    value = node.get(key)
    if isinstance(value, dict):
        return value.get(attr)
    return None


def _node_ids(node: dict[str, Any], key: str) -> list[str]:
    connection = node.get(key)
    if not isinstance(connection, dict):
        return []
    nodes = connection.get("nodes") or []
    return [str(n["id"]) for n in nodes if isinstance(n, dict) and n.get("id")]


def project_is_open(project: dict[str, Any]) -> bool:
    return (project.get("state") or "") not in CLOSED_PROJECT_STATES


def issue_is_open(issue: dict[str, Any]) -> bool:
    state_name = str(_nested(issue, "state", "name") or "").lower()
    return not any(marker in state_name for marker in CLOSED_ISSUE_STATE_MARKERS)


def project_to_item(project: dict[str, Any]) -> RemoteItem:
    description = project.get("description") or None
    content = project.get("content") or None
    return RemoteItem(
        id=str(project["id"]),
        title=project.get("name"),
        summary_content="\n\n".join(part for part in (description, content) if part),
        snapshot={
            "name": project.get("name") or "",
            "description": description,
            "content": content,
            "state": project.get("state") or None,
            "progress": project.get("progress"),
            "target_date": project.get("targetDate") or None,
            "start_date": project.get("startDate") or None,
            "url": project.get("url") or None,
            "lead_id": _nested(project, "lead", "id"),
            "lead_name": _nested(project, "lead", "name"),
            "team_ids": _node_ids(project, "teams"),
            "member_ids": _node_ids(project, "members"),
        },
    )


def issue_to_item(issue: dict[str, Any]) -> RemoteItem:
    description = issue.get("description") or None
    return RemoteItem(
        id=str(issue["id"]),
        title=issue.get("title"),
        summary_content=description or "",
        snapshot={
            "identifier": issue.get("identifier") or "",
            "title": issue.get("title") or "",
            "description": description,
            "url": issue.get("url") or None,
            "priority": issue.get("priority"),
            "state_id": _nested(issue, "state", "id"),
            "state_name": _nested(issue, "state", "name"),
            "assignee_id": _nested(issue, "assignee", "id"),
            "assignee_name": _nested(issue, "assignee", "name"),
            "team_id": _nested(issue, "team", "id"),
            "team_name": _nested(issue, "team", "name"),
            "team_key": _nested(issue, "team", "key"),
            "project_id": _nested(issue, "project", "id"),
            "project_name": _nested(issue, "project", "name"),
            "parent_id": _nested(issue, "parent", "id"),
        },
    )


def sync_linear_projects(
    store: JournalStore,
    client: LinearSource,
    summaries: SummaryRunner | None = None,
    *,
    include_completed: bool = False,
) -> SyncCounts:
    projects = [p for p in client.list_projects() if isinstance(p, dict) and p.get("id")]
    if not include_completed:
        projects = [p for p in projects if project_is_open(p)]
    return reconcile(store, PROJECTS, [project_to_item(p) for p in projects], summaries)


def sync_linear_issues(
    store: JournalStore,
    client: LinearSource,
    summaries: SummaryRunner | None = None,
    *,
    include_completed: bool = False,
) -> SyncCounts:
    issues = [i for i in client.list_issues() if isinstance(i, dict) and i.get("id")]
    if not include_completed:
        issues = [i for i in issues if issue_is_open(i)]
    return reconcile(store, ISSUES, [issue_to_item(i) for i in issues], summaries)


def sync_linear_data(
    store: JournalStore,
    client: LinearSource,
    summaries: SummaryRunner | None = None,
    *,
    include_completed: bool = False,
) -> LinearSyncResult:
    projects = sync_linear_projects(
        store, client, summaries, include_completed=include_completed
    )
    issues = sync_linear_issues(store, client, summaries, include_completed=include_completed)
    return LinearSyncResult(projects=projects, issues=issues)
