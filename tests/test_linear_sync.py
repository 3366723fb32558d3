from typing import Any

import pytest

from devjournal.integrations import RemoteFetchError
from devjournal.store import LINEAR_ISSUES, LINEAR_PROJECTS, JournalStore
from devjournal.sync import sync_linear_data, sync_linear_issues, sync_linear_projects
from devjournal.sync.linear_sync import issue_is_open, issue_to_item, project_to_item


def _project(project_id: str, name: str, state: str = "started", **extra: Any) -> dict[str, Any]:
    project = {
        "id": project_id,
        "name": name,
        "description": "Rebuild the login service",
        "content": "Milestones: SSO, MFA, audit trail.",
        "state": state,
        "progress": 0.42,
        "targetDate": "2024-09-30",
        "url": f"https://linear.app/acme/project/{project_id}",
        "lead": {"id": "u1", "name": "Dana"},
        "teams": {"nodes": [{"id": "t1"}]},
        "members": {"nodes": [{"id": "u1", "name": "Dana"}, {"id": "u2", "name": "Lee"}]},
    }
    project.update(extra)
    return project


def _issue(issue_id: str, identifier: str, state: str = "In Progress") -> dict[str, Any]:
    return {
        "id": issue_id,
        "identifier": identifier,
        "title": f"Issue {identifier}",
        "description": f"Details for {identifier}",
        "priority": 2,
        "url": f"https://linear.app/acme/issue/{identifier}",
        "state": {"id": f"s-{state}", "name": state},
        "assignee": {"id": "u1", "name": "Dana"},
        "team": {"id": "t1", "name": "Core", "key": "ENG"},
        "project": {"id": "p1", "name": "Auth"},
        "parent": None,
    }


class FakeLinear:
    def __init__(
        self,
        projects: list[dict[str, Any]] | None = None,
        issues: list[dict[str, Any]] | None = None,
        fail_issues: bool = False,
    ) -> None:
        self.projects = projects or []
        self.issues = issues or []
        self.fail_issues = fail_issues

    def list_projects(self) -> list[dict[str, Any]]:
        return list(self.projects)

    def list_issues(self) -> list[dict[str, Any]]:
        if self.fail_issues:
            raise RemoteFetchError("linear", "http 500", 500)
        return list(self.issues)

    def close(self) -> None:
        pass


def test_project_to_item_maps_nested_fields() -> None:
    item = project_to_item(_project("p1", "Auth"))

    assert item.id == "p1"
    assert item.title == "Auth"
    assert item.summary_content == (
        "Rebuild the login service\n\nMilestones: SSO, MFA, audit trail."
    )
    assert item.snapshot["lead_id"] == "u1"
    assert item.snapshot["lead_name"] == "Dana"
    assert item.snapshot["team_ids"] == ["t1"]
    assert item.snapshot["member_ids"] == ["u1", "u2"]
    assert item.snapshot["target_date"] == "2024-09-30"


def test_issue_to_item_maps_nested_fields() -> None:
    item = issue_to_item(_issue("i1", "ENG-1"))

    assert item.snapshot["identifier"] == "ENG-1"
    assert item.snapshot["state_name"] == "In Progress"
    assert item.snapshot["team_key"] == "ENG"
    assert item.snapshot["project_id"] == "p1"
    assert item.snapshot["parent_id"] is None


@pytest.mark.parametrize(
    ("state", "expected"),
    [("In Progress", True), ("Todo", True), ("Done", False), ("Canceled", False)],
)
def test_issue_is_open(state: str, expected: bool) -> None:
    assert issue_is_open(_issue("i1", "ENG-1", state=state)) is expected


def test_sync_linear_data_counts(store: JournalStore) -> None:
    client = FakeLinear(
        projects=[_project("p1", "Auth"), _project("p2", "Billing")],
        issues=[_issue("i1", "ENG-1"), _issue("i2", "ENG-2"), _issue("i3", "ENG-3")],
    )

    result = sync_linear_data(store, client)

    assert result.to_dict() == {
        "projects": {"created": 2, "updated": 0, "deleted": 0, "total": 2},
        "issues": {"created": 3, "updated": 0, "deleted": 0, "total": 3},
    }
    row = store.get_cached(LINEAR_PROJECTS, "p1")
    assert row["team_ids"] == ["t1"]
    assert row["progress"] == pytest.approx(0.42)


def test_resync_unchanged_collection_is_noop(store: JournalStore) -> None:
    client = FakeLinear(projects=[_project("p1", "Auth")], issues=[_issue("i1", "ENG-1")])
    sync_linear_data(store, client)

    result = sync_linear_data(store, client)

    assert result.projects.to_dict() == {"created": 0, "updated": 0, "deleted": 0, "total": 1}
    assert result.issues.to_dict() == {"created": 0, "updated": 0, "deleted": 0, "total": 1}


def test_completed_items_are_filtered_unless_requested(store: JournalStore) -> None:
    client = FakeLinear(
        projects=[_project("p1", "Auth"), _project("p2", "Legacy", state="completed")],
        issues=[_issue("i1", "ENG-1"), _issue("i2", "ENG-2", state="Done")],
    )

    default = sync_linear_data(store, client)
    assert default.projects.created == 1
    assert default.issues.created == 1

    everything = sync_linear_data(store, client, include_completed=True)
    assert everything.projects.created == 1
    assert everything.issues.created == 1
    assert store.cache_stats(LINEAR_ISSUES)["active"] == 2


def test_project_that_closes_is_soft_deleted(store: JournalStore) -> None:
    sync_linear_projects(store, FakeLinear(projects=[_project("p1", "Auth")]))

    counts = sync_linear_projects(
        store, FakeLinear(projects=[_project("p1", "Auth", state="canceled")])
    )

    assert counts.deleted == 1
    assert store.get_cached(LINEAR_PROJECTS, "p1")["is_deleted"] is True


def test_fetch_failure_leaves_cache_untouched(store: JournalStore) -> None:
    sync_linear_issues(store, FakeLinear(issues=[_issue("i1", "ENG-1")]))

    with pytest.raises(RemoteFetchError):
        sync_linear_issues(store, FakeLinear(fail_issues=True))

    assert store.cache_stats(LINEAR_ISSUES) == {"total": 1, "active": 1, "deleted": 0}


def test_items_without_id_are_ignored(store: JournalStore) -> None:
    counts = sync_linear_issues(
        store, FakeLinear(issues=[_issue("i1", "ENG-1"), {"identifier": "ENG-9"}])
    )
    assert counts.total == 1
