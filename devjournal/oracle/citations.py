from __future__ import annotations

import re
from dataclasses import asdict, dataclass

from .index import KnowledgeIndex

COMMIT_HASH_RE = re.compile(r"\b[a-f0-9]{7,40}\b", re.IGNORECASE)
ISSUE_IDENTIFIER_RE = re.compile(r"\b[A-Z]{2,5}-\d+\b")

CITATION_TYPES = ("journal_entry", "linear_issue", "linear_project", "project_summary")


@dataclass(frozen=True)
class Citation:
    type: str
    identifier: str
    title: str | None = None

    def to_dict(self) -> dict[str, str | None]:
        return asdict(self)


def extract_sources(answer: str, index: KnowledgeIndex) -> list[Citation]:
    """Find index items referenced by ``answer``.

    Matchers run in a fixed order (commit hashes, issue identifiers, project
    names, repository names) and the result keeps that order. Each
    ``(type, identifier)`` pair appears once.
    """
    sources: list[Citation] = []
    seen: set[tuple[str, str]] = set()

    def add(kind: str, identifier: str, title: str | None) -> None:
        key = (kind, identifier)
        if key in seen:
            return
        seen.add(key)
        sources.append(Citation(type=kind, identifier=identifier, title=title))

    if not answer:
        return sources

    for match in COMMIT_HASH_RE.findall(answer):
        prefix = match.lower()
        for entry in index.journal_entries:
            commit_hash = str(entry.get("commit_hash") or "")
            if commit_hash.lower().startswith(prefix):
                add("journal_entry", commit_hash, (entry.get("why") or "")[:50] or None)
                break

    issues_by_identifier = {
        str(issue["identifier"]): issue for issue in index.linear_issues if issue.get("identifier")
    }
    for identifier in ISSUE_IDENTIFIER_RE.findall(answer):
        issue = issues_by_identifier.get(identifier)
        if issue is not None:
            add("linear_issue", identifier, issue.get("title"))

    for project in index.linear_projects:
        name = project.get("name")
        if name and name in answer:
            add("linear_project", str(project["id"]), name)

    for summary in index.project_summaries:
        repository = summary.get("repository")
        if repository and repository in answer:
            add("project_summary", repository, repository)

    return sources
