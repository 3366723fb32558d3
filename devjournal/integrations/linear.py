from __future__ import annotations

from typing import Any

import httpx

from ..config import DevJournalConfig
from .http import RemoteFetchError, build_client, request_json

SERVICE = "linear"
DEFAULT_API_URL = "https://api.linear.app/graphql"
# Upper bound on pages fetched per collection.
MAX_PAGES = 100

VIEWER_QUERY = """
query Viewer {
  viewer {
    id
    name
    email
    teams { nodes { id name key } }
  }
}
"""

PROJECTS_QUERY = """
query Projects($first: Int!, $after: String, $filter: ProjectFilter) {
  projects(first: $first, after: $after, filter: $filter) {
    nodes {
      id
      name
      description
      content
      state
      progress
      targetDate
      startDate
      url
      lead { id name }
      teams { nodes { id } }
      members { nodes { id name } }
    }
    pageInfo { hasNextPage endCursor }
  }
}
"""

ISSUES_QUERY = """
query Issues($first: Int!, $after: String, $filter: IssueFilter) {
  issues(first: $first, after: $after, filter: $filter) {
    nodes {
      id
      identifier
      title
      description
      priority
      url
      state { id name }
      assignee { id name }
      project { id name }
      team { id name key }
      parent { id }
    }
    pageInfo { hasNextPage endCursor }
  }
}
"""


class LinearClient:
    def __init__(
        self,
        api_key: str,
        *,
        user_id: str | None = None,
        api_url: str = DEFAULT_API_URL,
        page_size: int = 50,
        timeout_s: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if not api_key:
            raise RuntimeError("Linear API key is required")
        self.user_id = user_id or None
        self.api_url = api_url
        self.page_size = max(1, min(int(page_size), 250))
        self._client = build_client(
            headers={"Authorization": api_key, "Content-Type": "application/json"},
            timeout_s=timeout_s,
            transport=transport,
        )

    @classmethod
    def from_config(
        cls, cfg: DevJournalConfig, *, transport: httpx.BaseTransport | None = None
    ) -> LinearClient:
        if not cfg.linear_api_key:
            raise RuntimeError("linear_api_key is not configured")
        return cls(
            cfg.linear_api_key,
            user_id=cfg.linear_user_id,
            api_url=cfg.linear_api_url,
            page_size=cfg.linear_page_size,
            timeout_s=cfg.http_timeout_s,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> LinearClient:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def _query(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        payload = request_json(
            self._client,
            SERVICE,
            "POST",
            self.api_url,
            body={"query": query, "variables": variables or {}},
        )
        errors = payload.get("errors")
        if errors:
            first = errors[0] if isinstance(errors, list) and errors else {}
            message = first.get("message") if isinstance(first, dict) else None
            raise RemoteFetchError(SERVICE, f"graphql error: {message or errors}")
        data = payload.get("data")
        if not isinstance(data, dict):
            raise RemoteFetchError(SERVICE, "response missing data")
        return data

    def _paginate(
        self, query: str, field: str, filter_: dict[str, Any] | None
    ) -> list[dict[str, Any]]:
        nodes: list[dict[str, Any]] = []
        after: str | None = None
        for _ in range(MAX_PAGES):
            data = self._query(query, {"first": self.page_size, "after": after, "filter": filter_})
            connection = data.get(field)
            if not isinstance(connection, dict):
                raise RemoteFetchError(SERVICE, f"response missing {field}")
            nodes.extend(node for node in connection.get("nodes") or [] if isinstance(node, dict))
            page_info = connection.get("pageInfo") or {}
            after = page_info.get("endCursor")
            if not page_info.get("hasNextPage") or not after:
                return nodes
        # Partial collections are never returned.
        raise RemoteFetchError(SERVICE, f"{field} pagination exceeded {MAX_PAGES} pages")

    def get_viewer(self) -> dict[str, Any]:
        data = self._query(VIEWER_QUERY)
        viewer = data.get("viewer") or {}
        return {
            "id": viewer.get("id"),
            "name": viewer.get("name"),
            "email": viewer.get("email"),
            "teams": (viewer.get("teams") or {}).get("nodes") or [],
        }

    def list_projects(self, *, show_all: bool = False) -> list[dict[str, Any]]:
        """Every project visible to the key; member-filtered when a user id is configured."""
        filter_: dict[str, Any] | None = None
        if self.user_id and not show_all:
            filter_ = {"members": {"id": {"eq": self.user_id}}}
        return self._paginate(PROJECTS_QUERY, "projects", filter_)

    def list_issues(self, *, show_all: bool = False) -> list[dict[str, Any]]:
        filter_: dict[str, Any] | None = None
        if self.user_id and not show_all:
            filter_ = {"assignee": {"id": {"eq": self.user_id}}}
        return self._paginate(ISSUES_QUERY, "issues", filter_)
