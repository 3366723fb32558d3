import json

import httpx
import pytest

from devjournal.config import DevJournalConfig
from devjournal.integrations import DocumentsClient, LinearClient, RemoteFetchError, SliteClient
from devjournal.integrations import linear as linear_module


def _graphql_page(field: str, nodes: list[dict], cursor: str | None) -> dict:
    return {
        "data": {
            field: {
                "nodes": nodes,
                "pageInfo": {"hasNextPage": cursor is not None, "endCursor": cursor},
            }
        }
    }


def test_linear_paginates_and_sends_filter() -> None:
    requests: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        requests.append(body)
        assert request.headers["Authorization"] == "lin_api_test"
        after = body["variables"]["after"]
        if after is None:
            return httpx.Response(200, json=_graphql_page("issues", [{"id": "i1"}], "c1"))
        return httpx.Response(200, json=_graphql_page("issues", [{"id": "i2"}], None))

    client = LinearClient(
        "lin_api_test", user_id="u1", page_size=1, transport=httpx.MockTransport(handler)
    )

    issues = client.list_issues()

    assert [issue["id"] for issue in issues] == ["i1", "i2"]
    assert requests[0]["variables"]["filter"] == {"assignee": {"id": {"eq": "u1"}}}
    assert requests[0]["variables"]["first"] == 1
    assert requests[1]["variables"]["after"] == "c1"


def test_linear_show_all_skips_member_filter() -> None:
    seen: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        return httpx.Response(200, json=_graphql_page("projects", [{"id": "p1"}], None))

    client = LinearClient("key", user_id="u1", transport=httpx.MockTransport(handler))

    assert client.list_projects(show_all=True) == [{"id": "p1"}]
    assert seen[0]["variables"]["filter"] is None


def test_linear_graphql_errors_raise() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"errors": [{"message": "Authentication required"}]})

    client = LinearClient("key", transport=httpx.MockTransport(handler))

    with pytest.raises(RemoteFetchError, match="Authentication required"):
        client.list_projects()


def test_linear_http_error_carries_status() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, text="unauthorized")

    client = LinearClient("key", transport=httpx.MockTransport(handler))

    with pytest.raises(RemoteFetchError) as excinfo:
        client.get_viewer()
    assert excinfo.value.status == 401
    assert excinfo.value.to_dict()["status"] == 401


def test_linear_transport_error_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = LinearClient("key", transport=httpx.MockTransport(handler))

    with pytest.raises(RemoteFetchError, match="request failed"):
        client.list_issues()


def test_linear_pagination_limit_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(linear_module, "MAX_PAGES", 2)

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=_graphql_page("issues", [{"id": "i"}], "more"))

    client = LinearClient("key", transport=httpx.MockTransport(handler))

    with pytest.raises(RemoteFetchError, match="pagination exceeded"):
        client.list_issues()


def test_linear_from_config_requires_key() -> None:
    with pytest.raises(RuntimeError, match="linear_api_key"):
        LinearClient.from_config(DevJournalConfig())


def test_slite_follows_cursor_and_fetches_note() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["x-slite-api-key"] == "slite-key"
        if request.url.path == "/v1/notes":
            if request.url.params.get("cursor") == "next":
                return httpx.Response(
                    200, json={"notes": [{"id": "n2"}], "hasNextPage": False, "nextCursor": None}
                )
            return httpx.Response(
                200, json={"notes": [{"id": "n1"}], "hasNextPage": True, "nextCursor": "next"}
            )
        if request.url.path == "/v1/notes/n1":
            assert request.url.params.get("format") == "md"
            return httpx.Response(200, json={"id": "n1", "content": "# Hello"})
        return httpx.Response(404)

    client = SliteClient("slite-key", transport=httpx.MockTransport(handler))

    assert [note["id"] for note in client.list_notes()] == ["n1", "n2"]
    assert client.get_note("n1")["content"] == "# Hello"


def test_slite_non_json_response_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>maintenance</html>")

    client = SliteClient("slite-key", transport=httpx.MockTransport(handler))

    with pytest.raises(RemoteFetchError, match="non_json_response"):
        client.list_notes()


def test_slite_page_limit_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200, json={"notes": [{"id": "n"}], "hasNextPage": True, "nextCursor": "again"}
        )

    client = SliteClient("slite-key", max_pages=3, transport=httpx.MockTransport(handler))

    with pytest.raises(RemoteFetchError, match="exceeded 3 pages"):
        client.list_notes()


def test_documents_client_lists_documents() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/documents"
        assert request.url.params.get("limit") == "2"
        return httpx.Response(
            200,
            json={"documents": [{"slug": "a"}, {"slug": "b"}, {"slug": "c"}, "junk"]},
        )

    client = DocumentsClient("http://docs.local", transport=httpx.MockTransport(handler))

    assert client.list_documents(limit=2) == [{"slug": "a"}, {"slug": "b"}]


def test_documents_client_is_optional() -> None:
    assert DocumentsClient.from_config(DevJournalConfig()) is None
