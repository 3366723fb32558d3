from __future__ import annotations

import io
import json

import pytest

from devjournal.viewer_http import (
    InvalidJSONBody,
    query_flag,
    query_int,
    read_json_body,
    reject_cross_origin,
    send_json_response,
)


class DummyHandler:
    def __init__(self, body: bytes = b"", headers: dict[str, str] | None = None) -> None:
        self.headers = headers or {}
        self.rfile = io.BytesIO(body)
        self.wfile = io.BytesIO()
        self.status: int | None = None
        self.response_headers: list[tuple[str, str]] = []
        self.headers_ended = False

    def send_response(self, status: int) -> None:
        self.status = status

    def send_header(self, key: str, value: str) -> None:
        self.response_headers.append((key, value))

    def end_headers(self) -> None:
        self.headers_ended = True


def _header_value(handler: DummyHandler, name: str) -> str | None:
    for key, value in handler.response_headers:
        if key == name:
            return value
    return None


def test_send_json_response() -> None:
    handler = DummyHandler()
    payload = {"ok": True, "note": "café"}
    expected_body = json.dumps(payload, ensure_ascii=False).encode("utf-8")

    send_json_response(handler, payload, status=201)

    assert handler.status == 201
    assert _header_value(handler, "Content-Type") == "application/json; charset=utf-8"
    assert _header_value(handler, "Content-Length") == str(len(expected_body))
    assert handler.headers_ended is True
    assert handler.wfile.getvalue() == expected_body


def test_read_json_body() -> None:
    body = json.dumps({"includeCompleted": True}).encode("utf-8")
    handler = DummyHandler(body=body, headers={"Content-Length": str(len(body))})

    assert read_json_body(handler) == {"includeCompleted": True}


def test_read_json_body_empty_and_invalid() -> None:
    assert read_json_body(DummyHandler(headers={"Content-Length": "0"})) is None
    assert read_json_body(DummyHandler(body=b"  ", headers={"Content-Length": "2"})) is None

    with pytest.raises(InvalidJSONBody):
        read_json_body(DummyHandler(body=b"not-json", headers={"Content-Length": "8"}))
    with pytest.raises(InvalidJSONBody, match="object"):
        read_json_body(DummyHandler(body=b"[1]", headers={"Content-Length": "3"}))


def test_query_helpers() -> None:
    assert query_flag("includeDeleted=true", "includeDeleted") is True
    assert query_flag("includeDeleted=0", "includeDeleted") is False
    assert query_flag("", "includeDeleted") is False
    assert query_int("limit=50", "limit", 100, maximum=500) == 50
    assert query_int("limit=9999", "limit", 100, maximum=500) == 500
    assert query_int("limit=0", "limit", 100, maximum=500) == 1
    assert query_int("limit=abc", "limit", 100, maximum=500) == 100
    assert query_int("", "limit", 100, maximum=500) == 100


def test_reject_cross_origin_allows_loopback_origin() -> None:
    handler = DummyHandler(headers={"Origin": "http://127.0.0.1:38889"})
    assert reject_cross_origin(handler, missing_origin_policy="reject") is False
    assert handler.status is None


def test_reject_cross_origin_blocks_foreign_origin() -> None:
    handler = DummyHandler(headers={"Origin": "https://evil.example"})
    assert reject_cross_origin(handler) is True
    assert handler.status == 403
    assert json.loads(handler.wfile.getvalue()) == {"error": "forbidden"}


def test_missing_origin_policies() -> None:
    assert reject_cross_origin(DummyHandler(), missing_origin_policy="allow") is False
    assert reject_cross_origin(DummyHandler(), missing_origin_policy="reject") is True
    assert reject_cross_origin(DummyHandler(), missing_origin_policy="reject_if_unsafe") is False

    cross_site = DummyHandler(headers={"Sec-Fetch-Site": "cross-site"})
    assert reject_cross_origin(cross_site, missing_origin_policy="reject_if_unsafe") is True

    foreign_referer = DummyHandler(headers={"Referer": "https://evil.example/page"})
    assert reject_cross_origin(foreign_referer, missing_origin_policy="reject_if_unsafe") is True


def test_loopback_referer_with_path_is_safe() -> None:
    handler = DummyHandler(headers={"Referer": "http://localhost:38889/dashboard?tab=linear"})
    assert reject_cross_origin(handler, missing_origin_policy="reject_if_unsafe") is False


def test_origin_with_credentials_or_path_is_rejected() -> None:
    for origin in ("http://user@127.0.0.1", "http://127.0.0.1/app", "http://127.0.0.1:abc"):
        handler = DummyHandler(headers={"Origin": origin})
        assert reject_cross_origin(handler) is True, origin
