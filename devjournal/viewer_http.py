from __future__ import annotations

import json
from http.server import BaseHTTPRequestHandler
from typing import Any, Literal
from urllib.parse import SplitResult, parse_qs, urlsplit

LOOPBACK_HOSTS = frozenset({"127.0.0.1", "localhost", "::1"})
SAFE_FETCH_SITES = frozenset({"same-origin", "same-site", "none"})


def _loopback_parts(url: str) -> SplitResult | None:
    """Split ``url`` when it is plain http on a loopback host without credentials."""
    try:
        parts = urlsplit(url)
        host = parts.hostname
        _ = parts.port
    except ValueError:
        return None
    if parts.scheme != "http" or host not in LOOPBACK_HOSTS:
        return None
    if parts.username is not None or parts.password is not None:
        return None
    return parts


def is_loopback_origin(origin: str) -> bool:
    parts = _loopback_parts(origin)
    if parts is None:
        return False
    return parts.path in ("", "/") and not (parts.query or parts.fragment)


def _is_unsafe_missing_origin(handler: BaseHTTPRequestHandler) -> bool:
    fetch_site = (handler.headers.get("Sec-Fetch-Site") or "").strip().lower()
    if fetch_site and fetch_site not in SAFE_FETCH_SITES:
        return True
    referer = handler.headers.get("Referer")
    return bool(referer) and _loopback_parts(referer) is None


def send_json_response(
    handler: BaseHTTPRequestHandler,
    payload: dict,
    status: int = 200,
) -> None:
    body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
    handler.send_response(status)
    handler.send_header("Content-Type", "application/json; charset=utf-8")
    handler.send_header("Content-Length", str(len(body)))
    handler.end_headers()
    handler.wfile.write(body)


class InvalidJSONBody(ValueError):
    pass


def read_json_body(handler: BaseHTTPRequestHandler) -> dict[str, Any] | None:
    """Return the decoded JSON object, None for an empty body.

    Raises InvalidJSONBody when the body is present but is not a JSON object.
    """
    length = int(handler.headers.get("Content-Length", "0") or 0)
    raw = handler.rfile.read(length).decode("utf-8") if length else ""
    if not raw.strip():
        return None
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise InvalidJSONBody("invalid json body") from exc
    if not isinstance(payload, dict):
        raise InvalidJSONBody("json body must be an object")
    return payload


def query_flag(query: str, name: str, default: bool = False) -> bool:
    values = parse_qs(query).get(name)
    if not values:
        return default
    return values[0].strip().lower() in {"1", "true", "yes", "on"}


def query_int(query: str, name: str, default: int, *, minimum: int = 1, maximum: int) -> int:
    values = parse_qs(query).get(name)
    if not values:
        return default
    try:
        value = int(values[0])
    except ValueError:
        return default
    return max(minimum, min(value, maximum))


MissingOriginPolicy = Literal["allow", "reject", "reject_if_unsafe"]


def reject_cross_origin(
    handler: BaseHTTPRequestHandler,
    *,
    missing_origin_policy: MissingOriginPolicy = "allow",
) -> bool:
    origin = handler.headers.get("Origin")
    if not origin:
        if missing_origin_policy == "allow":
            return False
        if missing_origin_policy == "reject_if_unsafe" and not _is_unsafe_missing_origin(handler):
            return False
        send_json_response(handler, {"error": "forbidden"}, status=403)
        return True
    if is_loopback_origin(origin):
        return False
    send_json_response(handler, {"error": "forbidden"}, status=403)
    return True
