from __future__ import annotations

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class RemoteFetchError(RuntimeError):
    """A remote collection could not be fetched; the sync pass for that kind is aborted."""

    def __init__(self, service: str, message: str, status: int | None = None) -> None:
        super().__init__(f"{service}: {message}")
        self.service = service
        self.message = message
        self.status = status

    def to_dict(self) -> dict[str, Any]:
        return {"error": str(self), "status": self.status}


def build_client(
    *,
    base_url: str = "",
    headers: dict[str, str] | None = None,
    timeout_s: float = 30.0,
    transport: httpx.BaseTransport | None = None,
) -> httpx.Client:
    request_headers = {"Accept": "application/json"}
    if headers:
        request_headers.update(headers)
    return httpx.Client(
        base_url=base_url,
        headers=request_headers,
        timeout=timeout_s,
        transport=transport,
    )


def request_json(
    client: httpx.Client,
    service: str,
    method: str,
    url: str,
    *,
    params: dict[str, Any] | None = None,
    body: dict[str, Any] | None = None,
) -> dict[str, Any]:
    try:
        resp = client.request(method, url, params=params, json=body)
    except httpx.HTTPError as exc:
        logger.warning(
            "remote request failed",
            extra={"service": service, "url": url},
            exc_info=exc,
        )
        raise RemoteFetchError(service, f"request failed: {exc}") from exc
    status = int(resp.status_code)
    if status >= 400:
        snippet = resp.text[:240].strip()
        detail = f"http {status}: {snippet}" if snippet else f"http {status}"
        raise RemoteFetchError(service, detail, status)
    try:
        payload = resp.json()
    except ValueError as exc:
        snippet = resp.text[:240].strip()
        raise RemoteFetchError(
            service, f"non_json_response: {snippet}" if snippet else "non_json_response", status
        ) from exc
    if not isinstance(payload, dict):
        raise RemoteFetchError(
            service, f"unexpected_json_type: {type(payload).__name__}", status
        )
    return payload
