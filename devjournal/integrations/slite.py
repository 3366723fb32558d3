from __future__ import annotations

from typing import Any
from urllib.parse import quote

import httpx

from ..config import DevJournalConfig
from .http import RemoteFetchError, build_client, request_json

SERVICE = "slite"
DEFAULT_API_URL = "https://api.slite.com/v1"


class SliteClient:
    def __init__(
        self,
        api_key: str,
        *,
        api_url: str = DEFAULT_API_URL,
        max_pages: int = 20,
        timeout_s: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if not api_key:
            raise RuntimeError("Slite API key is required")
        self.api_url = api_url.rstrip("/")
        self.max_pages = max(1, int(max_pages))
        self._client = build_client(
            base_url=self.api_url,
            headers={"x-slite-api-key": api_key, "Content-Type": "application/json"},
            timeout_s=timeout_s,
            transport=transport,
        )

    @classmethod
    def from_config(
        cls, cfg: DevJournalConfig, *, transport: httpx.BaseTransport | None = None
    ) -> SliteClient:
        if not cfg.slite_api_key:
            raise RuntimeError("slite_api_key is not configured")
        return cls(
            cfg.slite_api_key,
            api_url=cfg.slite_api_url,
            max_pages=cfg.slite_max_pages,
            timeout_s=cfg.http_timeout_s,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> SliteClient:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def get_me(self) -> dict[str, Any]:
        return request_json(self._client, SERVICE, "GET", "/me")

    def list_notes(self, *, parent_note_id: str | None = None) -> list[dict[str, Any]]:
        notes: list[dict[str, Any]] = []
        cursor: str | None = None
        for _ in range(self.max_pages):
            params: dict[str, Any] = {}
            if parent_note_id:
                params["parentNoteId"] = parent_note_id
            if cursor:
                params["cursor"] = cursor
            payload = request_json(self._client, SERVICE, "GET", "/notes", params=params or None)
            page = payload.get("notes")
            if not isinstance(page, list):
                raise RemoteFetchError(SERVICE, "response missing notes")
            notes.extend(note for note in page if isinstance(note, dict))
            cursor = payload.get("nextCursor")
            if not payload.get("hasNextPage") or not cursor:
                return notes
        raise RemoteFetchError(SERVICE, f"notes pagination exceeded {self.max_pages} pages")

    def get_note(self, note_id: str, *, format: str = "md") -> dict[str, Any]:
        return request_json(
            self._client,
            SERVICE,
            "GET",
            f"/notes/{quote(note_id, safe='')}",
            params={"format": format},
        )
