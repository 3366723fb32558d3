from __future__ import annotations

from typing import Any

import httpx

from ..config import DevJournalConfig
from .http import RemoteFetchError, build_client, request_json

SERVICE = "documents"


class DocumentsClient:
    """Read-only client for the companion service that owns journal documents."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout_s: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if not base_url:
            raise RuntimeError("documents service URL is required")
        self._client = build_client(
            base_url=base_url.rstrip("/"), timeout_s=timeout_s, transport=transport
        )

    @classmethod
    def from_config(
        cls, cfg: DevJournalConfig, *, transport: httpx.BaseTransport | None = None
    ) -> DocumentsClient | None:
        if not cfg.documents_url:
            return None
        return cls(cfg.documents_url, timeout_s=cfg.http_timeout_s, transport=transport)

    def close(self) -> None:
        self._client.close()

    def list_documents(self, *, limit: int = 50) -> list[dict[str, Any]]:
        payload = request_json(
            self._client, SERVICE, "GET", "/api/documents", params={"limit": int(limit)}
        )
        documents = payload.get("documents")
        if not isinstance(documents, list):
            raise RemoteFetchError(SERVICE, "response missing documents")
        return [doc for doc in documents if isinstance(doc, dict)][: int(limit)]
