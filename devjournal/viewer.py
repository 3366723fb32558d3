from __future__ import annotations

import logging
import os
import socket
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any
from urllib.parse import urlparse

from .config import load_config
from .store import JournalStore
from .viewer_http import (
    InvalidJSONBody,
    MissingOriginPolicy,
    read_json_body,
    reject_cross_origin,
    send_json_response,
)
from .viewer_routes import ai as viewer_routes_ai
from .viewer_routes import integrations as viewer_routes_integrations

logger = logging.getLogger(__name__)

DEFAULT_VIEWER_HOST = "127.0.0.1"
DEFAULT_VIEWER_PORT = 38889

# Sync runs write to the cache and spend API quota; require a loopback Origin.
STRICT_POST_PATHS = {
    "/api/integrations/linear/sync",
    "/api/integrations/slite/sync",
}


def _internal_error_payload(exc: Exception) -> dict[str, Any]:
    payload: dict[str, Any] = {"error": "internal server error"}
    if os.environ.get("DEVJOURNAL_VIEWER_DEBUG") == "1":
        payload["detail"] = str(exc)
    return payload


class ViewerHandler(BaseHTTPRequestHandler):
    def _send_json(self, payload: dict, status: int = 200) -> None:
        send_json_response(self, payload, status=status)

    def _read_json(self) -> dict[str, Any] | None:
        return read_json_body(self)

    def _reject_cross_origin(self, *, missing_origin_policy: MissingOriginPolicy = "allow") -> bool:
        return reject_cross_origin(self, missing_origin_policy=missing_origin_policy)

    def log_message(self, format: str, *args: object) -> None:  # noqa: A003
        if os.environ.get("DEVJOURNAL_VIEWER_LOGS") == "1":
            super().log_message(format, *args)

    def do_GET(self) -> None:  # noqa: N802
        parsed = urlparse(self.path)
        if parsed.path == "/api/health":
            self._send_json({"status": "ok"})
            return
        store: JournalStore | None = None
        try:
            store = JournalStore(load_config().db_path)
            if viewer_routes_integrations.handle_get(self, store, parsed.path, parsed.query):
                return
            self.send_response(404)
            self.end_headers()
        except Exception as exc:  # pragma: no cover
            logger.exception("viewer GET failed", extra={"path": parsed.path})
            self._send_json(_internal_error_payload(exc), status=500)
        finally:
            if store is not None:
                store.close()

    def do_POST(self) -> None:  # noqa: N802
        parsed = urlparse(self.path)
        policy: MissingOriginPolicy = (
            "reject" if parsed.path in STRICT_POST_PATHS else "reject_if_unsafe"
        )
        if self._reject_cross_origin(missing_origin_policy=policy):
            return
        try:
            payload = self._read_json()
        except InvalidJSONBody as exc:
            self._send_json({"error": str(exc)}, status=400)
            return
        cfg = load_config()
        store: JournalStore | None = None
        try:
            store = JournalStore(cfg.db_path)
            if viewer_routes_integrations.handle_post(
                self, store, parsed.path, payload, cfg=cfg
            ):
                return
            if viewer_routes_ai.handle_post(self, store, parsed.path, payload, cfg=cfg):
                return
            self.send_response(404)
            self.end_headers()
        except Exception as exc:  # pragma: no cover
            logger.exception("viewer POST failed", extra={"path": parsed.path})
            self._send_json(_internal_error_payload(exc), status=500)
        finally:
            if store is not None:
                store.close()


def _serve(host: str, port: int) -> None:
    server = HTTPServer((host, port), ViewerHandler)
    server.serve_forever()


def start_viewer(
    host: str = DEFAULT_VIEWER_HOST,
    port: int = DEFAULT_VIEWER_PORT,
    background: bool = False,
) -> None:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.settimeout(0.2)
        try:
            if sock.connect_ex((host, port)) == 0:
                return
        except OSError:
            pass
    if background:
        thread = threading.Thread(target=_serve, args=(host, port), daemon=True)
        thread.start()
    else:
        _serve(host, port)
