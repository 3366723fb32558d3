from __future__ import annotations

import datetime as dt
import logging
from typing import Any, Protocol
from urllib.parse import unquote

from ..config import DevJournalConfig
from ..integrations import LinearClient, RemoteFetchError, SliteClient
from ..store import LINEAR_ISSUES, LINEAR_PROJECTS, SLITE_NOTES, JournalStore
from ..sync import SummaryRunner, sync_linear_data, sync_slite_data
from ..viewer_http import query_flag, query_int

logger = logging.getLogger(__name__)

CACHE_LIMIT_DEFAULT = 100
CACHE_LIMIT_MAX = 500


class _ViewerHandler(Protocol):
    def _send_json(self, payload: dict[str, Any], status: int = 200) -> None: ...


def build_linear_client(cfg: DevJournalConfig) -> LinearClient:
    return LinearClient.from_config(cfg)


def build_slite_client(cfg: DevJournalConfig) -> SliteClient:
    return SliteClient.from_config(cfg)


def build_summary_runner(cfg: DevJournalConfig) -> SummaryRunner:
    return SummaryRunner.from_config(cfg)


def _now_iso() -> str:
    return dt.datetime.now(dt.UTC).isoformat()


def _latest(*values: str | None) -> str | None:
    present = [value for value in values if value]
    return max(present) if present else None


def _format_project(row: dict[str, Any], *, detail: bool = False) -> dict[str, Any]:
    project = {
        "id": row["id"],
        "name": row["name"],
        "description": row.get("description"),
        "state": row.get("state"),
        "progress": row.get("progress"),
        "targetDate": row.get("target_date"),
        "startDate": row.get("start_date"),
        "url": row.get("url"),
        "lead": _ref(row, "lead"),
        "teamIds": row.get("team_ids") or [],
        "memberIds": row.get("member_ids") or [],
        "summary": row.get("summary"),
        "syncedAt": row.get("synced_at"),
        "isDeleted": bool(row.get("is_deleted")),
    }
    if detail:
        project["content"] = row.get("content")
    return project


def _ref(row: dict[str, Any], prefix: str, *extra: str) -> dict[str, Any] | None:
    if not row.get(f"{prefix}_id"):
        return None
    ref: dict[str, Any] = {"id": row[f"{prefix}_id"], "name": row.get(f"{prefix}_name")}
    for key in extra:
        ref[key] = row.get(f"{prefix}_{key}")
    return ref


def _format_issue(row: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": row["id"],
        "identifier": row["identifier"],
        "title": row["title"],
        "description": row.get("description"),
        "priority": row.get("priority"),
        "url": row.get("url"),
        "state": _ref(row, "state"),
        "assignee": _ref(row, "assignee"),
        "team": _ref(row, "team", "key"),
        "project": _ref(row, "project"),
        "parentId": row.get("parent_id"),
        "summary": row.get("summary"),
        "syncedAt": row.get("synced_at"),
        "isDeleted": bool(row.get("is_deleted")),
    }


def _format_note(row: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": row["id"],
        "title": row["title"],
        "content": row.get("content"),
        "parentNoteId": row.get("parent_note_id"),
        "url": row.get("url"),
        "ownerId": row.get("owner_id"),
        "reviewState": row.get("review_state"),
        "lastEditedAt": row.get("last_edited_at"),
        "updatedAt": row.get("remote_updated_at"),
        "archivedAt": row.get("archived_at"),
        "summary": row.get("summary"),
        "syncedAt": row.get("synced_at"),
        "isDeleted": bool(row.get("is_deleted")),
    }


ISSUE_DETAIL_PREFIX = "/api/integrations/linear/cache/issues/"
PROJECT_DETAIL_PREFIX = "/api/integrations/linear/cache/projects/"


def _find_issue(store: JournalStore, key: str) -> dict[str, Any] | None:
    rows = store.list_cached(
        LINEAR_ISSUES, include_deleted=True, limit=1, where={"identifier": key}
    )
    return rows[0] if rows else store.get_cached(LINEAR_ISSUES, key)


def _send_not_cached(handler: _ViewerHandler, kind: str, key: str) -> None:
    handler._send_json(
        {"error": f'{kind} "{key}" not found in cache. Try syncing Linear data first.'},
        status=404,
    )


def _handle_detail(handler: _ViewerHandler, store: JournalStore, path: str) -> bool:
    if path.startswith(ISSUE_DETAIL_PREFIX):
        key = unquote(path[len(ISSUE_DETAIL_PREFIX) :])
        if not key or "/" in key:
            return False
        row = _find_issue(store, key)
        if row is None:
            _send_not_cached(handler, "Issue", key)
        else:
            handler._send_json(_format_issue(row))
        return True
    if path.startswith(PROJECT_DETAIL_PREFIX):
        key = unquote(path[len(PROJECT_DETAIL_PREFIX) :])
        if not key or "/" in key:
            return False
        row = store.get_cached(LINEAR_PROJECTS, key)
        if row is None:
            _send_not_cached(handler, "Project", key)
        else:
            handler._send_json(_format_project(row, detail=True))
        return True
    return False


def handle_get(handler: _ViewerHandler, store: JournalStore, path: str, query: str) -> bool:
    if _handle_detail(handler, store, path):
        return True
    if path == "/api/integrations/linear/sync":
        handler._send_json(
            {
                "status": "cached",
                "lastSync": _latest(
                    store.last_synced_at(LINEAR_PROJECTS), store.last_synced_at(LINEAR_ISSUES)
                ),
                "lastError": None,
                "stats": {
                    "projects": store.cache_stats(LINEAR_PROJECTS),
                    "issues": store.cache_stats(LINEAR_ISSUES),
                },
            }
        )
        return True
    if path == "/api/integrations/linear/cache":
        include_deleted = query_flag(query, "includeDeleted")
        limit = query_int(query, "limit", CACHE_LIMIT_DEFAULT, maximum=CACHE_LIMIT_MAX)
        projects = store.list_cached(LINEAR_PROJECTS, include_deleted=include_deleted, limit=limit)
        issues = store.list_cached(LINEAR_ISSUES, include_deleted=include_deleted, limit=limit)
        handler._send_json(
            {
                "projects": [_format_project(row) for row in projects],
                "issues": [_format_issue(row) for row in issues],
                "stats": {"projectCount": len(projects), "issueCount": len(issues)},
                "lastSync": _latest(
                    store.last_synced_at(LINEAR_PROJECTS), store.last_synced_at(LINEAR_ISSUES)
                ),
            }
        )
        return True
    if path == "/api/integrations/slite/sync":
        handler._send_json(
            {
                "status": "cached",
                "lastSync": store.last_synced_at(SLITE_NOTES),
                "lastError": None,
                "stats": {"notes": store.cache_stats(SLITE_NOTES)},
            }
        )
        return True
    if path == "/api/integrations/slite/cache":
        include_deleted = query_flag(query, "includeDeleted")
        limit = query_int(query, "limit", CACHE_LIMIT_DEFAULT, maximum=CACHE_LIMIT_MAX)
        notes = store.list_cached(SLITE_NOTES, include_deleted=include_deleted, limit=limit)
        handler._send_json(
            {
                "notes": [_format_note(row) for row in notes],
                "stats": {"noteCount": len(notes)},
                "lastSync": store.last_synced_at(SLITE_NOTES),
            }
        )
        return True
    return False


def _send_remote_error(handler: _ViewerHandler, exc: RemoteFetchError) -> None:
    logger.warning(
        "integration sync failed",
        extra={"service": exc.service, "status": exc.status},
        exc_info=exc,
    )
    handler._send_json(exc.to_dict(), status=502)


def _sync_linear(
    handler: _ViewerHandler,
    store: JournalStore,
    payload: dict[str, Any],
    cfg: DevJournalConfig,
) -> None:
    try:
        client = build_linear_client(cfg)
    except RuntimeError as exc:
        handler._send_json({"error": str(exc)}, status=500)
        return
    runner = build_summary_runner(cfg)
    try:
        result = sync_linear_data(
            store, client, runner, include_completed=bool(payload.get("includeCompleted"))
        )
    except RemoteFetchError as exc:
        _send_remote_error(handler, exc)
        return
    finally:
        client.close()
        runner.close(wait=False)
    handler._send_json(
        {
            "success": True,
            "message": (
                f"Synced {result.projects.created + result.projects.updated} projects and "
                f"{result.issues.created + result.issues.updated} issues"
            ),
            "syncResult": result.to_dict(),
            "lastSync": _now_iso(),
        }
    )


def _sync_slite(
    handler: _ViewerHandler,
    store: JournalStore,
    payload: dict[str, Any],
    cfg: DevJournalConfig,
) -> None:
    try:
        client = build_slite_client(cfg)
    except RuntimeError as exc:
        handler._send_json({"error": str(exc)}, status=500)
        return
    runner = build_summary_runner(cfg)
    try:
        result = sync_slite_data(
            store, client, runner, include_completed=bool(payload.get("includeCompleted"))
        )
    except RemoteFetchError as exc:
        _send_remote_error(handler, exc)
        return
    finally:
        client.close()
        runner.close(wait=False)
    notes = result.notes
    handler._send_json(
        {
            "success": True,
            "message": f"Synced {notes.total} notes ({notes.created} new, {notes.updated} updated)",
            "syncResult": result.to_dict(),
            "lastSync": _now_iso(),
        }
    )


def handle_post(
    handler: _ViewerHandler,
    store: JournalStore,
    path: str,
    payload: dict[str, Any] | None,
    *,
    cfg: DevJournalConfig,
) -> bool:
    if path == "/api/integrations/linear/sync":
        _sync_linear(handler, store, payload or {}, cfg)
        return True
    if path == "/api/integrations/slite/sync":
        _sync_slite(handler, store, payload or {}, cfg)
        return True
    return False
