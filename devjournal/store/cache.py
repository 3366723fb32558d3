from __future__ import annotations

import json
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from .. import db
from .types import CachedState, CacheTable
from .updates import KEEP, FieldUpdate, assignments, from_value

if TYPE_CHECKING:
    from ._store import JournalStore


LINEAR_PROJECTS = CacheTable(
    name="linear_projects",
    columns=(
        "name",
        "description",
        "content",
        "state",
        "progress",
        "target_date",
        "start_date",
        "url",
        "lead_id",
        "lead_name",
        "team_ids",
        "member_ids",
    ),
    json_columns=frozenset({"team_ids", "member_ids"}),
    order_by="updated_at DESC",
)

LINEAR_ISSUES = CacheTable(
    name="linear_issues",
    columns=(
        "identifier",
        "title",
        "description",
        "url",
        "priority",
        "state_id",
        "state_name",
        "assignee_id",
        "assignee_name",
        "team_id",
        "team_name",
        "team_key",
        "project_id",
        "project_name",
        "parent_id",
    ),
    order_by="updated_at DESC",
)

SLITE_NOTES = CacheTable(
    name="slite_notes",
    columns=(
        "title",
        "content",
        "parent_note_id",
        "url",
        "owner_id",
        "review_state",
        "last_edited_at",
        "remote_updated_at",
        "archived_at",
    ),
    order_by="COALESCE(remote_updated_at, updated_at) DESC",
)

CACHE_TABLES = {table.name: table for table in (LINEAR_PROJECTS, LINEAR_ISSUES, SLITE_NOTES)}


def _encode(table: CacheTable, column: str, value: Any) -> Any:
    if column in table.json_columns and value is not None:
        return json.dumps(list(value), ensure_ascii=False)
    return value


def _decode_row(table: CacheTable, row: Mapping[str, Any]) -> dict[str, Any]:
    item = dict(row)
    for column in table.json_columns:
        if column in item:
            item[column] = db.safe_json_list(item[column])
    if "is_deleted" in item:
        item["is_deleted"] = bool(item["is_deleted"])
    return item


def existing_state(store: JournalStore, table: CacheTable) -> dict[str, CachedState]:
    columns = ", ".join(table.columns)
    rows = store.conn.execute(
        f"SELECT id, summary, is_deleted, {columns} FROM {table.name}"
    ).fetchall()
    state: dict[str, CachedState] = {}
    for row in rows:
        decoded = _decode_row(table, row)
        state[str(row["id"])] = CachedState(
            id=str(row["id"]),
            has_summary=bool(row["summary"]),
            is_deleted=bool(row["is_deleted"]),
            snapshot={column: decoded.get(column) for column in table.columns},
        )
    return state


def snapshot_changes(
    table: CacheTable,
    current: Mapping[str, Any],
    updates: Mapping[str, FieldUpdate],
) -> bool:
    """Return True when applying ``updates`` would change any snapshot column."""
    for column in table.columns:
        update = updates.get(column, KEEP)
        target = assignments({column: update})
        if column not in target:
            continue
        new_value = target[column]
        if column in table.json_columns and new_value is not None:
            new_value = list(new_value)
        if new_value != current.get(column):
            return True
    return False


def normalize_snapshot(
    table: CacheTable, snapshot: Mapping[str, Any]
) -> dict[str, FieldUpdate]:
    """Turn a remote snapshot into per-column updates; columns it omits are kept."""
    return {column: from_value(snapshot[column]) for column in table.columns if column in snapshot}


def insert_item(
    store: JournalStore,
    table: CacheTable,
    item_id: str,
    updates: Mapping[str, FieldUpdate],
    *,
    summary: str | None,
    now: str,
) -> None:
    values = assignments(updates)
    columns = ["id", *values.keys(), "summary", "synced_at", "created_at", "updated_at"]
    params = [
        item_id,
        *(_encode(table, column, value) for column, value in values.items()),
        summary,
        now,
        now,
        now,
    ]
    placeholders = ", ".join("?" for _ in columns)
    store.conn.execute(
        f"INSERT INTO {table.name}({', '.join(columns)}) VALUES ({placeholders})",
        params,
    )
    store.conn.commit()


def update_item(
    store: JournalStore,
    table: CacheTable,
    item_id: str,
    updates: Mapping[str, FieldUpdate],
    *,
    summary: FieldUpdate = KEEP,
    revive: bool = False,
    now: str,
) -> None:
    values = assignments(updates)
    summary_value = assignments({"summary": summary})
    sets = [f"{column} = ?" for column in values]
    params: list[Any] = [_encode(table, column, value) for column, value in values.items()]
    if summary_value:
        # Only fills an empty summary; a stored one is never replaced.
        sets.append("summary = COALESCE(NULLIF(summary, ''), ?)")
        params.append(summary_value["summary"])
    sets.extend(["updated_at = ?", "synced_at = ?"])
    params.extend([now, now])
    if revive:
        sets.extend(["is_deleted = 0", "deleted_at = NULL"])
    params.append(item_id)
    store.conn.execute(
        f"UPDATE {table.name} SET {', '.join(sets)} WHERE id = ?",
        params,
    )
    store.conn.commit()


def mark_deleted(store: JournalStore, table: CacheTable, item_id: str, *, now: str) -> bool:
    cur = store.conn.execute(
        f"""
        UPDATE {table.name}
        SET is_deleted = 1, deleted_at = ?, synced_at = ?
        WHERE id = ? AND is_deleted = 0
        """,
        (now, now, item_id),
    )
    store.conn.commit()
    return cur.rowcount > 0


def set_summary_if_missing(
    store: JournalStore, table: CacheTable, item_id: str, summary: str
) -> bool:
    cur = store.conn.execute(
        f"UPDATE {table.name} SET summary = ? WHERE id = ? AND COALESCE(summary, '') = ''",
        (summary, item_id),
    )
    store.conn.commit()
    return cur.rowcount > 0


def count_rows(store: JournalStore, table: CacheTable, *, include_deleted: bool = True) -> int:
    where = "" if include_deleted else " WHERE is_deleted = 0"
    row = store.conn.execute(f"SELECT COUNT(*) AS total FROM {table.name}{where}").fetchone()
    return int(row["total"]) if row else 0


def cache_stats(store: JournalStore, table: CacheTable) -> dict[str, int]:
    row = store.conn.execute(
        f"""
        SELECT COUNT(*) AS total,
               COALESCE(SUM(CASE WHEN is_deleted = 0 THEN 1 ELSE 0 END), 0) AS active,
               COALESCE(SUM(CASE WHEN is_deleted = 1 THEN 1 ELSE 0 END), 0) AS deleted
        FROM {table.name}
        """
    ).fetchone()
    if row is None:
        return {"total": 0, "active": 0, "deleted": 0}
    return {
        "total": int(row["total"]),
        "active": int(row["active"]),
        "deleted": int(row["deleted"]),
    }


def last_synced_at(store: JournalStore, table: CacheTable) -> str | None:
    row = store.conn.execute(f"SELECT MAX(synced_at) AS last_sync FROM {table.name}").fetchone()
    if row is None or row["last_sync"] is None:
        return None
    return str(row["last_sync"])


def list_items(
    store: JournalStore,
    table: CacheTable,
    *,
    include_deleted: bool = False,
    limit: int | None = 100,
    where: Mapping[str, Any] | None = None,
) -> list[dict[str, Any]]:
    clauses: list[str] = []
    params: list[Any] = []
    if not include_deleted:
        clauses.append("is_deleted = 0")
    for column, value in (where or {}).items():
        if column not in table.columns and column != "id":
            raise ValueError(f"unknown column for {table.name}: {column}")
        clauses.append(f"{column} = ?")
        params.append(value)
    sql = f"SELECT * FROM {table.name}"
    if clauses:
        sql += " WHERE " + " AND ".join(clauses)
    sql += f" ORDER BY {table.order_by}"
    if limit is not None:
        sql += " LIMIT ?"
        params.append(int(limit))
    rows = store.conn.execute(sql, params).fetchall()
    return [_decode_row(table, row) for row in rows]


def get_item(store: JournalStore, table: CacheTable, item_id: str) -> dict[str, Any] | None:
    row = store.conn.execute(f"SELECT * FROM {table.name} WHERE id = ?", (item_id,)).fetchone()
    if row is None:
        return None
    return _decode_row(table, row)


