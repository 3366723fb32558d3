import sqlite3
from pathlib import Path

from devjournal import db


def _columns(conn: sqlite3.Connection, table: str) -> set[str]:
    return {row["name"] for row in conn.execute(f"PRAGMA table_info({table})").fetchall()}


def test_initialize_schema_creates_tables(tmp_path: Path) -> None:
    conn = db.connect(tmp_path / "nested" / "journal.sqlite")
    try:
        db.initialize_schema(conn)
        tables = {
            row["name"]
            for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
        }
        assert {
            "linear_projects",
            "linear_issues",
            "slite_notes",
            "journal_entries",
            "project_summaries",
            "entry_attachments",
            "oracle_chats",
        } <= tables
        for table in ("linear_projects", "linear_issues", "slite_notes"):
            assert {
                "summary",
                "synced_at",
                "created_at",
                "updated_at",
                "is_deleted",
                "deleted_at",
            } <= _columns(conn, table)
    finally:
        conn.close()


def test_initialize_schema_is_idempotent(tmp_path: Path) -> None:
    conn = db.connect(tmp_path / "journal.sqlite")
    try:
        db.initialize_schema(conn)
        db.initialize_schema(conn)
        assert conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1
    finally:
        conn.close()


def test_json_helpers_tolerate_malformed_values() -> None:
    assert db.from_json(None) == {}
    assert db.from_json("not json") == {}
    assert db.from_json("[1]") == {}
    assert db.from_json('{"a": 1}') == {"a": 1}
    assert db.safe_json_list(None) == []
    assert db.safe_json_list("{broken") == []
    assert db.safe_json_list('{"a": 1}') == []
    assert db.safe_json_list('["t1", "t2"]') == ["t1", "t2"]
    assert db.to_json(None) == "{}"
