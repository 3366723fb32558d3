from __future__ import annotations

import json
import sqlite3
from collections.abc import Iterable
from pathlib import Path
from typing import Any

DEFAULT_DB_PATH = Path.home() / ".devjournal.sqlite"


def connect(db_path: Path | str, check_same_thread: bool = True) -> sqlite3.Connection:
    path = Path(db_path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(path, check_same_thread=check_same_thread)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    try:
        conn.execute("PRAGMA journal_mode = WAL")
    except sqlite3.OperationalError:
        conn.execute("PRAGMA journal_mode = DELETE")
    conn.execute("PRAGMA synchronous = NORMAL")
    conn.execute("PRAGMA busy_timeout = 5000")
    return conn


def initialize_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS linear_projects (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            description TEXT,
            content TEXT,
            state TEXT,
            progress REAL,
            target_date TEXT,
            start_date TEXT,
            url TEXT,
            lead_id TEXT,
            lead_name TEXT,
            team_ids TEXT DEFAULT '[]',
            member_ids TEXT DEFAULT '[]',
            summary TEXT,
            synced_at TEXT NOT NULL,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            is_deleted INTEGER NOT NULL DEFAULT 0,
            deleted_at TEXT
        );
        CREATE INDEX IF NOT EXISTS idx_linear_projects_state ON linear_projects(state);
        CREATE INDEX IF NOT EXISTS idx_linear_projects_deleted ON linear_projects(is_deleted);

        CREATE TABLE IF NOT EXISTS linear_issues (
            id TEXT PRIMARY KEY,
            identifier TEXT NOT NULL,
            title TEXT NOT NULL,
            description TEXT,
            url TEXT,
            priority INTEGER,
            state_id TEXT,
            state_name TEXT,
            assignee_id TEXT,
            assignee_name TEXT,
            team_id TEXT,
            team_name TEXT,
            team_key TEXT,
            project_id TEXT,
            project_name TEXT,
            parent_id TEXT,
            summary TEXT,
            synced_at TEXT NOT NULL,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            is_deleted INTEGER NOT NULL DEFAULT 0,
            deleted_at TEXT
        );
        CREATE INDEX IF NOT EXISTS idx_linear_issues_identifier ON linear_issues(identifier);
        CREATE INDEX IF NOT EXISTS idx_linear_issues_project ON linear_issues(project_id);
        CREATE INDEX IF NOT EXISTS idx_linear_issues_deleted ON linear_issues(is_deleted);

        CREATE TABLE IF NOT EXISTS slite_notes (
            id TEXT PRIMARY KEY,
            title TEXT NOT NULL,
            content TEXT,
            parent_note_id TEXT,
            url TEXT,
            owner_id TEXT,
            review_state TEXT,
            last_edited_at TEXT,
            remote_updated_at TEXT,
            archived_at TEXT,
            summary TEXT,
            synced_at TEXT NOT NULL,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            is_deleted INTEGER NOT NULL DEFAULT 0,
            deleted_at TEXT
        );
        CREATE INDEX IF NOT EXISTS idx_slite_notes_parent ON slite_notes(parent_note_id);
        CREATE INDEX IF NOT EXISTS idx_slite_notes_deleted ON slite_notes(is_deleted);

        CREATE TABLE IF NOT EXISTS journal_entries (
            id INTEGER PRIMARY KEY,
            commit_hash TEXT UNIQUE NOT NULL,
            repository TEXT NOT NULL,
            branch TEXT NOT NULL,
            author TEXT NOT NULL,
            date TEXT NOT NULL,
            why TEXT NOT NULL,
            what_changed TEXT NOT NULL,
            decisions TEXT NOT NULL DEFAULT '',
            technologies TEXT NOT NULL DEFAULT '',
            summary TEXT,
            created_at TEXT NOT NULL
        );
        CREATE INDEX IF NOT EXISTS idx_journal_entries_repository_date
            ON journal_entries(repository, date DESC);

        CREATE TABLE IF NOT EXISTS project_summaries (
            id INTEGER PRIMARY KEY,
            repository TEXT UNIQUE NOT NULL,
            git_url TEXT,
            summary TEXT,
            purpose TEXT,
            architecture TEXT,
            key_decisions TEXT,
            technologies TEXT,
            status TEXT,
            linear_project_id TEXT,
            linear_issue_id TEXT,
            updated_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS entry_attachments (
            id INTEGER PRIMARY KEY,
            commit_hash TEXT NOT NULL REFERENCES journal_entries(commit_hash) ON DELETE CASCADE,
            filename TEXT NOT NULL,
            mime_type TEXT NOT NULL,
            description TEXT,
            data BLOB,
            file_size INTEGER NOT NULL DEFAULT 0,
            uploaded_at TEXT NOT NULL
        );
        CREATE INDEX IF NOT EXISTS idx_entry_attachments_commit ON entry_attachments(commit_hash);

        CREATE TABLE IF NOT EXISTS oracle_chats (
            id INTEGER PRIMARY KEY,
            question TEXT NOT NULL,
            answer TEXT NOT NULL DEFAULT '',
            repository TEXT,
            depth TEXT NOT NULL,
            sources_json TEXT,
            input_tokens INTEGER DEFAULT 0,
            output_tokens INTEGER DEFAULT 0,
            latency_ms INTEGER DEFAULT 0,
            status TEXT NOT NULL,
            error_message TEXT,
            created_at TEXT NOT NULL
        );
        CREATE INDEX IF NOT EXISTS idx_oracle_chats_created ON oracle_chats(created_at DESC);
        """
    )
    conn.commit()


def to_json(data: Any) -> str:
    if data is None:
        payload: Any = {}
    else:
        payload = data
    return json.dumps(payload, ensure_ascii=False)


def from_json(text: str | None) -> dict[str, Any]:
    if not text:
        return {}
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        return {}
    return parsed if isinstance(parsed, dict) else {}


def safe_json_list(value: str | None) -> list[Any]:
    if not value:
        return []
    try:
        parsed = json.loads(value)
    except (json.JSONDecodeError, TypeError):
        return []
    if not isinstance(parsed, list):
        return []
    return parsed


def rows_to_dicts(rows: Iterable[sqlite3.Row]) -> list[dict[str, Any]]:
    return [dict(r) for r in rows]
