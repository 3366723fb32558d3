from __future__ import annotations

import datetime as dt
from dataclasses import asdict
from typing import TYPE_CHECKING, Any

from .. import db
from .types import JournalEntry, ProjectSummary

if TYPE_CHECKING:
    from ._store import JournalStore


def _now_iso() -> str:
    return dt.datetime.now(dt.UTC).isoformat()


def add_journal_entry(store: JournalStore, entry: JournalEntry) -> int:
    created_at = _now_iso()
    cur = store.conn.execute(
        """
        INSERT INTO journal_entries(
            commit_hash, repository, branch, author, date, why, what_changed,
            decisions, technologies, summary, created_at
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            entry.commit_hash,
            entry.repository,
            entry.branch,
            entry.author,
            entry.date,
            entry.why,
            entry.what_changed,
            entry.decisions,
            entry.technologies,
            entry.summary,
            created_at,
        ),
    )
    store.conn.commit()
    lastrowid = cur.lastrowid
    if lastrowid is None:
        raise RuntimeError("Failed to add journal entry")
    return int(lastrowid)


def upsert_project_summary(store: JournalStore, project: ProjectSummary) -> None:
    payload = asdict(project)
    columns = list(payload.keys())
    updates = ", ".join(
        f"{column} = excluded.{column}" for column in columns if column != "repository"
    )
    store.conn.execute(
        f"""
        INSERT INTO project_summaries({", ".join(columns)}, updated_at)
        VALUES ({", ".join("?" for _ in columns)}, ?)
        ON CONFLICT(repository) DO UPDATE SET
            {updates},
            updated_at = excluded.updated_at
        """,
        (*payload.values(), _now_iso()),
    )
    store.conn.commit()


def add_attachment(
    store: JournalStore,
    commit_hash: str,
    filename: str,
    mime_type: str,
    *,
    description: str | None = None,
    data: bytes | None = None,
    file_size: int | None = None,
) -> int:
    size = file_size if file_size is not None else len(data or b"")
    cur = store.conn.execute(
        """
        INSERT INTO entry_attachments(
            commit_hash, filename, mime_type, description, data, file_size, uploaded_at
        )
        VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        (commit_hash, filename, mime_type, description, data, int(size), _now_iso()),
    )
    store.conn.commit()
    lastrowid = cur.lastrowid
    if lastrowid is None:
        raise RuntimeError("Failed to add attachment")
    return int(lastrowid)


def list_project_summaries(
    store: JournalStore, *, repository: str | None = None, limit: int = 50
) -> list[dict[str, Any]]:
    sql = """
        SELECT ps.*,
               (SELECT COUNT(*) FROM journal_entries je WHERE je.repository = ps.repository)
                   AS entry_count
        FROM project_summaries ps
    """
    params: list[Any] = []
    if repository:
        sql += " WHERE ps.repository = ?"
        params.append(repository)
    sql += " ORDER BY ps.updated_at DESC, ps.id DESC LIMIT ?"
    params.append(int(limit))
    rows = store.conn.execute(sql, params).fetchall()
    return db.rows_to_dicts(rows)


def get_project_summary(store: JournalStore, repository: str) -> dict[str, Any] | None:
    row = store.conn.execute(
        "SELECT * FROM project_summaries WHERE repository = ?",
        (repository,),
    ).fetchone()
    return dict(row) if row else None


def entries_by_repository(
    store: JournalStore, repository: str, *, limit: int = 30
) -> list[dict[str, Any]]:
    rows = store.conn.execute(
        """
        SELECT commit_hash, repository, branch, author, date, why, what_changed,
               decisions, technologies, summary
        FROM journal_entries
        WHERE repository = ?
        ORDER BY date DESC, id DESC
        LIMIT ?
        """,
        (repository, int(limit)),
    ).fetchall()
    return db.rows_to_dicts(rows)


def attachments_for_commit(store: JournalStore, commit_hash: str) -> list[dict[str, Any]]:
    # Metadata only; binary payloads stay in the database.
    rows = store.conn.execute(
        """
        SELECT id, commit_hash, filename, mime_type, description, file_size, uploaded_at
        FROM entry_attachments
        WHERE commit_hash = ?
        ORDER BY uploaded_at, id
        """,
        (commit_hash,),
    ).fetchall()
    return db.rows_to_dicts(rows)


def record_oracle_chat(
    store: JournalStore,
    *,
    question: str,
    answer: str,
    depth: str,
    status: str,
    repository: str | None = None,
    sources: list[dict[str, Any]] | None = None,
    input_tokens: int = 0,
    output_tokens: int = 0,
    latency_ms: int = 0,
    error_message: str | None = None,
) -> int:
    cur = store.conn.execute(
        """
        INSERT INTO oracle_chats(
            question, answer, repository, depth, sources_json, input_tokens,
            output_tokens, latency_ms, status, error_message, created_at
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            question,
            answer,
            repository,
            depth,
            db.to_json(sources or []),
            int(input_tokens),
            int(output_tokens),
            int(latency_ms),
            status,
            error_message,
            _now_iso(),
        ),
    )
    store.conn.commit()
    lastrowid = cur.lastrowid
    if lastrowid is None:
        raise RuntimeError("Failed to record oracle chat")
    return int(lastrowid)


def recent_oracle_chats(store: JournalStore, *, limit: int = 20) -> list[dict[str, Any]]:
    rows = store.conn.execute(
        "SELECT * FROM oracle_chats ORDER BY created_at DESC, id DESC LIMIT ?",
        (int(limit),),
    ).fetchall()
    items = db.rows_to_dicts(rows)
    for item in items:
        item["sources"] = db.safe_json_list(item.pop("sources_json", None))
    return items
