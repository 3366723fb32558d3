from __future__ import annotations

import datetime as dt
from pathlib import Path
from typing import Any

from .. import db
from . import cache as store_cache
from . import journal as store_journal
from .types import CachedState, CacheTable, JournalEntry, ProjectSummary
from .updates import KEEP, FieldUpdate


class JournalStore:
    def __init__(
        self,
        db_path: Path | str = db.DEFAULT_DB_PATH,
        *,
        check_same_thread: bool = True,
    ):
        self.db_path = Path(db_path).expanduser()
        self.conn = db.connect(self.db_path, check_same_thread=check_same_thread)
        db.initialize_schema(self.conn)

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> JournalStore:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    @staticmethod
    def _now_iso() -> str:
        return dt.datetime.now(dt.UTC).isoformat()

    # Cached remote items

    def existing_state(self, table: CacheTable) -> dict[str, CachedState]:
        return store_cache.existing_state(self, table)

    def insert_cached_item(
        self,
        table: CacheTable,
        item_id: str,
        updates: dict[str, FieldUpdate],
        *,
        summary: str | None = None,
        now: str | None = None,
    ) -> None:
        store_cache.insert_item(
            self, table, item_id, updates, summary=summary, now=now or self._now_iso()
        )

    def update_cached_item(
        self,
        table: CacheTable,
        item_id: str,
        updates: dict[str, FieldUpdate],
        *,
        summary: FieldUpdate = KEEP,
        revive: bool = False,
        now: str | None = None,
    ) -> None:
        store_cache.update_item(
            self,
            table,
            item_id,
            updates,
            summary=summary,
            revive=revive,
            now=now or self._now_iso(),
        )

    def mark_cached_item_deleted(
        self, table: CacheTable, item_id: str, *, now: str | None = None
    ) -> bool:
        return store_cache.mark_deleted(self, table, item_id, now=now or self._now_iso())

    def set_summary_if_missing(self, table: CacheTable, item_id: str, summary: str) -> bool:
        return store_cache.set_summary_if_missing(self, table, item_id, summary)

    def count_cached(self, table: CacheTable, *, include_deleted: bool = True) -> int:
        return store_cache.count_rows(self, table, include_deleted=include_deleted)

    def cache_stats(self, table: CacheTable) -> dict[str, int]:
        return store_cache.cache_stats(self, table)

    def last_synced_at(self, table: CacheTable) -> str | None:
        return store_cache.last_synced_at(self, table)

    def list_cached(
        self,
        table: CacheTable,
        *,
        include_deleted: bool = False,
        limit: int | None = 100,
        where: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        return store_cache.list_items(
            self, table, include_deleted=include_deleted, limit=limit, where=where
        )

    def get_cached(self, table: CacheTable, item_id: str) -> dict[str, Any] | None:
        return store_cache.get_item(self, table, item_id)

    # Journal

    def add_journal_entry(self, entry: JournalEntry) -> int:
        return store_journal.add_journal_entry(self, entry)

    def upsert_project_summary(self, project: ProjectSummary) -> None:
        store_journal.upsert_project_summary(self, project)

    def add_attachment(
        self,
        commit_hash: str,
        filename: str,
        mime_type: str,
        *,
        description: str | None = None,
        data: bytes | None = None,
        file_size: int | None = None,
    ) -> int:
        return store_journal.add_attachment(
            self,
            commit_hash,
            filename,
            mime_type,
            description=description,
            data=data,
            file_size=file_size,
        )

    def list_project_summaries(
        self, *, repository: str | None = None, limit: int = 50
    ) -> list[dict[str, Any]]:
        return store_journal.list_project_summaries(self, repository=repository, limit=limit)

    def get_project_summary(self, repository: str) -> dict[str, Any] | None:
        return store_journal.get_project_summary(self, repository)

    def entries_by_repository(self, repository: str, *, limit: int = 30) -> list[dict[str, Any]]:
        return store_journal.entries_by_repository(self, repository, limit=limit)

    def attachments_for_commit(self, commit_hash: str) -> list[dict[str, Any]]:
        return store_journal.attachments_for_commit(self, commit_hash)

    def record_oracle_chat(self, **kwargs: Any) -> int:
        return store_journal.record_oracle_chat(self, **kwargs)

    def recent_oracle_chats(self, *, limit: int = 20) -> list[dict[str, Any]]:
        return store_journal.recent_oracle_chats(self, limit=limit)
