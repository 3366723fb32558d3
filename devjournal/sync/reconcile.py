"""Mirror a remote collection into a local cache table.

Every pass upserts the full remote collection, soft-deletes local rows the
remote no longer returns and revives rows that come back. Index summaries are
generated for rows that lack one; a stored summary is never replaced.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_futures
from dataclasses import asdict, dataclass, field
from typing import Any

from ..config import SUMMARY_MODES, DevJournalConfig
from ..store import JournalStore
from ..store.cache import normalize_snapshot, snapshot_changes
from ..store.types import CacheTable
from ..store.updates import KEEP, SetTo
from ..summarizer import SummaryGenerator, SummaryRequest

logger = logging.getLogger(__name__)


@dataclass
class SyncCounts:
    created: int = 0
    updated: int = 0
    deleted: int = 0
    total: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class EntityKind:
    name: str
    table: CacheTable
    summary_type: str


@dataclass
class RemoteItem:
    id: str
    snapshot: dict[str, Any] = field(default_factory=dict)
    title: str | None = None
    summary_content: str = ""


_KIND_LOCKS: dict[str, threading.Lock] = {}
_KIND_LOCKS_GUARD = threading.Lock()


def _lock_for(kind: EntityKind) -> threading.Lock:
    with _KIND_LOCKS_GUARD:
        lock = _KIND_LOCKS.get(kind.name)
        if lock is None:
            lock = threading.Lock()
            _KIND_LOCKS[kind.name] = lock
        return lock


class SummaryRunner:
    """Runs summary generation for a sync pass.

    ``inline`` generates before the row is written and stores the result with
    the upsert. ``background`` writes the row first and fills the summary later
    from a worker thread with its own database connection; worker failures are
    logged and never reach the sync pass.
    """

    def __init__(
        self,
        generator: SummaryGenerator | None,
        *,
        mode: str = "inline",
        min_chars: int = 20,
        concurrency: int = 4,
        store_factory: Callable[[], JournalStore] | None = None,
    ) -> None:
        if mode not in SUMMARY_MODES:
            raise ValueError(f"summary mode must be one of: {', '.join(SUMMARY_MODES)}")
        self.generator = generator
        self.mode = mode
        self.min_chars = min_chars
        self.concurrency = max(1, int(concurrency))
        self.store_factory = store_factory
        self._executor: ThreadPoolExecutor | None = None
        self._futures: list[Future[None]] = []
        self._futures_lock = threading.Lock()

    @classmethod
    def from_config(
        cls,
        cfg: DevJournalConfig,
        generator: SummaryGenerator | None = None,
        *,
        store_factory: Callable[[], JournalStore] | None = None,
    ) -> SummaryRunner:
        return cls(
            generator if generator is not None else SummaryGenerator.from_config(cfg),
            mode=cfg.summary_mode,
            min_chars=cfg.summary_min_chars,
            concurrency=cfg.summary_concurrency,
            store_factory=store_factory,
        )

    @property
    def background(self) -> bool:
        return self.mode == "background"

    def eligible(self, content: str | None) -> bool:
        if self.generator is None:
            return False
        return len(content or "") > self.min_chars

    def generate(self, kind: EntityKind, item: RemoteItem) -> str | None:
        if self.generator is None:
            return None
        request = SummaryRequest(
            type=kind.summary_type, content=item.summary_content, title=item.title
        )
        try:
            return self.generator.summarize(request)
        except Exception as exc:
            logger.warning(
                "summary generation failed",
                extra={"kind": kind.name, "item_id": item.id},
                exc_info=exc,
            )
            return None

    def schedule(self, store: JournalStore, kind: EntityKind, item: RemoteItem) -> None:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.concurrency, thread_name_prefix="devjournal-summary"
            )
        factory = self.store_factory or (lambda: JournalStore(store.db_path))
        future = self._executor.submit(self._fill_summary, factory, kind, item)
        with self._futures_lock:
            self._futures.append(future)

    def _fill_summary(
        self, factory: Callable[[], JournalStore], kind: EntityKind, item: RemoteItem
    ) -> None:
        try:
            summary = self.generate(kind, item)
            if not summary:
                return
            worker_store = factory()
            try:
                worker_store.set_summary_if_missing(kind.table, item.id, summary)
            finally:
                worker_store.close()
        except Exception as exc:
            logger.warning(
                "background summary failed",
                extra={"kind": kind.name, "item_id": item.id},
                exc_info=exc,
            )

    def wait(self, timeout: float | None = None) -> None:
        """Block until scheduled background summaries finish (tests and CLI use this)."""
        with self._futures_lock:
            pending = list(self._futures)
            self._futures.clear()
        if pending:
            wait_futures(pending, timeout=timeout)

    def close(self, *, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None
        with self._futures_lock:
            self._futures.clear()


def reconcile(
    store: JournalStore,
    kind: EntityKind,
    items: Iterable[RemoteItem],
    summaries: SummaryRunner | None = None,
) -> SyncCounts:
    """Apply one complete remote fetch of ``kind`` to its cache table."""
    table = kind.table
    counts = SyncCounts()
    with _lock_for(kind):
        existing = store.existing_state(table)
        seen: set[str] = set()
        for item in items:
            if item.id in seen:
                continue
            seen.add(item.id)
            updates = normalize_snapshot(table, item.snapshot)
            state = existing.get(item.id)
            needs_summary = (
                summaries is not None
                and (state is None or not state.has_summary)
                and summaries.eligible(item.summary_content)
            )
            summary: str | None = None
            if needs_summary and summaries is not None and not summaries.background:
                summary = summaries.generate(kind, item)

            if state is None:
                store.insert_cached_item(table, item.id, updates, summary=summary)
                counts.created += 1
            else:
                changed = snapshot_changes(table, state.snapshot, updates)
                store.update_cached_item(
                    table,
                    item.id,
                    updates,
                    summary=SetTo(summary) if summary else KEEP,
                    revive=state.is_deleted,
                )
                if changed or state.is_deleted or summary:
                    counts.updated += 1

            if needs_summary and summaries is not None and summaries.background:
                summaries.schedule(store, kind, item)

        for item_id, state in existing.items():
            if item_id in seen or state.is_deleted:
                continue
            if store.mark_cached_item_deleted(table, item_id):
                counts.deleted += 1

        counts.total = store.count_cached(table, include_deleted=True)

    logger.info(
        "sync pass complete",
        extra={"kind": kind.name, "counts": counts.to_dict()},
    )
    return counts
