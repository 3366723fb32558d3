from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from ..integrations.http import RemoteFetchError
from ..store import SLITE_NOTES, JournalStore
from .reconcile import EntityKind, RemoteItem, SummaryRunner, SyncCounts, reconcile

logger = logging.getLogger(__name__)

NOTES = EntityKind(name="slite_notes", table=SLITE_NOTES, summary_type="slite_note")


class SliteSource(Protocol):
    def list_notes(self) -> list[dict[str, Any]]: ...

    def get_note(self, note_id: str) -> dict[str, Any]: ...


@dataclass
class SliteSyncResult:
    notes: SyncCounts = field(default_factory=SyncCounts)

    def to_dict(self) -> dict[str, dict[str, int]]:
        return {"notes": self.notes.to_dict()}


def note_is_active(note: dict[str, Any]) -> bool:
    return not note.get("archivedAt")


def _owner_id(note: dict[str, Any]) -> str | None:
    owner = note.get("owner")
    if not isinstance(owner, dict):
        return None
    return owner.get("userId") or owner.get("groupId") or None


def note_to_item(note: dict[str, Any], content: str | None, *, fetched: bool) -> RemoteItem:
    """Build the cache item for a note.

    When the body fetch failed (``fetched`` is False) the snapshot leaves
    ``content`` out so the previously cached body is kept.
    """
    snapshot: dict[str, Any] = {
        "title": note.get("title") or "",
        "parent_note_id": note.get("parentNoteId") or None,
        "url": note.get("url") or None,
        "owner_id": _owner_id(note),
        "review_state": note.get("reviewState") or None,
        "last_edited_at": note.get("lastEditedAt") or None,
        "remote_updated_at": note.get("updatedAt") or None,
        "archived_at": note.get("archivedAt") or None,
    }
    if fetched:
        snapshot["content"] = content or None
    return RemoteItem(
        id=str(note["id"]),
        title=note.get("title"),
        summary_content=content or "",
        snapshot=snapshot,
    )


def _fetch_content(client: SliteSource, note_id: str) -> tuple[str | None, bool]:
    try:
        full = client.get_note(note_id)
    except RemoteFetchError as exc:
        logger.warning(
            "slite note content fetch failed",
            extra={"note_id": note_id, "status": exc.status},
            exc_info=exc,
        )
        return None, False
    content = full.get("content")
    return (content if isinstance(content, str) else None), True


def sync_slite_notes(
    store: JournalStore,
    client: SliteSource,
    summaries: SummaryRunner | None = None,
    *,
    include_completed: bool = False,
) -> SyncCounts:
    notes = [n for n in client.list_notes() if isinstance(n, dict) and n.get("id")]
    if not include_completed:
        notes = [n for n in notes if note_is_active(n)]
    items: list[RemoteItem] = []
    for note in notes:
        content, fetched = _fetch_content(client, str(note["id"]))
        items.append(note_to_item(note, content, fetched=fetched))
    return reconcile(store, NOTES, items, summaries)


def sync_slite_data(
    store: JournalStore,
    client: SliteSource,
    summaries: SummaryRunner | None = None,
    *,
    include_completed: bool = False,
) -> SliteSyncResult:
    notes = sync_slite_notes(store, client, summaries, include_completed=include_completed)
    return SliteSyncResult(notes=notes)
