from __future__ import annotations

from typing import NoReturn

import typer
from rich import print
from rich.markup import escape

from devjournal.config import DevJournalConfig
from devjournal.integrations import LinearClient, RemoteFetchError, SliteClient
from devjournal.store import LINEAR_ISSUES, LINEAR_PROJECTS, SLITE_NOTES
from devjournal.sync import SummaryRunner, SyncCounts, sync_linear_data, sync_slite_data


def _format_counts(label: str, counts: SyncCounts) -> str:
    return (
        f"- {label}: {counts.total} total "
        f"({counts.created} new, {counts.updated} updated, {counts.deleted} deleted)"
    )


def _fail(message: str) -> NoReturn:
    print(f"[red]{escape(message)}[/red]")
    raise typer.Exit(code=1)


def sync_linear_cmd(
    *,
    store_from_path,
    cfg: DevJournalConfig,
    db_path: str | None,
    include_completed: bool,
) -> None:
    """Refresh the Linear project and issue cache."""

    try:
        client = LinearClient.from_config(cfg)
    except RuntimeError as exc:
        _fail(str(exc))
    runner = SummaryRunner.from_config(cfg)
    store = store_from_path(db_path)
    try:
        result = sync_linear_data(store, client, runner, include_completed=include_completed)
    except RemoteFetchError as exc:
        _fail(f"Linear sync failed: {exc}")
    finally:
        runner.close()
        client.close()
        store.close()
    print("[bold]Linear sync complete[/bold]")
    print(_format_counts("Projects", result.projects))
    print(_format_counts("Issues", result.issues))


def sync_slite_cmd(
    *,
    store_from_path,
    cfg: DevJournalConfig,
    db_path: str | None,
    include_completed: bool,
) -> None:
    """Refresh the Slite note cache."""

    try:
        client = SliteClient.from_config(cfg)
    except RuntimeError as exc:
        _fail(str(exc))
    runner = SummaryRunner.from_config(cfg)
    store = store_from_path(db_path)
    try:
        result = sync_slite_data(store, client, runner, include_completed=include_completed)
    except RemoteFetchError as exc:
        _fail(f"Slite sync failed: {exc}")
    finally:
        runner.close()
        client.close()
        store.close()
    print("[bold]Slite sync complete[/bold]")
    print(_format_counts("Notes", result.notes))


def sync_status_cmd(*, store_from_path, db_path: str | None) -> None:
    store = store_from_path(db_path)
    try:
        rows = [
            (table.name, store.cache_stats(table), store.last_synced_at(table))
            for table in (LINEAR_PROJECTS, LINEAR_ISSUES, SLITE_NOTES)
        ]
    finally:
        store.close()
    print("[bold]Cache status[/bold]")
    for name, stats, last_sync in rows:
        print(
            f"- {name}: {stats['active']} active, {stats['deleted']} deleted "
            f"(last sync {last_sync or 'never'})"
        )


def cache_cmd(
    *,
    store_from_path,
    db_path: str | None,
    source: str,
    include_deleted: bool,
    limit: int,
) -> None:
    tables = {
        "projects": LINEAR_PROJECTS,
        "issues": LINEAR_ISSUES,
        "notes": SLITE_NOTES,
    }
    table = tables.get(source)
    if table is None:
        _fail(f"Unknown source {source!r}; expected one of: {', '.join(tables)}")
    store = store_from_path(db_path)
    try:
        rows = store.list_cached(table, include_deleted=include_deleted, limit=limit)
    finally:
        store.close()
    if not rows:
        print(f"No cached {source}")
        return
    for row in rows:
        label = row.get("identifier") or row.get("name") or row.get("title") or row["id"]
        marker = " [dim](deleted)[/dim]" if row.get("is_deleted") else ""
        title = row.get("title") if row.get("identifier") else None
        line = f"- {escape(str(label))}"
        if title:
            line += f": {escape(title)}"
        print(line + marker)
        if row.get("summary"):
            print(f"  {escape(row['summary'])}")
