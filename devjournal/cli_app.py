from __future__ import annotations

import logging

import typer
from rich import print

from . import __version__
from .commands.config_cmds import config_set_cmd, config_show_cmd, config_unset_cmd
from .commands.oracle_cmds import ask_cmd, index_cmd
from .commands.sync_cmds import cache_cmd, sync_linear_cmd, sync_slite_cmd, sync_status_cmd
from .config import load_config
from .store import JournalStore
from .viewer import start_viewer

app = typer.Typer(help="devjournal: cached work-tracker sync and a knowledge oracle")
sync_app = typer.Typer(help="Refresh the local caches of Linear and Slite")
app.add_typer(sync_app, name="sync")
config_app = typer.Typer(help="Inspect and edit the config file")
app.add_typer(config_app, name="config")


@app.callback()
def _main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _store(db_path: str | None) -> JournalStore:
    return JournalStore(db_path or load_config().db_path)


@sync_app.command("linear")
def sync_linear(
    db_path: str = typer.Option(None, help="Path to SQLite database"),
    include_completed: bool = typer.Option(
        False, help="Also cache completed and canceled projects and issues"
    ),
) -> None:
    """Sync Linear projects and issues into the local cache."""

    sync_linear_cmd(
        store_from_path=_store,
        cfg=load_config(),
        db_path=db_path,
        include_completed=include_completed,
    )


@sync_app.command("slite")
def sync_slite(
    db_path: str = typer.Option(None, help="Path to SQLite database"),
    include_completed: bool = typer.Option(False, help="Also cache archived notes"),
) -> None:
    """Sync Slite notes into the local cache."""

    sync_slite_cmd(
        store_from_path=_store,
        cfg=load_config(),
        db_path=db_path,
        include_completed=include_completed,
    )


@sync_app.command("status")
def sync_status(db_path: str = typer.Option(None, help="Path to SQLite database")) -> None:
    """Show cache row counts and last sync times."""

    sync_status_cmd(store_from_path=_store, db_path=db_path)


@app.command()
def cache(
    source: str = typer.Argument(..., help="projects, issues or notes"),
    db_path: str = typer.Option(None, help="Path to SQLite database"),
    include_deleted: bool = typer.Option(False, help="Include soft-deleted rows"),
    limit: int = typer.Option(20, min=1, max=500, help="Maximum rows to show"),
) -> None:
    """List cached remote items."""

    cache_cmd(
        store_from_path=_store,
        db_path=db_path,
        source=source,
        include_deleted=include_deleted,
        limit=limit,
    )


@app.command()
def index(
    repository: str = typer.Option(None, help="Scope the index to one repository"),
    db_path: str = typer.Option(None, help="Path to SQLite database"),
    deep: bool = typer.Option(False, help="Include document content"),
    as_json: bool = typer.Option(False, "--json", help="Print the index as JSON"),
) -> None:
    """Print the knowledge index."""

    index_cmd(
        store_from_path=_store,
        cfg=load_config(),
        db_path=db_path,
        repository=repository,
        deep=deep,
        as_json=as_json,
    )


@app.command()
def ask(
    question: str = typer.Argument(..., help="Question for the oracle"),
    repository: str = typer.Option(None, help="Scope the answer to one repository"),
    depth: str = typer.Option("quick", help="quick or deep"),
    db_path: str = typer.Option(None, help="Path to SQLite database"),
) -> None:
    """Ask the oracle a question about your work."""

    ask_cmd(
        store_from_path=_store,
        cfg=load_config(),
        db_path=db_path,
        question=question,
        repository=repository,
        depth=depth,
    )


@config_app.command("show")
def config_show() -> None:
    """Print the effective config."""

    config_show_cmd()


@config_app.command("set")
def config_set(
    key: str = typer.Argument(..., help="Config key, e.g. linear_api_key"),
    value: str = typer.Argument(..., help="Value to store in the config file"),
) -> None:
    """Store a value in the config file."""

    config_set_cmd(key=key, value=value)


@config_app.command("unset")
def config_unset(key: str = typer.Argument(..., help="Config key to remove")) -> None:
    """Remove a value from the config file."""

    config_unset_cmd(key=key)


@app.command()
def serve(
    host: str = typer.Option(None, help="Host to bind the HTTP API"),
    port: int = typer.Option(None, help="Port to bind the HTTP API"),
) -> None:
    """Run the HTTP API in the foreground."""

    cfg = load_config()
    host = host or cfg.viewer_host
    port = port or cfg.viewer_port
    print(f"[green]Serving devjournal API at http://{host}:{port}[/green]")
    start_viewer(host=host, port=port, background=False)


@app.command()
def mcp() -> None:
    """Run the MCP server over stdio."""

    from devjournal.mcp_server import run as mcp_run

    mcp_run()


@app.command("version")
def version() -> None:
    """Print version."""

    print(__version__)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
