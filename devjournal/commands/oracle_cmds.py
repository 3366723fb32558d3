from __future__ import annotations

import json

import typer
from rich import print
from rich.markup import escape

from devjournal.config import DevJournalConfig
from devjournal.integrations import DocumentsClient
from devjournal.oracle import (
    IndexLimits,
    OracleError,
    ask_oracle,
    build_index,
    build_oracle_generator,
    format_index_for_prompt,
)


def index_cmd(
    *,
    store_from_path,
    cfg: DevJournalConfig,
    db_path: str | None,
    repository: str | None,
    deep: bool,
    as_json: bool,
) -> None:
    """Print the knowledge index the oracle would answer from."""

    documents = DocumentsClient.from_config(cfg)
    store = store_from_path(db_path)
    try:
        index = build_index(
            store, repository, documents=documents, limits=IndexLimits.from_config(cfg), deep=deep
        )
    finally:
        store.close()
        if documents is not None:
            documents.close()
    if as_json:
        typer.echo(json.dumps(index.to_dict(), indent=2, ensure_ascii=False))
        return
    for name, count in index.counts().items():
        print(f"- {name}: {count}")
    if index.failed_sources:
        print(f"[yellow]Unavailable: {', '.join(index.failed_sources)}[/yellow]")
    typer.echo("")
    typer.echo(format_index_for_prompt(index, deep=deep))


def ask_cmd(
    *,
    store_from_path,
    cfg: DevJournalConfig,
    db_path: str | None,
    question: str,
    repository: str | None,
    depth: str,
) -> None:
    generator = build_oracle_generator(cfg)
    if generator is None:
        print("[red]No oracle model configured (set oracle_api_key or ANTHROPIC_API_KEY)[/red]")
        raise typer.Exit(code=1)
    documents = DocumentsClient.from_config(cfg)
    store = store_from_path(db_path)
    try:
        response = ask_oracle(
            question,
            store=store,
            generator=generator,
            repository=repository,
            depth=depth,
            documents=documents,
            limits=IndexLimits.from_config(cfg),
            oracle_name=cfg.oracle_name,
            max_tokens={"quick": cfg.oracle_max_tokens_quick, "deep": cfg.oracle_max_tokens_deep},
        )
    except (ValueError, OracleError) as exc:
        print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from None
    finally:
        store.close()
        if documents is not None:
            documents.close()
    typer.echo(response.answer)
    if response.sources:
        print("\n[bold]Sources[/bold]")
        for source in response.sources:
            title = f" ({source.title})" if source.title else ""
            print(f"- {source.type}: {escape(source.identifier)}{escape(title)}")
