from __future__ import annotations

from dataclasses import asdict, fields

import typer
from rich import print
from rich.markup import escape

from devjournal.config import (
    DevJournalConfig,
    get_config_path,
    load_config,
    read_config_file,
    write_config_file,
)

_CONFIG_KEYS = {f.name for f in fields(DevJournalConfig)}


def _mask(key: str, value: object) -> object:
    if key.endswith("_api_key") and value:
        return "***"
    return value


def _load_file_data() -> dict:
    try:
        return read_config_file()
    except ValueError as exc:
        print(f"[red]{escape(str(exc))} at {escape(str(get_config_path()))}[/red]")
        raise typer.Exit(code=1) from None


def _check_key(key: str) -> None:
    if key not in _CONFIG_KEYS:
        print(f"[red]Unknown config key {escape(key)!r}[/red]")
        raise typer.Exit(code=1)


def config_show_cmd() -> None:
    """Print the effective config with API keys masked."""

    cfg = load_config()
    print(f"[bold]Config[/bold] ({escape(str(get_config_path()))})")
    for key, value in asdict(cfg).items():
        print(f"- {key}: {escape(str(_mask(key, value)))}")


def config_set_cmd(*, key: str, value: str) -> None:
    _check_key(key)
    data = _load_file_data()
    data[key] = value
    path = write_config_file(data)
    print(f"Set {escape(key)} in {escape(str(path))}")


def config_unset_cmd(*, key: str) -> None:
    _check_key(key)
    data = _load_file_data()
    if data.pop(key, None) is None:
        print(f"{escape(key)} was not set")
        return
    path = write_config_file(data)
    print(f"Removed {escape(key)} from {escape(str(path))}")
