from __future__ import annotations

import json
import os
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Any

DEFAULT_CONFIG_PATH = Path("~/.config/devjournal/config.json").expanduser()

CONFIG_ENV_OVERRIDES = {
    "db_path": "DEVJOURNAL_DB",
    "linear_api_key": "DEVJOURNAL_LINEAR_API_KEY",
    "linear_user_id": "DEVJOURNAL_LINEAR_USER_ID",
    "linear_api_url": "DEVJOURNAL_LINEAR_API_URL",
    "linear_page_size": "DEVJOURNAL_LINEAR_PAGE_SIZE",
    "slite_api_key": "DEVJOURNAL_SLITE_API_KEY",
    "slite_api_url": "DEVJOURNAL_SLITE_API_URL",
    "slite_max_pages": "DEVJOURNAL_SLITE_MAX_PAGES",
    "documents_url": "DEVJOURNAL_DOCUMENTS_URL",
    "http_timeout_s": "DEVJOURNAL_HTTP_TIMEOUT_S",
    "summary_provider": "DEVJOURNAL_SUMMARY_PROVIDER",
    "summary_model": "DEVJOURNAL_SUMMARY_MODEL",
    "summary_api_key": "DEVJOURNAL_SUMMARY_API_KEY",
    "summary_base_url": "DEVJOURNAL_SUMMARY_BASE_URL",
    "summary_max_tokens": "DEVJOURNAL_SUMMARY_MAX_TOKENS",
    "summary_min_chars": "DEVJOURNAL_SUMMARY_MIN_CHARS",
    "summary_max_content_chars": "DEVJOURNAL_SUMMARY_MAX_CONTENT_CHARS",
    "summary_mode": "DEVJOURNAL_SUMMARY_MODE",
    "summary_concurrency": "DEVJOURNAL_SUMMARY_CONCURRENCY",
    "oracle_name": "DEVJOURNAL_ORACLE_NAME",
    "oracle_provider": "DEVJOURNAL_ORACLE_PROVIDER",
    "oracle_model": "DEVJOURNAL_ORACLE_MODEL",
    "oracle_api_key": "DEVJOURNAL_ORACLE_API_KEY",
    "oracle_base_url": "DEVJOURNAL_ORACLE_BASE_URL",
    "oracle_max_tokens_quick": "DEVJOURNAL_ORACLE_MAX_TOKENS_QUICK",
    "oracle_max_tokens_deep": "DEVJOURNAL_ORACLE_MAX_TOKENS_DEEP",
    "viewer_host": "DEVJOURNAL_VIEWER_HOST",
    "viewer_port": "DEVJOURNAL_VIEWER_PORT",
}

_INT_KEYS = {
    "linear_page_size",
    "slite_max_pages",
    "summary_max_tokens",
    "summary_min_chars",
    "summary_max_content_chars",
    "summary_concurrency",
    "oracle_max_tokens_quick",
    "oracle_max_tokens_deep",
    "index_project_summaries",
    "index_entries_per_repository",
    "index_repository_fanout",
    "index_entries_per_fanout_repository",
    "index_issues",
    "index_projects",
    "index_notes",
    "index_documents",
    "index_attachment_entries",
    "viewer_port",
}
_FLOAT_KEYS = {"http_timeout_s"}
SUMMARY_MODES = ("inline", "background")


def get_config_path(path: Path | None = None) -> Path:
    candidate = path or Path(os.getenv("DEVJOURNAL_CONFIG", DEFAULT_CONFIG_PATH))
    return candidate.expanduser()


def _strip_jsonc(text: str) -> str:
    """Drop // and /* */ comments and trailing commas that sit outside of strings."""
    out: list[str] = []
    in_string = False
    i = 0
    n = len(text)
    while i < n:
        char = text[i]
        if in_string:
            if char == "\\":
                out.append(text[i : i + 2])
                i += 2
                continue
            in_string = char != '"'
        elif char == '"':
            in_string = True
        elif text.startswith("//", i):
            end = text.find("\n", i)
            i = n if end == -1 else end
            continue
        elif text.startswith("/*", i):
            end = text.find("*/", i + 2)
            i = n if end == -1 else end + 2
            continue
        elif char in "]}":
            j = len(out) - 1
            while j >= 0 and out[j].isspace():
                j -= 1
            if j >= 0 and out[j] == ",":
                del out[j]
        out.append(char)
        i += 1
    return "".join(out)


def _parse_config_text(raw: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        pass
    cleaned = _strip_jsonc(raw)
    return json.loads(cleaned)


def read_config_file(path: Path | None = None) -> dict[str, Any]:
    config_path = get_config_path(path)
    if not config_path.exists():
        return {}
    raw = config_path.read_text()
    if not raw.strip():
        return {}
    try:
        data = _parse_config_text(raw)
    except json.JSONDecodeError as exc:
        raise ValueError("invalid config json") from exc
    if not isinstance(data, dict):
        raise ValueError("config must be an object")
    return data


def write_config_file(data: dict[str, Any], path: Path | None = None) -> Path:
    config_path = get_config_path(path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(json.dumps(data, ensure_ascii=False, indent=2) + "\n")
    return config_path


def get_env_overrides() -> dict[str, str]:
    overrides: dict[str, str] = {}
    for key, env_var in CONFIG_ENV_OVERRIDES.items():
        value = os.getenv(env_var)
        if value is not None:
            overrides[key] = value
    return overrides


@dataclass
class DevJournalConfig:
    db_path: str = "~/.devjournal.sqlite"

    linear_api_key: str | None = None
    linear_user_id: str | None = None
    linear_api_url: str = "https://api.linear.app/graphql"
    linear_page_size: int = 50
    slite_api_key: str | None = None
    slite_api_url: str = "https://api.slite.com/v1"
    slite_max_pages: int = 20
    # Companion service that owns documents; the index skips documents when unset.
    documents_url: str | None = None
    http_timeout_s: float = 30.0

    summary_provider: str = "anthropic"
    summary_model: str | None = None
    summary_api_key: str | None = None
    summary_base_url: str | None = None
    summary_max_tokens: int = 300
    summary_min_chars: int = 20
    summary_max_content_chars: int = 12000
    summary_mode: str = "inline"
    summary_concurrency: int = 4

    oracle_name: str = "Kronus"
    oracle_provider: str = "anthropic"
    oracle_model: str | None = None
    oracle_api_key: str | None = None
    oracle_base_url: str | None = None
    oracle_max_tokens_quick: int = 2048
    oracle_max_tokens_deep: int = 4096

    index_project_summaries: int = 50
    index_entries_per_repository: int = 30
    index_repository_fanout: int = 5
    index_entries_per_fanout_repository: int = 10
    index_issues: int = 100
    index_projects: int = 50
    index_notes: int = 50
    index_documents: int = 50
    index_attachment_entries: int = 10

    viewer_host: str = "127.0.0.1"
    viewer_port: int = 38889


def _parse_int(value: object, default: int, *, key: str) -> int:
    if value is None:
        return default
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        warnings.warn(f"Invalid int for {key}: {value!r}", RuntimeWarning, stacklevel=2)
        return default


def _parse_float(value: object, default: float, *, key: str) -> float:
    if value is None:
        return default
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        warnings.warn(f"Invalid float for {key}: {value!r}", RuntimeWarning, stacklevel=2)
        return default


def _coerce_value(cfg: DevJournalConfig, key: str, value: object) -> object:
    if key in _INT_KEYS:
        return _parse_int(value, getattr(cfg, key), key=key)
    if key in _FLOAT_KEYS:
        return _parse_float(value, getattr(cfg, key), key=key)
    if key == "summary_mode":
        mode = str(value or "").strip().lower()
        if mode not in SUMMARY_MODES:
            warnings.warn(f"Invalid summary_mode: {value!r}", RuntimeWarning, stacklevel=2)
            return cfg.summary_mode
        return mode
    if value is None:
        return None
    return str(value)


def load_config(path: Path | None = None) -> DevJournalConfig:
    cfg = DevJournalConfig()
    config_path = get_config_path(path)
    if config_path.exists():
        try:
            data = read_config_file(config_path)
        except ValueError:
            warnings.warn(
                f"Ignoring unreadable config at {config_path}", RuntimeWarning, stacklevel=2
            )
            data = {}
        cfg = _apply_dict(cfg, data)
    cfg = _apply_env(cfg)
    return cfg


def _apply_dict(cfg: DevJournalConfig, data: dict[str, Any]) -> DevJournalConfig:
    for key, value in data.items():
        if not hasattr(cfg, key):
            continue
        setattr(cfg, key, _coerce_value(cfg, key, value))
    return cfg


def _apply_env(cfg: DevJournalConfig) -> DevJournalConfig:
    for key, value in get_env_overrides().items():
        setattr(cfg, key, _coerce_value(cfg, key, value))
    return cfg
