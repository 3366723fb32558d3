import json
from pathlib import Path

import pytest

from devjournal.config import (
    get_config_path,
    get_env_overrides,
    load_config,
    read_config_file,
    write_config_file,
)


def test_read_config_file_rejects_invalid_json(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text("{not-json}")
    with pytest.raises(ValueError, match="invalid config json"):
        read_config_file(config_path)


def test_read_config_file_rejects_non_object(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text("[1, 2]")
    with pytest.raises(ValueError, match="config must be an object"):
        read_config_file(config_path)


def test_read_config_file_accepts_jsonc_comments_and_trailing_commas(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text(
        """
        {
          // Linear workspace
          "linear_user_id": "user-1",
          /* summaries */
          "summary_mode": "background",
        }
        """
    )

    data = read_config_file(config_path)

    assert data["linear_user_id"] == "user-1"
    assert data["summary_mode"] == "background"


def test_config_path_from_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    target = tmp_path / "elsewhere.json"
    monkeypatch.setenv("DEVJOURNAL_CONFIG", str(target))
    assert get_config_path() == target


def test_load_config_defaults_without_file() -> None:
    cfg = load_config()
    assert cfg.linear_api_key is None
    assert cfg.summary_mode == "inline"
    assert cfg.summary_min_chars == 20
    assert cfg.oracle_name == "Kronus"


def test_load_config_applies_file_then_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_path = tmp_path / "config.json"
    write_config_file(
        {
            "linear_api_key": "from-file",
            "linear_page_size": 25,
            "http_timeout_s": "12.5",
            "unknown_key": "ignored",
        },
        config_path,
    )
    monkeypatch.setenv("DEVJOURNAL_LINEAR_API_KEY", "from-env")
    monkeypatch.setenv("DEVJOURNAL_SUMMARY_CONCURRENCY", "8")

    cfg = load_config(config_path)

    assert cfg.linear_api_key == "from-env"
    assert cfg.linear_page_size == 25
    assert cfg.http_timeout_s == 12.5
    assert cfg.summary_concurrency == 8
    assert not hasattr(cfg, "unknown_key")
    assert json.loads(config_path.read_text())["linear_page_size"] == 25


def test_invalid_values_warn_and_keep_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DEVJOURNAL_VIEWER_PORT", "not-a-port")
    monkeypatch.setenv("DEVJOURNAL_SUMMARY_MODE", "eventually")

    with pytest.warns(RuntimeWarning):
        cfg = load_config()

    assert cfg.viewer_port == 38889
    assert cfg.summary_mode == "inline"


def test_env_overrides_only_lists_set_variables(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DEVJOURNAL_SLITE_API_KEY", "slite-key")
    overrides = get_env_overrides()
    assert overrides["slite_api_key"] == "slite-key"
    assert "linear_api_key" not in overrides


def test_unreadable_config_file_is_ignored(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text("{broken")
    with pytest.warns(RuntimeWarning, match="Ignoring unreadable config"):
        cfg = load_config(config_path)
    assert cfg.linear_api_key is None


def test_jsonc_keeps_comment_markers_inside_strings(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text(
        '{"documents_url": "http://localhost:3000/api", // docs\n'
        ' "oracle_name": "Say \\"hi\\", /* not a comment */",\n'
        ' "linear_page_size": [1, 2,],}'
    )

    data = read_config_file(config_path)

    assert data["documents_url"] == "http://localhost:3000/api"
    assert data["oracle_name"] == 'Say "hi", /* not a comment */'
    assert data["linear_page_size"] == [1, 2]
