from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from devjournal.config import CONFIG_ENV_OVERRIDES
from devjournal.llm import Generation, GenerationError
from devjournal.store import JournalStore


@pytest.fixture(autouse=True)
def _isolate_config(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for env_var in CONFIG_ENV_OVERRIDES.values():
        monkeypatch.delenv(env_var, raising=False)
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.setenv("DEVJOURNAL_CONFIG", str(tmp_path / "config.json"))
    monkeypatch.setenv("DEVJOURNAL_DB", str(tmp_path / "journal.sqlite"))


@pytest.fixture
def store(tmp_path: Path):
    journal_store = JournalStore(tmp_path / "journal.sqlite")
    try:
        yield journal_store
    finally:
        journal_store.close()


class FakeTextGenerator:
    """Stands in for ``TextGenerator``; records calls and replays canned replies."""

    def __init__(self, replies: list[str] | None = None, *, error: str | None = None) -> None:
        self.replies = list(replies or [])
        self.error = error
        self.calls: list[dict[str, Any]] = []

    def generate(
        self, system: str, prompt: str, *, max_tokens: int, temperature: float = 0.0
    ) -> Generation:
        self.calls.append(
            {
                "system": system,
                "prompt": prompt,
                "max_tokens": max_tokens,
                "temperature": temperature,
            }
        )
        if self.error:
            raise GenerationError(self.error)
        text = self.replies.pop(0) if self.replies else '{"summary": "A short summary."}'
        return Generation(text=text, input_tokens=11, output_tokens=7)


@pytest.fixture
def fake_generator() -> FakeTextGenerator:
    return FakeTextGenerator()


@pytest.fixture
def make_generator():
    return FakeTextGenerator
