from __future__ import annotations

import json
import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .config import DevJournalConfig, load_config
from .llm import GenerationError, TextGenerator, resolve_credentials
from .redaction import redact

logger = logging.getLogger(__name__)

DEFAULT_SUMMARY_MODELS = {
    "anthropic": "claude-haiku-4-5",
    "openai": "gpt-4.1-mini",
}

SUMMARY_TYPES = (
    "journal_entry",
    "project_summary",
    "document",
    "linear_issue",
    "linear_project",
    "attachment",
    "media",
    "skill",
    "work_experience",
    "education",
    "portfolio_project",
    "slite_note",
)

SUMMARY_SYSTEM_PROMPT = """You are a precise summarization engine for a developer journal.
Write dense, information-rich 3-sentence summaries used to index content for retrieval.

## Summary structure
- Sentence 1: what it is and its primary purpose
- Sentence 2: key details, components or changes
- Sentence 3: current status, impact or notable aspects

## Guidelines
- Pack maximum meaning into minimum words; no filler
- Use specific technical terms and keep identifiers (file names, versions, IDs)
- Precision and recall matter most

## Type-specific focus
- journal_entry: what changed, why, and impact
- project_summary: purpose, architecture, and current state
- document: topic, key points, intended use
- linear_issue: problem, status, assignee and priority
- linear_project: goals, progress, timeline
- slite_note: topic, decisions recorded, who it is for
- attachment/media: what it shows and its context
- skill, work_experience, education, portfolio_project: scope, achievements, relevance

Respond with JSON only: {"summary": "<three sentences>"}"""

_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


class SummaryError(RuntimeError):
    """The model produced no usable summary."""


@dataclass
class SummaryRequest:
    type: str
    content: str
    title: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> SummaryRequest:
        kind = payload.get("type")
        content = payload.get("content")
        title = payload.get("title")
        metadata = payload.get("metadata")
        if not isinstance(kind, str) or kind not in SUMMARY_TYPES:
            raise ValueError(f"type must be one of: {', '.join(SUMMARY_TYPES)}")
        if not isinstance(content, str) or not content.strip():
            raise ValueError("content must be a non-empty string")
        if title is not None and not isinstance(title, str):
            raise ValueError("title must be a string")
        if metadata is not None and not isinstance(metadata, dict):
            raise ValueError("metadata must be an object")
        return cls(type=kind, content=content, title=title or None, metadata=dict(metadata or {}))


def build_summary_prompt(request: SummaryRequest, *, max_content_chars: int = 0) -> str:
    content = redact(request.content)
    if max_content_chars > 0 and len(content) > max_content_chars:
        content = content[:max_content_chars]
    lines = [f"Generate a 3-sentence summary for this {request.type}:", ""]
    if request.title:
        lines.append(f"Title: {request.title}")
    meta = [
        f"{key}: {json.dumps(value) if isinstance(value, (dict, list)) else value}"
        for key, value in request.metadata.items()
        if value is not None
    ]
    if meta:
        lines.append("Metadata:")
        lines.extend(meta)
    lines.extend(["", "Content:", content])
    return "\n".join(lines)


def parse_summary_payload(raw: str) -> str:
    """Pull the summary out of a model reply; plain text is accepted as the summary."""
    text = (raw or "").strip()
    if not text:
        return ""
    candidates = [text]
    match = _JSON_OBJECT_RE.search(text)
    if match and match.group(0) != text:
        candidates.append(match.group(0))
    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return str(data.get("summary") or "").strip()
    if text.startswith("{"):
        return ""
    return text


class SummaryGenerator:
    def __init__(
        self,
        generator: TextGenerator,
        *,
        max_tokens: int = 300,
        max_content_chars: int = 12000,
    ) -> None:
        self.generator = generator
        self.max_tokens = max_tokens
        self.max_content_chars = max_content_chars

    @classmethod
    def from_config(cls, cfg: DevJournalConfig | None = None) -> SummaryGenerator | None:
        """Return a generator for the configured provider, or None when no key is available."""
        cfg = cfg or load_config()
        provider = (cfg.summary_provider or "anthropic").lower()
        credentials = resolve_credentials(
            provider,
            model=cfg.summary_model or DEFAULT_SUMMARY_MODELS.get(provider),
            api_key=cfg.summary_api_key,
            base_url=cfg.summary_base_url,
        )
        if credentials is None:
            return None
        return cls(
            TextGenerator(credentials),
            max_tokens=cfg.summary_max_tokens,
            max_content_chars=cfg.summary_max_content_chars,
        )

    def summarize(self, request: SummaryRequest) -> str:
        if request.type not in SUMMARY_TYPES:
            raise ValueError(f"unknown summary type: {request.type}")
        if not request.content.strip():
            raise ValueError("content must be a non-empty string")
        prompt = build_summary_prompt(request, max_content_chars=self.max_content_chars)
        try:
            generation = self.generator.generate(
                SUMMARY_SYSTEM_PROMPT, prompt, max_tokens=self.max_tokens, temperature=0
            )
        except GenerationError as exc:
            raise SummaryError(str(exc)) from exc
        summary = parse_summary_payload(generation.text)
        if not summary:
            raise SummaryError("model returned no summary")
        logger.debug(
            "summary generated",
            extra={"type": request.type, "chars": len(summary)},
        )
        return summary
