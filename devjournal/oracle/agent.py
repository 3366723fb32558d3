from __future__ import annotations

import logging
import sqlite3
import time
from dataclasses import dataclass, field
from typing import Any

from ..config import DevJournalConfig, load_config
from ..llm import GenerationError, TextGenerator, resolve_credentials
from ..store import JournalStore
from .citations import Citation, extract_sources
from .index import DocumentSource, IndexLimits, build_index, format_index_for_prompt

logger = logging.getLogger(__name__)

DEPTHS = ("quick", "deep")
DEFAULT_MAX_TOKENS = {"quick": 2048, "deep": 4096}
ORACLE_TEMPERATURE = 0.5

BASE_INSTRUCTIONS = """## Instructions
- Answer the question using the knowledge index above
- Entry 0 (project summaries) may be outdated; cross-check with the dates of recent journal entries
- Be concise and direct
- Cite sources by identifier (commit hash, issue key like ENG-123, project or repository name)
- Note recency for dates; the newest entries describe the current state best
- If the index does not have enough information, say so clearly
- Do not make up information that is not in the index"""

QUICK_INSTRUCTIONS = """## Mode: Quick
Answer from the summaries only. When the caller needs more detail, name the
repository, commit or issue they should open next."""

DEEP_INSTRUCTIONS = """## Mode: Deep
The full knowledge context is loaded, including document excerpts. Answer
comprehensively from the data above and do not offer to look anything up."""


class OracleError(RuntimeError):
    pass


@dataclass
class OracleResponse:
    answer: str
    sources: list[Citation] = field(default_factory=list)
    depth_used: str = "quick"

    def to_dict(self) -> dict[str, Any]:
        return {
            "answer": self.answer,
            "sources": [source.to_dict() for source in self.sources],
            "depth_used": self.depth_used,
        }


def build_system_prompt(formatted_index: str, *, depth: str, oracle_name: str = "Kronus") -> str:
    persona = f"You are {oracle_name}, a knowledge oracle for a developer journal."
    mode = DEEP_INSTRUCTIONS if depth == "deep" else QUICK_INSTRUCTIONS
    return "\n\n".join(
        [
            persona,
            "## Your Knowledge Index\n" + (formatted_index or "(empty)"),
            BASE_INSTRUCTIONS,
            mode,
        ]
    )


def build_oracle_generator(cfg: DevJournalConfig | None = None) -> TextGenerator | None:
    cfg = cfg or load_config()
    credentials = resolve_credentials(
        cfg.oracle_provider,
        model=cfg.oracle_model,
        api_key=cfg.oracle_api_key,
        base_url=cfg.oracle_base_url,
    )
    if credentials is None:
        return None
    return TextGenerator(credentials)


def _record_chat(store: JournalStore, **fields: Any) -> None:
    try:
        store.record_oracle_chat(**fields)
    except sqlite3.Error as exc:
        logger.warning("failed to record oracle chat", exc_info=exc)


def ask_oracle(
    question: str,
    *,
    store: JournalStore,
    generator: TextGenerator,
    repository: str | None = None,
    depth: str = "quick",
    documents: DocumentSource | None = None,
    limits: IndexLimits | None = None,
    oracle_name: str = "Kronus",
    max_tokens: dict[str, int] | None = None,
) -> OracleResponse:
    question = (question or "").strip()
    if not question:
        raise ValueError("question must be a non-empty string")
    if depth not in DEPTHS:
        raise ValueError(f"depth must be one of: {', '.join(DEPTHS)}")
    repository = repository or None
    deep = depth == "deep"
    started = time.monotonic()

    index = build_index(store, repository, documents=documents, limits=limits, deep=deep)
    system_prompt = build_system_prompt(
        format_index_for_prompt(index, deep=deep), depth=depth, oracle_name=oracle_name
    )
    logger.info(
        "oracle question",
        extra={
            "repository": repository,
            "depth": depth,
            "index_counts": index.counts(),
            "failed_sources": list(index.failed_sources),
        },
    )
    budget = (max_tokens or DEFAULT_MAX_TOKENS).get(depth, DEFAULT_MAX_TOKENS[depth])

    try:
        generation = generator.generate(
            system_prompt, question, max_tokens=budget, temperature=ORACLE_TEMPERATURE
        )
    except GenerationError as exc:
        _record_chat(
            store,
            question=question,
            answer="",
            repository=repository,
            depth=depth,
            status="error",
            latency_ms=int((time.monotonic() - started) * 1000),
            error_message=str(exc),
        )
        raise OracleError(f"oracle failed to answer: {exc}") from exc

    answer = generation.text
    sources = extract_sources(answer, index)
    _record_chat(
        store,
        question=question,
        answer=answer,
        repository=repository,
        depth=depth,
        status="success",
        sources=[source.to_dict() for source in sources],
        input_tokens=generation.input_tokens,
        output_tokens=generation.output_tokens,
        latency_ms=int((time.monotonic() - started) * 1000),
    )
    return OracleResponse(answer=answer, sources=sources, depth_used=depth)
