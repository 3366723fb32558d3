from __future__ import annotations

import logging
from typing import Any, Protocol

from ..config import DevJournalConfig
from ..integrations import DocumentsClient
from ..llm import TextGenerator
from ..oracle import IndexLimits, OracleError, ask_oracle, build_oracle_generator
from ..store import JournalStore
from ..summarizer import SummaryError, SummaryGenerator, SummaryRequest

logger = logging.getLogger(__name__)


class _ViewerHandler(Protocol):
    def _send_json(self, payload: dict[str, Any], status: int = 200) -> None: ...


def build_summary_generator(cfg: DevJournalConfig) -> SummaryGenerator | None:
    return SummaryGenerator.from_config(cfg)


def build_generator(cfg: DevJournalConfig) -> TextGenerator | None:
    return build_oracle_generator(cfg)


def build_documents_client(cfg: DevJournalConfig) -> DocumentsClient | None:
    return DocumentsClient.from_config(cfg)


def _summarize(handler: _ViewerHandler, payload: dict[str, Any], cfg: DevJournalConfig) -> None:
    try:
        request = SummaryRequest.from_payload(payload)
    except ValueError as exc:
        handler._send_json({"error": str(exc)}, status=400)
        return
    generator = build_summary_generator(cfg)
    if generator is None:
        handler._send_json({"error": "summary model is not configured"}, status=503)
        return
    try:
        summary = generator.summarize(request)
    except ValueError as exc:
        handler._send_json({"error": str(exc)}, status=400)
        return
    except SummaryError as exc:
        logger.warning("summary generation failed", extra={"type": request.type}, exc_info=exc)
        handler._send_json({"error": f"summary generation failed: {exc}"}, status=502)
        return
    handler._send_json({"summary": summary, "type": request.type})


def _ask(
    handler: _ViewerHandler,
    store: JournalStore,
    payload: dict[str, Any],
    cfg: DevJournalConfig,
) -> None:
    question = payload.get("question")
    if not isinstance(question, str) or not question.strip():
        handler._send_json({"error": "question must be a non-empty string"}, status=400)
        return
    repository = payload.get("repository")
    if repository is not None and not isinstance(repository, str):
        handler._send_json({"error": "repository must be a string"}, status=400)
        return
    depth = payload.get("depth") or "quick"
    generator = build_generator(cfg)
    if generator is None:
        handler._send_json({"error": "oracle model is not configured"}, status=503)
        return
    documents = build_documents_client(cfg)
    try:
        response = ask_oracle(
            question,
            store=store,
            generator=generator,
            repository=repository,
            depth=str(depth),
            documents=documents,
            limits=IndexLimits.from_config(cfg),
            oracle_name=cfg.oracle_name,
            max_tokens={
                "quick": cfg.oracle_max_tokens_quick,
                "deep": cfg.oracle_max_tokens_deep,
            },
        )
    except ValueError as exc:
        handler._send_json({"error": str(exc)}, status=400)
        return
    except OracleError as exc:
        handler._send_json({"error": str(exc)}, status=502)
        return
    finally:
        if documents is not None:
            documents.close()
    handler._send_json(response.to_dict())


def handle_post(
    handler: _ViewerHandler,
    store: JournalStore,
    path: str,
    payload: dict[str, Any] | None,
    *,
    cfg: DevJournalConfig,
) -> bool:
    if path == "/api/ai/summarize":
        _summarize(handler, payload or {}, cfg)
        return True
    if path == "/api/oracle/ask":
        _ask(handler, store, payload or {}, cfg)
        return True
    return False
