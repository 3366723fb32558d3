from __future__ import annotations

import atexit
import logging
import threading
import weakref
from typing import Any, Dict, Optional

try:
    from mcp.server.fastmcp import FastMCP
except Exception as exc:  # pragma: no cover
    raise SystemExit(
        "mcp package is required for the MCP server. Install with `pip install -e .`"
    ) from exc

from .config import DevJournalConfig, load_config
from .integrations import DocumentsClient, LinearClient, RemoteFetchError, SliteClient
from .oracle import IndexLimits, OracleError, ask_oracle, build_index, build_oracle_generator
from .store import LINEAR_ISSUES, LINEAR_PROJECTS, SLITE_NOTES, JournalStore
from .sync import SummaryRunner, sync_linear_data, sync_slite_data

logger = logging.getLogger(__name__)


def build_store(
    cfg: DevJournalConfig | None = None, *, check_same_thread: bool = True
) -> JournalStore:
    cfg = cfg or load_config()
    return JournalStore(cfg.db_path, check_same_thread=check_same_thread)


def build_server(cfg: DevJournalConfig | None = None) -> FastMCP:
    cfg = cfg or load_config()
    mcp = FastMCP("devjournal")
    thread_local = threading.local()
    store_lock = threading.Lock()
    store_pool: weakref.WeakSet[JournalStore] = weakref.WeakSet()

    def get_store() -> JournalStore:
        store = getattr(thread_local, "store", None)
        if store is None:
            store = build_store(cfg)
            thread_local.store = store
            with store_lock:
                store_pool.add(store)
        return store

    def close_all_stores() -> None:
        with store_lock:
            stores = list(store_pool)
        for store in stores:
            try:
                store.close()
            except Exception:
                continue

    atexit.register(close_all_stores)

    def with_store(handler):
        return handler(get_store())

    @mcp.tool()
    def oracle_ask(
        question: str,
        repository: Optional[str] = None,
        depth: str = "quick",
    ) -> Dict[str, Any]:
        """Answer a question about the developer's work from the journal and cached sources."""

        def handler(store: JournalStore) -> Dict[str, Any]:
            generator = build_oracle_generator(cfg)
            if generator is None:
                return {"error": "oracle model is not configured"}
            documents = DocumentsClient.from_config(cfg)
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
                    max_tokens={
                        "quick": cfg.oracle_max_tokens_quick,
                        "deep": cfg.oracle_max_tokens_deep,
                    },
                )
            except (ValueError, OracleError) as exc:
                return {"error": str(exc)}
            finally:
                if documents is not None:
                    documents.close()
            return response.to_dict()

        return with_store(handler)

    @mcp.tool()
    def knowledge_index(repository: Optional[str] = None, deep: bool = False) -> Dict[str, Any]:
        """Return the knowledge index the oracle answers from."""

        def handler(store: JournalStore) -> Dict[str, Any]:
            documents = DocumentsClient.from_config(cfg)
            try:
                index = build_index(
                    store,
                    repository,
                    documents=documents,
                    limits=IndexLimits.from_config(cfg),
                    deep=deep,
                )
            finally:
                if documents is not None:
                    documents.close()
            return index.to_dict()

        return with_store(handler)

    @mcp.tool()
    def linear_sync(include_completed: bool = False) -> Dict[str, Any]:
        """Refresh the local Linear cache from the Linear API."""

        def handler(store: JournalStore) -> Dict[str, Any]:
            try:
                client = LinearClient.from_config(cfg)
            except RuntimeError as exc:
                return {"error": str(exc)}
            runner = SummaryRunner.from_config(cfg)
            try:
                result = sync_linear_data(
                    store, client, runner, include_completed=include_completed
                )
            except RemoteFetchError as exc:
                return exc.to_dict()
            finally:
                client.close()
                runner.close()
            return {"success": True, "syncResult": result.to_dict()}

        return with_store(handler)

    @mcp.tool()
    def slite_sync(include_completed: bool = False) -> Dict[str, Any]:
        """Refresh the local Slite cache from the Slite API."""

        def handler(store: JournalStore) -> Dict[str, Any]:
            try:
                client = SliteClient.from_config(cfg)
            except RuntimeError as exc:
                return {"error": str(exc)}
            runner = SummaryRunner.from_config(cfg)
            try:
                result = sync_slite_data(
                    store, client, runner, include_completed=include_completed
                )
            except RemoteFetchError as exc:
                return exc.to_dict()
            finally:
                client.close()
                runner.close()
            return {"success": True, "syncResult": result.to_dict()}

        return with_store(handler)

    @mcp.tool()
    def cache_status() -> Dict[str, Any]:
        """Row counts and last sync times for each cached source."""

        def handler(store: JournalStore) -> Dict[str, Any]:
            return {
                table.name: {
                    **store.cache_stats(table),
                    "lastSync": store.last_synced_at(table),
                }
                for table in (LINEAR_PROJECTS, LINEAR_ISSUES, SLITE_NOTES)
            }

        return with_store(handler)

    return mcp


def run() -> None:
    server = build_server()
    server.run()


if __name__ == "__main__":
    run()
