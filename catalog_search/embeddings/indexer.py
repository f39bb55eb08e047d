# FILE: catalog_search/embeddings/indexer.py
"""
Catalog indexer: background population of the product embedding store.

Runs once per process lifetime:
1. Wait a grace period so the model service can warm up (cancellable)
2. Ensure the vector store schema
3. Enumerate the catalog
4. For each product, in order: build content, embed, upsert
5. Log per-product failures and keep going
6. Log how many products were indexed

State machine: not_started -> delayed -> indexing -> idle, or -> failed
when schema setup or catalog enumeration fails. Per-product failures
never move the indexer to failed, and nothing escapes to the host process.

Run one pass in the foreground with:
    python -m catalog_search.embeddings.indexer [--no-delay]
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from catalog_search.catalog import CatalogItem, CatalogReader
from catalog_search.embeddings.vector_store import VectorStore
from catalog_search.llm.services import EmbeddingService

logger = logging.getLogger(__name__)


class IndexerState(str, Enum):
    NOT_STARTED = "not_started"
    DELAYED = "delayed"
    INDEXING = "indexing"
    IDLE = "idle"
    FAILED = "failed"


def build_content(item: CatalogItem) -> str:
    """Text embedded for a product. Always contains the product name verbatim."""
    return f"Product: {item.name}"


class CatalogIndexer:
    """
    Owns the background indexing task.

    start() spawns the task, stop() cancels it (aborting the startup delay
    or the in-flight embed/upsert) and waits for it to unwind.
    """

    def __init__(
        self,
        catalog: CatalogReader,
        embeddings: EmbeddingService,
        store: VectorStore,
        startup_delay_seconds: float = 15.0,
    ):
        self._catalog = catalog
        self._embeddings = embeddings
        self._store = store
        self.startup_delay_seconds = startup_delay_seconds

        self._task: Optional[asyncio.Task] = None
        self._state = IndexerState.NOT_STARTED
        self._started_at: Optional[datetime] = None
        self._finished_at: Optional[datetime] = None
        self._indexed_count = 0
        self._failed_count = 0
        self._last_error: Optional[str] = None

    @property
    def state(self) -> IndexerState:
        return self._state

    @property
    def task(self) -> Optional[asyncio.Task]:
        return self._task

    # -------------------------------------------------------------- lifecycle

    async def start(self) -> None:
        """Spawn the background task. A second call is a no-op."""
        if self._task is not None:
            logger.warning("[indexer] Already started")
            return
        self._task = asyncio.create_task(self._run(), name="catalog-indexer")
        logger.info(f"[indexer] Started (delay={self.startup_delay_seconds}s)")

    async def stop(self) -> None:
        """Cancel the task if still running and wait for it to finish."""
        if self._task is None:
            return
        if not self._task.done():
            self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        logger.info("[indexer] Stopped")

    async def _run(self) -> None:
        """Task body: delay, then one pass. Only cancellation escapes."""
        try:
            self._state = IndexerState.DELAYED
            if self.startup_delay_seconds > 0:
                logger.info(f"[indexer] Waiting {self.startup_delay_seconds}s before indexing")
                await asyncio.sleep(self.startup_delay_seconds)
            await self.run_pass()
        except asyncio.CancelledError:
            logger.info(f"[indexer] Cancelled while {self._state.value}")
            raise
        except Exception as e:
            self._state = IndexerState.FAILED
            self._last_error = str(e)
            logger.error(f"[indexer] Indexing aborted: {e}")

    # ------------------------------------------------------------------ pass

    async def run_pass(self) -> int:
        """
        Index the whole catalog once.

        Returns the number of products indexed. Raises if schema setup or
        catalog enumeration fails; per-product errors are logged and skipped.
        The chunk index starts at 0 for every pass and only advances on
        success, so a failed product does not consume a slot.
        """
        self._state = IndexerState.INDEXING
        self._started_at = datetime.now(timezone.utc)
        self._finished_at = None
        self._indexed_count = 0
        self._failed_count = 0
        self._last_error = None

        try:
            await self._store.ensure_schema()
            items = await self._catalog.list_items()
        except Exception as e:
            self._state = IndexerState.FAILED
            self._last_error = str(e)
            self._finished_at = datetime.now(timezone.utc)
            raise

        logger.info(f"[indexer] Indexing {len(items)} products")

        chunk_index = 0
        for item in items:
            content = build_content(item)
            try:
                vector = await self._embeddings.create_embedding(content)
                await self._store.upsert(item.id, chunk_index, content, vector)
            except Exception as e:
                self._failed_count += 1
                logger.warning(f"[indexer] Failed to index product {item.id}: {e}")
                continue
            chunk_index += 1
            self._indexed_count += 1

        self._state = IndexerState.IDLE
        self._finished_at = datetime.now(timezone.utc)
        logger.info(f"[indexer] Indexed {self._indexed_count} products")
        return self._indexed_count

    def get_status(self) -> Dict[str, Any]:
        return {
            "state": self._state.value,
            "started_at": self._started_at,
            "finished_at": self._finished_at,
            "indexed_count": self._indexed_count,
            "failed_count": self._failed_count,
            "last_error": self._last_error,
        }


# =============================================================================
# CLI ENTRY POINT
# =============================================================================

async def _run_once(no_delay: bool) -> Dict[str, Any]:
    from catalog_search.config import load_settings
    from catalog_search.dependencies import build_container

    container = build_container(load_settings())
    try:
        indexer = container.indexer
        if no_delay:
            indexer.startup_delay_seconds = 0
        await indexer.start()
        await indexer.task
        status = indexer.get_status()
        status["store"] = container.store.kind
        return status
    finally:
        await container.aclose()


if __name__ == "__main__":
    import argparse

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(name)s] %(levelname)s: %(message)s")

    parser = argparse.ArgumentParser(description="Run one catalog indexing pass")
    parser.add_argument("--no-delay", action="store_true", help="skip the startup grace period")
    args = parser.parse_args()

    print("=== Catalog Indexing Pass ===")
    result = asyncio.run(_run_once(args.no_delay))
    for k, v in result.items():
        print(f"  {k}: {v}")
