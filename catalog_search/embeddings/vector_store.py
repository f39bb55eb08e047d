# FILE: catalog_search/embeddings/vector_store.py
"""
Vector store abstraction with a Postgres/pgvector backend and a no-op
fallback.

Metric: cosine distance (pgvector `<=>`). Scores are distances, so lower
means more similar and hits come back closest first.

The implementation is chosen once at startup by build_vector_store():
no connection string -> NoopVectorStore (semantic search silently returns
nothing), otherwise PostgresVectorStore.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Sequence

from sqlalchemy import func, select, text
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from catalog_search.config import VectorStoreOptions
from catalog_search.db import create_vector_engine
from catalog_search.embeddings.models import product_embeddings_table
from catalog_search.errors import ProviderProtocolError, StoreUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SimilarityHit:
    """One query result. score is the cosine distance (lower = closer)."""
    item_id: int
    content: str
    score: float


class VectorStore(ABC):
    """
    Persists (item_id, chunk_index) -> (content, embedding) and answers
    top-K similarity queries.
    """

    kind: str = "abstract"

    @abstractmethod
    async def ensure_schema(self) -> None:
        """Create storage structures if absent. Idempotent."""

    @abstractmethod
    async def upsert(
        self,
        item_id: int,
        chunk_index: int,
        content: str,
        embedding: Sequence[float],
    ) -> None:
        """Insert or overwrite the record keyed by (item_id, chunk_index)."""

    @abstractmethod
    async def query_top_k(self, embedding: Sequence[float], k: int) -> List[SimilarityHit]:
        """At most k hits, closest first."""

    @abstractmethod
    async def count(self) -> int:
        """Number of stored records."""

    async def close(self) -> None:
        """Release resources. Override if needed."""
        pass


class NoopVectorStore(VectorStore):
    """Used when no vector store is configured. Accepts everything, keeps nothing."""

    kind = "noop"

    async def ensure_schema(self) -> None:
        return None

    async def upsert(self, item_id, chunk_index, content, embedding) -> None:
        return None

    async def query_top_k(self, embedding, k) -> List[SimilarityHit]:
        return []

    async def count(self) -> int:
        return 0


class PostgresVectorStore(VectorStore):
    """
    pgvector-backed store.

    Table product_embeddings, primary key (product_id, chunk_idx), hnsw
    index with vector_cosine_ops. Any database failure is raised as
    StoreUnavailable.
    """

    kind = "postgres"

    def __init__(self, engine: AsyncEngine, dimensions: int):
        self._engine = engine
        self._dimensions = dimensions
        self._table = product_embeddings_table(dimensions)

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def _check_dimensions(self, embedding: Sequence[float]) -> List[float]:
        vector = [float(v) for v in embedding]
        if len(vector) != self._dimensions:
            raise ProviderProtocolError(
                f"Vector dimension mismatch: expected {self._dimensions}, got {len(vector)}"
            )
        return vector

    async def ensure_schema(self) -> None:
        try:
            async with self._engine.begin() as conn:
                await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
                await conn.run_sync(
                    lambda sync_conn: self._table.create(sync_conn, checkfirst=True)
                )
        except (SQLAlchemyError, OSError) as e:
            raise StoreUnavailable(f"ensure_schema failed: {e}") from e
        logger.info(f"[vector_store] Schema ready (dimensions={self._dimensions})")

    def _upsert_statement(self, item_id: int, chunk_index: int, content: str, vector: List[float]):
        t = self._table
        stmt = pg_insert(t).values(
            product_id=item_id,
            chunk_idx=chunk_index,
            content=content,
            embedding=vector,
        )
        return stmt.on_conflict_do_update(
            index_elements=[t.c.product_id, t.c.chunk_idx],
            set_={
                "content": stmt.excluded.content,
                "embedding": stmt.excluded.embedding,
                "updated_at": func.now(),
            },
        )

    def _query_statement(self, vector: List[float], k: int):
        t = self._table
        distance = t.c.embedding.cosine_distance(vector).label("score")
        return (
            select(t.c.product_id, t.c.content, distance)
            .order_by(distance, t.c.product_id, t.c.chunk_idx)
            .limit(k)
        )

    async def upsert(self, item_id, chunk_index, content, embedding) -> None:
        if chunk_index < 0:
            raise ValueError("chunk_index must be >= 0")
        vector = self._check_dimensions(embedding)
        stmt = self._upsert_statement(item_id, chunk_index, content, vector)
        try:
            async with self._engine.begin() as conn:
                await conn.execute(stmt)
        except (SQLAlchemyError, OSError) as e:
            raise StoreUnavailable(f"upsert of product {item_id} failed: {e}") from e

    async def query_top_k(self, embedding, k) -> List[SimilarityHit]:
        if k <= 0:
            return []
        vector = self._check_dimensions(embedding)
        stmt = self._query_statement(vector, k)
        try:
            async with self._engine.connect() as conn:
                result = await conn.execute(stmt)
                rows = result.all()
        except (SQLAlchemyError, OSError) as e:
            raise StoreUnavailable(f"similarity query failed: {e}") from e

        return [
            SimilarityHit(item_id=row.product_id, content=row.content, score=float(row.score))
            for row in rows
        ]

    async def count(self) -> int:
        try:
            async with self._engine.connect() as conn:
                result = await conn.execute(select(func.count()).select_from(self._table))
                return int(result.scalar_one())
        except (SQLAlchemyError, OSError) as e:
            raise StoreUnavailable(f"count failed: {e}") from e

    async def close(self) -> None:
        await self._engine.dispose()


def build_vector_store(
    options: VectorStoreOptions,
    engine: Optional[AsyncEngine] = None,
) -> VectorStore:
    """
    Factory: pick the store implementation once, from configuration presence.

    Args:
        options: vector store settings
        engine: pre-built async engine (tests); created from the connection
            string otherwise
    """
    if not options.is_configured:
        logger.warning(
            "[vector_store] VECTOR_STORE_CONNECTION_STRING not set - "
            "semantic search disabled (no-op store)"
        )
        return NoopVectorStore()

    engine = engine or create_vector_engine(options.connection_string)
    logger.info(f"[vector_store] Using Postgres vector store (dimensions={options.dimensions})")
    return PostgresVectorStore(engine, options.dimensions)


__all__ = [
    "SimilarityHit",
    "VectorStore",
    "NoopVectorStore",
    "PostgresVectorStore",
    "build_vector_store",
]
