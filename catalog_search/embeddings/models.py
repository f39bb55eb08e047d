# FILE: catalog_search/embeddings/models.py
"""
SQLAlchemy table for product embedding storage.

One row per (product_id, chunk_idx):
    content: the text that was embedded (shown as grounding/citation text)
    embedding: pgvector column, dimensionality fixed per store
    updated_at: last write; refreshed on every upsert

The vector dimensionality comes from configuration, so the table is built
by a factory instead of a declarative class.
"""

from typing import Dict, Tuple

from pgvector.sqlalchemy import Vector
from sqlalchemy import Column, DateTime, Index, Integer, MetaData, Table, Text, func

TABLE_NAME = "product_embeddings"
INDEX_NAME = "idx_product_embeddings_embedding"

# hnsw build parameters (pgvector defaults). hnsw has no training step, so it
# stays usable when created on an empty table before any rows exist.
HNSW_M = 16
HNSW_EF_CONSTRUCTION = 64

_tables: Dict[int, Tuple[MetaData, Table]] = {}


def product_embeddings_table(dimensions: int) -> Table:
    """Return the (cached) table definition for the given dimensionality."""
    if dimensions <= 0:
        raise ValueError("dimensions must be > 0")

    cached = _tables.get(dimensions)
    if cached is not None:
        return cached[1]

    metadata = MetaData()
    table = Table(
        TABLE_NAME,
        metadata,
        Column("product_id", Integer, primary_key=True, autoincrement=False),
        Column("chunk_idx", Integer, primary_key=True, autoincrement=False),
        Column("content", Text, nullable=False),
        Column("embedding", Vector(dimensions), nullable=False),
        Column(
            "updated_at",
            DateTime(timezone=True),
            nullable=False,
            server_default=func.now(),
        ),
        Index(
            INDEX_NAME,
            "embedding",
            postgresql_using="hnsw",
            postgresql_with={"m": HNSW_M, "ef_construction": HNSW_EF_CONSTRUCTION},
            postgresql_ops={"embedding": "vector_cosine_ops"},
        ),
    )
    _tables[dimensions] = (metadata, table)
    return table
