# FILE: catalog_search/embeddings/__init__.py
"""
Semantic search over the product catalog.
Provides the vector store, the background catalog indexer and the
retrieval-augmented query path.
"""

from .vector_store import (
    SimilarityHit,
    VectorStore,
    NoopVectorStore,
    PostgresVectorStore,
    build_vector_store,
)
from .service import (
    GroundedAnswer,
    SearchService,
    build_prompt,
)
from .indexer import (
    CatalogIndexer,
    IndexerState,
    build_content,
)

__all__ = [
    # Store
    "SimilarityHit",
    "VectorStore",
    "NoopVectorStore",
    "PostgresVectorStore",
    "build_vector_store",
    # Query path
    "GroundedAnswer",
    "SearchService",
    "build_prompt",
    # Indexer
    "CatalogIndexer",
    "IndexerState",
    "build_content",
]
