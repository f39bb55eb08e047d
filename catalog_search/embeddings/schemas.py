# FILE: catalog_search/embeddings/schemas.py
"""
Pydantic schemas for the AI search endpoints.

Responses are serialised with camelCase keys (itemId, indexedCount, ...).
Hits are keyed by itemId; the shop UI's own productId naming is not mirrored.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SearchResult(_CamelModel):
    """Single search hit. score is cosine distance (lower = closer)."""
    item_id: int
    content: str
    score: float


class SearchResponse(_CamelModel):
    results: List[SearchResult]


class AskRequest(BaseModel):
    question: str = ""


class Citation(_CamelModel):
    item_id: int
    score: float


class AskResponse(_CamelModel):
    answer: str
    citations: List[Citation]


class IndexerStatus(_CamelModel):
    state: str
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    indexed_count: int = 0
    failed_count: int = 0
    last_error: Optional[str] = None


class StatusResponse(_CamelModel):
    store: str
    records: int
    indexer: IndexerStatus
