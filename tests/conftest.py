# FILE: tests/conftest.py
"""
Pytest configuration for the catalog search test suite.

Configures:
- pytest-asyncio for async test support
- in-memory fakes for the catalog, the model endpoint and the vector store
"""
import math
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

_project_root = Path(__file__).parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

import pytest

from catalog_search.catalog import CatalogItem
from catalog_search.embeddings.vector_store import SimilarityHit, VectorStore

pytest_plugins = ["pytest_asyncio"]


# =============================================================================
# FAKES
# =============================================================================

class FakeCatalog:
    def __init__(self, items: Sequence[CatalogItem] = (), error: Optional[Exception] = None):
        self.items = list(items)
        self.error = error

    async def list_items(self) -> List[CatalogItem]:
        if self.error is not None:
            raise self.error
        return list(self.items)


class FakeEmbeddings:
    """
    Deterministic text -> 3-d vector. Texts mentioning a name listed in
    `fail_on` raise the configured error.
    """

    def __init__(self, fail_on: Sequence[str] = (), error: Optional[Exception] = None):
        self.calls: List[str] = []
        self.fail_on = list(fail_on)
        self.error = error
        self.vectors: Dict[str, List[float]] = {}

    async def create_embedding(self, text: str) -> List[float]:
        self.calls.append(text)
        if self.error is not None and (not self.fail_on or any(n in text for n in self.fail_on)):
            raise self.error
        if text in self.vectors:
            return self.vectors[text]
        return [float(len(text)), 1.0, float(sum(map(ord, text)) % 7)]


class FakeLlm:
    def __init__(self, fragments: Sequence[str] = ("Hello", ", ", "world"), error: Optional[Exception] = None):
        self.fragments = list(fragments)
        self.error = error
        self.prompts: List[str] = []

    async def generate(self, prompt: str):
        self.prompts.append(prompt)
        for fragment in self.fragments:
            yield fragment
        if self.error is not None:
            raise self.error


def cosine_distance(a: Sequence[float], b: Sequence[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    na = math.sqrt(sum(x * x for x in a))
    nb = math.sqrt(sum(y * y for y in b))
    if na == 0 or nb == 0:
        return 1.0
    return 1.0 - dot / (na * nb)


class FakeVectorStore(VectorStore):
    """Dict-backed store with the same ordering rules as the Postgres one."""

    kind = "memory"

    def __init__(self, schema_error: Optional[Exception] = None, query_error: Optional[Exception] = None):
        self.records: Dict[Tuple[int, int], Tuple[str, List[float]]] = {}
        self.schema_error = schema_error
        self.query_error = query_error
        self.schema_calls = 0
        self.queries: List[Tuple[List[float], int]] = []
        self.closed = False

    async def ensure_schema(self) -> None:
        self.schema_calls += 1
        if self.schema_error is not None:
            raise self.schema_error

    async def upsert(self, item_id, chunk_index, content, embedding) -> None:
        self.records[(item_id, chunk_index)] = (content, list(embedding))

    async def query_top_k(self, embedding, k) -> List[SimilarityHit]:
        self.queries.append((list(embedding), k))
        if self.query_error is not None:
            raise self.query_error
        scored = sorted(
            (cosine_distance(vec, embedding), item_id, chunk, content)
            for (item_id, chunk), (content, vec) in self.records.items()
        )
        return [
            SimilarityHit(item_id=item_id, content=content, score=score)
            for score, item_id, chunk, content in scored[:max(k, 0)]
        ]

    async def count(self) -> int:
        if self.query_error is not None:
            raise self.query_error
        return len(self.records)

    async def close(self) -> None:
        self.closed = True


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def products():
    return [CatalogItem(id=1, name="Widget"), CatalogItem(id=2, name="Gadget")]


@pytest.fixture
def fake_store():
    return FakeVectorStore()


@pytest.fixture
def fake_embeddings():
    return FakeEmbeddings()


@pytest.fixture
def fake_llm():
    return FakeLlm()
