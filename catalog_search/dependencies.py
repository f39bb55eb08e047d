# FILE: catalog_search/dependencies.py
"""
Process-wide wiring.

build_container() runs once at startup; the store choice, model options and
clients it creates are shared by the indexer and the request path and are
not rebuilt per request.
"""

from dataclasses import dataclass
from typing import Optional

import httpx
from fastapi import Request

from catalog_search.catalog import CatalogReader, SqlCatalogReader
from catalog_search.config import Settings
from catalog_search.db import catalog_session_factory, create_catalog_engine
from catalog_search.embeddings.indexer import CatalogIndexer
from catalog_search.embeddings.service import SearchService
from catalog_search.embeddings.vector_store import VectorStore, build_vector_store
from catalog_search.llm import EmbeddingService, LlmService, OllamaClient


@dataclass
class SearchContainer:
    settings: Settings
    ollama: OllamaClient
    store: VectorStore
    catalog: CatalogReader
    indexer: CatalogIndexer
    search: SearchService

    async def aclose(self) -> None:
        await self.indexer.stop()
        await self.ollama.aclose()
        await self.store.close()


def build_container(
    settings: Settings,
    *,
    http: Optional[httpx.AsyncClient] = None,
    store: Optional[VectorStore] = None,
    catalog: Optional[CatalogReader] = None,
) -> SearchContainer:
    """
    Assemble the search subsystem from settings.

    http/store/catalog may be injected (tests); otherwise they are built
    from configuration.
    """
    ollama = OllamaClient(settings.ai, http=http)
    embeddings = EmbeddingService(ollama)
    llm = LlmService(ollama)

    store = store or build_vector_store(settings.vector_store)
    if catalog is None:
        engine = create_catalog_engine(settings.catalog_database_url)
        catalog = SqlCatalogReader(catalog_session_factory(engine))

    indexer = CatalogIndexer(
        catalog,
        embeddings,
        store,
        startup_delay_seconds=settings.indexer.startup_delay_seconds,
    )
    search = SearchService(embeddings, llm, store, top_k=settings.top_k)

    return SearchContainer(
        settings=settings,
        ollama=ollama,
        store=store,
        catalog=catalog,
        indexer=indexer,
        search=search,
    )


def get_container(request: Request) -> SearchContainer:
    """FastAPI dependency: the container created in the app lifespan."""
    return request.app.state.search


def get_search_service(request: Request) -> SearchService:
    return get_container(request).search
