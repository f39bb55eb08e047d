# FILE: main.py
"""
StudyShop AI Search - FastAPI Application
Version: 0.1.0

Features:
- Semantic product search (GET|POST /api/ai/search?q=...)
- Grounded question answering with citations (POST /api/ai/ask)
- Streamed answers over SSE (POST /api/ai/ask/stream)
- Background catalog indexing into pgvector, started with the app
- No-op vector store when VECTOR_STORE_CONNECTION_STRING is empty

Run with:
    uvicorn main:app --reload
"""
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

# Load .env FIRST before any other imports that might need env vars
load_dotenv()

from catalog_search import __version__
from catalog_search.config import load_settings
from catalog_search.dependencies import build_container
from catalog_search.embeddings.router import router as search_router, register_error_handlers
from catalog_search.errors import StoreUnavailable

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)
logger = logging.getLogger("catalog_search.app")

settings = load_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    container = build_container(settings)
    app.state.search = container

    logger.info(f"[startup] Vector store: {container.store.kind}")
    logger.info(f"[startup] Chat model: {settings.ai.chat_model} @ {settings.ai.base_url}")
    logger.info(f"[startup] Embedding model: {settings.ai.embedding_model}")

    # Queries must find the table even before (or without) an indexing pass
    try:
        await container.store.ensure_schema()
    except StoreUnavailable as e:
        logger.error(f"[startup] Vector store schema setup failed: {e}")

    if settings.indexer.enabled:
        await container.indexer.start()
    else:
        logger.info("[startup] Catalog indexer: DISABLED (set INDEXER_ENABLED=true to enable)")

    try:
        yield
    finally:
        logger.info("[shutdown] Stopping search services")
        await container.aclose()


app = FastAPI(
    title="StudyShop AI Search",
    version=__version__,
    description="Semantic product search and grounded answers over the StudyShop catalog",
    lifespan=lifespan,
)

# ====== CORS ======

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ====== ROUTERS ======

app.include_router(search_router)
register_error_handlers(app)


@app.get("/health")
def health():
    return {"status": "healthy", "version": __version__}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
