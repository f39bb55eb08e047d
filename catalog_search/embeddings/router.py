# FILE: catalog_search/embeddings/router.py
"""
FastAPI routes for AI search.

GET|POST /api/ai/search?q=...   - similarity search
POST     /api/ai/ask            - grounded answer (aggregated)
POST     /api/ai/ask/stream     - grounded answer as Server-Sent Events
GET      /api/ai/status         - store kind, record count, indexer state

A client disconnect cancels the in-flight embed/query/generate chain.
"""

import asyncio
import json
import logging
from contextlib import aclosing
from typing import AsyncGenerator, Awaitable, Sequence, TypeVar

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response, StreamingResponse

from catalog_search.dependencies import SearchContainer, get_container, get_search_service
from catalog_search.embeddings.schemas import (
    AskRequest,
    AskResponse,
    Citation,
    IndexerStatus,
    SearchResponse,
    SearchResult,
    StatusResponse,
)
from catalog_search.embeddings.service import SearchService
from catalog_search.embeddings.vector_store import SimilarityHit
from catalog_search.errors import (
    CatalogSearchError,
    ClientInputError,
    ProviderError,
    StoreUnavailable,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ai", tags=["ai-search"])

T = TypeVar("T")

# nginx convention for "client closed request"
CLIENT_CLOSED_REQUEST = 499


class ClientDisconnected(Exception):
    """The HTTP client went away; the work it started has been cancelled."""


# =============================================================================
# DISCONNECT -> CANCELLATION
# =============================================================================

async def _wait_for_disconnect(request: Request) -> None:
    while True:
        message = await request.receive()
        if message["type"] == "http.disconnect":
            return


async def cancel_on_disconnect(request: Request, work: Awaitable[T]) -> T:
    """
    Await `work`, cancelling it if the client disconnects first.

    Raises ClientDisconnected in that case; the cancelled work never
    produces a (partial) result.
    """
    task = asyncio.ensure_future(work)
    watcher = asyncio.ensure_future(_wait_for_disconnect(request))
    try:
        await asyncio.wait({task, watcher}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        task.cancel()
        raise
    finally:
        watcher.cancel()

    if not task.done():
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("[search] Client disconnected; request cancelled")
        raise ClientDisconnected()
    return task.result()


# =============================================================================
# SSE HELPERS
# =============================================================================

def _sse(payload: dict) -> str:
    return "data: " + json.dumps(payload) + "\n\n"


def _citations(hits: Sequence[SimilarityHit]) -> list:
    return [Citation(item_id=h.item_id, score=h.score) for h in hits]


async def _answer_events(
    service: SearchService,
    question: str,
    hits: Sequence[SimilarityHit],
) -> AsyncGenerator[str, None]:
    yield _sse({
        "type": "citations",
        "citations": [c.model_dump(by_alias=True) for c in _citations(hits)],
    })

    total_length = 0
    try:
        async with aclosing(service.stream_answer(question, hits)) as stream:
            async for fragment in stream:
                total_length += len(fragment)
                yield _sse({"type": "token", "content": fragment})
    except CatalogSearchError as e:
        logger.warning(f"[search] Answer stream failed: {e}")
        yield _sse({"type": "error", "error": str(e)})
        yield _sse({"type": "done", "totalLength": total_length, "success": False})
        return

    yield _sse({"type": "done", "totalLength": total_length, "success": True})


# =============================================================================
# ROUTES
# =============================================================================

@router.api_route("/search", methods=["GET", "POST"], response_model=SearchResponse)
async def semantic_search(
    request: Request,
    q: str = Query("", description="Free-text query"),
    service: SearchService = Depends(get_search_service),
):
    """Products most similar to the query, closest first."""
    hits = await cancel_on_disconnect(request, service.search(q))
    return SearchResponse(
        results=[SearchResult(item_id=h.item_id, content=h.content, score=h.score) for h in hits]
    )


@router.post("/ask", response_model=AskResponse)
async def ask_question(
    request: Request,
    body: AskRequest,
    service: SearchService = Depends(get_search_service),
):
    """Answer grounded in stored product content, with the hits that grounded it."""
    result = await cancel_on_disconnect(request, service.ask(body.question))
    return AskResponse(answer=result.answer, citations=_citations(result.citations))


@router.post("/ask/stream")
async def ask_question_stream(
    request: Request,
    body: AskRequest,
    service: SearchService = Depends(get_search_service),
):
    """
    Same as /ask, streamed: a citations event, token events in emission
    order, then done.
    """
    hits = await cancel_on_disconnect(request, service.retrieve_for_question(body.question))
    return StreamingResponse(
        _answer_events(service, body.question, hits),
        media_type="text/event-stream",
    )


@router.get("/status", response_model=StatusResponse)
async def search_status(container: SearchContainer = Depends(get_container)):
    records = await container.store.count()
    return StatusResponse(
        store=container.store.kind,
        records=records,
        indexer=IndexerStatus(**container.indexer.get_status()),
    )


# =============================================================================
# ERROR MAPPING
# =============================================================================

_STATUS_BY_ERROR = (
    (ClientInputError, 400),
    (ProviderError, 502),
    (StoreUnavailable, 503),
)


def _error_response(exc: Exception, status_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error": type(exc).__name__},
    )


def register_error_handlers(app: FastAPI) -> None:
    """Map the search error taxonomy onto HTTP status codes."""

    async def _handle_search_error(request: Request, exc: Exception) -> Response:
        for error_type, status_code in _STATUS_BY_ERROR:
            if isinstance(exc, error_type):
                if status_code >= 500:
                    logger.warning(f"[search] {request.url.path} failed: {exc}")
                return _error_response(exc, status_code)
        return _error_response(exc, 500)

    async def _handle_disconnect(request: Request, exc: Exception) -> Response:
        return Response(status_code=CLIENT_CLOSED_REQUEST)

    async def _handle_invalid_request(request: Request, exc: RequestValidationError) -> Response:
        # missing or malformed body on /ask is a client error, same as an empty question
        return JSONResponse(
            status_code=400,
            content={"detail": "invalid request", "error": "ClientInputError", "errors": jsonable_encoder(exc.errors())},
        )

    app.add_exception_handler(CatalogSearchError, _handle_search_error)
    app.add_exception_handler(RequestValidationError, _handle_invalid_request)
    app.add_exception_handler(ClientDisconnected, _handle_disconnect)
