# FILE: catalog_search/llm/ollama_client.py
"""
HTTP client for an Ollama-compatible model endpoint.

Endpoints used:
- POST /api/embeddings  {"model", "prompt"}            -> {"embedding": [...]}
- POST /api/generate    {"model", "prompt", "stream"}  -> NDJSON lines
  {"response": "<fragment>", "done": false} ... {"done": true}

No request timeout is applied: callers impose their own deadline by
cancelling, and cancellation aborts the in-flight request.
"""

from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator, List, Optional

import httpx

from catalog_search.config import AiOptions
from catalog_search.errors import (
    ClientInputError,
    ProviderProtocolError,
    ProviderUnavailable,
)

logger = logging.getLogger(__name__)

EMBEDDINGS_PATH = "/api/embeddings"
GENERATE_PATH = "/api/generate"


# =============================================================================
# RESPONSE PARSING
# =============================================================================

def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def parse_embedding(body: Any) -> List[float]:
    """Extract the embedding vector from an /api/embeddings response body."""
    if not isinstance(body, dict):
        raise ProviderProtocolError(f"expected JSON object, got {type(body).__name__}")
    values = body.get("embedding")
    if not isinstance(values, list) or not values:
        raise ProviderProtocolError("response has no 'embedding' array")
    if not all(_is_number(v) for v in values):
        raise ProviderProtocolError("'embedding' contains non-numeric values")
    return [float(v) for v in values]


def parse_stream_line(line: str) -> dict:
    """Decode one NDJSON line of a streamed /api/generate response."""
    try:
        chunk = json.loads(line)
    except json.JSONDecodeError as e:
        raise ProviderProtocolError(f"malformed stream line: {line[:80]!r}") from e
    if not isinstance(chunk, dict):
        raise ProviderProtocolError(f"stream line is not an object: {line[:80]!r}")
    if "error" in chunk:
        raise ProviderUnavailable(f"model reported an error: {chunk['error']}")
    fragment = chunk.get("response", "")
    if fragment is not None and not isinstance(fragment, str):
        raise ProviderProtocolError("'response' field is not a string")
    return chunk


# =============================================================================
# CLIENT
# =============================================================================

class OllamaClient:
    """
    Embedding + generation over the Ollama HTTP API.

    The httpx client is owned (and closed) by this object unless one is
    injected, which is how tests plug in httpx.MockTransport.
    """

    def __init__(self, options: AiOptions, http: Optional[httpx.AsyncClient] = None):
        self._opts = options
        self._base_url = options.base_url.rstrip("/")
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(timeout=None)

    @property
    def options(self) -> AiOptions:
        return self._opts

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    def _url(self, path: str) -> str:
        return f"{self._base_url}{path}"

    @staticmethod
    def _pick_model(model: Optional[str], default: str) -> str:
        return model.strip() if model and model.strip() else default

    @staticmethod
    def _raise_for_status(res: httpx.Response, what: str) -> None:
        if res.is_success:
            return
        logger.warning(f"[ollama] {what} returned HTTP {res.status_code}")
        raise ProviderUnavailable(
            f"{what} failed with HTTP {res.status_code}",
            status_code=res.status_code,
        )

    # ---------------------------------------------------------------- embed

    async def embed(self, text: str, model: Optional[str] = None) -> List[float]:
        """
        Return the embedding vector for non-empty text.

        Raises ProviderUnavailable on transport errors / non-2xx, and
        ProviderProtocolError when the body is not a usable vector.
        """
        if not text or not text.strip():
            raise ClientInputError("text to embed must be non-empty")

        payload = {
            "model": self._pick_model(model, self._opts.embedding_model),
            "prompt": text,
        }
        try:
            res = await self._http.post(self._url(EMBEDDINGS_PATH), json=payload)
        except httpx.TransportError as e:
            logger.warning(f"[ollama] embeddings request failed: {e!r}")
            raise ProviderUnavailable(f"model endpoint unreachable: {e}") from e

        self._raise_for_status(res, "embeddings")
        try:
            body = res.json()
        except ValueError as e:
            raise ProviderProtocolError("embeddings response is not JSON") from e
        return parse_embedding(body)

    # ------------------------------------------------------------- generate

    async def generate(self, prompt: str, model: Optional[str] = None) -> AsyncIterator[str]:
        """
        Stream generated text fragments in emission order.

        Each call opens a fresh request. Closing the iterator early (or
        cancelling the consuming task) closes the underlying response.
        A stream that ends before the model signals completion raises
        ProviderProtocolError.
        """
        payload = {
            "model": self._pick_model(model, self._opts.chat_model),
            "prompt": prompt,
            "stream": True,
        }
        try:
            async with self._http.stream("POST", self._url(GENERATE_PATH), json=payload) as res:
                if not res.is_success:
                    await res.aread()
                    self._raise_for_status(res, "generate")

                async for line in res.aiter_lines():
                    if not line.strip():
                        continue
                    chunk = parse_stream_line(line)
                    fragment = chunk.get("response") or ""
                    if fragment:
                        yield fragment
                    if chunk.get("done"):
                        return
        except httpx.TransportError as e:
            logger.warning(f"[ollama] generate stream failed: {e!r}")
            raise ProviderUnavailable(f"model endpoint unreachable: {e}") from e

        raise ProviderProtocolError("generate stream ended before completion")

    async def complete(self, prompt: str, model: Optional[str] = None) -> str:
        """Non-streaming generation: the whole response text in one call."""
        payload = {
            "model": self._pick_model(model, self._opts.chat_model),
            "prompt": prompt,
            "stream": False,
        }
        try:
            res = await self._http.post(self._url(GENERATE_PATH), json=payload)
        except httpx.TransportError as e:
            logger.warning(f"[ollama] generate request failed: {e!r}")
            raise ProviderUnavailable(f"model endpoint unreachable: {e}") from e

        self._raise_for_status(res, "generate")
        try:
            body = res.json()
        except ValueError as e:
            raise ProviderProtocolError("generate response is not JSON") from e
        if not isinstance(body, dict) or not isinstance(body.get("response"), str):
            raise ProviderProtocolError("generate response has no 'response' text")
        return body["response"]


__all__ = ["OllamaClient", "parse_embedding", "parse_stream_line"]
