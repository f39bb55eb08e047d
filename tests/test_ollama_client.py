# FILE: tests/test_ollama_client.py
"""
Tests for catalog_search/llm/ollama_client.py
HTTP client for the model endpoint, exercised through httpx.MockTransport.
"""

import sys
from pathlib import Path

_project_root = Path(__file__).parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

import json

import httpx
import pytest


def _ndjson(*chunks) -> bytes:
    return "".join(json.dumps(c) + "\n" for c in chunks).encode()


def _client(handler):
    from catalog_search.config import AiOptions
    from catalog_search.llm.ollama_client import OllamaClient

    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OllamaClient(AiOptions(base_url="http://ollama.test/"), http=http), http


class TestParsing:
    """Response body parsing helpers."""

    def test_parse_embedding(self):
        from catalog_search.llm.ollama_client import parse_embedding

        assert parse_embedding({"embedding": [1, 0.5, -2]}) == [1.0, 0.5, -2.0]

    @pytest.mark.parametrize("body", [
        [],
        {},
        {"embedding": []},
        {"embedding": "1,2,3"},
        {"embedding": [1, "x"]},
        {"embedding": [True, False]},
    ])
    def test_parse_embedding_rejects(self, body):
        from catalog_search.errors import ProviderProtocolError
        from catalog_search.llm.ollama_client import parse_embedding

        with pytest.raises(ProviderProtocolError):
            parse_embedding(body)

    def test_parse_stream_line_error_field(self):
        """An error object mid-stream means the model failed, not a parse bug."""
        from catalog_search.errors import ProviderUnavailable
        from catalog_search.llm.ollama_client import parse_stream_line

        with pytest.raises(ProviderUnavailable, match="model not found"):
            parse_stream_line('{"error": "model not found"}')

    @pytest.mark.parametrize("line", ["not json", "[1, 2]", '{"response": 42}'])
    def test_parse_stream_line_malformed(self, line):
        from catalog_search.errors import ProviderProtocolError
        from catalog_search.llm.ollama_client import parse_stream_line

        with pytest.raises(ProviderProtocolError):
            parse_stream_line(line)


class TestEmbed:
    """POST /api/embeddings."""

    @pytest.mark.asyncio
    async def test_embed_success(self):
        """Sends model + prompt and returns the vector."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append((request.url.path, json.loads(request.content)))
            return httpx.Response(200, json={"embedding": [0.1, 0.2, 0.3]})

        client, http = _client(handler)
        try:
            vector = await client.embed("Product: Widget")
        finally:
            await http.aclose()

        assert vector == [0.1, 0.2, 0.3]
        assert seen == [("/api/embeddings", {"model": "bge-m3", "prompt": "Product: Widget"})]

    @pytest.mark.asyncio
    async def test_embed_model_override(self):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content)["model"])
            return httpx.Response(200, json={"embedding": [1.0]})

        client, http = _client(handler)
        try:
            await client.embed("x", model="nomic-embed-text")
            await client.embed("x", model="  ")
        finally:
            await http.aclose()

        assert seen == ["nomic-embed-text", "bge-m3"]

    @pytest.mark.asyncio
    async def test_embed_empty_text_makes_no_request(self):
        from catalog_search.errors import ClientInputError

        calls = []
        client, http = _client(lambda r: calls.append(r) or httpx.Response(200))
        try:
            with pytest.raises(ClientInputError):
                await client.embed("   ")
        finally:
            await http.aclose()
        assert calls == []

    @pytest.mark.asyncio
    async def test_embed_http_error(self):
        """Non-2xx becomes ProviderUnavailable carrying the status code."""
        from catalog_search.errors import ProviderUnavailable

        client, http = _client(lambda r: httpx.Response(500, text="boom"))
        try:
            with pytest.raises(ProviderUnavailable) as exc_info:
                await client.embed("hello")
        finally:
            await http.aclose()
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_embed_unreachable(self):
        from catalog_search.errors import ProviderUnavailable

        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client, http = _client(handler)
        try:
            with pytest.raises(ProviderUnavailable):
                await client.embed("hello")
        finally:
            await http.aclose()

    @pytest.mark.asyncio
    async def test_embed_non_json_body(self):
        from catalog_search.errors import ProviderProtocolError

        client, http = _client(lambda r: httpx.Response(200, text="<html>"))
        try:
            with pytest.raises(ProviderProtocolError):
                await client.embed("hello")
        finally:
            await http.aclose()


class TestGenerate:
    """POST /api/generate, streamed and non-streamed."""

    @pytest.mark.asyncio
    async def test_fragments_in_emission_order(self):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content))
            return httpx.Response(200, content=_ndjson(
                {"response": "The ", "done": False},
                {"response": "", "done": False},
                {"response": "Widget", "done": False},
                {"response": ".", "done": True},
            ))

        client, http = _client(handler)
        try:
            fragments = [f async for f in client.generate("prompt")]
        finally:
            await http.aclose()

        assert fragments == ["The ", "Widget", "."]
        assert seen[0] == {"model": "llama3.2:3b", "prompt": "prompt", "stream": True}

    @pytest.mark.asyncio
    async def test_stream_matches_complete(self):
        """Concatenated stream equals the non-streamed response text."""
        def handler(request):
            if json.loads(request.content)["stream"]:
                return httpx.Response(200, content=_ndjson(
                    {"response": "Hello", "done": False},
                    {"response": " there", "done": False},
                    {"done": True},
                ))
            return httpx.Response(200, json={"response": "Hello there", "done": True})

        client, http = _client(handler)
        try:
            streamed = "".join([f async for f in client.generate("hi")])
            whole = await client.complete("hi")
        finally:
            await http.aclose()

        assert streamed == whole == "Hello there"

    @pytest.mark.asyncio
    async def test_error_line_mid_stream(self):
        from catalog_search.errors import ProviderUnavailable

        def handler(request):
            return httpx.Response(200, content=_ndjson(
                {"response": "partial", "done": False},
                {"error": "out of memory"},
            ))

        client, http = _client(handler)
        received = []
        try:
            with pytest.raises(ProviderUnavailable):
                async for fragment in client.generate("hi"):
                    received.append(fragment)
        finally:
            await http.aclose()
        assert received == ["partial"]

    @pytest.mark.asyncio
    async def test_stream_ending_without_done(self):
        from catalog_search.errors import ProviderProtocolError

        def handler(request):
            return httpx.Response(200, content=_ndjson({"response": "cut", "done": False}))

        client, http = _client(handler)
        try:
            with pytest.raises(ProviderProtocolError, match="ended before completion"):
                async for _ in client.generate("hi"):
                    pass
        finally:
            await http.aclose()

    @pytest.mark.asyncio
    async def test_http_error_before_stream(self):
        from catalog_search.errors import ProviderUnavailable

        client, http = _client(lambda r: httpx.Response(404, json={"error": "model not found"}))
        try:
            with pytest.raises(ProviderUnavailable) as exc_info:
                async for _ in client.generate("hi"):
                    pass
        finally:
            await http.aclose()
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_early_close(self):
        """Closing the iterator after the first fragment stops consumption cleanly."""
        def handler(request):
            return httpx.Response(200, content=_ndjson(
                *[{"response": str(i), "done": False} for i in range(50)],
                {"done": True},
            ))

        client, http = _client(handler)
        try:
            stream = client.generate("hi")
            first = await stream.__anext__()
            await stream.aclose()
        finally:
            await http.aclose()
        assert first == "0"

    @pytest.mark.asyncio
    async def test_complete_missing_response(self):
        from catalog_search.errors import ProviderProtocolError

        client, http = _client(lambda r: httpx.Response(200, json={"done": True}))
        try:
            with pytest.raises(ProviderProtocolError):
                await client.complete("hi")
        finally:
            await http.aclose()


class TestServices:
    """EmbeddingService / LlmService use the configured model names."""

    @pytest.mark.asyncio
    async def test_services_use_configured_models(self):
        from catalog_search.llm import EmbeddingService, LlmService

        models = []

        def handler(request):
            body = json.loads(request.content)
            models.append(body["model"])
            if request.url.path == "/api/embeddings":
                return httpx.Response(200, json={"embedding": [1.0, 2.0]})
            return httpx.Response(200, content=_ndjson({"response": "ok", "done": True}))

        client, http = _client(handler)
        try:
            vector = await EmbeddingService(client).create_embedding("Product: Widget")
            text = "".join([f async for f in LlmService(client).generate("q")])
        finally:
            await http.aclose()

        assert vector == [1.0, 2.0]
        assert text == "ok"
        assert models == ["bge-m3", "llama3.2:3b"]
