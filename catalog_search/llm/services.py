# FILE: catalog_search/llm/services.py
"""
The two model capabilities, kept apart.

The indexer only ever needs EmbeddingService; the query path needs both.
"""

from typing import AsyncIterator, List

from catalog_search.llm.ollama_client import OllamaClient


class EmbeddingService:
    """Text -> vector with the configured embedding model."""

    def __init__(self, client: OllamaClient):
        self._client = client

    async def create_embedding(self, text: str) -> List[float]:
        return await self._client.embed(text, self._client.options.embedding_model)


class LlmService:
    """Prompt -> streamed text fragments with the configured chat model."""

    def __init__(self, client: OllamaClient):
        self._client = client

    def generate(self, prompt: str) -> AsyncIterator[str]:
        return self._client.generate(prompt, self._client.options.chat_model)
