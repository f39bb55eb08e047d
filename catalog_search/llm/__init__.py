# FILE: catalog_search/llm/__init__.py
"""
Model endpoint access: embeddings and streamed generation.
"""

from .ollama_client import OllamaClient
from .services import EmbeddingService, LlmService

__all__ = [
    "OllamaClient",
    "EmbeddingService",
    "LlmService",
]
