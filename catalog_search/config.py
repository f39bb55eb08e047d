# FILE: catalog_search/config.py
"""
Catalog search configuration.

All tunables in one place. Settings are read from the environment once at
process start (after .env is loaded) and are immutable afterwards; there is
no hot reload of model or vector store configuration.
"""

import os
from dataclasses import dataclass, field
from typing import Optional, Tuple

from dotenv import load_dotenv


# ============================================================================
# DEFAULTS
# ============================================================================

DEFAULT_LLM_BASE_URL = "http://ollama:11434"
DEFAULT_CHAT_MODEL = "llama3.2:3b"
DEFAULT_EMBEDDING_MODEL = "bge-m3"

# bge-m3 produces 1024-dimensional vectors
DEFAULT_EMBEDDING_DIMENSIONS = 1024

DEFAULT_TOP_K = 5
DEFAULT_INDEXER_DELAY_SECONDS = 15.0

DEFAULT_CATALOG_DATABASE_URL = "sqlite:///./data/studyshop.db"
DEFAULT_CORS_ORIGINS = "http://localhost:4200"

_TRUE_VALUES = {"1", "true", "yes"}


@dataclass(frozen=True)
class AiOptions:
    """Remote model endpoint (Ollama-compatible HTTP API)."""
    base_url: str = DEFAULT_LLM_BASE_URL
    chat_model: str = DEFAULT_CHAT_MODEL
    embedding_model: str = DEFAULT_EMBEDDING_MODEL


@dataclass(frozen=True)
class VectorStoreOptions:
    """
    Vector store connection.

    An empty connection string selects the no-op store: semantic search is
    silently disabled instead of failing the host process.
    """
    connection_string: str = ""
    dimensions: int = DEFAULT_EMBEDDING_DIMENSIONS

    @property
    def is_configured(self) -> bool:
        return bool(self.connection_string.strip())


@dataclass(frozen=True)
class IndexerOptions:
    enabled: bool = True
    startup_delay_seconds: float = DEFAULT_INDEXER_DELAY_SECONDS


@dataclass(frozen=True)
class Settings:
    ai: AiOptions = field(default_factory=AiOptions)
    vector_store: VectorStoreOptions = field(default_factory=VectorStoreOptions)
    indexer: IndexerOptions = field(default_factory=IndexerOptions)
    top_k: int = DEFAULT_TOP_K
    catalog_database_url: str = DEFAULT_CATALOG_DATABASE_URL
    cors_origins: Tuple[str, ...] = (DEFAULT_CORS_ORIGINS,)


# ============================================================================
# ENV PARSING
# ============================================================================

def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in _TRUE_VALUES


def _env_int(name: str, default: int, minimum: int = 1) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
    return value


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")
    if value < 0:
        raise ValueError(f"{name} must be >= 0, got {value}")
    return value


def load_settings(env_file: Optional[str] = None) -> Settings:
    """
    Build Settings from the environment.

    Loads .env first (existing environment variables win), then reads every
    variable exactly once. Invalid numbers fail fast with ValueError.
    """
    load_dotenv(env_file)

    origins = _env_str("CORS_ALLOWED_ORIGINS", DEFAULT_CORS_ORIGINS)

    return Settings(
        ai=AiOptions(
            base_url=_env_str("LLM_BASE_URL", DEFAULT_LLM_BASE_URL),
            chat_model=_env_str("LLM_CHAT_MODEL", DEFAULT_CHAT_MODEL),
            embedding_model=_env_str("LLM_EMBEDDING_MODEL", DEFAULT_EMBEDDING_MODEL),
        ),
        vector_store=VectorStoreOptions(
            connection_string=_env_str("VECTOR_STORE_CONNECTION_STRING", ""),
            dimensions=_env_int("VECTOR_STORE_DIMENSIONS", DEFAULT_EMBEDDING_DIMENSIONS),
        ),
        indexer=IndexerOptions(
            enabled=_env_bool("INDEXER_ENABLED", True),
            startup_delay_seconds=_env_float(
                "INDEXER_STARTUP_DELAY_SECONDS", DEFAULT_INDEXER_DELAY_SECONDS
            ),
        ),
        top_k=_env_int("SEARCH_TOP_K", DEFAULT_TOP_K),
        catalog_database_url=_env_str("CATALOG_DATABASE_URL", DEFAULT_CATALOG_DATABASE_URL),
        cors_origins=tuple(o.strip() for o in origins.split(";") if o.strip()),
    )


__all__ = [
    "AiOptions",
    "VectorStoreOptions",
    "IndexerOptions",
    "Settings",
    "load_settings",
]
