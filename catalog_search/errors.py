# FILE: catalog_search/errors.py
"""
Error taxonomy for the catalog search subsystem.

Cancellation is deliberately absent: a caller-initiated abort surfaces as
asyncio.CancelledError and is never wrapped in one of these types.
"""

from typing import Optional


class CatalogSearchError(Exception):
    """Base class for all catalog search failures."""


class ClientInputError(CatalogSearchError):
    """Empty or whitespace-only query/question."""


class ProviderError(CatalogSearchError):
    """The remote model endpoint failed."""


class ProviderUnavailable(ProviderError):
    """Model endpoint unreachable or returned a non-success status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ProviderProtocolError(ProviderError):
    """Model endpoint answered, but the body could not be understood."""


class StoreUnavailable(CatalogSearchError):
    """Vector storage unreachable or rejected the statement."""


__all__ = [
    "CatalogSearchError",
    "ClientInputError",
    "ProviderError",
    "ProviderUnavailable",
    "ProviderProtocolError",
    "StoreUnavailable",
]
