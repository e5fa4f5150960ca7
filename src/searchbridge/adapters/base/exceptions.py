"""Adapter-specific exceptions.

Every backend failure surfaces as a ``SearchEngineError`` subclass carrying
the adapter name and the operation that failed. The originating exception,
if any, is kept as ``cause`` (and chained with ``raise ... from``).
"""

from __future__ import annotations


class SearchEngineError(Exception):
    """Base exception for adapter and manager errors."""

    def __init__(
        self,
        message: str,
        *,
        adapter: str | None = None,
        operation: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.adapter = adapter
        self.operation = operation
        self.cause = cause

    def __str__(self) -> str:
        context = "/".join(part for part in (self.adapter, self.operation) if part)
        return f"[{context}] {self.message}" if context else self.message


class ConnectionError(SearchEngineError):  # noqa: A001
    """Raised when the adapter cannot reach its search backend."""


class BackendQueryError(SearchEngineError):
    """Raised when the backend rejects or fails a request."""


class CollectionNotFoundError(SearchEngineError):
    """Raised when an operation needs a collection that does not exist."""


class UnknownAdapterError(SearchEngineError):
    """Raised when no adapter is registered under the requested name."""


class ConfigurationError(SearchEngineError):
    """Raised when adapter configuration is invalid."""
