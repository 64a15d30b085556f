"""Exceptions raised by the query processor."""

from typing import Any, Optional


class QueryProcessorError(Exception):
    """Base class for query processor failures."""


class ConfigurationError(QueryProcessorError, ValueError):
    """Raised for malformed queries, missing continuations or unknown tags.

    Detected before any side effect; never retried.
    """


class CompilationError(QueryProcessorError):
    """Raised when a driver cannot compile an abstract query body."""

    def __init__(self, message: str, body: Optional[Any] = None):
        super().__init__(message)
        self.body = body


class QueryExecutionError(QueryProcessorError):
    """Raised when a native query fails while executing or fetching rows."""


class MetadataStoreError(QueryProcessorError):
    """Raised when field, dimension or value metadata cannot be resolved."""


class StreamingError(QueryProcessorError):
    """Raised when a results writer is driven out of lifecycle order."""
