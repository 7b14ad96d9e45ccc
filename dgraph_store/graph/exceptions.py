"""
Custom exceptions for the graph module.

Exception naming avoids shadowing Python builtins (ConnectionError,
TimeoutError): every error raised by the adapter derives from DgraphError
and keeps the underlying transport error on ``cause``.
"""

from __future__ import annotations


class DgraphError(Exception):
    """Base exception for all Dgraph-related errors."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        """Initialize with message and optional cause.

        Args:
            message: Human-readable error description
            cause: Original exception that caused this error
        """
        super().__init__(message)
        self.cause = cause


class DgraphConfigurationError(DgraphError):
    """Raised when connection parameters are missing or invalid."""

    pass


class DgraphConnectionError(DgraphError):
    """Raised when the gRPC channel cannot be established or is not open.

    Named DgraphConnectionError to avoid shadowing Python's
    built-in ConnectionError.
    """

    pass


class DgraphSerializationError(DgraphError):
    """Raised when an object cannot be encoded to JSON for a mutation."""

    pass


class DgraphSchemaError(DgraphError):
    """Raised when a schema alteration (including drop-all) is rejected."""

    pass


class DgraphMutationError(DgraphError):
    """Raised when an insert, update, delete or link mutation fails."""

    pass


class DgraphQueryError(DgraphError):
    """Raised when a DQL query fails or its payload cannot be decoded.

    This includes syntax errors reported by the server, transport
    failures and responses that do not match the expected shape.
    """

    def __init__(
        self,
        message: str,
        query: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        """Initialize with message, failed query, and optional cause.

        Args:
            message: Human-readable error description
            query: The DQL query that failed
            cause: Original exception that caused this error
        """
        super().__init__(message, cause=cause)
        self.query = query
