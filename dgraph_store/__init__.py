"""
dgraph-store: a thin client over a Dgraph graph database.

Exposes schema setup, insert, update, delete, raw DQL queries and
existence checks through DgraphClient, with FakeDgraphClient as an
in-memory stand-in for tests.
"""

from dgraph_store.graph import (
    DgraphClient,
    DgraphClientProtocol,
    DgraphError,
    ExistenceResult,
    ExistenceStatus,
    FakeDgraphClient,
)

__version__ = "0.1.0"

__all__ = [
    "DgraphClient",
    "DgraphClientProtocol",
    "DgraphError",
    "ExistenceResult",
    "ExistenceStatus",
    "FakeDgraphClient",
    "__version__",
]
