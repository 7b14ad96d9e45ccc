# Graph module for Dgraph integration
"""
Graph layer for Dgraph operations including:
- DgraphClient: Repository pattern client with a reused gRPC stub
- FakeDgraphClient: In-memory double for tests
- Schema helpers: predicate/type definitions, existence query, link N-Quads
"""

from dgraph_store.graph.dgraph_client import (
    DgraphClient,
    DgraphClientProtocol,
    ExistenceResponse,
    ExistenceResult,
    ExistenceStatus,
    FakeDgraphClient,
    UidRef,
)
from dgraph_store.graph.exceptions import (
    DgraphConfigurationError,
    DgraphConnectionError,
    DgraphError,
    DgraphMutationError,
    DgraphQueryError,
    DgraphSchemaError,
    DgraphSerializationError,
)
from dgraph_store.graph.schema import (
    PredicateType,
    build_existence_query,
    build_link_nquad,
    generate_predicate_schema,
    generate_type_schema,
    join_schema,
)

__all__ = [
    # Exceptions
    "DgraphError",
    "DgraphConfigurationError",
    "DgraphConnectionError",
    "DgraphSerializationError",
    "DgraphSchemaError",
    "DgraphMutationError",
    "DgraphQueryError",
    # Client
    "DgraphClient",
    "DgraphClientProtocol",
    "FakeDgraphClient",
    "ExistenceResponse",
    "ExistenceResult",
    "ExistenceStatus",
    "UidRef",
    # Schema
    "PredicateType",
    "build_existence_query",
    "build_link_nquad",
    "generate_predicate_schema",
    "generate_type_schema",
    "join_schema",
]
