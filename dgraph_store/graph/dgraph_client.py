"""
Dgraph client module implementing the Repository pattern.

Design follows:
- Repository Pattern: one façade over the pydgraph gRPC client
- FakeClient for testing: in-memory double sharing the same interface
- Connection reuse: one stub per client, opened by connect(), released by close()
- Custom exceptions: every failure surfaces as a DgraphError subclass
- Context manager: ``with DgraphClient(...) as client`` for scoped use

Every mutation is committed immediately (commit_now); no multi-step
transaction is exposed to callers.

This module provides:
- DgraphClient: Real client for production use
- FakeDgraphClient: In-memory fake for testing
- Both share the same interface (duck typing)
"""

from __future__ import annotations

import itertools
import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, TypeVar, runtime_checkable

import grpc
import pydgraph
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from dgraph_store.core.logging import operation_extra
from dgraph_store.graph.exceptions import (
    DgraphConfigurationError,
    DgraphConnectionError,
    DgraphMutationError,
    DgraphQueryError,
    DgraphSchemaError,
    DgraphSerializationError,
)
from dgraph_store.graph.schema import (
    build_existence_query,
    build_link_nquad,
    format_dql_value,
)

if TYPE_CHECKING:
    from dgraph_store.core.config import Settings

logger = logging.getLogger(__name__)

DEFAULT_DROP_ALL_TIMEOUT = 30.0

ModelT = TypeVar("ModelT", bound=BaseModel)


# =============================================================================
# Result Models
# =============================================================================


class UidRef(BaseModel):
    """A node reference as returned by ``{ uid }`` selections."""

    model_config = ConfigDict(extra="ignore")

    uid: str


class ExistenceResponse(BaseModel):
    """Decoded payload of the existence-check query."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    matches: list[UidRef] = Field(default_factory=list, alias="all")


class ExistenceStatus(str, Enum):
    """Outcome of an existence check."""

    FOUND = "found"
    NOT_FOUND = "not_found"
    FAILED = "failed"


@dataclass
class ExistenceResult:
    """Tri-state result of check_existence().

    ``error`` is only set when ``status`` is FAILED, so "nothing matched"
    and "the check itself failed" stay distinguishable.
    """

    status: ExistenceStatus
    uids: list[str] = field(default_factory=list)
    error: Exception | None = None

    @property
    def exists(self) -> bool:
        """True only when at least one node matched."""
        return self.status is ExistenceStatus.FOUND


# =============================================================================
# Payload Encoding
# =============================================================================


def encode_json_payload(obj: Any) -> bytes:
    """Serialize a mutation object to JSON bytes.

    Accepts pydantic models as well as anything json.dumps() handles.

    Raises:
        DgraphSerializationError: If the object cannot be encoded.
    """
    try:
        if isinstance(obj, BaseModel):
            return obj.model_dump_json(by_alias=True, exclude_none=True).encode("utf-8")
        return json.dumps(obj).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise DgraphSerializationError(
            f"Cannot encode {type(obj).__name__} as JSON: {e}",
            cause=e,
        ) from e


def _decode_json_payload(raw: bytes | str | None, query: str) -> dict[str, Any]:
    """Decode a query response body into a dict."""
    if not raw:
        return {}
    try:
        payload = json.loads(raw)
    except ValueError as e:
        raise DgraphQueryError(
            f"Query returned malformed JSON: {e}",
            query=query,
            cause=e,
        ) from e
    if not isinstance(payload, dict):
        raise DgraphQueryError(
            f"Query returned {type(payload).__name__}, expected a JSON object",
            query=query,
        )
    return payload


def _validate_model(model: type[ModelT], payload: dict[str, Any], query: str) -> ModelT:
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise DgraphQueryError(
            f"Query result does not match {model.__name__}: {e}",
            query=query,
            cause=e,
        ) from e


# =============================================================================
# Protocol
# =============================================================================


@runtime_checkable
class DgraphClientProtocol(Protocol):
    """Protocol defining the DgraphClient interface.

    Enables duck typing - any class implementing these methods
    can be used interchangeably (Repository pattern).
    """

    def connect(self) -> None:
        """Open the connection."""
        ...

    def close(self) -> None:
        """Close the connection."""
        ...

    def setup(self, schema: str) -> None:
        """Alter the schema."""
        ...

    def insert(self, obj: Any) -> dict[str, str]:
        """Insert an object, returning assigned uids."""
        ...

    def update(self, obj: Any) -> bool:
        """Set fields of an object."""
        ...

    def delete_by_uid(self, uid: str) -> None:
        """Delete a node by uid."""
        ...

    def query(
        self,
        query: str,
        variables: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """Execute a read-only DQL query."""
        ...

    def is_existed(self, key: str, value: Any) -> bool:
        """Check whether any node has key == value."""
        ...

    def check_existence(self, key: str, value: Any) -> ExistenceResult:
        """Check whether any node has key == value without raising."""
        ...

    def link(self, relation: str, subject: str, obj: str) -> None:
        """Connect two nodes through a relation."""
        ...

    def drop_all(self, timeout: float | None = None) -> None:
        """Remove all schema and data."""
        ...


# =============================================================================
# Real Client
# =============================================================================


class DgraphClient:
    """Dgraph client implementing Repository pattern.

    Holds a single gRPC stub for its whole lifetime instead of dialling
    per call.

    Usage:
        # As context manager (recommended)
        with DgraphClient("localhost", 9080) as client:
            uids = client.insert({"name": "Alice", "balance": 100})

        # Manual connection management
        client = DgraphClient.from_settings(get_settings())
        client.connect()
        found = client.is_existed("name", '"Alice"')
        client.close()
    """

    def __init__(
        self,
        hostname: str,
        port: int,
        *,
        use_compression: bool = True,
        verify_on_connect: bool = True,
        drop_all_timeout: float = DEFAULT_DROP_ALL_TIMEOUT,
    ) -> None:
        """Initialize client with connection parameters.

        Args:
            hostname: Dgraph Alpha hostname
            port: Dgraph Alpha gRPC port
            use_compression: Request gzip compression on the channel
            verify_on_connect: Request the server version in connect()
            drop_all_timeout: Deadline in seconds applied to drop_all()

        Raises:
            DgraphConfigurationError: If hostname or port is invalid.

        Note:
            The stub is NOT created here - call connect() or use the
            client as a context manager.
        """
        if not isinstance(hostname, str) or not hostname.strip():
            raise DgraphConfigurationError("Dgraph hostname must not be empty")
        if isinstance(port, bool) or not isinstance(port, int) or not 0 < port < 65536:
            raise DgraphConfigurationError(f"Invalid Dgraph port: {port!r}")

        self._hostname = hostname
        self._port = port
        self._use_compression = use_compression
        self._verify_on_connect = verify_on_connect
        self._drop_all_timeout = drop_all_timeout
        self._stub: Any | None = None
        self._client: Any | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> DgraphClient:
        """Build a client from a Settings object."""
        return cls(
            settings.dgraph_host,
            settings.dgraph_port,
            use_compression=settings.dgraph_use_compression,
            verify_on_connect=settings.dgraph_verify_on_connect,
            drop_all_timeout=settings.dgraph_drop_all_timeout,
        )

    @property
    def hostname(self) -> str:
        """Get the configured hostname."""
        return self._hostname

    @property
    def port(self) -> int:
        """Get the configured port."""
        return self._port

    @property
    def address(self) -> str:
        """Get the host:port address."""
        return f"{self._hostname}:{self._port}"

    @property
    def is_connected(self) -> bool:
        """Check if the stub is initialized."""
        return self._client is not None

    def _log_extra(self, operation: str) -> dict[str, str]:
        return operation_extra(self.address, operation)

    # =========================================================================
    # Connection Lifecycle
    # =========================================================================

    def _channel_options(self) -> list[tuple[str, Any]]:
        options: list[tuple[str, Any]] = []
        if self._use_compression:
            options.append(
                ("grpc.default_compression_algorithm", int(grpc.Compression.Gzip))
            )
        return options

    def connect(self) -> None:
        """Dial Dgraph over an insecure channel and verify connectivity.

        Calling connect() on an already connected client is a no-op.

        Raises:
            DgraphConnectionError: If the channel cannot be created or
                the server does not answer the version check.
        """
        if self._client is not None:
            return

        try:
            self._stub = pydgraph.DgraphClientStub(
                self.address,
                options=self._channel_options(),
            )
            self._client = pydgraph.DgraphClient(self._stub)
            if self._verify_on_connect:
                version = self._client.check_version()
                logger.info("Connected to Dgraph %s", version, extra=self._log_extra("connect"))
        except grpc.RpcError as e:
            self._release()
            raise DgraphConnectionError(
                f"Failed to connect to Dgraph at {self.address}",
                cause=e,
            ) from e
        except Exception as e:
            self._release()
            raise DgraphConnectionError(
                f"Unexpected error connecting to Dgraph: {e}",
                cause=e,
            ) from e

    def _release(self) -> None:
        stub = self._stub
        self._stub = None
        self._client = None
        if stub is not None:
            stub.close()

    def close(self) -> None:
        """Close the gRPC stub.

        Safe to call even if not connected (no-op).
        """
        if self._stub is not None:
            self._release()
            logger.debug("Dgraph connection closed", extra=self._log_extra("close"))

    def __enter__(self) -> DgraphClient:
        """Context manager entry - connect to Dgraph."""
        self.connect()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        """Context manager exit - close connection."""
        self.close()

    def _ensure_connected(self) -> Any:
        """Return the pydgraph client or raise if not connected.

        Raises:
            DgraphConnectionError: If connect() has not been called.
        """
        if self._client is None:
            raise DgraphConnectionError(
                "Not connected to Dgraph. Call connect() first or use the client as a context manager."
            )
        return self._client

    # =========================================================================
    # Schema Operations
    # =========================================================================

    def setup(self, schema: str) -> None:
        """Send a schema alteration.

        Args:
            schema: Dgraph schema document (predicates and types)

        Raises:
            DgraphConnectionError: If not connected
            DgraphSchemaError: If the server rejects the alteration
        """
        client = self._ensure_connected()
        try:
            client.alter(pydgraph.Operation(schema=schema))
        except Exception as e:
            raise DgraphSchemaError(f"Schema alteration failed: {e}", cause=e) from e
        logger.debug("Schema altered", extra=self._log_extra("setup"))

    def drop_all(self, timeout: float | None = None) -> None:
        """Remove all schema and data from the database.

        Args:
            timeout: Deadline in seconds, defaults to the configured
                drop-all timeout (30s)

        Raises:
            DgraphConnectionError: If not connected
            DgraphSchemaError: If the drop-all alteration fails
        """
        client = self._ensure_connected()
        deadline = self._drop_all_timeout if timeout is None else timeout
        try:
            client.alter(pydgraph.Operation(drop_all=True), timeout=deadline)
        except Exception as e:
            raise DgraphSchemaError(f"Drop-all operation failed: {e}", cause=e) from e
        logger.info("Dropped all schema and data", extra=self._log_extra("drop_all"))

    def check_version(self) -> str:
        """Return the server version tag.

        Raises:
            DgraphConnectionError: If not connected or the call fails
        """
        client = self._ensure_connected()
        try:
            version = client.check_version()
        except Exception as e:
            raise DgraphConnectionError(f"Version check failed: {e}", cause=e) from e
        return getattr(version, "tag", version)

    # =========================================================================
    # Mutations
    # =========================================================================

    def _mutate(self, mutation: Any, action: str) -> Any:
        """Run one commit-now mutation in its own transaction."""
        client = self._ensure_connected()
        txn = client.txn()
        try:
            return txn.mutate(mutation=mutation, commit_now=True)
        except Exception as e:
            raise DgraphMutationError(f"{action} failed: {e}", cause=e) from e
        finally:
            txn.discard()

    def insert(self, obj: Any) -> dict[str, str]:
        """Insert an object with set semantics.

        Args:
            obj: JSON-serialisable value or pydantic model

        Returns:
            Mapping of blank-node names to server-assigned uids

        Raises:
            DgraphSerializationError: If obj cannot be encoded
            DgraphConnectionError: If not connected
            DgraphMutationError: If the mutation fails
        """
        payload = encode_json_payload(obj)
        response = self._mutate(
            pydgraph.Mutation(set_json=payload), "Insert"
        )
        uids = dict(response.uids)
        logger.debug("Inserted %d node(s)", len(uids), extra=self._log_extra("insert"))
        return uids

    def update(self, obj: Any) -> bool:
        """Set fields of an object.

        Same mutation as insert(); the uid in ``obj`` is not checked for
        existence first.

        Raises:
            DgraphSerializationError: If obj cannot be encoded
            DgraphConnectionError: If not connected
            DgraphMutationError: If the mutation fails
        """
        payload = encode_json_payload(obj)
        self._mutate(pydgraph.Mutation(set_json=payload), "Update")
        return True

    def delete_by_uid(self, uid: str) -> None:
        """Delete the node identified by uid.

        Raises:
            DgraphConnectionError: If not connected
            DgraphMutationError: If the mutation fails
        """
        payload = encode_json_payload({"uid": uid})
        self._mutate(
            pydgraph.Mutation(delete_json=payload), "Delete"
        )
        logger.debug("Deleted node %s", uid, extra=self._log_extra("delete_by_uid"))

    def link(self, relation: str, subject: str, obj: str) -> None:
        """Connect two existing nodes through a relation.

        Args:
            relation: Edge predicate
            subject: uid of the source node
            obj: uid of the target node

        Raises:
            ValueError: If any argument is empty
            DgraphConnectionError: If not connected
            DgraphMutationError: If the mutation fails
        """
        nquad = build_link_nquad(relation, subject, obj)
        self._mutate(
            pydgraph.Mutation(set_nquads=nquad.encode("utf-8")),
            "Link",
        )
        logger.debug("Linked %s -[%s]-> %s", subject, relation, obj, extra=self._log_extra("link"))

    # =========================================================================
    # Queries
    # =========================================================================

    def query(
        self,
        query: str,
        variables: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """Execute a DQL query in a read-only transaction.

        Args:
            query: DQL query string, sent verbatim
            variables: Optional GraphQL-style query variables

        Returns:
            Decoded JSON payload

        Raises:
            DgraphConnectionError: If not connected
            DgraphQueryError: If execution or decoding fails
        """
        client = self._ensure_connected()
        txn = client.txn(read_only=True)
        try:
            response = txn.query(query, variables=variables)
        except Exception as e:
            raise DgraphQueryError(
                f"Query failed: {e}",
                query=query,
                cause=e,
            ) from e
        return _decode_json_payload(response.json, query)

    def query_as(
        self,
        query: str,
        model: type[ModelT],
        variables: dict[str, str] | None = None,
    ) -> ModelT:
        """Execute a query and validate its payload with a pydantic model.

        Raises:
            DgraphQueryError: If the query fails or the payload does not
                match the model
        """
        return _validate_model(model, self.query(query, variables=variables), query)

    def is_existed(self, key: str, value: Any) -> bool:
        """Check whether any node has ``key`` equal to ``value``.

        Raises:
            DgraphConnectionError: If not connected
            DgraphQueryError: If the query fails or cannot be decoded
        """
        result = self.query_as(build_existence_query(key, value), ExistenceResponse)
        return len(result.matches) > 0

    def check_existence(self, key: str, value: Any) -> ExistenceResult:
        """Existence check that reports failures instead of raising."""
        query = build_existence_query(key, value)
        try:
            result = self.query_as(query, ExistenceResponse)
        except (DgraphConnectionError, DgraphQueryError) as e:
            logger.warning("Existence check %s failed: %s", query, e, extra=self._log_extra("check_existence"))
            return ExistenceResult(status=ExistenceStatus.FAILED, error=e)
        uids = [ref.uid for ref in result.matches]
        status = ExistenceStatus.FOUND if uids else ExistenceStatus.NOT_FOUND
        return ExistenceResult(status=status, uids=uids)


# =============================================================================
# Fake Client
# =============================================================================

_EXISTENCE_PATTERN = re.compile(
    r"^\{\s*all\(func:\s*eq\((?P<key>[^,]+),(?P<value>.*)\)\)\s*\{\s*uid\s*\}\s*\}$",
    re.DOTALL,
)


class FakeDgraphClient:
    """In-memory fake Dgraph client for testing.

    Implements the same interface as DgraphClient but stores nodes in
    a dict keyed by uid. Blank nodes (``"uid": "_:alice"``) are returned
    under their name, objects without a uid under a generated ``dg.N``
    key, mirroring the server's assigned-uid map.

    The existence query built by is_existed() is answered from stored
    nodes; any other query returns the payload set with
    set_query_result().

    Usage:
        fake = FakeDgraphClient()
        with fake:
            uids = fake.insert({"name": "Alice"})
            assert fake.is_existed("name", "Alice")
    """

    def __init__(self) -> None:
        """Initialize fake client with empty storage."""
        self._connected = False
        self._nodes: dict[str, dict[str, Any]] = {}
        self._edges: list[tuple[str, str, str]] = []
        self._schemas: list[str] = []
        self._query_result: dict[str, Any] = {}
        self._uid_counter = itertools.count(1)
        self._blank_counter = itertools.count(1)
        self._failure: Exception | None = None

    @property
    def is_connected(self) -> bool:
        """Check if fake is 'connected'."""
        return self._connected

    def connect(self) -> None:
        """Simulate connecting (always succeeds)."""
        self._connected = True

    def close(self) -> None:
        """Simulate closing connection."""
        self._connected = False

    def __enter__(self) -> FakeDgraphClient:
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        """Context manager exit."""
        self.close()

    def _ensure_connected(self) -> None:
        """Raise if not 'connected'."""
        if not self._connected:
            raise DgraphConnectionError("Fake client not connected")

    def _raise_configured_failure(self, error_type: type[Exception], query: str | None = None) -> None:
        if self._failure is None:
            return
        if error_type is DgraphQueryError:
            raise DgraphQueryError(str(self._failure), query=query, cause=self._failure)
        raise error_type(str(self._failure), cause=self._failure)

    # -------------------------------------------------------------------------
    # Interface
    # -------------------------------------------------------------------------

    def setup(self, schema: str) -> None:
        """Record the schema."""
        self._ensure_connected()
        self._raise_configured_failure(DgraphSchemaError)
        self._schemas.append(schema)

    def drop_all(self, timeout: float | None = None) -> None:  # noqa: ARG002 - Required for interface compatibility
        """Forget every node, edge and schema; configured results survive."""
        self._ensure_connected()
        self._raise_configured_failure(DgraphSchemaError)
        self._nodes.clear()
        self._edges.clear()
        self._schemas.clear()

    def insert(self, obj: Any) -> dict[str, str]:
        """Store obj and return the uids assigned to its blank nodes."""
        self._ensure_connected()
        data = json.loads(encode_json_payload(obj))
        self._raise_configured_failure(DgraphMutationError)
        assigned: dict[str, str] = {}
        for item in data if isinstance(data, list) else [data]:
            if isinstance(item, dict):
                self._store(item, assigned)
        return assigned

    def update(self, obj: Any) -> bool:
        """Apply set semantics, same as insert()."""
        self.insert(obj)
        return True

    def delete_by_uid(self, uid: str) -> None:
        """Remove the node and any edge touching it."""
        self._ensure_connected()
        self._raise_configured_failure(DgraphMutationError)
        self._nodes.pop(uid, None)
        self._edges = [e for e in self._edges if uid not in (e[0], e[2])]

    def link(self, relation: str, subject: str, obj: str) -> None:
        """Record an edge between two uids."""
        nquad = build_link_nquad(relation, subject, obj)
        self._ensure_connected()
        self._raise_configured_failure(DgraphMutationError)
        logger.debug("Fake link %s", nquad)
        self._edges.append((subject, relation, obj))

    def query(
        self,
        query: str,
        variables: dict[str, str] | None = None,  # noqa: ARG002 - Required for interface compatibility
    ) -> dict[str, Any]:
        """Answer existence queries from storage, else the configured result."""
        self._ensure_connected()
        self._raise_configured_failure(DgraphQueryError, query)
        match = _EXISTENCE_PATTERN.match(query.strip())
        if match is None:
            return self._query_result
        key = match.group("key").strip()
        value = match.group("value").strip()
        return {
            "all": [
                {"uid": uid}
                for uid, node in self._nodes.items()
                if key in node and _matches(node[key], value)
            ]
        }

    def query_as(
        self,
        query: str,
        model: type[ModelT],
        variables: dict[str, str] | None = None,
    ) -> ModelT:
        """Query and validate the payload with a pydantic model."""
        return _validate_model(model, self.query(query, variables=variables), query)

    def is_existed(self, key: str, value: Any) -> bool:
        """Check whether a stored node has key == value."""
        return bool(self.query_as(build_existence_query(key, value), ExistenceResponse).matches)

    def check_existence(self, key: str, value: Any) -> ExistenceResult:
        """Tri-state existence check."""
        try:
            found = self.query_as(build_existence_query(key, value), ExistenceResponse)
        except (DgraphConnectionError, DgraphQueryError) as e:
            return ExistenceResult(status=ExistenceStatus.FAILED, error=e)
        uids = [ref.uid for ref in found.matches]
        status = ExistenceStatus.FOUND if uids else ExistenceStatus.NOT_FOUND
        return ExistenceResult(status=status, uids=uids)

    # -------------------------------------------------------------------------
    # Test helpers
    # -------------------------------------------------------------------------

    def set_query_result(self, result: dict[str, Any]) -> None:
        """Configure the payload returned for non-existence queries."""
        self._query_result = result

    def set_failure(self, error: Exception | None) -> None:
        """Make every subsequent remote operation fail with error."""
        self._failure = error

    def get_stored_nodes(self) -> dict[str, dict[str, Any]]:
        """Get a copy of all stored nodes keyed by uid."""
        return {uid: dict(node) for uid, node in self._nodes.items()}

    def get_edges(self) -> list[tuple[str, str, str]]:
        """Get all (subject, relation, object) edges."""
        return list(self._edges)

    def get_schemas(self) -> list[str]:
        """Get every schema passed to setup()."""
        return list(self._schemas)

    def clear(self) -> None:
        """Clear all stored data."""
        self._nodes.clear()
        self._edges.clear()
        self._schemas.clear()
        self._query_result = {}

    def _store(self, item: dict[str, Any], assigned: dict[str, str]) -> str:
        ref = item.get("uid")
        if isinstance(ref, str) and ref.startswith("0x"):
            uid = ref
        elif isinstance(ref, str) and ref.startswith("_:") and ref[2:] in assigned:
            uid = assigned[ref[2:]]
        else:
            uid = hex(next(self._uid_counter))
            name = ref[2:] if isinstance(ref, str) and ref.startswith("_:") else f"dg.{next(self._blank_counter)}"
            assigned[name] = uid

        node = self._nodes.setdefault(uid, {})
        for key, value in item.items():
            if key == "uid":
                continue
            if isinstance(value, dict):
                node[key] = {"uid": self._store(value, assigned)}
            elif isinstance(value, list) and value and all(isinstance(v, dict) for v in value):
                node[key] = [{"uid": self._store(v, assigned)} for v in value]
            else:
                node[key] = value
        return uid


def _matches(stored: Any, rendered: str) -> bool:
    """Compare a stored value with the literal rendered into eq()."""
    candidates = {rendered, rendered.strip('"')}
    return format_dql_value(stored) in candidates
