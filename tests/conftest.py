"""
Pytest configuration and fixtures for dgraph-store tests.
"""

from collections.abc import Iterator
from unittest.mock import MagicMock, patch

import pytest

from dgraph_store.core.config import Settings
from dgraph_store.graph.dgraph_client import DgraphClient
from tests.fakes import FakeDgraphTransport


@pytest.fixture
def settings() -> Settings:
    """Provide test settings pointing at a local Alpha."""
    return Settings(
        dgraph_host="localhost",
        dgraph_port=9080,
        dgraph_use_compression=True,
        dgraph_verify_on_connect=True,
        dgraph_drop_all_timeout=30.0,
    )


@pytest.fixture
def fake_transport() -> FakeDgraphTransport:
    """Recording stand-in for pydgraph.DgraphClient."""
    return FakeDgraphTransport()


@pytest.fixture
def mock_stub() -> MagicMock:
    """Mock pydgraph.DgraphClientStub instance."""
    stub = MagicMock()
    stub.close = MagicMock(return_value=None)
    return stub


@pytest.fixture
def patched_pydgraph(
    fake_transport: FakeDgraphTransport, mock_stub: MagicMock
) -> Iterator[tuple[MagicMock, MagicMock]]:
    """Patch stub and client constructors; protobuf messages stay real."""
    with patch("pydgraph.DgraphClientStub", return_value=mock_stub) as stub_cls, patch(
        "pydgraph.DgraphClient", return_value=fake_transport
    ) as client_cls:
        yield stub_cls, client_cls


@pytest.fixture
def connected_client(
    settings: Settings, patched_pydgraph: tuple[MagicMock, MagicMock]
) -> Iterator[DgraphClient]:
    """DgraphClient connected to the fake transport."""
    _ = patched_pydgraph
    client = DgraphClient.from_settings(settings)
    client.connect()
    yield client
    client.close()
