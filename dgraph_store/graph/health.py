"""
Dgraph health check utilities.

Connectivity is verified through DgraphClient itself, so the health check
dials with exactly the channel options the application uses.
"""

import time
from typing import Any

from dgraph_store.core.config import Settings
from dgraph_store.graph.dgraph_client import DgraphClient
from dgraph_store.graph.exceptions import DgraphConnectionError, DgraphError


def get_health_client(settings: Settings) -> DgraphClient:
    """
    Build a client for health probing.

    Version verification on connect is disabled; the check issues its own
    check_version() call so it can be timed.

    Raises:
        DgraphConfigurationError: If host or port is invalid
    """
    return DgraphClient(
        settings.dgraph_host,
        settings.dgraph_port,
        use_compression=settings.dgraph_use_compression,
        verify_on_connect=False,
    )


def check_dgraph_health(settings: Settings) -> bool:
    """
    Check if Dgraph is healthy and reachable.

    Args:
        settings: Application settings with Dgraph configuration

    Returns:
        True if Dgraph answers a version check, False otherwise
    """
    try:
        with get_health_client(settings) as client:
            client.check_version()
        return True
    except DgraphError:
        return False


def check_dgraph_health_detailed(settings: Settings) -> dict[str, Any]:
    """
    Check Dgraph health with detailed information.

    Args:
        settings: Application settings with Dgraph configuration

    Returns:
        Dictionary with status, address, and version/latency or error
    """
    start_time = time.time()
    try:
        with get_health_client(settings) as client:
            version = client.check_version()
        latency_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "address": settings.dgraph_address,
            "version": version,
            "latency_ms": round(latency_ms, 2),
        }
    except DgraphConnectionError as e:
        return {
            "status": "unhealthy",
            "address": settings.dgraph_address,
            "error": f"Service unavailable: {e}",
        }
    except DgraphError as e:
        return {
            "status": "unhealthy",
            "address": settings.dgraph_address,
            "error": str(e),
        }
