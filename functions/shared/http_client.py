"""
Shared HTTP client for Supabase calls.

Lambda keeps the execution context warm between invocations, so a pooled
client is reused across requests to avoid repeated TLS handshakes. Set
USE_CONNECTION_POOLING=false (the test suite does) to get a fresh client
per call.
"""

import logging
import os
from typing import Optional

import httpx

from shared.constants import CONNECT_TIMEOUT, DEFAULT_TIMEOUT

logger = logging.getLogger(__name__)

_client: Optional[httpx.Client] = None
_client_timeout: Optional[httpx.Timeout] = None

DEFAULT_LIMITS = httpx.Limits(
    max_connections=20,
    max_keepalive_connections=5,
    keepalive_expiry=30.0,
)


def _use_connection_pooling() -> bool:
    """Check if connection pooling is enabled (runtime check)."""
    return os.environ.get("USE_CONNECTION_POOLING", "true").lower() == "true"


def build_timeout(total: float = DEFAULT_TIMEOUT, connect: float = CONNECT_TIMEOUT) -> httpx.Timeout:
    return httpx.Timeout(total, connect=connect)


def get_http_client(timeout: Optional[httpx.Timeout] = None) -> httpx.Client:
    """
    Get an HTTP client for making requests.

    The pooled client is rebuilt if a different timeout is requested.

    Returns:
        httpx.Client configured for the environment
    """
    global _client, _client_timeout

    timeout = timeout or build_timeout()

    if not _use_connection_pooling():
        return httpx.Client(timeout=timeout, limits=DEFAULT_LIMITS)

    if _client is not None and _client_timeout != timeout:
        logger.debug("Timeout changed, recreating HTTP client")
        _client.close()
        _client = None

    if _client is None:
        logger.debug("Initializing shared HTTP client with connection pooling")
        _client = httpx.Client(timeout=timeout, limits=DEFAULT_LIMITS)
        _client_timeout = timeout

    return _client


def close_http_client() -> None:
    """Close the shared HTTP client."""
    global _client, _client_timeout

    if _client is not None:
        _client.close()
        _client = None
        _client_timeout = None
        logger.debug("Closed shared HTTP client")
