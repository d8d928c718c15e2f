"""Shared HTTP client used by every network-backed adapter."""

from __future__ import annotations

from contextlib import asynccontextmanager

import httpx

from tokenbar.config.settings import get_config

USER_AGENT = "tokenbar"
CONNECT_TIMEOUT = 10.0

_client: httpx.AsyncClient | None = None


def get_timeout_config() -> httpx.Timeout:
    """Read timeout from the configured per-strategy fetch timeout.

    Connecting never waits longer than the fetch itself would.
    """
    timeout = get_config().fetch.timeout
    return httpx.Timeout(timeout, connect=min(timeout, CONNECT_TIMEOUT))


def _build_client() -> httpx.AsyncClient:
    from tokenbar import __version__

    return httpx.AsyncClient(
        timeout=get_timeout_config(),
        limits=httpx.Limits(max_connections=20, max_keepalive_connections=5),
        headers={"User-Agent": f"{USER_AGENT}/{__version__}"},
        follow_redirects=True,
    )


@asynccontextmanager
async def get_http_client():
    """Yield the process-wide client, creating it on first use.

    Leaving the block keeps the client open for the next fetch; call
    cleanup() once the event loop is done with it.
    """
    global _client
    if _client is None:
        _client = _build_client()
    yield _client


async def cleanup() -> None:
    """Close the shared client so a new event loop can open its own."""
    global _client
    if _client is not None:
        client, _client = _client, None
        await client.aclose()
