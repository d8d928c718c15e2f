"""Exception classification into the provider error taxonomy."""

from __future__ import annotations

import asyncio
import json
import subprocess

import httpx
import msgspec

from tokenbar.errors.types import ProviderError


def classify_exception(e: BaseException) -> ProviderError:
    """Convert any exception raised during a fetch into a ProviderError."""
    if isinstance(e, ProviderError):
        return e

    if isinstance(e, httpx.TimeoutException | asyncio.TimeoutError | TimeoutError):
        return ProviderError.network_error("Request timed out")

    if isinstance(e, httpx.ConnectError):
        return ProviderError.network_error("Failed to connect to server")

    if isinstance(e, httpx.HTTPStatusError):
        return ProviderError.network_error(f"HTTP {e.response.status_code}")

    if isinstance(e, httpx.HTTPError):
        return ProviderError.network_error(str(e) or type(e).__name__)

    if isinstance(e, json.JSONDecodeError | msgspec.DecodeError):
        return ProviderError.parse_failed(f"Invalid JSON: {e}")

    if isinstance(e, KeyError | ValueError | TypeError):
        return ProviderError.parse_failed(f"Invalid response format: {e}")

    if isinstance(e, subprocess.SubprocessError | OSError):
        return ProviderError.execution_failed(str(e) or type(e).__name__)

    return ProviderError.execution_failed(f"{type(e).__name__}: {e}")
