"""Fetch pipeline for executing provider fetch strategies."""

from __future__ import annotations

import asyncio
import logging
import time

from tokenbar.config.settings import get_config
from tokenbar.errors.classify import classify_exception
from tokenbar.errors.types import ProviderError
from tokenbar.strategies.base import FetchResult
from tokenbar.strategies.base import FetchStrategy

logger = logging.getLogger(__name__)


async def execute_fetch_pipeline(
    provider_id: str,
    strategies: list[FetchStrategy],
    timeout: float | None = None,
) -> FetchResult:
    """Execute fetch strategies in priority order.

    Tries each available strategy in sequence until one succeeds. A fatal
    failure stops the chain. Every strategy runs under a hard timeout and
    any exception it raises is classified, so this never raises.

    Args:
        provider_id: Instance identifier, used for logging
        strategies: Ordered list of fetch strategies to try
        timeout: Per-strategy timeout in seconds (defaults to config)

    Returns:
        FetchResult with a snapshot or the last typed error
    """
    if timeout is None:
        timeout = get_config().fetch.timeout

    last_error: ProviderError | None = None

    for strategy in strategies:
        if not strategy.is_available():
            logger.debug("%s: strategy %s not available", provider_id, strategy.name)
            continue

        start_time = time.monotonic()
        try:
            result = await asyncio.wait_for(strategy.fetch(), timeout=timeout)
        except asyncio.TimeoutError:
            result = FetchResult.fail(
                ProviderError.network_error(f"Timed out after {timeout:g}s")
            )
        except Exception as e:
            result = FetchResult.fail(classify_exception(e))
        duration_ms = int((time.monotonic() - start_time) * 1000)

        if result.success and result.snapshot is not None:
            logger.debug(
                "%s: strategy %s succeeded in %dms", provider_id, strategy.name, duration_ms
            )
            return result

        last_error = result.error or ProviderError.parse_failed("Empty result")
        logger.info(
            "%s: strategy %s failed in %dms: %s",
            provider_id,
            strategy.name,
            duration_ms,
            last_error,
        )
        if not result.should_fallback:
            return FetchResult.fatal(last_error)

    return FetchResult.fail(last_error or ProviderError.not_available())
