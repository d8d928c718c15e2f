"""App-server JSON-RPC strategy for Codex provider."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from datetime import UTC
from datetime import datetime
from typing import Any

from tokenbar.config.settings import get_config
from tokenbar.core.process import command_exists
from tokenbar.errors.types import ProviderError
from tokenbar.models import INFORMATIONAL
from tokenbar.models import UsageQuota
from tokenbar.models import UsageSnapshot
from tokenbar.strategies.base import FetchResult
from tokenbar.strategies.base import FetchStrategy

logger = logging.getLogger(__name__)

INITIALIZE_ID = 1
RATE_LIMITS_ID = 2


def app_server_args(
    profile: str | None = None,
    org_id: str | None = None,
    workspace_id: str | None = None,
) -> list[str]:
    """Build the command line for a read-only app-server."""
    args = ["codex", "-s", "read-only", "-a", "untrusted"]
    if profile:
        args += ["-p", profile]
    if workspace_id:
        args += ["-c", f'forced_chatgpt_workspace_id="{workspace_id}"']
    elif org_id:
        args += ["-c", f'org_id="{org_id}"']
    args.append("app-server")
    return args


def match_response(message: Any, request_id: int) -> dict[str, Any] | None:
    """Return the result for ``request_id`` if this message carries it.

    The result can arrive as a direct response or inside a notification
    whose params reference the request id.

    Raises:
        ProviderError: parse_failed if the server answered with an error
    """
    if not isinstance(message, dict):
        return None

    if message.get("id") == request_id:
        if isinstance(error := message.get("error"), dict):
            raise ProviderError.parse_failed(
                f"app-server error: {error.get('message', 'unknown')}"
            )
        result = message.get("result")
        return result if isinstance(result, dict) else None

    params = message.get("params")
    if "method" in message and isinstance(params, dict):
        if params.get("id") == request_id or params.get("requestId") == request_id:
            result = params.get("result", params)
            return result if isinstance(result, dict) else None

    return None


class CodexAppServerStrategy(FetchStrategy):
    """Fetch live rate limits from `codex app-server` over line-delimited JSON-RPC."""

    name = "app-server"

    def __init__(
        self,
        provider_id: str,
        profile: str | None = None,
        org_id: str | None = None,
        workspace_id: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self.provider_id = provider_id
        self.profile = profile
        self.org_id = org_id
        self.workspace_id = workspace_id
        self.timeout = timeout

    def is_available(self) -> bool:
        return command_exists("codex")

    async def fetch(self) -> FetchResult:
        result = await self._request_rate_limits()
        return FetchResult.ok(parse_app_server_limits(result, self.provider_id))

    async def _request_rate_limits(self) -> dict[str, Any]:
        timeout = self.timeout or get_config().fetch.app_server_timeout
        deadline = time.monotonic() + timeout

        try:
            process = await asyncio.create_subprocess_exec(
                *app_server_args(self.profile, self.org_id, self.workspace_id),
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except FileNotFoundError as e:
            raise ProviderError.execution_failed("codex not found") from e

        try:
            await self._send(
                process,
                INITIALIZE_ID,
                "initialize",
                {"clientInfo": {"name": "tokenbar", "version": "1.0.0"}},
            )
            await self._read_until(process, INITIALIZE_ID, deadline)
            await self._send(process, RATE_LIMITS_ID, "account/rateLimits/read", {})
            return await self._read_until(process, RATE_LIMITS_ID, deadline)
        finally:
            await _terminate(process)

    async def _send(
        self,
        process: asyncio.subprocess.Process,
        request_id: int,
        method: str,
        params: dict[str, Any],
    ) -> None:
        message = {"jsonrpc": "2.0", "id": request_id, "method": method, "params": params}
        process.stdin.write(json.dumps(message).encode() + b"\n")
        await process.stdin.drain()

    async def _read_until(
        self,
        process: asyncio.subprocess.Process,
        request_id: int,
        deadline: float,
    ) -> dict[str, Any]:
        """Read stdout lines until a message for ``request_id`` arrives."""
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise ProviderError.execution_failed("codex app-server timed out")
            try:
                line = await asyncio.wait_for(process.stdout.readline(), timeout=remaining)
            except asyncio.TimeoutError as e:
                raise ProviderError.execution_failed("codex app-server timed out") from e

            if not line:
                raise ProviderError.parse_failed("No rateLimits response from app-server")

            try:
                message = json.loads(line)
            except json.JSONDecodeError:
                logger.debug("Skipping non-JSON app-server line: %r", line[:200])
                continue

            if (result := match_response(message, request_id)) is not None:
                return result


async def _terminate(process: asyncio.subprocess.Process) -> None:
    if process.stdin and not process.stdin.is_closing():
        process.stdin.close()
    if process.returncode is None:
        try:
            process.terminate()
        except ProcessLookupError:
            return
        try:
            await asyncio.wait_for(process.wait(), timeout=2)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()


def _window_quota(window: Any, label: str, percent_key: str, reset_key: str) -> UsageQuota | None:
    if not isinstance(window, dict):
        return None
    used = window.get(percent_key)
    if isinstance(used, bool) or not isinstance(used, int | float):
        return None

    resets = window.get(reset_key)
    resets_at = (
        datetime.fromtimestamp(resets, tz=UTC)
        if isinstance(resets, int | float) and not isinstance(resets, bool)
        else None
    )
    return UsageQuota(
        percent_used=float(used),
        label=label,
        detail_text=f"{int(used)}% used",
        resets_at=resets_at,
    )


def _credits_quota(credits: Any, has_credits_key: str) -> UsageQuota | None:
    if not isinstance(credits, dict):
        return None
    has_credits = credits.get(has_credits_key) is True
    unlimited = credits.get("unlimited") is True
    if not (has_credits or unlimited):
        return None

    balance = credits.get("balance")
    if unlimited:
        detail = "Unlimited credits"
    elif isinstance(balance, str) and balance and balance != "0":
        detail = f"${balance} remaining"
    else:
        detail = "Credits available"
    return UsageQuota(percent_used=INFORMATIONAL, label="Credits", detail_text=detail)


def build_rate_limit_quotas(rate_limits: dict[str, Any], snake_case: bool) -> list[UsageQuota]:
    """Map Codex rate limits to quotas.

    The app-server uses camelCase keys, session logs use snake_case.
    """
    percent_key, reset_key, credits_key = (
        ("used_percent", "resets_at", "has_credits")
        if snake_case
        else ("usedPercent", "resetsAt", "hasCredits")
    )
    quotas = [
        _window_quota(rate_limits.get("primary"), "5h Window", percent_key, reset_key),
        _window_quota(rate_limits.get("secondary"), "Weekly", percent_key, reset_key),
        _credits_quota(rate_limits.get("credits"), credits_key),
    ]
    return [quota for quota in quotas if quota is not None]


def parse_app_server_limits(result: dict[str, Any], provider_id: str) -> UsageSnapshot:
    """Parse the ``account/rateLimits/read`` result."""
    rate_limits = result.get("rateLimits")
    if not isinstance(rate_limits, dict):
        raise ProviderError.parse_failed("No rateLimits in app-server response")

    quotas = build_rate_limit_quotas(rate_limits, snake_case=False)
    if not quotas:
        raise ProviderError.parse_failed("No rate limit data from app-server")

    plan = rate_limits.get("planType")
    return UsageSnapshot(
        provider_id=provider_id,
        quotas=tuple(quotas),
        captured_at=datetime.now(UTC),
        account_tier=plan.upper() if isinstance(plan, str) else None,
    )
