"""OAuth strategy for Claude Code provider."""

from __future__ import annotations

import json
import logging
import time
from datetime import UTC
from datetime import datetime
from pathlib import Path
from typing import Any

from tokenbar.config.credentials import read_credential
from tokenbar.config.credentials import write_credential
from tokenbar.core.http import get_http_client
from tokenbar.errors.http import check_response
from tokenbar.errors.types import ErrorKind
from tokenbar.errors.types import ProviderError
from tokenbar.models import UsageQuota
from tokenbar.models import UsageSnapshot
from tokenbar.strategies.base import FetchResult
from tokenbar.strategies.base import FetchStrategy

logger = logging.getLogger(__name__)

CLAUDE_STATUS_ERRORS = {
    403: lambda: ProviderError.network_error("Insufficient permissions"),
}


class ClaudeOAuthStrategy(FetchStrategy):
    """Fetch Claude usage using the OAuth tokens written by Claude Code.

    Expired tokens are refreshed before the request, and a rejected token
    is refreshed once more after a 401. Refreshed tokens are written back
    to the credentials file.
    """

    name = "oauth"

    TOKEN_URL = "https://platform.claude.com/v1/oauth/token"
    USAGE_URL = "https://api.anthropic.com/api/oauth/usage"
    CLIENT_ID = "9d1c250a-e61b-44d9-88ed-5944d1962f5e"

    def __init__(self, provider_id: str, claude_dir: Path) -> None:
        self.provider_id = provider_id
        self.claude_dir = claude_dir

    @property
    def credentials_path(self) -> Path:
        return self.claude_dir / ".credentials.json"

    def is_available(self) -> bool:
        """Check if an access token is present."""
        credentials = self._load_credentials()
        return bool(credentials and credentials.get("accessToken"))

    async def fetch(self) -> FetchResult:
        """Fetch usage using OAuth credentials."""
        credentials = self._load_credentials()
        access_token = credentials.get("accessToken") if credentials else None
        if not access_token:
            return FetchResult.fatal(ProviderError.authentication_required())

        if self._needs_refresh(credentials):
            logger.info("Claude token expired, attempting refresh")
            try:
                access_token = await self._refresh_token()
            except ProviderError as e:
                # Try the stale token anyway; a 401 below gets one more refresh
                logger.info("Proactive refresh failed: %s", e)

        try:
            data = await self._fetch_usage(access_token)
        except ProviderError as e:
            if e.kind != ErrorKind.AUTHENTICATION_REQUIRED:
                raise
            logger.info("Claude usage request rejected, attempting refresh")
            try:
                fresh_token = await self._refresh_token()
            except ProviderError:
                return FetchResult.fatal(ProviderError.authentication_required())
            data = await self._fetch_usage(fresh_token)

        tier = _subscription_tier(credentials) or infer_tier(data)
        return FetchResult.ok(parse_usage_response(data, self.provider_id, tier))

    async def _fetch_usage(self, access_token: str) -> Any:
        async with get_http_client() as client:
            response = await client.get(
                self.USAGE_URL,
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "anthropic-beta": "oauth-2025-04-20",
                },
            )
        check_response(response, CLAUDE_STATUS_ERRORS)

        try:
            return response.json()
        except ValueError as e:
            raise ProviderError.parse_failed("Response is not valid JSON") from e

    def _load_credentials(self) -> dict[str, Any] | None:
        """Load the ``claudeAiOauth`` block of Claude Code's credentials file."""
        content = read_credential(self.credentials_path)
        if not content:
            return None
        try:
            data = json.loads(content)
        except json.JSONDecodeError:
            return None
        oauth = data.get("claudeAiOauth") if isinstance(data, dict) else None
        return oauth if isinstance(oauth, dict) else None

    def _needs_refresh(self, credentials: dict[str, Any]) -> bool:
        """Check if the token expired. expiresAt is in milliseconds."""
        expires_at = credentials.get("expiresAt")
        if not isinstance(expires_at, int | float):
            return False
        return time.time() * 1000 > expires_at

    async def _refresh_token(self) -> str:
        """Exchange the refresh token for a new access token.

        Raises:
            ProviderError: authentication_required if no refresh is possible
        """
        credentials = self._load_credentials()
        refresh_token = credentials.get("refreshToken") if credentials else None
        if not refresh_token:
            raise ProviderError.authentication_required()

        async with get_http_client() as client:
            response = await client.post(
                self.TOKEN_URL,
                data={
                    "grant_type": "refresh_token",
                    "refresh_token": refresh_token,
                    "client_id": self.CLIENT_ID,
                },
            )

        if response.status_code != 200:
            logger.info("Token refresh failed: HTTP %s", response.status_code)
            raise ProviderError.authentication_required()

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError.parse_failed("Invalid token refresh response") from e

        access_token = data.get("access_token") if isinstance(data, dict) else None
        if not isinstance(access_token, str):
            raise ProviderError.parse_failed("Invalid token refresh response")

        self._save_refreshed_tokens(
            access_token,
            data.get("refresh_token"),
            data.get("expires_in"),
        )
        logger.info("Claude token refreshed")
        return access_token

    def _save_refreshed_tokens(
        self,
        access_token: str,
        refresh_token: str | None,
        expires_in: float | None,
    ) -> None:
        """Write refreshed tokens into the existing credentials file."""
        content = read_credential(self.credentials_path)
        if not content:
            return
        try:
            data = json.loads(content)
        except json.JSONDecodeError:
            return
        oauth = data.get("claudeAiOauth") if isinstance(data, dict) else None
        if not isinstance(oauth, dict):
            return

        oauth["accessToken"] = access_token
        if refresh_token:
            oauth["refreshToken"] = refresh_token
        if isinstance(expires_in, int | float):
            oauth["expiresAt"] = (time.time() + expires_in) * 1000

        write_credential(
            self.credentials_path,
            json.dumps(data, indent=2, sort_keys=True).encode(),
        )


def _parse_reset(value: Any) -> datetime | None:
    if not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def _utilization(window: Any) -> float | None:
    if not isinstance(window, dict):
        return None
    value = window.get("utilization")
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    return float(value)


def _subscription_tier(credentials: dict[str, Any] | None) -> str | None:
    tier = credentials.get("subscriptionType") if credentials else None
    return tier.upper() if isinstance(tier, str) and tier else None


def infer_tier(data: Any) -> str | None:
    """Infer the plan from the response shape: extra usage means MAX, both windows PRO."""
    if not isinstance(data, dict):
        return None
    extra = data.get("extra_usage")
    if isinstance(extra, dict) and extra.get("is_enabled") is True:
        return "MAX"
    if data.get("five_hour") is not None and data.get("seven_day") is not None:
        return "PRO"
    return None


def parse_usage_response(data: Any, provider_id: str, tier: str | None = None) -> UsageSnapshot:
    """Parse usage response from the OAuth endpoint.

    Format:
    {
        "five_hour": { "utilization": 0.0, "resets_at": "2026-01-17T06:59:59.846865+00:00" },
        "seven_day": { "utilization": 27.0, "resets_at": "2026-01-22T18:59:59.846886+00:00" },
        "seven_day_sonnet": { "utilization": 3.0, "resets_at": "..." },
        "extra_usage": { "is_enabled": true, "utilization": 12.0, "used_credits": 600, "monthly_limit": 5000 }
    }
    """
    if not isinstance(data, dict):
        raise ProviderError.parse_failed("Response is not a JSON object")

    quotas: list[UsageQuota] = []

    for key, label in (("five_hour", "5h Window"), ("seven_day", "Weekly")):
        window = data.get(key)
        utilization = _utilization(window)
        if utilization is not None:
            quotas.append(
                UsageQuota(
                    percent_used=utilization,
                    label=label,
                    detail_text=f"{int(utilization)}% used",
                    resets_at=_parse_reset(window.get("resets_at")),
                )
            )

    # Model-specific weekly caps, only shown when in use
    for key, label in (("seven_day_opus", "Opus Weekly"), ("seven_day_sonnet", "Sonnet Weekly")):
        window = data.get(key)
        utilization = _utilization(window)
        if utilization is not None and utilization > 0:
            quotas.append(
                UsageQuota(
                    percent_used=utilization,
                    label=label,
                    detail_text=f"{int(utilization)}% used",
                    resets_at=_parse_reset(window.get("resets_at")),
                )
            )

    extra = data.get("extra_usage")
    if isinstance(extra, dict) and extra.get("is_enabled") is True:
        utilization = _utilization(extra) or 0.0
        detail = f"{int(utilization)}% used"
        limit_cents = extra.get("monthly_limit")
        if isinstance(limit_cents, int | float) and not isinstance(limit_cents, bool):
            used_cents = extra.get("used_credits")
            if not isinstance(used_cents, int | float):
                used_cents = 0
            detail = f"${used_cents / 100:.2f} / ${limit_cents / 100:.2f}"
        quotas.append(UsageQuota(percent_used=utilization, label="Credits", detail_text=detail))

    if not quotas:
        raise ProviderError.parse_failed("No usage data in response")

    return UsageSnapshot(
        provider_id=provider_id,
        quotas=tuple(quotas),
        captured_at=datetime.now(UTC),
        account_tier=tier,
    )
