"""Local-database session strategy for Cursor provider."""

from __future__ import annotations

import logging
from datetime import UTC
from datetime import datetime
from pathlib import Path
from typing import Any

from tokenbar.core.http import get_http_client
from tokenbar.core.process import run_command
from tokenbar.errors.http import check_response
from tokenbar.errors.types import ProviderError
from tokenbar.models import UsageQuota
from tokenbar.models import UsageSnapshot
from tokenbar.providers.base import decode_jwt_payload
from tokenbar.strategies.base import FetchResult
from tokenbar.strategies.base import FetchStrategy

logger = logging.getLogger(__name__)

TOKEN_QUERY = "SELECT value FROM ItemTable WHERE key = 'cursorAuth/accessToken'"

# Cursor maps auth failures differently from the shared table
CURSOR_STATUS_ERRORS = {
    401: ProviderError.session_expired,
    403: ProviderError.authentication_required,
}


class CursorWebStrategy(FetchStrategy):
    """Fetch Cursor usage with the access token stored in Cursor's state database."""

    name = "web"

    USAGE_URL = "https://cursor.com/api/usage-summary"

    def __init__(self, provider_id: str, db_paths: list[Path]) -> None:
        self.provider_id = provider_id
        self.db_paths = db_paths

    @property
    def db_path(self) -> Path | None:
        """First existing state database."""
        for path in self.db_paths:
            if path.exists():
                return path
        return None

    def is_available(self) -> bool:
        return self.db_path is not None

    async def fetch(self) -> FetchResult:
        """Fetch usage using the stored session token."""
        db_path = self.db_path
        if db_path is None:
            return FetchResult.fail(ProviderError.not_available())

        access_token = await self._read_access_token(db_path)
        user_id = extract_user_id(access_token)

        async with get_http_client() as client:
            response = await client.get(
                self.USAGE_URL,
                headers={
                    "Cookie": f"WorkosCursorSessionToken={user_id}::{access_token}",
                    "Content-Type": "application/json",
                },
            )
        check_response(response, CURSOR_STATUS_ERRORS)

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError.parse_failed("Response is not valid JSON") from e

        return FetchResult.ok(parse_usage_summary(data, self.provider_id))

    async def _read_access_token(self, db_path: Path) -> str:
        result = await run_command("sqlite3", "-readonly", str(db_path), TOKEN_QUERY)
        if result.returncode != 0:
            raise ProviderError.execution_failed(
                f"sqlite3 exited with status {result.returncode}"
            )

        token = result.stdout.strip()
        if not token:
            raise ProviderError.authentication_required()
        return token


def extract_user_id(token: str) -> str:
    """Return the ``sub`` claim of Cursor's access token."""
    if len(token.split(".")) < 2:
        raise ProviderError.parse_failed("Invalid JWT format")

    claims = decode_jwt_payload(token)
    if claims is None:
        raise ProviderError.parse_failed("Failed to decode JWT payload")

    sub = claims.get("sub")
    if not isinstance(sub, str) or not sub:
        raise ProviderError.parse_failed("JWT payload missing 'sub' claim")
    return sub


def _numeric(data: dict[str, Any], key: str) -> int:
    value = data.get(key)
    if isinstance(value, bool):
        return 0
    if isinstance(value, int | float):
        return int(value)
    return 0


def _parse_timestamp(value: Any) -> datetime | None:
    if not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def _usage_quota(
    usage: Any,
    label: str,
    noun: str,
    resets_at: datetime | None,
) -> UsageQuota | None:
    if not isinstance(usage, dict) or usage.get("enabled") is not True:
        return None

    used = _numeric(usage, "used")
    limit = _numeric(usage, "limit")
    if limit <= 0:
        return None

    percent = min(100.0, max(0.0, used / limit * 100))
    return UsageQuota(
        percent_used=percent,
        label=label,
        detail_text=f"{used}/{limit} {noun}",
        resets_at=resets_at,
    )


def parse_usage_summary(data: Any, provider_id: str) -> UsageSnapshot:
    """Parse Cursor's /api/usage-summary response.

    Format:
    {
        "membershipType": "pro",
        "billingCycleEnd": "2025-02-01T00:00:00.000Z",
        "isUnlimited": false,
        "individualUsage": {
            "plan": {"enabled": true, "used": 120, "limit": 500},
            "onDemand": {"enabled": true, "used": 3, "limit": 20}
        }
    }
    """
    if not isinstance(data, dict):
        raise ProviderError.parse_failed("Response is not a JSON object")

    resets_at = _parse_timestamp(data.get("billingCycleEnd"))
    individual = data.get("individualUsage")
    if not isinstance(individual, dict):
        individual = {}

    quotas = [
        quota
        for quota in (
            _usage_quota(individual.get("plan"), "Monthly", "requests", resets_at),
            _usage_quota(individual.get("onDemand"), "On-Demand", "on-demand", resets_at),
        )
        if quota is not None
    ]

    if data.get("isUnlimited") is True:
        quotas.append(UsageQuota(percent_used=0, label="Monthly", detail_text="Unlimited"))

    if not quotas:
        raise ProviderError.parse_failed("No usage data found in Cursor response")

    membership = data.get("membershipType")
    return UsageSnapshot(
        provider_id=provider_id,
        quotas=tuple(quotas),
        captured_at=datetime.now(UTC),
        account_tier=(membership if isinstance(membership, str) else "unknown").upper(),
    )
