"""GitHub CLI token strategy for Copilot provider."""

from __future__ import annotations

from datetime import UTC
from datetime import datetime
from typing import Any

from tokenbar.core.http import get_http_client
from tokenbar.core.process import command_exists
from tokenbar.core.process import run_command
from tokenbar.errors.http import check_response
from tokenbar.errors.types import ProviderError
from tokenbar.models import UsageQuota
from tokenbar.models import UsageSnapshot
from tokenbar.strategies.base import FetchResult
from tokenbar.strategies.base import FetchStrategy

COPILOT_STATUS_ERRORS = {
    403: lambda: ProviderError.network_error("Copilot not enabled or insufficient permissions"),
    404: lambda: ProviderError.network_error("Copilot not available for this account"),
}

# (quota key, label, unit shown in the detail text)
QUOTA_KEYS = (
    ("premium_interactions", "Premium", "premium requests used"),
    ("chat", "Chat", "chat messages"),
    ("completions", "Completions", "completions"),
)


class CopilotGhCliStrategy(FetchStrategy):
    """Fetch Copilot quotas from the internal user API with the gh CLI token.

    The endpoint is undocumented and used by the official editor
    integrations; it is the only source of individual quota data.
    """

    name = "gh_cli"

    API_URL = "https://api.github.com/copilot_internal/user"

    def __init__(self, provider_id: str) -> None:
        self.provider_id = provider_id

    def is_available(self) -> bool:
        return command_exists("gh")

    async def fetch(self) -> FetchResult:
        token = await self._get_gh_token()

        async with get_http_client() as client:
            response = await client.get(
                self.API_URL,
                headers={
                    "Authorization": f"Bearer {token}",
                    "Accept": "application/json",
                },
            )
        check_response(response, COPILOT_STATUS_ERRORS)

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError.parse_failed("Response is not valid JSON") from e

        return FetchResult.ok(parse_copilot_user(data, self.provider_id))

    async def _get_gh_token(self) -> str:
        result = await run_command("gh", "auth", "token")
        token = result.stdout.strip()
        if result.returncode != 0 or not token:
            raise ProviderError.authentication_required()
        return token


def _int(data: dict[str, Any], key: str) -> int:
    value = data.get(key)
    return value if isinstance(value, int) and not isinstance(value, bool) else 0


def _parse_reset(value: Any) -> datetime | None:
    if not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def parse_copilot_user(data: Any, provider_id: str) -> UsageSnapshot:
    """Parse the copilot_internal/user response.

    Format:
    {
        "copilot_plan": "individual",
        "quota_reset_date_utc": "2025-02-01T00:00:00Z",
        "quota_snapshots": {
            "premium_interactions": {"entitlement": 300, "remaining": 120,
                                     "percent_remaining": 40.0, "unlimited": false},
            "chat": {"unlimited": true},
            "completions": {"unlimited": true}
        }
    }
    """
    if not isinstance(data, dict):
        raise ProviderError.parse_failed("Response is not a JSON object")

    snapshots = data.get("quota_snapshots")
    if not isinstance(snapshots, dict):
        raise ProviderError.parse_failed("No quota_snapshots in response")

    resets_at = _parse_reset(data.get("quota_reset_date_utc"))
    quotas: list[UsageQuota] = []

    for key, label, unit in QUOTA_KEYS:
        snapshot = snapshots.get(key)
        if not isinstance(snapshot, dict):
            continue

        if snapshot.get("unlimited") is True:
            # Only premium requests are worth showing when unlimited
            if key == "premium_interactions":
                quotas.append(
                    UsageQuota(
                        percent_used=0,
                        label=label,
                        detail_text="Unlimited premium requests",
                        resets_at=resets_at,
                    )
                )
            continue

        entitlement = _int(snapshot, "entitlement")
        used = entitlement - _int(snapshot, "remaining")
        percent_remaining = snapshot.get("percent_remaining")
        if not isinstance(percent_remaining, int | float):
            percent_remaining = 100.0
        quotas.append(
            UsageQuota(
                percent_used=max(0.0, min(100.0, 100.0 - percent_remaining)),
                label=label,
                detail_text=f"{used}/{entitlement} {unit}",
                resets_at=resets_at,
            )
        )

    if not quotas:
        quotas.append(UsageQuota(percent_used=0, label="Usage", detail_text="All quotas unlimited"))

    plan = data.get("copilot_plan")
    return UsageSnapshot(
        provider_id=provider_id,
        quotas=tuple(quotas),
        captured_at=datetime.now(UTC),
        account_tier=(plan if isinstance(plan, str) else "unknown").upper(),
    )
