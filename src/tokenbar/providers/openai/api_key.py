"""API key strategy for OpenAI provider."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from tokenbar.config.secrets import SecretStore
from tokenbar.core.http import get_http_client
from tokenbar.errors.http import check_response
from tokenbar.errors.types import ProviderError
from tokenbar.models import INFORMATIONAL
from tokenbar.models import UsageQuota
from tokenbar.models import UsageSnapshot
from tokenbar.strategies.base import FetchResult
from tokenbar.strategies.base import FetchStrategy

OPENAI_STATUS_ERRORS = {
    403: lambda: ProviderError.network_error("API key lacks organization access"),
}


def month_bounds(now: datetime | None = None) -> tuple[datetime, datetime]:
    """Return the start of the current local month and of the next one."""
    now = now or datetime.now().astimezone()
    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        next_start = start.replace(year=start.year + 1, month=1)
    else:
        next_start = start.replace(month=start.month + 1)
    return start, next_start


class OpenAIApiKeyStrategy(FetchStrategy):
    """Fetch month-to-date spend from the organization costs endpoint."""

    name = "api_key"

    COSTS_URL = "https://api.openai.com/v1/organization/costs"

    def __init__(
        self,
        provider_id: str,
        secrets: SecretStore,
        keychain_key: str,
        organization_id: str | None = None,
        monthly_budget: float | None = None,
    ) -> None:
        self.provider_id = provider_id
        self.secrets = secrets
        self.keychain_key = keychain_key
        self.organization_id = organization_id
        self.monthly_budget = monthly_budget

    def is_available(self) -> bool:
        return bool(self.secrets.load(self.keychain_key))

    async def fetch(self) -> FetchResult:
        api_key = self.secrets.load(self.keychain_key)
        if not api_key:
            return FetchResult.fatal(ProviderError.authentication_required())

        month_start, next_month = month_bounds()

        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        if self.organization_id:
            headers["OpenAI-Organization"] = self.organization_id

        async with get_http_client() as client:
            response = await client.get(
                self.COSTS_URL,
                params={
                    "start_time": int(month_start.timestamp()),
                    "bucket_width": "1m",
                    "limit": 1,
                },
                headers=headers,
            )
        check_response(response, OPENAI_STATUS_ERRORS)

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError.parse_failed("Response is not valid JSON") from e

        monthly_cost = parse_costs_response(data)
        return FetchResult.ok(self._build_snapshot(monthly_cost, next_month))

    def _build_snapshot(self, monthly_cost: float, resets_at: datetime) -> UsageSnapshot:
        budget = self.monthly_budget or 0
        if budget > 0:
            quota = UsageQuota(
                percent_used=min(100.0, monthly_cost / budget * 100),
                label="Monthly Budget",
                detail_text=f"${monthly_cost:.2f} / ${budget:.2f}",
                resets_at=resets_at,
            )
        else:
            quota = UsageQuota(
                percent_used=INFORMATIONAL,
                label="Monthly Spend",
                detail_text=f"${monthly_cost:.2f}",
                resets_at=resets_at,
                menu_bar_override=f"${monthly_cost:.0f}",
            )

        return UsageSnapshot(
            provider_id=self.provider_id,
            quotas=(quota,),
            captured_at=datetime.now().astimezone(),
            account_tier="Org" if self.organization_id else "API",
        )


def parse_costs_response(data: Any) -> float:
    """Sum ``data[].results[].amount.value`` across all buckets."""
    if not isinstance(data, dict) or not isinstance(data.get("data"), list):
        raise ProviderError.parse_failed("Unexpected costs response format")

    total = 0.0
    for bucket in data["data"]:
        results = bucket.get("results") if isinstance(bucket, dict) else None
        if not isinstance(results, list):
            continue
        for result in results:
            amount = result.get("amount") if isinstance(result, dict) else None
            value = amount.get("value") if isinstance(amount, dict) else None
            if isinstance(value, int | float) and not isinstance(value, bool):
                total += value
    return total
