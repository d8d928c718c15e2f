"""Kilo Code provider for tokenbar.

Kilo Code keeps one directory per task under the editor's global storage,
each with a ``ui_messages.json`` log. Every ``api_req_started`` entry in
that log carries a JSON ``text`` payload with token counts and cost.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import UTC
from datetime import datetime
from pathlib import Path

import msgspec

from tokenbar.config.instances import ProviderSettings
from tokenbar.errors.types import ProviderError
from tokenbar.models import INFORMATIONAL
from tokenbar.models import UsageQuota
from tokenbar.models import UsageSnapshot
from tokenbar.models import format_token_count
from tokenbar.providers.base import DetectionSpec
from tokenbar.providers.base import ProviderServices
from tokenbar.providers.base import ProviderType
from tokenbar.providers.base import UsageProvider
from tokenbar.providers.local_usage import UsageTotals
from tokenbar.providers.local_usage import as_float
from tokenbar.providers.local_usage import as_int
from tokenbar.providers.local_usage import read_json
from tokenbar.providers.local_usage import spend_quota
from tokenbar.providers.local_usage import today_start_ms
from tokenbar.strategies.base import FetchResult
from tokenbar.strategies.base import FetchStrategy

logger = logging.getLogger(__name__)

# Editor global storage roots searched for Kilo Code tasks, relative to home
EDITOR_STORAGE_DIRS = (
    "Library/Application Support/Cursor/User/globalStorage",
    "Library/Application Support/Code/User/globalStorage",
    ".config/Cursor/User/globalStorage",
    ".config/Code/User/globalStorage",
)
EXTENSION_STORAGE = "kilocode.kilo-code"


class KiloCodeStats(msgspec.Struct):
    today: UsageTotals = msgspec.field(default_factory=UsageTotals)
    all_time: UsageTotals = msgspec.field(default_factory=UsageTotals)
    task_count: int = 0


def aggregate_tasks(tasks_dirs: list[Path], now: datetime | None = None) -> KiloCodeStats:
    """Sum token usage and cost across all tasks."""
    cutoff = today_start_ms(now)
    stats = KiloCodeStats()

    for tasks_dir in tasks_dirs:
        if not tasks_dir.is_dir():
            continue
        for task_dir in sorted(tasks_dir.iterdir()):
            messages = read_json(task_dir / "ui_messages.json")
            if not isinstance(messages, list):
                continue
            stats.task_count += 1

            for message in messages:
                if not isinstance(message, dict) or message.get("say") != "api_req_started":
                    continue
                text = message.get("text")
                if not isinstance(text, str):
                    continue
                try:
                    request = json.loads(text)
                except json.JSONDecodeError:
                    continue
                if not isinstance(request, dict):
                    continue

                tokens_in = as_int(request.get("tokensIn"))
                tokens_out = as_int(request.get("tokensOut"))
                cache_reads = as_int(request.get("cacheReads"))
                cost = as_float(request.get("cost"))
                stats.all_time.add(tokens_in, tokens_out, cost, cache_reads)
                if as_int(message.get("ts")) >= cutoff:
                    stats.today.add(tokens_in, tokens_out, cost, cache_reads)

    return stats


def build_quotas(stats: KiloCodeStats) -> list[UsageQuota]:
    quotas = []
    if stats.today.tokens > 0:
        detail = (
            f"{format_token_count(stats.today.input_tokens)} in · "
            f"{format_token_count(stats.today.output_tokens)} out"
        )
        if stats.today.cache_reads:
            detail += f" · {format_token_count(stats.today.cache_reads)} cached"
        quotas.append(spend_quota("Today", stats.today, detail))

    if stats.all_time.tokens > 0:
        detail = f"{format_token_count(stats.all_time.tokens)} tokens · {stats.task_count} tasks"
        quota = spend_quota("All Time", stats.all_time, detail)
        if stats.all_time.cost <= 0:
            quota = msgspec.structs.replace(quota, menu_bar_override=None)
        quotas.append(quota)

    if not quotas:
        quotas.append(
            UsageQuota(
                percent_used=INFORMATIONAL,
                label="Usage",
                detail_text=f"{stats.task_count} tasks, no token data yet",
            )
        )
    return quotas


class KiloCodeTasksStrategy(FetchStrategy):
    """Aggregate usage from Kilo Code's per-task message logs."""

    name = "tasks"

    def __init__(self, provider_id: str, tasks_dirs: list[Path]) -> None:
        self.provider_id = provider_id
        self.tasks_dirs = tasks_dirs

    def is_available(self) -> bool:
        return any(d.is_dir() for d in self.tasks_dirs)

    async def fetch(self) -> FetchResult:
        if not self.is_available():
            return FetchResult.fail(ProviderError.not_available())

        stats = await asyncio.to_thread(aggregate_tasks, self.tasks_dirs)
        logger.debug("Kilo Code: %d tasks, %d tokens", stats.task_count, stats.all_time.tokens)
        return FetchResult.ok(
            UsageSnapshot(
                provider_id=self.provider_id,
                quotas=tuple(build_quotas(stats)),
                captured_at=datetime.now(UTC),
            )
        )


class KiloCodeProvider(UsageProvider):
    """Provider for Kilo Code token usage and cost."""

    icon = "k.circle"
    dashboard_url = "https://kilocode.ai"

    def __init__(
        self,
        instance_id: str = "kilo-code",
        name: str = "Kilo Code",
        home: Path | None = None,
        tasks_dirs: list[Path] | None = None,
    ) -> None:
        super().__init__(instance_id, name)
        home = home or Path.home()
        self.tasks_dirs = tasks_dirs or [
            home / storage / EXTENSION_STORAGE / "tasks" for storage in EDITOR_STORAGE_DIRS
        ]

    def fetch_strategies(self):
        return [KiloCodeTasksStrategy(self.id, self.tasks_dirs)]


def create(
    instance_id: str,
    label: str,
    settings: ProviderSettings,
    services: ProviderServices,
) -> KiloCodeProvider:
    return KiloCodeProvider(instance_id, label, home=services.home)


KILO_CODE = ProviderType(
    type_id="kilo-code",
    default_name="Kilo Code",
    factory=create,
    icon=KiloCodeProvider.icon,
    dashboard_url=KiloCodeProvider.dashboard_url,
    data_source="Kilo Code local task data",
    detection=DetectionSpec(
        paths=("~/.kilocode",),
        commands=("kilo", "kilocode"),
        extension_patterns=("kilocode.kilo-code-", "kilocode.Kilo-Code-"),
    ),
)
