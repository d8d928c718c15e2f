"""OpenCode provider for tokenbar."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC
from datetime import datetime
from pathlib import Path
from typing import Any

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
from tokenbar.providers.local_usage import read_jsonl
from tokenbar.providers.local_usage import spend_quota
from tokenbar.providers.local_usage import today_start_ms
from tokenbar.strategies.base import FetchResult
from tokenbar.strategies.base import FetchStrategy

logger = logging.getLogger(__name__)

STORAGE_DIR = ".local/share/opencode/storage/message"


class OpenCodeStats(msgspec.Struct):
    today: UsageTotals = msgspec.field(default_factory=UsageTotals)
    all_time: UsageTotals = msgspec.field(default_factory=UsageTotals)
    session_count: int = 0


def _session_messages(session_dir: Path) -> list[Any]:
    messages: list[Any] = []
    for path in sorted(session_dir.iterdir()):
        if path.suffix == ".json":
            messages.append(read_json(path))
        elif path.suffix == ".jsonl":
            messages.extend(read_jsonl(path))
    return messages


def _add_message(stats: OpenCodeStats, message: Any, cutoff: int) -> None:
    # Only assistant messages carry token data
    if not isinstance(message, dict) or message.get("role") != "assistant":
        return
    tokens = message.get("tokens")
    if not isinstance(tokens, dict):
        return

    input_tokens = as_int(tokens.get("input"))
    output_tokens = as_int(tokens.get("output")) + as_int(tokens.get("reasoning"))
    cost = as_float(message.get("cost"))
    stats.all_time.add(input_tokens, output_tokens, cost)

    time = message.get("time")
    created = as_int(time.get("created")) if isinstance(time, dict) else 0
    if created >= cutoff:
        stats.today.add(input_tokens, output_tokens, cost)


def aggregate_messages(storage_dir: Path, now: datetime | None = None) -> OpenCodeStats:
    """Sum token usage and cost across all stored sessions.

    Raises:
        ProviderError: If the storage directory cannot be read
    """
    try:
        session_dirs = [p for p in sorted(storage_dir.iterdir()) if p.is_dir()]
    except OSError as e:
        raise ProviderError.parse_failed("Cannot read OpenCode storage") from e

    cutoff = today_start_ms(now)
    stats = OpenCodeStats(session_count=len(session_dirs))
    for session_dir in session_dirs:
        for message in _session_messages(session_dir):
            _add_message(stats, message, cutoff)
    return stats


def build_quotas(stats: OpenCodeStats) -> list[UsageQuota]:
    quotas = []
    if not stats.today.is_empty():
        detail = f"{format_token_count(stats.today.tokens)} tokens" if stats.today.cost > 0 else None
        quotas.append(spend_quota("Today", stats.today, detail))

    detail = f"{format_token_count(stats.all_time.tokens)} tokens · {stats.session_count} sessions"
    if stats.all_time.cost > 0:
        quotas.append(spend_quota("All Time", stats.all_time, detail))
    else:
        quotas.append(UsageQuota(percent_used=INFORMATIONAL, label="All Time", detail_text=detail))
    return quotas


class OpenCodeStorageStrategy(FetchStrategy):
    """Aggregate usage from OpenCode's local message storage."""

    name = "storage"

    def __init__(self, provider_id: str, storage_dir: Path) -> None:
        self.provider_id = provider_id
        self.storage_dir = storage_dir

    def is_available(self) -> bool:
        return self.storage_dir.is_dir()

    async def fetch(self) -> FetchResult:
        if not self.is_available():
            return FetchResult.fail(ProviderError.not_available())

        stats = await asyncio.to_thread(aggregate_messages, self.storage_dir)
        return FetchResult.ok(
            UsageSnapshot(
                provider_id=self.provider_id,
                quotas=tuple(build_quotas(stats)),
                captured_at=datetime.now(UTC),
            )
        )


class OpenCodeProvider(UsageProvider):
    """Provider for OpenCode token usage and cost."""

    icon = "rectangle.and.text.magnifyingglass"
    dashboard_url = None

    def __init__(
        self,
        instance_id: str = "opencode",
        name: str = "OpenCode",
        storage_dir: Path | None = None,
    ) -> None:
        super().__init__(instance_id, name)
        self.storage_dir = storage_dir or Path.home() / STORAGE_DIR

    def fetch_strategies(self):
        return [OpenCodeStorageStrategy(self.id, self.storage_dir)]


def create(
    instance_id: str,
    label: str,
    settings: ProviderSettings,
    services: ProviderServices,
) -> OpenCodeProvider:
    return OpenCodeProvider(instance_id, label, storage_dir=services.home / STORAGE_DIR)


OPENCODE = ProviderType(
    type_id="opencode",
    default_name="OpenCode",
    factory=create,
    icon=OpenCodeProvider.icon,
    data_source="~/.local/share/opencode",
    detection=DetectionSpec(
        paths=("~/.opencode", "~/.local/share/opencode"),
        commands=("opencode",),
    ),
)
