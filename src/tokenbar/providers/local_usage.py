"""Shared helpers for providers that aggregate usage from local log files."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

import msgspec

from tokenbar.models import INFORMATIONAL
from tokenbar.models import UsageQuota
from tokenbar.models import format_dollars
from tokenbar.models import format_token_count

logger = logging.getLogger(__name__)


class UsageTotals(msgspec.Struct):
    """Running token and cost totals for one period."""

    input_tokens: int = 0
    output_tokens: int = 0
    cost: float = 0.0
    cache_reads: int = 0  # Prompt cache hits, not part of tokens

    @property
    def tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def add(self, input_tokens: int, output_tokens: int, cost: float, cache_reads: int = 0) -> None:
        self.input_tokens += input_tokens
        self.output_tokens += output_tokens
        self.cost += cost
        self.cache_reads += cache_reads

    def is_empty(self) -> bool:
        return self.tokens == 0 and self.cost == 0


def today_start_ms(now: datetime | None = None) -> int:
    """Return local midnight of the current day as epoch milliseconds."""
    now = now or datetime.now().astimezone()
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return int(midnight.timestamp() * 1000)


def as_int(value: Any) -> int:
    """Coerce a JSON number to int, treating anything else as zero."""
    if isinstance(value, bool) or not isinstance(value, int | float):
        return 0
    return int(value)


def as_float(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return 0.0
    return float(value)


def read_json(path: Path) -> Any:
    """Read a JSON file, returning None if it is missing or malformed."""
    try:
        return json.loads(path.read_bytes())
    except (OSError, json.JSONDecodeError) as e:
        logger.debug("Skipping %s: %s", path, e)
        return None


def read_jsonl(path: Path) -> list[Any]:
    """Read the well-formed records of a JSON-lines file."""
    try:
        lines = path.read_text(errors="replace").splitlines()
    except OSError as e:
        logger.debug("Skipping %s: %s", path, e)
        return []

    records = []
    for line in lines:
        if not line.strip():
            continue
        try:
            records.append(json.loads(line))
        except json.JSONDecodeError:
            continue
    return records


def spend_quota(label: str, totals: UsageTotals, detail: str | None) -> UsageQuota:
    """Informational quota showing dollars when known, else the token count."""
    override = format_dollars(totals.cost) if totals.cost > 0 else format_token_count(totals.tokens)
    return UsageQuota(
        percent_used=INFORMATIONAL,
        label=label,
        detail_text=detail,
        menu_bar_override=override,
    )
