"""Session log fallback strategy for Codex provider."""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import UTC
from datetime import datetime
from pathlib import Path
from typing import Any

from tokenbar.errors.types import ProviderError
from tokenbar.models import UsageSnapshot
from tokenbar.providers.codex.app_server import build_rate_limit_quotas
from tokenbar.providers.codex.auth import read_plan_type
from tokenbar.strategies.base import FetchResult
from tokenbar.strategies.base import FetchStrategy

logger = logging.getLogger(__name__)

SESSION_DIRS = ("sessions", "archived_sessions")
FILES_PER_DIR = 5


def extract_last_rate_limits(path: Path) -> dict[str, Any] | None:
    """Return ``payload.rate_limits`` from the last line that carries it."""
    try:
        lines = path.read_text(errors="replace").splitlines()
    except OSError:
        return None

    for line in reversed(lines):
        if '"rate_limits"' not in line:
            continue
        try:
            record = json.loads(line)
        except json.JSONDecodeError:
            continue
        payload = record.get("payload") if isinstance(record, dict) else None
        rate_limits = payload.get("rate_limits") if isinstance(payload, dict) else None
        if isinstance(rate_limits, dict):
            return rate_limits
    return None


def _primary_reset(rate_limits: dict[str, Any]) -> float:
    primary = rate_limits.get("primary")
    value = primary.get("resets_at") if isinstance(primary, dict) else None
    return float(value) if isinstance(value, int | float) else 0.0


def recent_session_files(directory: Path, limit: int = FILES_PER_DIR) -> list[Path]:
    """Return the most recently modified ``.jsonl`` files under a directory."""
    if not directory.is_dir():
        return []
    files = []
    for path in directory.rglob("*.jsonl"):
        try:
            files.append((path.stat().st_mtime, path))
        except OSError:
            continue
    files.sort(key=lambda item: item[0], reverse=True)
    return [path for _, path in files[:limit]]


def find_latest_rate_limits(codex_dir: Path) -> dict[str, Any] | None:
    """Pick the rate limits with the latest primary reset across recent sessions."""
    best: dict[str, Any] | None = None
    best_reset = 0.0

    for name in SESSION_DIRS:
        for path in recent_session_files(codex_dir / name):
            rate_limits = extract_last_rate_limits(path)
            if rate_limits is None:
                continue
            reset = _primary_reset(rate_limits)
            if best is None or reset > best_reset:
                best, best_reset = rate_limits, reset
    return best


class CodexSessionsStrategy(FetchStrategy):
    """Read the last rate limits Codex wrote to its session logs.

    Works offline but reflects the state at the time of the last session.
    """

    name = "sessions"

    def __init__(self, provider_id: str, codex_dir: Path) -> None:
        self.provider_id = provider_id
        self.codex_dir = codex_dir

    def is_available(self) -> bool:
        return any((self.codex_dir / name).is_dir() for name in SESSION_DIRS)

    async def fetch(self) -> FetchResult:
        rate_limits = await asyncio.to_thread(find_latest_rate_limits, self.codex_dir)
        if rate_limits is None:
            return FetchResult.fail(
                ProviderError.parse_failed("No recent session data with rate limits found")
            )

        quotas = build_rate_limit_quotas(rate_limits, snake_case=True)
        if not quotas:
            return FetchResult.fail(
                ProviderError.parse_failed("No rate limit data in session files")
            )

        return FetchResult.ok(
            UsageSnapshot(
                provider_id=self.provider_id,
                quotas=tuple(quotas),
                captured_at=datetime.now(UTC),
                account_tier=read_plan_type(self.codex_dir),
            )
        )
