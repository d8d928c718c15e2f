"""Tests for the local log aggregating providers (Kilo Code, OpenCode)."""

from __future__ import annotations

import asyncio
import json
import time
from datetime import datetime
from datetime import timezone

import pytest

from tokenbar.core.fetch import execute_fetch_pipeline
from tokenbar.errors.types import ProviderError
from tokenbar.models import INFORMATIONAL
from tokenbar.providers import kilocode as kilocode_module
from tokenbar.providers.kilocode import KiloCodeProvider
from tokenbar.providers.kilocode import KiloCodeStats
from tokenbar.providers.kilocode import KiloCodeTasksStrategy
from tokenbar.providers.kilocode import aggregate_tasks
from tokenbar.providers.kilocode import build_quotas as kilo_quotas
from tokenbar.providers.local_usage import UsageTotals
from tokenbar.providers.local_usage import read_json
from tokenbar.providers.local_usage import read_jsonl
from tokenbar.providers.local_usage import spend_quota
from tokenbar.providers.local_usage import today_start_ms
from tokenbar.providers.opencode import OpenCodeProvider
from tokenbar.providers.opencode import OpenCodeStats
from tokenbar.providers.opencode import aggregate_messages
from tokenbar.providers.opencode import build_quotas as opencode_quotas

NOW = datetime(2025, 1, 15, 12, tzinfo=timezone.utc)
MIDNIGHT_MS = 1736899200000
TODAY_MS = MIDNIGHT_MS + 3_600_000
YESTERDAY_MS = MIDNIGHT_MS - 3_600_000


def api_request(ts, tokens_in, tokens_out, cost=None, cache_reads=0):
    payload = {"tokensIn": tokens_in, "tokensOut": tokens_out, "cacheReads": cache_reads}
    if cost is not None:
        payload["cost"] = cost
    return {"ts": ts, "type": "say", "say": "api_req_started", "text": json.dumps(payload)}


def write_task(tasks_dir, name, *messages):
    task_dir = tasks_dir / name
    task_dir.mkdir(parents=True)
    (task_dir / "ui_messages.json").write_text(json.dumps(list(messages)))


def assistant(created, input_tokens, output_tokens, reasoning=0, cost=0.0):
    return {
        "role": "assistant",
        "time": {"created": created},
        "cost": cost,
        "tokens": {"input": input_tokens, "output": output_tokens, "reasoning": reasoning},
    }


class TestLocalUsageHelpers:
    """Tests for the shared local usage helpers."""

    def test_totals(self):
        totals = UsageTotals()
        assert totals.is_empty()

        totals.add(100, 50, 0.25)
        totals.add(10, 5, 0.0)

        assert totals.tokens == 165
        assert totals.cost == 0.25
        assert not totals.is_empty()

    def test_today_start(self):
        assert today_start_ms(NOW) == MIDNIGHT_MS

    def test_read_json_missing_or_malformed(self, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text("{nope")
        assert read_json(tmp_path / "missing.json") is None
        assert read_json(bad) is None

    def test_read_jsonl_skips_bad_lines(self, tmp_path):
        path = tmp_path / "log.jsonl"
        path.write_text('{"a": 1}\n\nnot json\n{"b": 2}\n')
        assert read_jsonl(path) == [{"a": 1}, {"b": 2}]
        assert read_jsonl(tmp_path / "missing.jsonl") == []

    def test_spend_quota_prefers_dollars(self):
        quota = spend_quota("Today", UsageTotals(1000, 500, 1.5), "detail")
        assert quota.percent_used == INFORMATIONAL
        assert quota.menu_bar_override == "$1.50"

    def test_spend_quota_token_fallback(self):
        quota = spend_quota("Today", UsageTotals(12_000, 300, 0.0), None)
        assert quota.menu_bar_override == "12.3K"


class TestKiloCode:
    """Tests for Kilo Code task aggregation."""

    def test_aggregate(self, tmp_path):
        tasks = tmp_path / "tasks"
        write_task(
            tasks,
            "task-1",
            api_request(YESTERDAY_MS, 1000, 200, 0.05),
            {"ts": TODAY_MS, "say": "text", "text": "hello"},
            api_request(TODAY_MS, 3000, 700, 0.10, cache_reads=1500),
        )
        write_task(tasks, "task-2", {"say": "api_req_started", "text": "not json"})
        (tasks / "task-3").mkdir()

        stats = aggregate_tasks([tasks, tmp_path / "missing"], now=NOW)

        assert stats.task_count == 2
        assert stats.all_time.tokens == 4900
        assert stats.all_time.cost == pytest.approx(0.15)
        assert stats.today.input_tokens == 3000
        assert stats.today.output_tokens == 700
        assert stats.today.cache_reads == 1500

    def test_quotas(self):
        stats = KiloCodeStats(
            today=UsageTotals(3000, 700, 0.10, cache_reads=1500),
            all_time=UsageTotals(4000, 900, 0.15),
            task_count=2,
        )

        today, all_time = kilo_quotas(stats)

        assert today.detail_text == "3.0K in · 700 out · 1.5K cached"
        assert today.menu_bar_override == "$0.10"
        assert all_time.detail_text == "4.9K tokens · 2 tasks"

    def test_all_time_without_cost_has_no_override(self):
        stats = KiloCodeStats(all_time=UsageTotals(500, 100), task_count=1)
        [all_time] = kilo_quotas(stats)
        assert all_time.menu_bar_override is None

    def test_no_token_data(self):
        [quota] = kilo_quotas(KiloCodeStats(task_count=3))
        assert quota.label == "Usage"
        assert quota.detail_text == "3 tasks, no token data yet"

    @pytest.mark.asyncio
    async def test_provider(self, home):
        tasks = home / ".config/Code/User/globalStorage/kilocode.kilo-code/tasks"
        write_task(tasks, "task-1", api_request(TODAY_MS, 10, 5, 0.01))
        provider = KiloCodeProvider(home=home)

        result = await provider.fetch_usage()

        assert result.success
        assert result.snapshot.provider_id == "kilo-code"
        assert result.snapshot.quotas[-1].label == "All Time"

    @pytest.mark.asyncio
    async def test_provider_not_installed(self, home):
        result = await KiloCodeProvider(home=home).fetch_usage()
        assert result.error == ProviderError.not_available()

    @pytest.mark.asyncio
    async def test_slow_scan_does_not_block_loop(self, tmp_path, monkeypatch):
        tasks = tmp_path / "tasks"
        write_task(tasks, "task-1", api_request(TODAY_MS, 10, 5))

        def slow_aggregate(tasks_dirs):
            time.sleep(0.5)
            return KiloCodeStats()

        monkeypatch.setattr(kilocode_module, "aggregate_tasks", slow_aggregate)
        strategy = KiloCodeTasksStrategy("kilo-code", [tasks])

        async def other_instance():
            start = time.monotonic()
            await asyncio.sleep(0.05)
            return time.monotonic() - start

        start = time.monotonic()
        result, other_delay = await asyncio.gather(
            execute_fetch_pipeline("kilo-code", [strategy], timeout=0.2),
            other_instance(),
        )

        assert not result.success
        assert "Timed out" in result.error.message
        assert time.monotonic() - start < 0.45
        assert other_delay < 0.3


class TestOpenCode:
    """Tests for OpenCode message aggregation."""

    @pytest.fixture
    def storage(self, tmp_path):
        storage = tmp_path / "message"
        session = storage / "ses_1"
        session.mkdir(parents=True)
        (session / "msg_1.json").write_text(json.dumps(assistant(TODAY_MS, 100, 40, reasoning=10, cost=0.02)))
        (session / "msg_2.json").write_text(json.dumps({"role": "user", "tokens": {"input": 999}}))
        (session / "log.jsonl").write_text(json.dumps(assistant(YESTERDAY_MS, 50, 20)) + "\n")
        (storage / "ses_2").mkdir()
        return storage

    def test_aggregate(self, storage):
        stats = aggregate_messages(storage, now=NOW)

        assert stats.session_count == 2
        assert stats.all_time.input_tokens == 150
        assert stats.all_time.output_tokens == 70
        assert stats.today.tokens == 150
        assert stats.today.cost == pytest.approx(0.02)

    def test_unreadable_storage(self, tmp_path):
        with pytest.raises(ProviderError):
            aggregate_messages(tmp_path / "missing")

    def test_quotas_with_cost(self):
        stats = OpenCodeStats(
            today=UsageTotals(100, 50, 0.02),
            all_time=UsageTotals(1500, 500, 0.5),
            session_count=3,
        )

        today, all_time = opencode_quotas(stats)

        assert today.detail_text == "150 tokens"
        assert all_time.detail_text == "2.0K tokens · 3 sessions"
        assert all_time.menu_bar_override == "$0.50"

    def test_quotas_without_activity(self):
        [all_time] = opencode_quotas(OpenCodeStats(session_count=0))
        assert all_time.label == "All Time"
        assert all_time.menu_bar_override is None

    @pytest.mark.asyncio
    async def test_provider(self, storage):
        result = await OpenCodeProvider(storage_dir=storage).fetch_usage()
        assert result.success
        assert result.snapshot.provider_id == "opencode"

    @pytest.mark.asyncio
    async def test_provider_not_installed(self, tmp_path):
        result = await OpenCodeProvider(storage_dir=tmp_path / "missing").fetch_usage()
        assert result.error == ProviderError.not_available()
