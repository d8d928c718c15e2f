"""Tests for core fetch pipeline module."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from conftest import MockStrategy
from conftest import make_snapshot
from tokenbar.core import fetch as fetch_module
from tokenbar.errors.types import ErrorKind
from tokenbar.errors.types import ProviderError
from tokenbar.strategies.base import FetchResult
from tokenbar.strategies.base import FetchStrategy


class SlowStrategy(FetchStrategy):
    name = "slow"

    def is_available(self) -> bool:
        return True

    async def fetch(self) -> FetchResult:
        await asyncio.sleep(10)
        return FetchResult.ok(make_snapshot("slow", 1))


class TestFetchResult:
    """Tests for FetchResult constructors."""

    def test_ok(self):
        result = FetchResult.ok(make_snapshot("cursor", 42))
        assert result.success
        assert not result.should_fallback

    def test_fail_falls_back(self):
        result = FetchResult.fail(ProviderError.not_available())
        assert not result.success
        assert result.should_fallback

    def test_fatal(self):
        result = FetchResult.fatal(ProviderError.session_expired())
        assert not result.should_fallback


class TestExecuteFetchPipeline:
    """Tests for execute_fetch_pipeline function."""

    @pytest.mark.asyncio
    async def test_first_success_wins(self):
        """Later strategies are not tried after a success."""
        snapshot = make_snapshot("codex", 10)
        first = MockStrategy("app-server", fetch_result=FetchResult.ok(snapshot))
        second = MockStrategy("sessions", fetch_result=FetchResult.ok(make_snapshot("codex", 99)))

        result = await fetch_module.execute_fetch_pipeline("codex", [first, second])

        assert result.snapshot == snapshot
        assert not second.fetched

    @pytest.mark.asyncio
    async def test_falls_back_on_failure(self):
        snapshot = make_snapshot("codex", 10)
        first = MockStrategy(
            "app-server",
            fetch_result=FetchResult.fail(ProviderError.execution_failed("codex timed out")),
        )
        second = MockStrategy("sessions", fetch_result=FetchResult.ok(snapshot))

        result = await fetch_module.execute_fetch_pipeline("codex", [first, second])

        assert result.success
        assert result.snapshot == snapshot

    @pytest.mark.asyncio
    async def test_skips_unavailable(self):
        unavailable = MockStrategy("oauth", available=False)
        available = MockStrategy("web", fetch_result=FetchResult.ok(make_snapshot("x", 5)))

        result = await fetch_module.execute_fetch_pipeline("x", [unavailable, available])

        assert result.success
        assert not unavailable.fetched

    @pytest.mark.asyncio
    async def test_fatal_stops_chain(self):
        """A failure without fallback is returned immediately."""
        first = MockStrategy("oauth", fetch_result=FetchResult.fatal(ProviderError.session_expired()))
        second = MockStrategy("web", fetch_result=FetchResult.ok(make_snapshot("x", 5)))

        result = await fetch_module.execute_fetch_pipeline("x", [first, second])

        assert not result.success
        assert result.error == ProviderError.session_expired()
        assert not second.fetched

    @pytest.mark.asyncio
    async def test_returns_last_error(self):
        first = MockStrategy("a", fetch_result=FetchResult.fail(ProviderError.parse_failed("a")))
        second = MockStrategy("b", fetch_result=FetchResult.fail(ProviderError.parse_failed("b")))

        result = await fetch_module.execute_fetch_pipeline("x", [first, second])

        assert result.error == ProviderError.parse_failed("b")

    @pytest.mark.asyncio
    async def test_nothing_available(self):
        result = await fetch_module.execute_fetch_pipeline("x", [MockStrategy("a", available=False)])
        assert result.error == ProviderError.not_available()

    @pytest.mark.asyncio
    async def test_no_strategies(self):
        result = await fetch_module.execute_fetch_pipeline("x", [])
        assert result.error == ProviderError.not_available()

    @pytest.mark.asyncio
    async def test_exceptions_are_classified(self):
        """Exceptions never escape the pipeline."""
        strategy = MockStrategy("web", exception=httpx.ConnectError("refused"))

        result = await fetch_module.execute_fetch_pipeline("x", [strategy])

        assert result.error == ProviderError.network_error("Failed to connect to server")

    @pytest.mark.asyncio
    async def test_raised_provider_error_kept(self):
        strategy = MockStrategy("web", exception=ProviderError.authentication_required())

        result = await fetch_module.execute_fetch_pipeline("x", [strategy])

        assert result.error.kind == ErrorKind.AUTHENTICATION_REQUIRED

    @pytest.mark.asyncio
    async def test_timeout(self):
        """Each strategy runs under a hard timeout."""
        result = await fetch_module.execute_fetch_pipeline("x", [SlowStrategy()], timeout=0.01)

        assert result.error == ProviderError.network_error("Timed out after 0.01s")

    @pytest.mark.asyncio
    async def test_success_without_snapshot_is_failure(self):
        strategy = MockStrategy("web", fetch_result=FetchResult(success=True))

        result = await fetch_module.execute_fetch_pipeline("x", [strategy])

        assert not result.success
        assert result.error == ProviderError.parse_failed("Empty result")
