"""Pytest configuration and shared fixtures for tokenbar tests."""

from __future__ import annotations

import base64
import json
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Generator
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from tokenbar.config import settings as settings_module
from tokenbar.config.cache import WorkspaceCache
from tokenbar.config.instances import ProviderInstanceConfig
from tokenbar.config.secrets import MemorySecretStore
from tokenbar.config.store import MemoryStore
from tokenbar.models import UsageQuota, UsageSnapshot
from tokenbar.providers.base import ProviderServices, UsageProvider
from tokenbar.strategies.base import FetchResult, FetchStrategy


@pytest.fixture(autouse=True)
def isolated_dirs(tmp_path: Path, monkeypatch) -> Generator[None, None, None]:
    """Point config and cache directories at a temporary location."""
    monkeypatch.setenv("TOKENBAR_CONFIG_DIR", str(tmp_path / "config"))
    monkeypatch.setenv("TOKENBAR_CACHE_DIR", str(tmp_path / "cache"))
    monkeypatch.delenv("TOKENBAR_FETCH_TIMEOUT", raising=False)
    monkeypatch.delenv("TOKENBAR_KEYRING_SERVICE", raising=False)
    settings_module._config = None
    yield
    settings_module._config = None


@pytest.fixture
def utc_now() -> datetime:
    """Fixed UTC datetime for consistent testing."""
    return datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def future_time(utc_now: datetime) -> datetime:
    """Time 2 hours in the future."""
    return utc_now + timedelta(hours=2)


@pytest.fixture
def memory_store() -> MemoryStore:
    """Empty in-memory key/value store."""
    return MemoryStore()


@pytest.fixture
def secrets() -> MemorySecretStore:
    """Empty in-memory secret store."""
    return MemorySecretStore()


@pytest.fixture
def home(tmp_path: Path) -> Path:
    """Fake home directory."""
    path = tmp_path / "home"
    path.mkdir()
    return path


@pytest.fixture
def services(secrets: MemorySecretStore, home: Path) -> ProviderServices:
    """Provider services backed by in-memory stores."""
    return ProviderServices(secrets=secrets, workspace_cache=WorkspaceCache(), home=home)


def make_snapshot(
    provider_id: str,
    *percents: float,
    label: str = "Monthly",
    resets_at: datetime | None = None,
) -> UsageSnapshot:
    """Build a snapshot with one quota per percentage."""
    quotas = tuple(
        UsageQuota(percent_used=p, label=label if i == 0 else f"{label} {i}", resets_at=resets_at)
        for i, p in enumerate(percents)
    )
    return UsageSnapshot(
        provider_id=provider_id,
        quotas=quotas,
        captured_at=datetime.now(timezone.utc),
    )


def make_config(
    instance_id: str,
    type_id: str | None = None,
    enabled: bool = True,
    label: str | None = None,
    **provider_config,
) -> ProviderInstanceConfig:
    return ProviderInstanceConfig(
        id=instance_id,
        type_id=type_id or instance_id,
        label=label or instance_id.title(),
        enabled=enabled,
        provider_config=provider_config,
    )


class FakeProvider(UsageProvider):
    """Provider returning queued results without any I/O."""

    def __init__(self, instance_id: str, results: list[FetchResult] | None = None) -> None:
        super().__init__(instance_id, instance_id.title())
        self.results = list(results or [])
        self.calls = 0

    def fetch_strategies(self):
        return []

    def queue(self, *results: FetchResult) -> None:
        self.results.extend(results)

    async def fetch_usage(self) -> FetchResult:
        self.calls += 1
        if self.results:
            return self.results.pop(0) if len(self.results) > 1 else self.results[0]
        return FetchResult.ok(make_snapshot(self.id, 42.0))


class MockStrategy(FetchStrategy):
    """Mock fetch strategy for testing."""

    def __init__(
        self,
        name: str,
        available: bool = True,
        fetch_result: FetchResult | None = None,
        exception: BaseException | None = None,
    ):
        self._name = name
        self._available = available
        self._fetch_result = fetch_result
        self._exception = exception
        self.fetched = False

    @property
    def name(self) -> str:
        return self._name

    def is_available(self) -> bool:
        return self._available

    async def fetch(self) -> FetchResult:
        self.fetched = True
        if self._exception is not None:
            raise self._exception
        assert self._fetch_result is not None
        return self._fetch_result


def json_response(status_code: int = 200, payload=None, text: str | None = None) -> httpx.Response:
    """Build an httpx response carrying JSON or raw text."""
    request = httpx.Request("GET", "https://example.test")
    if text is not None:
        return httpx.Response(status_code, text=text, request=request)
    return httpx.Response(status_code, json=payload if payload is not None else {}, request=request)


def mock_http_client(*responses: httpx.Response) -> tuple[MagicMock, AsyncMock]:
    """Return a get_http_client replacement and the client it yields.

    GET and POST calls return the given responses in order.
    """
    client = AsyncMock()
    queue = list(responses)

    async def respond(*args, **kwargs):
        return queue.pop(0)

    client.get.side_effect = respond
    client.post.side_effect = respond

    @asynccontextmanager
    async def get_client():
        yield client

    return MagicMock(side_effect=get_client), client


def make_jwt(claims: dict) -> str:
    """Build an unsigned JWT carrying the given claims."""

    def encode(part: dict) -> str:
        return base64.urlsafe_b64encode(json.dumps(part).encode()).decode().rstrip("=")

    return f"{encode({'alg': 'none'})}.{encode(claims)}.signature"


def write_codex_auth(
    codex_dir: Path,
    organizations: list[dict] | None = None,
    workspace_id: str | None = None,
    plan_type: str | None = None,
) -> Path:
    """Write a Codex auth.json whose id token lists the given organizations."""
    auth_claim: dict = {}
    if organizations is not None:
        auth_claim["organizations"] = organizations
    if workspace_id is not None:
        auth_claim["chatgpt_account_id"] = workspace_id
    if plan_type is not None:
        auth_claim["chatgpt_plan_type"] = plan_type

    codex_dir.mkdir(parents=True, exist_ok=True)
    path = codex_dir / "auth.json"
    path.write_text(
        json.dumps(
            {"tokens": {"id_token": make_jwt({"https://api.openai.com/auth": auth_claim})}}
        )
    )
    return path
