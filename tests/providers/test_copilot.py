"""Tests for GitHub Copilot provider."""

from __future__ import annotations

from unittest.mock import AsyncMock
from unittest.mock import patch

import pytest

from conftest import json_response
from conftest import mock_http_client
from tokenbar.core.process import CommandResult
from tokenbar.errors.types import ErrorKind
from tokenbar.errors.types import ProviderError
from tokenbar.providers.copilot import gh_cli as gh_cli_module
from tokenbar.providers.copilot.gh_cli import CopilotGhCliStrategy
from tokenbar.providers.copilot.gh_cli import parse_copilot_user

USER = {
    "copilot_plan": "individual",
    "quota_reset_date_utc": "2025-02-01T00:00:00Z",
    "quota_snapshots": {
        "premium_interactions": {
            "entitlement": 300,
            "remaining": 120,
            "percent_remaining": 40.0,
            "unlimited": False,
        },
        "chat": {"unlimited": True},
        "completions": {"unlimited": True},
    },
}


class TestParseCopilotUser:
    """Tests for parse_copilot_user."""

    def test_premium_quota(self):
        snapshot = parse_copilot_user(USER, "github-copilot")

        [premium] = snapshot.quotas
        assert premium.label == "Premium"
        assert premium.percent_used == 60.0
        assert premium.detail_text == "180/300 premium requests used"
        assert premium.resets_at.month == 2
        assert snapshot.account_tier == "INDIVIDUAL"

    def test_limited_chat_and_completions(self):
        data = {
            "copilot_plan": "free",
            "quota_snapshots": {
                "chat": {"entitlement": 50, "remaining": 45, "percent_remaining": 90.0},
                "completions": {"entitlement": 2000, "remaining": 0, "percent_remaining": 0.0},
            },
        }
        snapshot = parse_copilot_user(data, "github-copilot")

        chat, completions = snapshot.quotas
        assert chat.percent_used == 10.0
        assert chat.detail_text == "5/50 chat messages"
        assert completions.percent_used == 100.0
        assert snapshot.is_exhausted()

    def test_unlimited_premium(self):
        data = {"quota_snapshots": {"premium_interactions": {"unlimited": True}}}
        [quota] = parse_copilot_user(data, "github-copilot").quotas
        assert quota.detail_text == "Unlimited premium requests"
        assert quota.percent_used == 0

    def test_all_unlimited(self):
        data = {"quota_snapshots": {"chat": {"unlimited": True}}}
        [quota] = parse_copilot_user(data, "github-copilot").quotas
        assert quota.detail_text == "All quotas unlimited"

    def test_missing_snapshots(self):
        with pytest.raises(ProviderError) as exc_info:
            parse_copilot_user({"copilot_plan": "individual"}, "github-copilot")
        assert exc_info.value.kind == ErrorKind.PARSE_FAILED


class TestCopilotGhCliStrategy:
    """Tests for CopilotGhCliStrategy."""

    def test_requires_gh(self):
        with patch.object(gh_cli_module, "command_exists", return_value=False):
            assert not CopilotGhCliStrategy("github-copilot").is_available()

    @pytest.mark.asyncio
    async def test_fetch(self):
        run = AsyncMock(return_value=CommandResult(0, "gho_token\n", ""))
        get_client, client = mock_http_client(json_response(200, USER))

        with (
            patch.object(gh_cli_module, "run_command", run),
            patch.object(gh_cli_module, "get_http_client", get_client),
        ):
            result = await CopilotGhCliStrategy("github-copilot").fetch()

        assert result.success
        run.assert_awaited_once_with("gh", "auth", "token")
        headers = client.get.call_args.kwargs["headers"]
        assert headers["Authorization"] == "Bearer gho_token"
        assert client.get.call_args.args[0] == "https://api.github.com/copilot_internal/user"

    @pytest.mark.asyncio
    async def test_not_logged_in(self):
        run = AsyncMock(return_value=CommandResult(1, "", "not logged in"))

        with patch.object(gh_cli_module, "run_command", run):
            with pytest.raises(ProviderError) as exc_info:
                await CopilotGhCliStrategy("github-copilot").fetch()

        assert exc_info.value == ProviderError.authentication_required()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("status", "detail"),
        [
            (403, "Copilot not enabled or insufficient permissions"),
            (404, "Copilot not available for this account"),
        ],
    )
    async def test_status_mapping(self, status, detail):
        run = AsyncMock(return_value=CommandResult(0, "gho_token", ""))
        get_client, _ = mock_http_client(json_response(status, {}))

        with (
            patch.object(gh_cli_module, "run_command", run),
            patch.object(gh_cli_module, "get_http_client", get_client),
        ):
            with pytest.raises(ProviderError) as exc_info:
                await CopilotGhCliStrategy("github-copilot").fetch()

        assert exc_info.value == ProviderError.network_error(detail)
