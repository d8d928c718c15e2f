"""Codex (OpenAI) provider for tokenbar.

Usage comes from the Codex CLI itself: a short-lived ``codex app-server``
answers a rate limits request over JSON-RPC, and the session logs under
``~/.codex`` serve as an offline fallback.
"""

from __future__ import annotations

import logging
from pathlib import Path

from tokenbar.config.cache import WorkspaceCache
from tokenbar.config.instances import ProviderSettings
from tokenbar.providers.base import ConfigField
from tokenbar.providers.base import DetectionSpec
from tokenbar.providers.base import ProviderServices
from tokenbar.providers.base import ProviderType
from tokenbar.providers.base import UsageProvider
from tokenbar.providers.codex.app_server import CodexAppServerStrategy
from tokenbar.providers.codex.auth import CodexOrganization
from tokenbar.providers.codex.auth import discover_organizations
from tokenbar.providers.codex.auth import learn_active_workspace
from tokenbar.providers.codex.sessions import CodexSessionsStrategy
from tokenbar.strategies.base import FetchResult

logger = logging.getLogger(__name__)

__all__ = [
    "CODEX",
    "CodexOrganization",
    "CodexProvider",
    "discover_organizations",
]


class CodexProvider(UsageProvider):
    """Provider for Codex CLI rate limits.

    Several instances may run side by side, each pinned to a config
    profile or organization.
    """

    icon = "terminal"
    dashboard_url = "https://platform.openai.com/usage"

    def __init__(
        self,
        instance_id: str = "codex",
        name: str = "Codex",
        profile: str | None = None,
        org_id: str | None = None,
        codex_dir: Path | None = None,
        workspace_cache: WorkspaceCache | None = None,
        app_server_timeout: float | None = None,
    ) -> None:
        super().__init__(instance_id, name)
        self.profile = profile
        self.org_id = org_id
        self.codex_dir = codex_dir or Path.home() / ".codex"
        self.workspace_cache = workspace_cache or WorkspaceCache()
        self.app_server_timeout = app_server_timeout

    def fetch_strategies(self):
        """Return ordered list of fetch strategies for Codex.

        Priority order:
        1. App-server - live rate limits from the Codex CLI
        2. Sessions - last rate limits recorded in session logs
        """
        workspace_id = self.workspace_cache.get(self.org_id) if self.org_id else None
        return [
            CodexAppServerStrategy(
                self.id,
                profile=self.profile,
                org_id=self.org_id,
                workspace_id=workspace_id,
                timeout=self.app_server_timeout,
            ),
            CodexSessionsStrategy(self.id, self.codex_dir),
        ]

    def is_available(self) -> bool:
        return self.codex_dir.is_dir()

    async def fetch_usage(self) -> FetchResult:
        try:
            learn_active_workspace(self.codex_dir, self.workspace_cache)
        except OSError as e:
            logger.warning("Could not update Codex workspace cache: %s", e)
        return await super().fetch_usage()


def create(
    instance_id: str,
    label: str,
    settings: ProviderSettings,
    services: ProviderServices,
) -> CodexProvider:
    return CodexProvider(
        instance_id,
        label,
        profile=settings.string("codexProfile") or None,
        org_id=settings.string("codexOrgId") or None,
        codex_dir=services.home / ".codex",
        workspace_cache=services.workspace_cache,
    )


CODEX = ProviderType(
    type_id="codex",
    default_name="Codex",
    factory=create,
    icon=CodexProvider.icon,
    dashboard_url=CodexProvider.dashboard_url,
    supports_multiple_instances=True,
    data_source="~/.codex",
    detection=DetectionSpec(
        paths=("/Applications/Codex.app", "~/.codex"),
        commands=("codex",),
    ),
    config_fields=(
        ConfigField(
            id="codexProfile",
            label="Config Profile",
            placeholder="default",
            help_text="Profile name from ~/.codex/config.toml",
        ),
        ConfigField(
            id="codexOrgId",
            label="Organization ID",
            placeholder="org-...",
            help_text="Organization to report usage for",
        ),
    ),
)
