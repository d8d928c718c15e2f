"""Claude Code provider for tokenbar."""

from __future__ import annotations

from pathlib import Path

from tokenbar.config.instances import ProviderSettings
from tokenbar.providers.base import DetectionSpec
from tokenbar.providers.base import ProviderServices
from tokenbar.providers.base import ProviderType
from tokenbar.providers.base import UsageProvider
from tokenbar.providers.claude.oauth import ClaudeOAuthStrategy


class ClaudeCodeProvider(UsageProvider):
    """Provider for Claude Code subscription usage."""

    icon = "apple.terminal"
    dashboard_url = "https://console.anthropic.com/settings/billing"

    def __init__(
        self,
        instance_id: str = "claude-code",
        name: str = "Claude Code",
        claude_dir: Path | None = None,
    ) -> None:
        super().__init__(instance_id, name)
        self.claude_dir = claude_dir or Path.home() / ".claude"

    def fetch_strategies(self):
        """Return ordered list of fetch strategies for Claude Code.

        Priority order:
        1. OAuth - tokens from ~/.claude/.credentials.json
        """
        return [ClaudeOAuthStrategy(self.id, self.claude_dir)]


def create(
    instance_id: str,
    label: str,
    settings: ProviderSettings,
    services: ProviderServices,
) -> ClaudeCodeProvider:
    return ClaudeCodeProvider(instance_id, label, claude_dir=services.home / ".claude")


CLAUDE_CODE = ProviderType(
    type_id="claude-code",
    default_name="Claude Code",
    factory=create,
    icon=ClaudeCodeProvider.icon,
    dashboard_url=ClaudeCodeProvider.dashboard_url,
    data_source="~/.claude (OAuth)",
    detection=DetectionSpec(paths=("~/.claude",), commands=("claude",)),
)
