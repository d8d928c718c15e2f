"""GitHub Copilot provider for tokenbar."""

from __future__ import annotations

from tokenbar.config.instances import ProviderSettings
from tokenbar.providers.base import DetectionSpec
from tokenbar.providers.base import ProviderServices
from tokenbar.providers.base import ProviderType
from tokenbar.providers.base import UsageProvider
from tokenbar.providers.copilot.gh_cli import CopilotGhCliStrategy


class CopilotProvider(UsageProvider):
    """Provider for GitHub Copilot usage."""

    icon = "chevron.left.forwardslash.chevron.right"
    dashboard_url = "https://github.com/settings/copilot"

    def __init__(self, instance_id: str = "github-copilot", name: str = "GitHub Copilot") -> None:
        super().__init__(instance_id, name)

    def fetch_strategies(self):
        """Return ordered list of fetch strategies for Copilot.

        Priority order:
        1. gh CLI - token from `gh auth token`
        """
        return [CopilotGhCliStrategy(self.id)]


def create(
    instance_id: str,
    label: str,
    settings: ProviderSettings,
    services: ProviderServices,
) -> CopilotProvider:
    return CopilotProvider(instance_id, label)


GITHUB_COPILOT = ProviderType(
    type_id="github-copilot",
    default_name="GitHub Copilot",
    factory=create,
    icon=CopilotProvider.icon,
    dashboard_url=CopilotProvider.dashboard_url,
    data_source="~/.config/github-copilot",
    detection=DetectionSpec(
        paths=("~/.config/github-copilot",),
        extension_patterns=("github.copilot-",),
    ),
)
