"""Presence-only providers for tools with no usage API.

These types are surfaced when the tool is installed locally so the user
gets a dashboard link, but they never report measured usage.
"""

from __future__ import annotations

from datetime import UTC
from datetime import datetime

from tokenbar.config.instances import ProviderSettings
from tokenbar.models import INFORMATIONAL
from tokenbar.models import UsageQuota
from tokenbar.models import UsageSnapshot
from tokenbar.providers.base import DetectionSpec
from tokenbar.providers.base import ProviderCategory
from tokenbar.providers.base import ProviderServices
from tokenbar.providers.base import ProviderType
from tokenbar.providers.base import UsageProvider
from tokenbar.strategies.base import FetchResult


class DetectedProvider(UsageProvider):
    """A provider whose only state is "installed"."""

    is_trackable = False

    def __init__(
        self,
        instance_id: str,
        name: str,
        icon: str = "gauge",
        dashboard_url: str | None = None,
    ) -> None:
        super().__init__(instance_id, name)
        self.icon = icon
        self.dashboard_url = dashboard_url

    def fetch_strategies(self):
        return []

    def is_available(self) -> bool:
        # Presence was established by detection before the instance existed
        return True

    async def fetch_usage(self) -> FetchResult:
        return FetchResult.ok(
            UsageSnapshot(
                provider_id=self.id,
                quotas=(
                    UsageQuota(
                        percent_used=INFORMATIONAL,
                        label="Installed",
                        detail_text="Open dashboard to view usage",
                        menu_bar_override="--",
                    ),
                ),
                captured_at=datetime.now(UTC),
            )
        )


def detection_only(
    type_id: str,
    default_name: str,
    icon: str,
    dashboard_url: str | None,
    detection: DetectionSpec,
) -> ProviderType:
    """Declare a presence-only provider type."""

    def create(
        instance_id: str,
        label: str,
        settings: ProviderSettings,
        services: ProviderServices,
    ) -> DetectedProvider:
        return DetectedProvider(instance_id, label, icon=icon, dashboard_url=dashboard_url)

    return ProviderType(
        type_id=type_id,
        default_name=default_name,
        factory=create,
        icon=icon,
        dashboard_url=dashboard_url,
        category=ProviderCategory.DETECTED_ONLY,
        data_source="App detection only",
        detection=detection,
    )


DETECTED_TYPES = (
    detection_only(
        "chatgpt",
        "ChatGPT",
        "bubble.left.and.text.bubble.right",
        "https://chatgpt.com/#settings",
        DetectionSpec(paths=("/Applications/ChatGPT.app",)),
    ),
    detection_only(
        "windsurf",
        "Windsurf",
        "wind",
        "https://codeium.com/account",
        DetectionSpec(
            paths=("/Applications/Windsurf.app", "~/Library/Application Support/Windsurf"),
            commands=("windsurf",),
        ),
    ),
    detection_only(
        "gemini",
        "Gemini",
        "diamond",
        "https://aistudio.google.com",
        DetectionSpec(
            paths=("/Applications/Gemini.app", "/Applications/Antigravity.app"),
            commands=("gemini",),
        ),
    ),
    detection_only(
        "aider",
        "Aider",
        "wrench.and.screwdriver",
        "https://aider.chat",
        DetectionSpec(commands=("aider",)),
    ),
    detection_only(
        "ollama",
        "Ollama",
        "server.rack",
        None,
        DetectionSpec(paths=("/Applications/Ollama.app", "~/.ollama"), commands=("ollama",)),
    ),
    detection_only(
        "continue",
        "Continue",
        "arrow.right.circle",
        "https://continue.dev",
        DetectionSpec(paths=("~/.continue",), extension_patterns=("continue.continue-",)),
    ),
    detection_only(
        "cline",
        "Cline",
        "text.line.first.and.arrowtriangle.forward",
        None,
        DetectionSpec(extension_patterns=("saoudrizwan.claude-dev-", "cline.cline-")),
    ),
    detection_only(
        "tabnine",
        "Tabnine",
        "text.word.spacing",
        "https://app.tabnine.com",
        DetectionSpec(paths=("~/.tabnine",), extension_patterns=("tabnine.tabnine-vscode-",)),
    ),
    detection_only(
        "amazon-q",
        "Amazon Q",
        "a.circle",
        "https://aws.amazon.com/q/developer/",
        DetectionSpec(
            paths=("/Applications/Amazon Q.app", "~/.aws/amazonq"),
            commands=("q",),
            extension_patterns=("amazonwebservices.amazon-q-vscode-",),
        ),
    ),
    detection_only(
        "cody",
        "Cody",
        "doc.text.magnifyingglass",
        "https://sourcegraph.com/cody/manage",
        DetectionSpec(extension_patterns=("sourcegraph.cody-ai-",)),
    ),
    detection_only(
        "zai",
        "Z.AI",
        "bolt.fill",
        "https://z.ai/manage-apikey/rate-limits",
        DetectionSpec(commands=("crush", "zai")),
    ),
    detection_only(
        "minimax",
        "Minimax",
        "brain",
        "https://platform.minimax.io",
        DetectionSpec(paths=("/Applications/MiniMax.app", "~/.mini-agent"), commands=("mini-agent",)),
    ),
    detection_only(
        "openrouter",
        "OpenRouter",
        "network",
        "https://openrouter.ai",
        DetectionSpec(extension_patterns=("khaled.vscode-openrouter-",)),
    ),
)
