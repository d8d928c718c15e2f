"""OpenAI API provider for tokenbar."""

from __future__ import annotations

from tokenbar.config.instances import ProviderSettings
from tokenbar.config.secrets import SecretStore
from tokenbar.providers.base import ConfigField
from tokenbar.providers.base import FieldType
from tokenbar.providers.base import ProviderServices
from tokenbar.providers.base import ProviderType
from tokenbar.providers.base import UsageProvider
from tokenbar.providers.openai.api_key import OpenAIApiKeyStrategy

DEFAULT_KEYCHAIN_KEY = "openai_api_key"


class OpenAIProvider(UsageProvider):
    """Provider for OpenAI API spend.

    Each instance can target a different account or organization through
    its own API key and optional organization id.
    """

    icon = "brain.head.profile"
    dashboard_url = "https://platform.openai.com/usage"

    def __init__(
        self,
        instance_id: str,
        name: str,
        secrets: SecretStore,
        keychain_key: str = DEFAULT_KEYCHAIN_KEY,
        organization_id: str | None = None,
        monthly_budget: float | None = None,
    ) -> None:
        super().__init__(instance_id, name)
        self.secrets = secrets
        self.keychain_key = keychain_key
        self.organization_id = organization_id
        self.monthly_budget = monthly_budget

    def fetch_strategies(self):
        return [
            OpenAIApiKeyStrategy(
                self.id,
                self.secrets,
                self.keychain_key,
                organization_id=self.organization_id,
                monthly_budget=self.monthly_budget,
            )
        ]


def create(
    instance_id: str,
    label: str,
    settings: ProviderSettings,
    services: ProviderServices,
) -> OpenAIProvider:
    return OpenAIProvider(
        instance_id,
        label,
        services.secrets,
        keychain_key=settings.string("keychainKey") or DEFAULT_KEYCHAIN_KEY,
        organization_id=settings.string("organizationId") or None,
        monthly_budget=settings.double("monthlyBudget"),
    )


OPENAI = ProviderType(
    type_id="openai",
    default_name="OpenAI API",
    factory=create,
    icon=OpenAIProvider.icon,
    dashboard_url=OpenAIProvider.dashboard_url,
    supports_multiple_instances=True,
    data_source="OpenAI API",
    config_fields=(
        ConfigField(
            id="keychainKey",
            label="API Key",
            field_type=FieldType.SECURE_TEXT,
            placeholder="sk-...",
            help_text="Get your key at platform.openai.com/api-keys",
            is_required=True,
        ),
        ConfigField(
            id="organizationId",
            label="Organization ID",
            placeholder="org-...",
            help_text="Leave empty for default org",
        ),
        ConfigField(
            id="monthlyBudget",
            label="Monthly Budget",
            field_type=FieldType.CURRENCY,
            placeholder="$",
            help_text="Set to 0 or leave empty to show dollar amount instead of percentage",
        ),
    ),
)
