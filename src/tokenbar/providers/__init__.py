"""Provider type registry for tokenbar."""

from __future__ import annotations

import logging

from tokenbar.config.instances import ProviderInstanceConfig
from tokenbar.providers.base import ProviderServices
from tokenbar.providers.base import ProviderType
from tokenbar.providers.base import UsageProvider

logger = logging.getLogger(__name__)

# Provider type registry, in catalog order
_PROVIDER_TYPES: dict[str, ProviderType] = {}


def register_provider_type(provider_type: ProviderType) -> ProviderType:
    """Register a provider type.

    Raises:
        ValueError: If a type with the same id is already registered
    """
    if provider_type.type_id in _PROVIDER_TYPES:
        raise ValueError(f"Provider type already registered: {provider_type.type_id}")
    _PROVIDER_TYPES[provider_type.type_id] = provider_type
    return provider_type


def get_provider_type(type_id: str) -> ProviderType | None:
    """Get a provider type by id.

    Returns:
        ProviderType or None if not found
    """
    return _PROVIDER_TYPES.get(type_id)


def get_all_provider_types() -> dict[str, ProviderType]:
    """Get all registered provider types, trackable types first."""
    return dict(_PROVIDER_TYPES)


def list_type_ids() -> list[str]:
    return list(_PROVIDER_TYPES.keys())


def create_provider(
    config: ProviderInstanceConfig,
    services: ProviderServices,
) -> UsageProvider | None:
    """Build the adapter for a configured instance.

    Returns:
        Provider instance, or None if the type is not registered
    """
    provider_type = get_provider_type(config.type_id)
    if provider_type is None:
        logger.warning("Unknown provider type %r for instance %s", config.type_id, config.id)
        return None
    return provider_type.create(config.id, config.label, config.settings, services)


# Import and register provider types
from tokenbar.providers.claude import CLAUDE_CODE  # noqa: E402
from tokenbar.providers.codex import CODEX  # noqa: E402
from tokenbar.providers.copilot import GITHUB_COPILOT  # noqa: E402
from tokenbar.providers.cursor import CURSOR  # noqa: E402
from tokenbar.providers.detected import DETECTED_TYPES  # noqa: E402
from tokenbar.providers.kilocode import KILO_CODE  # noqa: E402
from tokenbar.providers.openai import OPENAI  # noqa: E402
from tokenbar.providers.opencode import OPENCODE  # noqa: E402

for _provider_type in (CLAUDE_CODE, CODEX, CURSOR, GITHUB_COPILOT, OPENAI, KILO_CODE, OPENCODE):
    register_provider_type(_provider_type)
for _provider_type in DETECTED_TYPES:
    register_provider_type(_provider_type)

__all__ = [
    "ProviderServices",
    "ProviderType",
    "UsageProvider",
    "create_provider",
    "get_all_provider_types",
    "get_provider_type",
    "list_type_ids",
    "register_provider_type",
]
