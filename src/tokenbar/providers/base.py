"""Provider adapter contract and type descriptors for tokenbar."""

from __future__ import annotations

import base64
import json
from abc import ABC
from abc import abstractmethod
from collections.abc import Callable
from enum import StrEnum
from pathlib import Path
from typing import Any
from typing import ClassVar

import msgspec

from tokenbar.config.cache import WorkspaceCache
from tokenbar.config.instances import ProviderSettings
from tokenbar.config.secrets import SecretStore
from tokenbar.core.fetch import execute_fetch_pipeline
from tokenbar.strategies.base import FetchResult
from tokenbar.strategies.base import FetchStrategy


class ProviderCategory(StrEnum):
    """Whether a provider type measures usage or only reports presence."""

    TRACKABLE = "trackable"
    DETECTED_ONLY = "detected_only"


class FieldType(StrEnum):
    """Input kind for a configurable field."""

    TEXT = "text"
    SECURE_TEXT = "secure_text"  # Value is a secret-store key
    CURRENCY = "currency"
    TOGGLE = "toggle"
    PICKER = "picker"


class ConfigField(msgspec.Struct, frozen=True):
    """Descriptor for one entry of an instance's provider_config."""

    id: str
    label: str
    field_type: FieldType = FieldType.TEXT
    placeholder: str | None = None
    help_text: str | None = None
    is_required: bool = False
    choices: tuple[str, ...] = ()


class DetectionSpec(msgspec.Struct, frozen=True):
    """Local presence rules: any matching path, command or extension counts."""

    paths: tuple[str, ...] = ()
    commands: tuple[str, ...] = ()
    extension_patterns: tuple[str, ...] = ()  # Editor extension directory prefixes

    def is_empty(self) -> bool:
        return not (self.paths or self.commands or self.extension_patterns)


class ProviderServices(msgspec.Struct):
    """Collaborators handed to provider factories."""

    secrets: SecretStore
    workspace_cache: WorkspaceCache
    home: Path

    @classmethod
    def default(cls) -> ProviderServices:
        from tokenbar.config.secrets import KeyringSecretStore

        return cls(
            secrets=KeyringSecretStore(),
            workspace_cache=WorkspaceCache.default(),
            home=Path.home(),
        )


ProviderFactory = Callable[[str, str, ProviderSettings, ProviderServices], "UsageProvider"]


class ProviderType(msgspec.Struct, frozen=True):
    """Registry entry describing one vendor integration."""

    type_id: str
    default_name: str
    factory: ProviderFactory
    icon: str = "gauge"
    dashboard_url: str | None = None
    category: ProviderCategory = ProviderCategory.TRACKABLE
    supports_multiple_instances: bool = False
    data_source: str | None = None  # Where usage is read from, for display
    detection: DetectionSpec = msgspec.field(default_factory=DetectionSpec)
    config_fields: tuple[ConfigField, ...] = ()

    @property
    def is_trackable(self) -> bool:
        return self.category == ProviderCategory.TRACKABLE

    def secret_fields(self) -> tuple[ConfigField, ...]:
        """Fields whose values reference secret-store entries."""
        return tuple(f for f in self.config_fields if f.field_type == FieldType.SECURE_TEXT)

    def create(
        self,
        instance_id: str,
        label: str,
        settings: ProviderSettings,
        services: ProviderServices,
    ) -> UsageProvider:
        return self.factory(instance_id, label, settings, services)


class UsageProvider(ABC):
    """Abstract base class for all provider adapters.

    Each adapter must:
    1. Set icon and dashboard_url as ClassVars
    2. Implement fetch_strategies() to return an ordered list of strategies

    fetch_usage() may run concurrently with other adapters but is never
    called concurrently for the same instance.
    """

    icon: ClassVar[str] = "gauge"
    dashboard_url: ClassVar[str | None] = None
    is_trackable: ClassVar[bool] = True

    def __init__(self, instance_id: str, name: str) -> None:
        self._id = instance_id
        self._name = name

    @property
    def id(self) -> str:
        """Instance identifier."""
        return self._id

    @property
    def name(self) -> str:
        """Display name."""
        return self._name

    @abstractmethod
    def fetch_strategies(self) -> list[FetchStrategy]:
        """Return ordered list of fetch strategies to try.

        Strategies are tried in order until one succeeds.
        """

    def is_available(self) -> bool:
        """Best-effort local check used for display hints only."""
        return any(strategy.is_available() for strategy in self.fetch_strategies())

    async def fetch_usage(self) -> FetchResult:
        """Fetch a snapshot or a typed error. Never raises."""
        return await execute_fetch_pipeline(self.id, self.fetch_strategies())


def decode_jwt_payload(token: str) -> dict[str, Any] | None:
    """Decode the claims of a JWT without verifying it.

    Returns:
        Claims dict, or None if the token is malformed
    """
    parts = token.split(".")
    if len(parts) < 2:
        return None

    payload = parts[1]
    payload += "=" * (-len(payload) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(payload))
    except (ValueError, TypeError):
        return None
    return claims if isinstance(claims, dict) else None
