"""Persisted provider instance configuration.

Each configured instance stores type-specific fields in a generic
``provider_config`` map. Older records used a fixed set of named fields;
those are migrated into the map on decode and never written back.
"""

from __future__ import annotations

import logging
import math
from typing import Any

import msgspec

from tokenbar.config.secrets import SecretStore

logger = logging.getLogger(__name__)

ConfigValue = str | int | float | bool | None

# Fixed fields used by the previous on-disk format, in the order they were declared
LEGACY_FIELDS = (
    "keychainKey",
    "organizationId",
    "monthlyBudget",
    "codexProfile",
    "codexOrgId",
)


class ProviderInstanceConfig(msgspec.Struct, frozen=True, rename="camel"):
    """One user-visible, configured instance of a provider type.

    Equality compares every field, including ``enabled`` and each
    ``provider_config`` entry.
    """

    id: str
    type_id: str
    label: str
    enabled: bool
    is_auto_detected: bool = False
    sort_order: int | None = None
    provider_config: dict[str, ConfigValue] = {}

    @property
    def settings(self) -> ProviderSettings:
        return ProviderSettings(self.provider_config)

    def with_value(self, key: str, value: ConfigValue) -> ProviderInstanceConfig:
        """Return a copy with one provider_config entry set (None removes it)."""
        updated = dict(self.provider_config)
        if value is None:
            updated.pop(key, None)
        else:
            updated[key] = value
        return msgspec.structs.replace(self, provider_config=updated)


class _StoredInstanceConfig(msgspec.Struct, rename="camel"):
    """Decoding shape accepting both the generic and the legacy fields."""

    id: str
    type_id: str
    label: str
    enabled: bool
    is_auto_detected: bool = False
    sort_order: int | None = None
    provider_config: dict[str, ConfigValue] | None = None
    keychain_key: str | None = None
    organization_id: str | None = None
    monthly_budget: float | None = None
    codex_profile: str | None = None
    codex_org_id: str | None = None

    def legacy_values(self) -> dict[str, ConfigValue]:
        return {
            field.encode_name: getattr(self, field.name)
            for field in msgspec.structs.fields(self)
            if field.encode_name in LEGACY_FIELDS and getattr(self, field.name) is not None
        }

    def to_config(self) -> ProviderInstanceConfig:
        if self.provider_config is not None:
            provider_config = dict(self.provider_config)
        else:
            provider_config = self.legacy_values()

        return ProviderInstanceConfig(
            id=self.id,
            type_id=self.type_id,
            label=self.label,
            enabled=self.enabled,
            is_auto_detected=self.is_auto_detected,
            sort_order=self.sort_order,
            provider_config=provider_config,
        )


class ProviderSettings:
    """Typed accessors over an instance's provider_config map."""

    def __init__(self, values: dict[str, ConfigValue]) -> None:
        self.values = values

    def __contains__(self, key: str) -> bool:
        return self.values.get(key) is not None

    def string(self, key: str) -> str | None:
        value = self.values.get(key)
        return value if isinstance(value, str) else None

    def int(self, key: str) -> int | None:
        value = self.values.get(key)
        if isinstance(value, bool):
            return None
        return value if isinstance(value, int) else None

    def double(self, key: str) -> float | None:
        """Return a float, widening integers."""
        value = self.values.get(key)
        if isinstance(value, bool):
            return None
        if isinstance(value, int | float):
            return float(value)
        return None

    def bool(self, key: str) -> bool | None:
        value = self.values.get(key)
        return value if isinstance(value, bool) else None

    def secret(self, key: str, store: SecretStore) -> str | None:
        """Resolve a string value as a key into the secret store."""
        if (secret_key := self.string(key)) is None:
            return None
        return store.load(secret_key)


def parse_config_value(text: str) -> ConfigValue:
    """Parse textual input into a config value.

    Precedence is int, then float, then bool, then string. An empty
    string or ``null`` yields None.
    """
    stripped = text.strip()
    if stripped == "" or stripped.lower() == "null":
        return None

    try:
        return int(stripped)
    except ValueError:
        pass

    try:
        number = float(stripped)
    except ValueError:
        pass
    else:
        if math.isfinite(number):
            return number

    match stripped.lower():
        case "true":
            return True
        case "false":
            return False

    return text


def instance_configs_to_builtins(configs: list[ProviderInstanceConfig]) -> list[dict[str, Any]]:
    """Convert configs to JSON-compatible builtins."""
    return msgspec.to_builtins(configs)


def instance_configs_from_builtins(data: Any) -> list[ProviderInstanceConfig]:
    """Convert JSON-compatible builtins to configs, migrating legacy records.

    Rows that fail to decode are logged and skipped. Raises
    ValidationError if ``data`` is not a list.
    """
    rows = msgspec.convert(data, type=list[Any])
    configs = []
    for index, row in enumerate(rows):
        try:
            record = msgspec.convert(row, type=_StoredInstanceConfig)
        except msgspec.ValidationError as e:
            logger.warning("Skipping unreadable instance config at index %d: %s", index, e)
            continue
        configs.append(record.to_config())
    return configs


def encode_instance_configs(configs: list[ProviderInstanceConfig]) -> bytes:
    """Serialize configs to JSON. Legacy fields are never written."""
    return msgspec.json.encode(configs)


def decode_instance_configs(data: bytes) -> list[ProviderInstanceConfig]:
    """Deserialize configs from JSON, migrating legacy records."""
    return instance_configs_from_builtins(msgspec.json.decode(data))
