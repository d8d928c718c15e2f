"""Tests for persisted instance configuration."""

from __future__ import annotations

import msgspec
import pytest

from tokenbar.config.instances import ProviderInstanceConfig
from tokenbar.config.instances import ProviderSettings
from tokenbar.config.instances import decode_instance_configs
from tokenbar.config.instances import encode_instance_configs
from tokenbar.config.instances import instance_configs_from_builtins
from tokenbar.config.instances import instance_configs_to_builtins
from tokenbar.config.instances import parse_config_value
from tokenbar.config.secrets import MemorySecretStore


@pytest.fixture
def openai_config() -> ProviderInstanceConfig:
    return ProviderInstanceConfig(
        id="openai-work",
        type_id="openai",
        label="OpenAI Work",
        enabled=True,
        provider_config={"keychainKey": "openai_work", "monthlyBudget": 50.0},
    )


class TestEquality:
    """Config equality compares every field."""

    def test_identical_configs_equal(self, openai_config):
        copy = msgspec.structs.replace(openai_config)
        assert copy == openai_config

    def test_differs_in_enabled(self, openai_config):
        assert msgspec.structs.replace(openai_config, enabled=False) != openai_config

    def test_differs_in_label(self, openai_config):
        assert msgspec.structs.replace(openai_config, label="Other") != openai_config

    def test_differs_in_one_config_entry(self, openai_config):
        assert openai_config.with_value("monthlyBudget", 75.0) != openai_config


class TestWithValue:
    """Tests for ProviderInstanceConfig.with_value."""

    def test_sets_value(self, openai_config):
        updated = openai_config.with_value("organizationId", "org-1")
        assert updated.provider_config["organizationId"] == "org-1"
        assert "organizationId" not in openai_config.provider_config

    def test_none_removes(self, openai_config):
        updated = openai_config.with_value("monthlyBudget", None)
        assert "monthlyBudget" not in updated.provider_config


class TestSerialization:
    """Tests for the persisted format."""

    def test_camel_case_keys(self, openai_config):
        data = instance_configs_to_builtins([openai_config])
        assert data[0]["typeId"] == "openai"
        assert data[0]["providerConfig"] == {"keychainKey": "openai_work", "monthlyBudget": 50.0}
        assert data[0]["isAutoDetected"] is False

    def test_generic_round_trip(self, openai_config):
        assert decode_instance_configs(encode_instance_configs([openai_config])) == [openai_config]

    def test_legacy_fields_migrate(self):
        """Fixed named fields decode into the same map as the generic format."""
        legacy = [
            {
                "id": "openai",
                "typeId": "openai",
                "label": "OpenAI API",
                "enabled": True,
                "keychainKey": "openai_api_key",
                "organizationId": "org-abc",
                "monthlyBudget": 100.0,
            }
        ]
        generic = [
            {
                "id": "openai",
                "typeId": "openai",
                "label": "OpenAI API",
                "enabled": True,
                "providerConfig": {
                    "keychainKey": "openai_api_key",
                    "organizationId": "org-abc",
                    "monthlyBudget": 100.0,
                },
            }
        ]
        assert instance_configs_from_builtins(legacy) == instance_configs_from_builtins(generic)

    def test_legacy_codex_fields(self):
        legacy = b'[{"id":"codex-work","typeId":"codex","label":"Codex Work","enabled":false,"codexProfile":"work","codexOrgId":"org-1"}]'
        [config] = decode_instance_configs(legacy)
        assert config.provider_config == {"codexProfile": "work", "codexOrgId": "org-1"}

    def test_generic_field_takes_precedence(self):
        """Legacy fields are ignored once providerConfig is present."""
        data = [
            {
                "id": "openai",
                "typeId": "openai",
                "label": "OpenAI API",
                "enabled": True,
                "keychainKey": "old_key",
                "providerConfig": {"keychainKey": "new_key"},
            }
        ]
        [config] = instance_configs_from_builtins(data)
        assert config.provider_config == {"keychainKey": "new_key"}

    def test_legacy_fields_never_written(self):
        [config] = instance_configs_from_builtins(
            [{"id": "x", "typeId": "openai", "label": "X", "enabled": True, "keychainKey": "k"}]
        )
        [record] = msgspec.json.decode(encode_instance_configs([config]))
        assert record["providerConfig"] == {"keychainKey": "k"}
        assert "keychainKey" not in record

    def test_unreadable_rows_skipped(self, openai_config):
        data = instance_configs_to_builtins([openai_config]) + [
            {"id": "x"},
            {"id": "cursor", "typeId": "cursor", "label": "Cursor", "enabled": "yes"},
            "garbage",
        ]
        assert instance_configs_from_builtins(data) == [openai_config]

    def test_not_a_list_raises(self):
        with pytest.raises(msgspec.ValidationError):
            instance_configs_from_builtins({"id": "x"})


class TestProviderSettings:
    """Tests for typed accessors."""

    @pytest.fixture
    def settings(self) -> ProviderSettings:
        return ProviderSettings(
            {"name": "work", "count": 3, "budget": 12.5, "flag": True, "missing": None}
        )

    def test_string(self, settings):
        assert settings.string("name") == "work"
        assert settings.string("count") is None

    def test_int(self, settings):
        assert settings.int("count") == 3
        assert settings.int("flag") is None
        assert settings.int("budget") is None

    def test_double_widens_int(self, settings):
        assert settings.double("budget") == 12.5
        assert settings.double("count") == 3.0
        assert settings.double("flag") is None

    def test_bool(self, settings):
        assert settings.bool("flag") is True
        assert settings.bool("count") is None

    def test_contains_ignores_null(self, settings):
        assert "name" in settings
        assert "missing" not in settings
        assert "absent" not in settings

    def test_secret_indirection(self):
        store = MemorySecretStore({"openai_work": "sk-secret"})
        settings = ProviderSettings({"keychainKey": "openai_work"})
        assert settings.secret("keychainKey", store) == "sk-secret"
        assert settings.secret("other", store) is None


class TestParseConfigValue:
    """Textual input parses int, then float, then bool, then string."""

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("42", 42),
            ("-7", -7),
            ("12.5", 12.5),
            ("true", True),
            ("False", False),
            ("org-abc", "org-abc"),
            ("", None),
            ("null", None),
            ("nan", "nan"),
        ],
    )
    def test_precedence(self, text, expected):
        result = parse_config_value(text)
        assert result == expected
        assert type(result) is type(expected)
