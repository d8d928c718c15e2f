"""Configuration management for tokenbar."""

from tokenbar.config.cache import WorkspaceCache
from tokenbar.config.credentials import read_credential
from tokenbar.config.credentials import write_credential
from tokenbar.config.instances import ConfigValue
from tokenbar.config.instances import ProviderInstanceConfig
from tokenbar.config.instances import ProviderSettings
from tokenbar.config.instances import decode_instance_configs
from tokenbar.config.instances import encode_instance_configs
from tokenbar.config.instances import parse_config_value
from tokenbar.config.paths import cache_dir
from tokenbar.config.paths import config_dir
from tokenbar.config.paths import config_file
from tokenbar.config.secrets import KeyringSecretStore
from tokenbar.config.secrets import MemorySecretStore
from tokenbar.config.secrets import SecretStore
from tokenbar.config.settings import Config
from tokenbar.config.settings import get_config
from tokenbar.config.settings import load_config
from tokenbar.config.settings import reload_config
from tokenbar.config.store import JsonFileStore
from tokenbar.config.store import KeyValueStore
from tokenbar.config.store import MemoryStore

__all__ = [
    "Config",
    "ConfigValue",
    "JsonFileStore",
    "KeyValueStore",
    "KeyringSecretStore",
    "MemorySecretStore",
    "MemoryStore",
    "ProviderInstanceConfig",
    "ProviderSettings",
    "SecretStore",
    "WorkspaceCache",
    "cache_dir",
    "config_dir",
    "config_file",
    "decode_instance_configs",
    "encode_instance_configs",
    "get_config",
    "load_config",
    "parse_config_value",
    "read_credential",
    "reload_config",
    "write_credential",
]
