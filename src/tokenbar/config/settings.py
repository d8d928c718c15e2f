"""Configuration structures and loading for tokenbar."""

from __future__ import annotations

import os
import tomllib
from pathlib import Path

import msgspec
import tomli_w

# Default values
DEFAULT_TIMEOUT = 15.0
DEFAULT_APP_SERVER_TIMEOUT = 10.0
DEFAULT_POLL_INTERVAL = 300
DEFAULT_KEYRING_SERVICE = "tokenbar"


class FetchConfig(msgspec.Struct, omit_defaults=True):
    """Fetch behavior settings."""

    timeout: float = DEFAULT_TIMEOUT
    app_server_timeout: float = DEFAULT_APP_SERVER_TIMEOUT


class PollConfig(msgspec.Struct, omit_defaults=True):
    """Poll loop settings."""

    default_interval: int = DEFAULT_POLL_INTERVAL


class CredentialsConfig(msgspec.Struct, omit_defaults=True):
    """Secret store settings."""

    keyring_service: str = DEFAULT_KEYRING_SERVICE


class Config(msgspec.Struct, omit_defaults=True):
    """Main configuration structure."""

    fetch: FetchConfig = msgspec.field(default_factory=FetchConfig)
    poll: PollConfig = msgspec.field(default_factory=PollConfig)
    credentials: CredentialsConfig = msgspec.field(default_factory=CredentialsConfig)


def _load_from_toml(path: Path) -> dict:
    """Load configuration from TOML file."""
    if not path.exists():
        return {}

    with path.open("rb") as f:
        return tomllib.load(f)


def _save_to_toml(data: dict, path: Path) -> None:
    """Save configuration to TOML file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("wb") as f:
        tomli_w.dump(data, f)


def convert_config(data: dict) -> Config:
    """Convert raw dict to Config struct."""
    return msgspec.convert(data, type=Config)


def _apply_env_overrides(config: Config) -> Config:
    """Apply environment variable overrides to config.

    TOKENBAR_FETCH_TIMEOUT: Per-strategy fetch timeout in seconds
    TOKENBAR_KEYRING_SERVICE: Keyring service name for stored secrets
    """
    if timeout := os.environ.get("TOKENBAR_FETCH_TIMEOUT"):
        try:
            fetch = msgspec.structs.replace(config.fetch, timeout=float(timeout))
        except ValueError:
            pass
        else:
            config = msgspec.structs.replace(config, fetch=fetch)

    if service := os.environ.get("TOKENBAR_KEYRING_SERVICE"):
        credentials = msgspec.structs.replace(
            config.credentials, keyring_service=service
        )
        config = msgspec.structs.replace(config, credentials=credentials)

    return config


# Config state storage
_config: Config | None = None


def get_config() -> Config:
    """Get the current configuration (singleton)."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> Config:
    """Reload configuration from disk."""
    global _config
    _config = load_config()
    return _config


def load_config(path: Path | None = None) -> Config:
    """Load configuration from file with defaults."""
    from .paths import config_file

    config_path = path or config_file()

    raw_data = _load_from_toml(config_path)
    config = convert_config(raw_data) if raw_data else Config()

    return _apply_env_overrides(config)


def save_config(config: Config, path: Path | None = None) -> None:
    """Save configuration to file."""
    from .paths import config_file

    config_path = path or config_file()
    _save_to_toml(msgspec.to_builtins(config), config_path)

    global _config
    _config = config
