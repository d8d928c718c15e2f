"""Platform-specific paths for tokenbar configuration and cache."""

from __future__ import annotations

import os
from pathlib import Path

from platformdirs import user_cache_dir
from platformdirs import user_config_dir
from platformdirs import user_state_path

PACKAGE_NAME = "tokenbar"


def _get_env_path(env_var: str, fallback: Path) -> Path:
    """Get path from environment variable or fallback."""
    if env_value := os.environ.get(env_var):
        return Path(env_value)
    return fallback


def config_dir() -> Path:
    """Get user config directory.

    Respects TOKENBAR_CONFIG_DIR environment variable.
    """
    base_dir = Path(user_config_dir(PACKAGE_NAME))
    return _get_env_path("TOKENBAR_CONFIG_DIR", base_dir)


def cache_dir() -> Path:
    """Get user cache directory.

    Respects TOKENBAR_CACHE_DIR environment variable.
    """
    base_dir = Path(user_cache_dir(PACKAGE_NAME))
    return _get_env_path("TOKENBAR_CACHE_DIR", base_dir)


def state_dir() -> Path:
    """Get user state directory for runtime data."""
    return Path(user_state_path(PACKAGE_NAME))


def config_file() -> Path:
    """Get main config.toml path."""
    return config_dir() / "config.toml"


def preferences_file() -> Path:
    """Get the persisted instance list and preferences."""
    return config_dir() / "preferences.json"


def workspace_cache_file() -> Path:
    """Get the Codex organization-to-workspace cache."""
    return cache_dir() / "codex-workspaces.json"


def ensure_directories() -> None:
    """Ensure all required directories exist."""
    for directory in (config_dir(), cache_dir(), state_dir()):
        directory.mkdir(parents=True, exist_ok=True)
