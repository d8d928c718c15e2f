"""Secret storage backed by the system keyring.

Instance configs only ever hold a key into this store, never the secret
itself.
"""

from __future__ import annotations

import logging
from typing import Protocol

import keyring
from keyring.errors import KeyringError
from keyring.errors import PasswordDeleteError

logger = logging.getLogger(__name__)


class SecretStore(Protocol):
    """Keyed get/set/delete of secret strings."""

    def load(self, key: str) -> str | None: ...

    def save(self, key: str, value: str) -> bool: ...

    def delete(self, key: str) -> bool: ...


class KeyringSecretStore:
    """Secret store using the platform keyring."""

    def __init__(self, service: str | None = None) -> None:
        if service is None:
            from .settings import get_config

            service = get_config().credentials.keyring_service
        self.service = service

    def load(self, key: str) -> str | None:
        """Retrieve a secret.

        Returns:
            Secret value if found, None otherwise
        """
        try:
            return keyring.get_password(self.service, key)
        except KeyringError as e:
            logger.warning("Keyring lookup for %s failed: %s", key, e)
            return None

    def save(self, key: str, value: str) -> bool:
        """Store a secret.

        Returns:
            True if stored successfully, False otherwise
        """
        try:
            keyring.set_password(self.service, key, value)
        except KeyringError as e:
            logger.warning("Keyring write for %s failed: %s", key, e)
            return False
        return True

    def delete(self, key: str) -> bool:
        """Delete a secret.

        Returns:
            True if deleted, False if missing or the backend refused
        """
        try:
            keyring.delete_password(self.service, key)
        except PasswordDeleteError:
            return False
        except KeyringError as e:
            logger.warning("Keyring delete for %s failed: %s", key, e)
            return False
        return True


class MemorySecretStore:
    """In-process secret store."""

    def __init__(self, secrets: dict[str, str] | None = None) -> None:
        self.secrets: dict[str, str] = dict(secrets or {})

    def load(self, key: str) -> str | None:
        return self.secrets.get(key)

    def save(self, key: str, value: str) -> bool:
        self.secrets[key] = value
        return True

    def delete(self, key: str) -> bool:
        return self.secrets.pop(key, None) is not None
