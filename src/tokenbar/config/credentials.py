"""Credential file helpers shared by adapters that read vendor CLI tokens."""

from __future__ import annotations

import stat
from pathlib import Path


def write_credential(path: Path, content: bytes) -> None:
    """Securely write credential to file with 0o600 permissions."""
    path.parent.mkdir(parents=True, exist_ok=True)

    # Write to temp file first, then rename for atomicity
    temp_path = path.with_suffix(path.suffix + ".tmp")
    temp_path.write_bytes(content)

    temp_path.chmod(stat.S_IRUSR | stat.S_IWUSR)  # 0o600

    temp_path.replace(path)


def read_credential(path: Path) -> bytes | None:
    """Read a credential file if it exists."""
    try:
        return path.read_bytes()
    except FileNotFoundError:
        return None


def check_credential_permissions(path: Path) -> bool:
    """Verify credential file has secure permissions (0o600 or stricter)."""
    if not path.exists():
        return True  # No file is secure

    mode = path.stat().st_mode
    return not (mode & (stat.S_IRGRP | stat.S_IWGRP | stat.S_IROTH | stat.S_IWOTH))
