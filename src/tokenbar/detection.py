"""Local installation detection for provider types."""

from __future__ import annotations

import logging
import shutil
from collections.abc import Iterable
from pathlib import Path
from typing import Protocol

from tokenbar.providers.base import DetectionSpec
from tokenbar.providers.base import ProviderType

logger = logging.getLogger(__name__)

# Editor extension directories, relative to home
EXTENSION_DIRS = (
    ".vscode/extensions",
    ".cursor/extensions",
    ".windsurf/extensions",
)


class DetectionProbe(Protocol):
    """Decides whether a detection spec matches the local machine."""

    def detect(self, spec: DetectionSpec) -> bool: ...


class LocalDetectionProbe:
    """Probe the filesystem, PATH and editor extension directories."""

    def __init__(self, home: Path | None = None) -> None:
        self.home = home or Path.home()

    def expand(self, path: str) -> Path:
        if path == "~" or path.startswith("~/"):
            return self.home / path[2:]
        return Path(path)

    def path_exists(self, path: str) -> bool:
        return self.expand(path).exists()

    def command_exists(self, command: str) -> bool:
        return shutil.which(command) is not None

    def extension_installed(self, prefix: str) -> bool:
        for directory in EXTENSION_DIRS:
            extensions = self.home / directory
            if not extensions.is_dir():
                continue
            if any(entry.name.startswith(prefix) for entry in extensions.iterdir()):
                return True
        return False

    def detect(self, spec: DetectionSpec) -> bool:
        return (
            any(self.path_exists(p) for p in spec.paths)
            or any(self.command_exists(c) for c in spec.commands)
            or any(self.extension_installed(e) for e in spec.extension_patterns)
        )


def detect_all(
    probe: DetectionProbe,
    types: Iterable[ProviderType] | None = None,
) -> set[str]:
    """Return the ids of provider types found installed locally.

    Types with an empty detection spec are never reported.
    """
    if types is None:
        from tokenbar.providers import get_all_provider_types

        types = get_all_provider_types().values()

    detected = set()
    for provider_type in types:
        if provider_type.detection.is_empty():
            continue
        if probe.detect(provider_type.detection):
            detected.add(provider_type.type_id)

    logger.debug("Detected provider types: %s", sorted(detected))
    return detected
