"""Codex organization-to-workspace identity cache."""

from __future__ import annotations

import logging
from pathlib import Path

import msgspec

logger = logging.getLogger(__name__)


class WorkspaceCache:
    """Maps Codex organization ids to ChatGPT workspace ids.

    Loaded lazily on first access and written through on every learned
    mapping. Known mappings are never overwritten.
    """

    def __init__(self, path: Path | None = None) -> None:
        self.path = path
        self._mappings: dict[str, str] | None = None

    @classmethod
    def default(cls) -> WorkspaceCache:
        from tokenbar.config.paths import workspace_cache_file

        return cls(workspace_cache_file())

    @property
    def mappings(self) -> dict[str, str]:
        if self._mappings is None:
            self._mappings = self._load()
        return self._mappings

    def _load(self) -> dict[str, str]:
        if self.path is None:
            return {}
        try:
            data = self.path.read_bytes()
        except FileNotFoundError:
            return {}
        try:
            return msgspec.json.decode(data, type=dict[str, str])
        except msgspec.DecodeError as e:
            logger.warning("Ignoring unreadable workspace cache at %s: %s", self.path, e)
            return {}

    def _save(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_bytes(msgspec.json.encode(self.mappings))

    def get(self, org_id: str) -> str | None:
        return self.mappings.get(org_id)

    def is_workspace_known(self, workspace_id: str) -> bool:
        return workspace_id in self.mappings.values()

    def learn(
        self,
        active_workspace: str,
        org_ids: list[str],
        default_org: str | None = None,
    ) -> str | None:
        """Attribute the currently signed-in workspace to an organization.

        The workspace is only attributed when it is not mapped yet and the
        owning org can be inferred by elimination: it is the single
        unmapped org, or else the default org when that is still unmapped.

        Returns:
            The org id that was mapped, or None
        """
        if self.is_workspace_known(active_workspace):
            return None

        unmapped = [org for org in org_ids if org not in self.mappings]
        if len(unmapped) == 1:
            org_id = unmapped[0]
        elif default_org is not None and default_org in unmapped:
            org_id = default_org
        else:
            return None

        self.mappings[org_id] = active_workspace
        self._save()
        logger.info("Learned workspace %s for org %s", active_workspace, org_id)
        return org_id
