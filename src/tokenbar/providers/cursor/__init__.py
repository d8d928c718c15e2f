"""Cursor provider for tokenbar."""

from __future__ import annotations

from pathlib import Path

from tokenbar.config.instances import ProviderSettings
from tokenbar.providers.base import ConfigField
from tokenbar.providers.base import DetectionSpec
from tokenbar.providers.base import ProviderServices
from tokenbar.providers.base import ProviderType
from tokenbar.providers.base import UsageProvider
from tokenbar.providers.cursor.web import CursorWebStrategy

# State database locations, relative to the home directory
DATABASE_PATHS = (
    "Library/Application Support/Cursor/User/globalStorage/state.vscdb",
    ".config/Cursor/User/globalStorage/state.vscdb",
)


class CursorProvider(UsageProvider):
    """Provider for Cursor IDE usage."""

    icon = "cursorarrow.rays"
    dashboard_url = "https://www.cursor.com/settings"

    def __init__(
        self,
        instance_id: str = "cursor",
        name: str = "Cursor",
        home: Path | None = None,
        db_path: Path | None = None,
    ) -> None:
        super().__init__(instance_id, name)
        home = home or Path.home()
        self.db_paths = [db_path] if db_path else [home / p for p in DATABASE_PATHS]

    def fetch_strategies(self):
        """Return ordered list of fetch strategies for Cursor.

        Priority order:
        1. Web - session token from Cursor's local state database
        """
        return [CursorWebStrategy(self.id, self.db_paths)]


def create(
    instance_id: str,
    label: str,
    settings: ProviderSettings,
    services: ProviderServices,
) -> CursorProvider:
    db_path = settings.string("databasePath")
    return CursorProvider(
        instance_id,
        label,
        home=services.home,
        db_path=Path(db_path).expanduser() if db_path else None,
    )


CURSOR = ProviderType(
    type_id="cursor",
    default_name="Cursor",
    factory=create,
    icon=CursorProvider.icon,
    dashboard_url=CursorProvider.dashboard_url,
    data_source="Cursor local database",
    detection=DetectionSpec(
        paths=("/Applications/Cursor.app", "~/.cursor"),
        commands=("cursor",),
    ),
    config_fields=(
        ConfigField(
            id="databasePath",
            label="Database Path",
            placeholder="~/Library/Application Support/Cursor/User/globalStorage/state.vscdb",
            help_text="Override the location of Cursor's state.vscdb",
        ),
    ),
)
