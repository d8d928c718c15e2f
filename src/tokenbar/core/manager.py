"""Provider instance orchestration: configuration, polling and derived state.

All state lives on the event loop the manager runs on. Adapters run
concurrently, but their results are applied back here one at a time, so
callbacks always observe a consistent view.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

import msgspec

from tokenbar.config.instances import ProviderInstanceConfig
from tokenbar.config.instances import instance_configs_from_builtins
from tokenbar.config.instances import instance_configs_to_builtins
from tokenbar.config.settings import get_config
from tokenbar.config.store import CONFIGS_KEY
from tokenbar.config.store import POLL_INTERVAL_KEY
from tokenbar.config.store import SHOW_ICON_KEY
from tokenbar.config.store import SHOW_NAME_KEY
from tokenbar.config.store import SORT_ASCENDING_KEY
from tokenbar.config.store import SORT_MODE_KEY
from tokenbar.config.store import KeyValueStore
from tokenbar.core import availability
from tokenbar.core.availability import ExhaustionTracker
from tokenbar.core.availability import sort_configs
from tokenbar.detection import DetectionProbe
from tokenbar.detection import LocalDetectionProbe
from tokenbar.detection import detect_all
from tokenbar.errors.classify import classify_exception
from tokenbar.errors.types import ErrorKind
from tokenbar.errors.types import ProviderError
from tokenbar.models import SortMode
from tokenbar.models import UsageSnapshot
from tokenbar.providers import create_provider
from tokenbar.providers import get_all_provider_types
from tokenbar.providers import get_provider_type
from tokenbar.providers.base import ProviderServices
from tokenbar.providers.base import ProviderType
from tokenbar.providers.base import UsageProvider
from tokenbar.providers.codex import discover_organizations
from tokenbar.strategies.base import FetchResult

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[ProviderInstanceConfig], UsageProvider | None]
VisibilityCallback = Callable[[str, bool], None]
StatusItemCallback = Callable[[str, UsageSnapshot | None], None]


class ProviderManager:
    """Owns configured instances, their adapters and their last results.

    Callbacks (all optional, set as attributes):
        on_visibility_change(instance_id, visible): an instance became
            enabled or disabled; fired exactly once per transition
        on_status_change(): any displayed state changed
        on_status_item_update(instance_id, snapshot): a fetch for one
            instance started or finished; snapshot is None on failure
        on_tokens_restored(instance_id): an exhausted instance has usage
            available again
    """

    def __init__(
        self,
        store: KeyValueStore,
        services: ProviderServices | None = None,
        probe: DetectionProbe | None = None,
        provider_factory: ProviderFactory | None = None,
    ) -> None:
        self.store = store
        self.services = services or ProviderServices.default()
        self.probe = probe or LocalDetectionProbe(self.services.home)
        self.provider_factory = provider_factory

        self.instance_configs: list[ProviderInstanceConfig] = []
        self.providers: dict[str, UsageProvider] = {}
        self.snapshots: dict[str, UsageSnapshot] = {}
        self.errors: dict[str, str] = {}
        self.error_kinds: dict[str, ErrorKind] = {}
        self.loading_ids: set[str] = set()
        self.detected_type_ids: set[str] = set()
        self.tracker = ExhaustionTracker()

        self.on_visibility_change: VisibilityCallback | None = None
        self.on_status_change: Callable[[], None] | None = None
        self.on_status_item_update: StatusItemCallback | None = None
        self.on_tokens_restored: Callable[[str], None] | None = None

        self._poll_task: asyncio.Task | None = None
        self._inflight: dict[str, asyncio.Task] = {}

        self._load_preferences()
        self._load_configs()

    # Preferences

    def _load_preferences(self) -> None:
        interval = self.store.get(POLL_INTERVAL_KEY)
        if isinstance(interval, int | float) and not isinstance(interval, bool) and interval > 0:
            self.poll_interval = float(interval)
        else:
            self.poll_interval = float(get_config().poll.default_interval)

        try:
            self.sort_mode = SortMode(self.store.get(SORT_MODE_KEY, SortMode.MANUAL))
        except ValueError:
            self.sort_mode = SortMode.MANUAL

        self.sort_ascending = self._load_flag(SORT_ASCENDING_KEY)
        self.show_icon = self._load_flag(SHOW_ICON_KEY)
        self.show_name = self._load_flag(SHOW_NAME_KEY)

    def _load_flag(self, key: str) -> bool:
        value = self.store.get(key)
        return value if isinstance(value, bool) else True

    def set_sort_mode(self, mode: SortMode, ascending: bool | None = None) -> None:
        self.sort_mode = mode
        if ascending is not None:
            self.sort_ascending = ascending
        self.store.set(SORT_MODE_KEY, str(self.sort_mode))
        self.store.set(SORT_ASCENDING_KEY, self.sort_ascending)
        self._notify_status()

    def set_menu_bar_options(
        self,
        show_icon: bool | None = None,
        show_name: bool | None = None,
    ) -> None:
        if show_icon is not None:
            self.show_icon = show_icon
        if show_name is not None:
            self.show_name = show_name
        self.store.set(SHOW_ICON_KEY, self.show_icon)
        self.store.set(SHOW_NAME_KEY, self.show_name)
        self._notify_status()

    # Config persistence

    def _load_configs(self) -> None:
        data = self.store.get(CONFIGS_KEY)
        if data is None:
            return
        try:
            self.instance_configs = instance_configs_from_builtins(data)
        except msgspec.ValidationError as e:
            logger.warning("Ignoring unreadable instance configs: %s", e)
            return
        self._sort_stored()

    def _sort_stored(self) -> None:
        # Manual mode keeps the user's order
        if self.sort_mode == SortMode.MANUAL:
            return
        self.instance_configs.sort(key=lambda c: (not self._is_trackable(c), c.label))

    def save_configs(self) -> None:
        self.store.set(CONFIGS_KEY, instance_configs_to_builtins(self.instance_configs))

    def config_for(self, instance_id: str) -> ProviderInstanceConfig | None:
        index = self._index_of(instance_id)
        return None if index is None else self.instance_configs[index]

    def _index_of(self, instance_id: str) -> int | None:
        for index, config in enumerate(self.instance_configs):
            if config.id == instance_id:
                return index
        return None

    def _is_trackable(self, config: ProviderInstanceConfig) -> bool:
        provider_type = get_provider_type(config.type_id)
        return provider_type is not None and provider_type.is_trackable

    def _make_provider(self, config: ProviderInstanceConfig) -> UsageProvider | None:
        if self.provider_factory is not None:
            return self.provider_factory(config)
        return create_provider(config, self.services)

    # Startup

    async def startup(self) -> None:
        """Detect installed tools, merge them into the config and start polling."""
        detected = await asyncio.to_thread(detect_all, self.probe)
        self.detected_type_ids = detected
        self.merge_auto_detected(detected)
        self.instantiate_providers()
        self.start_polling()

    def merge_auto_detected(self, detected: set[str]) -> None:
        """Add rows for newly detected types and refresh auto-detected flags."""
        first_run = not self.store.contains(CONFIGS_KEY)
        existing_types = {c.type_id for c in self.instance_configs}

        for provider_type in get_all_provider_types().values():
            type_id = provider_type.type_id
            if type_id not in detected:
                continue

            if type_id in existing_types:
                if not provider_type.supports_multiple_instances:
                    index = next(
                        i for i, c in enumerate(self.instance_configs) if c.type_id == type_id
                    )
                    self.instance_configs[index] = msgspec.structs.replace(
                        self.instance_configs[index], is_auto_detected=True
                    )
                continue

            enabled = first_run and provider_type.is_trackable
            self.instance_configs.extend(self._detected_rows(provider_type, enabled))

        self.instance_configs = [
            msgspec.structs.replace(c, is_auto_detected=False)
            if c.is_auto_detected and c.type_id not in detected
            else c
            for c in self.instance_configs
        ]

        self._sort_stored()
        self.save_configs()

    def _detected_rows(
        self,
        provider_type: ProviderType,
        enabled: bool,
    ) -> list[ProviderInstanceConfig]:
        if provider_type.type_id == "codex":
            organizations = discover_organizations(self.codex_dir)
            if len(organizations) > 1:
                logger.info(
                    "Codex: discovered %d organizations, creating per-org instances",
                    len(organizations),
                )
                return [
                    ProviderInstanceConfig(
                        id=f"codex-{org.slug}",
                        type_id="codex",
                        label=f"Codex {org.title}",
                        enabled=enabled,
                        is_auto_detected=True,
                        provider_config={"codexOrgId": org.id},
                    )
                    for org in organizations
                ]

        provider_config = {}
        if provider_type.type_id == "openai":
            provider_config["keychainKey"] = "openai_api_key"

        return [
            ProviderInstanceConfig(
                id=provider_type.type_id,
                type_id=provider_type.type_id,
                label=provider_type.default_name,
                enabled=enabled,
                is_auto_detected=True,
                provider_config=provider_config,
            )
        ]

    @property
    def codex_dir(self) -> Path:
        return self.services.home / ".codex"

    def instantiate_providers(self) -> None:
        """Create an adapter for every row, enabled or not."""
        logger.info("Instantiating providers for %d configs", len(self.instance_configs))
        for config in self.instance_configs:
            provider = self._make_provider(config)
            if provider is None:
                logger.info("Skipping %s: no provider for type %s", config.id, config.type_id)
                continue
            self.providers[config.id] = provider
            logger.debug("Created provider for %s, enabled=%s", config.id, config.enabled)
        self._notify_status()

    # Instance management

    def add_instance(self, config: ProviderInstanceConfig) -> None:
        """Add a configured instance.

        Raises:
            ValueError: If the id is taken, the type is unknown, or the type
                allows a single instance and one already exists
        """
        if self._index_of(config.id) is not None:
            raise ValueError(f"Instance already exists: {config.id}")

        provider_type = get_provider_type(config.type_id)
        if provider_type is None:
            raise ValueError(f"Unknown provider type: {config.type_id}")
        if not provider_type.supports_multiple_instances and any(
            c.type_id == config.type_id for c in self.instance_configs
        ):
            raise ValueError(f"{provider_type.default_name} supports only one instance")

        logger.info("Adding instance %s (enabled=%s)", config.id, config.enabled)
        self.instance_configs.append(config)
        self._sort_stored()
        self.save_configs()

        if (provider := self._make_provider(config)) is not None:
            self.providers[config.id] = provider
        if config.enabled:
            self._emit_visibility(config.id, True)
            self.refresh_provider(config.id)
        self._notify_status()

    def update_instance(self, config: ProviderInstanceConfig) -> bool:
        """Replace a row by id and rebuild its adapter.

        Returns:
            False if no instance has this id
        """
        index = self._index_of(config.id)
        if index is None:
            logger.warning("update_instance: %s not found", config.id)
            return False

        old = self.instance_configs[index]
        self.instance_configs[index] = config
        self.save_configs()

        self.providers.pop(config.id, None)
        if (provider := self._make_provider(config)) is not None:
            self.providers[config.id] = provider

        self._visibility_transition(config.id, old.enabled, config.enabled)
        return True

    def toggle_provider(self, instance_id: str, enabled: bool | None = None) -> bool | None:
        """Enable or disable an instance; flips it when ``enabled`` is None.

        Returns:
            The new enabled state, or None if no instance has this id
        """
        index = self._index_of(instance_id)
        if index is None:
            logger.warning("toggle_provider: %s not found", instance_id)
            return None

        old = self.instance_configs[index]
        new_enabled = not old.enabled if enabled is None else enabled
        if new_enabled == old.enabled:
            return new_enabled

        self.instance_configs[index] = msgspec.structs.replace(old, enabled=new_enabled)
        self.save_configs()
        self._visibility_transition(instance_id, old.enabled, new_enabled)
        return new_enabled

    def remove_instance(self, instance_id: str) -> bool:
        """Remove an instance and everything held for it.

        A visibility-false event fires even for unknown ids.

        Returns:
            False if no instance had this id
        """
        self._emit_visibility(instance_id, False)

        index = self._index_of(instance_id)
        if index is None:
            return False

        config = self.instance_configs.pop(index)
        logger.info("Removing instance %s", instance_id)
        self.providers.pop(instance_id, None)
        self.snapshots.pop(instance_id, None)
        self.errors.pop(instance_id, None)
        self.error_kinds.pop(instance_id, None)
        self.loading_ids.discard(instance_id)
        self.tracker.discard(instance_id)
        if (task := self._inflight.pop(instance_id, None)) is not None:
            task.cancel()

        self._delete_secrets(config)
        self.save_configs()
        self._notify_status()
        return True

    def _delete_secrets(self, config: ProviderInstanceConfig) -> None:
        provider_type = get_provider_type(config.type_id)
        if provider_type is None:
            return

        for field in provider_type.secret_fields():
            key = config.settings.string(field.id)
            if not key:
                continue
            # Another instance may still point at the same entry
            if any(c.settings.string(field.id) == key for c in self.instance_configs):
                logger.debug("Keeping secret %s, still referenced", key)
                continue
            self.services.secrets.delete(key)

    def move_instance(self, instance_id: str, index: int) -> bool:
        """Move a row to a new position and renumber sort orders."""
        current = self._index_of(instance_id)
        if current is None:
            return False

        config = self.instance_configs.pop(current)
        index = max(0, min(index, len(self.instance_configs)))
        self.instance_configs.insert(index, config)
        self.instance_configs = [
            msgspec.structs.replace(c, sort_order=position)
            for position, c in enumerate(self.instance_configs)
        ]
        self.save_configs()
        self._notify_status()
        return True

    def _visibility_transition(self, instance_id: str, was: bool, now: bool) -> None:
        if now and not was:
            self._emit_visibility(instance_id, True)
            self.refresh_provider(instance_id)
        elif was and not now:
            self._emit_visibility(instance_id, False)
        self._notify_status()

    # Derived views

    def sorted_enabled_configs(self) -> list[ProviderInstanceConfig]:
        enabled = [c for c in self.instance_configs if c.enabled]
        return sort_configs(enabled, self.snapshots, self.sort_mode, self.sort_ascending)

    def availability_now(self, instance_id: str) -> float:
        return availability.availability_now(self.snapshots.get(instance_id))

    def availability_long_term(self, instance_id: str) -> float:
        return availability.availability_long_term(self.snapshots.get(instance_id))

    def earliest_reset(self, instance_id: str) -> datetime | None:
        return availability.earliest_reset(self.snapshots.get(instance_id))

    def addable_types(self) -> list[ProviderType]:
        """Types that can still get a new instance."""
        existing = {c.type_id for c in self.instance_configs}
        return [
            t
            for t in get_all_provider_types().values()
            if t.supports_multiple_instances or t.type_id not in existing
        ]

    # Fetching

    async def poll_all(self) -> None:
        """Fetch every enabled instance concurrently and apply the results."""
        targets = []
        for config in self.instance_configs:
            if not config.enabled:
                continue
            provider = self.providers.get(config.id)
            if provider is None:
                continue
            if self._is_trackable(config):
                self.loading_ids.add(config.id)
            targets.append((config.id, provider))
        self._notify_status()

        logger.debug("Polling %d providers", len(targets))
        await asyncio.gather(
            *(self._fetch_task(i, p) for i, p in targets), return_exceptions=True
        )

    def refresh_provider(self, instance_id: str) -> asyncio.Task | None:
        """Fetch one instance out of cycle.

        Without a running event loop the refresh is left to the next poll.
        A refresh while a fetch for the same instance is in flight joins it.
        """
        provider = self.providers.get(instance_id)
        if provider is None:
            return None
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop, %s refreshes on next poll", instance_id)
            return None

        self.loading_ids.add(instance_id)
        self._emit_status_item(instance_id, self.snapshots.get(instance_id))
        self._notify_status()
        return self._fetch_task(instance_id, provider)

    def _fetch_task(self, instance_id: str, provider: UsageProvider) -> asyncio.Task:
        task = self._inflight.get(instance_id)
        if task is not None and not task.done():
            return task

        task = asyncio.get_running_loop().create_task(self._fetch_instance(instance_id, provider))
        self._inflight[instance_id] = task
        task.add_done_callback(lambda t: self._forget(instance_id, t))
        return task

    def _forget(self, instance_id: str, task: asyncio.Task) -> None:
        if self._inflight.get(instance_id) is task:
            del self._inflight[instance_id]

    async def _fetch_instance(self, instance_id: str, provider: UsageProvider) -> FetchResult:
        try:
            result = await provider.fetch_usage()
        except Exception as e:
            logger.exception("Provider %s raised during fetch", instance_id)
            result = FetchResult.fail(classify_exception(e))
        self._apply_result(instance_id, result)
        return result

    def _apply_result(self, instance_id: str, result: FetchResult) -> None:
        self.loading_ids.discard(instance_id)
        if self._index_of(instance_id) is None:
            # Removed while the fetch was running
            return

        if result.success and result.snapshot is not None:
            restored = self.tracker.update(instance_id, result.snapshot)
            self.snapshots[instance_id] = result.snapshot
            self.errors.pop(instance_id, None)
            self.error_kinds.pop(instance_id, None)
            self._emit_status_item(instance_id, result.snapshot)
            self._notify_status()
            if restored:
                logger.info("Tokens restored for %s", instance_id)
                if self.on_tokens_restored is not None:
                    self.on_tokens_restored(instance_id)
            return

        # Previous snapshot stays visible alongside the error
        error = result.error or ProviderError.not_available()
        logger.info("Fetch failed for %s: %s", instance_id, error.message)
        self.errors[instance_id] = error.message
        self.error_kinds[instance_id] = error.kind
        self._emit_status_item(instance_id, None)
        self._notify_status()

    async def drain(self) -> None:
        """Wait for every in-flight fetch to finish."""
        while self._inflight:
            await asyncio.gather(*self._inflight.values(), return_exceptions=True)

    # Polling

    @property
    def is_polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    def start_polling(self) -> None:
        """Start the periodic poll loop on the running event loop."""
        self.stop_polling()
        self._poll_task = asyncio.get_running_loop().create_task(self._poll_loop())
        logger.info("Polling every %gs", self.poll_interval)

    def stop_polling(self) -> None:
        if self._poll_task is not None:
            self._poll_task.cancel()
            self._poll_task = None

    def set_poll_interval(self, seconds: float) -> None:
        """Persist a new interval and restart the poll loop if it is running.

        Raises:
            ValueError: If seconds is not positive
        """
        if seconds <= 0:
            raise ValueError("Poll interval must be positive")
        self.poll_interval = float(seconds)
        self.store.set(POLL_INTERVAL_KEY, self.poll_interval)
        if self.is_polling:
            self.start_polling()

    async def _poll_loop(self) -> None:
        while True:
            await self.poll_all()
            await asyncio.sleep(self.poll_interval)

    # Notifications

    def _emit_visibility(self, instance_id: str, visible: bool) -> None:
        logger.debug("Visibility of %s -> %s", instance_id, visible)
        if self.on_visibility_change is not None:
            self.on_visibility_change(instance_id, visible)

    def _emit_status_item(self, instance_id: str, snapshot: UsageSnapshot | None) -> None:
        if self.on_status_item_update is not None:
            self.on_status_item_update(instance_id, snapshot)

    def _notify_status(self) -> None:
        if self.on_status_change is not None:
            self.on_status_change()

