"""Availability ranking and exhaustion tracking over usage snapshots.

Everything here is a pure function of configs and snapshots, so the
orchestrator and the CLI can share the same ordering rules.
"""

from __future__ import annotations

from collections.abc import Callable
from collections.abc import Mapping
from datetime import datetime

from tokenbar.config.instances import ProviderInstanceConfig
from tokenbar.models import SortMode
from tokenbar.models import UsageSnapshot

# No snapshot, or no primary quota to rank by
NO_DATA = -2.0
# At least one primary quota is used up
EXHAUSTED = -1.0


def availability_now(snapshot: UsageSnapshot | None) -> float:
    """Return percent remaining of the most constrained primary quota."""
    if snapshot is None:
        return NO_DATA
    primary = snapshot.primary_quotas()
    if not primary:
        return NO_DATA
    if snapshot.is_exhausted():
        return EXHAUSTED
    return max(primary, key=lambda q: q.percent_used).percent_remaining()


def availability_long_term(snapshot: UsageSnapshot | None) -> float:
    """Return percent remaining of the primary quota with the furthest reset.

    Falls back to the least-used primary quota when none carries a reset date.
    """
    if snapshot is None:
        return NO_DATA
    primary = snapshot.primary_quotas()
    if not primary:
        return NO_DATA

    with_reset = [q for q in primary if q.resets_at is not None]
    if with_reset:
        return max(with_reset, key=lambda q: q.resets_at).percent_remaining()
    return min(primary, key=lambda q: q.percent_used).percent_remaining()


def earliest_reset(snapshot: UsageSnapshot | None) -> datetime | None:
    """Return the soonest reset time across all quotas."""
    if snapshot is None:
        return None
    resets = [q.resets_at for q in snapshot.quotas if q.resets_at is not None]
    return min(resets) if resets else None


def _rank(
    configs: list[ProviderInstanceConfig],
    key: Callable[[ProviderInstanceConfig], object | None],
    reverse: bool,
) -> list[ProviderInstanceConfig]:
    # Python's sort is stable in both directions, so ties keep stored order
    present = [c for c in configs if key(c) is not None]
    missing = [c for c in configs if key(c) is None]
    return sorted(present, key=key, reverse=reverse) + missing


def sort_configs(
    configs: list[ProviderInstanceConfig],
    snapshots: Mapping[str, UsageSnapshot],
    mode: SortMode,
    ascending: bool = True,
) -> list[ProviderInstanceConfig]:
    """Order configs for display.

    Ascending means most available first for the availability modes,
    soonest reset first for reset time and A to Z for alphabetical.
    Configs without data always come last.
    """

    def by_availability(measure: Callable[[UsageSnapshot | None], float]):
        def key(config: ProviderInstanceConfig) -> float | None:
            value = measure(snapshots.get(config.id))
            return None if value == NO_DATA else value

        return key

    match mode:
        case SortMode.MANUAL:
            return list(configs)
        case SortMode.MOST_AVAILABLE_NOW:
            return _rank(configs, by_availability(availability_now), reverse=ascending)
        case SortMode.MOST_AVAILABLE_LONG:
            return _rank(configs, by_availability(availability_long_term), reverse=ascending)
        case SortMode.RESET_TIME:
            return _rank(
                configs,
                lambda c: earliest_reset(snapshots.get(c.id)),
                reverse=not ascending,
            )
        case SortMode.ALPHABETICAL:
            return _rank(configs, lambda c: c.label, reverse=not ascending)


class ExhaustionTracker:
    """Edge-triggered detection of instances coming back from exhaustion."""

    def __init__(self) -> None:
        self.exhausted: set[str] = set()

    def update(self, instance_id: str, snapshot: UsageSnapshot) -> bool:
        """Record a new snapshot.

        Returns:
            True only on the transition from exhausted to available
        """
        was_exhausted = instance_id in self.exhausted
        is_exhausted = snapshot.is_exhausted()

        if is_exhausted:
            self.exhausted.add(instance_id)
        else:
            self.exhausted.discard(instance_id)

        return was_exhausted and not is_exhausted and bool(snapshot.primary_quotas())

    def discard(self, instance_id: str) -> None:
        self.exhausted.discard(instance_id)
