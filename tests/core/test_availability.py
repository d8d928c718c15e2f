"""Tests for availability ranking and exhaustion tracking."""

from __future__ import annotations

from datetime import timedelta

import pytest

from conftest import make_config
from conftest import make_snapshot
from tokenbar.core.availability import EXHAUSTED
from tokenbar.core.availability import NO_DATA
from tokenbar.core.availability import ExhaustionTracker
from tokenbar.core.availability import availability_long_term
from tokenbar.core.availability import availability_now
from tokenbar.core.availability import earliest_reset
from tokenbar.core.availability import sort_configs
from tokenbar.models import INFORMATIONAL
from tokenbar.models import SortMode
from tokenbar.models import UsageQuota
from tokenbar.models import UsageSnapshot


def _snapshot(provider_id, *quotas, captured_at):
    return UsageSnapshot(provider_id=provider_id, quotas=tuple(quotas), captured_at=captured_at)


def _ids(configs):
    return [c.id for c in configs]


class TestAvailabilityNow:
    """Tests for availability_now."""

    def test_most_constrained_primary(self):
        assert availability_now(make_snapshot("x", 20, 70)) == 30

    def test_exhausted(self):
        assert availability_now(make_snapshot("x", 100, 10)) == EXHAUSTED

    def test_no_snapshot(self):
        assert availability_now(None) == NO_DATA

    def test_supplementary_ignored(self, utc_now):
        snapshot = _snapshot(
            "cursor",
            UsageQuota(percent_used=40, label="Monthly"),
            UsageQuota(percent_used=100, label="On-Demand"),
            captured_at=utc_now,
        )
        assert availability_now(snapshot) == 60

    def test_informational_only(self, utc_now):
        snapshot = _snapshot(
            "openai",
            UsageQuota(percent_used=INFORMATIONAL, label="Monthly Spend"),
            captured_at=utc_now,
        )
        assert availability_now(snapshot) == NO_DATA


class TestAvailabilityLongTerm:
    """Tests for availability_long_term."""

    def test_furthest_reset(self, utc_now):
        snapshot = _snapshot(
            "codex",
            UsageQuota(percent_used=90, label="5h Window", resets_at=utc_now + timedelta(hours=2)),
            UsageQuota(percent_used=25, label="Weekly", resets_at=utc_now + timedelta(days=5)),
            captured_at=utc_now,
        )
        assert availability_long_term(snapshot) == 75

    def test_least_used_without_resets(self):
        assert availability_long_term(make_snapshot("x", 80, 30)) == 70

    def test_no_data(self):
        assert availability_long_term(None) == NO_DATA


class TestEarliestReset:
    def test_soonest_across_quotas(self, utc_now):
        soon = utc_now + timedelta(hours=1)
        snapshot = _snapshot(
            "codex",
            UsageQuota(percent_used=1, label="Weekly", resets_at=utc_now + timedelta(days=2)),
            UsageQuota(percent_used=1, label="5h Window", resets_at=soon),
            captured_at=utc_now,
        )
        assert earliest_reset(snapshot) == soon

    def test_none(self):
        assert earliest_reset(make_snapshot("x", 5)) is None
        assert earliest_reset(None) is None


class TestSortConfigs:
    """Tests for sort_configs."""

    @pytest.fixture
    def configs(self):
        return [
            make_config("a", label="Alpha"),
            make_config("b", label="Bravo"),
            make_config("c", label="Charlie"),
        ]

    def test_manual_keeps_order(self, configs):
        snapshots = {"a": make_snapshot("a", 90), "b": make_snapshot("b", 10)}
        assert _ids(sort_configs(configs, snapshots, SortMode.MANUAL)) == ["a", "b", "c"]

    def test_most_available_now_ascending(self, configs):
        """90% used ranks after 30% used; exhausted after both."""
        snapshots = {
            "a": make_snapshot("a", 90),
            "b": make_snapshot("b", 30),
            "c": make_snapshot("c", 100),
        }
        assert _ids(sort_configs(configs, snapshots, SortMode.MOST_AVAILABLE_NOW)) == ["b", "a", "c"]

    def test_exhausted_ignores_other_quotas(self, configs):
        """An exhausted instance ranks last even if another quota is nearly unused."""
        snapshots = {
            "a": make_snapshot("a", 95),
            "b": make_snapshot("b", 1, 100),
            "c": make_snapshot("c", 50),
        }
        result = sort_configs(configs, snapshots, SortMode.MOST_AVAILABLE_NOW)
        assert _ids(result) == ["c", "a", "b"]

    def test_missing_data_sorts_last(self, configs):
        snapshots = {"a": make_snapshot("a", 100), "c": make_snapshot("c", 10)}
        result = sort_configs(configs, snapshots, SortMode.MOST_AVAILABLE_NOW)
        assert _ids(result) == ["c", "a", "b"]

    def test_descending_reverses_but_keeps_missing_last(self, configs):
        snapshots = {"a": make_snapshot("a", 90), "b": make_snapshot("b", 30)}
        result = sort_configs(configs, snapshots, SortMode.MOST_AVAILABLE_NOW, ascending=False)
        assert _ids(result) == ["a", "b", "c"]

    def test_ties_keep_stored_order(self, configs):
        snapshots = {cid: make_snapshot(cid, 50) for cid in ("a", "b", "c")}
        result = sort_configs(configs, snapshots, SortMode.MOST_AVAILABLE_NOW)
        assert _ids(result) == ["a", "b", "c"]

    def test_most_available_long(self, configs, utc_now):
        snapshots = {
            "a": _snapshot(
                "a",
                UsageQuota(percent_used=95, label="5h Window", resets_at=utc_now + timedelta(hours=1)),
                UsageQuota(percent_used=10, label="Weekly", resets_at=utc_now + timedelta(days=6)),
                captured_at=utc_now,
            ),
            "b": make_snapshot("b", 40),
        }
        result = sort_configs(configs, snapshots, SortMode.MOST_AVAILABLE_LONG)
        assert _ids(result) == ["a", "b", "c"]

    def test_reset_time(self, configs, utc_now):
        snapshots = {
            "a": make_snapshot("a", 10, resets_at=utc_now + timedelta(days=3)),
            "b": make_snapshot("b", 10, resets_at=utc_now + timedelta(hours=1)),
        }
        assert _ids(sort_configs(configs, snapshots, SortMode.RESET_TIME)) == ["b", "a", "c"]
        assert _ids(sort_configs(configs, snapshots, SortMode.RESET_TIME, ascending=False)) == [
            "a",
            "b",
            "c",
        ]

    def test_alphabetical(self):
        configs = [make_config("z", label="Zed"), make_config("m", label="Mid")]
        assert _ids(sort_configs(configs, {}, SortMode.ALPHABETICAL)) == ["m", "z"]
        assert _ids(sort_configs(configs, {}, SortMode.ALPHABETICAL, ascending=False)) == ["z", "m"]

    def test_empty(self):
        for mode in SortMode:
            assert sort_configs([], {}, mode) == []


class TestExhaustionTracker:
    """Tests for ExhaustionTracker."""

    def test_restoration_fires_once(self):
        tracker = ExhaustionTracker()
        assert not tracker.update("codex", make_snapshot("codex", 100))
        assert tracker.update("codex", make_snapshot("codex", 40))
        assert not tracker.update("codex", make_snapshot("codex", 40))

    def test_never_exhausted(self):
        tracker = ExhaustionTracker()
        assert not tracker.update("codex", make_snapshot("codex", 40))

    def test_still_exhausted(self):
        tracker = ExhaustionTracker()
        tracker.update("codex", make_snapshot("codex", 100))
        assert not tracker.update("codex", make_snapshot("codex", 100))
        assert "codex" in tracker.exhausted

    def test_requires_primary_quota(self, utc_now):
        tracker = ExhaustionTracker()
        tracker.update("codex", make_snapshot("codex", 100))
        informational = _snapshot(
            "codex",
            UsageQuota(percent_used=INFORMATIONAL, label="Credits"),
            captured_at=utc_now,
        )
        assert not tracker.update("codex", informational)

    def test_instances_are_independent(self):
        tracker = ExhaustionTracker()
        tracker.update("a", make_snapshot("a", 100))
        assert not tracker.update("b", make_snapshot("b", 10))
        assert "a" in tracker.exhausted

    def test_discard(self):
        tracker = ExhaustionTracker()
        tracker.update("a", make_snapshot("a", 100))
        tracker.discard("a")
        assert not tracker.update("a", make_snapshot("a", 10))
