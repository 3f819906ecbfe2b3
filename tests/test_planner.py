# Author: PB
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# tests/test_planner.py

"""
Tests for retention planning.

Covers the four canonical planning situations, determinism, and a simulated
sequence of runs checking that the remote never exceeds the policy bounds.
"""

from datetime import datetime, timedelta

import pytest

from titor.config.manager import RetentionPolicy
from titor.core.catalog import BackupCatalog, TIMESTAMP_FORMAT, classify, FullName
from titor.core.planner import (
    CreateFull, CreateIncremental, RotateFull, describe, format_timestamp, plan,
)

FULL_A = "full_20240101-0000"
FULL_B = "full_20240201-0000"


def incrementals(full_ts: str, count: int, month: str = "01") -> list[str]:
    return [f"inc_{full_ts}.2024{month}{day:02d}-0000" for day in range(2, 2 + count)]


class TestPlanScenarios:

    def test_empty_catalog_creates_full(self, policy):
        catalog = BackupCatalog.build("/b", [])
        assert plan(catalog, policy, "20240101-0000") == CreateFull(target_name=FULL_A)

    def test_incremental_chains_full_and_existing_incrementals(self, policy):
        incs = incrementals("20240101-0000", 3)
        catalog = BackupCatalog.build("/b", [FULL_A, *incs])

        action = plan(catalog, policy, "20240102-0000")

        assert action == CreateIncremental(
            target_name="inc_20240101-0000.20240102-0000",
            compare_chain=(FULL_A, *incs),
        )

    def test_full_when_chain_is_full_and_fulls_below_count(self, policy):
        catalog = BackupCatalog.build("/b", [FULL_A, *incrementals("20240101-0000", 10)])
        action = plan(catalog, policy, "20240301-1200")
        assert action == CreateFull(target_name="full_20240301-1200")

    def test_rotate_oldest_when_both_limits_reached(self, policy):
        old_incs = incrementals("20240101-0000", 10)
        new_incs = incrementals("20240201-0000", 10, month="02")
        catalog = BackupCatalog.build("/b", [*new_incs, FULL_B, FULL_A, *old_incs])

        action = plan(catalog, policy, "20240301-0000")

        assert action == RotateFull(
            rename_from=FULL_A,
            rename_to="full_20240301-0000",
            delete_incrementals=tuple(old_incs),
        )
        assert action.is_destructive
        assert action.destination == "full_20240301-0000"

    def test_incremental_count_is_strictly_below_limit(self):
        policy = RetentionPolicy(full_count=1, inc_count=2)
        catalog = BackupCatalog.build("/b", [FULL_A, *incrementals("20240101-0000", 1)])
        assert isinstance(plan(catalog, policy, "20240110-0000"), CreateIncremental)

        catalog = BackupCatalog.build("/b", [FULL_A, *incrementals("20240101-0000", 2)])
        assert isinstance(plan(catalog, policy, "20240110-0000"), RotateFull)

    def test_incrementals_go_to_newest_full(self, policy):
        catalog = BackupCatalog.build("/b", [FULL_A, FULL_B, *incrementals("20240101-0000", 2)])
        action = plan(catalog, policy, "20240205-0000")
        assert action.target_name == "inc_20240201-0000.20240205-0000"
        assert action.compare_chain == (FULL_B,)


class TestPlanProperties:

    def test_deterministic(self, policy):
        catalog = BackupCatalog.build("/b", [FULL_A, *incrementals("20240101-0000", 4)])
        results = {plan(catalog, policy, "20240110-0000") for _ in range(5)}
        assert len(results) == 1

    def test_accepts_datetime(self, policy):
        catalog = BackupCatalog.build("/b", [])
        action = plan(catalog, policy, datetime(2024, 1, 1, 0, 0))
        assert action.target_name == FULL_A

    def test_bad_timestamp_string(self, policy):
        with pytest.raises(ValueError):
            plan(BackupCatalog.build("/b", []), policy, "2024-01-01")

    def test_format_timestamp(self):
        assert format_timestamp(datetime(2024, 5, 6, 7, 8)) == "20240506-0708"
        assert format_timestamp("20240506-0708") == "20240506-0708"

    @pytest.mark.parametrize("full_count,inc_count", [(1, 1), (2, 3), (2, 10), (3, 2)])
    def test_simulated_runs_stay_within_bounds(self, full_count, inc_count):
        """Apply planned actions to a name set; bounds hold after every run."""
        policy = RetentionPolicy(full_count=full_count, inc_count=inc_count)
        names: set[str] = set()
        now = datetime(2024, 1, 1)
        runs = full_count * (inc_count + 1) * 3

        for _ in range(runs):
            catalog = BackupCatalog.build("/b", sorted(names))
            action = plan(catalog, policy, now)

            if isinstance(action, RotateFull):
                names.remove(action.rename_from)
                names.difference_update(action.delete_incrementals)
            assert action.destination not in names
            names.add(action.destination)

            rebuilt = BackupCatalog.build("/b", sorted(names))
            assert len(rebuilt.fulls) <= full_count
            assert all(len(full.incrementals) <= inc_count for full in rebuilt)
            assert rebuilt.orphans == ()

            now += timedelta(days=1)

        # steady state: every generation is complete except possibly the newest
        final = BackupCatalog.build("/b", sorted(names))
        assert len(final.fulls) == full_count

    def test_rotation_recycles_oldest_generation(self):
        policy = RetentionPolicy(full_count=2, inc_count=1)
        names = {FULL_A, "inc_20240101-0000.20240102-0000", FULL_B, "inc_20240201-0000.20240202-0000"}
        action = plan(BackupCatalog.build("/b", sorted(names)), policy, "20240301-0000")
        assert isinstance(classify(action.rename_to), FullName)
        assert action.rename_from == FULL_A


class TestDescribe:

    def test_each_action(self):
        assert "create full" in describe(CreateFull("full_20240101-0000"))
        assert "2 earlier" in describe(CreateIncremental("inc_x.20240101-0000", ("a", "b")))
        assert "deleting 3" in describe(RotateFull("full_a", "full_b", ("1", "2", "3")))

    def test_timestamp_format_is_minutes(self):
        assert datetime(2024, 1, 1, 12, 30).strftime(TIMESTAMP_FORMAT) == "20240101-1230"
