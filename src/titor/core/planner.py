# Author: PB
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/titor/core/planner.py

"""
Retention planning: decide the next backup action for one base path.

At steady state the remote holds exactly ``full_count`` full generations, each
with up to ``inc_count`` incrementals. Once both limits are reached the oldest
generation is recycled: its full directory is renamed to the new full's name
(so the next sync only has to bring it up to date) and its incrementals are
dropped.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Union

from titor.config.manager import RetentionPolicy
from titor.core.catalog import (
    TIMESTAMP_FORMAT, BackupCatalog, full_name, incremental_name, is_timestamp
)


@dataclass(frozen=True)
class CreateFull:
    target_name: str

    @property
    def destination(self) -> str:
        return self.target_name

    @property
    def is_destructive(self) -> bool:
        return False


@dataclass(frozen=True)
class CreateIncremental:
    target_name: str
    compare_chain: tuple[str, ...]  # oldest ancestor first

    @property
    def destination(self) -> str:
        return self.target_name

    @property
    def is_destructive(self) -> bool:
        return False


@dataclass(frozen=True)
class RotateFull:
    rename_from: str
    rename_to: str
    delete_incrementals: tuple[str, ...]

    @property
    def destination(self) -> str:
        return self.rename_to

    @property
    def is_destructive(self) -> bool:
        return True


Action = Union[CreateFull, CreateIncremental, RotateFull]


def format_timestamp(now: datetime | str) -> str:
    if isinstance(now, datetime):
        return now.strftime(TIMESTAMP_FORMAT)
    if not is_timestamp(now):
        raise ValueError(f"Timestamp '{now}' is not in YYYYMMDD-HHMM format")
    return now


def plan(catalog: BackupCatalog, policy: RetentionPolicy, now: datetime | str) -> Action:
    """Choose the next action for ``catalog`` under ``policy``.

    Pure: the same catalog, policy and ``now`` always give the same action.
    """
    timestamp = format_timestamp(now)

    newest = catalog.newest
    if newest is None:
        return CreateFull(target_name=full_name(timestamp))

    if len(newest.incrementals) < policy.inc_count:
        return CreateIncremental(
            target_name=incremental_name(newest.timestamp, timestamp),
            compare_chain=(newest.name, *newest.incremental_names),
        )

    if len(catalog.fulls) < policy.full_count:
        return CreateFull(target_name=full_name(timestamp))

    oldest = catalog.oldest
    return RotateFull(
        rename_from=oldest.name,
        rename_to=full_name(timestamp),
        delete_incrementals=tuple(oldest.incremental_names),
    )


def describe(action: Action) -> str:
    """One-line description of ``action`` for logs and console output."""
    if isinstance(action, CreateFull):
        return f"create full backup {action.target_name}"
    if isinstance(action, CreateIncremental):
        return (
            f"create incremental {action.target_name} "
            f"against {len(action.compare_chain)} earlier backup(s)"
        )
    deleted = len(action.delete_incrementals)
    return (
        f"rotate {action.rename_from} to {action.rename_to}, "
        f"deleting {deleted} incremental(s)"
    )
