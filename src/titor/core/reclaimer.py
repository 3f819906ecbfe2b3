# Author: PB
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/titor/core/reclaimer.py

"""Eviction planning for flat, quota-bounded artifact stores (database dumps)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from titor.system.exceptions import QuotaExceededError


@dataclass(frozen=True)
class StoredArtifact:
    name: str
    size_kb: int
    mtime: float = 0.0


def plan_eviction(
    used_kb: int,
    quota_kb: int,
    margin_kb: int,
    new_item_size_kb: int,
    stored_oldest_first: Sequence[StoredArtifact],
) -> list[str]:
    """Names to delete, oldest first, so a new item of ``new_item_size_kb`` fits.

    Nothing is deleted here. The caller deletes only after this returns, in
    the order returned.

    Raises:
        QuotaExceededError: if evicting everything still leaves too little room
    """
    remain = quota_kb - (used_kb + margin_kb)
    if remain >= new_item_size_kb:
        return []

    evict = []
    for artifact in stored_oldest_first:
        remain += artifact.size_kb
        evict.append(artifact.name)
        if remain >= new_item_size_kb:
            return evict

    raise QuotaExceededError(
        f"Unable to free enough space for a {new_item_size_kb} KB item: "
        f"{remain} KB available after evicting all {len(evict)} stored item(s)",
        required_kb=new_item_size_kb,
        reclaimable_kb=remain,
    )
