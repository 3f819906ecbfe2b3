# Author: PB
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/titor/core/capacity.py

"""
Capacity check run before any backup action touches the remote.

A rotation renames and deletes directories before its sync; the rename can
only be undone before it happens, so the size of the sync that follows is
estimated and checked against free space first.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Union

from loguru import logger

from titor.core.planner import Action, describe
from titor.system.exceptions import InsufficientSpaceError


@dataclass(frozen=True)
class Proceed:
    estimate_kb: int
    available_kb: int


@dataclass(frozen=True)
class NoOpSkip:
    """Nothing changed since the last backup point."""


CapacityVerdict = Union[Proceed, NoOpSkip]


def estimate_and_check(
    action: Action,
    size_estimator: Callable[[Action], int],
    space_probe: Callable[[], int],
    margin_kb: int,
) -> CapacityVerdict:
    """Decide whether ``action`` can run.

    Args:
        action: The planned action
        size_estimator: Dry run of the transfer for ``action``, in KB
        space_probe: Free space at the destination base path, in KB
        margin_kb: Space that must remain free after the transfer

    Returns:
        NoOpSkip when the estimate is zero (the probe is not called),
        otherwise Proceed carrying the validated estimate.

    Raises:
        InsufficientSpaceError: if available space is below margin + estimate
    """
    estimate_kb = size_estimator(action)
    if estimate_kb < 0:
        raise ValueError(f"Size estimator returned a negative size ({estimate_kb} KB)")

    if estimate_kb == 0:
        logger.info(f"No changes since last backup, skipping: {describe(action)}")
        return NoOpSkip()

    available_kb = space_probe()
    required_kb = margin_kb + estimate_kb
    if available_kb < required_kb:
        raise InsufficientSpaceError(
            f"Insufficient space for {describe(action)}: need {required_kb} KB "
            f"({estimate_kb} KB transfer + {margin_kb} KB margin), {available_kb} KB available",
            required_kb=required_kb,
            available_kb=available_kb,
        )

    logger.debug(f"Capacity ok: {estimate_kb} KB to transfer, {available_kb} KB available, margin {margin_kb} KB")
    return Proceed(estimate_kb=estimate_kb, available_kb=available_kb)
