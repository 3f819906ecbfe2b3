# Author: PB
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/titor/core/catalog.py

"""
Catalog of the backup directories found under one remote base path.

Remote state is nothing more than directory names:

    full_20240101-0000
    inc_20240101-0000.20240102-0000
    inc_20240101-0000.20240103-0000

Every run lists the base path and rebuilds the catalog from scratch; there is
no index file and no cached state between runs.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Final, Iterable, Iterator, Union

from loguru import logger

from titor.system.exceptions import ParseError


FULL_PREFIX: Final = "full_"
INC_PREFIX: Final = "inc_"

# strftime format of every timestamp embedded in a backup name
TIMESTAMP_FORMAT: Final = "%Y%m%d-%H%M"

_TIMESTAMP_RE = re.compile(r"\d{8}-\d{4}")
_INCREMENTAL_RE = re.compile(r"^inc_(?P<full>.+)\.(?P<inc>\d{8}-\d{4})$")


class EntryKind(Enum):
    FULL = "full"
    INCREMENTAL = "incremental"


@dataclass(frozen=True)
class BackupEntry:
    name: str
    kind: EntryKind


# ---- Classification ----

@dataclass(frozen=True)
class FullName:
    name: str
    timestamp: str


@dataclass(frozen=True)
class IncrementalName:
    name: str
    full_timestamp: str
    inc_timestamp: str


@dataclass(frozen=True)
class Unrecognized:
    name: str


Classified = Union[FullName, IncrementalName, Unrecognized]


def is_timestamp(value: str) -> bool:
    return _TIMESTAMP_RE.fullmatch(value) is not None


def classify(name: str) -> Classified:
    """Classify a raw directory name.

    Raises:
        ParseError: for a name that carries a backup prefix but is malformed.
            Callers decide whether that is fatal (full) or skippable (incremental).
    """
    if name.startswith(FULL_PREFIX):
        timestamp = name[len(FULL_PREFIX):]
        if not is_timestamp(timestamp):
            raise ParseError(
                f"Full backup '{name}' has no parseable timestamp",
                entry=name,
                reason="full timestamp",
            )
        return FullName(name=name, timestamp=timestamp)

    if name.startswith(INC_PREFIX):
        match = _INCREMENTAL_RE.match(name)
        if not match:
            raise ParseError(
                f"Incremental backup '{name}' does not match inc_<full>.<YYYYMMDD-HHMM>",
                entry=name,
                reason="incremental name",
            )
        return IncrementalName(name=name, full_timestamp=match["full"], inc_timestamp=match["inc"])

    return Unrecognized(name=name)


def full_name(timestamp: str) -> str:
    return f"{FULL_PREFIX}{timestamp}"


def incremental_name(full_timestamp: str, timestamp: str) -> str:
    return f"{INC_PREFIX}{full_timestamp}.{timestamp}"


# ---- Catalog ----

@dataclass(frozen=True)
class FullBackup:
    """A full backup and the incrementals chained to it, in creation order."""
    base: BackupEntry
    timestamp: str
    incrementals: tuple[BackupEntry, ...] = ()

    @property
    def name(self) -> str:
        return self.base.name

    @property
    def incremental_names(self) -> list[str]:
        return [entry.name for entry in self.incrementals]


@dataclass(frozen=True)
class BackupCatalog:
    base_path: str
    fulls: tuple[FullBackup, ...] = ()
    orphans: tuple[str, ...] = field(default=())

    @classmethod
    def build(cls, base_path: str, raw_entries: Iterable[str]) -> BackupCatalog:
        """Build a catalog from an unordered directory listing.

        Incrementals keep the order in which they appear in ``raw_entries``;
        the caller must list them in creation order.

        Raises:
            ParseError: if a ``full_`` entry has no parseable timestamp.
        """
        fulls: list[FullName] = []
        incrementals: list[IncrementalName] = []

        for raw in raw_entries:
            name = raw.strip().rstrip("/")
            if not name:
                continue
            try:
                classified = classify(name)
            except ParseError as e:
                if e.reason == "full timestamp":
                    logger.error(f"Catalog for {base_path} is corrupt: {e}")
                    raise
                logger.warning(f"Skipping entry in {base_path}: {e}")
                continue

            if isinstance(classified, FullName):
                fulls.append(classified)
            elif isinstance(classified, IncrementalName):
                incrementals.append(classified)
            else:
                logger.debug(f"Ignoring unrecognised entry '{name}' in {base_path}")

        known = {full.timestamp for full in fulls}
        orphans = tuple(inc.name for inc in incrementals if inc.full_timestamp not in known)
        for orphan in orphans:
            logger.warning(f"Incremental '{orphan}' in {base_path} has no matching full backup")

        chains = []
        for full in sorted(fulls, key=lambda f: f.timestamp):
            chain = tuple(
                BackupEntry(name=inc.name, kind=EntryKind.INCREMENTAL)
                for inc in incrementals
                if inc.full_timestamp == full.timestamp
            )
            chains.append(FullBackup(
                base=BackupEntry(name=full.name, kind=EntryKind.FULL),
                timestamp=full.timestamp,
                incrementals=chain,
            ))

        logger.debug(f"Catalog for {base_path}: {len(chains)} full backups, {len(orphans)} orphans")
        return cls(base_path=base_path, fulls=tuple(chains), orphans=orphans)

    @property
    def oldest(self) -> FullBackup | None:
        return self.fulls[0] if self.fulls else None

    @property
    def newest(self) -> FullBackup | None:
        return self.fulls[-1] if self.fulls else None

    def names(self) -> set[str]:
        """Every catalogued directory name, orphans excluded."""
        result = set()
        for full in self.fulls:
            result.add(full.name)
            result.update(full.incremental_names)
        return result

    def __len__(self) -> int:
        return len(self.fulls)

    def __iter__(self) -> Iterator[FullBackup]:
        return iter(self.fulls)
