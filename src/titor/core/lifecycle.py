# Author: PB
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/titor/core/lifecycle.py

"""
Backup run orchestration.

This module wires the decision engine to its collaborators:
- backup: catalog -> plan -> capacity check -> rotation -> transfer
- plan: the same steps up to the plan, without touching the remote
- databases: dump -> eviction plan -> delete -> copy

Every run re-lists the remote and re-plans from scratch. Nothing on the
remote is renamed or deleted before the capacity check has passed.
"""

import math
import posixpath
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence

from loguru import logger

from titor.config.manager import Config, RetentionPolicy, SourceConfig
from titor.core.capacity import CapacityVerdict, NoOpSkip, estimate_and_check
from titor.core.catalog import BackupCatalog
from titor.core.planner import Action, CreateIncremental, RotateFull, describe, format_timestamp, plan
from titor.core.protocols import RemoteStore, TransferEngine
from titor.core.reclaimer import plan_eviction
from titor.database.mysql import MySQLDumper
from titor.system.exceptions import ConfigError, DumpError, TitorError


@dataclass(frozen=True)
class BackupPlan:
    """What the next run would do for one source."""
    source: SourceConfig
    base_path: str
    policy: RetentionPolicy
    catalog: BackupCatalog
    action: Action


@dataclass(frozen=True)
class BackupResult:
    source: str
    action: Action
    verdict: CapacityVerdict
    transferred_kb: int = 0
    cleaned_orphans: tuple[str, ...] = ()

    @property
    def skipped(self) -> bool:
        return isinstance(self.verdict, NoOpSkip)


@dataclass(frozen=True)
class DatabaseBackupResult:
    file: Path
    size_kb: int
    evicted: list[str] = field(default_factory=list)


# ---- Catalog and plan ----

def load_catalog(remote: RemoteStore, base_path: str) -> BackupCatalog:
    return BackupCatalog.build(base_path, remote.list_directory(base_path))


def plan_backup(
    config: Config,
    source: SourceConfig,
    remote: RemoteStore,
    now: datetime | str | None = None,
) -> BackupPlan:
    """Compute the next action for ``source`` without changing the remote.

    Orphans are left in the catalog; ``run_backup`` removes them only once
    the capacity check has passed.
    """
    base_path = config.base_path(source)
    policy = config.policy_for(source)
    catalog = load_catalog(remote, base_path)
    action = plan(catalog, policy, now or datetime.now())
    return BackupPlan(source=source, base_path=base_path, policy=policy, catalog=catalog, action=action)


def _transfer_arguments(action: Action, base_path: str) -> tuple[str, tuple[str, ...], bool]:
    """Destination, compare chain and delete flag of the sync for ``action``."""
    if isinstance(action, RotateFull):
        return posixpath.join(base_path, action.rename_to), (), True
    if isinstance(action, CreateIncremental):
        return posixpath.join(base_path, action.target_name), action.compare_chain, False
    return posixpath.join(base_path, action.target_name), (), False


def estimate_size(transfer: TransferEngine, source_path: Path, base_path: str, action: Action) -> int:
    """Dry-run the sync ``action`` would perform, in KB.

    A rotation has not renamed anything yet, so its estimate is taken
    against the directory it will recycle.
    """
    if isinstance(action, RotateFull):
        return transfer.dry_run_size(
            source_path,
            posixpath.join(base_path, action.rename_from),
            delete_extraneous=True,
        )
    destination, chain, delete = _transfer_arguments(action, base_path)
    return transfer.dry_run_size(source_path, destination, compare_chain=chain, delete_extraneous=delete)


# ---- Backup run ----

def _clean_orphans(remote: RemoteStore, catalog: BackupCatalog) -> tuple[str, ...]:
    if not catalog.orphans:
        return ()
    logger.warning(f"Deleting {len(catalog.orphans)} orphaned incremental(s) in {catalog.base_path}")
    remote.delete(catalog.base_path, catalog.orphans)
    return catalog.orphans


def run_backup(
    config: Config,
    source: SourceConfig,
    remote: RemoteStore,
    transfer: TransferEngine,
    now: datetime | str | None = None,
) -> BackupResult:
    """Run one backup cycle for ``source``.

    Raises:
        ConfigError: if the source directory does not exist
        InsufficientSpaceError: before anything on the remote is modified
        CollaboratorError: from the remote or the transfer, as raised
    """
    if not source.path.is_dir():
        raise ConfigError(f"Source '{source.name}': {source.path} is not a directory")

    timestamp = format_timestamp(now or datetime.now())
    base_path = config.base_path(source)
    policy = config.policy_for(source)

    remote.make_path(base_path)
    catalog = load_catalog(remote, base_path)
    if catalog.orphans and not config.remote.delete_orphans:
        logger.warning(f"Leaving {len(catalog.orphans)} orphaned incremental(s) in {base_path}")

    action = plan(catalog, policy, timestamp)
    logger.info(f"{source.name}: {describe(action)}")

    existing = catalog.names() | set(catalog.orphans)
    if action.destination in existing:
        raise TitorError(
            f"Backup '{action.destination}' already exists in {base_path}; "
            f"runs for the same source must be at least a minute apart"
        )

    verdict = estimate_and_check(
        action,
        lambda a: estimate_size(transfer, source.path, base_path, a),
        lambda: remote.available_space(base_path),
        policy.margin_kb,
    )

    # orphans are never part of a plan, so they go only once the plan has passed
    cleaned: tuple[str, ...] = ()
    if config.remote.delete_orphans:
        cleaned = _clean_orphans(remote, catalog)

    if isinstance(verdict, NoOpSkip):
        return BackupResult(source=source.name, action=action, verdict=verdict, cleaned_orphans=cleaned)

    if isinstance(action, RotateFull):
        remote.rename(base_path, action.rename_from, action.rename_to)
        if action.delete_incrementals:
            remote.delete(base_path, action.delete_incrementals)

    destination, chain, delete = _transfer_arguments(action, base_path)
    transferred_kb = transfer.transfer(source.path, destination, compare_chain=chain, delete_extraneous=delete)

    return BackupResult(
        source=source.name,
        action=action,
        verdict=verdict,
        transferred_kb=transferred_kb,
        cleaned_orphans=cleaned,
    )


def run_all_backups(
    config: Config,
    remote: RemoteStore,
    transfer_factory,
    sources: Sequence[SourceConfig] | None = None,
    now: datetime | str | None = None,
) -> list[BackupResult]:
    """Back up every configured source in order, stopping at the first error.

    ``transfer_factory(source)`` builds the transfer engine for one source so
    per-source excludes reach rsync.
    """
    stamp = format_timestamp(now or datetime.now())
    results = []
    for source in sources if sources is not None else config.sources:
        results.append(run_backup(config, source, remote, transfer_factory(source), stamp))
    return results


# ---- Database dumps ----

def local_size_kb(path: Path) -> int:
    return math.ceil(path.stat().st_size / 1024)


def ship_artifact(
    local_file: Path,
    remote_dir: str,
    remote: RemoteStore,
    transfer: TransferEngine,
    quota_kb: int,
    margin_kb: int,
) -> DatabaseBackupResult:
    """Copy ``local_file`` into a quota-bounded remote directory.

    The eviction set is computed in full before anything is deleted; if no
    eviction set can make room, nothing is deleted or copied.

    Raises:
        DumpError: if the file is empty
        QuotaExceededError: if the file cannot fit under ``quota_kb``
    """
    size_kb = local_size_kb(local_file)
    if size_kb == 0:
        raise DumpError(f"Dump file {local_file} is empty")

    used_kb = remote.used_space(remote_dir)
    stored = remote.list_files(remote_dir)
    evict = plan_eviction(used_kb, quota_kb, margin_kb, size_kb, stored)

    if evict:
        logger.info(f"Evicting {len(evict)} old dump(s) from {remote_dir} to make room for {local_file.name}")
        remote.delete(remote_dir, evict)

    transfer.copy_file(local_file, remote_dir)
    return DatabaseBackupResult(file=local_file, size_kb=size_kb, evicted=evict)


def run_database_backup(
    config: Config,
    dumper: MySQLDumper,
    remote: RemoteStore,
    transfer: TransferEngine,
    databases: Optional[Sequence[str]] = None,
    now: Optional[datetime] = None,
) -> list[DatabaseBackupResult]:
    """Dump the configured databases and ship each dump to the remote.

    Args:
        databases: Dump only these names instead of every database on the server
    """
    if config.databases is None:
        raise ConfigError("No databases section in configuration")
    db_config = config.databases
    margin_kb = db_config.margin_kb if db_config.margin_kb is not None else config.retention.margin_kb
    remote_dir = config.database_path()

    db_config.dump_dir.mkdir(parents=True, exist_ok=True)
    remote.make_path(remote_dir)

    stamp_time = now or datetime.now()
    if databases:
        dumps = [dumper.backup_database(name, db_config.dump_dir, stamp_time) for name in databases]
    else:
        dumps = dumper.backup_all(db_config.dump_dir, now=stamp_time)

    results = []
    try:
        for dump in dumps:
            results.append(ship_artifact(dump, remote_dir, remote, transfer, db_config.quota_kb, margin_kb))
    finally:
        # local dumps go whether or not they were shipped
        if not db_config.keep_dumps:
            for dump in dumps:
                dump.unlink(missing_ok=True)
                logger.debug(f"Removed local dump {dump}")
    return results
