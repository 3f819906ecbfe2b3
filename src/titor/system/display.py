# Author: PB
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/titor/system/display.py

# Third-party imports
import humanize
from rich.console import Console
from rich.table import Table

# Local imports
from titor.core.catalog import BackupCatalog
from titor.core.lifecycle import BackupPlan, BackupResult, DatabaseBackupResult
from titor.core.planner import CreateFull, CreateIncremental, RotateFull, describe


def kb_to_natural(size_kb: int) -> str:
    return humanize.naturalsize(size_kb * 1024, binary=True)


def catalog_to_table(catalog: BackupCatalog, title: str | None = None) -> Table:
    """Convert a catalog to a rich Table, one row per backup directory.

    Orphaned incrementals are listed last.
    """
    table = Table(title=title or catalog.base_path)
    table.add_column("Backup")
    table.add_column("Kind")
    table.add_column("Chain", justify="right")

    for full in catalog:
        table.add_row(full.name, "full", str(len(full.incrementals)))
        for position, name in enumerate(full.incremental_names, start=1):
            table.add_row(f"  {name}", "incremental", str(position))

    for orphan in catalog.orphans:
        table.add_row(f"[yellow]{orphan}[/yellow]", "[yellow]orphan[/yellow]", "")

    return table


def display_catalog(console: Console, catalog: BackupCatalog) -> None:
    if not catalog.fulls and not catalog.orphans:
        console.print(f"[dim]No backups in {catalog.base_path}[/dim]")
        return
    console.print(catalog_to_table(catalog))


def plan_to_table(plans: list[BackupPlan]) -> Table:
    table = Table(title="Planned actions")
    table.add_column("Source")
    table.add_column("Action")
    table.add_column("Target")
    table.add_column("Details")

    for item in plans:
        action = item.action
        if isinstance(action, CreateFull):
            table.add_row(item.source.name, "full", action.target_name, "")
        elif isinstance(action, CreateIncremental):
            table.add_row(
                item.source.name,
                "incremental",
                action.target_name,
                f"compared against {len(action.compare_chain)} backup(s)",
            )
        elif isinstance(action, RotateFull):
            table.add_row(
                item.source.name,
                "[yellow]rotate[/yellow]",
                action.rename_to,
                f"recycles {action.rename_from}, deletes {len(action.delete_incrementals)} incremental(s)",
            )
    return table


def display_plans(console: Console, plans: list[BackupPlan], verbose: bool = False) -> None:
    if verbose:
        for item in plans:
            display_catalog(console, item.catalog)
    console.print(plan_to_table(plans))


def display_backup_results(console: Console, results: list[BackupResult]) -> None:
    for result in results:
        if result.skipped:
            console.print(f"[dim]-[/dim] {result.source}: no changes, nothing transferred")
        else:
            console.print(
                f"[green]✓[/green] {result.source}: {describe(result.action)} "
                f"({kb_to_natural(result.transferred_kb)} transferred)"
            )
        if result.cleaned_orphans:
            console.print(f"  removed {len(result.cleaned_orphans)} orphaned incremental(s)")


def display_database_results(console: Console, results: list[DatabaseBackupResult]) -> None:
    if not results:
        console.print("[dim]No databases dumped[/dim]")
        return
    table = Table(title="Database dumps")
    table.add_column("File")
    table.add_column("Size", justify="right")
    table.add_column("Evicted")
    for result in results:
        table.add_row(result.file.name, kb_to_natural(result.size_kb), ", ".join(result.evicted) or "-")
    console.print(table)
