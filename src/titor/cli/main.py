# Author: PB
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/titor/cli/main.py

"""
titor command line interface.

Commands that change the remote (backup, databases) run under the process
lock; read-only commands (plan, catalog) do not.
"""

# Standard library imports
from dataclasses import dataclass
from importlib.metadata import version
from pathlib import Path
from typing import Optional

# Third-party imports
import typer
from rich.console import Console

# Local imports
from titor.cli.utils import (
    EXIT_CONFIG,
    handle_operation_error,
    load_config_with_console,
    select_sources,
)
from titor.config.manager import Config, validate_config
from titor.core.lifecycle import load_catalog, plan_backup, run_all_backups, run_database_backup
from titor.core.planner import format_timestamp
from titor.database.mysql import create_dumper
from titor.storage.remote import SSHRemote
from titor.storage.rsync import RsyncTransfer
from titor.system.display import (
    display_backup_results,
    display_catalog,
    display_database_results,
    display_plans,
)
from titor.system.exceptions import TitorError
from titor.system.locking import ProcessLock, force_unlock
from titor.system.logging_setup import setup_logging

# Initialize Typer app
app = typer.Typer(
    help="""titor - Rotating full/incremental backups to a remote host

[bold green]Backups:[/bold green] backup, databases
[bold blue]Inspection:[/bold blue] plan, catalog
[bold red]Maintenance:[/bold red] validate-config, unlock
""",
    rich_markup_mode="rich"
)

console = Console()


@dataclass
class CliState:
    config_path: Optional[Path] = None
    debug: bool = False


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        try:
            pkg_version = version("titor")
        except Exception as e:
            handle_operation_error(console, "retrieving version", e)
        console.print(f"titor version {pkg_version}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: Optional[bool] = typer.Option(
        None, "--version", callback=version_callback, is_eager=True,
        help="Show version and exit"
    ),
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Config file (default: search standard locations)"
    ),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
) -> None:
    """titor - Rotating full/incremental backups to a remote host."""
    setup_logging(debug=debug)
    ctx.obj = CliState(config_path=config_path, debug=debug)


def _load(ctx: typer.Context) -> Config:
    """Load config and attach the file log sink if one is configured."""
    state: CliState = ctx.obj
    config = load_config_with_console(console, state.config_path)
    if config.local_log:
        setup_logging(local_log=config.local_log, debug=state.debug)
    return config


# =============================================================================
# BACKUPS - change the remote, run under the process lock
# =============================================================================

@app.command()
def backup(
    ctx: typer.Context,
    source: Optional[str] = typer.Option(None, "--source", "-s", help="Back up only this source"),
    now: Optional[str] = typer.Option(None, "--now", help="Timestamp for new backups (YYYYMMDD-HHMM)"),
) -> None:
    """[bold green]Backups[/bold green]: Create the next full or incremental backup of each source."""
    config = _load(ctx)
    sources = select_sources(console, config, source)

    try:
        stamp = format_timestamp(now) if now else None
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="--now")

    try:
        with ProcessLock(config.lock_file, command="backup"):
            with SSHRemote(config.remote) as remote:
                results = run_all_backups(
                    config,
                    remote,
                    lambda s: RsyncTransfer(config.remote, exclude=s.exclude),
                    sources=sources,
                    now=stamp,
                )
    except TitorError as e:
        handle_operation_error(console, "running backup", e)

    display_backup_results(console, results)


@app.command()
def databases(
    ctx: typer.Context,
    database: Optional[list[str]] = typer.Option(
        None, "--database", "-d", help="Dump only this database (repeatable)"
    ),
) -> None:
    """[bold green]Backups[/bold green]: Dump databases and copy the dumps to the remote."""
    config = _load(ctx)
    if config.databases is None:
        console.print("[red]✗[/red] No databases section in configuration")
        raise typer.Exit(EXIT_CONFIG)

    try:
        with ProcessLock(config.lock_file, command="databases"):
            dumper = create_dumper(config.databases)
            with SSHRemote(config.remote) as remote:
                results = run_database_backup(
                    config,
                    dumper,
                    remote,
                    RsyncTransfer(config.remote),
                    databases=database or None,
                )
    except TitorError as e:
        handle_operation_error(console, "backing up databases", e)

    display_database_results(console, results)


# =============================================================================
# INSPECTION - read-only
# =============================================================================

@app.command()
def plan(
    ctx: typer.Context,
    source: Optional[str] = typer.Option(None, "--source", "-s", help="Plan only this source"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Also show each catalog"),
) -> None:
    """[bold blue]Inspection[/bold blue]: Show what the next backup would do, without doing it."""
    config = _load(ctx)
    sources = select_sources(console, config, source)

    try:
        with SSHRemote(config.remote) as remote:
            plans = [plan_backup(config, s, remote) for s in sources]
    except TitorError as e:
        handle_operation_error(console, "planning backup", e)

    display_plans(console, plans, verbose=verbose)


@app.command()
def catalog(
    ctx: typer.Context,
    source: Optional[str] = typer.Option(None, "--source", "-s", help="Show only this source"),
) -> None:
    """[bold blue]Inspection[/bold blue]: List the backups stored on the remote."""
    config = _load(ctx)
    sources = select_sources(console, config, source)

    try:
        with SSHRemote(config.remote) as remote:
            catalogs = [load_catalog(remote, config.base_path(s)) for s in sources]
    except TitorError as e:
        handle_operation_error(console, "reading catalog", e)

    for item in catalogs:
        display_catalog(console, item)


# =============================================================================
# MAINTENANCE
# =============================================================================

@app.command(name="validate-config")
def validate_config_command(
    ctx: typer.Context,
    check_remote: bool = typer.Option(False, "--check-remote", help="Also test the SSH connection"),
) -> None:
    """[bold red]Maintenance[/bold red]: Validate the configuration file."""
    state: CliState = ctx.obj
    errors = validate_config(state.config_path)
    if errors:
        for error in errors:
            console.print(f"[red]✗[/red] {error}")
        raise typer.Exit(EXIT_CONFIG)

    config = Config.load(state.config_path)
    console.print(f"[green]✓[/green] Configuration is valid ({config.config_path})")

    if check_remote:
        with SSHRemote(config.remote) as remote:
            ok, message = remote.is_accessible()
        if not ok:
            console.print(f"[red]✗[/red] Remote check failed: {message}")
            raise typer.Exit(1)
        console.print(f"[green]✓[/green] {message}")


@app.command()
def unlock(ctx: typer.Context) -> None:
    """[bold red]Maintenance[/bold red]: Remove the lock left behind by a failed run."""
    config = _load(ctx)
    try:
        info = force_unlock(config.lock_file)
    except TitorError as e:
        handle_operation_error(console, "removing lock", e)

    if info is None:
        console.print(f"[dim]No lock file at {config.lock_file}[/dim]")
        return
    console.print(f"[green]✓[/green] Removed lock held by {info.describe()}")


if __name__ == "__main__":
    app()
