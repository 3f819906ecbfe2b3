# Author: PB
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/titor/cli/utils.py

"""
CLI utility functions shared by the titor commands.

All functions handle console output and typer exits consistently. Exit
statuses by error class:

- 1: remote command, transfer or dump failure (and anything unexpected)
- 2: not enough space on the remote
- 3: another run holds the lock
- 4: configuration problem
"""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from titor.config.manager import Config, SourceConfig
from titor.system.exceptions import CapacityError, CollaboratorError, ConfigError, LockError, TitorError

EXIT_COLLABORATOR = 1
EXIT_CAPACITY = 2
EXIT_LOCKED = 3
EXIT_CONFIG = 4


def exit_code_for(error: Exception) -> int:
    if isinstance(error, CapacityError):
        return EXIT_CAPACITY
    if isinstance(error, LockError):
        return EXIT_LOCKED
    if isinstance(error, ConfigError):
        return EXIT_CONFIG
    return EXIT_COLLABORATOR


def handle_operation_error(console: Console, operation: str, error: Exception) -> None:
    """Handle operation errors with consistent formatting."""
    console.print(f"[red]✗[/red] Error {operation}: {error}")
    if isinstance(error, CollaboratorError) and error.output:
        console.print(f"[dim]{error.output}[/dim]")
    raise typer.Exit(exit_code_for(error))


def load_config_with_console(console: Console, config_path: Optional[Path] = None) -> Config:
    """
    Load titor configuration with proper error handling and console output.

    Args:
        console: Rich console for output
        config_path: Explicit config file; None searches the standard locations

    Raises:
        typer.Exit: If configuration loading fails
    """
    try:
        return Config.load(config_path)
    except ConfigError as e:
        console.print(f"[red]✗[/red] Configuration error: {e}")
        raise typer.Exit(EXIT_CONFIG)


def select_sources(console: Console, config: Config, name: Optional[str]) -> list[SourceConfig]:
    """The source named ``name``, or every configured source."""
    if name is None:
        if not config.sources:
            console.print("[yellow]No sources configured[/yellow]")
        return list(config.sources)
    try:
        return [config.source(name)]
    except TitorError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(EXIT_CONFIG)
