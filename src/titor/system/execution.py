# Author: PB
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/titor/system/execution.py

"""Local command execution for rsync, scp and database dump tools."""

import os
import shlex
import subprocess
from typing import Mapping, Optional, Sequence, Type

from loguru import logger

from titor.system.exceptions import CollaboratorError


class CommandExecutor:
    """Run local commands, raising a CollaboratorError subclass on failure."""

    @staticmethod
    def _environment(env: Optional[Mapping[str, str]]) -> Optional[dict[str, str]]:
        # extra variables stay out of argv, so they never reach logs or errors
        if not env:
            return None
        return {**os.environ, **env}

    @staticmethod
    def run_local(
        cmd: Sequence[str],
        timeout: Optional[float] = None,
        check: bool = True,
        error: Type[CollaboratorError] = CollaboratorError,
        env: Optional[Mapping[str, str]] = None,
    ) -> subprocess.CompletedProcess:
        """Run an argv-style command and capture its output.

        Args:
            cmd: Command and arguments
            timeout: Seconds before the command is killed
            check: Raise ``error`` on a non-zero exit status
            error: Exception class raised on failure
            env: Variables added to the inherited environment
        """
        command = shlex.join(cmd)
        logger.info(f"Running '{command}'...")
        try:
            result = subprocess.run(
                list(cmd),
                capture_output=True,
                text=True,
                timeout=timeout,
                env=CommandExecutor._environment(env),
            )
        except FileNotFoundError as e:
            raise error(f"Command not found: {cmd[0]}", command=command) from e
        except subprocess.TimeoutExpired as e:
            raise error(f"Command timed out after {timeout}s: {command}", command=command) from e

        if check and result.returncode != 0:
            output = (result.stderr or result.stdout).strip()
            raise error(
                f"Command failed with status {result.returncode}: {command}: {output}",
                command=command,
                status=result.returncode,
                output=output,
            )
        return result

    @staticmethod
    def run_shell(
        command: str,
        timeout: Optional[float] = None,
        error: Type[CollaboratorError] = CollaboratorError,
        env: Optional[Mapping[str, str]] = None,
    ) -> subprocess.CompletedProcess:
        """Run a shell pipeline (used for configurable dump commands).

        Only a non-zero status is treated as failure here; callers inspect
        ``stdout``/``stderr`` for tool-specific error text.
        """
        logger.info(f"Running '{command}'...")
        try:
            result = subprocess.run(
                command,
                shell=True,
                capture_output=True,
                text=True,
                timeout=timeout,
                env=CommandExecutor._environment(env),
            )
        except subprocess.TimeoutExpired as e:
            raise error(f"Command timed out after {timeout}s: {command}", command=command) from e

        output = (result.stdout + result.stderr).strip()
        if result.returncode != 0:
            raise error(
                f"Command failed with status {result.returncode}: {output or 'no output'}",
                command=command,
                status=result.returncode,
                output=output,
            )
        return result
