# Author: PB
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/titor/storage/remote.py

"""
Remote backup store reached over SSH.

Every operation is a single shell command built from a template in
``RemoteConfig.commands`` and run with paramiko; results are recovered by
parsing the command's text output.
"""

from __future__ import annotations

import math
import posixpath
import re
import shlex
from typing import Sequence

import paramiko
from loguru import logger

from titor.config.manager import RemoteConfig
from titor.core.reclaimer import StoredArtifact
from titor.system.exceptions import RemoteCommandError


_AVAIL_RE = re.compile(r"Avail\s+(\d+)")
_USED_RE = re.compile(r"^\s*(\d+)")
_FILE_ROW_RE = re.compile(r"^(\d+)(?:\.\d+)?\t(\d+)\t(.+)$")
_MISSING_RE = re.compile(r"No such file or directory")


# ---- Output parsers ----

def parse_available_kb(output: str) -> int:
    """Parse ``df -k --output=avail`` output."""
    match = _AVAIL_RE.search(output)
    if not match:
        raise RemoteCommandError(f"Unable to parse available space from result '{output.strip()}'", output=output)
    return int(match.group(1))


def parse_used_kb(output: str) -> int:
    """Parse ``du -ks`` output."""
    match = _USED_RE.match(output)
    if not match:
        raise RemoteCommandError(f"Unable to parse used space from result '{output.strip()}'", output=output)
    return int(match.group(1))


def parse_listing(output: str) -> list[str]:
    return [line.strip() for line in output.splitlines() if line.strip()]


def parse_file_rows(output: str) -> list[StoredArtifact]:
    """Parse ``find -printf "%T@\\t%s\\t%p\\n"`` rows into artifacts, oldest first."""
    artifacts = []
    for row in output.splitlines():
        if not row.strip():
            continue
        match = _FILE_ROW_RE.match(row)
        if not match:
            raise RemoteCommandError(f"Unable to parse file information from '{row}'", output=output)
        mtime, size_bytes, path = match.groups()
        artifacts.append(StoredArtifact(
            name=posixpath.basename(path),
            size_kb=math.ceil(int(size_bytes) / 1024),
            mtime=float(mtime),
        ))
    return sorted(artifacts, key=lambda artifact: artifact.mtime)


# ---- SSH store ----

class SSHRemote:
    """RemoteStore implementation running shell commands over SSH.

    The connection is opened on first use and reused until ``close()``.
    """

    def __init__(self, config: RemoteConfig) -> None:
        self.config = config
        self.commands = config.commands
        self._client: paramiko.SSHClient | None = None

    def __enter__(self) -> SSHRemote:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def _create_ssh_client(self) -> paramiko.SSHClient:
        """Create and connect SSH client with standard settings."""
        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        client.connect(
            self.config.host,
            port=self.config.port,
            username=self.config.user,
            key_filename=str(self.config.key_path) if self.config.key_path else None,
            timeout=self.config.timeout,
        )
        return client

    def _execute_ssh_command(self, command: str) -> tuple[int, str, str]:
        """Execute SSH command and return (exit_code, stdout, stderr)."""
        try:
            if self._client is None:
                self._client = self._create_ssh_client()
            stdin, stdout, stderr = self._client.exec_command(command, timeout=self.config.timeout)
            exit_code = stdout.channel.recv_exit_status()
            stdout_text = stdout.read().decode("utf-8")
            stderr_text = stderr.read().decode("utf-8")
            return exit_code, stdout_text, stderr_text
        except (paramiko.SSHException, OSError) as e:
            self.close()
            raise RemoteCommandError(
                f"SSH command on {self.config.host} failed: {e}",
                command=command,
            ) from e

    def run(self, command: str, allow_missing: bool = False) -> str:
        """Run ``command`` on the remote host and return its standard output.

        Args:
            command: Shell command line
            allow_missing: Return "" instead of raising when the command
                failed because a path does not exist
        """
        logger.info(f"Running '{command}' on remote system...")
        status, out, err = self._execute_ssh_command(command)
        if status != 0:
            if allow_missing and _MISSING_RE.search(err):
                logger.debug(f"Remote path missing for '{command}'")
                return ""
            message = (err or out).strip()
            raise RemoteCommandError(
                f"Remote command failed with status {status}: '{command}': {message}",
                command=command,
                status=status,
                output=message,
            )
        return out

    @staticmethod
    def _join(path: str, name: str) -> str:
        return posixpath.join(path, name)

    # ---- RemoteStore ----

    def list_directory(self, path: str) -> list[str]:
        output = self.run(self.commands.listing.format(path=shlex.quote(path)), allow_missing=True)
        return parse_listing(output)

    def available_space(self, path: str) -> int:
        return parse_available_kb(self.run(self.commands.space.format(path=shlex.quote(path))))

    def used_space(self, path: str) -> int:
        return parse_used_kb(self.run(self.commands.used.format(path=shlex.quote(path))))

    def rename(self, path: str, from_name: str, to_name: str) -> None:
        self.run(self.commands.rename.format(
            source=shlex.quote(self._join(path, from_name)),
            dest=shlex.quote(self._join(path, to_name)),
        ))

    def delete(self, path: str, names: Sequence[str]) -> None:
        if not names:
            return
        paths = " ".join(shlex.quote(self._join(path, name)) for name in names)
        self.run(self.commands.delete.format(paths=paths))

    def make_path(self, path: str) -> None:
        self.run(self.commands.mkdir.format(path=shlex.quote(path)))

    def list_files(self, path: str) -> list[StoredArtifact]:
        output = self.run(self.commands.files.format(path=shlex.quote(path)))
        return parse_file_rows(output)

    def is_accessible(self) -> tuple[bool, str]:
        """Check that the remote base path can be listed."""
        try:
            self.run(f"test -d {shlex.quote(self.config.path)}")
        except RemoteCommandError as e:
            return False, str(e)
        return True, f"{self.config.destination}:{self.config.path} is accessible"
