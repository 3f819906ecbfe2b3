# Author: PB
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/titor/storage/rsync.py

"""
rsync-based transfer engine.

Incrementals are made with ``--compare-dest``: a file is only sent when no
earlier backup in the chain already holds an identical copy. rsync checks the
reference directories in the order given and stops at the first match, so the
chain is passed newest first.
"""

import math
import re
import shlex
from pathlib import Path
from typing import Sequence

from loguru import logger

from titor.config.manager import RemoteConfig
from titor.system.exceptions import TransferError
from titor.system.execution import CommandExecutor as ce

# rsync refuses more than this many --compare-dest/--link-dest options
MAX_COMPARE_DEST = 20

_TRANSFERRED_RE = re.compile(r"Total transferred file size:\s*([\d,]+)\s*bytes")


def parse_transferred_kb(stats_output: str) -> int:
    """Extract the transferred size from rsync ``--stats`` output, in KB (rounded up)."""
    match = _TRANSFERRED_RE.search(stats_output)
    if not match:
        raise TransferError(
            "Unable to parse transferred size from rsync output",
            output=stats_output,
        )
    size_bytes = int(match.group(1).replace(",", ""))
    return math.ceil(size_bytes / 1024)


class RsyncTransfer:
    """Transfer engine pushing a local tree to the remote over rsync/ssh."""

    def __init__(self, remote: RemoteConfig, exclude: Sequence[str] = (), timeout: float | None = None):
        self.remote = remote
        self.exclude = list(exclude)
        self.timeout = timeout

    def _ssh_command(self) -> str:
        cmd = ["ssh", "-p", str(self.remote.port)]
        if self.remote.key_path:
            cmd.extend(["-i", str(self.remote.key_path)])
        return shlex.join(cmd)

    def build_command(
        self,
        source: Path,
        destination: str,
        compare_chain: Sequence[str] = (),
        delete_extraneous: bool = False,
        dry_run: bool = False,
    ) -> list[str]:
        if len(compare_chain) > MAX_COMPARE_DEST:
            raise TransferError(
                f"Compare chain of {len(compare_chain)} backups exceeds rsync's limit of "
                f"{MAX_COMPARE_DEST}; lower inc_count"
            )

        cmd = ["rsync", "-a", "--stats"]
        if dry_run:
            cmd.append("--dry-run")
        if delete_extraneous:
            cmd.append("--delete")
        # relative reference paths are resolved against the destination directory
        for reference in reversed(compare_chain):
            cmd.append(f"--compare-dest=../{reference}")
        for pattern in self.exclude:
            cmd.append(f"--exclude={pattern}")
        cmd.extend(["-e", self._ssh_command()])
        cmd.append(f"{str(source).rstrip('/')}/")
        cmd.append(f"{self.remote.destination}:{destination.rstrip('/')}/")
        return cmd

    def dry_run_size(
        self,
        source: Path,
        destination: str,
        compare_chain: Sequence[str] = (),
        delete_extraneous: bool = False,
    ) -> int:
        cmd = self.build_command(source, destination, compare_chain, delete_extraneous, dry_run=True)
        result = ce.run_local(cmd, timeout=self.timeout, error=TransferError)
        size_kb = parse_transferred_kb(result.stdout)
        logger.debug(f"Dry run into {destination}: {size_kb} KB would be transferred")
        return size_kb

    def transfer(
        self,
        source: Path,
        destination: str,
        compare_chain: Sequence[str] = (),
        delete_extraneous: bool = False,
    ) -> int:
        cmd = self.build_command(source, destination, compare_chain, delete_extraneous)
        result = ce.run_local(cmd, timeout=self.timeout, error=TransferError)
        size_kb = parse_transferred_kb(result.stdout)
        logger.info(f"Transferred {size_kb} KB from {source} into {destination}")
        return size_kb

    def copy_file(self, local_file: Path, destination_dir: str) -> None:
        cmd = ["scp", "-q", "-P", str(self.remote.port)]
        if self.remote.key_path:
            cmd.extend(["-i", str(self.remote.key_path)])
        cmd.append(str(local_file))
        cmd.append(f"{self.remote.destination}:{destination_dir.rstrip('/')}/")
        ce.run_local(cmd, timeout=self.timeout, error=TransferError)
        logger.info(f"Copied {local_file.name} to {destination_dir}")
