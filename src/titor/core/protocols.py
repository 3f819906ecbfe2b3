# Author: PB
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/titor/core/protocols.py

"""
Interfaces of the collaborators the planning core depends on.

The core consumes their results and never runs commands itself. Concrete
implementations live in titor.storage; tests use in-memory fakes.
"""

from pathlib import Path
from typing import Protocol, Sequence

from titor.core.reclaimer import StoredArtifact


class RemoteStore(Protocol):
    """Coarse, text-command-level access to the remote backup store.

    Every method raises a CollaboratorError subclass on failure.
    """

    def list_directory(self, path: str) -> list[str]:
        """Names of the entries in ``path``; empty if ``path`` does not exist yet."""
        ...

    def available_space(self, path: str) -> int:
        """Free space on the filesystem holding ``path``, in KB."""
        ...

    def used_space(self, path: str) -> int:
        """Space used by everything under ``path``, in KB."""
        ...

    def rename(self, path: str, from_name: str, to_name: str) -> None:
        ...

    def delete(self, path: str, names: Sequence[str]) -> None:
        """Recursively delete ``names`` inside ``path``, in the given order."""
        ...

    def make_path(self, path: str) -> None:
        ...

    def list_files(self, path: str) -> list[StoredArtifact]:
        """Plain files directly inside ``path``, oldest first."""
        ...


class TransferEngine(Protocol):
    """The file transfer primitive (rsync-style)."""

    def dry_run_size(
        self,
        source: Path,
        destination: str,
        compare_chain: Sequence[str] = (),
        delete_extraneous: bool = False,
    ) -> int:
        """KB that ``transfer`` would send; 0 exactly when nothing differs.

        Args:
            source: Local directory to back up
            destination: Remote directory to write into
            compare_chain: Earlier backups (directory names next to
                ``destination``), oldest first
            delete_extraneous: Remove destination files missing from source
        """
        ...

    def transfer(
        self,
        source: Path,
        destination: str,
        compare_chain: Sequence[str] = (),
        delete_extraneous: bool = False,
    ) -> int:
        """Copy ``source`` into ``destination``; returns KB transferred."""
        ...

    def copy_file(self, local_file: Path, destination_dir: str) -> None:
        """Copy a single local file into a remote directory."""
        ...
