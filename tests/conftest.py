# Author: PB
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# tests/conftest.py

"""
Shared test fixtures for the titor test suite.

FakeRemote and FakeTransfer are in-memory stand-ins for the SSH remote and
rsync; they record every call so tests can assert on ordering.
"""

import math
import posixpath
from pathlib import Path
from typing import Callable, Sequence

import pytest

from titor.config.manager import Config, RemoteConfig, RetentionPolicy, SourceConfig
from titor.core.reclaimer import StoredArtifact


class FakeRemote:
    """In-memory RemoteStore.

    Directory listings come back sorted, like ``ls -1``.
    """

    def __init__(self, available_kb: int = 10_000_000):
        self.entries: dict[str, set[str]] = {}
        self.files: dict[str, list[StoredArtifact]] = {}
        self.available_kb = available_kb
        self.calls: list[tuple] = []
        self.errors: dict[str, Exception] = {}

    def _record(self, op: str, *args) -> None:
        self.calls.append((op, *args))
        if op in self.errors:
            raise self.errors[op]

    def ops(self) -> list[str]:
        return [call[0] for call in self.calls]

    def mutations(self) -> list[tuple]:
        return [call for call in self.calls if call[0] in ("rename", "delete")]

    def add(self, path: str, *names: str) -> None:
        self.entries.setdefault(path, set()).update(names)

    # RemoteStore

    def list_directory(self, path: str) -> list[str]:
        self._record("list", path)
        return sorted(self.entries.get(path, set()))

    def available_space(self, path: str) -> int:
        self._record("space", path)
        return self.available_kb

    def used_space(self, path: str) -> int:
        self._record("used", path)
        return sum(artifact.size_kb for artifact in self.files.get(path, []))

    def rename(self, path: str, from_name: str, to_name: str) -> None:
        self._record("rename", path, from_name, to_name)
        names = self.entries[path]
        names.remove(from_name)
        names.add(to_name)

    def delete(self, path: str, names: Sequence[str]) -> None:
        self._record("delete", path, tuple(names))
        self.entries.get(path, set()).difference_update(names)
        if path in self.files:
            self.files[path] = [a for a in self.files[path] if a.name not in names]

    def make_path(self, path: str) -> None:
        self._record("mkdir", path)
        self.entries.setdefault(path, set())

    def list_files(self, path: str) -> list[StoredArtifact]:
        self._record("files", path)
        return sorted(self.files.get(path, []), key=lambda a: a.mtime)


class FakeTransfer:
    """In-memory TransferEngine writing directory names into a FakeRemote."""

    def __init__(self, remote: FakeRemote, size_kb: int | Callable[..., int] = 100):
        self.remote = remote
        self.size_kb = size_kb
        self.calls: list[tuple] = []

    def _size(self, destination: str, compare_chain: Sequence[str]) -> int:
        if callable(self.size_kb):
            return self.size_kb(destination, tuple(compare_chain))
        return self.size_kb

    def dry_run_size(self, source: Path, destination: str, compare_chain=(), delete_extraneous=False) -> int:
        self.calls.append(("dry_run", destination, tuple(compare_chain), delete_extraneous))
        self.remote.calls.append(("dry_run", destination))
        return self._size(destination, compare_chain)

    def transfer(self, source: Path, destination: str, compare_chain=(), delete_extraneous=False) -> int:
        self.calls.append(("transfer", destination, tuple(compare_chain), delete_extraneous))
        self.remote.calls.append(("transfer", destination))
        parent, name = posixpath.split(destination)
        self.remote.add(parent, name)
        return self._size(destination, compare_chain)

    def copy_file(self, local_file: Path, destination_dir: str) -> None:
        self.calls.append(("copy", local_file.name, destination_dir))
        self.remote.calls.append(("copy", local_file.name))
        stored = self.remote.files.setdefault(destination_dir, [])
        mtime = max((a.mtime for a in stored), default=0.0) + 1
        stored.append(StoredArtifact(
            name=local_file.name,
            size_kb=math.ceil(local_file.stat().st_size / 1024),
            mtime=mtime,
        ))


@pytest.fixture
def fake_remote():
    return FakeRemote()


@pytest.fixture
def fake_transfer(fake_remote):
    return FakeTransfer(fake_remote)


@pytest.fixture
def policy():
    return RetentionPolicy(full_count=2, inc_count=10)


@pytest.fixture
def source_dir(tmp_path):
    """A small local tree to back up."""
    data = tmp_path / "data"
    data.mkdir()
    (data / "file1.txt").write_text("content1")
    return data


@pytest.fixture
def titor_config(source_dir, tmp_path):
    return Config(
        remote=RemoteConfig(host="backup.example.org", user="backup", path="/srv/backups"),
        retention=RetentionPolicy(full_count=2, inc_count=3, margin_kb=50),
        sources=[SourceConfig(name="www", path=source_dir)],
        lock_file=tmp_path / "titor.pid",
    )


@pytest.fixture
def titor_config_text():
    """Standard config YAML text template."""
    return """
remote:
  host: backup.example.org
  user: backup
  path: /srv/backups
retention:
  full_count: 2
  inc_count: 10
  margin_kb: 1024
sources:
  - name: www
    path: {source_path}
    exclude: ["cache/"]
    retention:
      inc_count: 6
lock_file: {lock_file}
"""


@pytest.fixture
def write_config(tmp_path, titor_config_text, source_dir):
    """Write a config file with safe permissions; returns its path."""
    def _write(text: str | None = None, mode: int = 0o600) -> Path:
        path = tmp_path / "titor.yml"
        content = text if text is not None else titor_config_text.format(
            source_path=source_dir, lock_file=tmp_path / "titor.pid"
        )
        path.write_text(content)
        path.chmod(mode)
        return path
    return _write
