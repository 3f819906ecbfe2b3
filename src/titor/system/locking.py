# Author: PB
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/titor/system/locking.py

"""
Single-run locking for titor.

Only one titor process may work on the remote at a time. The lock is a PID
file holding JSON that describes the run holding it. A run that fails leaves
its lock file behind on purpose: the remote may be half-rotated, and the next
run must wait until someone has looked at it and run ``titor unlock``.
"""

import getpass
import os
import socket
import sys
from datetime import datetime, UTC
from pathlib import Path

import loguru
import orjson

from titor.system.exceptions import LockConflictError, LockError

logger = loguru.logger


class LockInfo:
    """Information about an active lock."""

    def __init__(self, pid: int, hostname: str, user_id: str, command: str, timestamp: str):
        self.pid = pid
        self.hostname = hostname
        self.user_id = user_id
        self.command = command
        self.timestamp = timestamp

    def to_dict(self) -> dict[str, str | int]:
        return {
            "pid": self.pid,
            "hostname": self.hostname,
            "user_id": self.user_id,
            "command": self.command,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict[str, str | int]) -> "LockInfo":
        return cls(
            pid=int(data["pid"]),
            hostname=str(data["hostname"]),
            user_id=str(data["user_id"]),
            command=str(data["command"]),
            timestamp=str(data["timestamp"]),
        )

    @classmethod
    def for_current_process(cls, command: str) -> "LockInfo":
        return cls(
            pid=os.getpid(),
            hostname=socket.gethostname(),
            user_id=getpass.getuser(),
            command=command,
            timestamp=datetime.now(UTC).isoformat(),
        )

    def describe(self) -> str:
        return (
            f"pid {self.pid} on {self.hostname} ({self.user_id}) "
            f"running '{self.command}' since {self.timestamp}"
        )


def read_lock_info(lock_file: Path) -> LockInfo | None:
    """Parse ``lock_file``; None if it is missing.

    A file that is not valid lock JSON still counts as a held lock and is
    reported with placeholder values.
    """
    try:
        content = lock_file.read_bytes()
    except FileNotFoundError:
        return None
    try:
        return LockInfo.from_dict(orjson.loads(content))
    except (orjson.JSONDecodeError, KeyError, TypeError, ValueError) as e:
        logger.warning(f"Lock file {lock_file} is unreadable: {e}")
        return LockInfo(pid=0, hostname="unknown", user_id="unknown", command="unknown", timestamp="unknown")


class ProcessLock:
    """
    PID file lock for one titor run.

    Usage as context manager:
        with ProcessLock(Path("/var/run/titor.pid"), command="backup"):
            # Run backups
            pass

    The lock is released when the block exits normally and kept when it
    raises.
    """

    def __init__(self, lock_file: Path, command: str | None = None):
        self.lock_file = Path(lock_file)
        self.command = command or " ".join(sys.argv)
        self._acquired = False

    def __enter__(self) -> "ProcessLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type is None:
            self.release()
        else:
            logger.warning(
                f"Run failed; leaving lock file {self.lock_file} in place. "
                f"Check the remote, then run 'titor unlock'."
            )

    @property
    def acquired(self) -> bool:
        return self._acquired

    def acquire(self) -> None:
        """
        Create the lock file.

        Raises:
            LockConflictError: If the lock file already exists
            LockError: If the lock file cannot be written
        """
        if self._acquired:
            logger.warning("Lock already acquired by this instance")
            return

        info = LockInfo.for_current_process(self.command)
        try:
            self.lock_file.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(self.lock_file, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o644)
        except FileExistsError:
            current = read_lock_info(self.lock_file)
            holder = current.describe() if current else "another process"
            raise LockConflictError(f"Lock file {self.lock_file} is held by {holder}")
        except OSError as e:
            raise LockError(f"Failed to create lock file {self.lock_file}: {e}") from e

        with os.fdopen(fd, "wb") as f:
            f.write(orjson.dumps(info.to_dict(), option=orjson.OPT_INDENT_2))

        self._acquired = True
        logger.debug(f"Acquired lock {self.lock_file} for '{self.command}'")

    def release(self) -> None:
        if not self._acquired:
            logger.debug("No lock to release")
            return
        self.lock_file.unlink(missing_ok=True)
        self._acquired = False
        logger.debug(f"Released lock {self.lock_file}")


def force_unlock(lock_file: Path) -> LockInfo | None:
    """Remove ``lock_file`` regardless of who holds it.

    Returns:
        The removed lock's information, or None if there was no lock
    """
    info = read_lock_info(lock_file)
    if info is None:
        return None
    try:
        lock_file.unlink()
    except OSError as e:
        raise LockError(f"Failed to remove lock file {lock_file}: {e}") from e
    logger.info(f"Removed lock held by {info.describe()}")
    return info
