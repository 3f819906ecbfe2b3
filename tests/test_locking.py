# Author: PB
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# tests/test_locking.py

"""
Tests for the single-run process lock.

Tests cover acquisition, conflicts, release on clean exit, retention after a
failed run, and forced unlocking.
"""

import os
from datetime import datetime, UTC

import orjson
import pytest

from titor.system.exceptions import LockConflictError, LockError
from titor.system.locking import LockInfo, ProcessLock, force_unlock, read_lock_info


@pytest.fixture
def lock_file(tmp_path):
    return tmp_path / "run" / "titor.pid"


@pytest.fixture
def sample_lock_info():
    return LockInfo(
        pid=12345,
        hostname="testhost",
        user_id="backup",
        command="backup",
        timestamp=datetime.now(UTC).isoformat(),
    )


class TestLockInfo:

    def test_round_trip_dict(self, sample_lock_info):
        restored = LockInfo.from_dict(sample_lock_info.to_dict())
        assert restored.to_dict() == sample_lock_info.to_dict()

    def test_current_process(self):
        info = LockInfo.for_current_process("databases")
        assert info.pid == os.getpid()
        assert info.command == "databases"

    def test_describe(self, sample_lock_info):
        assert "pid 12345 on testhost" in sample_lock_info.describe()


class TestProcessLock:

    def test_acquire_writes_json(self, lock_file):
        lock = ProcessLock(lock_file, command="backup")
        lock.acquire()

        assert lock.acquired
        data = orjson.loads(lock_file.read_bytes())
        assert data["pid"] == os.getpid()
        assert data["command"] == "backup"

        lock.release()
        assert not lock_file.exists()
        assert not lock.acquired

    def test_conflict_while_file_exists(self, lock_file, sample_lock_info):
        lock_file.parent.mkdir(parents=True)
        lock_file.write_bytes(orjson.dumps(sample_lock_info.to_dict()))

        with pytest.raises(LockConflictError, match="testhost"):
            ProcessLock(lock_file, command="backup").acquire()
        # the other run's lock is untouched
        assert read_lock_info(lock_file).pid == 12345

    def test_conflict_is_a_lock_error(self, lock_file):
        with ProcessLock(lock_file, command="first"):
            with pytest.raises(LockError):
                ProcessLock(lock_file, command="second").acquire()

    def test_released_on_clean_exit(self, lock_file):
        with ProcessLock(lock_file, command="backup"):
            assert lock_file.exists()
        assert not lock_file.exists()

    def test_kept_after_failure(self, lock_file):
        with pytest.raises(RuntimeError):
            with ProcessLock(lock_file, command="backup"):
                raise RuntimeError("rsync died")
        assert lock_file.exists()

    def test_double_acquire_is_noop(self, lock_file):
        lock = ProcessLock(lock_file, command="backup")
        lock.acquire()
        lock.acquire()
        lock.release()
        assert not lock_file.exists()

    def test_release_without_acquire(self, lock_file):
        ProcessLock(lock_file).release()
        assert not lock_file.exists()

    def test_unreadable_lock_still_conflicts(self, lock_file):
        lock_file.parent.mkdir(parents=True)
        lock_file.write_text("not json")
        with pytest.raises(LockConflictError):
            ProcessLock(lock_file).acquire()


class TestForceUnlock:

    def test_removes_and_reports(self, lock_file, sample_lock_info):
        lock_file.parent.mkdir(parents=True)
        lock_file.write_bytes(orjson.dumps(sample_lock_info.to_dict()))

        info = force_unlock(lock_file)

        assert info.pid == 12345
        assert not lock_file.exists()

    def test_no_lock(self, lock_file):
        assert force_unlock(lock_file) is None
