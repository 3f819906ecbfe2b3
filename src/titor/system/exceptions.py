# Author: PB
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/titor/system/exceptions.py

"""
Titor-specific exception classes.

Capacity errors abort a run before anything on the remote is touched.
Collaborator errors wrap failures of the remote shell, rsync, scp or the
database dump tool and are propagated as-is; nothing here is retried.
"""


class TitorError(Exception):
    """Base exception for all titor errors."""
    pass


class ConfigError(TitorError):
    """Raised when configuration is missing, unreadable or invalid."""
    pass


class ParseError(TitorError):
    """Raised when a remote catalog entry cannot be parsed."""

    def __init__(self, message: str, entry: str = None, reason: str = None):
        self.entry = entry
        self.reason = reason
        super().__init__(message)


# === CAPACITY ERRORS ===

class CapacityError(TitorError):
    """Base class for remote capacity failures."""

    def __init__(self, message: str, required_kb: int = None):
        self.required_kb = required_kb
        super().__init__(message)


class InsufficientSpaceError(CapacityError):
    """Not enough free space on the remote for the estimated transfer plus margin."""

    def __init__(self, message: str, required_kb: int = None, available_kb: int = None):
        self.available_kb = available_kb
        super().__init__(message, required_kb=required_kb)


class QuotaExceededError(CapacityError):
    """Even evicting every stored artifact cannot make room under the quota."""

    def __init__(self, message: str, required_kb: int = None, reclaimable_kb: int = None):
        self.reclaimable_kb = reclaimable_kb
        super().__init__(message, required_kb=required_kb)


# === COLLABORATOR ERRORS ===

class CollaboratorError(TitorError):
    """A remote command, transfer or dump failed."""

    def __init__(self, message: str, command: str = None, status: int = None, output: str = None):
        self.command = command
        self.status = status
        self.output = output
        super().__init__(message)


class RemoteCommandError(CollaboratorError):
    """A command run on the remote host failed or produced unparseable output."""
    pass


class TransferError(CollaboratorError):
    """rsync or scp failed, or its summary could not be parsed."""
    pass


class DumpError(CollaboratorError):
    """The database dump tool failed."""
    pass


# === LOCKING ERRORS ===

class LockError(TitorError):
    """Base exception for locking errors."""
    pass


class LockConflictError(LockError):
    """Raised when the lock file is held by another run."""
    pass
