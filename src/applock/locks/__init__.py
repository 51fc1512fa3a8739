"""Locking subsystem for cross-process coordination.

This package maps scoped lock handles onto the coordination database's
native application locks, behind backend abstractions so callers can use a
stable API.
"""

from applock.locks.backends import (
    AppLockBackend,
    MssqlAppLockBackend,
    create_lock_backend,
    resolve_backend,
)
from applock.locks.handle import LockHandle
from applock.locks.probe import check_lock, check_locks
from applock.locks.resources import Lockable, LockResource, display_name
from applock.locks.results import LockResult, LockScope

__all__ = [
    "AppLockBackend",
    "LockHandle",
    "LockResource",
    "LockResult",
    "LockScope",
    "Lockable",
    "MssqlAppLockBackend",
    "check_lock",
    "check_locks",
    "create_lock_backend",
    "display_name",
    "resolve_backend",
]
