"""
applock - Cross-process mutual exclusion on database application locks

Guarantees that a block of work identified by a resource name runs in at
most one process at a time, using the coordination database's native
session- and transaction-scoped locks as the single source of truth.
"""

from applock.core import (
    AppLockError,
    ConfigurationError,
    InvalidArgumentError,
    LockBackendUnavailableError,
    LockUnavailableError,
    NO_WAIT,
    StoreUnavailableError,
    WAIT_FOREVER,
    __version__,
)
from applock.database import create_lock_engine, get_engine, set_engine
from applock.locks import (
    LockHandle,
    LockResource,
    LockResult,
    LockScope,
    Lockable,
    check_lock,
    check_locks,
)

__all__ = [
    "AppLockError",
    "ConfigurationError",
    "InvalidArgumentError",
    "LockBackendUnavailableError",
    "LockHandle",
    "LockResource",
    "LockResult",
    "LockScope",
    "LockUnavailableError",
    "Lockable",
    "NO_WAIT",
    "StoreUnavailableError",
    "WAIT_FOREVER",
    "__version__",
    "check_lock",
    "check_locks",
    "create_lock_engine",
    "get_engine",
    "set_engine",
]
