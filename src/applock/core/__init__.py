"""Core module - Foundation components with no internal dependencies.

This module provides the basic building blocks used throughout the package:
- Version information
- Custom exceptions
- Configuration dataclasses
- Constants and defaults
- Logging helpers
"""

from applock.core.version import __version__

from applock.core.exceptions import (
    AppLockError,
    ConfigurationError,
    InvalidArgumentError,
    LockBackendUnavailableError,
    LockUnavailableError,
    StoreUnavailableError,
)

from applock.core.config import (
    AppLockConfig,
    DatabaseConfig,
    LockConfig,
    LogConfig,
)

from applock.core.constants import (
    DEFAULT_DB_PRINCIPAL,
    LOCK_MODE_EXCLUSIVE,
    MAX_RESOURCE_ID_LENGTH,
    NO_WAIT,
    WAIT_FOREVER,
)

from applock.core.logging import (
    JSONFormatter,
    SensitiveDataFilter,
    setup_logging,
    with_log_context,
)

__all__ = [
    # Version
    '__version__',
    # Exceptions
    'AppLockError',
    'ConfigurationError',
    'InvalidArgumentError',
    'LockBackendUnavailableError',
    'LockUnavailableError',
    'StoreUnavailableError',
    # Config dataclasses
    'AppLockConfig',
    'DatabaseConfig',
    'LockConfig',
    'LogConfig',
    # Constants
    'DEFAULT_DB_PRINCIPAL',
    'LOCK_MODE_EXCLUSIVE',
    'MAX_RESOURCE_ID_LENGTH',
    'NO_WAIT',
    'WAIT_FOREVER',
    # Logging
    'JSONFormatter',
    'SensitiveDataFilter',
    'setup_logging',
    'with_log_context',
]
