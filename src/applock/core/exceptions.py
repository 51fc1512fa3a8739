"""Custom exceptions for applock.

All exception classes are designed to provide clear, actionable error messages
with context about what went wrong. Store transport failures are not wrapped:
they surface as SQLAlchemy's own ``DBAPIError`` subclasses.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy.exc import DBAPIError

if TYPE_CHECKING:
    from applock.locks.resources import Lockable
    from applock.locks.results import LockResult

# Connection broken, primitive missing, server error: propagated unchanged.
StoreUnavailableError = DBAPIError


class AppLockError(Exception):
    """Base exception for all applock errors."""

    def __init__(self, message: str, details: str | None = None):
        self.message = message
        self.details = details
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class InvalidArgumentError(AppLockError, ValueError):
    """Exception raised when a caller passes an unusable argument.

    Examples:
        - Missing or empty resource identifier
        - Empty resource collection for a multi-resource check
        - A transaction that does not belong to the supplied connection

    Always a caller bug; never retried.
    """

    def __init__(self, message: str, argument: str | None = None, details: str | None = None):
        self.argument = argument
        super().__init__(message, details)


class LockUnavailableError(AppLockError):
    """Exception raised when the store refuses to grant a lock.

    Covers every non-success acquisition code (timeout, cancellation,
    deadlock victim, call error). Callers that need to tell these apart
    inspect ``result`` or the raw ``code``.

    Attributes:
        resource_id: Identifier the lock was requested for
        resource_name: Human-readable label, if the resource has one
        result: Mapped acquisition result
        code: Raw integer returned by the store
    """

    def __init__(self, resource: Lockable, result: LockResult, code: int | None = None):
        self.resource_id = resource.resource_id
        self.resource_name = getattr(resource, "resource_name", None)
        self.result = result
        self.code = int(result) if code is None else code

        message = f'Cannot obtain lock on "{self.resource_name or self.resource_id}". Another process may be using it.'
        super().__init__(message, f"{result.name} ({self.code})")


class LockBackendUnavailableError(AppLockError):
    """Raised when no lock backend exists for the database in use."""

    def __init__(self, message: str, dialect: str | None = None, details: str | None = None):
        self.dialect = dialect
        super().__init__(message, details)


class ConfigurationError(AppLockError):
    """Exception raised for configuration-related errors.

    Examples:
        - No database URL configured
        - Non-numeric timeout in the environment
    """

    def __init__(self, message: str, field: str | None = None, details: str | None = None):
        self.field = field
        super().__init__(message, details)
