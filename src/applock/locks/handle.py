"""Scoped exclusive lock on a named resource.

A ``LockHandle`` that exists has been granted its lock: acquisition happens
in the constructor and any refusal raises. Lock lifetime is delegated to the
database: a session-scoped lock lives as long as the connection, a
transaction-scoped lock until commit or rollback.

Handles are single-use and not shared between threads. Two handles for the
same resource on the same connection acquire recursively and release
independently; disposing either may release the lock under the other.
"""

from __future__ import annotations

import logging
from types import TracebackType
from typing import Any

from sqlalchemy.engine import Connection, Engine, Transaction

from applock.core.constants import NO_WAIT
from applock.core.exceptions import InvalidArgumentError, LockUnavailableError
from applock.core.logging import with_log_context
from applock.database import get_engine
from applock.locks.backends import AppLockBackend, resolve_backend
from applock.locks.probe import check_lock
from applock.locks.resources import Lockable, display_name, validate_resource, validate_timeout
from applock.locks.results import LockResult, LockScope


def _is_open(connection: Any) -> bool:
    return connection is not None and not connection.closed and not getattr(connection, "invalidated", False)


def _is_alive(transaction: Any) -> bool:
    return bool(transaction.is_active) and _is_open(getattr(transaction, "connection", None))


class LockHandle:
    """Exclusive lock on ``resource`` held for the lifetime of the handle.

    Args:
        resource: What to lock; needs a non-empty ``resource_id``
        connection: Borrowed connection to lock on. When omitted the handle
            opens its own from ``engine`` and releases the lock by closing it.
        transaction: Transaction of ``connection`` to scope the lock to. The
            lock then ends at commit or rollback.
        timeout_ms: 0 = fail immediately, N = wait up to N ms, -1 = wait forever
        engine: Engine for owned connections and ``check_lock``; defaults to
            the borrowed connection's engine or the process default engine
        backend: Lock primitives; selected from the database dialect if omitted
        logger: Logger to report through

    Raises:
        InvalidArgumentError: bad resource, timeout, or transaction
        LockUnavailableError: the store did not grant the lock
        StoreUnavailableError: the acquire statement itself failed

    Use as a context manager::

        with LockHandle(LockResource("invoicing", "Invoicing run")):
            run_invoicing()
    """

    def __init__(
        self,
        resource: Lockable,
        connection: Connection | None = None,
        transaction: Transaction | None = None,
        timeout_ms: int = NO_WAIT,
        *,
        engine: Engine | None = None,
        backend: AppLockBackend | None = None,
        logger: logging.Logger | None = None,
    ):
        validate_resource(resource)
        validate_timeout(timeout_ms)

        self.resource = resource
        self.scope = LockScope.NONE
        self.result: LockResult | None = None
        self._disposed = False

        if connection is None:
            if transaction is not None:
                raise InvalidArgumentError(
                    "transaction cannot be supplied without the connection it belongs to",
                    argument="transaction",
                )
            self.engine = engine or get_engine()
            self.backend = resolve_backend(backend, self.engine)
            self.connection = self.engine.connect()
            self.transaction = None
            self.owns_connection = True
        else:
            if transaction is not None and getattr(transaction, "connection", None) is not connection:
                raise InvalidArgumentError(
                    "transaction does not belong to the supplied connection",
                    argument="transaction",
                )
            self.engine = engine or getattr(connection, "engine", None)
            self.backend = resolve_backend(backend, connection)
            self.connection = connection
            self.transaction = transaction
            self.owns_connection = False

        self.scope = LockScope.SESSION if self.transaction is None else LockScope.TRANSACTION
        self.logger = with_log_context(
            logger or logging.getLogger(__name__),
            resource_id=resource.resource_id,
            lock_scope=self.scope.value,
        )

        try:
            code = self.backend.acquire(self.connection, resource.resource_id, self.scope, timeout_ms)
        except BaseException:
            if self.owns_connection:
                self._close_owned_connection()
            raise

        self.result = LockResult.from_code(code)
        if not self.result.granted:
            self.logger.info(
                "Lock on '%s' not granted: %s (%s)", display_name(resource), self.result.name, code
            )
            if self.owns_connection:
                self._close_owned_connection()
            raise LockUnavailableError(resource, self.result, code)

        self.logger.debug("Acquired lock on '%s' (%s)", display_name(resource), self.result.name)

    @property
    def disposed(self) -> bool:
        return self._disposed

    def unlock(self) -> bool:
        """Release the lock without closing the connection.

        Returns True iff the store reports the release succeeded; releasing a
        lock that is no longer held returns False. Usually unnecessary since
        disposal releases the lock.
        """
        code = self.backend.release(self.connection, self.resource.resource_id, self.scope)
        released = code == LockResult.SUCCESS
        self.logger.debug("Release of '%s' returned %s", display_name(self.resource), code)
        return released

    def check_lock(self) -> bool:
        """Whether this handle's resource is locked, probed from a separate connection."""
        return check_lock(self.resource, engine=self.engine, backend=self.backend)

    def dispose(self) -> None:
        """Release the lock. Idempotent and never raises."""
        if self._disposed:
            return
        self._disposed = True

        if self.owns_connection:
            # Closing the session is the release for session scope.
            self._close_owned_connection()
            return

        if not _is_open(self.connection) or (self.transaction is not None and not _is_alive(self.transaction)):
            self.logger.debug("Lock scope of '%s' already ended; nothing to release", display_name(self.resource))
            return

        try:
            self.unlock()
        except Exception as e:
            self.logger.warning("Failed to release lock on '%s': %s", display_name(self.resource), e)

    def _close_owned_connection(self) -> None:
        try:
            self.connection.close()
        except Exception as e:
            self.logger.warning("Failed to close lock connection for '%s': %s", display_name(self.resource), e)

    def __enter__(self) -> LockHandle:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.dispose()

    def __repr__(self) -> str:
        state = "disposed" if self._disposed else "held"
        return f"<LockHandle {self.resource.resource_id!r} scope={self.scope.value} {state}>"
