"""Lock backend implementations.

Design principles:
- The database is the only source of truth for lock state.
- Backends issue exactly one statement per primitive; no retries, no
  client-side queueing.
- Transport failures (SQLAlchemy ``DBAPIError``) propagate unchanged.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Sequence
from contextlib import suppress
from typing import Any, Protocol

from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql.elements import TextClause

from applock.core.config import BACKEND_ENV, PRINCIPAL_ENV
from applock.core.constants import DEFAULT_DB_PRINCIPAL, LOCK_MODE_EXCLUSIVE
from applock.core.exceptions import LockBackendUnavailableError
from applock.locks import statements
from applock.locks.results import LockScope


class AppLockBackend(Protocol):
    """Backend abstraction over the store's acquire/release/test primitives."""

    name: str

    def acquire(self, connection: Connection, resource_id: str, scope: LockScope, timeout_ms: int) -> int:
        """Request an exclusive lock. Returns the store's raw result code."""

    def release(self, connection: Connection, resource_id: str, scope: LockScope) -> int:
        """Release a lock held by ``scope`` on ``connection``. 0 = success."""

    def is_grantable(self, connection: Connection, resource_id: str, scope: LockScope) -> bool:
        """Whether an exclusive lock could be granted right now."""

    def any_locked(self, connection: Connection, resource_ids: Sequence[str]) -> bool:
        """Whether at least one resource is held, in a single round trip."""


class MssqlAppLockBackend:
    """SQL Server backend built on sp_getapplock, sp_releaseapplock and APPLOCK_TEST."""

    name = "mssql"

    def __init__(self, principal: str = DEFAULT_DB_PRINCIPAL):
        self.principal = principal

    def acquire(self, connection: Connection, resource_id: str, scope: LockScope, timeout_ms: int) -> int:
        return int(
            self._scalar(
                connection,
                statements.ACQUIRE,
                {
                    "resource": resource_id,
                    "owner": scope.value,
                    "timeout": timeout_ms,
                    "principal": self.principal,
                },
            )
        )

    def release(self, connection: Connection, resource_id: str, scope: LockScope) -> int:
        return int(
            self._scalar(
                connection,
                statements.RELEASE,
                {"resource": resource_id, "owner": scope.value, "principal": self.principal},
            )
        )

    def is_grantable(self, connection: Connection, resource_id: str, scope: LockScope) -> bool:
        return bool(
            self._scalar(
                connection,
                statements.TEST,
                {"resource": resource_id, "owner": scope.value, "principal": self.principal},
            )
        )

    def any_locked(self, connection: Connection, resource_ids: Sequence[str]) -> bool:
        params: dict[str, Any] = {
            "principal": self.principal,
            "mode": LOCK_MODE_EXCLUSIVE,
            # Owner-agnostic for exclusive tests: transaction-scoped holders show up too.
            "owner": LockScope.SESSION.value,
        }
        for i, resource_id in enumerate(resource_ids):
            params[statements.resource_param(i)] = resource_id
        statement = statements.build_any_locked_statement(len(resource_ids))
        return bool(self._scalar(connection, statement, params))

    @staticmethod
    def _scalar(connection: Connection, statement: TextClause, params: dict[str, Any]) -> Any:
        # Leave a borrowed connection as found: end only what SQLAlchemy autobegan.
        autobegun = not connection.in_transaction()
        try:
            value = connection.execute(statement, params).scalar()
        except BaseException:
            if autobegun:
                with suppress(SQLAlchemyError):
                    connection.rollback()
            raise
        if autobegun:
            connection.commit()
        return value


_BACKENDS: dict[str, type[MssqlAppLockBackend]] = {
    "mssql": MssqlAppLockBackend,
}


def create_lock_backend(
    backend_name: str | None = None,
    *,
    dialect_name: str | None = None,
    principal: str | None = None,
    logger: logging.Logger | None = None,
) -> AppLockBackend:
    """Create lock backend from explicit value, environment override, or dialect."""
    log = logger or logging.getLogger(__name__)
    requested = (backend_name or os.environ.get(BACKEND_ENV) or dialect_name or "").strip().lower()

    backend_cls = _BACKENDS.get(requested)
    if backend_cls is None:
        log.warning("No application lock backend for '%s'", requested or "<unknown>")
        raise LockBackendUnavailableError(
            "Application locks are not supported by this database",
            dialect=requested or None,
            details=f"supported: {', '.join(sorted(_BACKENDS))}",
        )
    return backend_cls(principal or os.environ.get(PRINCIPAL_ENV) or DEFAULT_DB_PRINCIPAL)


def resolve_backend(backend: AppLockBackend | None, bind: Any) -> AppLockBackend:
    """Return ``backend`` or one matching the dialect of ``bind`` (engine or connection)."""
    if backend is not None:
        return backend
    dialect = getattr(bind, "dialect", None)
    return create_lock_backend(dialect_name=getattr(dialect, "name", None))
