"""Pytest configuration and fixtures for applock tests.

The fake store below emulates SQL Server application locks closely enough
for the handle and probe tests: exclusive grants per owner, recursive grants
for the same owner, blocking waits with timeouts, and release of session
locks on close and transaction locks on commit/rollback.
"""

from __future__ import annotations

import itertools
import threading
import time
from types import SimpleNamespace

import pytest
from sqlalchemy.exc import OperationalError

from applock.database import set_engine
from applock.locks.results import LockScope

_ids = itertools.count(1)


class FakeAppLockStore:
    """In-memory emulation of the store's exclusive application locks."""

    def __init__(self):
        self._cond = threading.Condition()
        self._holders: dict[str, list] = {}

    def acquire(self, owner: tuple, resource_id: str, timeout_ms: int) -> int:
        deadline = None if timeout_ms < 0 else time.monotonic() + timeout_ms / 1000
        waited = False
        with self._cond:
            while True:
                holder = self._holders.get(resource_id)
                if holder is None:
                    self._holders[resource_id] = [owner, 1]
                    return 1 if waited else 0
                if holder[0] == owner:
                    holder[1] += 1
                    return 1 if waited else 0
                if deadline is None:
                    self._cond.wait()
                else:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        return -1
                    self._cond.wait(remaining)
                waited = True

    def release(self, owner: tuple, resource_id: str) -> int:
        with self._cond:
            holder = self._holders.get(resource_id)
            if holder is None or holder[0] != owner:
                return -999
            holder[1] -= 1
            if holder[1] == 0:
                del self._holders[resource_id]
                self._cond.notify_all()
            return 0

    def holder_of(self, resource_id: str) -> tuple | None:
        with self._cond:
            holder = self._holders.get(resource_id)
            return None if holder is None else holder[0]

    def drop_owner(self, owner: tuple) -> None:
        with self._cond:
            for resource_id in [rid for rid, holder in self._holders.items() if holder[0] == owner]:
                del self._holders[resource_id]
            self._cond.notify_all()


class FakeTransaction:
    def __init__(self, connection: FakeConnection):
        self.connection = connection
        self.txn_id = next(_ids)
        self.is_active = True

    def _end(self) -> None:
        if not self.is_active:
            return
        self.is_active = False
        self.connection._transaction = None
        self.connection.store.drop_owner(("Transaction", self.txn_id))

    def commit(self) -> None:
        self._end()

    def rollback(self) -> None:
        self._end()


class FakeConnection:
    def __init__(self, engine: FakeEngine, store: FakeAppLockStore):
        self.engine = engine
        self.store = store
        self.session_id = next(_ids)
        self.closed = False
        self.invalidated = False
        self.close_calls = 0
        self._transaction: FakeTransaction | None = None

    @property
    def active_transaction(self) -> FakeTransaction | None:
        return self._transaction

    def in_transaction(self) -> bool:
        return self._transaction is not None

    def begin(self) -> FakeTransaction:
        if self._transaction is not None:
            raise RuntimeError("transaction already begun")
        self._transaction = FakeTransaction(self)
        return self._transaction

    def close(self) -> None:
        self.close_calls += 1
        if self.closed:
            return
        if self._transaction is not None:
            self._transaction.rollback()
        self.closed = True
        self.store.drop_owner(("Session", self.session_id))

    def __enter__(self) -> FakeConnection:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class FakeEngine:
    def __init__(self, store: FakeAppLockStore):
        self.store = store
        self.dialect = SimpleNamespace(name="fake")
        self.connections: list[FakeConnection] = []
        self._lock = threading.Lock()

    def connect(self) -> FakeConnection:
        connection = FakeConnection(self, self.store)
        with self._lock:
            self.connections.append(connection)
        return connection


class FakeAppLockBackend:
    """AppLockBackend over the fake store, recording every primitive call."""

    name = "fake"

    def __init__(self, store: FakeAppLockStore):
        self.store = store
        self.calls: list[tuple] = []
        self.forced_acquire_code: int | None = None
        self.acquire_error: Exception | None = None
        self.release_error: Exception | None = None
        self._lock = threading.Lock()

    def _record(self, *call) -> None:
        with self._lock:
            self.calls.append(call)

    def calls_named(self, name: str) -> list[tuple]:
        with self._lock:
            return [call for call in self.calls if call[0] == name]

    @staticmethod
    def _check_open(connection: FakeConnection) -> None:
        if connection.closed:
            raise OperationalError("applock", {}, Exception("connection is closed"))

    @staticmethod
    def _owner(connection: FakeConnection, scope: LockScope) -> tuple | None:
        if scope is LockScope.TRANSACTION:
            transaction = connection.active_transaction
            return None if transaction is None else ("Transaction", transaction.txn_id)
        return ("Session", connection.session_id)

    def acquire(self, connection, resource_id, scope, timeout_ms) -> int:
        self._record("acquire", resource_id, scope, timeout_ms)
        if self.acquire_error is not None:
            raise self.acquire_error
        self._check_open(connection)
        if self.forced_acquire_code is not None:
            return self.forced_acquire_code
        owner = self._owner(connection, scope)
        if owner is None:
            return -999
        return self.store.acquire(owner, resource_id, timeout_ms)

    def release(self, connection, resource_id, scope) -> int:
        self._record("release", resource_id, scope)
        if self.release_error is not None:
            raise self.release_error
        self._check_open(connection)
        owner = self._owner(connection, scope)
        if owner is None:
            return -999
        return self.store.release(owner, resource_id)

    def is_grantable(self, connection, resource_id, scope) -> bool:
        self._record("is_grantable", resource_id, scope)
        self._check_open(connection)
        holder = self.store.holder_of(resource_id)
        return holder is None or holder == self._owner(connection, LockScope.SESSION)

    def any_locked(self, connection, resource_ids) -> bool:
        self._record("any_locked", tuple(resource_ids))
        self._check_open(connection)
        return any(self.store.holder_of(resource_id) is not None for resource_id in resource_ids)


@pytest.fixture
def store():
    return FakeAppLockStore()


@pytest.fixture
def engine(store):
    return FakeEngine(store)


@pytest.fixture
def backend(store):
    return FakeAppLockBackend(store)


@pytest.fixture(autouse=True)
def reset_default_engine():
    """Never leak a process default engine between tests."""
    set_engine(None)
    yield
    set_engine(None)
