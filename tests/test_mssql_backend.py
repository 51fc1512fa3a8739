"""Tests for the SQL Server backend statements and backend selection."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.exc import DBAPIError, OperationalError

from applock.core.exceptions import LockBackendUnavailableError
from applock.locks import statements
from applock.locks.backends import MssqlAppLockBackend, create_lock_backend, resolve_backend
from applock.locks.results import LockScope


def _connection(scalar=0, in_transaction=False) -> MagicMock:
    connection = MagicMock()
    connection.in_transaction.return_value = in_transaction
    connection.execute.return_value.scalar.return_value = scalar
    return connection


def _executed(connection: MagicMock):
    statement, params = connection.execute.call_args.args
    return statement, params


class TestMssqlAppLockBackend:
    def test_acquire_issues_getapplock(self):
        connection = _connection(scalar=1)

        code = MssqlAppLockBackend().acquire(connection, "invoicing", LockScope.SESSION, 5000)

        assert code == 1
        statement, params = _executed(connection)
        assert statement is statements.ACQUIRE
        assert params == {"resource": "invoicing", "owner": "Session", "timeout": 5000, "principal": "public"}

    def test_acquire_in_transaction_uses_transaction_owner(self):
        connection = _connection(scalar=0, in_transaction=True)

        MssqlAppLockBackend().acquire(connection, "invoicing", LockScope.TRANSACTION, 0)

        _, params = _executed(connection)
        assert params["owner"] == "Transaction"

    def test_autobegun_transaction_is_committed(self):
        connection = _connection(in_transaction=False)

        MssqlAppLockBackend().acquire(connection, "invoicing", LockScope.SESSION, 0)

        connection.commit.assert_called_once()

    def test_caller_transaction_is_never_committed(self):
        connection = _connection(in_transaction=True)

        MssqlAppLockBackend().acquire(connection, "invoicing", LockScope.TRANSACTION, 0)
        MssqlAppLockBackend().release(connection, "invoicing", LockScope.TRANSACTION)

        connection.commit.assert_not_called()

    def test_release_issues_guarded_releaseapplock(self):
        connection = _connection(scalar=-999)

        code = MssqlAppLockBackend(principal="dbo").release(connection, "invoicing", LockScope.SESSION)

        assert code == -999
        statement, params = _executed(connection)
        assert statement is statements.RELEASE
        assert params == {"resource": "invoicing", "owner": "Session", "principal": "dbo"}
        assert "APPLOCK_MODE" in statement.text
        assert "sp_releaseapplock" in statement.text

    @pytest.mark.parametrize(("scalar", "expected"), [(1, True), (0, False), (True, True), (False, False)])
    def test_is_grantable(self, scalar, expected):
        connection = _connection(scalar=scalar)

        assert MssqlAppLockBackend().is_grantable(connection, "invoicing", LockScope.SESSION) is expected
        statement, _ = _executed(connection)
        assert statement is statements.TEST

    def test_any_locked_batches_all_resources(self):
        connection = _connection(scalar=True)

        assert MssqlAppLockBackend().any_locked(connection, ["a", "b", "c"]) is True

        connection.execute.assert_called_once()
        statement, params = _executed(connection)
        assert statement.text.count("APPLOCK_TEST") == 3
        assert "SELECT ~@p_0 | ~@p_1 | ~@p_2" in statement.text
        assert params == {
            "principal": "public",
            "mode": "Exclusive",
            "owner": "Session",
            "resource_0": "a",
            "resource_1": "b",
            "resource_2": "c",
        }

    def test_any_locked_false_when_nothing_held(self):
        assert MssqlAppLockBackend().any_locked(_connection(scalar=False), ["a"]) is False

    def test_store_errors_propagate(self):
        connection = _connection()
        failure = OperationalError("sp_getapplock", {}, Exception("login timeout"))
        connection.execute.side_effect = failure

        with pytest.raises(OperationalError) as exc_info:
            MssqlAppLockBackend().acquire(connection, "invoicing", LockScope.SESSION, 0)

        assert exc_info.value is failure
        connection.commit.assert_not_called()

    def test_failed_statement_rolls_back_autobegun_transaction(self):
        connection = _connection(in_transaction=False)
        connection.execute.side_effect = OperationalError("sp_getapplock", {}, Exception("deadlock"))

        with pytest.raises(OperationalError):
            MssqlAppLockBackend().release(connection, "invoicing", LockScope.SESSION)

        connection.rollback.assert_called_once()
        connection.commit.assert_not_called()

    def test_failed_statement_leaves_callers_transaction_alone(self):
        connection = _connection(in_transaction=True)
        connection.execute.side_effect = OperationalError("sp_getapplock", {}, Exception("deadlock"))

        with pytest.raises(OperationalError):
            MssqlAppLockBackend().acquire(connection, "invoicing", LockScope.TRANSACTION, 0)

        connection.rollback.assert_not_called()
        connection.commit.assert_not_called()

    def test_failed_statement_leaves_real_connection_outside_transaction(self):
        # sqlite rejects the T-SQL batch, which stands in for any store error.
        engine = create_engine("sqlite://")
        try:
            with engine.connect() as connection:
                with pytest.raises(DBAPIError):
                    MssqlAppLockBackend().acquire(connection, "invoicing", LockScope.SESSION, 0)

                assert connection.in_transaction() is False
                with connection.begin():
                    assert connection.execute(text("SELECT 1")).scalar() == 1
        finally:
            engine.dispose()


class TestStatements:
    def test_single_resource_batch(self):
        statement = statements.build_any_locked_statement(1)

        assert "DECLARE @p_0 bit = (SELECT APPLOCK_TEST(:principal, :resource_0, :mode, :owner))" in statement.text
        assert statement.text.rstrip().endswith("SELECT ~@p_0")

    def test_batch_requires_a_resource(self):
        with pytest.raises(ValueError):
            statements.build_any_locked_statement(0)

    def test_acquire_is_exclusive(self):
        assert "@LockMode = 'Exclusive'" in statements.ACQUIRE.text

    def test_release_is_guarded_by_held_mode(self):
        assert "<> 'NoLock'" in statements.RELEASE.text


class TestBackendSelection:
    def test_mssql_dialect(self, monkeypatch):
        monkeypatch.delenv("APPLOCK_BACKEND", raising=False)
        monkeypatch.delenv("APPLOCK_PRINCIPAL", raising=False)

        backend = create_lock_backend(dialect_name="mssql")

        assert isinstance(backend, MssqlAppLockBackend)
        assert backend.principal == "public"

    def test_unsupported_dialect(self, monkeypatch):
        monkeypatch.delenv("APPLOCK_BACKEND", raising=False)

        with pytest.raises(LockBackendUnavailableError) as exc_info:
            create_lock_backend(dialect_name="sqlite")

        assert exc_info.value.dialect == "sqlite"

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("APPLOCK_BACKEND", "MSSQL")
        monkeypatch.setenv("APPLOCK_PRINCIPAL", "dbo")

        backend = create_lock_backend(dialect_name="sqlite")

        assert isinstance(backend, MssqlAppLockBackend)
        assert backend.principal == "dbo"

    def test_explicit_name_wins(self, monkeypatch):
        monkeypatch.setenv("APPLOCK_BACKEND", "sqlite")

        backend = create_lock_backend("mssql", principal="app_role")

        assert backend.principal == "app_role"

    def test_resolve_keeps_supplied_backend(self):
        supplied = MssqlAppLockBackend()

        assert resolve_backend(supplied, SimpleNamespace(dialect=SimpleNamespace(name="sqlite"))) is supplied

    def test_resolve_from_bind_dialect(self, monkeypatch):
        monkeypatch.delenv("APPLOCK_BACKEND", raising=False)

        backend = resolve_backend(None, SimpleNamespace(dialect=SimpleNamespace(name="mssql")))

        assert isinstance(backend, MssqlAppLockBackend)
