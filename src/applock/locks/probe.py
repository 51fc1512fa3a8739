"""Lock probes: query lock state without acquiring anything.

Each probe opens its own connection, so it also sees locks held by the
calling process on other connections.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy.engine import Engine

from applock.core.exceptions import InvalidArgumentError
from applock.database import get_engine
from applock.locks.backends import AppLockBackend, resolve_backend
from applock.locks.resources import Lockable, validate_resource
from applock.locks.results import LockScope

logger = logging.getLogger(__name__)


def check_lock(
    resource: Lockable,
    *,
    engine: Engine | None = None,
    backend: AppLockBackend | None = None,
) -> bool:
    """Return True if ``resource`` is currently locked by anyone.

    Tests with owner "Session"; the store ignores the owner for exclusive
    tests, so transaction-scoped holders are detected too.
    """
    validate_resource(resource)
    bind = engine or get_engine()
    lock_backend = resolve_backend(backend, bind)
    with bind.connect() as connection:
        grantable = lock_backend.is_grantable(connection, resource.resource_id, LockScope.SESSION)
    logger.debug("Probe of '%s': %s", resource.resource_id, "free" if grantable else "locked")
    return not grantable


def check_locks(
    resources: Iterable[Lockable | None] | None,
    *,
    engine: Engine | None = None,
    backend: AppLockBackend | None = None,
) -> bool:
    """Return True if at least one of ``resources`` is currently locked.

    All resources are tested in a single round trip. ``None`` entries and
    entries without an identifier are ignored.

    Raises:
        InvalidArgumentError: nothing is left to test
    """
    resource_ids = [
        resource.resource_id
        for resource in (resources or ())
        if resource is not None and getattr(resource, "resource_id", None)
    ]
    if not resource_ids:
        raise InvalidArgumentError("resources is None or empty", argument="resources")

    bind = engine or get_engine()
    lock_backend = resolve_backend(backend, bind)
    with bind.connect() as connection:
        locked = lock_backend.any_locked(connection, resource_ids)
    logger.debug("Probe of %d resources: %s", len(resource_ids), "locked" if locked else "free")
    return locked
