"""Engine management for the coordination database.

Lock handles and probes that are not given a connection open one from the
process default engine, configured through ``APPLOCK_DATABASE_URL`` or
installed explicitly with ``set_engine``.
"""

from __future__ import annotations

import logging
import threading
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool

from applock.core.config import DATABASE_URL_ENV, AppLockConfig, DatabaseConfig
from applock.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_engine: Engine | None = None
_engine_lock = threading.Lock()


def create_lock_engine(url: str | None = None, *, config: DatabaseConfig | None = None, **engine_kwargs: Any) -> Engine:
    """Create an engine suitable for session-scoped application locks.

    With ``use_null_pool`` (the default) closing a Connection closes the
    server session, which is what releases session-scoped locks. A pooled
    connection would keep them alive after close.
    """
    db_config = config or DatabaseConfig()
    resolved_url = url or db_config.url
    if not resolved_url:
        raise ConfigurationError("No database URL configured", field=DATABASE_URL_ENV)

    if db_config.use_null_pool:
        engine_kwargs.setdefault("poolclass", NullPool)
    engine_kwargs.setdefault("echo", db_config.echo)
    engine = create_engine(resolved_url, **engine_kwargs)
    logger.debug("Created lock engine for %s", engine.url.render_as_string(hide_password=True))
    return engine


def get_engine() -> Engine:
    """Return the process default engine, creating it from the environment on first use."""
    global _engine
    with _engine_lock:
        if _engine is None:
            _engine = create_lock_engine(config=AppLockConfig.from_env().database)
        return _engine


def set_engine(engine: Engine | None) -> None:
    """Install ``engine`` as the process default; ``None`` clears it."""
    global _engine
    with _engine_lock:
        _engine = engine
