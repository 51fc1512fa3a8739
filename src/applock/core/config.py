"""Configuration dataclasses for applock.

These dataclasses centralize all configuration options for type safety
and easy testing. They can be created from the environment, from
command-line arguments, or used directly in code.
"""

from __future__ import annotations

import argparse
import os
from collections.abc import Mapping
from dataclasses import dataclass, field

from applock.core.exceptions import ConfigurationError

DATABASE_URL_ENV = "APPLOCK_DATABASE_URL"
DEFAULT_TIMEOUT_ENV = "APPLOCK_DEFAULT_TIMEOUT_MS"
PRINCIPAL_ENV = "APPLOCK_PRINCIPAL"
BACKEND_ENV = "APPLOCK_BACKEND"
LOG_LEVEL_ENV = "LOG_LEVEL"
LOG_FORMAT_ENV = "APPLOCK_LOG_FORMAT"


def _int_from_env(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer", field=name, details=f"got {raw!r}") from e


@dataclass
class DatabaseConfig:
    """Configuration for the coordination database.

    Attributes:
        url: SQLAlchemy database URL (default: None, must be supplied)
        use_null_pool: Close server sessions when connections close (default: True)
        echo: Log every statement SQLAlchemy emits (default: False)
    """

    url: str | None = None
    use_null_pool: bool = True
    echo: bool = False


@dataclass
class LockConfig:
    """Configuration for lock acquisition.

    Attributes:
        default_timeout_ms: Wait used by the applock CLI when --timeout-ms is not given (default: 0 = no wait)
        principal: Database principal passed to the lock primitives (default: "public")
        backend: Backend name override; None selects by dialect (default: None)
    """

    default_timeout_ms: int = 0
    principal: str = "public"
    backend: str | None = None


@dataclass
class LogConfig:
    """Configuration for logging behavior.

    Attributes:
        level: Logging level string (default: "INFO")
        format: "text" or "json" (default: "text")
    """

    level: str = "INFO"
    format: str = "text"


@dataclass
class AppLockConfig:
    """Master configuration for applock."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    lock: LockConfig = field(default_factory=LockConfig)
    log: LogConfig = field(default_factory=LogConfig)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> AppLockConfig:
        """Create configuration from environment variables."""
        env = os.environ if environ is None else environ
        timeout_ms = _int_from_env(env, DEFAULT_TIMEOUT_ENV, 0)
        if timeout_ms < -1:
            raise ConfigurationError(
                f"{DEFAULT_TIMEOUT_ENV} must be -1, 0 or a positive number of milliseconds",
                field=DEFAULT_TIMEOUT_ENV,
            )
        return cls(
            database=DatabaseConfig(url=env.get(DATABASE_URL_ENV) or None),
            lock=LockConfig(
                default_timeout_ms=timeout_ms,
                principal=env.get(PRINCIPAL_ENV) or "public",
                backend=env.get(BACKEND_ENV) or None,
            ),
            log=LogConfig(
                level=env.get(LOG_LEVEL_ENV, "INFO"),
                format=env.get(LOG_FORMAT_ENV, "text"),
            ),
        )

    @classmethod
    def from_args(cls, args: argparse.Namespace, environ: Mapping[str, str] | None = None) -> AppLockConfig:
        """Create configuration from parsed command-line arguments.

        Arguments that were not given fall back to the environment.
        """
        config = cls.from_env(environ)
        if getattr(args, "url", None):
            config.database.url = args.url
        if getattr(args, "log_level", None):
            config.log.level = args.log_level
        if getattr(args, "log_format", None):
            config.log.format = args.log_format
        return config
