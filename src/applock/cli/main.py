"""CLI entrypoint."""

from __future__ import annotations

import logging
import sys
import time

from applock.cli.parser import parse_arguments
from applock.core.config import AppLockConfig
from applock.core.exceptions import (
    AppLockError,
    ConfigurationError,
    InvalidArgumentError,
    LockBackendUnavailableError,
    LockUnavailableError,
    StoreUnavailableError,
)
from applock.core.logging import setup_logging
from applock.database import create_lock_engine
from applock.locks.backends import create_lock_backend
from applock.locks.handle import LockHandle
from applock.locks.probe import check_lock, check_locks
from applock.locks.resources import LockResource

EXIT_OK = 0
EXIT_LOCKED = 1
EXIT_USAGE = 2
EXIT_STORE = 3

logger = logging.getLogger(__name__)


def _exit_error(message: str, code: int) -> int:
    print(f"Error: {message}", file=sys.stderr)
    return code


def _run_check(args, engine, backend) -> int:
    resources = [LockResource(resource_id) for resource_id in args.resources]
    if len(resources) == 1:
        locked = check_lock(resources[0], engine=engine, backend=backend)
    else:
        locked = check_locks(resources, engine=engine, backend=backend)
    print("locked" if locked else "free")
    return EXIT_LOCKED if locked else EXIT_OK


def _run_hold(args, config: AppLockConfig, engine, backend) -> int:
    resource = LockResource(args.resource, args.name)
    timeout_ms = config.lock.default_timeout_ms if args.timeout_ms is None else args.timeout_ms
    try:
        handle = LockHandle(resource, timeout_ms=timeout_ms, engine=engine, backend=backend)
    except LockUnavailableError as e:
        print(str(e), file=sys.stderr)
        return EXIT_LOCKED

    with handle:
        print(f"Holding lock on '{resource}' for {args.seconds:g}s ({handle.result.name})")
        time.sleep(args.seconds)
    print(f"Released lock on '{resource}'")
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the applock command"""
    args = parse_arguments(argv)

    try:
        config = AppLockConfig.from_args(args)
    except ConfigurationError as e:
        return _exit_error(str(e), EXIT_USAGE)
    setup_logging(config.log.level, config.log.format)

    try:
        engine = create_lock_engine(config=config.database)
        backend = create_lock_backend(
            config.lock.backend,
            dialect_name=engine.dialect.name,
            principal=config.lock.principal,
        )
        if args.command == "check":
            return _run_check(args, engine, backend)
        return _run_hold(args, config, engine, backend)
    except (ConfigurationError, InvalidArgumentError, LockBackendUnavailableError) as e:
        return _exit_error(str(e), EXIT_USAGE)
    except StoreUnavailableError as e:
        logger.debug("Store error", exc_info=True)
        return _exit_error(f"Database unavailable: {e.orig}", EXIT_STORE)
    except AppLockError as e:
        return _exit_error(str(e), EXIT_USAGE)


if __name__ == "__main__":
    sys.exit(main())
