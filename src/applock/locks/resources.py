"""Lockable resources and argument validation shared by handles and probes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from applock.core.constants import MAX_RESOURCE_ID_LENGTH, WAIT_FOREVER
from applock.core.exceptions import InvalidArgumentError


@runtime_checkable
class Lockable(Protocol):
    """Anything that names a critical section."""

    @property
    def resource_id(self) -> str:
        """Unique key in the store's lock namespace, e.g. ``ctrrecalc1234``."""

    @property
    def resource_name(self) -> str | None:
        """Display name used in error messages, e.g. ``Contract recalculation 1234``."""


@dataclass(frozen=True)
class LockResource:
    """Value object implementing ``Lockable``."""

    resource_id: str
    resource_name: str | None = None

    def __post_init__(self) -> None:
        validate_resource(self)

    def __str__(self) -> str:
        return display_name(self)


def display_name(resource: Lockable) -> str:
    """Human-readable name of a resource, falling back to its identifier."""
    return getattr(resource, "resource_name", None) or resource.resource_id


def validate_resource(resource: Lockable | None, argument: str = "resource") -> None:
    resource_id = getattr(resource, "resource_id", None)
    if not isinstance(resource_id, str) or not resource_id:
        raise InvalidArgumentError(f"{argument} must have a non-empty resource_id", argument=argument)
    if len(resource_id) > MAX_RESOURCE_ID_LENGTH:
        raise InvalidArgumentError(
            f"{argument} resource_id exceeds {MAX_RESOURCE_ID_LENGTH} characters",
            argument=argument,
            details=f"got {len(resource_id)}",
        )


def validate_timeout(timeout_ms: int) -> None:
    if isinstance(timeout_ms, bool) or not isinstance(timeout_ms, int):
        raise InvalidArgumentError("timeout_ms must be an integer", argument="timeout_ms")
    if timeout_ms < WAIT_FOREVER:
        raise InvalidArgumentError(
            "timeout_ms must be -1 (wait forever), 0 (no wait) or a positive number of milliseconds",
            argument="timeout_ms",
            details=f"got {timeout_ms}",
        )
