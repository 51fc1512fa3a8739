"""Lock result codes and lock scopes.

Member values are pinned to the return codes documented for SQL Server's
``sp_getapplock`` and must not be renumbered.
"""

from __future__ import annotations

from enum import Enum, IntEnum


class LockResult(IntEnum):
    """Result of an exclusive-lock acquisition request."""

    SUCCESS = 0  # Granted synchronously
    SUCCESS_AFTER_WAIT = 1  # Granted after incompatible locks were released
    TIMED_OUT = -1
    CANCELED_BY_CALLER = -2
    CHOSEN_AS_DEADLOCK_VICTIM = -3
    OTHER_ERROR = -999  # Parameter validation or other call error

    @classmethod
    def from_code(cls, code: int) -> LockResult:
        """Map a raw store code onto a member; unknown codes are OTHER_ERROR."""
        try:
            return cls(int(code))
        except (TypeError, ValueError):
            return cls.OTHER_ERROR

    @property
    def granted(self) -> bool:
        return self in (LockResult.SUCCESS, LockResult.SUCCESS_AFTER_WAIT)


class LockScope(str, Enum):
    """Lifetime a held lock is tied to.

    SESSION and TRANSACTION values double as the store's lock owner strings.
    NONE marks a handle whose scope has not been decided yet.
    """

    NONE = "None"
    SESSION = "Session"  # Released when the connection closes
    TRANSACTION = "Transaction"  # Released at commit or rollback
