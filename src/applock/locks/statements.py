"""SQL Server statements for the application lock primitives.

@LockTimeout is in milliseconds (0 = no wait, -1 = infinite).
@LockOwner is 'Session' or 'Transaction'.
"""

from typing import Final

from sqlalchemy import text
from sqlalchemy.sql.elements import TextClause

from applock.core.constants import NO_LOCK_MODE

ACQUIRE: Final = text("""
    DECLARE @result int
    EXEC @result = sp_getapplock
        @Resource = :resource,
        @LockMode = 'Exclusive',
        @LockOwner = :owner,
        @LockTimeout = :timeout,
        @DbPrincipal = :principal
    SELECT @result
""")

# sp_releaseapplock raises error 1223 when the owner holds nothing, so the
# call is skipped and the call-error code returned instead.
RELEASE: Final = text(f"""
    DECLARE @result int = -999
    IF APPLOCK_MODE(:principal, :resource, :owner) <> '{NO_LOCK_MODE}'
        EXEC @result = sp_releaseapplock
            @Resource = :resource,
            @LockOwner = :owner,
            @DbPrincipal = :principal
    SELECT @result
""")

# 1 = the lock could be granted right now, 0 = someone holds it
TEST: Final = text("SELECT APPLOCK_TEST(:principal, :resource, 'Exclusive', :owner)")


def resource_param(index: int) -> str:
    return f"resource_{index}"


def build_any_locked_statement(count: int) -> TextClause:
    """Build one batch answering "is any of ``count`` resources locked?".

    Every resource gets its own APPLOCK_TEST; the final select is
    ``~@p_0 | ~@p_1 | ...`` so all tests run in a single round trip.
    """
    if count < 1:
        raise ValueError("count must be at least 1")

    declarations = [
        f"DECLARE @p_{i} bit = (SELECT APPLOCK_TEST(:principal, :{resource_param(i)}, :mode, :owner))"
        for i in range(count)
    ]
    # ~ inverts: a locked resource makes its term 1
    expression = " | ".join(f"~@p_{i}" for i in range(count))
    return text("\n".join([*declarations, f"SELECT {expression}"]))
