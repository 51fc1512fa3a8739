"""Constants and default values for applock.

This module centralizes the values pinned by the lock primitives of the
coordination store, along with timeout and logging defaults.
"""

# ==================== LOCK PRIMITIVES ====================

# sp_getapplock accepts @Resource as nvarchar(255)
MAX_RESOURCE_ID_LENGTH: int = 255

LOCK_MODE_EXCLUSIVE: str = "Exclusive"
DEFAULT_DB_PRINCIPAL: str = "public"

# APPLOCK_MODE returns this when the owner holds nothing on the resource
NO_LOCK_MODE: str = "NoLock"

# ==================== TIMEOUTS ====================

NO_WAIT: int = 0  # Fail immediately when the resource is held
WAIT_FOREVER: int = -1  # Block until granted, canceled or chosen as deadlock victim

# ==================== LOGGING DEFAULTS ====================

VALID_LOG_LEVELS: tuple[str, ...] = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
VALID_LOG_FORMATS: tuple[str, ...] = ("text", "json")
