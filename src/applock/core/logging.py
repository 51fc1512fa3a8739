"""Logging helpers for applock.

The library only ever logs through module loggers; handlers are installed
by ``setup_logging``, which the CLI calls and applications may call.
"""

import contextlib
import json
import logging
import os
import re
import sys
from datetime import UTC, datetime

from applock.core.constants import VALID_LOG_FORMATS, VALID_LOG_LEVELS
from applock.core.config import LOG_LEVEL_ENV

_LOG_RECORD_RESERVED_FIELDS = set(logging.makeLogRecord({}).__dict__.keys()) | {"message", "asctime", "extra_fields"}
_REDACTED_VALUE = "[REDACTED]"
_SENSITIVE_FIELD_NAMES = {"password", "passwd", "pwd", "secret", "token", "access_token", "connection_string"}

# user:password@host in database URLs
_URL_PASSWORD_PATTERN = re.compile(r"(?P<prefix>[A-Za-z][A-Za-z0-9+.-]*://[^:/@\s]+:)(?P<value>[^@\s]+)(?P<suffix>@)")
# PWD=...; in ODBC connection strings
_KEY_VALUE_PASSWORD_PATTERN = re.compile(r"(?i)(?P<prefix>\b(?:pwd|password)\s*=\s*)(?P<value>\{[^}]*\}|[^;\s&]+)")


def _safe_record_message(record: logging.LogRecord) -> str:
    try:
        return record.getMessage()
    except Exception:
        # Keep logging resilient when message formatting fails.
        return f"{getattr(record, 'msg', '')} [log-message-format-error]"


def _redact_message(message: str) -> str:
    redacted = _URL_PASSWORD_PATTERN.sub(lambda m: f"{m.group('prefix')}{_REDACTED_VALUE}{m.group('suffix')}", message)
    return _KEY_VALUE_PASSWORD_PATTERN.sub(lambda m: f"{m.group('prefix')}{_REDACTED_VALUE}", redacted)


def _is_reserved_or_private_record_key(key: object) -> bool:
    if not isinstance(key, str):
        return True
    return key in _LOG_RECORD_RESERVED_FIELDS or key.startswith("_")


class SensitiveDataFilter(logging.Filter):
    """Best-effort redaction of database passwords in log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = _redact_message(_safe_record_message(record))
        record.args = ()

        for key, value in list(record.__dict__.items()):
            if _is_reserved_or_private_record_key(key):
                continue
            if key.lower() in _SENSITIVE_FIELD_NAMES:
                record.__dict__[key] = _REDACTED_VALUE
            elif isinstance(value, str):
                record.__dict__[key] = _redact_message(value)
        return True


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging output.

    Each log record is a single JSON object on one line.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": _redact_message(_safe_record_message(record)),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "process": record.process,
            "thread_name": record.threadName,
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        # Contextual fields from with_log_context() and logging's `extra`.
        for key, value in record.__dict__.items():
            if _is_reserved_or_private_record_key(key):
                continue
            log_entry.setdefault(key, value)

        return json.dumps(log_entry, default=str)


class ContextLoggerAdapter(logging.LoggerAdapter):
    """LoggerAdapter that merges contextual fields into record extras."""

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        extra = kwargs.get("extra")
        merged_extra = dict(self.extra)
        if isinstance(extra, dict):
            merged_extra.update(extra)
        kwargs["extra"] = merged_extra
        return msg, kwargs


def _unwrap_logger(logger: logging.Logger | logging.LoggerAdapter | None) -> logging.Logger | None:
    current = logger
    while isinstance(current, logging.LoggerAdapter):
        current = current.logger
    if isinstance(current, logging.Logger):
        return current
    return None


def with_log_context(
    logger: logging.Logger | logging.LoggerAdapter | object, **context: object
) -> logging.Logger | logging.LoggerAdapter | object:
    """Return a logger enriched with persistent contextual fields."""
    if not isinstance(logger, (logging.Logger, logging.LoggerAdapter)):
        # Preserve test doubles/mocks that may not satisfy logging interfaces.
        return logger

    base_logger = _unwrap_logger(logger)
    if base_logger is None:
        return logger

    normalized_context = {k: v for k, v in context.items() if v is not None}
    existing_context = {}
    if isinstance(logger, logging.LoggerAdapter):
        existing_context = dict(getattr(logger, "extra", {}))

    existing_context.update(normalized_context)
    return ContextLoggerAdapter(base_logger, existing_context)


def setup_logging(log_level: str | None = None, log_format: str = "text") -> logging.Logger:
    """Setup console logging for applock.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Output format - "text" (default) or "json" for structured logging

    Returns:
        The package logger

    Priority: 1) Passed parameter, 2) Environment variable LOG_LEVEL, 3) Default INFO
    """
    if log_level is None:
        log_level = os.environ.get(LOG_LEVEL_ENV, "INFO")

    if log_level.upper() not in VALID_LOG_LEVELS:
        print(f"Warning: Invalid log level '{log_level}', using INFO", file=sys.stderr)
        log_level = "INFO"
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    if log_format.lower() not in VALID_LOG_FORMATS:
        print(f"Warning: Invalid log format '{log_format}', using text", file=sys.stderr)
        log_format = "text"

    # Clear any existing handlers from root logger
    for handler in logging.root.handlers[:]:
        with contextlib.suppress(Exception):
            handler.close()
        logging.root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    if log_format.lower() == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s - %(levelname)s - %(name)s - %(message)s"))
    handler.setLevel(numeric_level)
    handler.addFilter(SensitiveDataFilter())
    logging.root.addHandler(handler)
    logging.root.setLevel(numeric_level)

    logger = logging.getLogger("applock")
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
    return logger
