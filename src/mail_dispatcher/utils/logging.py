"""Structured logging infrastructure with syslog integration and correlation ID tracking.

This module provides the logging setup for mail-dispatcher: correlation IDs
stored in a ContextVar so every log line of a single ``send`` call can be
traced across retries and provider rotations, secret redaction, and
optional syslog output.
"""

import contextvars
import logging
import logging.handlers
import sys
from collections.abc import Mapping
from typing import Final, cast, override

from mail_dispatcher.utils.sanitization import (
    sanitize_args,
    sanitize_mapping,
    sanitize_value,
)

# Correlation ID context variable, inherited by asyncio tasks
correlation_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id",
    default=None,
)

DEFAULT_LOG_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - [%(correlation_id)s] - %(message)s"

SYSLOG_LOG_FORMAT: Final[str] = (
    "mail-dispatcher[%(process)d]: %(levelname)s - [%(correlation_id)s] - %(name)s - %(message)s"
)

DEFAULT_SYSLOG_ADDRESS: Final[str] = "/dev/log"

# Attributes every LogRecord carries; anything else arrived through extra={}
_STANDARD_RECORD_ATTRS: Final[frozenset[str]] = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "thread",
        "threadName",
        "taskName",
        "exc_info",
        "exc_text",
        "stack_info",
        "message",
        "asctime",
        "correlation_id",
    }
)


class CorrelationIDFilter(logging.Filter):
    """Logging filter that adds the current correlation ID to log records."""

    @override
    def filter(self, record: logging.LogRecord) -> bool:
        """Add correlation ID to log record from ContextVar.

        Args:
            record: Log record to enhance with correlation ID

        Returns:
            True to allow the record to be logged
        """
        correlation_id = correlation_id_var.get()
        record.correlation_id = correlation_id if correlation_id is not None else "N/A"
        return True


class SecretRedactingFilter(logging.Filter):
    """Logging filter that redacts sensitive information from log records.

    Sanitizes the message text, the ``args`` tuple used for %-formatting and
    any structured fields passed through ``extra``.
    """

    @override
    def filter(self, record: logging.LogRecord) -> bool:
        """Sanitize sensitive information from log record.

        Args:
            record: Log record to sanitize

        Returns:
            True to allow the record to be logged (always)
        """
        if isinstance(record.msg, str):
            sanitized_msg = sanitize_value(record.msg)
            if isinstance(sanitized_msg, str):
                record.msg = sanitized_msg

        if record.args and isinstance(record.args, tuple):
            record.args = sanitize_args(record.args)
        elif isinstance(record.args, Mapping):
            record.args = sanitize_mapping(cast(Mapping[str, object], record.args))

        for attr_name in list(record.__dict__.keys()):
            if attr_name in _STANDARD_RECORD_ATTRS or attr_name.startswith("_"):
                continue
            attr_value: object = getattr(record, attr_name)  # pyright: ignore[reportAny]
            setattr(record, attr_name, sanitize_value(attr_value, field_name=attr_name))

        return True


def configure_logging(
    *,
    log_level: str = "INFO",
    enable_syslog: bool = False,
    syslog_address: str = DEFAULT_SYSLOG_ADDRESS,
    enable_console: bool = True,
) -> None:
    """Configure application logging.

    Sets up the root logger with correlation ID tracking, secret redaction,
    an optional syslog handler and an optional console handler. Existing
    root handlers are removed so repeated calls do not duplicate output.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        enable_syslog: Enable syslog handler
        syslog_address: Syslog socket address
        enable_console: Enable console output handler (stderr)

    Example:
        >>> configure_logging(log_level="DEBUG", enable_syslog=False)
        >>> set_correlation_id("abc-123")
        >>> get_logger(__name__).info("Dispatching", extra={"recipient": "a@b.c"})
    """
    root_logger = logging.getLogger()

    level = getattr(logging, log_level.upper(), logging.INFO)
    root_logger.setLevel(level)

    root_logger.handlers.clear()

    correlation_filter = CorrelationIDFilter()
    secret_filter = SecretRedactingFilter()

    if enable_syslog:
        try:
            syslog_handler = logging.handlers.SysLogHandler(
                address=syslog_address,
                facility=logging.handlers.SysLogHandler.LOG_DAEMON,
            )
            syslog_handler.setFormatter(logging.Formatter(SYSLOG_LOG_FORMAT))
            syslog_handler.addFilter(correlation_filter)
            syslog_handler.addFilter(secret_filter)
            root_logger.addHandler(syslog_handler)
        except OSError as exc:
            # Syslog socket missing (containers, macOS); keep console output only
            print(
                f"Warning: Could not connect to syslog at {syslog_address}: {exc}",
                file=sys.stderr,
            )

    if enable_console:
        # stdout is reserved for command output
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(logging.Formatter(DEFAULT_LOG_FORMAT))
        console_handler.addFilter(correlation_filter)
        console_handler.addFilter(secret_filter)
        root_logger.addHandler(console_handler)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for the specified module.

    Args:
        name: Logger name (typically __name__ from calling module)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def set_correlation_id(correlation_id: str) -> contextvars.Token[str | None]:
    """Set the correlation ID for the current context.

    The ID is inherited by asyncio tasks created afterwards within the same
    context.

    Args:
        correlation_id: Unique identifier for correlation (e.g., UUID hex)

    Returns:
        Token that restores the previous value when passed to ``reset_correlation_id``
    """
    return correlation_id_var.set(correlation_id)


def reset_correlation_id(token: contextvars.Token[str | None]) -> None:
    """Restore the correlation ID that was active before ``set_correlation_id``."""
    correlation_id_var.reset(token)


def get_correlation_id() -> str | None:
    """Get the current correlation ID from context.

    Returns:
        Current correlation ID or None if not set
    """
    return correlation_id_var.get()


def clear_correlation_id() -> None:
    """Clear the correlation ID from the current context."""
    _ = correlation_id_var.set(None)


def log_with_context(
    logger: logging.Logger,
    level: int,
    message: str,
    *,
    extra: Mapping[str, object] | None = None,
) -> None:
    """Log a message with additional context fields.

    Args:
        logger: Logger instance to use
        level: Logging level (e.g., logging.INFO)
        message: Log message
        extra: Additional context fields to include in log

    Example:
        >>> log_with_context(
        ...     get_logger(__name__),
        ...     logging.INFO,
        ...     "Message delivered",
        ...     extra={"provider_name": "primary", "attempt": 1},
        ... )
    """
    context = dict(extra) if extra else {}

    correlation_id = get_correlation_id()
    if correlation_id:
        context["correlation_id"] = correlation_id

    logger.log(level, message, extra=context)
