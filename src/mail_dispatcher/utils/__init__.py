"""Utility functions and helpers for mail-dispatcher."""

from mail_dispatcher.utils.formatting import (
    format_log,
    format_outcome,
    format_send_result,
    format_timestamp,
)
from mail_dispatcher.utils.sanitization import (
    REDACTED,
    is_sensitive_field,
    sanitize_exception,
    sanitize_url,
    sanitize_value,
)

__all__ = [
    "REDACTED",
    "format_log",
    "format_outcome",
    "format_send_result",
    "format_timestamp",
    "is_sensitive_field",
    "sanitize_exception",
    "sanitize_url",
    "sanitize_value",
]
