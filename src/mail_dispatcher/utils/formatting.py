"""Pure formatting utilities for human-readable output.

Stateless helpers used by the command-line interface to render send results
and audit-log entries.
"""

from collections.abc import Iterable
from datetime import datetime

from mail_dispatcher.types import DispatchOutcome, SendResult

_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def format_timestamp(timestamp: datetime) -> str:
    """Render a timestamp in local time without sub-second precision.

    Naive timestamps are rendered unchanged.

    Examples:
        >>> format_timestamp(datetime(2024, 1, 1, 12, 0))
        '2024-01-01 12:00:00'
    """
    if timestamp.tzinfo is not None:
        timestamp = timestamp.astimezone()
    return timestamp.strftime(_TIMESTAMP_FORMAT)


def format_outcome(outcome: DispatchOutcome) -> str:
    """Render one audit-log entry as ``<time>: <recipient> - <status> - <note>``."""
    status = "Success" if outcome.succeeded else "Failure"
    return f"{format_timestamp(outcome.timestamp)}: {outcome.message.recipient} - {status} - {outcome.note}"


def format_log(outcomes: Iterable[DispatchOutcome]) -> str:
    """Render audit-log entries one per line, oldest first."""
    return "\n".join(format_outcome(outcome) for outcome in outcomes)


def format_send_result(result: SendResult) -> str:
    """Render a send result the way the command line reports it.

    Examples:
        >>> format_send_result(SendResult(success=True, provider_name="primary", attempts=1))
        'Message sent successfully via primary'
    """
    if result.success:
        return f"Message sent successfully via {result.provider_name}"
    return f"Error: {result.error}"
