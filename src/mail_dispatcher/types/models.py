"""Data models for mail-dispatcher.

This module defines the immutable dataclasses exchanged between the dispatch
engine, its providers and its callers.
"""

import hashlib
import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(slots=True, frozen=True)
class Message:
    """Outbound message submitted by a caller.

    Immutable once constructed; the dispatcher never copies or rewrites it.
    """

    recipient: str
    subject: str
    body: str


@dataclass(slots=True, frozen=True)
class MessageKey:
    """Deterministic identity of a message used for deduplication.

    Derived from recipient, subject and body only. Two messages with identical
    fields always share a key, regardless of when they were submitted.
    """

    digest: str

    @classmethod
    def for_message(cls, message: Message) -> "MessageKey":
        """Derive the key for a message.

        The fields are JSON-encoded as an array before hashing so that field
        boundaries cannot shift between values.

        Args:
            message: Message to identify

        Returns:
            Key shared by every message with the same three fields
        """
        encoded = json.dumps(
            [message.recipient, message.subject, message.body],
            ensure_ascii=False,
            separators=(",", ":"),
        ).encode("utf-8")
        return cls(digest=hashlib.sha256(encoded).hexdigest())

    @property
    def short(self) -> str:
        """Abbreviated digest for log output."""
        return self.digest[:12]


@dataclass(slots=True, frozen=True)
class DeliverySuccess:
    """Provider accepted the message."""

    provider_name: str


@dataclass(slots=True, frozen=True)
class DeliveryFailure:
    """Provider rejected the message or could not be reached."""

    provider_name: str
    reason: str


type DeliveryResult = DeliverySuccess | DeliveryFailure


@dataclass(slots=True, frozen=True)
class DispatchOutcome:
    """Audit record for a single attempt or a terminal attempt group.

    Appended to the audit log and never mutated afterwards.
    """

    message: Message
    succeeded: bool
    note: str
    key: MessageKey
    provider_name: str | None = None
    attempt: int | None = None
    timestamp: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-friendly representation of the outcome."""
        return {
            "recipient": self.message.recipient,
            "subject": self.message.subject,
            "succeeded": self.succeeded,
            "note": self.note,
            "key": self.key.digest,
            "provider_name": self.provider_name,
            "attempt": self.attempt,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(slots=True, frozen=True)
class RateWindow:
    """Snapshot of the fixed rate-limit window."""

    count: int
    window_start: float


class FailureReason(StrEnum):
    """Discriminant carried by unsuccessful send results."""

    DUPLICATE = "duplicate"
    RATE_LIMITED = "rate limited"
    EXHAUSTED = "all providers exhausted"
    TIMED_OUT = "timed out"


@dataclass(slots=True, frozen=True)
class SendResult:
    """Result returned to callers of ``MessageDispatcher.send``.

    Callers branch on ``success`` and ``error``; dispatch failures are never
    raised as exceptions.
    """

    success: bool
    provider_name: str | None = None
    error: FailureReason | None = None
    attempts: int = 0

    @classmethod
    def rejected(cls, reason: FailureReason) -> "SendResult":
        """Build a result for a send rejected before any provider contact."""
        return cls(success=False, error=reason)


@dataclass(slots=True)
class HealthStatus:
    """Provider health status.

    Tracks the most recent delivery result for a provider, including the
    number of consecutive failures.
    """

    is_healthy: bool
    last_check: datetime
    consecutive_failures: int
    error_message: str | None
