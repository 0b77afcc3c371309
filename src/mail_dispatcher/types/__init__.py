"""Type definitions and protocols for mail-dispatcher.

This package provides:
- Data models (immutable dataclasses)
- Protocol definitions (structural subtyping interfaces)
"""

from mail_dispatcher.types.models import (
    DeliveryFailure,
    DeliveryResult,
    DeliverySuccess,
    DispatchOutcome,
    FailureReason,
    HealthStatus,
    Message,
    MessageKey,
    RateWindow,
    SendResult,
)
from mail_dispatcher.types.protocols import DeliveryProvider, HTTPClient

__all__ = [
    # Data models
    "DeliveryFailure",
    "DeliveryResult",
    "DeliverySuccess",
    "DispatchOutcome",
    "FailureReason",
    "HealthStatus",
    "Message",
    "MessageKey",
    "RateWindow",
    "SendResult",
    # Protocols
    "DeliveryProvider",
    "HTTPClient",
]
