"""Mail Dispatcher - Deliver outbound messages through failover providers.

This package provides a dispatch engine that suppresses duplicate messages,
rate-limits sends, retries failed deliveries with exponential backoff, fails
over across an ordered list of provider plugins and keeps an audit log of
every attempt.
"""

from mail_dispatcher.core.dispatcher import MessageDispatcher
from mail_dispatcher.types import FailureReason, Message, SendResult

__all__ = ["FailureReason", "Message", "MessageDispatcher", "SendResult"]
