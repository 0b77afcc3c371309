"""Core dispatch components: dedup, rate limiting, retry/failover and audit."""

from mail_dispatcher.core.audit_log import AuditLog
from mail_dispatcher.core.dedup import DedupGuard
from mail_dispatcher.core.dispatcher import MessageDispatcher
from mail_dispatcher.core.rate_limiter import FixedWindowRateLimiter
from mail_dispatcher.core.retry import EngineResult, RetryFailoverEngine, backoff_delay

__all__ = [
    "AuditLog",
    "DedupGuard",
    "EngineResult",
    "FixedWindowRateLimiter",
    "MessageDispatcher",
    "RetryFailoverEngine",
    "backoff_delay",
]
