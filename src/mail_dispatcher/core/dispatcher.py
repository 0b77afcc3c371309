"""Message dispatcher coordinating dedup, rate limiting and delivery.

``MessageDispatcher.send`` is the single entry point for outbound messages.
Each call runs under its own correlation ID and holds a per-key lock for its
whole duration, so concurrent sends of the same message resolve to one
delivery and a series of duplicates.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from collections.abc import Callable, Sequence
from typing import Self
from uuid import uuid4

from mail_dispatcher.core.audit_log import AuditLog
from mail_dispatcher.core.config import DispatcherConfig, MainConfig
from mail_dispatcher.core.dedup import DedupGuard
from mail_dispatcher.core.rate_limiter import Clock, FixedWindowRateLimiter
from mail_dispatcher.core.retry import RetryFailoverEngine, SleepFunc
from mail_dispatcher.plugins.loader import PluginLoader
from mail_dispatcher.plugins.registry import ProviderRegistry
from mail_dispatcher.types import (
    DeliveryProvider,
    DispatchOutcome,
    FailureReason,
    HealthStatus,
    Message,
    MessageKey,
    SendResult,
)
from mail_dispatcher.utils.http_client import AIOHTTPClient
from mail_dispatcher.utils.logging import (
    get_logger,
    log_with_context,
    reset_correlation_id,
    set_correlation_id,
)

__all__ = ["MessageDispatcher"]

type CorrelationIDFactory = Callable[[], str]

_SLUG_INVALID_CHARS = re.compile(r"[^a-z0-9_-]+")


def _registry_from_providers(
    providers: Sequence[DeliveryProvider],
) -> ProviderRegistry[DeliveryProvider]:
    """Register providers in order under identifiers derived from their names."""
    registry: ProviderRegistry[DeliveryProvider] = ProviderRegistry()
    for index, provider in enumerate(providers, start=1):
        slug = _SLUG_INVALID_CHARS.sub("-", provider.name.strip().lower()).strip("-")
        if not slug or not slug[0].isalpha():
            slug = f"provider-{slug or index}"
        candidate = slug
        suffix = 2
        while candidate in registry:
            candidate = f"{slug}-{suffix}"
            suffix += 1
        _ = registry.register(provider, identifier=candidate)
    return registry


class MessageDispatcher:
    """Send messages through an ordered chain of delivery providers.

    Args:
        providers: Provider registry, or a plain sequence of providers, in
            failover order
        max_retries: Failed attempts per provider before rotating
        retry_base_delay: Base backoff delay in seconds
        rate_limit: Maximum sends admitted per rate window
        rate_window_seconds: Length of the fixed rate window
        max_total_attempts: Optional ceiling on failed attempts per send
        attempt_timeout: Optional timeout for one provider attempt
        send_timeout: Optional default timeout for a whole send
        clock: Monotonic time source for the rate limiter
        sleep: Awaitable used for backoff waits
        http_client: HTTP client owned by the dispatcher and closed with it
    """

    def __init__(
        self,
        providers: ProviderRegistry[DeliveryProvider] | Sequence[DeliveryProvider],
        *,
        max_retries: int = 3,
        retry_base_delay: float = 1.0,
        rate_limit: int = 5,
        rate_window_seconds: float = 60.0,
        max_total_attempts: int | None = None,
        attempt_timeout: float | None = None,
        send_timeout: float | None = None,
        clock: Clock = time.monotonic,
        sleep: SleepFunc = asyncio.sleep,
        correlation_id_factory: CorrelationIDFactory | None = None,
        http_client: AIOHTTPClient | None = None,
        logger_obj: logging.Logger | None = None,
    ) -> None:
        if send_timeout is not None and send_timeout <= 0:
            msg = "send_timeout must be greater than zero when set"
            raise ValueError(msg)

        registry = providers if isinstance(providers, ProviderRegistry) else _registry_from_providers(providers)
        self._registry: ProviderRegistry[DeliveryProvider] = registry
        self._audit_log: AuditLog = AuditLog()
        self._dedup: DedupGuard = DedupGuard()
        self._rate_limiter: FixedWindowRateLimiter = FixedWindowRateLimiter(
            limit=rate_limit,
            window_seconds=rate_window_seconds,
            clock=clock,
        )
        self._engine: RetryFailoverEngine = RetryFailoverEngine(
            registry.get_all(),
            audit_log=self._audit_log,
            max_retries=max_retries,
            base_delay=retry_base_delay,
            max_total_attempts=max_total_attempts,
            attempt_timeout=attempt_timeout,
            sleep=sleep,
            health=registry,
        )
        self._send_timeout: float | None = send_timeout
        self._correlation_id_factory: CorrelationIDFactory = (
            correlation_id_factory or (lambda: uuid4().hex)
        )
        self._http_client: AIOHTTPClient | None = http_client
        self._logger: logging.Logger = logger_obj or get_logger(__name__)

    @classmethod
    def from_config(
        cls,
        config: DispatcherConfig,
        providers: ProviderRegistry[DeliveryProvider] | Sequence[DeliveryProvider],
        *,
        clock: Clock = time.monotonic,
        sleep: SleepFunc = asyncio.sleep,
        http_client: AIOHTTPClient | None = None,
    ) -> Self:
        """Build a dispatcher from validated dispatcher settings."""
        return cls(
            providers,
            max_retries=config.max_retries,
            retry_base_delay=config.retry_base_delay_seconds,
            rate_limit=config.rate_limit,
            rate_window_seconds=config.rate_window_seconds,
            max_total_attempts=config.max_total_attempts,
            attempt_timeout=config.attempt_timeout_seconds,
            send_timeout=config.send_timeout_seconds,
            clock=clock,
            sleep=sleep,
            http_client=http_client,
        )

    @classmethod
    def from_main_config(
        cls,
        config: MainConfig,
        *,
        clock: Clock = time.monotonic,
        sleep: SleepFunc = asyncio.sleep,
    ) -> Self:
        """Load the configured provider plugins and build a dispatcher.

        The dispatcher owns the HTTP client shared by the plugins and closes
        it in ``close``.

        Raises:
            PluginLoaderError: If a configured provider cannot be created
        """
        http_client = AIOHTTPClient()
        registry = PluginLoader(http_client=http_client).load_providers(config.providers)
        return cls.from_config(
            config.dispatcher,
            registry,
            clock=clock,
            sleep=sleep,
            http_client=http_client,
        )

    @property
    def registry(self) -> ProviderRegistry[DeliveryProvider]:
        return self._registry

    @property
    def rate_limiter(self) -> FixedWindowRateLimiter:
        return self._rate_limiter

    @property
    def dedup(self) -> DedupGuard:
        return self._dedup

    async def send(self, message: Message, *, timeout: float | None = None) -> SendResult:
        """Deliver ``message`` unless it is a duplicate or rate limited.

        Args:
            message: Message to send
            timeout: Overall deadline in seconds for this call, overriding the
                configured send timeout

        Returns:
            Result naming the provider on success, or the failure reason
        """
        if timeout is not None and timeout <= 0:
            msg = "timeout must be greater than zero when set"
            raise ValueError(msg)

        key = MessageKey.for_message(message)
        token = set_correlation_id(self._correlation_id_factory())
        try:
            async with self._dedup.hold(key):
                if self._dedup.is_duplicate(key):
                    log_with_context(
                        self._logger,
                        logging.WARNING,
                        "Duplicate message rejected",
                        extra={"recipient": message.recipient, "key_digest": key.short},
                    )
                    return SendResult.rejected(FailureReason.DUPLICATE)

                if not await self._rate_limiter.admit():
                    return SendResult.rejected(FailureReason.RATE_LIMITED)

                log_with_context(
                    self._logger,
                    logging.INFO,
                    "Dispatching message",
                    extra={"recipient": message.recipient, "key_digest": key.short},
                )
                return await self._deliver(message, key, timeout if timeout is not None else self._send_timeout)
        finally:
            reset_correlation_id(token)

    async def _deliver(self, message: Message, key: MessageKey, deadline: float | None) -> SendResult:
        log_size = len(self._audit_log)
        try:
            async with asyncio.timeout(deadline):
                result = await self._engine.run(message, key)
        except TimeoutError:
            if deadline is None:
                raise
            return self._timed_out(message, key, deadline, log_size)

        if result.success:
            self._dedup.mark_sent(key)
            return SendResult(success=True, provider_name=result.provider_name, attempts=result.attempts)
        return SendResult(success=False, error=result.error, attempts=result.attempts)

    def _timed_out(self, message: Message, key: MessageKey, deadline: float, log_size: int) -> SendResult:
        attempts = sum(
            1
            for outcome in self._audit_log.read_all()[log_size:]
            if outcome.key == key and outcome.attempt is not None
        )
        self._audit_log.record(
            DispatchOutcome(
                message=message,
                succeeded=False,
                note=f"Send timed out after {deadline:.2f}s",
                key=key,
            )
        )
        log_with_context(
            self._logger,
            logging.ERROR,
            "Send timed out",
            extra={"timeout_seconds": deadline, "attempts": attempts, "key_digest": key.short},
        )
        return SendResult(success=False, error=FailureReason.TIMED_OUT, attempts=attempts)

    def get_log(self) -> tuple[DispatchOutcome, ...]:
        """Return every recorded outcome in insertion order."""
        return self._audit_log.read_all()

    def provider_health(self) -> dict[str, HealthStatus | None]:
        """Return the latest health status of each provider by identifier."""
        return self._registry.health_snapshot()

    async def close(self) -> None:
        """Release the HTTP client owned by the dispatcher."""
        if self._http_client is not None:
            await self._http_client.close()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        await self.close()
