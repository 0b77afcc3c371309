"""Retry and failover engine for message delivery.

The engine drives a single message through the configured providers:

* attempt delivery on the current provider;
* on success, record the outcome and stop;
* on failure, record the outcome and count the attempt. After
  ``max_retries`` failures on one provider, rotate to the next provider
  (wrapping around) and reset the counter;
* wait ``base_delay * 2 ** attempt`` using the counter value *after* the
  rotation decision, then attempt again.

The wait before the k-th attempt on a provider is therefore
``base_delay * 2 ** (k - 1)``, and the sequence restarts at ``base_delay``
after every rotation. No wait precedes the very first attempt.

Without ``max_total_attempts`` the loop only ends when a provider succeeds
(or the caller cancels it). With a ceiling, the engine stops after that many
failed attempts and reports exhaustion.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Final

from mail_dispatcher.core.audit_log import AuditLog
from mail_dispatcher.plugins.registry import ProviderRegistry
from mail_dispatcher.types import (
    DeliveryFailure,
    DeliveryProvider,
    DeliveryResult,
    DeliverySuccess,
    DispatchOutcome,
    FailureReason,
    Message,
    MessageKey,
)
from mail_dispatcher.utils.logging import get_logger, log_with_context
from mail_dispatcher.utils.sanitization import sanitize_exception

__all__ = ["EngineResult", "RetryFailoverEngine", "backoff_delay"]

type SleepFunc = Callable[[float], Awaitable[None]]

EXHAUSTED_NOTE: Final[str] = "All providers failed to send the message."


def backoff_delay(attempt: int, base_delay: float) -> float:
    """Return the wait before the next attempt.

    Args:
        attempt: Attempt counter on the current provider after the
            retry/rotation decision (0 right after a rotation)
        base_delay: Base delay in seconds

    Returns:
        ``base_delay * 2 ** attempt`` seconds

    Examples:
        >>> [backoff_delay(n, 1.0) for n in (1, 2, 0)]
        [2.0, 4.0, 1.0]
    """
    if attempt < 0:
        msg = "attempt must be >= 0"
        raise ValueError(msg)
    return base_delay * (2**attempt)


@dataclass(slots=True, frozen=True)
class EngineResult:
    """Terminal state of one engine run."""

    success: bool
    provider_name: str | None
    attempts: int
    error: FailureReason | None = None


class RetryFailoverEngine:
    """Deliver a message with retries, exponential backoff and provider rotation.

    Args:
        providers: Ordered, non-empty sequence of providers. The engine never
            mutates them.
        audit_log: Log receiving one outcome per attempt
        max_retries: Failed attempts per provider before rotating. Must be >= 1.
        base_delay: Base backoff delay in seconds. Must be >= 0.
        max_total_attempts: Optional ceiling on failed attempts across all
            providers. ``None`` retries until a provider succeeds.
        attempt_timeout: Optional per-attempt timeout in seconds; a provider
            exceeding it counts as a failed attempt.
        sleep: Awaitable used for backoff waits, injectable for tests.
        health: Optional registry whose identifiers line up with ``providers``
            and which receives a success/failure record per attempt.
    """

    def __init__(
        self,
        providers: Sequence[DeliveryProvider],
        *,
        audit_log: AuditLog,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_total_attempts: int | None = None,
        attempt_timeout: float | None = None,
        sleep: SleepFunc = asyncio.sleep,
        health: ProviderRegistry[DeliveryProvider] | None = None,
        logger_obj: logging.Logger | None = None,
    ) -> None:
        if not providers:
            msg = "at least one provider is required"
            raise ValueError(msg)
        if max_retries < 1:
            msg = "max_retries must be >= 1"
            raise ValueError(msg)
        if base_delay < 0:
            msg = "base_delay must be >= 0"
            raise ValueError(msg)
        if max_total_attempts is not None and max_total_attempts < 1:
            msg = "max_total_attempts must be >= 1 when set"
            raise ValueError(msg)
        if attempt_timeout is not None and attempt_timeout <= 0:
            msg = "attempt_timeout must be greater than zero when set"
            raise ValueError(msg)

        self._providers: tuple[DeliveryProvider, ...] = tuple(providers)
        self._identifiers: tuple[str, ...] | None = None
        if health is not None:
            identifiers = health.get_identifiers()
            if len(identifiers) != len(self._providers):
                msg = "health registry must list exactly the engine's providers"
                raise ValueError(msg)
            self._identifiers = identifiers

        self._audit_log: AuditLog = audit_log
        self._max_retries: int = max_retries
        self._base_delay: float = base_delay
        self._max_total_attempts: int | None = max_total_attempts
        self._attempt_timeout: float | None = attempt_timeout
        self._sleep: SleepFunc = sleep
        self._health: ProviderRegistry[DeliveryProvider] | None = health
        self._logger: logging.Logger = logger_obj or get_logger(__name__)

    @property
    def providers(self) -> tuple[DeliveryProvider, ...]:
        return self._providers

    async def run(self, message: Message, key: MessageKey | None = None) -> EngineResult:
        """Deliver ``message``, retrying and rotating until a terminal state.

        Args:
            message: Message to deliver
            key: Precomputed message key for audit records

        Returns:
            Successful result naming the provider, or an exhausted result
            when ``max_total_attempts`` is reached
        """
        key = key or MessageKey.for_message(message)
        provider_index = 0
        attempt = 0
        total_attempts = 0

        while True:
            provider = self._providers[provider_index]
            total_attempts += 1
            result = await self._attempt(provider, message)

            match result:
                case DeliverySuccess(provider_name=name):
                    self._record_success(provider_index, message, key, name, total_attempts)
                    return EngineResult(success=True, provider_name=name, attempts=total_attempts)
                case DeliveryFailure(provider_name=name, reason=reason):
                    self._record_failure(provider_index, message, key, name, reason, total_attempts)

            if self._max_total_attempts is not None and total_attempts >= self._max_total_attempts:
                return self._exhausted(message, key, total_attempts)

            attempt += 1
            if attempt == self._max_retries:
                provider_index = (provider_index + 1) % len(self._providers)
                attempt = 0
                log_with_context(
                    self._logger,
                    logging.INFO,
                    "Switching to next provider",
                    extra={
                        "provider_name": self._providers[provider_index].name,
                        "key_digest": key.short,
                    },
                )

            delay = backoff_delay(attempt, self._base_delay)
            self._logger.info("Retrying in %.3fs", delay)
            await self._sleep(delay)

    async def _attempt(self, provider: DeliveryProvider, message: Message) -> DeliveryResult:
        """Call one provider, folding exceptions and timeouts into failures."""
        try:
            async with asyncio.timeout(self._attempt_timeout):
                result = await provider.deliver(message)
        except asyncio.CancelledError:
            raise
        except TimeoutError as exc:
            reason = (
                f"timed out after {self._attempt_timeout:.2f}s"
                if self._attempt_timeout is not None
                else sanitize_exception(exc)
            )
            return DeliveryFailure(provider_name=provider.name, reason=reason)
        except Exception as exc:
            return DeliveryFailure(provider_name=provider.name, reason=sanitize_exception(exc))

        if not isinstance(result, (DeliverySuccess, DeliveryFailure)):
            return DeliveryFailure(
                provider_name=provider.name,
                reason=f"unexpected delivery result: {type(result).__name__}",
            )
        return result

    def _record_success(
        self,
        provider_index: int,
        message: Message,
        key: MessageKey,
        provider_name: str,
        total_attempts: int,
    ) -> None:
        self._audit_log.record(
            DispatchOutcome(
                message=message,
                succeeded=True,
                note=f"Sent successfully via {provider_name}",
                key=key,
                provider_name=provider_name,
                attempt=total_attempts,
            )
        )
        if self._health is not None and self._identifiers is not None:
            _ = self._health.record_success(self._identifiers[provider_index])
        log_with_context(
            self._logger,
            logging.INFO,
            "Message delivered successfully",
            extra={
                "provider_name": provider_name,
                "attempt": total_attempts,
                "key_digest": key.short,
            },
        )

    def _record_failure(
        self,
        provider_index: int,
        message: Message,
        key: MessageKey,
        provider_name: str,
        reason: str,
        total_attempts: int,
    ) -> None:
        self._audit_log.record(
            DispatchOutcome(
                message=message,
                succeeded=False,
                note=f"{provider_name} failed: {reason}",
                key=key,
                provider_name=provider_name,
                attempt=total_attempts,
            )
        )
        if self._health is not None and self._identifiers is not None:
            _ = self._health.record_failure(self._identifiers[provider_index], error_message=reason)
        log_with_context(
            self._logger,
            logging.WARNING,
            "Delivery attempt failed",
            extra={
                "provider_name": provider_name,
                "attempt": total_attempts,
                "error_message": reason,
                "key_digest": key.short,
            },
        )

    def _exhausted(self, message: Message, key: MessageKey, total_attempts: int) -> EngineResult:
        self._audit_log.record(
            DispatchOutcome(
                message=message,
                succeeded=False,
                note=EXHAUSTED_NOTE,
                key=key,
                attempt=total_attempts,
            )
        )
        log_with_context(
            self._logger,
            logging.ERROR,
            "All providers exhausted",
            extra={
                "attempts": total_attempts,
                "max_total_attempts": self._max_total_attempts,
                "key_digest": key.short,
            },
        )
        return EngineResult(
            success=False,
            provider_name=None,
            attempts=total_attempts,
            error=FailureReason.EXHAUSTED,
        )
