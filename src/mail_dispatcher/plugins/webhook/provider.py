"""Webhook delivery provider.

Posts ``{"recipient", "subject", "body"}`` as JSON to the configured URL. Any
2xx status counts as delivered; other statuses and transport errors are
reported as failures so the dispatch engine can retry or fail over.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass, field

import aiohttp

from mail_dispatcher.plugins.webhook.config import WebhookConfig
from mail_dispatcher.types.models import DeliveryFailure, DeliveryResult, DeliverySuccess, Message
from mail_dispatcher.types.protocols import HTTPClient
from mail_dispatcher.utils.sanitization import sanitize_exception, sanitize_url

__all__ = ["WebhookProvider", "create_provider"]


@dataclass(slots=True)
class WebhookProvider:
    """Provider delivering messages to an HTTP webhook.

    Attributes:
        provider_name: Name reported in results and audit notes
        config: Endpoint URL, headers and timeout
        http_client: HTTP client used for the POST (injected dependency)
    """

    provider_name: str
    config: WebhookConfig
    http_client: HTTPClient
    _logger: logging.Logger = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._logger = logging.getLogger(__name__)

    @property
    def name(self) -> str:
        return self.provider_name

    async def deliver(self, message: Message) -> DeliveryResult:
        """POST ``message`` to the webhook.

        Args:
            message: Message to deliver

        Returns:
            ``DeliverySuccess`` on a 2xx response, otherwise ``DeliveryFailure``
        """
        payload = {
            "recipient": message.recipient,
            "subject": message.subject,
            "body": message.body,
        }
        start_time = time.perf_counter()
        try:
            status = await self.http_client.post(
                self.config.url,
                payload,
                timeout=self.config.timeout_seconds,
                headers=self.config.headers or None,
            )
        except TimeoutError:
            return self._failure(f"request timed out after {self.config.timeout_seconds:.2f}s")
        except (aiohttp.ClientError, ValueError) as exc:
            return self._failure(f"request failed: {sanitize_exception(exc)}")

        elapsed_ms = (time.perf_counter() - start_time) * 1000.0
        if 200 <= status < 300:
            self._logger.info(
                "Webhook delivery succeeded (provider=%s, status=%d, delivery_time=%.2fms)",
                self.provider_name,
                status,
                elapsed_ms,
            )
            return DeliverySuccess(provider_name=self.provider_name)
        return self._failure(f"webhook returned HTTP {status}")

    def _failure(self, reason: str) -> DeliveryFailure:
        self._logger.warning(
            "Webhook delivery failed (provider=%s, url=%s): %s",
            self.provider_name,
            sanitize_url(self.config.url),
            reason,
        )
        return DeliveryFailure(provider_name=self.provider_name, reason=reason)


def create_provider(
    *,
    name: str,
    options: Mapping[str, object],
    http_client: HTTPClient | None,
) -> WebhookProvider:
    """Factory function for creating WebhookProvider instances.

    Args:
        name: Provider name from configuration (keyword-only)
        options: Raw plugin options, validated against ``WebhookConfig``
        http_client: HTTP client for webhook delivery (keyword-only)

    Returns:
        Configured WebhookProvider

    Raises:
        ValueError: If no HTTP client is supplied
        pydantic.ValidationError: If the options are invalid
    """
    if http_client is None:
        msg = "The webhook provider requires an HTTP client"
        raise ValueError(msg)
    return WebhookProvider(
        provider_name=name,
        config=WebhookConfig.model_validate(dict(options)),
        http_client=http_client,
    )
