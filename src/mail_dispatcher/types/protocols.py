"""Protocol definitions for component interfaces.

This module defines structural subtyping protocols that establish
contracts for delivery providers and their HTTP transport without
requiring inheritance.
"""

from collections.abc import Mapping
from typing import Protocol, runtime_checkable

from mail_dispatcher.types.models import DeliveryResult, Message


@runtime_checkable
class DeliveryProvider(Protocol):
    """Protocol for message delivery providers.

    A provider accepts a message and reports success or failure
    asynchronously. Failures may be nondeterministic; the dispatch engine
    treats a returned ``DeliveryFailure`` and a raised exception alike.
    """

    @property
    def name(self) -> str:
        """Human-readable provider name used in results and audit notes."""
        ...

    async def deliver(self, message: Message) -> DeliveryResult:
        """Attempt to deliver a message.

        Args:
            message: Message to deliver

        Returns:
            ``DeliverySuccess`` or ``DeliveryFailure`` with a reason
        """
        ...


class HTTPClient(Protocol):
    """Protocol for HTTP client operations used by webhook-style providers."""

    async def post(
        self,
        url: str,
        payload: Mapping[str, object],
        *,
        timeout: float,
        headers: Mapping[str, str] | None = None,
    ) -> int:
        """Send an HTTP POST request with a JSON body.

        Args:
            url: Target URL for the POST request
            payload: Request body data
            timeout: Request timeout in seconds (keyword-only)
            headers: Optional extra request headers

        Returns:
            HTTP status code of the response
        """
        ...
