"""HTTP client abstraction for webhook-style delivery providers.

Implements the ``HTTPClient`` protocol on top of aiohttp. The client makes a
single attempt per call: retries, backoff and failover belong to the dispatch
engine, which sees every failed POST as one failed delivery attempt.
"""

import asyncio
import json
import logging
from collections.abc import Mapping
from typing import Self

import aiohttp


class AIOHTTPClient:
    """Async HTTP client sending JSON payloads with a per-request timeout.

    Example:
        >>> async with AIOHTTPClient() as client:
        ...     status = await client.post(
        ...         "https://hooks.example.com/mail",
        ...         {"recipient": "a@example.com"},
        ...         timeout=5.0,
        ...     )
    """

    def __init__(self, *, default_timeout_seconds: float = 10.0) -> None:
        """Initialize the client.

        Args:
            default_timeout_seconds: Session-wide total timeout in seconds, used
                by requests made directly on the session. ``post`` overrides it
                with its own ``timeout``.
        """
        self._default_timeout_seconds: float = default_timeout_seconds
        self._session: aiohttp.ClientSession | None = None
        self._logger: logging.Logger = logging.getLogger(__name__)

    async def __aenter__(self) -> Self:
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        await self.close()

    async def open(self) -> None:
        """Create the underlying aiohttp session if it does not exist yet."""
        if self._session is None:
            timeout = aiohttp.ClientTimeout(total=self._default_timeout_seconds)
            self._session = aiohttp.ClientSession(
                timeout=timeout,
                json_serialize=json.dumps,
            )

    async def close(self) -> None:
        """Close the underlying aiohttp session."""
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def post(
        self,
        url: str,
        payload: Mapping[str, object],
        *,
        timeout: float,
        headers: Mapping[str, str] | None = None,
    ) -> int:
        """Send HTTP POST request with timeout.

        The session is opened lazily on first use.

        Args:
            url: Target URL for the POST request
            payload: Request body data (will be JSON-encoded)
            timeout: Request timeout in seconds (keyword-only)
            headers: Optional extra request headers

        Returns:
            HTTP status code of the response

        Raises:
            TimeoutError: If request exceeds timeout
            ValueError: If URL is malformed
            aiohttp.ClientError: For connection issues
        """
        await self.open()
        assert self._session is not None

        self._logger.debug("Initiating POST request to %s", url)

        try:
            async with asyncio.timeout(timeout):
                async with self._session.post(
                    url,
                    json=dict(payload),
                    headers=dict(headers) if headers else None,
                    timeout=aiohttp.ClientTimeout(total=timeout),
                ) as response:
                    _ = await response.read()
                    return response.status
        except TimeoutError:
            self._logger.warning("Request to %s timed out after %.1fs", url, timeout)
            raise
        except aiohttp.InvalidURL as exc:
            self._logger.error("Invalid URL: %s", url)
            raise ValueError(f"Malformed URL: {url}") from exc
        except aiohttp.ClientError as exc:
            self._logger.warning("Client error for %s: %s", url, exc)
            raise
