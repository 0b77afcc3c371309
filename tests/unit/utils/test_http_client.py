"""Unit tests for the aiohttp-backed HTTP client.

Tests cover:
- Session lifecycle through the async context manager
- Basic POST requests returning the status code
- Timeout, malformed URL and connection error handling
- Per-request timeouts against a local slow endpoint
"""

import asyncio
from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock

import aiohttp
import pytest
from aiohttp import web

from mail_dispatcher.utils.http_client import AIOHTTPClient


async def _slow_hook(request: web.Request) -> web.Response:
    _ = await request.read()
    await asyncio.sleep(0.6)
    return web.Response(status=200)


@pytest.fixture
def mock_session() -> AsyncMock:
    """Create mock aiohttp ClientSession."""
    return AsyncMock(spec=aiohttp.ClientSession)


@pytest.fixture
def mock_response() -> AsyncMock:
    """Create mock aiohttp ClientResponse."""
    response = AsyncMock()
    response.status = 202
    return response


class TestSessionLifecycle:
    """Session creation and cleanup."""

    async def test_context_manager_creates_and_closes_session(self) -> None:
        client = AIOHTTPClient()

        async with client:
            assert client._session is not None  # pyright: ignore[reportPrivateUsage]  # testing internal state
            assert isinstance(client._session, aiohttp.ClientSession)  # pyright: ignore[reportPrivateUsage]  # testing internal state

        assert client._session is None  # pyright: ignore[reportPrivateUsage]  # testing internal state

    async def test_close_without_session_is_noop(self) -> None:
        client = AIOHTTPClient()

        await client.close()

        assert client._session is None  # pyright: ignore[reportPrivateUsage]  # testing internal state


class TestPostMethod:
    """POST behaviour."""

    async def test_post_returns_status(self, mock_session: AsyncMock, mock_response: AsyncMock) -> None:
        mock_session.post.return_value.__aenter__.return_value = mock_response  # pyright: ignore[reportAny]  # mock object
        client = AIOHTTPClient()
        client._session = mock_session  # pyright: ignore[reportPrivateUsage]  # testing internal state

        status = await client.post(
            "https://relay.example.com/hook",
            {"recipient": "a@example.com"},
            timeout=5.0,
            headers={"X-Test": "1"},
        )

        assert status == 202
        mock_session.post.assert_called_once_with(  # pyright: ignore[reportAny]  # mock method
            "https://relay.example.com/hook",
            json={"recipient": "a@example.com"},
            headers={"X-Test": "1"},
            timeout=aiohttp.ClientTimeout(total=5.0),
        )

    async def test_post_timeout(self, mock_session: AsyncMock) -> None:
        async def slow_request(*args: object, **kwargs: object) -> None:  # pyright: ignore[reportUnusedParameter]
            await asyncio.sleep(10)

        mock_session.post.return_value.__aenter__.side_effect = slow_request  # pyright: ignore[reportAny]  # mock object
        client = AIOHTTPClient()
        client._session = mock_session  # pyright: ignore[reportPrivateUsage]  # testing internal state

        with pytest.raises(TimeoutError):
            _ = await client.post("https://relay.example.com/hook", {}, timeout=0.05)

    async def test_post_invalid_url(self, mock_session: AsyncMock) -> None:
        mock_session.post.side_effect = aiohttp.InvalidURL("invalid")  # pyright: ignore[reportAny]  # mock object
        client = AIOHTTPClient()
        client._session = mock_session  # pyright: ignore[reportPrivateUsage]  # testing internal state

        with pytest.raises(ValueError, match="Malformed URL"):
            _ = await client.post("invalid-url", {}, timeout=5.0)

    async def test_post_connection_error(self, mock_session: AsyncMock) -> None:
        mock_session.post.side_effect = aiohttp.ClientConnectionError("Connection refused")  # pyright: ignore[reportAny]  # mock object
        client = AIOHTTPClient()
        client._session = mock_session  # pyright: ignore[reportPrivateUsage]  # testing internal state

        with pytest.raises(aiohttp.ClientConnectionError):
            _ = await client.post("https://relay.example.com/hook", {}, timeout=5.0)


@pytest.fixture
async def slow_endpoint() -> AsyncGenerator[str]:
    """Local endpoint answering 200 after a short delay."""
    app = web.Application()
    _ = app.router.add_post("/hooks/slow", _slow_hook)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", 0)
    await site.start()
    port: int = runner.addresses[0][1]  # pyright: ignore[reportAny]
    yield f"http://127.0.0.1:{port}/hooks/slow"
    await runner.cleanup()


class TestRequestTimeout:
    """Per-request timeout against a live endpoint."""

    async def test_request_timeout_overrides_shorter_session_default(self, slow_endpoint: str) -> None:
        async with AIOHTTPClient(default_timeout_seconds=0.2) as client:
            status = await client.post(slow_endpoint, {"recipient": "a@example.com"}, timeout=5.0)

        assert status == 200

    async def test_request_timeout_still_bounds_slow_endpoint(self, slow_endpoint: str) -> None:
        async with AIOHTTPClient(default_timeout_seconds=30.0) as client:
            with pytest.raises(TimeoutError):
                _ = await client.post(slow_endpoint, {}, timeout=0.1)
