"""Integration tests running the dispatcher against a local webhook server."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from dataclasses import dataclass, field

import pytest
from aiohttp import web

from mail_dispatcher.core.config import MainConfig
from mail_dispatcher.core.dispatcher import MessageDispatcher
from mail_dispatcher.types import FailureReason, Message
from tests.fixtures.doubles import FakeClock, RecordingSleep


@dataclass
class WebhookServer:
    """Local HTTP endpoint answering with scripted statuses."""

    statuses: list[int] = field(default_factory=lambda: [200])
    received: list[dict[str, object]] = field(default_factory=list)
    url: str = ""

    async def handle(self, request: web.Request) -> web.Response:
        payload: dict[str, object] = await request.json()
        self.received.append(payload)
        status = self.statuses[min(len(self.received) - 1, len(self.statuses) - 1)]
        return web.Response(status=status)


@pytest.fixture
async def webhook_server() -> AsyncGenerator[WebhookServer]:
    server = WebhookServer()
    app = web.Application()
    _ = app.router.add_post("/hooks/mail", server.handle)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", 0)
    await site.start()
    port: int = runner.addresses[0][1]  # pyright: ignore[reportAny]
    server.url = f"http://127.0.0.1:{port}/hooks/mail"
    try:
        yield server
    finally:
        await runner.cleanup()


def _config(url: str, **dispatcher: object) -> MainConfig:
    return MainConfig.model_validate(
        {
            "dispatcher": {"retry_base_delay_seconds": 0.0, **dispatcher},
            "providers": [
                {"name": "Relay", "plugin": "webhook", "options": {"url": url, "timeout_seconds": 2.0}},
                {"name": "Fallback", "plugin": "simulated", "options": {"failure_rate": 0.0}},
            ],
        }
    )


@pytest.mark.integration
@pytest.mark.asyncio
async def test_webhook_delivery_end_to_end(webhook_server: WebhookServer) -> None:
    message = Message(recipient="user@example.com", subject="Welcome", body="Hello there")

    async with MessageDispatcher.from_main_config(_config(webhook_server.url), clock=FakeClock()) as dispatcher:
        result = await dispatcher.send(message)
        duplicate = await dispatcher.send(message)

    assert result.success is True
    assert result.provider_name == "Relay"
    assert duplicate.error is FailureReason.DUPLICATE
    assert webhook_server.received == [{"recipient": "user@example.com", "subject": "Welcome", "body": "Hello there"}]


@pytest.mark.integration
@pytest.mark.asyncio
async def test_webhook_errors_fail_over_to_next_provider(webhook_server: WebhookServer) -> None:
    webhook_server.statuses = [500]
    sleep = RecordingSleep()
    message = Message(recipient="user@example.com", subject="Status", body="Body")

    async with MessageDispatcher.from_main_config(
        _config(webhook_server.url, max_retries=2),
        clock=FakeClock(),
        sleep=sleep,
    ) as dispatcher:
        result = await dispatcher.send(message)
        log = dispatcher.get_log()
        health = dispatcher.provider_health()

    assert result.provider_name == "Fallback"
    assert result.attempts == 3
    assert [entry.note for entry in log] == [
        "Relay failed: webhook returned HTTP 500",
        "Relay failed: webhook returned HTTP 500",
        "Sent successfully via Fallback",
    ]
    relay_health = health["relay"]
    assert relay_health is not None
    assert relay_health.consecutive_failures == 2
    assert len(webhook_server.received) == 2


@pytest.mark.integration
@pytest.mark.asyncio
async def test_unreachable_webhook_with_ceiling_exhausts() -> None:
    config = MainConfig.model_validate(
        {
            "dispatcher": {"retry_base_delay_seconds": 0.0, "max_total_attempts": 2},
            "providers": [
                {
                    "name": "Dead",
                    "plugin": "webhook",
                    "options": {"url": "http://127.0.0.1:9/hooks", "timeout_seconds": 1.0},
                },
            ],
        }
    )

    async with MessageDispatcher.from_main_config(config, clock=FakeClock(), sleep=RecordingSleep()) as dispatcher:
        result = await dispatcher.send(Message(recipient="a@example.com", subject="s", body="b"))
        log = dispatcher.get_log()

    assert result.error is FailureReason.EXHAUSTED
    assert all(entry.note.startswith("Dead failed: request") for entry in log[:2])
    assert log[-1].note == "All providers failed to send the message."


@pytest.mark.integration
@pytest.mark.asyncio
async def test_rate_limit_window_across_sends(webhook_server: WebhookServer) -> None:
    clock = FakeClock()

    async with MessageDispatcher.from_main_config(
        _config(webhook_server.url, rate_limit=2, rate_window_seconds=30.0),
        clock=clock,
    ) as dispatcher:
        results = [
            await dispatcher.send(Message(recipient=f"user{i}@example.com", subject="s", body="b")) for i in range(3)
        ]
        clock.advance(31.0)
        after_window = await dispatcher.send(Message(recipient="user2@example.com", subject="s", body="b"))

    assert [result.error for result in results] == [None, None, FailureReason.RATE_LIMITED]
    assert after_window.success is True
