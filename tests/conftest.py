"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from collections.abc import Generator

import pytest

from mail_dispatcher.types import Message
from mail_dispatcher.utils.logging import clear_correlation_id
from tests.fixtures.doubles import FakeClock, RecordingSleep


@pytest.fixture
def fake_clock() -> FakeClock:
    """Provide a controllable clock for rate-limit tests."""
    return FakeClock()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    """Provide a sleep function that records backoff delays."""
    return RecordingSleep()


@pytest.fixture
def message() -> Message:
    """Provide a sample outbound message."""
    return Message(recipient="user@example.com", subject="Welcome", body="Hello there")


@pytest.fixture(autouse=True)
def _reset_correlation_id() -> Generator[None]:
    """Keep correlation IDs from leaking between tests."""
    clear_correlation_id()
    yield
    clear_correlation_id()
