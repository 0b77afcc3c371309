"""Tests for the fixed-window rate limiter."""

from __future__ import annotations

import asyncio
import logging

import pytest
from _pytest.logging import LogCaptureFixture

from mail_dispatcher.core.rate_limiter import FixedWindowRateLimiter
from mail_dispatcher.types import RateWindow
from tests.fixtures.doubles import FakeClock


@pytest.mark.unit
@pytest.mark.asyncio
async def test_admits_up_to_limit_then_denies(fake_clock: FakeClock) -> None:
    """The sixth check in a five-per-window limiter should be denied."""
    limiter = FixedWindowRateLimiter(limit=5, window_seconds=60.0, clock=fake_clock)

    admitted = [await limiter.admit() for _ in range(5)]
    denied = await limiter.admit()

    assert admitted == [True] * 5
    assert denied is False


@pytest.mark.unit
@pytest.mark.asyncio
async def test_denied_check_does_not_consume_capacity(fake_clock: FakeClock) -> None:
    """Denials should leave the counter at the limit."""
    limiter = FixedWindowRateLimiter(limit=2, window_seconds=10.0, clock=fake_clock)
    _ = await limiter.admit()
    _ = await limiter.admit()

    for _ in range(3):
        assert await limiter.admit() is False

    assert limiter.snapshot().count == 2


@pytest.mark.unit
@pytest.mark.asyncio
async def test_window_resets_only_after_strictly_elapsed(fake_clock: FakeClock) -> None:
    """The window resets once more than window_seconds have passed."""
    limiter = FixedWindowRateLimiter(limit=1, window_seconds=60.0, clock=fake_clock)
    assert await limiter.admit() is True

    fake_clock.advance(60.0)
    assert await limiter.admit() is False

    fake_clock.advance(0.001)
    assert await limiter.admit() is True
    assert limiter.snapshot() == RateWindow(count=1, window_start=fake_clock.now)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_full_capacity_available_after_reset(fake_clock: FakeClock) -> None:
    """After the window elapses up to ``limit`` more sends are admitted."""
    limiter = FixedWindowRateLimiter(limit=5, window_seconds=60.0, clock=fake_clock)
    for _ in range(6):
        _ = await limiter.admit()

    fake_clock.advance(61.0)
    results = [await limiter.admit() for _ in range(6)]

    assert results == [True] * 5 + [False]


@pytest.mark.unit
def test_seconds_until_reset_counts_down(fake_clock: FakeClock) -> None:
    limiter = FixedWindowRateLimiter(limit=1, window_seconds=30.0, clock=fake_clock)

    fake_clock.advance(10.0)
    assert limiter.seconds_until_reset() == pytest.approx(20.0)

    fake_clock.advance(100.0)
    assert limiter.seconds_until_reset() == 0.0


@pytest.mark.unit
@pytest.mark.asyncio
async def test_manual_reset_starts_empty_window(fake_clock: FakeClock) -> None:
    limiter = FixedWindowRateLimiter(limit=1, window_seconds=30.0, clock=fake_clock)
    _ = await limiter.admit()

    limiter.reset()

    assert await limiter.admit() is True


@pytest.mark.unit
@pytest.mark.asyncio
async def test_denial_is_logged_with_context(fake_clock: FakeClock, caplog: LogCaptureFixture) -> None:
    """A denial should log a warning carrying the limit settings."""
    limiter = FixedWindowRateLimiter(limit=1, window_seconds=30.0, clock=fake_clock)
    _ = await limiter.admit()
    caplog.set_level(logging.WARNING)

    _ = await limiter.admit()

    records = [record for record in caplog.records if record.message == "Rate limit exceeded"]
    assert records
    assert records[0].rate_limit == 1  # pyright: ignore[reportAttributeAccessIssue]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_concurrent_checks_never_exceed_limit(fake_clock: FakeClock) -> None:
    """Interleaved admissions from many tasks admit at most ``limit``."""
    limiter = FixedWindowRateLimiter(limit=3, window_seconds=60.0, clock=fake_clock)

    results = await asyncio.gather(*(limiter.admit() for _ in range(10)))

    assert sum(results) == 3


@pytest.mark.unit
@pytest.mark.parametrize(
    ("limit", "window"),
    [(0, 60.0), (-1, 60.0), (5, 0.0), (5, -1.0)],
)
def test_invalid_settings_rejected(limit: int, window: float) -> None:
    with pytest.raises(ValueError):
        _ = FixedWindowRateLimiter(limit=limit, window_seconds=window)
