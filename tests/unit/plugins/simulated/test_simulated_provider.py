"""Tests for the simulated delivery provider."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from mail_dispatcher.plugins.simulated.config import SimulatedConfig
from mail_dispatcher.plugins.simulated.provider import SimulatedProvider, create_provider
from mail_dispatcher.types import DeliveryFailure, DeliveryProvider, DeliverySuccess, Message


@pytest.mark.asyncio
async def test_zero_failure_rate_always_succeeds(message: Message) -> None:
    provider = create_provider(name="Primary", options={"failure_rate": 0.0})

    results = [await provider.deliver(message) for _ in range(20)]

    assert all(result == DeliverySuccess(provider_name="Primary") for result in results)
    assert provider.attempts == 20


@pytest.mark.asyncio
async def test_full_failure_rate_always_fails(message: Message) -> None:
    provider = create_provider(name="Primary", options={"failure_rate": 1.0})

    result = await provider.deliver(message)

    assert result == DeliveryFailure(provider_name="Primary", reason="Primary failed to send message")


@pytest.mark.asyncio
async def test_seed_makes_outcomes_reproducible(message: Message) -> None:
    options = {"failure_rate": 0.5, "seed": 42}
    first = create_provider(name="A", options=options)
    second = create_provider(name="A", options=options)

    first_run = [isinstance(await first.deliver(message), DeliverySuccess) for _ in range(30)]
    second_run = [isinstance(await second.deliver(message), DeliverySuccess) for _ in range(30)]

    assert first_run == second_run
    assert True in first_run
    assert False in first_run


@pytest.mark.asyncio
async def test_scripted_outcomes_replay_cyclically(message: Message) -> None:
    provider = SimulatedProvider(provider_name="Scripted", config=SimulatedConfig(outcomes=[False, True]))

    results = [isinstance(await provider.deliver(message), DeliverySuccess) for _ in range(4)]

    assert results == [False, True, False, True]


def test_implements_delivery_provider_protocol() -> None:
    provider = create_provider(name="Primary", options={})

    assert isinstance(provider, DeliveryProvider)
    assert provider.name == "Primary"


@pytest.mark.parametrize(
    "options",
    [{"failure_rate": -0.1}, {"failure_rate": 1.5}, {"latency_seconds": -1}, {"outcomes": []}, {"unknown": 1}],
)
def test_invalid_options_rejected(options: dict[str, object]) -> None:
    with pytest.raises(ValidationError):
        _ = create_provider(name="Primary", options=options)
