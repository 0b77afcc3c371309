"""Simulated delivery provider.

Stands in for a real mail service: each attempt fails with probability
``failure_rate``. A fixed ``seed`` makes the sequence reproducible, and a
scripted ``outcomes`` list replaces the random draw entirely.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import random
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field

from mail_dispatcher.plugins.simulated.config import SimulatedConfig
from mail_dispatcher.types.models import DeliveryFailure, DeliveryResult, DeliverySuccess, Message
from mail_dispatcher.types.protocols import HTTPClient

__all__ = ["SimulatedProvider", "create_provider"]


@dataclass(slots=True)
class SimulatedProvider:
    """Provider whose attempts succeed or fail at random.

    Attributes:
        provider_name: Name reported in results and audit notes
        config: Failure rate, seed, latency and optional scripted outcomes
    """

    provider_name: str
    config: SimulatedConfig = field(default_factory=SimulatedConfig)
    attempts: int = field(default=0, init=False)
    _rng: random.Random = field(init=False, repr=False)
    _script: Iterator[bool] | None = field(default=None, init=False, repr=False)
    _logger: logging.Logger = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._rng = random.Random(self.config.seed)
        if self.config.outcomes is not None:
            self._script = itertools.cycle(self.config.outcomes)
        self._logger = logging.getLogger(__name__)

    @property
    def name(self) -> str:
        return self.provider_name

    async def deliver(self, message: Message) -> DeliveryResult:
        """Pretend to deliver ``message``."""
        self.attempts += 1
        if self.config.latency_seconds:
            await asyncio.sleep(self.config.latency_seconds)

        if self._script is not None:
            succeeded = next(self._script)
        else:
            succeeded = self._rng.random() >= self.config.failure_rate

        if not succeeded:
            self._logger.debug("Simulated delivery failed (provider=%s)", self.provider_name)
            return DeliveryFailure(
                provider_name=self.provider_name,
                reason=f"{self.provider_name} failed to send message",
            )

        self._logger.debug(
            "Simulated delivery to %s succeeded (provider=%s)",
            message.recipient,
            self.provider_name,
        )
        return DeliverySuccess(provider_name=self.provider_name)


def create_provider(
    *,
    name: str,
    options: Mapping[str, object],
    http_client: HTTPClient | None = None,
) -> SimulatedProvider:
    """Factory function for creating SimulatedProvider instances.

    Args:
        name: Provider name from configuration (keyword-only)
        options: Raw plugin options, validated against ``SimulatedConfig``
        http_client: Unused; accepted for loader compatibility

    Returns:
        Configured SimulatedProvider

    Raises:
        pydantic.ValidationError: If the options are invalid

    Example:
        >>> provider = create_provider(name="Primary", options={"failure_rate": 0.0})
        >>> provider.name
        'Primary'
    """
    del http_client
    return SimulatedProvider(provider_name=name, config=SimulatedConfig.model_validate(dict(options)))
