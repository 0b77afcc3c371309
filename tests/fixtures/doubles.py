"""Test doubles shared across the unit and integration suites."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from mail_dispatcher.types import DeliveryFailure, DeliveryResult, DeliverySuccess, Message


@dataclass
class FakeClock:
    """Manually advanced monotonic clock."""

    now: float = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass
class RecordingSleep:
    """Sleep replacement that records requested delays without waiting."""

    delays: list[float] = field(default_factory=list)

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


class ScriptedProvider:
    """Provider replaying a fixed list of outcomes.

    ``True`` succeeds, ``False`` returns a failure and an exception instance
    is raised. The last entry repeats once the script is exhausted.
    """

    def __init__(
        self,
        name: str,
        outcomes: Iterable[bool | BaseException] = (True,),
        *,
        delay: float = 0.0,
    ) -> None:
        self._name: str = name
        self._outcomes: list[bool | BaseException] = list(outcomes)
        self.delay: float = delay
        self.calls: int = 0
        self.messages: list[Message] = []

    @property
    def name(self) -> str:
        return self._name

    async def deliver(self, message: Message) -> DeliveryResult:
        index = min(self.calls, len(self._outcomes) - 1)
        self.calls += 1
        self.messages.append(message)
        if self.delay:
            await asyncio.sleep(self.delay)
        outcome = self._outcomes[index]
        if isinstance(outcome, BaseException):
            raise outcome
        if outcome:
            return DeliverySuccess(provider_name=self._name)
        return DeliveryFailure(provider_name=self._name, reason="scripted failure")


def always_fail(name: str) -> ScriptedProvider:
    return ScriptedProvider(name, (False,))


def always_succeed(name: str) -> ScriptedProvider:
    return ScriptedProvider(name, (True,))


@dataclass
class FakeHTTPClient:
    """HTTPClient double returning canned statuses or raising errors."""

    statuses: list[int | BaseException] = field(default_factory=lambda: [200])
    requests: list[tuple[str, dict[str, object], float, dict[str, str] | None]] = field(default_factory=list)

    async def post(
        self,
        url: str,
        payload: Mapping[str, object],
        *,
        timeout: float,
        headers: Mapping[str, str] | None = None,
    ) -> int:
        index = min(len(self.requests), len(self.statuses) - 1)
        self.requests.append((url, dict(payload), timeout, dict(headers) if headers else None))
        outcome = self.statuses[index]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome
