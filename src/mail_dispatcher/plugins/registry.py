"""Provider registry for managing delivery providers.

The registry keeps provider instances in failover order, keyed by their
identifier, and tracks health information from each delivery attempt. The
dispatch engine rotates through providers in registration order regardless
of health; health is exposed for observability.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import UTC, datetime

from mail_dispatcher.types import DeliveryProvider, HealthStatus

__all__ = ["ProviderRegistry"]

_IDENTIFIER_PATTERN = re.compile(r"^[a-z][a-z0-9_-]*$")


def _now() -> datetime:
    """Return timezone-aware current datetime for health tracking."""
    return datetime.now(tz=UTC)


@dataclass(slots=True)
class _RegistryEntry[T: DeliveryProvider]:
    """Internal registry entry storing provider and health data."""

    provider: T
    health: HealthStatus | None = None


class ProviderRegistry[T: DeliveryProvider]:
    """Ordered registry for delivery providers with health tracking.

    Args:
        unhealthy_threshold: Number of consecutive failures tolerated
            before the provider is reported unhealthy. Must be >= 1.
    """

    def __init__(self, *, unhealthy_threshold: int = 3) -> None:
        if unhealthy_threshold < 1:
            msg = "unhealthy_threshold must be >= 1"
            raise ValueError(msg)
        self._unhealthy_threshold: int = unhealthy_threshold
        self._entries: dict[str, _RegistryEntry[T]] = {}

    def register(
        self,
        provider: T,
        *,
        identifier: str | None = None,
        initial_health: HealthStatus | None = None,
    ) -> str:
        """Register a provider at the end of the failover order.

        Args:
            provider: Provider instance
            identifier: Registry key; defaults to the provider's name
            initial_health: Optional starting health status

        Returns:
            Normalized identifier the provider was registered under
        """
        slug = self._normalize_identifier(identifier if identifier is not None else provider.name)
        if slug in self._entries:
            msg = f"Provider {slug!r} already registered"
            raise ValueError(msg)

        self._entries[slug] = _RegistryEntry(provider=provider, health=initial_health)
        return slug

    def __contains__(self, identifier: str) -> bool:
        """Return True if the registry contains the identifier."""
        slug = self._normalize_identifier(identifier)
        return slug in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, identifier: str) -> T | None:
        """Return the registered provider for the identifier."""
        slug = self._normalize_identifier(identifier)
        entry = self._entries.get(slug)
        if entry is None:
            return None
        return entry.provider

    def get_all(self) -> tuple[T, ...]:
        """Return all registered providers in failover order."""
        return tuple(entry.provider for entry in self._entries.values())

    def get_identifiers(self) -> tuple[str, ...]:
        """Return registered identifiers in failover order."""
        return tuple(self._entries)

    def get_health(self, identifier: str) -> HealthStatus | None:
        """Return the most recent health status for the provider."""
        slug = self._normalize_identifier(identifier)
        entry = self._entries.get(slug)
        if entry is None:
            return None
        return entry.health

    def health_snapshot(self) -> dict[str, HealthStatus | None]:
        """Return the health of every provider keyed by identifier."""
        return {identifier: entry.health for identifier, entry in self._entries.items()}

    def record_success(self, identifier: str) -> HealthStatus:
        """Record a successful delivery and reset failure counters."""
        entry = self._require_entry(identifier)
        status = HealthStatus(
            is_healthy=True,
            last_check=_now(),
            consecutive_failures=0,
            error_message=None,
        )
        entry.health = status
        return status

    def record_failure(
        self,
        identifier: str,
        *,
        error_message: str | None = None,
    ) -> HealthStatus:
        """Record a failed delivery and update the health status accordingly."""
        entry = self._require_entry(identifier)
        consecutive = entry.health.consecutive_failures + 1 if entry.health else 1
        status = HealthStatus(
            is_healthy=consecutive < self._unhealthy_threshold,
            last_check=_now(),
            consecutive_failures=consecutive,
            error_message=error_message,
        )
        entry.health = status
        return status

    def _require_entry(self, identifier: str) -> _RegistryEntry[T]:
        slug = self._normalize_identifier(identifier)
        if slug not in self._entries:
            msg = f"Provider {slug!r} is not registered"
            raise KeyError(msg)
        return self._entries[slug]

    @staticmethod
    def _normalize_identifier(identifier: str) -> str:
        slug = identifier.strip().lower()
        if not _IDENTIFIER_PATTERN.match(slug):
            msg = (
                "Provider identifiers must start with a letter and contain only "
                "lowercase letters, numbers, hyphens or underscores"
            )
            raise ValueError(msg)
        return slug
