"""Append-only audit log of dispatch attempt outcomes."""

from __future__ import annotations

import threading
from collections.abc import Iterator

from mail_dispatcher.types import DispatchOutcome, MessageKey

__all__ = ["AuditLog"]


class AuditLog:
    """Ordered, append-only record of every dispatch outcome.

    Entries are kept for the life of the process and are never truncated.
    Reads return immutable snapshots, so two reads without an intervening
    ``record`` are equal.
    """

    def __init__(self) -> None:
        self._entries: list[DispatchOutcome] = []
        self._lock: threading.Lock = threading.Lock()

    def record(self, outcome: DispatchOutcome) -> None:
        """Append an outcome."""
        with self._lock:
            self._entries.append(outcome)

    def read_all(self) -> tuple[DispatchOutcome, ...]:
        """Return every outcome in insertion order."""
        with self._lock:
            return tuple(self._entries)

    def successes(self) -> tuple[DispatchOutcome, ...]:
        return tuple(entry for entry in self.read_all() if entry.succeeded)

    def failures(self) -> tuple[DispatchOutcome, ...]:
        return tuple(entry for entry in self.read_all() if not entry.succeeded)

    def for_key(self, key: MessageKey) -> tuple[DispatchOutcome, ...]:
        """Return the outcomes recorded for one message key."""
        return tuple(entry for entry in self.read_all() if entry.key == key)

    def to_records(self) -> list[dict[str, object]]:
        """Export every outcome as a JSON-friendly dictionary."""
        return [entry.to_dict() for entry in self.read_all()]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __iter__(self) -> Iterator[DispatchOutcome]:
        return iter(self.read_all())
