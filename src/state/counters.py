"""CardinalityCounter — distinct-key tracking for summary heartbeats."""

from __future__ import annotations

import threading
from collections.abc import Hashable


class CardinalityCounter:
    """Concurrent set of seen keys.

    Usage::

        hosts = CardinalityCounter("unique hosts")
        n = hosts.record(event.host)
    """

    def __init__(self, name: str) -> None:
        self._name = name
        self._seen: set[Hashable] = set()
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return self._name

    def record(self, key: Hashable) -> int:
        """Add *key* and return the current number of distinct keys."""
        with self._lock:
            self._seen.add(key)
            return len(self._seen)

    @property
    def cardinality(self) -> int:
        with self._lock:
            return len(self._seen)

    def reset(self) -> None:
        with self._lock:
            self._seen.clear()
