"""Keyed send throttle shared by the alert dispatcher and metric relay."""

from __future__ import annotations

from collections.abc import Hashable

from src.state.partition import PartitionedLocks


class Throttle:
    """At most one send per key per ``period_secs``.

    A send is permitted when ``now - last_sent_at >= period_secs``; a
    permitted send records ``now`` as the key's new ``last_sent_at``.  The
    check and the update happen under the key's shard lock.
    """

    def __init__(self, period_secs: float, shards: int = 16) -> None:
        if period_secs < 0:
            raise ValueError(f"period_secs must be >= 0, got {period_secs}")
        self.period_secs = period_secs
        self._locks = PartitionedLocks(shards)
        self._last_sent: list[dict[Hashable, float]] = [{} for _ in range(len(self._locks))]

    def try_acquire(self, key: Hashable, now: float, period_secs: float | None = None) -> bool:
        """Consume the key's token if available. Returns True if the send may go."""
        period = self.period_secs if period_secs is None else period_secs
        shard = self._locks.shard_of(key)
        with self._locks.lock_at(shard):
            tokens = self._last_sent[shard]
            last = tokens.get(key, -float("inf"))
            if now - last < period:
                return False
            tokens[key] = now
            return True

    def last_sent(self, key: Hashable) -> float | None:
        shard = self._locks.shard_of(key)
        with self._locks.lock_at(shard):
            return self._last_sent[shard].get(key)

    def reset(self) -> None:
        for shard, tokens in enumerate(self._last_sent):
            with self._locks.lock_at(shard):
                tokens.clear()

    def prune(self, now: float) -> int:
        """Drop keys whose default period has passed; they would be allowed anyway.

        Keys acquired with a longer per-call period must not be pruned this way.
        """
        dropped = 0
        for shard, tokens in enumerate(self._last_sent):
            with self._locks.lock_at(shard):
                stale = [key for key, last in tokens.items() if now - last >= self.period_secs]
                for key in stale:
                    del tokens[key]
                dropped += len(stale)
        return dropped

    def __len__(self) -> int:
        return sum(len(t) for t in self._last_sent)
