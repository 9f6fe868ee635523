"""EdgeDetector — debounced state-change suppression per group key."""

from __future__ import annotations

import time
from collections.abc import Callable, Hashable
from dataclasses import dataclass

from src.state.partition import PartitionedLocks


@dataclass
class _Run:
    current_state: str
    run_count: int = 1
    last_emitted: str | None = None
    seen_at: float = 0.0


class EdgeDetector:
    """Forwards a state only once it has been seen *samples* times in a row.

    Per group key the detector tracks the current classification and how
    many consecutive times it has been observed.  A transition is confirmed
    when the run reaches ``samples`` and the state differs from the last one
    forwarded; each confirmed transition is reported exactly once.

    ``samples=1`` forwards every change immediately.

    Keys that stop reporting can be forgotten with :meth:`prune`; a pruned
    key starts over as if never seen.
    """

    def __init__(
        self,
        samples: int = 1,
        shards: int = 16,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if samples < 1:
            raise ValueError(f"samples must be >= 1, got {samples}")
        self._samples = samples
        self._clock = clock
        self._locks = PartitionedLocks(shards)
        self._runs: list[dict[Hashable, _Run]] = [{} for _ in range(len(self._locks))]

    @property
    def samples(self) -> int:
        return self._samples

    def observe(self, group_key: Hashable, state: str) -> bool:
        """Record *state* for *group_key*; True if it should be forwarded."""
        shard = self._locks.shard_of(group_key)
        with self._locks.lock_at(shard):
            runs = self._runs[shard]
            run = runs.get(group_key)
            if run is None:
                run = _Run(current_state=state)
                runs[group_key] = run
            elif run.current_state == state:
                run.run_count += 1
            else:
                run.current_state = state
                run.run_count = 1
            run.seen_at = self._clock()

            if run.run_count >= self._samples and run.last_emitted != state:
                run.last_emitted = state
                return True
            return False

    def state_of(self, group_key: Hashable) -> tuple[str, int] | None:
        """Current ``(state, run_count)`` for a key, if tracked."""
        shard = self._locks.shard_of(group_key)
        with self._locks.lock_at(shard):
            run = self._runs[shard].get(group_key)
            return (run.current_state, run.run_count) if run is not None else None

    def reset(self, group_key: Hashable | None = None) -> None:
        if group_key is None:
            for shard, runs in enumerate(self._runs):
                with self._locks.lock_at(shard):
                    runs.clear()
            return
        shard = self._locks.shard_of(group_key)
        with self._locks.lock_at(shard):
            self._runs[shard].pop(group_key, None)

    def prune(self, idle_secs: float, now: float | None = None) -> int:
        """Forget keys not observed for *idle_secs*. Returns how many were dropped."""
        if now is None:
            now = self._clock()
        dropped = 0
        for shard, runs in enumerate(self._runs):
            with self._locks.lock_at(shard):
                stale = [key for key, run in runs.items() if now - run.seen_at >= idle_secs]
                for key in stale:
                    del runs[key]
                dropped += len(stale)
        return dropped

    def __len__(self) -> int:
        return sum(len(r) for r in self._runs)
