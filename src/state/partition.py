"""Sharded locks — per-key mutual exclusion without a global lock."""

from __future__ import annotations

import threading
import zlib
from collections.abc import Hashable


class PartitionedLocks:
    """A fixed set of locks; each key maps to one shard.

    Keys that land in the same shard serialize against each other, keys in
    different shards never contend.  Full-table scans walk the shards one at
    a time so no caller is blocked for the whole pass.
    """

    def __init__(self, shards: int = 16) -> None:
        if shards < 1:
            raise ValueError(f"shards must be >= 1, got {shards}")
        self._locks = [threading.Lock() for _ in range(shards)]

    def __len__(self) -> int:
        return len(self._locks)

    def shard_of(self, key: Hashable) -> int:
        # crc32 of the repr is stable across processes, unlike hash() of str.
        return zlib.crc32(repr(key).encode()) % len(self._locks)

    def lock_for(self, key: Hashable) -> threading.Lock:
        return self._locks[self.shard_of(key)]

    def lock_at(self, shard: int) -> threading.Lock:
        return self._locks[shard]
