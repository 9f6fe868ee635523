"""Tests for CardinalityCounter and PartitionedLocks."""

from __future__ import annotations

import threading

import pytest

from src.state.counters import CardinalityCounter
from src.state.partition import PartitionedLocks


class TestCardinalityCounter:
    def test_counts_distinct(self) -> None:
        c = CardinalityCounter("unique hosts")
        assert c.record("a") == 1
        assert c.record("b") == 2
        assert c.record("a") == 2
        assert c.cardinality == 2

    def test_tuple_keys(self) -> None:
        c = CardinalityCounter("unique services")
        c.record(("web-01", "fs_util"))
        c.record(("web-02", "fs_util"))
        assert c.cardinality == 2

    def test_reset(self) -> None:
        c = CardinalityCounter("unique hosts")
        c.record("a")
        c.reset()
        assert c.cardinality == 0
        assert c.name == "unique hosts"

    def test_concurrent_records(self) -> None:
        c = CardinalityCounter("unique hosts")

        def work(offset: int) -> None:
            for i in range(500):
                c.record((offset + i) % 700)

        threads = [threading.Thread(target=work, args=(n * 100,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert c.cardinality == 700


class TestPartitionedLocks:
    def test_rejects_zero_shards(self) -> None:
        with pytest.raises(ValueError):
            PartitionedLocks(0)

    def test_shard_is_stable(self) -> None:
        locks = PartitionedLocks(8)
        key = ("web-01", "fs_util")
        assert locks.shard_of(key) == locks.shard_of(("web-01", "fs_util"))
        assert 0 <= locks.shard_of(key) < 8

    def test_lock_for_matches_lock_at(self) -> None:
        locks = PartitionedLocks(4)
        key = ("web-01", "fs_util")
        assert locks.lock_for(key) is locks.lock_at(locks.shard_of(key))
        assert len(locks) == 4
