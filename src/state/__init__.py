"""Shared live state — the event index, cardinality counters, sharded locks."""

from src.state.counters import CardinalityCounter
from src.state.index import Index, IndexEntry
from src.state.partition import PartitionedLocks

__all__ = [
    "CardinalityCounter",
    "Index",
    "IndexEntry",
    "PartitionedLocks",
]
