"""Per-group stream stages — window aggregation and edge detection."""

from src.stream.dedup import EdgeDetector
from src.stream.window import (
    Aggregate,
    Fold,
    WindowAggregator,
    WindowKind,
    fold_events,
    group_key_of,
)

__all__ = [
    "Aggregate",
    "EdgeDetector",
    "Fold",
    "WindowAggregator",
    "WindowKind",
    "fold_events",
    "group_key_of",
]
