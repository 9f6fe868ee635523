"""Window aggregation — sliding and fixed time windows with fold functions."""

from __future__ import annotations

import math
import time
from collections import deque
from collections.abc import Callable, Hashable, Iterable, Sequence
from dataclasses import dataclass, field
from enum import StrEnum

from src.core.types import Event
from src.state.partition import PartitionedLocks

GroupKey = tuple[Hashable, ...]


class Fold(StrEnum):
    """Reduction applied to the events of a window."""

    SUM = "sum"
    MEAN = "mean"
    COUNT = "count"


class WindowKind(StrEnum):
    SLIDING = "sliding"
    FIXED = "fixed"


def fold_events(fold: Fold, events: Iterable[Event]) -> float:
    """Reduce *events* to one number.

    ``sum`` and ``mean`` ignore events without a metric; ``count`` counts
    every event.  The mean of an empty set is 0.
    """
    if fold == Fold.COUNT:
        return float(sum(1 for _ in events))
    values = [e.metric for e in events if e.metric is not None]
    if fold == Fold.SUM:
        return float(sum(values))
    if not values:
        return 0.0
    return sum(values) / len(values)


def group_key_of(event: Event, fields: Sequence[str]) -> GroupKey:
    """Grouping tuple built from the named event fields."""
    return tuple(event.field(name) for name in fields)


@dataclass(frozen=True)
class Aggregate:
    """Result of folding one window."""

    group_key: GroupKey
    metric: float
    time: float
    events: tuple[Event, ...]
    template: Event

    def to_event(self, resource: str | None = None) -> Event:
        """Derived event carrying the fold result.

        Tags come from the template (latest event of the group).  When
        *resource* is given it replaces the template's resource, which is how
        cluster-scoped rules re-key their alerts.
        """
        changes: dict[str, object] = {"metric": self.metric, "time": self.time}
        if resource is not None:
            changes["resource"] = resource
        return self.template.derive(**changes)


@dataclass
class _Buffer:
    events: deque[Event] = field(default_factory=deque)
    high_water: float = -math.inf
    # Event-time start of the open fixed window.
    window_start: float | None = None
    # Clock readings: when the fixed window opened, when the group last saw an event.
    opened_at: float = 0.0
    touched_at: float = 0.0


class WindowAggregator:
    """Per-group time windows.

    Sliding windows recompute the fold on every arrival over the events no
    older than ``span_secs`` behind the newest time seen for that group.
    Fixed windows buffer until an arrival lands ``span_secs`` or more after
    the window opened, then emit the fold of the closed window once; the
    arriving event opens the next window.

    Arrivals are judged on event time.  :meth:`flush` and :meth:`prune` are
    judged on ``clock``, measuring how long a window has been open or a group
    idle, so replayed events with historical timestamps are never compared
    against the wall clock.

    Usage::

        agg = WindowAggregator(WindowKind.SLIDING, 30, Fold.MEAN)
        result = agg.observe(("cluster-a",), event)
        if result is not None:
            classify(result.to_event())
    """

    def __init__(
        self,
        kind: WindowKind,
        span_secs: float,
        fold: Fold,
        shards: int = 16,
        latest_per_key: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if span_secs <= 0:
            raise ValueError(f"span_secs must be positive, got {span_secs}")
        self._kind = WindowKind(kind)
        self._span = float(span_secs)
        self._fold = Fold(fold)
        self._latest_per_key = latest_per_key
        self._clock = clock
        self._locks = PartitionedLocks(shards)
        self._buffers: list[dict[GroupKey, _Buffer]] = [
            {} for _ in range(len(self._locks))
        ]

    @property
    def kind(self) -> WindowKind:
        return self._kind

    @property
    def span_secs(self) -> float:
        return self._span

    @property
    def fold(self) -> Fold:
        return self._fold

    def observe(self, group_key: GroupKey, event: Event) -> Aggregate | None:
        shard = self._locks.shard_of(group_key)
        with self._locks.lock_at(shard):
            buffers = self._buffers[shard]
            buf = buffers.get(group_key)
            if buf is None:
                buf = _Buffer()
                buffers[group_key] = buf
            buf.touched_at = self._clock()
            if self._kind == WindowKind.SLIDING:
                return self._observe_sliding(group_key, buf, event)
            return self._observe_fixed(group_key, buf, event)

    def flush(self, now: float | None = None) -> list[Aggregate]:
        """Close every fixed window that has been open ``span_secs`` of clock time.

        *now* is a reading of the aggregator's clock and defaults to a fresh
        one.  The closed aggregate is stamped with the window's event-time end.
        Sliding windows have nothing to flush: they emit on arrival.
        """
        if self._kind != WindowKind.FIXED:
            return []
        if now is None:
            now = self._clock()
        out: list[Aggregate] = []
        for shard, buffers in enumerate(self._buffers):
            with self._locks.lock_at(shard):
                for group_key, buf in buffers.items():
                    if buf.window_start is None or not buf.events:
                        continue
                    if now - buf.opened_at < self._span:
                        continue
                    closed = tuple(buf.events)
                    end = buf.window_start + self._span
                    buf.events.clear()
                    buf.window_start = None
                    out.append(self._aggregate(group_key, closed, end, closed[-1]))
        return out

    def prune(self, idle_secs: float, now: float | None = None) -> int:
        """Forget groups that have seen no event for *idle_secs* of clock time.

        Fixed groups still holding an open window are kept so :meth:`flush`
        can close them.  Returns the number of groups dropped.
        """
        if now is None:
            now = self._clock()
        dropped = 0
        for shard, buffers in enumerate(self._buffers):
            with self._locks.lock_at(shard):
                stale = [
                    key
                    for key, buf in buffers.items()
                    if now - buf.touched_at >= idle_secs
                    and (self._kind == WindowKind.SLIDING or not buf.events)
                ]
                for key in stale:
                    del buffers[key]
                dropped += len(stale)
        return dropped

    def buffered(self, group_key: GroupKey) -> tuple[Event, ...]:
        shard = self._locks.shard_of(group_key)
        with self._locks.lock_at(shard):
            buf = self._buffers[shard].get(group_key)
            return tuple(buf.events) if buf is not None else ()

    def groups(self) -> int:
        return sum(len(b) for b in self._buffers)

    # ── Internal ────────────────────────────────────────────────

    def _observe_sliding(
        self, group_key: GroupKey, buf: _Buffer, event: Event
    ) -> Aggregate | None:
        buf.high_water = max(buf.high_water, event.time)
        now = buf.high_water
        cutoff = now - self._span

        if self._latest_per_key:
            buf.events = deque(e for e in buf.events if e.key != event.key)
        buf.events.append(event)

        # Late arrivals can leave the deque unordered, so filter rather than
        # pop from the left.
        if any(e.time < cutoff for e in buf.events):
            buf.events = deque(e for e in buf.events if e.time >= cutoff)

        if not buf.events:
            return None
        template = event if event.time >= cutoff else max(buf.events, key=lambda e: e.time)
        return self._aggregate(group_key, tuple(buf.events), now, template)

    def _observe_fixed(
        self, group_key: GroupKey, buf: _Buffer, event: Event
    ) -> Aggregate | None:
        if buf.window_start is None:
            buf.window_start = event.time
            buf.opened_at = buf.touched_at
            buf.events.append(event)
            return None

        if event.time - buf.window_start < self._span:
            buf.events.append(event)
            return None

        closed = tuple(buf.events)
        buf.events = deque([event])
        buf.window_start = event.time
        buf.opened_at = buf.touched_at
        if not closed:
            return None
        return self._aggregate(group_key, closed, event.time, closed[-1])

    def _aggregate(
        self,
        group_key: GroupKey,
        events: tuple[Event, ...],
        now: float,
        template: Event,
    ) -> Aggregate:
        return Aggregate(
            group_key=group_key,
            metric=fold_events(self._fold, events),
            time=now,
            events=events,
            template=template,
        )
