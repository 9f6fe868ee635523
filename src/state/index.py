"""Index — latest event per (host, service) with TTL expiry."""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from src.core.types import EXPIRED, INDEX_TIME, Event
from src.state.partition import PartitionedLocks

logger = structlog.get_logger(__name__)

IndexKey = tuple[str | None, str | None]

# Fields carried over from an expired entry onto its synthetic event.
_KEEP_ATTRIBUTES = (INDEX_TIME,)


@dataclass
class IndexEntry:
    """The latest event for a key and when it stops being live."""

    event: Event
    expires_at: float


class Index:
    """Keyed store of the most recent event per entity.

    Entries are partitioned across shards, each with its own lock, so an
    update and a sweep of the same key are mutually exclusive while
    unrelated keys proceed in parallel.

    Usage::

        index = Index(default_ttl=900)
        index.update(event)
        cpu = index.lookup("web-01", "cpu_num")

        for expired in index.sweep(time.time()):
            ...
    """

    def __init__(self, default_ttl: float = 900.0, shards: int = 16) -> None:
        self._default_ttl = default_ttl
        self._locks = PartitionedLocks(shards)
        self._entries: list[dict[IndexKey, IndexEntry]] = [
            {} for _ in range(len(self._locks))
        ]

    @property
    def default_ttl(self) -> float:
        return self._default_ttl

    def update(self, event: Event) -> None:
        """Insert or replace the entry for the event's key."""
        key = event.key
        ttl = event.ttl if event.ttl is not None else self._default_ttl
        shard = self._locks.shard_of(key)
        with self._locks.lock_at(shard):
            self._entries[shard][key] = IndexEntry(event=event, expires_at=event.time + ttl)

    def lookup(self, host: str | None, service: str | None) -> Event | None:
        """Return the latest event stored for ``(host, service)``."""
        key = (host, service)
        shard = self._locks.shard_of(key)
        with self._locks.lock_at(shard):
            entry = self._entries[shard].get(key)
            return entry.event if entry is not None else None

    def delete(self, host: str | None, service: str | None) -> bool:
        key = (host, service)
        shard = self._locks.shard_of(key)
        with self._locks.lock_at(shard):
            return self._entries[shard].pop(key, None) is not None

    def sweep(self, now: float) -> list[Event]:
        """Remove entries whose expiry is before *now*.

        Returns one synthetic ``expired`` event per removed entry.  A removed
        entry is gone, so later sweeps never report it again.
        """
        expired: list[Event] = []
        for shard, entries in enumerate(self._entries):
            with self._locks.lock_at(shard):
                stale = [k for k, e in entries.items() if e.expires_at < now]
                for key in stale:
                    expired.append(_expired_event(entries.pop(key).event, now))
        if expired:
            logger.debug("index_swept", expired=len(expired), remaining=len(self))
        return expired

    def snapshot(self) -> list[Event]:
        """Copy of every live event, shard by shard."""
        out: list[Event] = []
        for shard, entries in enumerate(self._entries):
            with self._locks.lock_at(shard):
                out.extend(e.event for e in entries.values())
        return out

    def expires_at(self, host: str | None, service: str | None) -> float | None:
        key = (host, service)
        shard = self._locks.shard_of(key)
        with self._locks.lock_at(shard):
            entry = self._entries[shard].get(key)
            return entry.expires_at if entry is not None else None

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._entries)

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, tuple) or len(key) != 2:
            return False
        return self.lookup(key[0], key[1]) is not None


def _expired_event(event: Event, now: float) -> Event:
    return Event(
        host=event.host,
        service=event.service,
        state=EXPIRED,
        time=now,
        attributes={k: v for k, v in event.attributes.items() if k in _KEEP_ATTRIBUTES},
    )
