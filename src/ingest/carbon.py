"""Carbon plaintext parsing — metric names of the form ENV.GRID.CLUSTER.HOST.SERVICE."""

from __future__ import annotations

import math
from collections.abc import Iterable, Iterator
from typing import Any

import structlog

from src.core.types import Event
from src.ingest.exceptions import MalformedEventError

logger = structlog.get_logger(__name__)

_NAME_PARTS = 5


def parse_metric_name(name: str) -> dict[str, Any]:
    """Split a dotted carbon name into event fields.

    ``PROD.EC2.web_eu-west-1.web-01.fs_util-root`` gives environment
    ``PROD``, grid ``EC2``, cluster ``web_eu-west-1``, host ``web-01``,
    service ``fs_util`` and resource ``web-01:root``.  Without an instance
    suffix the resource is the host.  Parts beyond the fifth are ignored.

    Raises:
        MalformedEventError: fewer than five dot-separated parts.
    """
    parts = name.split(".")
    if len(parts) < _NAME_PARTS or not all(parts[:_NAME_PARTS]):
        raise MalformedEventError(f"metric name {name!r} is not ENV.GRID.CLUSTER.HOST.SERVICE")

    environment, grid, cluster, host, metric = parts[:_NAME_PARTS]
    service, _, instance = metric.partition("-")
    return {
        "host": host,
        "service": service,
        "environment": environment,
        "grid": grid,
        "cluster": cluster,
        "resource": f"{host}:{instance}" if instance else host,
    }


def parse_line(line: str, default_ttl: float | None = None) -> Event:
    """Parse one ``name value timestamp`` line.

    Raises:
        MalformedEventError: wrong field count, non-numeric value or
            timestamp, or a bad metric name.
    """
    fields = line.split()
    if len(fields) != 3:
        raise MalformedEventError(f"expected 'name value timestamp', got {line.strip()!r}")

    name, raw_value, raw_time = fields
    try:
        value = float(raw_value)
        timestamp = float(raw_time)
    except ValueError as exc:
        raise MalformedEventError(f"non-numeric value or timestamp in {line.strip()!r}") from exc
    if not (math.isfinite(value) and math.isfinite(timestamp)):
        raise MalformedEventError(f"non-finite value or timestamp in {line.strip()!r}")

    return Event(metric=value, time=timestamp, ttl=default_ttl, **parse_metric_name(name))


def iter_events(lines: Iterable[str], default_ttl: float | None = None) -> Iterator[Event]:
    """Yield events for well-formed lines; malformed lines are dropped."""
    for line in lines:
        if not line.strip():
            continue
        try:
            yield parse_line(line, default_ttl)
        except MalformedEventError as exc:
            logger.debug("malformed_line_dropped", reason=str(exc))
