"""Pure functions that turn alerts and metrics into sink wire formats."""

from __future__ import annotations

import datetime
from typing import Any

from src.core.types import AlertCandidate, RelayMetric


def format_alerta_payload(
    candidate: AlertCandidate,
    environment: str,
    origin: str,
) -> dict[str, Any]:
    """Alerta ``POST /alert`` body for a candidate.

    The candidate's own environment wins over the configured default.
    """
    attributes: dict[str, Any] = {"correlationKey": candidate.correlation_key}
    if candidate.host:
        attributes["host"] = candidate.host
    if candidate.grid:
        attributes["grid"] = candidate.grid
    if candidate.count is not None:
        attributes["count"] = candidate.count

    return {
        "resource": candidate.resource or candidate.host or candidate.correlation_key,
        "event": candidate.event_name,
        "environment": candidate.environment or environment,
        "severity": candidate.severity.value,
        "service": [candidate.service] if candidate.service else [],
        "group": candidate.group,
        "value": _format_value(candidate.metric),
        "text": candidate.description,
        "tags": [f"rule:{candidate.rule}"],
        "attributes": attributes,
        "origin": origin,
        "type": "streamwardenAlert",
        "createTime": _iso(candidate.time),
    }


def graphite_path(metric: RelayMetric, prefix: str = "") -> str:
    """Metric path: prefix, reversed host FQDN, then the service name.

    ``web-01.example.com`` / ``riemann unique_hosts`` with prefix
    ``riemann`` becomes ``riemann.com.example.web-01.riemann.unique_hosts``.
    """
    host_parts = list(reversed(metric.host.split("."))) if metric.host else []
    service = ".".join(metric.name.split())
    parts = [p for p in (prefix, *host_parts, service) if p]
    return ".".join(parts)


def format_graphite_line(metric: RelayMetric, prefix: str = "") -> str:
    """Carbon plaintext protocol line, newline-terminated."""
    return f"{graphite_path(metric, prefix)} {_format_number(metric.metric)} {int(metric.time)}\n"


def _format_value(metric: float | None) -> str:
    if metric is None:
        return ""
    return _format_number(metric)


def _format_number(value: float) -> str:
    """Full-precision text: integral values without a fraction, others as repr."""
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return repr(value)


def _iso(epoch: float) -> str:
    ts = datetime.datetime.fromtimestamp(epoch, datetime.UTC)
    return ts.strftime("%Y-%m-%dT%H:%M:%S.") + f"{ts.microsecond // 1000:03d}Z"
