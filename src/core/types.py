"""Domain types for the stream evaluation engine — events, severities, alerts."""

from __future__ import annotations

import time
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# State label attached to synthetic events produced by index expiry.
EXPIRED = "expired"

# Attribute recording when an event was last written to the index.
INDEX_TIME = "index_time"


class Severity(StrEnum):
    """Severity labels understood by the alert backend."""

    INFORMATIONAL = "informational"
    NORMAL = "normal"
    WARNING = "warning"
    MINOR = "minor"
    MAJOR = "major"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK: dict[Severity, int] = {
    Severity.INFORMATIONAL: 0,
    Severity.NORMAL: 1,
    Severity.WARNING: 2,
    Severity.MINOR: 3,
    Severity.MAJOR: 4,
    Severity.CRITICAL: 5,
}


class Event(BaseModel):
    """Canonical telemetry record.

    Events are immutable; stages that need to change a field build a new
    event with :meth:`derive`.
    """

    model_config = ConfigDict(frozen=True)

    host: str | None = None
    service: str | None = None
    state: str | None = None
    metric: float | None = None
    time: float = Field(default_factory=time.time)
    ttl: float | None = None

    environment: str | None = None
    cluster: str | None = None
    grid: str | None = None
    resource: str | None = None
    group: str | None = None
    event: str | None = None
    description: str | None = None
    count: int | None = None

    attributes: dict[str, str] = Field(default_factory=dict)

    @property
    def key(self) -> tuple[str | None, str | None]:
        """Index key for this event."""
        return (self.host, self.service)

    @property
    def expired(self) -> bool:
        return self.state == EXPIRED

    def field(self, name: str) -> Any:
        """Look up a tag by name, falling back to free-form attributes."""
        if name in Event.model_fields and name != "attributes":
            return getattr(self, name)
        return self.attributes.get(name)

    def derive(self, **changes: Any) -> Event:
        """Return a copy of this event with *changes* applied."""
        attributes = changes.pop("attributes", None)
        if attributes is not None:
            changes["attributes"] = {**self.attributes, **attributes}
        return self.model_copy(update=changes)


class AlertCandidate(BaseModel):
    """A classified event ready for edge detection and dispatch."""

    model_config = ConfigDict(frozen=True)

    rule: str
    event_name: str
    group: str
    severity: Severity
    description: str
    resource: str | None = None
    correlation_key: str
    host: str | None = None
    service: str | None = None
    environment: str | None = None
    grid: str | None = None
    metric: float | None = None
    count: int | None = None
    time: float = Field(default_factory=time.time)

    @property
    def throttle_key(self) -> str:
        """Key used by the dispatcher's rate limit."""
        return f"{self.correlation_key}/{self.event_name}"


class RelayMetric(BaseModel):
    """A summary metric forwarded to the graphing backend."""

    model_config = ConfigDict(frozen=True)

    name: str
    host: str
    metric: float
    time: float = Field(default_factory=time.time)
