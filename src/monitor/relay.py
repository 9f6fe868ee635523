"""Metric relay — rate-limited forwarding of summary metrics."""

from __future__ import annotations

import time
from collections.abc import Callable

import structlog

from src.core.types import RelayMetric
from src.monitor.graphite import LogMetricSink, MetricSink
from src.monitor.ratelimit import Throttle

logger = structlog.get_logger(__name__)


class MetricRelay:
    """Forwards summary metrics to metric sinks, one per name per period.

    ``overrides`` maps metric names to their own period, e.g. a slower
    heartbeat for the event-rate gauge than for the cardinality counters.
    """

    def __init__(
        self,
        sinks: list[MetricSink] | None = None,
        period_secs: float = 5.0,
        overrides: dict[str, float] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._sinks: list[MetricSink] = sinks or [LogMetricSink()]
        self._throttle = Throttle(period_secs)
        self._overrides = dict(overrides or {})
        self._clock = clock

    @property
    def sinks(self) -> list[MetricSink]:
        return list(self._sinks)

    def period_for(self, name: str) -> float:
        return self._overrides.get(name, self._throttle.period_secs)

    async def relay(self, metric: RelayMetric) -> bool:
        """Forward *metric* if its name's token allows. Returns True if sent."""
        if not self._throttle.try_acquire(metric.name, self._clock(), self.period_for(metric.name)):
            return False
        for sink in self._sinks:
            try:
                await sink.send(metric)
            except Exception:
                logger.exception("metric_sink_error", sink=type(sink).__name__, name=metric.name)
        return True

    async def close(self) -> None:
        for sink in self._sinks:
            try:
                await sink.close()
            except Exception:
                logger.exception("metric_sink_close_error", sink=type(sink).__name__)
