"""Convenience factory for wiring the alert and metric outputs."""

from __future__ import annotations

from src.core.config import Settings
from src.monitor.channels import AlertaSink, AlertSink, LogAlertSink
from src.monitor.dispatcher import AlertDispatcher
from src.monitor.graphite import GraphiteSink, LogMetricSink, MetricSink
from src.monitor.relay import MetricRelay

# Metric names emitted by the engine's summary streams.
UNIQUE_HOSTS = "riemann unique_hosts"
UNIQUE_SERVICES = "riemann unique_services"
EVENTS_PER_SEC = "riemann events_sec"


def create_monitor_stack(settings: Settings) -> tuple[AlertDispatcher, MetricRelay]:
    """Build the dispatcher and relay from config.

    Sinks that are not enabled fall back to logging, so a config with no
    external backends still records every alert and metric locally.

    Returns:
        (dispatcher, relay)
    """
    alert_sinks: list[AlertSink] = []
    if settings.alerts.alerta.enabled:
        alert_sinks.append(AlertaSink(settings.alerts.alerta))
    else:
        alert_sinks.append(LogAlertSink())

    metric_sinks: list[MetricSink] = []
    if settings.relay.graphite.enabled:
        metric_sinks.append(GraphiteSink(settings.relay.graphite))
    else:
        metric_sinks.append(LogMetricSink())

    dispatcher = AlertDispatcher(
        sinks=alert_sinks,
        throttle_secs=settings.alerts.throttle_secs,
    )
    relay = MetricRelay(
        sinks=metric_sinks,
        period_secs=settings.relay.cardinality_period_secs,
        overrides={EVENTS_PER_SEC: settings.relay.event_rate_period_secs},
    )
    return dispatcher, relay
