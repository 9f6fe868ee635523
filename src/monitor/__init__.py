"""Outputs — alert dispatch, metric relay, and their sinks."""

from src.monitor.channels import AlertaSink, AlertSink, LogAlertSink
from src.monitor.dispatcher import AlertDispatcher
from src.monitor.factory import (
    EVENTS_PER_SEC,
    UNIQUE_HOSTS,
    UNIQUE_SERVICES,
    create_monitor_stack,
)
from src.monitor.formatters import format_alerta_payload, format_graphite_line, graphite_path
from src.monitor.graphite import GraphiteSink, LogMetricSink, MetricSink
from src.monitor.ratelimit import Throttle
from src.monitor.relay import MetricRelay

__all__ = [
    "EVENTS_PER_SEC",
    "UNIQUE_HOSTS",
    "UNIQUE_SERVICES",
    "AlertDispatcher",
    "AlertSink",
    "AlertaSink",
    "GraphiteSink",
    "LogAlertSink",
    "LogMetricSink",
    "MetricRelay",
    "MetricSink",
    "Throttle",
    "create_monitor_stack",
    "format_alerta_payload",
    "format_graphite_line",
    "graphite_path",
]
