"""Tests for the monitor factory — wiring logic with various config combinations."""

from __future__ import annotations

from pydantic import SecretStr

from src.core.config import (
    AlertaConfig,
    AlertsConfig,
    GraphiteConfig,
    RelayConfig,
    Settings,
)
from src.monitor.channels import AlertaSink, LogAlertSink
from src.monitor.dispatcher import AlertDispatcher
from src.monitor.factory import (
    EVENTS_PER_SEC,
    UNIQUE_HOSTS,
    create_monitor_stack,
)
from src.monitor.graphite import GraphiteSink, LogMetricSink
from src.monitor.relay import MetricRelay


# ── Helpers ─────────────────────────────────────────────────────


def _settings(**kw: object) -> Settings:
    defaults: dict[str, object] = {"relay": RelayConfig(hostname="riemann-01")}
    defaults.update(kw)
    return Settings(**defaults)  # type: ignore[arg-type]


# ── Config Combinations ────────────────────────────────────────


class TestFactoryWiring:
    def test_nothing_enabled_falls_back_to_logs(self) -> None:
        disp, relay = create_monitor_stack(_settings())
        assert isinstance(disp, AlertDispatcher)
        assert isinstance(relay, MetricRelay)
        assert [type(s) for s in disp.sinks] == [LogAlertSink]
        assert [type(s) for s in relay.sinks] == [LogMetricSink]

    def test_alerta_enabled(self) -> None:
        alerts = AlertsConfig(
            alerta=AlertaConfig(enabled=True, api_key=SecretStr("k")),
        )
        disp, _ = create_monitor_stack(_settings(alerts=alerts))
        assert len(disp.sinks) == 1
        assert isinstance(disp.sinks[0], AlertaSink)

    def test_graphite_enabled(self) -> None:
        relay_cfg = RelayConfig(
            hostname="riemann-01",
            graphite=GraphiteConfig(enabled=True, host="carbon.local"),
        )
        _, relay = create_monitor_stack(_settings(relay=relay_cfg))
        assert len(relay.sinks) == 1
        assert isinstance(relay.sinks[0], GraphiteSink)

    def test_relay_periods(self) -> None:
        relay_cfg = RelayConfig(
            hostname="riemann-01",
            cardinality_period_secs=7,
            event_rate_period_secs=12,
        )
        _, relay = create_monitor_stack(_settings(relay=relay_cfg))
        assert relay.period_for(UNIQUE_HOSTS) == 7
        assert relay.period_for(EVENTS_PER_SEC) == 12
