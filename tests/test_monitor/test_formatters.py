"""Tests for sink wire formats — Alerta payloads and carbon lines."""

from __future__ import annotations

from src.core.types import AlertCandidate, RelayMetric, Severity
from src.monitor.formatters import (
    format_alerta_payload,
    format_graphite_line,
    graphite_path,
)


def _candidate(**kw: object) -> AlertCandidate:
    defaults: dict[str, object] = {
        "rule": "cpu_load_five",
        "event_name": "LoadAverage",
        "group": "OS",
        "severity": Severity.CRITICAL,
        "description": "System 5-minute load average is very high",
        "resource": "web-01",
        "correlation_key": "web-01:load_five",
        "host": "web-01",
        "service": "load_five",
        "grid": "EC2",
        "metric": 13.5,
        "time": 0.0,
    }
    defaults.update(kw)
    return AlertCandidate(**defaults)  # type: ignore[arg-type]


class TestAlertaPayload:
    def test_fields(self) -> None:
        payload = format_alerta_payload(_candidate(), "PROD", "streamwarden")
        assert payload["resource"] == "web-01"
        assert payload["event"] == "LoadAverage"
        assert payload["environment"] == "PROD"
        assert payload["severity"] == "critical"
        assert payload["service"] == ["load_five"]
        assert payload["group"] == "OS"
        assert payload["value"] == "13.5"
        assert payload["text"] == "System 5-minute load average is very high"
        assert payload["tags"] == ["rule:cpu_load_five"]
        assert payload["origin"] == "streamwarden"
        assert payload["createTime"] == "1970-01-01T00:00:00.000Z"

    def test_attributes(self) -> None:
        payload = format_alerta_payload(_candidate(count=2), "PROD", "o")
        assert payload["attributes"] == {
            "correlationKey": "web-01:load_five",
            "host": "web-01",
            "grid": "EC2",
            "count": 2,
        }

    def test_candidate_environment_wins(self) -> None:
        payload = format_alerta_payload(_candidate(environment="CODE"), "PROD", "o")
        assert payload["environment"] == "CODE"

    def test_resource_falls_back(self) -> None:
        payload = format_alerta_payload(_candidate(resource=None, host=None), "PROD", "o")
        assert payload["resource"] == "web-01:load_five"

    def test_missing_metric(self) -> None:
        payload = format_alerta_payload(_candidate(metric=None, service=None), "PROD", "o")
        assert payload["value"] == ""
        assert payload["service"] == []

    def test_large_value_not_abbreviated(self) -> None:
        payload = format_alerta_payload(_candidate(metric=2_500_000.0), "PROD", "o")
        assert payload["value"] == "2500000"


class TestGraphite:
    def test_path_reverses_host(self) -> None:
        metric = RelayMetric(name="riemann unique_hosts", host="web-01.example.com", metric=3)
        assert graphite_path(metric, "riemann") == "riemann.com.example.web-01.riemann.unique_hosts"

    def test_path_without_prefix(self) -> None:
        metric = RelayMetric(name="riemann events_sec", host="riemann-01", metric=1)
        assert graphite_path(metric) == "riemann-01.riemann.events_sec"

    def test_line(self) -> None:
        metric = RelayMetric(name="riemann events_sec", host="riemann-01", metric=12.5, time=1000.9)
        assert format_graphite_line(metric) == "riemann-01.riemann.events_sec 12.5 1000\n"

    def test_large_counts_keep_precision(self) -> None:
        metric = RelayMetric(name="riemann unique_services", host="riemann-01", metric=1234567, time=1000)
        assert format_graphite_line(metric) == "riemann-01.riemann.unique_services 1234567 1000\n"

    def test_fraction_keeps_precision(self) -> None:
        metric = RelayMetric(name="riemann events_sec", host="riemann-01", metric=1234.56789, time=1000)
        assert format_graphite_line(metric) == "riemann-01.riemann.events_sec 1234.56789 1000\n"
