"""Pydantic settings loaded from YAML configuration."""

from __future__ import annotations

import socket
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, SecretStr

_settings: Settings | None = None

_DEFAULT_CONFIG_PATH = Path("config/settings.yaml")


class IndexConfig(BaseModel):
    """Live index of latest event per (host, service)."""

    default_ttl_secs: float = 900.0
    shards: int = 16


class SweeperConfig(BaseModel):
    """Periodic expiry of stale index entries."""

    interval_secs: float = 10.0


class AlertaConfig(BaseModel):
    """Alerta HTTP API sink."""

    enabled: bool = False
    endpoint: str = "http://localhost:8080/api"
    api_key: SecretStr = SecretStr("")
    environment: str = "PROD"
    origin: str = "streamwarden"
    timeout_secs: float = 5.0


class AlertsConfig(BaseModel):
    """Alert dispatch configuration."""

    throttle_secs: float = 30.0
    alerta: AlertaConfig = AlertaConfig()


class GraphiteConfig(BaseModel):
    """Graphite plaintext (carbon) sink for summary metrics."""

    enabled: bool = False
    host: str = "localhost"
    port: int = 2003
    prefix: str = "riemann"
    timeout_secs: float = 5.0


class RelayConfig(BaseModel):
    """Summary metric relay (cardinality heartbeats, event rate)."""

    hostname: str = Field(default_factory=socket.gethostname)
    cardinality_period_secs: float = 5.0
    event_rate_period_secs: float = 10.0
    event_rate_window_secs: float = 10.0
    graphite: GraphiteConfig = GraphiteConfig()


class RulesConfig(BaseModel):
    """Where threshold rules come from."""

    path: str | None = None
    include_defaults: bool = True


class EngineConfig(BaseModel):
    """Stream engine queueing and per-key state retention."""

    queue_size: int = 100_000
    shards: int = 16
    # Window, edge and throttle state for keys silent this long is forgotten.
    idle_state_secs: float = 3600.0
    prune_interval_secs: float = 60.0


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "json"
    # Level of the alert_log and decision_log streams, independent of level.
    alert_level: str = "INFO"


class Settings(BaseModel):
    """Root settings container."""

    index: IndexConfig = IndexConfig()
    sweeper: SweeperConfig = SweeperConfig()
    alerts: AlertsConfig = AlertsConfig()
    relay: RelayConfig = RelayConfig()
    rules: RulesConfig = RulesConfig()
    engine: EngineConfig = EngineConfig()
    logging: LoggingConfig = LoggingConfig()


def load_settings(path: str | Path | None = None) -> Settings:
    """Load settings from a YAML file and cache globally.

    Args:
        path: Path to YAML config. Defaults to config/settings.yaml.

    Returns:
        Parsed Settings instance.
    """
    global _settings  # noqa: PLW0603

    config_path = Path(path) if path else _DEFAULT_CONFIG_PATH

    data: dict[str, Any] = {}
    if config_path.exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f)
            if isinstance(raw, dict):
                data = raw

    _settings = Settings(**data)
    return _settings


def get_settings() -> Settings:
    """Return the cached settings, loading defaults if not yet loaded."""
    global _settings  # noqa: PLW0603
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Reset the cached settings (useful for testing)."""
    global _settings  # noqa: PLW0603
    _settings = None
