"""Core module — config, types, logging."""

from src.core.config import Settings, get_settings, load_settings, reset_settings
from src.core.logging import setup_logging
from src.core.types import (
    EXPIRED,
    INDEX_TIME,
    AlertCandidate,
    Event,
    RelayMetric,
    Severity,
)

__all__ = [
    "EXPIRED",
    "INDEX_TIME",
    "AlertCandidate",
    "Event",
    "RelayMetric",
    "Settings",
    "Severity",
    "get_settings",
    "load_settings",
    "reset_settings",
    "setup_logging",
]
