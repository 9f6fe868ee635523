"""Ingest boundary — turns carbon plaintext into canonical events."""

from src.ingest.carbon import iter_events, parse_line, parse_metric_name
from src.ingest.exceptions import IngestError, MalformedEventError

__all__ = [
    "IngestError",
    "MalformedEventError",
    "iter_events",
    "parse_line",
    "parse_metric_name",
]
