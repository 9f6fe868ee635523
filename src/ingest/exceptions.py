"""Exception hierarchy for the ingest boundary."""

from __future__ import annotations


class IngestError(Exception):
    """Base exception for ingest errors."""


class MalformedEventError(IngestError):
    """Input could not be turned into a canonical event."""
