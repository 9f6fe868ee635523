"""Rule configuration exceptions."""

from __future__ import annotations


class RuleError(Exception):
    """Base exception for rule errors."""


class RuleConfigError(RuleError):
    """A rule set could not be loaded or failed validation."""
