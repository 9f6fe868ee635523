"""Threshold rules — descriptors, the default catalog, and the evaluator."""

from src.rules.catalog import DEFAULT_RULES, default_rules
from src.rules.evaluator import classify, evaluate, matches, ratio_event
from src.rules.exceptions import RuleConfigError, RuleError
from src.rules.loader import build_rules, load_rules
from src.rules.types import (
    AuxLookup,
    AuxMode,
    Comparison,
    FieldMatch,
    Ladder,
    MatchKind,
    MetricTransform,
    Outcome,
    RatioSpec,
    RuleDescriptor,
    RuleSet,
    Rung,
    WindowSpec,
)

__all__ = [
    "DEFAULT_RULES",
    "AuxLookup",
    "AuxMode",
    "Comparison",
    "FieldMatch",
    "Ladder",
    "MatchKind",
    "MetricTransform",
    "Outcome",
    "RatioSpec",
    "RuleConfigError",
    "RuleDescriptor",
    "RuleError",
    "RuleSet",
    "Rung",
    "WindowSpec",
    "build_rules",
    "classify",
    "default_rules",
    "evaluate",
    "load_rules",
    "matches",
    "ratio_event",
]
