"""Rule descriptors — threshold rules expressed as data."""

from __future__ import annotations

import re
from enum import StrEnum

from pydantic import BaseModel, Field, PrivateAttr, model_validator

from src.core.types import Event, Severity
from src.stream.window import Fold, WindowKind


class MatchKind(StrEnum):
    EXACT = "exact"
    PREFIX = "prefix"
    REGEX = "regex"


class FieldMatch(BaseModel):
    """Predicate on one event field.

    Regular expressions use search semantics, so ``respub`` matches any host
    containing that substring.  A missing field never matches.
    """

    field: str
    value: str
    kind: MatchKind = MatchKind.EXACT

    _pattern: re.Pattern[str] | None = PrivateAttr(default=None)

    @model_validator(mode="after")
    def _compile(self) -> FieldMatch:
        if self.kind == MatchKind.REGEX:
            try:
                self._pattern = re.compile(self.value)
            except re.error as exc:
                raise ValueError(f"invalid regex {self.value!r}: {exc}") from exc
        return self

    def matches(self, event: Event) -> bool:
        raw = event.field(self.field)
        if raw is None:
            return False
        text = str(raw)
        if self.kind == MatchKind.EXACT:
            return text == self.value
        if self.kind == MatchKind.PREFIX:
            return text.startswith(self.value)
        if self._pattern is None:
            # Instances built without validation (model_construct) compile here.
            self._pattern = re.compile(self.value)
        return self._pattern.search(text) is not None


def match_all(matchers: list[FieldMatch], event: Event) -> bool:
    """True when every matcher accepts *event*, checked in order."""
    return all(m.matches(event) for m in matchers)


class Comparison(StrEnum):
    """Direction of a threshold ladder.

    ``gt``: high is bad, a rung fires when ``metric > bound``.
    ``lt``: low is bad, a rung fires when ``metric < bound``.
    """

    GT = "gt"
    LT = "lt"


class Outcome(BaseModel):
    severity: Severity
    message: str


class Rung(BaseModel):
    bound: float
    severity: Severity
    message: str


class Ladder(BaseModel):
    """Ordered thresholds, most severe first.

    Comparisons are strict: a metric equal to a bound falls through to the
    next rung.  ``otherwise`` applies when no rung fires; ``None`` means the
    rule produces nothing.
    """

    comparison: Comparison = Comparison.GT
    rungs: list[Rung] = Field(default_factory=list)
    otherwise: Outcome | None = None

    def classify(self, metric: float, scale: float = 1.0) -> Outcome | None:
        for rung in self.rungs:
            bound = rung.bound * scale
            if self.comparison == Comparison.GT:
                hit = metric > bound
            else:
                hit = metric < bound
            if hit:
                return Outcome(severity=rung.severity, message=rung.message)
        return self.otherwise


class AuxMode(StrEnum):
    SCALE_BOUNDS = "scale_bounds"
    DIVIDE = "divide"


class AuxLookup(BaseModel):
    """Auxiliary metric read from the index for the same host."""

    service: str
    mode: AuxMode = AuxMode.SCALE_BOUNDS


class MetricTransform(StrEnum):
    NONE = "none"
    # Epoch timestamp metric → seconds elapsed since then.
    ELAPSED = "elapsed"


class WindowSpec(BaseModel):
    kind: WindowKind = WindowKind.SLIDING
    span_secs: float = Field(gt=0)
    fold: Fold = Fold.MEAN
    group_by: list[str] = Field(default_factory=lambda: ["host", "service"])
    resource_from_group: bool = False


class RatioSpec(BaseModel):
    """Ratio of two metric streams summed over a sliding window.

    ``denominator=None`` means the sum over every event the rule matched.
    A zero denominator yields a ratio of 0.
    """

    numerator: list[FieldMatch]
    denominator: list[FieldMatch] | None = None
    span_secs: float = Field(gt=0)
    group_by: list[str] = Field(default_factory=list)
    scale: float = 1.0
    require_both: bool = False
    latest_per_key: bool = False

    host: str | None = None
    service: str
    resource_field: str | None = None

    def accepts(self, event: Event) -> bool:
        if match_all(self.numerator, event):
            return True
        if self.denominator is None:
            return True
        return match_all(self.denominator, event)


class RuleDescriptor(BaseModel):
    """One alerting rule, interpreted by :mod:`src.rules.evaluator`."""

    name: str
    match: list[FieldMatch] = Field(default_factory=list)
    event_name: str
    group: str
    grid: str | None = None
    count: int | None = None

    aux: AuxLookup | None = None
    transform: MetricTransform = MetricTransform.NONE
    window: WindowSpec | None = None
    ratio: RatioSpec | None = None
    ladder: Ladder

    dedup_by: list[str] = Field(default_factory=lambda: ["host", "service"])
    debounce: int = Field(default=1, ge=1)

    @model_validator(mode="after")
    def _check_stages(self) -> RuleDescriptor:
        if self.window is not None and self.ratio is not None:
            raise ValueError(f"rule {self.name!r}: window and ratio are exclusive")
        if not self.dedup_by:
            raise ValueError(f"rule {self.name!r}: dedup_by must name at least one field")
        return self


class RuleSet(BaseModel):
    rules: list[RuleDescriptor] = Field(default_factory=list)
