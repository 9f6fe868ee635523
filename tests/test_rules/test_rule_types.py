"""Tests for rule descriptor types — field matching, ladders, validation."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from src.core.types import Event, Severity
from src.rules.types import (
    Comparison,
    FieldMatch,
    Ladder,
    MatchKind,
    Outcome,
    RatioSpec,
    RuleDescriptor,
    Rung,
    WindowSpec,
    match_all,
)


def _ladder(**kw: object) -> Ladder:
    defaults: dict[str, object] = {
        "comparison": Comparison.GT,
        "rungs": [
            Rung(bound=95, severity=Severity.CRITICAL, message="very high"),
            Rung(bound=90, severity=Severity.MAJOR, message="high"),
        ],
        "otherwise": Outcome(severity=Severity.NORMAL, message="ok"),
    }
    defaults.update(kw)
    return Ladder(**defaults)  # type: ignore[arg-type]


# ── FieldMatch ──────────────────────────────────────────────────


class TestFieldMatch:
    def test_exact(self) -> None:
        m = FieldMatch(field="service", value="fs_util")
        assert m.matches(Event(service="fs_util"))
        assert not m.matches(Event(service="fs_util_x"))

    def test_prefix(self) -> None:
        m = FieldMatch(field="service", value="gu_200_ok", kind=MatchKind.PREFIX)
        assert m.matches(Event(service="gu_200_ok_request_status_rate-frontend-article"))
        assert not m.matches(Event(service="gu_500"))

    def test_regex_search_semantics(self) -> None:
        m = FieldMatch(field="host", value="respub", kind=MatchKind.REGEX)
        assert m.matches(Event(host="ip-10-respub-01"))
        assert not m.matches(Event(host="ip-10-content-01"))

    def test_regex_without_validation(self) -> None:
        m = FieldMatch.model_construct(field="host", value="^respub", kind=MatchKind.REGEX)
        assert m.matches(Event(host="respub-01"))
        assert not m.matches(Event(host="web-respub"))

    def test_missing_field_never_matches(self) -> None:
        m = FieldMatch(field="cluster", value=".*", kind=MatchKind.REGEX)
        assert not m.matches(Event(host="web-01"))

    def test_attribute_field(self) -> None:
        m = FieldMatch(field="region", value="eu-west-1")
        assert m.matches(Event(attributes={"region": "eu-west-1"}))

    def test_invalid_regex_rejected(self) -> None:
        with pytest.raises(ValidationError):
            FieldMatch(field="host", value="(unclosed", kind=MatchKind.REGEX)

    def test_match_all(self) -> None:
        matchers = [
            FieldMatch(field="grid", value="EC2"),
            FieldMatch(field="environment", value="PROD"),
        ]
        assert match_all(matchers, Event(grid="EC2", environment="PROD"))
        assert not match_all(matchers, Event(grid="EC2", environment="CODE"))
        assert match_all([], Event())


# ── Ladder ──────────────────────────────────────────────────────


class TestLadder:
    def test_most_severe_rung_first(self) -> None:
        out = _ladder().classify(96)
        assert out is not None
        assert out.severity == Severity.CRITICAL

    def test_second_rung(self) -> None:
        out = _ladder().classify(92)
        assert out is not None
        assert out.severity == Severity.MAJOR
        assert out.message == "high"

    def test_otherwise(self) -> None:
        out = _ladder().classify(10)
        assert out is not None
        assert out.severity == Severity.NORMAL

    def test_bound_is_strict(self) -> None:
        ladder = _ladder(
            rungs=[Rung(bound=90, severity=Severity.CRITICAL, message="down")],
        )
        at_bound = ladder.classify(90)
        above = ladder.classify(90.0001)
        assert at_bound is not None and at_bound.severity == Severity.NORMAL
        assert above is not None and above.severity == Severity.CRITICAL

    def test_lt_comparison(self) -> None:
        ladder = _ladder(
            comparison=Comparison.LT,
            rungs=[
                Rung(bound=1, severity=Severity.NORMAL, message="fine"),
                Rung(bound=5, severity=Severity.MINOR, message="moderate"),
            ],
            otherwise=Outcome(severity=Severity.MAJOR, message="bad"),
        )
        assert ladder.classify(0.5).severity == Severity.NORMAL  # type: ignore[union-attr]
        assert ladder.classify(1).severity == Severity.MINOR  # type: ignore[union-attr]
        assert ladder.classify(25).severity == Severity.MAJOR  # type: ignore[union-attr]

    def test_no_otherwise_returns_none(self) -> None:
        ladder = _ladder(otherwise=None)
        assert ladder.classify(10) is None

    def test_scaled_bounds(self) -> None:
        ladder = _ladder(
            rungs=[
                Rung(bound=6, severity=Severity.CRITICAL, message="very high"),
                Rung(bound=4, severity=Severity.MAJOR, message="high"),
            ],
        )
        # 4 CPUs: bounds become 24 and 16.
        assert ladder.classify(20, scale=4).severity == Severity.MAJOR  # type: ignore[union-attr]
        assert ladder.classify(25, scale=4).severity == Severity.CRITICAL  # type: ignore[union-attr]
        assert ladder.classify(16, scale=4).severity == Severity.NORMAL  # type: ignore[union-attr]


# ── RuleDescriptor validation ───────────────────────────────────


class TestRuleDescriptor:
    def _rule(self, **kw: object) -> RuleDescriptor:
        defaults: dict[str, object] = {
            "name": "fs_util",
            "match": [FieldMatch(field="service", value="fs_util")],
            "event_name": "FsUtil",
            "group": "OS",
            "ladder": _ladder(),
        }
        defaults.update(kw)
        return RuleDescriptor(**defaults)  # type: ignore[arg-type]

    def test_defaults(self) -> None:
        rule = self._rule()
        assert rule.dedup_by == ["host", "service"]
        assert rule.debounce == 1
        assert rule.window is None
        assert rule.ratio is None

    def test_window_and_ratio_exclusive(self) -> None:
        with pytest.raises(ValidationError):
            self._rule(
                window=WindowSpec(span_secs=30),
                ratio=RatioSpec(
                    numerator=[FieldMatch(field="service", value="err")],
                    span_secs=60,
                    service="ratio",
                ),
            )

    def test_empty_dedup_rejected(self) -> None:
        with pytest.raises(ValidationError):
            self._rule(dedup_by=[])

    def test_debounce_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            self._rule(debounce=0)

    def test_window_span_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            WindowSpec(span_secs=0)

    def test_parse_from_dict(self) -> None:
        rule = RuleDescriptor.model_validate(
            {
                "name": "swap",
                "match": [{"field": "service", "value": "swap_util"}],
                "event_name": "SwapUtil",
                "group": "OS",
                "ladder": {
                    "comparison": "gt",
                    "rungs": [{"bound": 90, "severity": "minor", "message": "high"}],
                    "otherwise": {"severity": "normal", "message": "ok"},
                },
            }
        )
        assert rule.ladder.rungs[0].severity == Severity.MINOR
        assert rule.match[0].kind == MatchKind.EXACT


class TestRatioSpec:
    def test_accepts_numerator_or_denominator(self) -> None:
        spec = RatioSpec(
            numerator=[FieldMatch(field="service", value="errors")],
            denominator=[FieldMatch(field="service", value="req", kind=MatchKind.PREFIX)],
            span_secs=60,
            service="ratio",
        )
        assert spec.accepts(Event(service="errors"))
        assert spec.accepts(Event(service="req-article"))
        assert not spec.accepts(Event(service="other"))

    def test_no_denominator_accepts_everything(self) -> None:
        spec = RatioSpec(
            numerator=[FieldMatch(field="service", value="errors")],
            span_secs=60,
            service="ratio",
        )
        assert spec.accepts(Event(service="anything"))
