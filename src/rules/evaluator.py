"""Generic interpreter for rule descriptors.

Every function here is stateless per call.  Window state and debounce state
live with the engine's rule workers; the evaluator only reads the index.
"""

from __future__ import annotations

import math
from typing import Protocol

import structlog

from src.core.types import AlertCandidate, Event
from src.rules.types import AuxMode, MetricTransform, RuleDescriptor, match_all
from src.stream.window import Aggregate

logger = structlog.get_logger(__name__)


class MetricLookup(Protocol):
    def lookup(self, host: str | None, service: str | None) -> Event | None: ...


def matches(rule: RuleDescriptor, event: Event) -> bool:
    """Whether *event* enters *rule* at all."""
    if not match_all(rule.match, event):
        return False
    if rule.ratio is not None:
        return event.metric is not None and rule.ratio.accepts(event)
    return True


def evaluate(
    rule: RuleDescriptor,
    event: Event,
    index: MetricLookup,
    now: float,
) -> AlertCandidate | None:
    """Classify an already-matched (possibly aggregated) event.

    Applies the auxiliary lookup, the metric transform and the threshold
    ladder.  Returns None when the metric is missing, the auxiliary metric
    is missing, or the ladder has no branch for the value.
    """
    metric = event.metric
    if metric is None:
        return None

    scale = 1.0
    if rule.aux is not None:
        aux = index.lookup(event.host, rule.aux.service)
        if aux is None or aux.metric is None:
            logger.debug(
                "aux_metric_missing",
                rule=rule.name,
                host=event.host,
                aux_service=rule.aux.service,
            )
            return None
        if rule.aux.mode == AuxMode.SCALE_BOUNDS:
            scale = aux.metric
        else:
            if aux.metric == 0:
                return None
            metric = metric / aux.metric

    if rule.transform == MetricTransform.ELAPSED:
        metric = math.floor(now) - metric

    outcome = rule.ladder.classify(metric, scale)
    if outcome is None:
        return None

    labelled = event.derive(
        metric=metric,
        state=outcome.severity.value,
        description=outcome.message,
        event=rule.event_name,
        group=rule.group,
        grid=rule.grid or event.grid,
        count=rule.count if rule.count is not None else event.count,
    )
    return _candidate(rule, labelled)


def classify(
    rule: RuleDescriptor,
    event: Event,
    index: MetricLookup,
    now: float,
) -> AlertCandidate | None:
    """Match then evaluate — the whole path for rules without a window."""
    if not matches(rule, event):
        return None
    return evaluate(rule, event, index, now)


def ratio_event(rule: RuleDescriptor, aggregate: Aggregate) -> Event | None:
    """Build the ratio event for a ratio rule from one window's contents."""
    spec = rule.ratio
    if spec is None:
        raise ValueError(f"rule {rule.name!r} has no ratio stage")

    numer = [e for e in aggregate.events if match_all(spec.numerator, e)]
    if spec.denominator is None:
        denom = list(aggregate.events)
    else:
        denom = [e for e in aggregate.events if match_all(spec.denominator, e)]

    if spec.require_both and (not numer or not denom):
        return None

    total_numer = sum(e.metric for e in numer if e.metric is not None)
    total_denom = sum(e.metric for e in denom if e.metric is not None)
    ratio = 0.0 if total_denom == 0 else (total_numer / total_denom) * spec.scale

    source = denom[-1] if denom else aggregate.template
    resource = source.field(spec.resource_field) if spec.resource_field else None

    logger.debug(
        "ratio_computed",
        rule=rule.name,
        group=aggregate.group_key,
        events=len(aggregate.events),
        ratio=ratio,
    )
    return Event(
        host=spec.host,
        service=spec.service,
        metric=ratio,
        time=aggregate.time,
        environment=source.environment,
        cluster=source.cluster,
        grid=source.grid,
        resource=resource,
    )


def correlation_key(rule: RuleDescriptor, event: Event) -> str:
    return ":".join("" if v is None else str(v) for v in (event.field(f) for f in rule.dedup_by))


def _candidate(rule: RuleDescriptor, event: Event) -> AlertCandidate:
    return AlertCandidate(
        rule=rule.name,
        event_name=rule.event_name,
        group=rule.group,
        severity=event.state,
        description=event.description or "",
        resource=event.resource or event.host,
        correlation_key=correlation_key(rule, event),
        host=event.host,
        service=event.service,
        environment=event.environment,
        grid=event.grid,
        metric=event.metric,
        count=event.count,
        time=event.time,
    )
