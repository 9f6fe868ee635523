"""StreamEngine — index, summaries, rule evaluation, edge detection, dispatch."""

from __future__ import annotations

import asyncio
import math
import socket
import time
from collections.abc import Callable

import structlog

from src.core.config import EngineConfig
from src.core.types import INDEX_TIME, AlertCandidate, Event, RelayMetric
from src.monitor.dispatcher import AlertDispatcher
from src.monitor.factory import EVENTS_PER_SEC, UNIQUE_HOSTS, UNIQUE_SERVICES
from src.monitor.relay import MetricRelay
from src.rules.evaluator import evaluate, matches, ratio_event
from src.rules.types import RuleDescriptor
from src.state.counters import CardinalityCounter
from src.state.index import Index
from src.stream.dedup import EdgeDetector
from src.stream.window import (
    Aggregate,
    Fold,
    WindowAggregator,
    WindowKind,
    group_key_of,
)

logger = structlog.get_logger(__name__)


class RuleWorker:
    """One rule plus the state it owns: its window and its edge detector."""

    def __init__(
        self,
        rule: RuleDescriptor,
        shards: int = 16,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.rule = rule
        self._window: WindowAggregator | None = None
        if rule.window is not None:
            self._window = WindowAggregator(
                rule.window.kind,
                rule.window.span_secs,
                rule.window.fold,
                shards=shards,
                clock=clock,
            )
        elif rule.ratio is not None:
            self._window = WindowAggregator(
                WindowKind.SLIDING,
                rule.ratio.span_secs,
                Fold.SUM,
                shards=shards,
                latest_per_key=rule.ratio.latest_per_key,
                clock=clock,
            )
        self._detector = EdgeDetector(rule.debounce, shards=shards, clock=clock)

    @property
    def name(self) -> str:
        return self.rule.name

    def handle(self, event: Event, index: Index, now: float) -> AlertCandidate | None:
        """Run *event* through the rule. Returns a candidate only on a confirmed edge."""
        if not matches(self.rule, event):
            return None
        if self._window is None:
            return self._confirm(evaluate(self.rule, event, index, now))

        group_by = self.rule.ratio.group_by if self.rule.ratio else self.rule.window.group_by
        aggregate = self._window.observe(group_key_of(event, group_by), event)
        if aggregate is None:
            return None
        return self._confirm(self._evaluate_aggregate(aggregate, index, now))

    def flush(self, index: Index, now: float) -> list[AlertCandidate]:
        """Close elapsed fixed windows and classify their aggregates."""
        if self._window is None:
            return []
        out: list[AlertCandidate] = []
        for aggregate in self._window.flush(now):
            candidate = self._confirm(self._evaluate_aggregate(aggregate, index, now))
            if candidate is not None:
                out.append(candidate)
        return out

    def prune(self, idle_secs: float, now: float) -> int:
        """Forget window and edge state for groups idle longer than *idle_secs*."""
        dropped = self._detector.prune(idle_secs, now)
        if self._window is not None:
            dropped += self._window.prune(idle_secs, now)
        return dropped

    def _evaluate_aggregate(
        self, aggregate: Aggregate, index: Index, now: float
    ) -> AlertCandidate | None:
        if self.rule.ratio is not None:
            derived = ratio_event(self.rule, aggregate)
            if derived is None:
                return None
            return evaluate(self.rule, derived, index, now)

        resource = None
        if self.rule.window is not None and self.rule.window.resource_from_group:
            resource = ":".join(str(v) for v in aggregate.group_key if v is not None)
        return evaluate(self.rule, aggregate.to_event(resource=resource), index, now)

    def _confirm(self, candidate: AlertCandidate | None) -> AlertCandidate | None:
        if candidate is None:
            return None
        if self._detector.observe(candidate.correlation_key, candidate.severity.value):
            return candidate
        return None


class StreamEngine:
    """Consumes events and produces confirmed alerts and summary metrics.

    Every event updates the index, the cardinality counters and the event
    rate meter.  Events that are not ``expired`` then run through every rule
    worker; a rule that raises is logged and skipped without affecting the
    others.  All state changes for one event happen before the first await,
    so per-key arrival order is preserved.

    Usage::

        engine = StreamEngine(rules, index, dispatcher, relay)
        await engine.start()
        engine.submit(event)          # queued, FIFO
        await engine.process(event)   # or inline
        await engine.stop()
    """

    def __init__(
        self,
        rules: list[RuleDescriptor],
        index: Index,
        dispatcher: AlertDispatcher,
        relay: MetricRelay,
        config: EngineConfig | None = None,
        hostname: str | None = None,
        event_rate_window_secs: float = 10.0,
        flush_interval_secs: float = 1.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config or EngineConfig()
        self._index = index
        self._dispatcher = dispatcher
        self._relay = relay
        self._hostname = hostname or socket.gethostname()
        self._clock = clock
        self._flush_interval = flush_interval_secs

        self._workers = [
            RuleWorker(rule, shards=self._config.shards, clock=clock) for rule in rules
        ]
        self._hosts = CardinalityCounter("unique hosts")
        self._services = CardinalityCounter("unique services")
        self._rate_span = event_rate_window_secs
        self._rate = WindowAggregator(
            WindowKind.FIXED, event_rate_window_secs, Fold.COUNT, clock=clock
        )
        self._last_prune = clock()

        self._queue: asyncio.Queue[Event] = asyncio.Queue(maxsize=self._config.queue_size)
        self._tasks: list[asyncio.Task[None]] = []
        self._running = False

        # Stats
        self._processed = 0
        self._dropped = 0
        self._alerts_forwarded = 0
        self._rule_errors = 0
        self._expired_seen = 0

    @property
    def index(self) -> Index:
        return self._index

    @property
    def workers(self) -> list[RuleWorker]:
        return list(self._workers)

    @property
    def running(self) -> bool:
        return self._running

    @property
    def stats(self) -> dict[str, int]:
        return {
            "processed": self._processed,
            "dropped": self._dropped,
            "queued": self._queue.qsize(),
            "alerts_forwarded": self._alerts_forwarded,
            "rule_errors": self._rule_errors,
            "expired_seen": self._expired_seen,
            "unique_hosts": self._hosts.cardinality,
            "unique_services": self._services.cardinality,
        }

    # ── Lifecycle ───────────────────────────────────────────────

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._tasks = [
            asyncio.create_task(self._consume()),
            asyncio.create_task(self._flush_loop()),
        ]
        logger.info("engine_started", rules=len(self._workers))

    async def stop(self, drain: bool = True) -> None:
        """Stop the background tasks, optionally processing what is queued first."""
        if drain and self._running:
            await self._queue.join()
        self._running = False
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks = []
        logger.info("engine_stopped", **self.stats)

    # ── Entry points ────────────────────────────────────────────

    def submit(self, event: Event) -> bool:
        """Queue *event* for the consumer task. Returns False if the queue is full."""
        try:
            self._queue.put_nowait(event)
            return True
        except asyncio.QueueFull:
            self._dropped += 1
            logger.warning("event_dropped_queue_full", host=event.host, service=event.service)
            return False

    async def process(self, event: Event) -> list[AlertCandidate]:
        """Apply one event. Returns the alerts confirmed by it."""
        now = self._clock()
        self._apply_index(event, now)
        summaries = self._record_summaries(event, now)
        confirmed = [] if event.expired else self._evaluate_rules(event, now)
        self._processed += 1

        for metric in summaries:
            await self._relay.relay(metric)
        for candidate in confirmed:
            await self._forward(candidate)
        return confirmed

    async def flush(self) -> list[AlertCandidate]:
        """Close elapsed fixed windows (rules and the event-rate meter)."""
        now = self._clock()
        confirmed: list[AlertCandidate] = []
        for worker in self._workers:
            try:
                confirmed.extend(worker.flush(self._index, now))
            except Exception:
                self._rule_errors += 1
                logger.exception("rule_flush_error", rule=worker.name)

        summaries = [self._rate_metric(agg, now) for agg in self._rate.flush(now)]
        for metric in summaries:
            await self._relay.relay(metric)
        for candidate in confirmed:
            await self._forward(candidate)
        return confirmed

    def prune(self) -> int:
        """Forget per-key state idle longer than ``idle_state_secs``."""
        now = self._clock()
        self._last_prune = now
        idle = self._config.idle_state_secs
        dropped = self._dispatcher.prune() + self._rate.prune(idle, now)
        for worker in self._workers:
            dropped += worker.prune(idle, now)
        if dropped:
            logger.info("engine_state_pruned", dropped=dropped)
        return dropped

    async def on_expired(self, event: Event) -> None:
        """Receiver for the sweeper's synthetic expired events."""
        self._expired_seen += 1
        logger.info(
            "event_expired",
            host=event.host,
            service=event.service,
            index_time=event.attributes.get(INDEX_TIME),
        )

    # ── Internal ────────────────────────────────────────────────

    def _apply_index(self, event: Event, now: float) -> None:
        if event.expired:
            self._index.delete(event.host, event.service)
            return
        self._index.update(event.derive(attributes={INDEX_TIME: f"{math.floor(now):.0f}"}))

    def _record_summaries(self, event: Event, now: float) -> list[RelayMetric]:
        hosts = self._hosts.record(event.host)
        services = self._services.record((event.host, event.service))
        self._index.update(Event(host=self._hostname, service="unique hosts", metric=hosts, time=now))
        self._index.update(
            Event(host=self._hostname, service="unique services", metric=services, time=now)
        )
        out = [
            RelayMetric(name=UNIQUE_HOSTS, host=self._hostname, metric=hosts, time=now),
            RelayMetric(name=UNIQUE_SERVICES, host=self._hostname, metric=services, time=now),
        ]
        aggregate = self._rate.observe((), Event(host=self._hostname, service=EVENTS_PER_SEC, time=now))
        if aggregate is not None:
            out.append(self._rate_metric(aggregate, now))
        return out

    def _rate_metric(self, aggregate: Aggregate, now: float) -> RelayMetric:
        rate = aggregate.metric / self._rate_span
        self._index.update(
            Event(host=self._hostname, service=EVENTS_PER_SEC, state="normal", metric=rate, time=now)
        )
        return RelayMetric(name=EVENTS_PER_SEC, host=self._hostname, metric=rate, time=now)

    def _evaluate_rules(self, event: Event, now: float) -> list[AlertCandidate]:
        confirmed: list[AlertCandidate] = []
        for worker in self._workers:
            try:
                candidate = worker.handle(event, self._index, now)
            except Exception:
                self._rule_errors += 1
                logger.exception(
                    "rule_evaluation_error",
                    rule=worker.name,
                    host=event.host,
                    service=event.service,
                )
                continue
            if candidate is not None:
                confirmed.append(candidate)
        return confirmed

    async def _forward(self, candidate: AlertCandidate) -> None:
        try:
            if await self._dispatcher.dispatch(candidate):
                self._alerts_forwarded += 1
        except Exception:
            logger.exception("alert_dispatch_error", rule=candidate.rule)

    async def _consume(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self.process(event)
            except Exception:
                logger.exception("event_processing_error", host=event.host, service=event.service)
            finally:
                self._queue.task_done()

    async def _flush_loop(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self._flush_interval)
                await self.flush()
                if self._clock() - self._last_prune >= self._config.prune_interval_secs:
                    self.prune()
            except asyncio.CancelledError:
                return
            except Exception:
                logger.exception("engine_flush_error")
