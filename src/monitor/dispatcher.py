"""Central alert dispatcher — forwards confirmed alerts to sinks with throttling."""

from __future__ import annotations

import time
from collections.abc import Callable

import structlog

from src.core.types import AlertCandidate
from src.monitor.channels import AlertSink, LogAlertSink
from src.monitor.ratelimit import Throttle

# Dedicated structured logger for dispatch decisions.
decision_logger = structlog.get_logger("decision_log")

logger = structlog.get_logger(__name__)


class AlertDispatcher:
    """Routes confirmed alert candidates to alert sinks.

    - Sends are rate limited per ``correlation_key/event_name``.
    - A throttled candidate is dropped; the sink already holds the state
      from the previous send.
    - Sink failures are logged and never raised to the caller.
    - With no sinks configured, alerts go to :class:`LogAlertSink`.
    """

    def __init__(
        self,
        sinks: list[AlertSink] | None = None,
        throttle_secs: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._sinks: list[AlertSink] = sinks or [LogAlertSink()]
        self._throttle = Throttle(throttle_secs)
        self._clock = clock
        self._sent = 0
        self._throttled = 0
        self._failed = 0

    @property
    def sinks(self) -> list[AlertSink]:
        return list(self._sinks)

    @property
    def stats(self) -> dict[str, int]:
        return {
            "sent": self._sent,
            "throttled": self._throttled,
            "failed": self._failed,
        }

    async def dispatch(self, candidate: AlertCandidate) -> bool:
        """Forward *candidate* if its throttle token allows. Returns True if sent."""
        # The throttle sits after edge detection, so a transition confirmed
        # within the period of the previous send for the same key (a quick
        # recovery, say) is dropped and will not be confirmed again.
        if not self._throttle.try_acquire(candidate.throttle_key, self._clock()):
            self._throttled += 1
            logger.debug(
                "alert_throttled",
                key=candidate.throttle_key,
                severity=candidate.severity.value,
            )
            return False

        self._log_decision(candidate)
        self._sent += 1
        await self._dispatch_to_sinks(candidate)
        return True

    def prune(self) -> int:
        """Forget throttle entries whose period has passed."""
        return self._throttle.prune(self._clock())

    def _log_decision(self, candidate: AlertCandidate) -> None:
        decision_logger.info(
            "decision",
            rule=candidate.rule,
            alert_event=candidate.event_name,
            severity=candidate.severity.value,
            resource=candidate.resource,
            correlation_key=candidate.correlation_key,
            metric=candidate.metric,
        )

    async def _dispatch_to_sinks(self, candidate: AlertCandidate) -> None:
        for sink in self._sinks:
            try:
                ok = await sink.send(candidate)
            except Exception:
                ok = False
                logger.exception(
                    "sink_dispatch_error",
                    sink=type(sink).__name__,
                    alert_event=candidate.event_name,
                )
            if not ok:
                self._failed += 1

    # ── Lifecycle ───────────────────────────────────────────────

    async def close(self) -> None:
        for sink in self._sinks:
            try:
                await sink.close()
            except Exception:
                logger.exception("sink_close_error", sink=type(sink).__name__)
