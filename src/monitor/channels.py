"""Alert sinks — Alerta HTTP API delivery and the local log fallback."""

from __future__ import annotations

import abc

import aiohttp
import structlog

from src.core.config import AlertaConfig
from src.core.types import AlertCandidate
from src.monitor.formatters import format_alerta_payload

logger = structlog.get_logger(__name__)

# Alerts written by the offline fallback go to their own logger.
alert_logger = structlog.get_logger("alert_log")


class AlertSink(abc.ABC):
    """Base class for alert delivery targets."""

    @abc.abstractmethod
    async def send(self, candidate: AlertCandidate) -> bool:
        """Deliver one alert. Returns True on success."""

    @abc.abstractmethod
    async def close(self) -> None:
        """Release resources (HTTP sessions, etc.)."""


class LogAlertSink(AlertSink):
    """Writes alerts to the log at info level (local / test mode)."""

    async def send(self, candidate: AlertCandidate) -> bool:
        alert_logger.info(
            "alert",
            rule=candidate.rule,
            alert_event=candidate.event_name,
            group=candidate.group,
            severity=candidate.severity.value,
            description=candidate.description,
            resource=candidate.resource,
            host=candidate.host,
            service=candidate.service,
            metric=candidate.metric,
            correlation_key=candidate.correlation_key,
        )
        return True

    async def close(self) -> None:
        pass


class AlertaSink(AlertSink):
    """Posts alerts to an Alerta server (``POST {endpoint}/alert``)."""

    def __init__(self, config: AlertaConfig) -> None:
        self._url = config.endpoint.rstrip("/") + "/alert"
        self._api_key = config.api_key.get_secret_value()
        self._environment = config.environment
        self._origin = config.origin
        self._timeout = aiohttp.ClientTimeout(total=config.timeout_secs)
        self._session: aiohttp.ClientSession | None = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            headers = {"Content-Type": "application/json"}
            if self._api_key:
                headers["Authorization"] = f"Key {self._api_key}"
            self._session = aiohttp.ClientSession(headers=headers, timeout=self._timeout)
        return self._session

    async def send(self, candidate: AlertCandidate) -> bool:
        payload = format_alerta_payload(candidate, self._environment, self._origin)
        try:
            session = self._get_session()
            async with session.post(self._url, json=payload) as resp:
                if resp.status in (200, 201, 202):
                    return True
                body = await resp.text()
                logger.warning(
                    "alerta_send_failed",
                    status=resp.status,
                    body=body[:200],
                    alert_event=candidate.event_name,
                    resource=payload["resource"],
                )
                return False
        except Exception:
            logger.exception(
                "alerta_send_error",
                alert_event=candidate.event_name,
                resource=payload["resource"],
            )
            return False

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None
