"""Metric sinks — Graphite plaintext protocol and the local log fallback."""

from __future__ import annotations

import abc
import asyncio

import structlog

from src.core.config import GraphiteConfig
from src.core.types import RelayMetric
from src.monitor.formatters import format_graphite_line

logger = structlog.get_logger(__name__)


class MetricSink(abc.ABC):
    """Base class for summary metric targets."""

    @abc.abstractmethod
    async def send(self, metric: RelayMetric) -> bool:
        """Deliver one metric. Returns True on success."""

    @abc.abstractmethod
    async def close(self) -> None:
        """Release resources (sockets, etc.)."""


class LogMetricSink(MetricSink):
    """Writes metrics to the log (local / test mode)."""

    async def send(self, metric: RelayMetric) -> bool:
        logger.info(
            "metric",
            name=metric.name,
            host=metric.host,
            metric=metric.metric,
            time=metric.time,
        )
        return True

    async def close(self) -> None:
        pass


class GraphiteSink(MetricSink):
    """Writes carbon plaintext lines over a persistent TCP connection.

    The connection is opened lazily and dropped on any write failure; the
    next send reconnects.
    """

    def __init__(self, config: GraphiteConfig) -> None:
        self._host = config.host
        self._port = config.port
        self._prefix = config.prefix
        self._timeout = config.timeout_secs
        self._writer: asyncio.StreamWriter | None = None
        self._lock = asyncio.Lock()

    async def _connect(self) -> asyncio.StreamWriter:
        if self._writer is None or self._writer.is_closing():
            _, self._writer = await asyncio.wait_for(
                asyncio.open_connection(self._host, self._port),
                timeout=self._timeout,
            )
        return self._writer

    async def send(self, metric: RelayMetric) -> bool:
        line = format_graphite_line(metric, self._prefix)
        async with self._lock:
            try:
                writer = await self._connect()
                writer.write(line.encode())
                await asyncio.wait_for(writer.drain(), timeout=self._timeout)
                return True
            except Exception:
                logger.exception(
                    "graphite_send_error",
                    host=self._host,
                    port=self._port,
                    name=metric.name,
                )
                await self._drop()
                return False

    async def close(self) -> None:
        async with self._lock:
            await self._drop()

    async def _drop(self) -> None:
        writer, self._writer = self._writer, None
        if writer is None:
            return
        writer.close()
        try:
            await writer.wait_closed()
        except Exception:
            logger.debug("graphite_close_error", host=self._host, port=self._port)
