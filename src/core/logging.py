"""Structured logging setup using structlog.

Two named streams carry the engine's output records: ``decision_log`` (one
record per dispatch decision) and ``alert_log`` (one record per alert written
by the log sink).  They get their own handler and level so that raising the
root level to quieten diagnostics never silences alerts.
"""

from __future__ import annotations

import logging
import sys

import structlog

from src.core.config import get_settings

ALERT_LOGGERS = ("alert_log", "decision_log")

# Third-party loggers that are chatty at INFO and drown out alert decisions.
_QUIET_LOGGERS = ("aiohttp.access", "aiohttp.client", "asyncio")


def _level_of(name: str) -> int:
    return getattr(logging, name.upper(), logging.INFO)


def _stderr_handler(renderer: structlog.types.Processor) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )
    return handler


def setup_logging(
    level: str | None = None,
    fmt: str | None = None,
    alert_level: str | None = None,
) -> None:
    """Configure structlog on top of stdlib logging.

    Args:
        level: Root log level override (e.g. "DEBUG"). Uses config if None.
        fmt: Renderer override ("json" or "console"). Uses config if None.
        alert_level: Level for the alert and decision streams. Uses config if None.
    """
    settings = get_settings().logging
    root_level = _level_of(level or settings.level)
    stream_level = _level_of(alert_level or settings.alert_level)

    renderer: structlog.types.Processor
    if (fmt or settings.format) == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(_stderr_handler(renderer))
    root.setLevel(root_level)

    for name in ALERT_LOGGERS:
        stream = logging.getLogger(name)
        stream.handlers.clear()
        stream.addHandler(_stderr_handler(renderer))
        stream.setLevel(stream_level)
        stream.propagate = False

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(root_level, logging.WARNING))
