#!/usr/bin/env python3
"""Engine entrypoint — wires the stack and replays carbon plaintext lines.

Usage::

    # Replay a capture through the default rules, then exit
    python scripts/run.py --input metrics.txt

    # Read from stdin and keep running (sweeper, flushes) until SIGINT/SIGTERM
    cat metrics.txt | python scripts/run.py --serve

    # Custom config file and log level
    python scripts/run.py --config config/settings.yaml --log-level DEBUG
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from typing import TextIO

import structlog

from src.core.config import load_settings
from src.core.logging import setup_logging
from src.engine.pipeline import StreamEngine
from src.engine.sweeper import ExpirySweeper
from src.ingest.carbon import iter_events
from src.monitor.factory import create_monitor_stack
from src.rules.exceptions import RuleConfigError
from src.rules.loader import build_rules
from src.state.index import Index

logger = structlog.get_logger(__name__)


async def _replay(engine: StreamEngine, stream: TextIO, default_ttl: float) -> int:
    count = 0
    for event in iter_events(stream, default_ttl):
        while not engine.submit(event):
            await asyncio.sleep(0.01)
        count += 1
        if count % 1000 == 0:
            # Let the consumer task drain between batches.
            await asyncio.sleep(0)
    return count


async def run(args: argparse.Namespace) -> int:
    """Start all components, replay input, optionally serve until interrupted."""
    settings = load_settings(args.config)
    setup_logging(level=args.log_level)

    try:
        rules = build_rules(settings.rules)
    except RuleConfigError as exc:
        logger.error("rules_invalid", error=str(exc))
        print(f"Invalid rules: {exc}", file=sys.stderr)
        return 1

    index = Index(
        default_ttl=settings.index.default_ttl_secs,
        shards=settings.index.shards,
    )
    dispatcher, relay = create_monitor_stack(settings)
    engine = StreamEngine(
        rules=rules,
        index=index,
        dispatcher=dispatcher,
        relay=relay,
        config=settings.engine,
        hostname=settings.relay.hostname,
        event_rate_window_secs=settings.relay.event_rate_window_secs,
    )
    sweeper = ExpirySweeper(index, interval_secs=settings.sweeper.interval_secs)
    sweeper.on_expired(engine.on_expired)

    logger.info(
        "engine_starting",
        rules=len(rules),
        alerta=settings.alerts.alerta.enabled,
        graphite=settings.relay.graphite.enabled,
    )

    await engine.start()
    await sweeper.start()

    # ── Replay input ─────────────────────────────────────────────
    stream: TextIO = sys.stdin if args.input in (None, "-") else open(args.input)
    try:
        replayed = await _replay(engine, stream, settings.index.default_ttl_secs)
    finally:
        if stream is not sys.stdin:
            stream.close()
    logger.info("replay_complete", events=replayed)

    # ── Wait for shutdown signal ─────────────────────────────────
    if args.serve:
        stop_event = asyncio.Event()

        def _signal_handler() -> None:
            logger.info("shutdown_signal_received")
            stop_event.set()

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, _signal_handler)
            except NotImplementedError:
                # Windows: signal handlers not supported on ProactorEventLoop
                pass

        try:
            await stop_event.wait()
        except KeyboardInterrupt:
            logger.info("keyboard_interrupt")

    # ── Graceful shutdown ────────────────────────────────────────
    logger.info("engine_shutting_down")
    await sweeper.stop()
    await engine.stop(drain=True)
    await dispatcher.close()
    await relay.close()

    logger.info("engine_exited", **engine.stats, **dispatcher.stats)
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Run the telemetry stream evaluation engine.",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to settings YAML (default: config/settings.yaml)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level override: DEBUG, INFO, WARNING, ERROR",
    )
    parser.add_argument(
        "--input",
        default=None,
        help="Carbon plaintext file to replay (default: stdin)",
    )
    parser.add_argument(
        "--serve",
        action="store_true",
        help="Keep running after the replay until SIGINT/SIGTERM",
    )
    args = parser.parse_args()

    code = asyncio.run(run(args))
    sys.exit(code)


if __name__ == "__main__":
    main()
