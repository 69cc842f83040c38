#!/usr/bin/env python3
"""DLQ monitor entrypoint — polls the dead-letter queue and dispatches alerts.

Usage::

    # Run the monitoring loop until interrupted
    python scripts/monitor.py

    # One-off health check (prints JSON, exit 2 when CRITICAL)
    python scripts/monitor.py --once

    # One-off dashboard data
    python scripts/monitor.py --dashboard

    # Loop plus HTTP /health and /api/dashboard endpoints
    python scripts/monitor.py --web --port 8080
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys

import structlog

from src.core.config import load_settings
from src.core.logging import setup_logging
from src.monitor.factory import create_monitor_stack
from src.monitor.types import HealthStatus
from src.monitor.web_dashboard import start_web_dashboard

logger = structlog.get_logger(__name__)


async def run(args: argparse.Namespace) -> int:
    """Start the monitor and run until interrupted."""
    settings = load_settings(args.config)
    setup_logging(level=args.log_level)

    dispatcher, dlq_monitor, performance = create_monitor_stack(settings)

    if args.once:
        report = await dlq_monitor.get_health_status()
        print(report.model_dump_json(indent=2))
        await dispatcher.close()
        return 2 if report.status == HealthStatus.CRITICAL else 0

    if args.dashboard:
        data = await dlq_monitor.get_dashboard_data()
        print(data.model_dump_json(indent=2))
        await dispatcher.close()
        return 0

    runner = None
    if args.web:
        runner = await start_web_dashboard(
            dlq_monitor,
            host=args.host or settings.dashboard.host,
            port=args.port or settings.dashboard.port,
            username=settings.dashboard.username or None,
            password=settings.dashboard.password.get_secret_value() or None,
        )

    await dlq_monitor.start()
    await performance.monitor_system_health()
    logger.info(
        "monitor_running",
        queue=dlq_monitor.queue_name,
        channels=len(dispatcher.channels),
        web="active" if runner else "disabled",
    )

    # ── Wait for shutdown signal ─────────────────────────────────
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
    await dlq_monitor.stop()
    if runner is not None:
        await runner.cleanup()
    await dispatcher.close()

    logger.info(
        "monitor_stopped",
        ticks=dlq_monitor.tick_count,
        alerts_sent=dispatcher.sent_count,
        alerts_suppressed=dispatcher.suppressed_count,
    )
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Monitor the notification dead-letter queue.",
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
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--once", action="store_true", help="Print health status and exit")
    mode.add_argument("--dashboard", action="store_true", help="Print dashboard data and exit")
    mode.add_argument("--web", action="store_true", help="Also serve the HTTP dashboard")
    parser.add_argument("--host", default=None, help="Dashboard bind host")
    parser.add_argument("--port", type=int, default=None, help="Dashboard port")
    args = parser.parse_args()

    code = asyncio.run(run(args))
    sys.exit(code)


if __name__ == "__main__":
    main()
