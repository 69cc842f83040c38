"""HTTP health and dashboard endpoints for the DLQ monitor.

Runs as an ``aiohttp`` web server alongside the monitoring loop.
Exposes:
- ``GET /health``        → health report; 503 when CRITICAL
- ``GET /api/dashboard`` → current snapshot, alerts, 24h history, recommendations
"""

from __future__ import annotations

import base64
import binascii
import hmac
from typing import Any

import structlog
from aiohttp import web

from src.monitor.dlq import DLQMonitor
from src.monitor.types import HealthStatus

logger = structlog.get_logger(__name__)

MONITOR_KEY = web.AppKey("monitor", DLQMonitor)
USERNAME_KEY = web.AppKey("auth_username", str)
PASSWORD_KEY = web.AppKey("auth_password", str)


def _check_basic_auth(request: web.Request, username: str, password: str) -> bool:
    """Validate HTTP Basic Auth credentials."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Basic "):
        return False
    try:
        decoded = base64.b64decode(auth_header[6:]).decode("utf-8")
        req_user, req_pass = decoded.split(":", 1)
    except (binascii.Error, UnicodeDecodeError, ValueError):
        return False
    user_ok = hmac.compare_digest(req_user, username)
    pass_ok = hmac.compare_digest(req_pass, password)
    return user_ok and pass_ok


@web.middleware
async def _auth_middleware(request: web.Request, handler: Any) -> web.StreamResponse:
    """Require HTTP Basic Auth on all routes when credentials are configured."""
    username = request.app.get(USERNAME_KEY)
    password = request.app.get(PASSWORD_KEY)
    if username and password:
        if not _check_basic_auth(request, username, password):
            return web.Response(
                status=401,
                text="Unauthorized",
                headers={"WWW-Authenticate": 'Basic realm="DLQ Monitor"'},
            )
    return await handler(request)


async def _handle_health(request: web.Request) -> web.Response:
    monitor = request.app[MONITOR_KEY]
    try:
        report = await monitor.get_health_status()
    except Exception as exc:
        logger.exception("health_check_failed")
        return web.json_response({"status": "ERROR", "error": str(exc)}, status=500)
    status = 503 if report.status == HealthStatus.CRITICAL else 200
    return web.json_response(report.model_dump(mode="json"), status=status)


async def _handle_dashboard(request: web.Request) -> web.Response:
    monitor = request.app[MONITOR_KEY]
    try:
        data = await monitor.get_dashboard_data()
    except Exception as exc:
        logger.exception("dashboard_query_failed")
        return web.json_response({"error": str(exc)}, status=500)
    return web.json_response(data.model_dump(mode="json"))


def create_web_app(
    monitor: DLQMonitor,
    username: str | None = None,
    password: str | None = None,
) -> web.Application:
    """Create the aiohttp web application."""
    app = web.Application(middlewares=[_auth_middleware])
    app[MONITOR_KEY] = monitor
    app[USERNAME_KEY] = username or ""
    app[PASSWORD_KEY] = password or ""
    app.router.add_get("/health", _handle_health)
    app.router.add_get("/api/dashboard", _handle_dashboard)
    return app


async def start_web_dashboard(
    monitor: DLQMonitor,
    host: str = "127.0.0.1",
    port: int = 8080,
    username: str | None = None,
    password: str | None = None,
) -> web.AppRunner:
    """Start the web dashboard server. Returns the runner for cleanup."""
    app = create_web_app(monitor, username=username, password=password)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    logger.info("web_dashboard_started", host=host, port=port)
    return runner
