# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
"""
HTTP trigger for the usage check.

``GET`` or ``POST /api/httpTrigger`` runs one check and answers ``200
Success`` once every deployment has been processed, even if some of them
failed (those are logged). If the usage metrics cannot be fetched, the
upstream status and body are passed back instead.

Run with::

    uvicorn usage_alert.app:create_app --factory
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from usage_alert.clients import AzureClients
from usage_alert.config import UsageAlertSettings, configure_logging, get_settings
from usage_alert.errors import SourceUnavailableError
from usage_alert.monitor import UsageMonitor

logger = logging.getLogger("usage_alert.app")


def get_monitor(request: Request) -> UsageMonitor:
    """Dependency that returns the application-level UsageMonitor."""
    monitor = request.app.state.monitor
    assert monitor is not None, "Monitor not initialised"  # noqa: S101
    return monitor


async def http_trigger(monitor: UsageMonitor = Depends(get_monitor)) -> Response:
    try:
        summary = await monitor.run()
    except SourceUnavailableError as exc:
        logger.error("Error %s", exc.message, extra={"status_code": exc.status_code})
        if isinstance(exc.body, (dict, list)):
            return JSONResponse(status_code=exc.status_code, content=exc.body)
        body = exc.body if isinstance(exc.body, str) and exc.body else exc.message
        return PlainTextResponse(body, status_code=exc.status_code)

    if summary.failed:
        logger.warning(
            "%d deployment(s) failed for %s",
            len(summary.failed),
            summary.year_month,
            extra={"failed": [outcome.deployment_name for outcome in summary.failed]},
        )
    return PlainTextResponse("Success", status_code=200)


def create_app(
    monitor: UsageMonitor | None = None,
    settings: UsageAlertSettings | None = None,
) -> FastAPI:
    """
    Build the trigger application.

    When ``monitor`` is given it is used as-is (tests, embedding). Otherwise
    the Azure clients are built from ``settings`` on startup and closed on
    shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if monitor is not None:
            app.state.monitor = monitor
            yield
            return

        cfg = settings or get_settings()
        configure_logging(cfg.log_level)
        clients = AzureClients.from_settings(cfg)
        app.state.monitor = clients.build_monitor()
        try:
            yield
        finally:
            app.state.monitor = None
            await clients.close()

    app = FastAPI(
        title="Deployment usage alert",
        description="Monthly per-deployment token usage check with one-time email alerts",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_api_route("/api/httpTrigger", http_trigger, methods=["GET", "POST"])

    @app.get("/api/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app
